"""Data models for the notifier module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class AlertKind(str, Enum):
    """Known alert kinds. Any other string is accepted as a custom kind."""

    EMERGENCY = "emergency"
    TEXT_THREAT = "text_threat"
    AUDIO_DETECTION = "audio_detection"
    MANUAL_AUDIO_ALERT = "manual_audio_alert"
    SAFE_ZONE_EXIT = "safe_zone_exit"


class NotificationStatus(str, Enum):
    """Final status of a single dispatch attempt."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED_SERVICE_UNAVAILABLE = "skipped_service_unavailable"
    SKIPPED_MISSING_CONTACT = "skipped_missing_contact"


@dataclass(frozen=True)
class Location:
    """A point reported by the user's device."""

    latitude: float
    longitude: float

    @classmethod
    def from_optional(cls, latitude: Any, longitude: Any) -> Location | None:
        """Build a location only when both coordinates are present."""
        if latitude is None or longitude is None:
            return None
        return cls(latitude=float(latitude), longitude=float(longitude))


@dataclass(frozen=True)
class SubjectUser:
    """The user an alert is about.

    Attributes:
        id: User identifier in the auth backend.
        display_name: Name shown to the emergency contact.
        contact_email: The user's own address, copied on notifications.
    """

    id: str
    display_name: str
    contact_email: str | None = None


@dataclass
class AlertEvent:
    """A detected or declared safety concern that requires notification.

    Attributes:
        id: Alert identifier assigned by the persistence store.
        subject_user: The user the alert concerns.
        recipient_email: Emergency contact address.
        kind: Alert kind; selects the notification template.
        content: Optional free-text description.
        location: Optional location, both coordinates or none.
        threat_level: Label supplied by a text threat scorer.
        created_at: When the alert was created.
        resolved: Whether the alert has been resolved.
    """

    id: str | None
    subject_user: SubjectUser
    recipient_email: str
    kind: str
    content: str | None = None
    location: Location | None = None
    threat_level: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    resolved: bool = False

    @classmethod
    def from_request(cls, data: dict[str, Any]) -> AlertEvent:
        """Build an event from a send-alert request payload."""
        return cls(
            id=_optional_str(data.get("alert_id")),
            subject_user=SubjectUser(
                id=str(data.get("user_id") or ""),
                display_name=data.get("user_name") or "",
                contact_email=data.get("user_email") or None,
            ),
            recipient_email=data.get("emergency_contact_email") or "",
            kind=data.get("alert_type") or AlertKind.EMERGENCY.value,
            content=data.get("content") or None,
            location=Location.from_optional(data.get("latitude"), data.get("longitude")),
            threat_level=data.get("threat_level") or None,
        )


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


@dataclass(frozen=True)
class RenderedNotification:
    """A rendered notification ready for the email channel.

    Attributes:
        subject: Email subject line.
        html_body: HTML body sent to the gateway.
        text_body: Plain text fallback of the same content.
    """

    subject: str
    html_body: str
    text_body: str


@dataclass(frozen=True)
class NotificationOutcome:
    """Immutable record of one dispatch attempt.

    The subject and body are copied at send time so later template changes
    never alter historical entries.
    """

    alert_id: str | None
    recipient_email: str
    subject_line: str
    rendered_body: str
    status: NotificationStatus
    error_detail: str | None = None
    provider_message_id: str | None = None
    sent_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if self.status is NotificationStatus.SENT and self.error_detail is not None:
            raise ValueError("sent outcomes cannot carry an error_detail")
        if self.status is not NotificationStatus.SENT and not self.error_detail:
            raise ValueError(f"{self.status.value} outcomes require an error_detail")

    @property
    def delivered(self) -> bool:
        """Return True if the gateway accepted the message."""
        return self.status is NotificationStatus.SENT

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {
            "alert_id": self.alert_id,
            "recipient_email": self.recipient_email,
            "subject": self.subject_line,
            "status": self.status.value,
            "error_detail": self.error_detail,
            "provider_message_id": self.provider_message_id,
            "sent_at": self.sent_at.isoformat(),
        }


@dataclass(frozen=True)
class SendResult:
    """Result-shaped reply from the delivery gateway."""

    id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class GatewayHealth:
    """Point-in-time reachability of the delivery gateway."""

    available: bool
    reason: str | None = None
    detail: str | None = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(UTC))
