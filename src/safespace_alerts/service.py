"""Alert service - the single entry point for creating and resolving alerts.

Every alert-producing surface (manual trigger, audio detector, text threat
scorer, geofence monitor) goes through :class:`AlertService`, which persists
the alert first and only then asks the dispatcher to notify the emergency
contact.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from safespace_alerts.notifier.models import (
    AlertEvent,
    AlertKind,
    Location,
    NotificationOutcome,
    SubjectUser,
)
from safespace_alerts.notifier.templates import DEFAULT_EMERGENCY_CONTENT
from safespace_alerts.storage.repos import AlertDTO, AlertRepository, NotificationLogRepository

if TYPE_CHECKING:
    from safespace_alerts.notifier.dispatcher import NotificationDispatcher
    from safespace_alerts.storage.database import Database

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertResult:
    """An alert record together with the outcome of its notification."""

    alert: AlertDTO
    outcome: NotificationOutcome

    @property
    def notification_warning(self) -> str | None:
        """Message for the user when the alert exists but was not delivered."""
        if self.outcome.delivered:
            return None
        return (
            "Alert created but there was an issue sending notifications: "
            f"{self.outcome.error_detail}"
        )


class AlertRaiser(Protocol):
    """Anything that can create and notify an alert."""

    async def raise_alert(
        self,
        user: SubjectUser,
        recipient_email: str | None,
        kind: str,
        *,
        content: str | None = None,
        location: Location | None = None,
        threat_level: str | None = None,
    ) -> AlertResult:
        ...


class AlertService:
    """Creates alert records and dispatches their notifications."""

    def __init__(self, database: Database, dispatcher: NotificationDispatcher) -> None:
        """Initialize the service.

        Args:
            database: Database holding alert records.
            dispatcher: Dispatcher used to notify emergency contacts.
        """
        self.database = database
        self.dispatcher = dispatcher

    async def raise_alert(
        self,
        user: SubjectUser,
        recipient_email: str | None,
        kind: str,
        *,
        content: str | None = None,
        location: Location | None = None,
        threat_level: str | None = None,
    ) -> AlertResult:
        """Persist a new alert and notify the emergency contact.

        The alert is committed before dispatch starts, so it survives any
        notification failure.

        Args:
            user: The user the alert is about.
            recipient_email: Emergency contact address.
            kind: Alert kind.
            content: Optional description.
            location: Optional location.
            threat_level: Optional scorer label for text threats.

        Returns:
            AlertResult with the stored alert and the notification outcome.
        """
        if kind == AlertKind.EMERGENCY.value and not content:
            content = DEFAULT_EMERGENCY_CONTENT

        async with self.database.session() as session:
            alert = await AlertRepository(session).create(
                user.id, kind, content=content, location=location
            )
        logger.info("Alert %s (%s) created for user %s", alert.id, kind, user.id)

        event = AlertEvent(
            id=alert.id,
            subject_user=user,
            recipient_email=recipient_email or "",
            kind=kind,
            content=content,
            location=location,
            threat_level=threat_level,
            created_at=alert.created_at,
            resolved=alert.is_resolved,
        )
        outcome = await self.dispatcher.dispatch(event)

        result = AlertResult(alert=alert, outcome=outcome)
        if result.notification_warning:
            logger.warning("Alert %s: %s", alert.id, result.notification_warning)
        return result

    async def resolve_alert(self, alert_id: str) -> bool:
        """Mark an alert as resolved.

        Never consults gateway health; resolution works while email is down.

        Returns:
            True if the alert existed.
        """
        async with self.database.session() as session:
            updated = await AlertRepository(session).resolve(alert_id)
        if updated:
            logger.info("Alert %s resolved", alert_id)
        return updated

    async def get_alert(self, alert_id: str) -> AlertDTO | None:
        """Get a stored alert."""
        async with self.database.session() as session:
            return await AlertRepository(session).get(alert_id)

    async def list_outcomes(self, alert_id: str) -> list[NotificationOutcome]:
        """Get every notification outcome recorded for an alert, oldest first."""
        async with self.database.session() as session:
            return await NotificationLogRepository(session).list_for_alert(alert_id)

    async def list_alerts(
        self, user_id: str, *, resolved: bool | None = None, limit: int = 100
    ) -> list[AlertDTO]:
        """List a user's alerts, newest first, optionally filtered by resolution."""
        async with self.database.session() as session:
            return await AlertRepository(session).list_for_user(
                user_id, resolved=resolved, limit=limit
            )

    async def delete_alert(self, alert_id: str) -> bool:
        """Delete an alert record.

        The notification outcomes recorded for it stay in the log.

        Returns:
            True if the alert existed.
        """
        async with self.database.session() as session:
            deleted = await AlertRepository(session).delete(alert_id)
        if deleted:
            logger.info("Alert %s deleted", alert_id)
        return deleted
