"""Notification dispatcher for alert events.

One dispatch is a linear pipeline:

    validating -> rendering -> checking_health -> sending -> recording -> done

Every stage except rendering can end the attempt early with a non-sent
status, and every attempt that gets past rendering appends exactly one
NotificationOutcome before returning. Rendering errors are programming
errors and propagate to the caller unrecorded.
"""

from __future__ import annotations

import logging
import re
import time
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from prometheus_client import Counter, Histogram

from safespace_alerts.notifier.models import (
    AlertEvent,
    NotificationOutcome,
    NotificationStatus,
    RenderedNotification,
)
from safespace_alerts.notifier.templates import TemplateFields, TemplateRenderer

if TYPE_CHECKING:
    from safespace_alerts.notifier.gateway import DeliveryGateway
    from safespace_alerts.notifier.health import GatewayHealthMonitor

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

DETAIL_MISSING_CONTACT = "missing emergency contact email"
DETAIL_INVALID_CONTACT = "invalid emergency contact email"
DETAIL_MISSING_NAME = "missing user name"
DETAIL_NOT_CONFIGURED = "not configured"

DISPATCH_TOTAL = Counter(
    "safespace_dispatch_total",
    "Notification dispatch attempts by alert kind and final status",
    ["kind", "status"],
)

DISPATCH_SECONDS = Histogram(
    "safespace_dispatch_seconds",
    "Time spent in a single dispatch attempt",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


class DispatchStage(Enum):
    """Stages of a single dispatch attempt."""

    VALIDATING = "validating"
    RENDERING = "rendering"
    CHECKING_HEALTH = "checking_health"
    SENDING = "sending"
    RECORDING = "recording"
    DONE = "done"


class OutcomeStore(Protocol):
    """Append-only store for dispatch outcomes."""

    async def append(self, outcome: NotificationOutcome) -> None:
        """Persist one outcome."""
        ...


def is_valid_email(address: str) -> bool:
    """Return True if the address is syntactically an email address."""
    return bool(EMAIL_PATTERN.match(address))


class NotificationDispatcher:
    """Dispatcher that turns an AlertEvent into a recorded notification.

    Failed sends are not retried here. Calling ``dispatch`` again for the same
    alert is allowed and appends a new outcome; duplicate notifications are
    preferred over missed ones.
    """

    def __init__(
        self,
        gateway: DeliveryGateway,
        outcomes: OutcomeStore,
        *,
        renderer: TemplateRenderer | None = None,
        health_monitor: GatewayHealthMonitor | None = None,
        probe_before_send: bool = False,
        dry_run: bool = False,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            gateway: Delivery gateway used for sending.
            outcomes: Store that receives one outcome per attempt.
            renderer: Template renderer. Defaults to TemplateRenderer().
            health_monitor: Monitor consulted when probe_before_send is set.
            probe_before_send: Skip sending while the cached health says the
                gateway is unavailable.
            dry_run: Render and record but do not call the gateway.
        """
        self.gateway = gateway
        self.outcomes = outcomes
        self.renderer = renderer or TemplateRenderer()
        self.health_monitor = health_monitor
        self.probe_before_send = probe_before_send
        self.dry_run = dry_run

    async def dispatch(self, event: AlertEvent) -> NotificationOutcome:
        """Run one dispatch attempt for an alert event.

        Args:
            event: The alert to notify about.

        Returns:
            The recorded NotificationOutcome.

        Raises:
            TemplateRenderError: If the event's fields are malformed.
        """
        started = time.perf_counter()

        self._enter(event, DispatchStage.VALIDATING)
        problem = self._validate(event)
        if problem is not None:
            logger.warning("Skipping notification for alert %s: %s", event.id, problem)
            outcome = self._outcome(
                event, None, NotificationStatus.SKIPPED_MISSING_CONTACT, error=problem
            )
            return await self._record(event, outcome, started)

        self._enter(event, DispatchStage.RENDERING)
        rendered = self.renderer.render(
            event.kind,
            TemplateFields(
                user_name=event.subject_user.display_name,
                content=event.content,
                location=event.location,
                threat_level=event.threat_level,
            ),
        )

        self._enter(event, DispatchStage.CHECKING_HEALTH)
        unavailable = await self._check_health()
        if unavailable is not None:
            logger.warning(
                "Delivery unavailable, skipping notification for alert %s: %s",
                event.id,
                unavailable,
            )
            outcome = self._outcome(
                event,
                rendered,
                NotificationStatus.SKIPPED_SERVICE_UNAVAILABLE,
                error=unavailable,
            )
            return await self._record(event, outcome, started)

        self._enter(event, DispatchStage.SENDING)
        outcome = await self._send(event, rendered)
        return await self._record(event, outcome, started)

    def _validate(self, event: AlertEvent) -> str | None:
        recipient = (event.recipient_email or "").strip()
        if not recipient:
            return DETAIL_MISSING_CONTACT
        if not is_valid_email(recipient):
            return DETAIL_INVALID_CONTACT
        if not (event.subject_user.display_name or "").strip():
            return DETAIL_MISSING_NAME
        return None

    async def _check_health(self) -> str | None:
        """Return a reason to skip sending, or None to proceed."""
        if not self.gateway.configured:
            return DETAIL_NOT_CONFIGURED
        if self.probe_before_send and self.health_monitor is not None:
            health = await self.health_monitor.current_health()
            if not health.available:
                return health.detail or health.reason or "gateway unavailable"
        return None

    async def _send(
        self, event: AlertEvent, rendered: RenderedNotification
    ) -> NotificationOutcome:
        recipient = event.recipient_email.strip()
        cc_address = event.subject_user.contact_email
        cc = [cc_address] if cc_address else None

        if self.dry_run:
            logger.info(
                "[dry-run] Would email %s for alert %s: %s",
                recipient,
                event.id,
                rendered.subject,
            )
            return self._outcome(event, rendered, NotificationStatus.SENT)

        result = await self.gateway.send([recipient], cc, rendered.subject, rendered.html_body)
        if result.ok:
            return self._outcome(
                event, rendered, NotificationStatus.SENT, provider_message_id=result.id
            )

        logger.error("Notification for alert %s failed: %s", event.id, result.error)
        return self._outcome(
            event,
            rendered,
            NotificationStatus.FAILED,
            error=result.error or "unknown gateway error",
        )

    async def _record(
        self, event: AlertEvent, outcome: NotificationOutcome, started: float
    ) -> NotificationOutcome:
        self._enter(event, DispatchStage.RECORDING)
        try:
            await self.outcomes.append(outcome)
        except Exception:
            logger.exception("Failed to record notification outcome for alert %s", event.id)
            raise

        DISPATCH_TOTAL.labels(kind=event.kind, status=outcome.status.value).inc()
        DISPATCH_SECONDS.observe(time.perf_counter() - started)
        self._enter(event, DispatchStage.DONE)
        logger.info("Dispatch for alert %s finished: %s", event.id, outcome.status.value)
        return outcome

    def _enter(self, event: AlertEvent, stage: DispatchStage) -> None:
        logger.debug("Alert %s dispatch stage: %s", event.id, stage.value)

    @staticmethod
    def _outcome(
        event: AlertEvent,
        rendered: RenderedNotification | None,
        status: NotificationStatus,
        *,
        error: str | None = None,
        provider_message_id: str | None = None,
    ) -> NotificationOutcome:
        return NotificationOutcome(
            alert_id=event.id,
            recipient_email=event.recipient_email or "",
            subject_line=rendered.subject if rendered else "",
            rendered_body=rendered.html_body if rendered else "",
            status=status,
            error_detail=error,
            provider_message_id=provider_message_id,
        )
