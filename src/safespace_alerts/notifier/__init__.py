"""Notification layer - Alert templates, delivery and outcome recording."""

from safespace_alerts.notifier.dispatcher import (
    DispatchStage,
    NotificationDispatcher,
    OutcomeStore,
)
from safespace_alerts.notifier.gateway import (
    DeliveryGateway,
    GatewayError,
    ResendGateway,
    close_gateway,
    get_gateway,
)
from safespace_alerts.notifier.health import GatewayHealthMonitor, service_status
from safespace_alerts.notifier.models import (
    AlertEvent,
    AlertKind,
    GatewayHealth,
    Location,
    NotificationOutcome,
    NotificationStatus,
    RenderedNotification,
    SendResult,
    SubjectUser,
)
from safespace_alerts.notifier.templates import (
    TemplateFields,
    TemplateRenderError,
    TemplateRenderer,
    render,
)

__all__ = [
    "AlertEvent",
    "AlertKind",
    "DeliveryGateway",
    "DispatchStage",
    "GatewayError",
    "GatewayHealth",
    "GatewayHealthMonitor",
    "Location",
    "NotificationDispatcher",
    "NotificationOutcome",
    "NotificationStatus",
    "OutcomeStore",
    "RenderedNotification",
    "ResendGateway",
    "SendResult",
    "SubjectUser",
    "TemplateFields",
    "TemplateRenderError",
    "TemplateRenderer",
    "close_gateway",
    "get_gateway",
    "render",
    "service_status",
]
