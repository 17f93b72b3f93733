"""Persistence layer - Alert records and the notification outcome log."""

from safespace_alerts.storage.database import Database
from safespace_alerts.storage.models import AlertModel, Base, NotificationOutcomeModel
from safespace_alerts.storage.repos import (
    AlertDTO,
    AlertRepository,
    NotificationLogRepository,
    OutcomeLog,
)

__all__ = [
    "AlertDTO",
    "AlertModel",
    "AlertRepository",
    "Base",
    "Database",
    "NotificationLogRepository",
    "NotificationOutcomeModel",
    "OutcomeLog",
]
