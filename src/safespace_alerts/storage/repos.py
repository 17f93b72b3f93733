"""Repository pattern implementations for data access.

This module provides data access for alert records and the notification
outcome log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, select, update

from safespace_alerts.notifier.models import (
    Location,
    NotificationOutcome,
    NotificationStatus,
)
from safespace_alerts.storage.models import AlertModel, NotificationOutcomeModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from safespace_alerts.storage.database import Database

logger = logging.getLogger(__name__)


@dataclass
class AlertDTO:
    """Data transfer object for alerts."""

    id: str
    user_id: str
    alert_type: str
    content: str | None
    location: Location | None
    is_resolved: bool
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: AlertModel) -> AlertDTO:
        """Create DTO from SQLAlchemy model."""
        return cls(
            id=model.id,
            user_id=model.user_id,
            alert_type=model.alert_type,
            content=model.content,
            location=Location.from_optional(model.latitude, model.longitude),
            is_resolved=model.is_resolved,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


def outcome_from_model(model: NotificationOutcomeModel) -> NotificationOutcome:
    """Rebuild a NotificationOutcome from its stored row."""
    return NotificationOutcome(
        alert_id=model.alert_id,
        recipient_email=model.recipient_email,
        subject_line=model.subject,
        rendered_body=model.rendered_body,
        status=NotificationStatus(model.status),
        error_detail=model.error_detail,
        provider_message_id=model.provider_message_id,
        sent_at=model.sent_at,
    )


class AlertRepository:
    """Repository for alert records.

    Alerts are created once; afterwards only their resolution state changes
    until they are deleted.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def create(
        self,
        user_id: str,
        alert_type: str,
        *,
        content: str | None = None,
        location: Location | None = None,
    ) -> AlertDTO:
        """Insert a new unresolved alert.

        Args:
            user_id: Owner of the alert.
            alert_type: Alert kind string.
            content: Optional description.
            location: Optional location.

        Returns:
            The created AlertDTO with its assigned id.
        """
        now = datetime.now(UTC)
        model = AlertModel(
            user_id=user_id,
            alert_type=alert_type,
            content=content,
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
            is_resolved=False,
            created_at=now,
            updated_at=now,
        )
        self.session.add(model)
        await self.session.flush()
        logger.debug("Created alert %s (%s) for user %s", model.id, alert_type, user_id)
        return AlertDTO.from_model(model)

    async def get(self, alert_id: str) -> AlertDTO | None:
        """Get an alert by id.

        Args:
            alert_id: Alert identifier.

        Returns:
            AlertDTO if found, None otherwise.
        """
        result = await self.session.execute(select(AlertModel).where(AlertModel.id == alert_id))
        model = result.scalar_one_or_none()
        return AlertDTO.from_model(model) if model else None

    async def list_for_user(
        self, user_id: str, *, resolved: bool | None = None, limit: int = 100
    ) -> list[AlertDTO]:
        """List a user's alerts, newest first.

        Args:
            user_id: Owner of the alerts.
            resolved: Optional filter on resolution state.
            limit: Maximum number of results.

        Returns:
            List of AlertDTOs.
        """
        stmt = select(AlertModel).where(AlertModel.user_id == user_id)
        if resolved is not None:
            stmt = stmt.where(AlertModel.is_resolved.is_(resolved))
        stmt = stmt.order_by(AlertModel.created_at.desc()).limit(limit)

        result = await self.session.execute(stmt)
        return [AlertDTO.from_model(m) for m in result.scalars().all()]

    async def resolve(self, alert_id: str) -> bool:
        """Mark an alert as resolved.

        Args:
            alert_id: Alert identifier.

        Returns:
            True if updated, False if not found.
        """
        result = await self.session.execute(
            update(AlertModel)
            .where(AlertModel.id == alert_id)
            .values(is_resolved=True, updated_at=datetime.now(UTC))
        )
        return result.rowcount > 0

    async def delete(self, alert_id: str) -> bool:
        """Delete an alert. Its notification outcomes are kept.

        Args:
            alert_id: Alert identifier.

        Returns:
            True if deleted, False if not found.
        """
        result = await self.session.execute(delete(AlertModel).where(AlertModel.id == alert_id))
        return result.rowcount > 0


class NotificationLogRepository:
    """Repository for the append-only notification outcome log."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def append(self, outcome: NotificationOutcome) -> int:
        """Insert one outcome row.

        Args:
            outcome: Outcome of a dispatch attempt.

        Returns:
            The new row id.
        """
        model = NotificationOutcomeModel(
            alert_id=outcome.alert_id,
            recipient_email=outcome.recipient_email,
            subject=outcome.subject_line,
            rendered_body=outcome.rendered_body,
            status=outcome.status.value,
            error_detail=outcome.error_detail,
            provider_message_id=outcome.provider_message_id,
            sent_at=outcome.sent_at,
        )
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def list_for_alert(self, alert_id: str, limit: int = 100) -> list[NotificationOutcome]:
        """Get the outcomes recorded for an alert, oldest first.

        Args:
            alert_id: Alert identifier.
            limit: Maximum number of results.

        Returns:
            List of NotificationOutcomes.
        """
        result = await self.session.execute(
            select(NotificationOutcomeModel)
            .where(NotificationOutcomeModel.alert_id == alert_id)
            .order_by(NotificationOutcomeModel.id.asc())
            .limit(limit)
        )
        return [outcome_from_model(m) for m in result.scalars().all()]


class OutcomeLog:
    """Outcome store that commits each outcome in its own transaction.

    Each append opens a fresh session, so concurrent dispatches never share
    a transaction.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    async def append(self, outcome: NotificationOutcome) -> None:
        async with self._database.session() as session:
            row_id = await NotificationLogRepository(session).append(outcome)
        logger.debug("Recorded outcome %d for alert %s", row_id, outcome.alert_id)
