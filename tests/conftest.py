"""Shared fixtures for the test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from safespace_alerts.notifier.gateway import GatewayError
from safespace_alerts.notifier.models import (
    AlertEvent,
    NotificationOutcome,
    SendResult,
    SubjectUser,
)
from safespace_alerts.storage.database import Database

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

MEMORY_DB_URL = "sqlite+aiosqlite:///:memory:"


class FakeGateway:
    """In-memory delivery gateway that records what it was asked to send."""

    def __init__(
        self,
        *,
        configured: bool = True,
        result: SendResult | None = None,
        probe_error: GatewayError | None = None,
    ) -> None:
        self.is_configured = configured
        self.result = result or SendResult(id="msg_123")
        self.probe_error = probe_error
        self.sent: list[dict[str, Any]] = []
        self.probes = 0

    @property
    def configured(self) -> bool:
        return self.is_configured

    async def send(
        self,
        to: list[str],
        cc: list[str] | None,
        subject: str,
        html_body: str,
    ) -> SendResult:
        self.sent.append({"to": to, "cc": cc, "subject": subject, "html": html_body})
        return self.result

    async def probe(self) -> None:
        self.probes += 1
        if self.probe_error is not None:
            raise self.probe_error


class ListOutcomeStore:
    """Outcome store backed by a list."""

    def __init__(self) -> None:
        self.outcomes: list[NotificationOutcome] = []

    async def append(self, outcome: NotificationOutcome) -> None:
        self.outcomes.append(outcome)


def make_event(**overrides: Any) -> AlertEvent:
    """Build an emergency AlertEvent with sensible defaults."""
    values: dict[str, Any] = {
        "id": "alert-1",
        "subject_user": SubjectUser(id="user-1", display_name="Jane Doe"),
        "recipient_email": "contact@example.com",
        "kind": "emergency",
    }
    values.update(overrides)
    return AlertEvent(**values)


@pytest.fixture
def gateway() -> FakeGateway:
    """A configured gateway that accepts every message."""
    return FakeGateway()


@pytest.fixture
def outcome_store() -> ListOutcomeStore:
    """An empty in-memory outcome store."""
    return ListOutcomeStore()


@pytest.fixture
async def database() -> AsyncIterator[Database]:
    """A fresh in-memory SQLite database with tables created."""
    db = Database(MEMORY_DB_URL)
    await db.create_tables()
    yield db
    await db.close()
