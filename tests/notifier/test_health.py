"""Tests for the gateway health monitor."""

from __future__ import annotations

from prometheus_client import REGISTRY

from safespace_alerts.notifier.gateway import GatewayError
from safespace_alerts.notifier.health import (
    REASON_ERROR,
    REASON_NOT_CONFIGURED,
    GatewayHealthMonitor,
    service_status,
)
from safespace_alerts.notifier.models import GatewayHealth
from tests.conftest import FakeGateway


class TestServiceStatus:
    def test_connected(self) -> None:
        assert service_status(GatewayHealth(available=True)) == "connected"

    def test_reason(self) -> None:
        health = GatewayHealth(available=False, reason=REASON_NOT_CONFIGURED)
        assert service_status(health) == "not_configured"

    def test_unknown_reason(self) -> None:
        assert service_status(GatewayHealth(available=False)) == "error"


class TestCheckHealth:
    """Tests for GatewayHealthMonitor.check_health."""

    async def test_not_configured_does_not_probe(self) -> None:
        gateway = FakeGateway(configured=False)
        monitor = GatewayHealthMonitor(gateway)

        health = await monitor.check_health()

        assert health.available is False
        assert health.reason == REASON_NOT_CONFIGURED
        assert gateway.probes == 0

    async def test_available(self, gateway: FakeGateway) -> None:
        monitor = GatewayHealthMonitor(gateway)

        health = await monitor.check_health()

        assert health.available is True
        assert gateway.probes == 1
        assert monitor.last_health is health
        assert REGISTRY.get_sample_value("safespace_gateway_available") == 1.0

    async def test_probe_error(self) -> None:
        gateway = FakeGateway(probe_error=GatewayError("API key is invalid"))
        monitor = GatewayHealthMonitor(gateway)

        health = await monitor.check_health()

        assert health.available is False
        assert health.reason == REASON_ERROR
        assert health.detail == "API key is invalid"
        assert REGISTRY.get_sample_value("safespace_gateway_available") == 0.0

    async def test_always_probes(self, gateway: FakeGateway) -> None:
        monitor = GatewayHealthMonitor(gateway, cache_seconds=60)

        await monitor.check_health()
        await monitor.check_health()

        assert gateway.probes == 2


class TestCurrentHealth:
    """Tests for the cached health lookup."""

    async def test_reuses_fresh_result(self, gateway: FakeGateway) -> None:
        monitor = GatewayHealthMonitor(gateway, cache_seconds=60)

        first = await monitor.current_health()
        second = await monitor.current_health()

        assert first is second
        assert gateway.probes == 1

    async def test_zero_cache_always_probes(self, gateway: FakeGateway) -> None:
        monitor = GatewayHealthMonitor(gateway, cache_seconds=0)

        await monitor.current_health()
        await monitor.current_health()

        assert gateway.probes == 2

    async def test_invalidate(self, gateway: FakeGateway) -> None:
        monitor = GatewayHealthMonitor(gateway, cache_seconds=60)
        await monitor.current_health()

        monitor.invalidate()
        await monitor.current_health()

        assert monitor.last_health is not None
        assert gateway.probes == 2

    async def test_last_health_initially_empty(self, gateway: FakeGateway) -> None:
        assert GatewayHealthMonitor(gateway).last_health is None
