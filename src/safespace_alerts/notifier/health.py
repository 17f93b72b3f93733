"""Delivery gateway health monitor.

The health result is advisory. It decides whether a notification is worth
attempting, but never whether an alert record may be created or resolved.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge

from safespace_alerts.notifier.gateway import GatewayError
from safespace_alerts.notifier.models import GatewayHealth

if TYPE_CHECKING:
    from safespace_alerts.notifier.gateway import DeliveryGateway

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SECONDS = 60.0

REASON_NOT_CONFIGURED = "not_configured"
REASON_ERROR = "error"

STATUS_CONNECTED = "connected"

GATEWAY_AVAILABLE = Gauge(
    "safespace_gateway_available",
    "Delivery gateway availability from the last check (1=available, 0=unavailable)",
)

HEALTH_CHECKS_TOTAL = Counter(
    "safespace_gateway_health_checks_total",
    "Number of delivery gateway health checks",
    ["result"],
)


def service_status(health: GatewayHealth) -> str:
    """Map health to the status string reported by the health endpoint."""
    if health.available:
        return STATUS_CONNECTED
    return health.reason or REASON_ERROR


class GatewayHealthMonitor:
    """Checks whether the delivery gateway is configured and reachable.

    Example:
        ```python
        monitor = GatewayHealthMonitor(gateway, cache_seconds=60)
        health = await monitor.check_health()   # always probes
        health = await monitor.current_health() # cached while fresh
        ```
    """

    def __init__(
        self,
        gateway: DeliveryGateway,
        *,
        cache_seconds: float = DEFAULT_CACHE_SECONDS,
    ) -> None:
        """Initialize the monitor.

        Args:
            gateway: Gateway to check.
            cache_seconds: How long a check result stays fresh.
        """
        self._gateway = gateway
        self._cache_seconds = cache_seconds
        self._last: GatewayHealth | None = None
        self._last_checked: float | None = None

    @property
    def last_health(self) -> GatewayHealth | None:
        """Return the most recent result without probing."""
        return self._last

    async def check_health(self) -> GatewayHealth:
        """Probe the gateway and cache the result."""
        if not self._gateway.configured:
            health = GatewayHealth(available=False, reason=REASON_NOT_CONFIGURED)
        else:
            try:
                await self._gateway.probe()
                health = GatewayHealth(available=True)
            except GatewayError as e:
                logger.warning("Delivery gateway check failed: %s", e)
                health = GatewayHealth(available=False, reason=REASON_ERROR, detail=str(e))

        self._remember(health)
        return health

    async def current_health(self) -> GatewayHealth:
        """Return the cached result, re-probing once it is stale."""
        if self._last is not None and self._last_checked is not None:
            age = time.monotonic() - self._last_checked
            if age < self._cache_seconds:
                return self._last
        return await self.check_health()

    def invalidate(self) -> None:
        """Forget the cached result."""
        self._last = None
        self._last_checked = None

    def _remember(self, health: GatewayHealth) -> None:
        previous = self._last
        self._last = health
        self._last_checked = time.monotonic()

        GATEWAY_AVAILABLE.set(1.0 if health.available else 0.0)
        HEALTH_CHECKS_TOTAL.labels(result=service_status(health)).inc()

        if previous is None or previous.available != health.available:
            logger.info("Delivery gateway status: %s", service_status(health))
