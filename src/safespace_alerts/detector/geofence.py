"""Safe zone exit detection."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from safespace_alerts.notifier.models import AlertKind

if TYPE_CHECKING:
    from safespace_alerts.detector.models import SafeZone
    from safespace_alerts.notifier.models import Location, SubjectUser
    from safespace_alerts.service import AlertRaiser, AlertResult

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def zones_containing(zones: list[SafeZone], location: Location) -> list[SafeZone]:
    """Return the zones whose radius covers the location."""
    return [
        zone
        for zone in zones
        if haversine_m(zone.latitude, zone.longitude, location.latitude, location.longitude)
        <= zone.radius_m
    ]


class GeofenceMonitor:
    """Raises ``safe_zone_exit`` when a user leaves all of their safe zones.

    The first position seen for a user only establishes state; an alert is
    raised on the transition from inside some zone to outside every zone.
    """

    def __init__(self, raiser: AlertRaiser) -> None:
        self.raiser = raiser
        self._zones: dict[str, list[SafeZone]] = {}
        self._last_zone: dict[str, str | None] = {}

    def set_zones(self, user_id: str, zones: list[SafeZone]) -> None:
        """Replace a user's safe zones."""
        self._zones[user_id] = list(zones)

    def current_zone(self, user_id: str) -> str | None:
        """Name of the zone containing the user's last position, if any."""
        return self._last_zone.get(user_id)

    async def update_location(
        self,
        user: SubjectUser,
        recipient_email: str | None,
        location: Location,
    ) -> AlertResult | None:
        """Record a new position and raise an alert on zone exit."""
        inside = zones_containing(self._zones.get(user.id, []), location)
        seen = user.id in self._last_zone
        previous_zone = self._last_zone.get(user.id)
        self._last_zone[user.id] = inside[0].name if inside else None

        if not seen or inside or previous_zone is None:
            return None

        logger.info("User %s left safe zone %s", user.id, previous_zone)
        return await self.raiser.raise_alert(
            user,
            recipient_email,
            AlertKind.SAFE_ZONE_EXIT.value,
            content=f"Left safe zone: {previous_zone}",
            location=location,
        )
