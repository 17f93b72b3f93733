"""Data models for the detector module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

DEFAULT_ZONE_RADIUS_M = 100.0


class ThreatLevel(str, Enum):
    """Threat level assigned to analyzed text."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ThreatScore:
    """Result of scoring a piece of text.

    Attributes:
        threat_level: Overall threat level.
        indicators: Threat indicators found in the text.
        distress_signals: Distress words found in the text.
    """

    threat_level: ThreatLevel
    indicators: list[str] = field(default_factory=list)
    distress_signals: list[str] = field(default_factory=list)

    @property
    def is_high(self) -> bool:
        """Return True if the text should raise an alert."""
        return self.threat_level is ThreatLevel.HIGH


class SoundType(str, Enum):
    """Coarse classification of a loud sound."""

    SCREAM = "scream"
    IMPACT = "impact"
    LOUD_NOISE = "loud_noise"


@dataclass(frozen=True)
class SoundDetection:
    """A loud sound picked up by audio monitoring.

    Attributes:
        sound_type: Classification of the sound.
        level: Normalized audio level (0-100).
        description: Human-readable label.
        should_alert: Whether this sound is strong enough to raise an alert.
        detected_at: When the frame was analyzed.
    """

    sound_type: SoundType
    level: int
    description: str
    should_alert: bool
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class SafeZone:
    """A circular geofence defined by the user.

    Attributes:
        name: Label chosen by the user.
        latitude: Center latitude.
        longitude: Center longitude.
        radius_m: Radius in meters.
    """

    name: str
    latitude: float
    longitude: float
    radius_m: float = DEFAULT_ZONE_RADIUS_M
