"""Detection layer - Alert-producing surfaces."""

from safespace_alerts.detector.audio import (
    AudioAlertDetector,
    classify_sound,
    normalize_level,
)
from safespace_alerts.detector.geofence import GeofenceMonitor, haversine_m
from safespace_alerts.detector.models import (
    SafeZone,
    SoundDetection,
    SoundType,
    ThreatLevel,
    ThreatScore,
)
from safespace_alerts.detector.scorer import (
    KeywordThreatScorer,
    TextThreatMonitor,
    ThreatScorer,
)

__all__ = [
    "AudioAlertDetector",
    "GeofenceMonitor",
    "KeywordThreatScorer",
    "SafeZone",
    "SoundDetection",
    "SoundType",
    "TextThreatMonitor",
    "ThreatLevel",
    "ThreatScore",
    "ThreatScorer",
    "classify_sound",
    "haversine_m",
    "normalize_level",
]
