"""Audio level detector.

Frames are frequency magnitude arrays (0-255 per bin) as produced by a
browser AnalyserNode. A frame above the user's threshold is classified by
comparing low, mid and high band energy; strong enough sounds raise an
``audio_detection`` alert, at most once per user per cooldown window.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from safespace_alerts.detector.models import SoundDetection, SoundType
from safespace_alerts.notifier.models import AlertKind

if TYPE_CHECKING:
    from safespace_alerts.notifier.models import Location, SubjectUser
    from safespace_alerts.service import AlertRaiser, AlertResult

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 70
DEFAULT_COOLDOWN_SECONDS = 10.0

LOUD_LEVEL = 85
VERY_LOUD_LEVEL = 90

BASS_BINS = slice(0, 10)
MID_BINS = slice(10, 30)
HIGH_BINS = slice(30, 50)

MANUAL_ALERT_CONTENT = "Manually triggered audio alert"


def normalize_level(frame: Sequence[int]) -> int:
    """Average bin magnitude scaled to 0-100."""
    if not frame:
        return 0
    average = sum(frame) / len(frame)
    return min(100, round(average / 255 * 100))


def classify_sound(frame: Sequence[int], level: int) -> SoundDetection | None:
    """Classify a loud frame. Returns None below the loud level."""
    if level <= LOUD_LEVEL:
        return None

    bass = sum(frame[BASS_BINS])
    mid = sum(frame[MID_BINS])
    high = sum(frame[HIGH_BINS])

    if high > mid and high > bass:
        return SoundDetection(
            sound_type=SoundType.SCREAM,
            level=level,
            description="High-pitched sound detected",
            should_alert=True,
        )
    if bass > mid and level > VERY_LOUD_LEVEL:
        return SoundDetection(
            sound_type=SoundType.IMPACT,
            level=level,
            description="Loud impact sound detected",
            should_alert=True,
        )
    return SoundDetection(
        sound_type=SoundType.LOUD_NOISE,
        level=level,
        description="Very loud noise detected" if level > VERY_LOUD_LEVEL else "Loud noise",
        should_alert=level > VERY_LOUD_LEVEL,
    )


class AudioAlertDetector:
    """Turns audio frames into alerts with a per-user cooldown."""

    def __init__(
        self,
        raiser: AlertRaiser,
        *,
        threshold: int = DEFAULT_THRESHOLD,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the detector.

        Args:
            raiser: Service that creates and notifies alerts.
            threshold: Level (0-100) a frame must exceed to be classified.
            cooldown_seconds: Minimum gap between automatic alerts per user.
            clock: Monotonic time source.
        """
        self.raiser = raiser
        self.threshold = threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._last_alert: dict[str, float] = {}

    def in_cooldown(self, user_id: str) -> bool:
        """Return True if the user had an automatic alert too recently."""
        last = self._last_alert.get(user_id)
        if last is None:
            return False
        return self._clock() - last < self.cooldown_seconds

    async def process_frame(
        self,
        user: SubjectUser,
        recipient_email: str | None,
        frame: Sequence[int],
        location: Location | None = None,
    ) -> tuple[SoundDetection | None, AlertResult | None]:
        """Analyze one frame and raise an alert if warranted.

        Returns:
            The detection (if the frame was loud) and the alert result
            (if an alert was raised).
        """
        level = normalize_level(frame)
        if level <= self.threshold:
            return None, None

        detection = classify_sound(frame, level)
        if detection is None or not detection.should_alert:
            return detection, None

        if self.in_cooldown(user.id):
            logger.debug("Audio alert for user %s suppressed by cooldown", user.id)
            return detection, None

        self._last_alert[user.id] = self._clock()
        result = await self.raiser.raise_alert(
            user,
            recipient_email,
            AlertKind.AUDIO_DETECTION.value,
            content=detection.description,
            location=location,
        )
        return detection, result

    async def trigger_manual(
        self,
        user: SubjectUser,
        recipient_email: str | None,
        location: Location | None = None,
    ) -> AlertResult:
        """Raise a manual audio alert. Not subject to the cooldown."""
        return await self.raiser.raise_alert(
            user,
            recipient_email,
            AlertKind.MANUAL_AUDIO_ALERT.value,
            content=MANUAL_ALERT_CONTENT,
            location=location,
        )
