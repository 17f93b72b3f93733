"""Tests for the audio level detector."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from safespace_alerts.detector.audio import (
    MANUAL_ALERT_CONTENT,
    AudioAlertDetector,
    classify_sound,
    normalize_level,
)
from safespace_alerts.detector.models import SoundType
from safespace_alerts.notifier.models import AlertKind, Location, SubjectUser

USER = SubjectUser(id="user-1", display_name="Jane Doe")

LOUD_FRAME = [255] * 50
QUIET_FRAME = [10] * 50
HIGH_PITCH_FRAME = [0] * 30 + [255] * 20
BASS_FRAME = [255] * 10 + [0] * 40


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def raiser() -> MagicMock:
    mock = MagicMock()
    mock.raise_alert = AsyncMock(return_value=MagicMock(name="AlertResult"))
    return mock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestNormalizeLevel:
    def test_empty_frame(self) -> None:
        assert normalize_level([]) == 0

    def test_full_scale(self) -> None:
        assert normalize_level(LOUD_FRAME) == 100

    def test_silence(self) -> None:
        assert normalize_level([0] * 50) == 0

    def test_midpoint(self) -> None:
        assert normalize_level([51] * 10) == 20


class TestClassifySound:
    def test_below_loud_level(self) -> None:
        assert classify_sound(LOUD_FRAME, 85) is None

    def test_high_pitch_is_scream(self) -> None:
        detection = classify_sound(HIGH_PITCH_FRAME, 88)
        assert detection is not None
        assert detection.sound_type is SoundType.SCREAM
        assert detection.should_alert

    def test_very_loud_bass_is_impact(self) -> None:
        detection = classify_sound(BASS_FRAME, 95)
        assert detection is not None
        assert detection.sound_type is SoundType.IMPACT
        assert detection.should_alert

    def test_moderate_bass_is_loud_noise(self) -> None:
        detection = classify_sound(BASS_FRAME, 88)
        assert detection is not None
        assert detection.sound_type is SoundType.LOUD_NOISE
        assert detection.description == "Loud noise"
        assert not detection.should_alert

    def test_very_loud_noise_alerts(self) -> None:
        detection = classify_sound(LOUD_FRAME, 100)
        assert detection is not None
        assert detection.sound_type is SoundType.LOUD_NOISE
        assert detection.description == "Very loud noise detected"
        assert detection.should_alert


class TestAudioAlertDetector:
    """Tests for alert raising and the per-user cooldown."""

    async def test_quiet_frame_ignored(self, raiser: MagicMock) -> None:
        detector = AudioAlertDetector(raiser)

        detection, result = await detector.process_frame(USER, "c@example.com", QUIET_FRAME)

        assert detection is None
        assert result is None
        raiser.raise_alert.assert_not_called()

    async def test_loud_frame_raises_alert(self, raiser: MagicMock) -> None:
        detector = AudioAlertDetector(raiser)
        location = Location(latitude=1.0, longitude=2.0)

        detection, result = await detector.process_frame(
            USER, "c@example.com", LOUD_FRAME, location
        )

        assert detection is not None
        assert result is raiser.raise_alert.return_value
        raiser.raise_alert.assert_awaited_once_with(
            USER,
            "c@example.com",
            AlertKind.AUDIO_DETECTION.value,
            content="Very loud noise detected",
            location=location,
        )

    async def test_threshold_above_level_suppresses(self, raiser: MagicMock) -> None:
        detector = AudioAlertDetector(raiser, threshold=100)

        detection, result = await detector.process_frame(USER, "c@example.com", LOUD_FRAME)

        assert detection is None
        assert result is None

    async def test_cooldown(self, raiser: MagicMock, clock: FakeClock) -> None:
        detector = AudioAlertDetector(raiser, cooldown_seconds=10, clock=clock)

        await detector.process_frame(USER, "c@example.com", LOUD_FRAME)
        clock.now += 5
        detection, result = await detector.process_frame(USER, "c@example.com", LOUD_FRAME)

        assert detection is not None
        assert result is None
        assert detector.in_cooldown(USER.id)
        assert raiser.raise_alert.await_count == 1

        clock.now += 6
        await detector.process_frame(USER, "c@example.com", LOUD_FRAME)

        assert not detector.in_cooldown("someone-else")
        assert raiser.raise_alert.await_count == 2

    async def test_cooldown_is_per_user(self, raiser: MagicMock, clock: FakeClock) -> None:
        detector = AudioAlertDetector(raiser, clock=clock)
        other = SubjectUser(id="user-2", display_name="Sam")

        await detector.process_frame(USER, "c@example.com", LOUD_FRAME)
        await detector.process_frame(other, "c@example.com", LOUD_FRAME)

        assert raiser.raise_alert.await_count == 2

    async def test_manual_trigger_ignores_cooldown(
        self, raiser: MagicMock, clock: FakeClock
    ) -> None:
        detector = AudioAlertDetector(raiser, clock=clock)
        await detector.process_frame(USER, "c@example.com", LOUD_FRAME)

        await detector.trigger_manual(USER, "c@example.com")

        assert raiser.raise_alert.await_count == 2
        raiser.raise_alert.assert_awaited_with(
            USER,
            "c@example.com",
            AlertKind.MANUAL_AUDIO_ALERT.value,
            content=MANUAL_ALERT_CONTENT,
            location=None,
        )
