"""Text threat scoring.

Scorers are pluggable: anything with ``score(text) -> ThreatScore`` can
replace the keyword scorer without touching the alert pipeline.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from safespace_alerts.detector.models import ThreatLevel, ThreatScore
from safespace_alerts.notifier.models import AlertKind

if TYPE_CHECKING:
    from safespace_alerts.notifier.models import SubjectUser
    from safespace_alerts.service import AlertRaiser, AlertResult

logger = logging.getLogger(__name__)

THREAT_KEYWORDS = ("knife", "gun", "weapon", "attack", "follow", "stalking", "threatened")
DISTRESS_KEYWORDS = ("help", "emergency", "scared", "afraid", "please", "urgent")

# Keyword counts at which each level is reached
HIGH_THREAT_MIN_MATCHES = 2
MEDIUM_DISTRESS_MIN_MATCHES = 2


class ThreatScorer(Protocol):
    """Protocol for text threat scorers."""

    def score(self, text: str) -> ThreatScore:
        """Score a piece of text."""
        ...


def _matches(text: str, keywords: tuple[str, ...]) -> list[str]:
    return [word.capitalize() for word in keywords if word in text]


class KeywordThreatScorer:
    """Substring keyword scorer.

    Two or more threat keywords score high. One threat keyword, or two or
    more distress keywords, score medium. Anything else is low.
    """

    def __init__(
        self,
        *,
        threat_keywords: tuple[str, ...] = THREAT_KEYWORDS,
        distress_keywords: tuple[str, ...] = DISTRESS_KEYWORDS,
    ) -> None:
        self.threat_keywords = threat_keywords
        self.distress_keywords = distress_keywords

    def score(self, text: str) -> ThreatScore:
        lowered = text.lower()
        indicators = _matches(lowered, self.threat_keywords)
        distress = _matches(lowered, self.distress_keywords)

        if len(indicators) >= HIGH_THREAT_MIN_MATCHES:
            level = ThreatLevel.HIGH
        elif indicators or len(distress) >= MEDIUM_DISTRESS_MIN_MATCHES:
            level = ThreatLevel.MEDIUM
        else:
            level = ThreatLevel.LOW

        return ThreatScore(threat_level=level, indicators=indicators, distress_signals=distress)


class TextThreatMonitor:
    """Scores user-submitted text and raises an alert on high threats."""

    def __init__(self, raiser: AlertRaiser, scorer: ThreatScorer | None = None) -> None:
        """Initialize the monitor.

        Args:
            raiser: Service that creates and notifies alerts.
            scorer: Threat scorer. Defaults to KeywordThreatScorer().
        """
        self.raiser = raiser
        self.scorer = scorer or KeywordThreatScorer()

    async def analyze(
        self,
        user: SubjectUser,
        recipient_email: str | None,
        text: str,
    ) -> tuple[ThreatScore, AlertResult | None]:
        """Score text and raise a text threat alert if it scores high.

        Returns:
            The score, and the alert result when an alert was raised.
        """
        score = self.scorer.score(text)
        logger.debug(
            "Text scored %s for user %s (indicators=%s)",
            score.threat_level.value,
            user.id,
            score.indicators,
        )
        if not score.is_high:
            return score, None

        result = await self.raiser.raise_alert(
            user,
            recipient_email,
            AlertKind.TEXT_THREAT.value,
            content=text,
            threat_level=score.threat_level.value,
        )
        return score, result
