"""Notification templates for alert emails.

This module maps an alert kind and its fields to a subject line plus HTML
and plain text bodies. Rendering is pure: no I/O, and the same inputs always
produce byte-identical output.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from numbers import Real

from safespace_alerts.notifier.models import AlertKind, Location, RenderedNotification

APP_NAME = "SafeSpace"
MAPS_URL = "https://www.google.com/maps?q={latitude},{longitude}"

DEFAULT_EMERGENCY_CONTENT = "Emergency alert triggered"
DEFAULT_THREAT_LEVEL = "high"

SUBJECT_EMERGENCY = "URGENT: SafeSpace Emergency Alert"
SUBJECT_TEXT_THREAT = "SafeSpace Text Threat Detection"
SUBJECT_AUDIO = "SafeSpace Audio Alert Detection"
SUBJECT_FALLBACK_PREFIX = "SafeSpace Alert:"

AUDIO_KINDS = frozenset({AlertKind.AUDIO_DETECTION.value, AlertKind.MANUAL_AUDIO_ALERT.value})

_SEPARATORS = re.compile(r"[_\-\s]+")
_WORD_START = re.compile(r"\b\w")


class TemplateRenderError(ValueError):
    """Raised when template fields are malformed.

    This indicates a bug in the code producing the alert, not an operational
    failure, so it is never converted into a notification outcome.
    """


@dataclass(frozen=True)
class TemplateFields:
    """Values substituted into a notification template."""

    user_name: str
    content: str | None = None
    location: Location | None = None
    threat_level: str | None = None


def humanize_kind(kind: str) -> str:
    """Turn ``safe_zone_exit`` into ``Safe Zone Exit``."""
    spaced = _SEPARATORS.sub(" ", kind).strip()
    return _WORD_START.sub(lambda m: m.group(0).upper(), spaced)


def format_coordinates(location: Location) -> str:
    """Format a location as ``(lat, lng)`` with 6 decimal places each."""
    return f"({location.latitude:.6f}, {location.longitude:.6f})"


def _check_fields(kind: object, fields: object) -> None:
    if not isinstance(kind, str) or not kind.strip():
        raise TemplateRenderError(f"alert kind must be a non-empty string, got {kind!r}")
    if not isinstance(fields, TemplateFields):
        raise TemplateRenderError(f"expected TemplateFields, got {type(fields).__name__}")
    if not isinstance(fields.user_name, str) or not fields.user_name.strip():
        raise TemplateRenderError("template fields are missing the user name")
    if fields.content is not None and not isinstance(fields.content, str):
        raise TemplateRenderError("content must be a string")
    location = fields.location
    if location is not None:
        coords = (location.latitude, location.longitude)
        if not all(isinstance(c, Real) and not isinstance(c, bool) for c in coords):
            raise TemplateRenderError(f"location coordinates must be numeric, got {coords!r}")


class TemplateRenderer:
    """Selects and renders the email template for an alert kind.

    Selection is ordered by specificity and the first match wins:
    emergency, text threat, audio alerts, then a fallback that reuses the
    emergency layout under a humanized subject.
    """

    def render(self, kind: str, fields: TemplateFields) -> RenderedNotification:
        """Render a notification.

        Args:
            kind: Alert kind string.
            fields: Values to substitute.

        Returns:
            RenderedNotification with subject and both bodies.

        Raises:
            TemplateRenderError: If the kind or fields are malformed.
        """
        _check_fields(kind, fields)

        if kind == AlertKind.EMERGENCY.value:
            return self._render_emergency(SUBJECT_EMERGENCY, "Emergency Alert", fields)
        if kind == AlertKind.TEXT_THREAT.value:
            return self._render_text_threat(fields)
        if kind in AUDIO_KINDS:
            return self._render_audio(fields)

        title = humanize_kind(kind)
        return self._render_emergency(f"{SUBJECT_FALLBACK_PREFIX} {title}", title, fields)

    def _render_emergency(
        self, subject: str, heading: str, fields: TemplateFields
    ) -> RenderedNotification:
        content = fields.content or DEFAULT_EMERGENCY_CONTENT
        name = fields.user_name

        paragraphs = [
            f"<p><strong>{html.escape(name)}</strong> has triggered an alert "
            f"and may need your help.</p>",
            f"<p><strong>Message:</strong> {html.escape(content)}</p>",
        ]
        lines = [
            f"{name} has triggered an alert and may need your help.",
            f"Message: {content}",
        ]
        self._append_location(fields.location, paragraphs, lines)
        paragraphs.append(
            "<p>Please try to contact them immediately. If you believe they are "
            "in danger, call your local emergency services.</p>"
        )
        lines.append(
            "Please try to contact them immediately. If you believe they are "
            "in danger, call your local emergency services."
        )
        return self._wrap(subject, heading, paragraphs, lines)

    def _render_text_threat(self, fields: TemplateFields) -> RenderedNotification:
        threat_level = fields.threat_level or DEFAULT_THREAT_LEVEL
        content = fields.content or ""
        name = fields.user_name

        paragraphs = [
            f"<p>A message analyzed for <strong>{html.escape(name)}</strong> "
            f"was flagged as a potential threat.</p>",
            f"<p><strong>Threat level:</strong> {html.escape(threat_level)}</p>",
            f"<blockquote>{html.escape(content)}</blockquote>",
            "<p>Please check in with them as soon as possible.</p>",
        ]
        lines = [
            f"A message analyzed for {name} was flagged as a potential threat.",
            f"Threat level: {threat_level}",
            f"Message: {content}",
            "Please check in with them as soon as possible.",
        ]
        return self._wrap(SUBJECT_TEXT_THREAT, "Text Threat Detected", paragraphs, lines)

    def _render_audio(self, fields: TemplateFields) -> RenderedNotification:
        content = fields.content or ""
        name = fields.user_name

        paragraphs = [
            f"<p>Audio monitoring for <strong>{html.escape(name)}</strong> "
            f"raised an alert.</p>",
            f"<p><strong>Details:</strong> {html.escape(content)}</p>",
        ]
        lines = [
            f"Audio monitoring for {name} raised an alert.",
            f"Details: {content}",
        ]
        self._append_location(fields.location, paragraphs, lines)
        paragraphs.append("<p>Please try to contact them immediately.</p>")
        lines.append("Please try to contact them immediately.")
        return self._wrap(SUBJECT_AUDIO, "Audio Alert Detected", paragraphs, lines)

    def _append_location(
        self, location: Location | None, paragraphs: list[str], lines: list[str]
    ) -> None:
        """Add the location block; absent locations render nothing."""
        if location is None:
            return
        coords = format_coordinates(location)
        url = MAPS_URL.format(
            latitude=f"{location.latitude:.6f}", longitude=f"{location.longitude:.6f}"
        )
        paragraphs.append(
            f'<p><strong>Location:</strong> {coords}<br><a href="{url}">View on map</a></p>'
        )
        lines.append(f"Location: {coords}")
        lines.append(f"Map: {url}")

    def _wrap(
        self, subject: str, heading: str, paragraphs: list[str], lines: list[str]
    ) -> RenderedNotification:
        html_body = "\n".join(
            [
                '<div style="font-family: Arial, sans-serif; max-width: 600px;">',
                f"<h2>{html.escape(heading)}</h2>",
                *paragraphs,
                f"<p><small>Sent by {APP_NAME} on behalf of your contact.</small></p>",
                "</div>",
            ]
        )
        text_body = "\n".join([heading.upper(), "=" * 30, "", *lines])
        return RenderedNotification(subject=subject, html_body=html_body, text_body=text_body)


def render(kind: str, fields: TemplateFields) -> RenderedNotification:
    """Render with the default renderer."""
    return TemplateRenderer().render(kind, fields)
