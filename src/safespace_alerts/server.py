"""HTTP API for alert dispatch, alert management and health.

Endpoints:
    POST   /api/send-alert                   Dispatch a notification for an existing alert
    POST   /api/alerts                       Create an alert and notify the contact
    DELETE /api/alerts/{alert_id}            Delete an alert, keeping its outcomes
    POST   /api/alerts/{alert_id}/resolve
    GET    /api/alerts/{alert_id}/outcomes
    GET    /api/users/{user_id}/alerts       List a user's alerts (?resolved=true|false)
    PUT    /api/users/{user_id}/safe-zones   Replace a user's safe zones
    POST   /api/location                     Report a position, alert on safe zone exit
    POST   /api/analyze-text                 Score text and alert on high threats
    POST   /api/audio/frame                  Classify an audio frame, alert on loud sounds
    POST   /api/audio/manual                 Raise a manual audio alert
    GET    /api/health                       Delivery gateway status
    GET    /metrics                          Prometheus metrics
    GET    /live                             Liveness probe
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from safespace_alerts.detector.models import DEFAULT_ZONE_RADIUS_M, SafeZone
from safespace_alerts.notifier.health import service_status
from safespace_alerts.notifier.models import (
    AlertEvent,
    AlertKind,
    Location,
    NotificationOutcome,
    NotificationStatus,
    SubjectUser,
)

if TYPE_CHECKING:
    from safespace_alerts.detector.audio import AudioAlertDetector
    from safespace_alerts.detector.geofence import GeofenceMonitor
    from safespace_alerts.detector.models import SoundDetection
    from safespace_alerts.detector.scorer import TextThreatMonitor
    from safespace_alerts.notifier.dispatcher import NotificationDispatcher
    from safespace_alerts.notifier.health import GatewayHealthMonitor
    from safespace_alerts.service import AlertResult, AlertService
    from safespace_alerts.storage.repos import AlertDTO

logger = logging.getLogger(__name__)

DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 8080

REQUIRED_SEND_FIELDS = ("emergency_contact_email", "user_name")

# Optional payload fields that must be strings when present
STRING_FIELDS = (
    "alert_id",
    "user_name",
    "user_email",
    "emergency_contact_email",
    "alert_type",
    "content",
    "threat_level",
    "text",
)

# HTTP status for each dispatch outcome of POST /api/send-alert
STATUS_CODES = {
    NotificationStatus.SENT: 200,
    NotificationStatus.SKIPPED_MISSING_CONTACT: 400,
    NotificationStatus.SKIPPED_SERVICE_UNAVAILABLE: 503,
    NotificationStatus.FAILED: 500,
}

ERROR_MESSAGES = {
    NotificationStatus.SKIPPED_MISSING_CONTACT: "Invalid emergency contact",
    NotificationStatus.SKIPPED_SERVICE_UNAVAILABLE: "Email service not configured",
    NotificationStatus.FAILED: "Failed to send email",
}

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


class BadRequestError(Exception):
    """Raised by handlers for malformed client input."""

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.details = details


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Turn input errors into 400s and unexpected errors into 500s."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except BadRequestError as e:
        body: dict[str, Any] = {"error": str(e)}
        if e.details:
            body["details"] = e.details
        return web.json_response(body, status=400)
    except Exception as e:
        logger.exception("Unhandled error in %s %s", request.method, request.path)
        return web.json_response(
            {"error": "Internal server error", "details": str(e)}, status=500
        )


async def _read_json_object(request: web.Request) -> dict[str, Any]:
    try:
        data = await request.json()
    except ValueError as e:
        raise BadRequestError("Invalid request body", str(e)) from e
    if not isinstance(data, dict):
        raise BadRequestError("Invalid request body", "expected a JSON object")
    for name in STRING_FIELDS:
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            raise BadRequestError("Invalid request body", f"{name} must be a string")
    return data


def _location_from(data: dict[str, Any]) -> Location | None:
    try:
        return Location.from_optional(data.get("latitude"), data.get("longitude"))
    except (TypeError, ValueError) as e:
        raise BadRequestError("Invalid request body", f"bad coordinates: {e}") from e


def _missing_fields(data: dict[str, Any], names: tuple[str, ...]) -> web.Response | None:
    """Return a 400 response naming the absent fields, or None."""
    missing = [name for name in names if not data.get(name)]
    if not missing:
        return None
    return web.json_response(
        {"error": "Missing required fields", "details": ", ".join(missing)}, status=400
    )


def _resolved_filter(value: str | None) -> bool | None:
    if value is None:
        return None
    if value.lower() in ("true", "1"):
        return True
    if value.lower() in ("false", "0"):
        return False
    raise BadRequestError("Invalid query", "resolved must be true or false")


def _zones_from(raw: Any) -> list[SafeZone]:
    """Parse the ``zones`` list of a safe zone request."""
    if not isinstance(raw, list):
        raise BadRequestError("Invalid request body", "zones must be a list")
    zones = []
    for item in raw:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            raise BadRequestError("Invalid request body", "each zone needs a name")
        location = _location_from(item)
        if location is None:
            raise BadRequestError("Invalid request body", f"zone {item['name']} needs coordinates")
        try:
            radius_m = float(item.get("radius_m", DEFAULT_ZONE_RADIUS_M))
        except (TypeError, ValueError) as e:
            raise BadRequestError("Invalid request body", f"bad radius: {e}") from e
        if radius_m <= 0:
            raise BadRequestError("Invalid request body", "radius_m must be positive")
        zones.append(SafeZone(item["name"], location.latitude, location.longitude, radius_m))
    return zones


def _subject_user(data: dict[str, Any]) -> SubjectUser:
    return SubjectUser(
        id=str(data["user_id"]),
        display_name=data.get("user_name") or "",
        contact_email=data.get("user_email") or None,
    )


def _detection_to_dict(detection: SoundDetection | None) -> dict[str, Any] | None:
    if detection is None:
        return None
    return {
        "sound_type": detection.sound_type.value,
        "level": detection.level,
        "description": detection.description,
        "should_alert": detection.should_alert,
    }


def _result_body(result: AlertResult) -> dict[str, Any]:
    return {
        "alert": _alert_to_dict(result.alert),
        "notification": result.outcome.to_dict(),
        "warning": result.notification_warning,
    }


def _alert_to_dict(alert: AlertDTO) -> dict[str, Any]:
    return {
        "id": alert.id,
        "user_id": alert.user_id,
        "alert_type": alert.alert_type,
        "content": alert.content,
        "latitude": alert.location.latitude if alert.location else None,
        "longitude": alert.location.longitude if alert.location else None,
        "is_resolved": alert.is_resolved,
        "created_at": alert.created_at.isoformat(),
    }


def _outcome_response(outcome: NotificationOutcome) -> web.Response:
    status = STATUS_CODES[outcome.status]
    if outcome.delivered:
        body: dict[str, Any] = {
            "success": True,
            "data": {"id": outcome.provider_message_id},
            "outcome": outcome.to_dict(),
        }
    else:
        body = {
            "error": ERROR_MESSAGES[outcome.status],
            "details": outcome.error_detail,
            "outcome": outcome.to_dict(),
        }
    return web.json_response(body, status=status)


class AlertServer:
    """aiohttp application serving the alert API.

    Example:
        ```python
        server = AlertServer(dispatcher, health_monitor, service)
        await server.start(port=8080)
        ...
        await server.stop()
        ```
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        health_monitor: GatewayHealthMonitor,
        service: AlertService | None = None,
        text_monitor: TextThreatMonitor | None = None,
        audio_detector: AudioAlertDetector | None = None,
        geofence: GeofenceMonitor | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            dispatcher: Dispatcher behind POST /api/send-alert.
            health_monitor: Monitor behind GET /api/health.
            service: Alert service for the alert management endpoints.
                Those routes are not registered without it.
            text_monitor: Text threat monitor behind POST /api/analyze-text.
            audio_detector: Audio detector behind the /api/audio routes.
            geofence: Safe zone monitor behind the zone and location routes.
        """
        self.dispatcher = dispatcher
        self.health_monitor = health_monitor
        self.service = service
        self.text_monitor = text_monitor
        self.audio_detector = audio_detector
        self.geofence = geofence
        self._runner: web.AppRunner | None = None

    def _alert_service(self) -> AlertService:
        if self.service is None:
            raise web.HTTPNotFound()
        return self.service

    def _text_monitor(self) -> TextThreatMonitor:
        if self.text_monitor is None:
            raise web.HTTPNotFound()
        return self.text_monitor

    def _audio_detector(self) -> AudioAlertDetector:
        if self.audio_detector is None:
            raise web.HTTPNotFound()
        return self.audio_detector

    def _geofence(self) -> GeofenceMonitor:
        if self.geofence is None:
            raise web.HTTPNotFound()
        return self.geofence

    async def _handle_send_alert(self, request: web.Request) -> web.Response:
        """Handle POST /api/send-alert."""
        data = await _read_json_object(request)
        missing = _missing_fields(data, REQUIRED_SEND_FIELDS)
        if missing:
            return missing

        # Reject unparseable coordinates as input errors
        _location_from(data)
        event = AlertEvent.from_request(data)
        outcome = await self.dispatcher.dispatch(event)
        return _outcome_response(outcome)

    async def _handle_create_alert(self, request: web.Request) -> web.Response:
        """Handle POST /api/alerts."""
        service = self._alert_service()
        data = await _read_json_object(request)
        missing = _missing_fields(data, ("user_id",))
        if missing:
            return missing

        result = await service.raise_alert(
            _subject_user(data),
            data.get("emergency_contact_email"),
            data.get("alert_type") or AlertKind.EMERGENCY.value,
            content=data.get("content") or None,
            location=_location_from(data),
        )
        return web.json_response(_result_body(result), status=201)

    async def _handle_resolve_alert(self, request: web.Request) -> web.Response:
        """Handle POST /api/alerts/{alert_id}/resolve."""
        service = self._alert_service()
        alert_id = request.match_info["alert_id"]
        if not await service.resolve_alert(alert_id):
            return web.json_response({"error": "Alert not found"}, status=404)
        return web.json_response({"success": True, "id": alert_id})

    async def _handle_list_outcomes(self, request: web.Request) -> web.Response:
        """Handle GET /api/alerts/{alert_id}/outcomes."""
        service = self._alert_service()
        alert_id = request.match_info["alert_id"]
        if await service.get_alert(alert_id) is None:
            return web.json_response({"error": "Alert not found"}, status=404)
        outcomes = await service.list_outcomes(alert_id)
        return web.json_response({"outcomes": [o.to_dict() for o in outcomes]})

    async def _handle_list_alerts(self, request: web.Request) -> web.Response:
        """Handle GET /api/users/{user_id}/alerts[?resolved=true|false]."""
        service = self._alert_service()
        user_id = request.match_info["user_id"]
        alerts = await service.list_alerts(
            user_id, resolved=_resolved_filter(request.query.get("resolved"))
        )
        return web.json_response({"alerts": [_alert_to_dict(a) for a in alerts]})

    async def _handle_delete_alert(self, request: web.Request) -> web.Response:
        """Handle DELETE /api/alerts/{alert_id}."""
        service = self._alert_service()
        alert_id = request.match_info["alert_id"]
        if not await service.delete_alert(alert_id):
            return web.json_response({"error": "Alert not found"}, status=404)
        return web.json_response({"success": True, "id": alert_id})

    async def _handle_analyze_text(self, request: web.Request) -> web.Response:
        """Handle POST /api/analyze-text."""
        text_monitor = self._text_monitor()
        data = await _read_json_object(request)
        missing = _missing_fields(data, ("user_id", "text"))
        if missing:
            return missing

        score, result = await text_monitor.analyze(
            _subject_user(data), data.get("emergency_contact_email"), data["text"]
        )
        body: dict[str, Any] = {
            "threat_level": score.threat_level.value,
            "indicators": score.indicators,
            "distress_signals": score.distress_signals,
            "alert": None,
        }
        if result is not None:
            body.update(_result_body(result))
        return web.json_response(body)

    async def _handle_audio_frame(self, request: web.Request) -> web.Response:
        """Handle POST /api/audio/frame."""
        audio_detector = self._audio_detector()
        data = await _read_json_object(request)
        missing = _missing_fields(data, ("user_id", "frame"))
        if missing:
            return missing
        frame = data["frame"]
        if not isinstance(frame, list) or not all(
            isinstance(v, int) and not isinstance(v, bool) and 0 <= v <= 255 for v in frame
        ):
            raise BadRequestError("Invalid request body", "frame must be a list of 0-255 ints")

        detection, result = await audio_detector.process_frame(
            _subject_user(data),
            data.get("emergency_contact_email"),
            frame,
            _location_from(data),
        )
        body: dict[str, Any] = {"detection": _detection_to_dict(detection), "alert": None}
        if result is not None:
            body.update(_result_body(result))
        return web.json_response(body)

    async def _handle_audio_manual(self, request: web.Request) -> web.Response:
        """Handle POST /api/audio/manual."""
        audio_detector = self._audio_detector()
        data = await _read_json_object(request)
        missing = _missing_fields(data, ("user_id",))
        if missing:
            return missing

        result = await audio_detector.trigger_manual(
            _subject_user(data),
            data.get("emergency_contact_email"),
            _location_from(data),
        )
        return web.json_response(_result_body(result), status=201)

    async def _handle_set_zones(self, request: web.Request) -> web.Response:
        """Handle PUT /api/users/{user_id}/safe-zones."""
        geofence = self._geofence()
        user_id = request.match_info["user_id"]
        data = await _read_json_object(request)
        zones = _zones_from(data.get("zones"))
        geofence.set_zones(user_id, zones)
        return web.json_response({"user_id": user_id, "zones": [z.name for z in zones]})

    async def _handle_location(self, request: web.Request) -> web.Response:
        """Handle POST /api/location."""
        geofence = self._geofence()
        data = await _read_json_object(request)
        missing = _missing_fields(data, ("user_id",))
        if missing:
            return missing
        location = _location_from(data)
        if location is None:
            raise BadRequestError("Missing required fields", "latitude, longitude")

        user = _subject_user(data)
        result = await geofence.update_location(
            user, data.get("emergency_contact_email"), location
        )
        body: dict[str, Any] = {"zone": geofence.current_zone(user.id), "alert": None}
        if result is not None:
            body.update(_result_body(result))
        return web.json_response(body)

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle GET /api/health."""
        health = await self.health_monitor.check_health()
        return web.json_response(
            {
                "status": "healthy",
                "services": {"delivery": service_status(health)},
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle GET /metrics (Prometheus format)."""
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )

    async def _handle_live(self, _request: web.Request) -> web.Response:
        """Handle GET /live."""
        return web.json_response({"live": True})

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application(middlewares=[error_middleware])
        app.router.add_post("/api/send-alert", self._handle_send_alert)
        app.router.add_get("/api/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        app.router.add_get("/live", self._handle_live)
        if self.service is not None:
            app.router.add_post("/api/alerts", self._handle_create_alert)
            app.router.add_delete("/api/alerts/{alert_id}", self._handle_delete_alert)
            app.router.add_post("/api/alerts/{alert_id}/resolve", self._handle_resolve_alert)
            app.router.add_get("/api/alerts/{alert_id}/outcomes", self._handle_list_outcomes)
            app.router.add_get("/api/users/{user_id}/alerts", self._handle_list_alerts)
        if self.text_monitor is not None:
            app.router.add_post("/api/analyze-text", self._handle_analyze_text)
        if self.audio_detector is not None:
            app.router.add_post("/api/audio/frame", self._handle_audio_frame)
            app.router.add_post("/api/audio/manual", self._handle_audio_manual)
        if self.geofence is not None:
            app.router.add_put("/api/users/{user_id}/safe-zones", self._handle_set_zones)
            app.router.add_post("/api/location", self._handle_location)
        return app

    async def start(self, host: str = DEFAULT_HTTP_HOST, port: int = DEFAULT_HTTP_PORT) -> None:
        """Start serving.

        Args:
            host: Interface to bind.
            port: Port to listen on.
        """
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        logger.info("HTTP API listening on %s:%d", host, port)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("HTTP API stopped")
