"""Email delivery gateway client.

The dispatcher depends only on the :class:`DeliveryGateway` protocol. The
default implementation talks to the Resend HTTP API through one long-lived
``httpx.AsyncClient`` that is created on first use and closed explicitly.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from safespace_alerts.notifier.models import SendResult

if TYPE_CHECKING:
    from safespace_alerts.config import ResendSettings

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.resend.com"
DEFAULT_FROM_ADDRESS = "SafeSpace Alerts <alerts@safespace-app.com>"
DEFAULT_TIMEOUT = 10.0


class GatewayError(Exception):
    """Raised when the gateway cannot be reached or rejects a request."""


class DeliveryGateway(Protocol):
    """Protocol for email delivery providers."""

    @property
    def configured(self) -> bool:
        """Return True if delivery credentials are present."""
        ...

    async def send(
        self,
        to: list[str],
        cc: list[str] | None,
        subject: str,
        html_body: str,
    ) -> SendResult:
        """Send one email. Errors are returned, not raised."""
        ...

    async def probe(self) -> None:
        """Make a cheap authenticated call. Raises GatewayError on failure."""
        ...


def _error_message(response: httpx.Response) -> str:
    """Extract the provider's error message from a failed response."""
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text}"
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return f"HTTP {response.status_code}"


def _message_id(response: httpx.Response) -> str | None:
    """Read the message id from an accepted send, if the body carries one."""
    try:
        payload = response.json()
    except ValueError:
        logger.warning("Resend accepted email with a non-JSON body")
        return None
    if isinstance(payload, dict) and payload.get("id"):
        return str(payload["id"])
    return None


class ResendGateway:
    """Resend API client.

    Example:
        ```python
        gateway = ResendGateway(api_key="re_123")
        result = await gateway.send(["contact@example.com"], None, "Hi", "<p>Hi</p>")
        await gateway.aclose()
        ```
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        from_address: str = DEFAULT_FROM_ADDRESS,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the gateway.

        Args:
            api_key: Resend API key. None leaves the gateway unconfigured.
            from_address: Sender shown to recipients.
            api_url: Base URL of the Resend API.
            timeout: Per-request timeout in seconds.
        """
        self._api_key = api_key
        self.from_address = from_address
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: ResendSettings) -> ResendGateway:
        """Build a gateway from the resend settings group."""
        api_key = settings.api_key.get_secret_value() if settings.api_key else None
        return cls(
            api_key,
            from_address=settings.from_address,
            api_url=settings.api_url,
            timeout=settings.timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        return self._client

    async def send(
        self,
        to: list[str],
        cc: list[str] | None,
        subject: str,
        html_body: str,
    ) -> SendResult:
        """Send an email through Resend.

        Args:
            to: Recipient addresses.
            cc: Optional carbon-copy addresses.
            subject: Subject line.
            html_body: HTML body.

        Returns:
            SendResult with the provider message id, or the error message.
        """
        if not self.configured:
            return SendResult(error="Email service not configured")

        payload: dict[str, Any] = {
            "from": self.from_address,
            "to": to,
            "subject": subject,
            "html": html_body,
        }
        if cc:
            payload["cc"] = cc

        try:
            response = await self._get_client().post("/emails", json=payload)
        except httpx.TimeoutException:
            logger.warning("Resend request timed out after %.1fs", self.timeout)
            return SendResult(error="Request to email provider timed out")
        except httpx.HTTPError as e:
            logger.error("Resend request failed: %s", e)
            return SendResult(error=str(e) or type(e).__name__)

        if response.is_success:
            message_id = _message_id(response)
            logger.info("Email accepted by Resend (id=%s)", message_id)
            return SendResult(id=message_id)

        message = _error_message(response)
        logger.error("Resend rejected email: %s", message)
        return SendResult(error=message)

    async def probe(self) -> None:
        """List domains to confirm the key is accepted.

        Raises:
            GatewayError: If unconfigured, unreachable or the key is rejected.
        """
        if not self.configured:
            raise GatewayError("Email service not configured")
        try:
            response = await self._get_client().get("/domains")
        except httpx.HTTPError as e:
            raise GatewayError(str(e) or type(e).__name__) from e
        if not response.is_success:
            raise GatewayError(_error_message(response))

    async def aclose(self) -> None:
        """Close the underlying HTTP client if it was created."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


_gateway: ResendGateway | None = None


def get_gateway(settings: ResendSettings) -> ResendGateway:
    """Return the process-wide gateway, creating it on first call."""
    global _gateway
    if _gateway is None:
        _gateway = ResendGateway.from_settings(settings)
        logger.debug("Created process-wide Resend gateway")
    return _gateway


async def close_gateway() -> None:
    """Close and forget the process-wide gateway."""
    global _gateway
    if _gateway is not None:
        gateway, _gateway = _gateway, None
        await gateway.aclose()
