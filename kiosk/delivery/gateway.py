"""Mail gateway client for sharing scan artifacts by email.

The gateway is an external HTTP service. A link is sent as a JSON body,
an image as a multipart upload. Every request carries a short-lived
bearer token.
"""

import time
from typing import Any, Self

import httpx
import jwt

from kiosk.lib.artifacts import route_path
from kiosk.lib.config import get_settings
from kiosk.lib.exceptions import DeliveryError
from kiosk.logging import get_logger

logger = get_logger("delivery.gateway")

JWT_ALGORITHM = "HS256"
CLIENT_ID = "kiosk-client"
GENERIC_ERROR = "Error sending the email"
CONNECTION_ERROR = "Connection error while sending the email"


def create_token(secret: str, expiry_sec: int) -> str:
    """Sign a bearer token identifying this kiosk."""
    now = time.time()
    payload = {
        "clientId": CLIENT_ID,
        "timestamp": int(now * 1000),
        "exp": int(now) + expiry_sec,
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def _error_from_response(response: httpx.Response) -> str:
    """Extract the gateway's error message, if it sent one."""
    try:
        body = response.json()
    except ValueError:
        return GENERIC_ERROR
    if isinstance(body, dict):
        message = body.get("error") or body.get("message")
        if isinstance(message, str) and message:
            return message
    return GENERIC_ERROR


class MailGateway:
    """Async HTTP client for the mail gateway.

    A single :class:`httpx.AsyncClient` is reused across sends. Call
    :meth:`aclose` (or use as an async context manager) when done.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        secret: str | None = None,
        public_base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        cfg = get_settings().delivery
        self.url = url or cfg.mail_service_url
        self._secret = secret or cfg.jwt_secret.get_secret_value()
        self._expiry_sec = cfg.jwt_expiry_sec
        self.public_base_url = (public_base_url or cfg.public_base_url).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=cfg.timeout_sec)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    def public_url(self, file_name: str) -> str:
        """Absolute link to an artifact served by this kiosk."""
        return f"{self.public_base_url}{route_path(file_name)}"

    def _headers(self) -> dict[str, str]:
        token = create_token(self._secret, self._expiry_sec)
        return {"Authorization": f"Bearer {token}"}

    async def send_url(self, email: str, file_name: str) -> None:
        """Ask the gateway to email a link to the artifact.

        Raises:
            DeliveryError: If the gateway is unreachable or rejects the send.
        """
        await self._post(
            json={
                "url": self.public_url(file_name),
                "fileName": file_name,
                "email": email,
            },
            email=email,
        )

    async def send_image(
        self, email: str, file_name: str, content: bytes, content_type: str
    ) -> None:
        """Ask the gateway to email the artifact as an attachment.

        Raises:
            DeliveryError: If the gateway is unreachable or rejects the send.
        """
        await self._post(
            files={"file": (file_name, content, content_type)},
            data={"email": email},
            email=email,
        )

    async def _post(self, *, email: str, **request: Any) -> None:
        if not self.url:
            raise DeliveryError("Mail service is not configured")
        try:
            response = await self._client.post(
                self.url, headers=self._headers(), **request
            )
        except httpx.HTTPError as e:
            logger.error("Mail gateway request failed: %s", e)
            raise DeliveryError(CONNECTION_ERROR) from e

        if response.is_success:
            logger.info("Mail gateway accepted email to %s", email)
            return

        message = _error_from_response(response)
        logger.error(
            "Mail gateway rejected email to %s (%d): %s",
            email, response.status_code, message,
        )
        raise DeliveryError(message)
