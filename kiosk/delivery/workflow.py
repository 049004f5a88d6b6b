"""Confirmation workflow for emailing a scan artifact.

The operator picks a distribution method, enters a recipient and, when the
recipient is not on the allow-list, confirms it before anything is sent.
Each submit yields at most one gateway request. Failures are reported and
never retried automatically.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import validate_email
from pydantic_core import PydanticCustomError

from kiosk.delivery.gateway import MailGateway
from kiosk.lib.artifacts import ArtifactStore, name_from_locator
from kiosk.lib.config import DistributionMethod, get_settings
from kiosk.lib.exceptions import (
    ArtifactError,
    DeliveryError,
    DeliveryStateError,
    InvalidRecipientError,
)
from kiosk.logging import get_logger

logger = get_logger("delivery.workflow")

DEMO_DISABLED_MESSAGE = "Email sending is disabled in demo mode"
NOT_ENABLED_MESSAGE = "Email delivery is not enabled"


class DeliveryState(StrEnum):
    IDLE = "idle"
    AWAITING_RECIPIENT = "awaiting_recipient"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SENDING = "sending"


@dataclass(frozen=True, slots=True)
class DeliveryRequest:
    """A pending send of one artifact to one recipient."""

    email: str
    method: DistributionMethod
    file_name: str


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    """Outcome reported to the operator."""

    delivered: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"delivered": self.delivered, "message": self.message}


_SUCCESS_MESSAGES = {
    DistributionMethod.URL: "Link sent by email",
    DistributionMethod.IMAGE: "Image sent by email",
}


def normalize_email(email: str) -> str:
    """Validate an email address and return it stripped.

    Raises:
        InvalidRecipientError: If the address is malformed.
    """
    candidate = email.strip()
    if "<" in candidate:
        # validate_email also accepts "Name <address>"
        raise InvalidRecipientError(f"Invalid email address: {candidate}")
    try:
        validate_email(candidate)
    except PydanticCustomError as e:
        raise InvalidRecipientError(f"Invalid email address: {candidate}") from e
    return candidate


class DeliveryWorkflow:
    """Per-kiosk delivery state for the current scan artifact."""

    def __init__(
        self,
        gateway: MailGateway,
        store: ArtifactStore,
        *,
        allowed_emails: Iterable[str] | None = None,
        demo: bool | None = None,
        enabled: bool | None = None,
    ) -> None:
        """Initialize the workflow.

        Args:
            gateway: Mail gateway client used for sends.
            store: Artifact store holding scan results.
            allowed_emails: Recipients that skip confirmation. An empty
                allow-list disables confirmation entirely.
            demo: When True nothing is ever sent.
            enabled: When False nothing is ever sent. Defaults to the
                ENABLE_DELIVERY setting.
        """
        settings = get_settings()
        self._gateway = gateway
        self._store = store
        self.allowed_emails = frozenset(
            allowed_emails
            if allowed_emails is not None
            else settings.delivery.allowed_emails
        )
        self.demo = settings.scanner.simulated if demo is None else demo
        self.enabled = settings.delivery.enabled if enabled is None else enabled
        self.state = DeliveryState.IDLE
        self.method: DistributionMethod | None = None
        self.file_name: str | None = None
        self.pending: DeliveryRequest | None = None

    def requires_confirmation(self, email: str) -> bool:
        """True if the recipient must be confirmed by the operator."""
        return bool(self.allowed_emails) and email not in self.allowed_emails

    def choose_distribution(
        self, method: DistributionMethod | str, artifact: str
    ) -> None:
        """Record the distribution method and open recipient entry.

        Args:
            method: ``url`` or ``image``.
            artifact: Artifact name or route path of the scan to share.

        Raises:
            DeliveryStateError: If a send is in progress.
            ValueError: If the method is unknown.
        """
        if self.state == DeliveryState.SENDING:
            raise DeliveryStateError("A send is already in progress")
        self.method = DistributionMethod(method)
        self.file_name = name_from_locator(artifact)
        self.pending = None
        self.state = DeliveryState.AWAITING_RECIPIENT
        logger.info("Sharing %s via %s", self.file_name, self.method)

    async def submit(self, email: str) -> DeliveryResult | None:
        """Submit the recipient.

        Returns:
            The send outcome, or None when the workflow paused for
            confirmation.

        Raises:
            DeliveryStateError: If no distribution method was chosen or a
                send is in progress.
            InvalidRecipientError: If the address is malformed.
        """
        if (
            self.state != DeliveryState.AWAITING_RECIPIENT
            or self.method is None
            or self.file_name is None
        ):
            raise DeliveryStateError(f"Cannot submit while {self.state}")

        address = normalize_email(email)
        if self.demo:
            logger.info("Demo mode, not sending to %s", address)
            self.reset()
            return DeliveryResult(delivered=False, message=DEMO_DISABLED_MESSAGE)
        if not self.enabled:
            logger.info("Delivery disabled, not sending to %s", address)
            self.reset()
            return DeliveryResult(delivered=False, message=NOT_ENABLED_MESSAGE)

        request = DeliveryRequest(
            email=address, method=self.method, file_name=self.file_name
        )
        if self.requires_confirmation(address):
            logger.info("Recipient %s not on allow-list, awaiting confirmation", address)
            self.pending = request
            self.state = DeliveryState.AWAITING_CONFIRMATION
            return None
        return await self._send(request)

    async def confirm(self) -> DeliveryResult:
        """Send the request held for confirmation.

        Raises:
            DeliveryStateError: If nothing is awaiting confirmation.
        """
        if self.state != DeliveryState.AWAITING_CONFIRMATION or self.pending is None:
            raise DeliveryStateError("Nothing is awaiting confirmation")
        request, self.pending = self.pending, None
        logger.info("Recipient %s confirmed", request.email)
        return await self._send(request)

    def cancel(self) -> None:
        """Drop the request held for confirmation without sending.

        The recipient entry stays open so another address can be given.
        """
        if self.state != DeliveryState.AWAITING_CONFIRMATION:
            return
        if self.pending is not None:
            logger.info("Send to %s cancelled", self.pending.email)
        self.pending = None
        self.state = DeliveryState.AWAITING_RECIPIENT

    def reset(self) -> None:
        """Close the workflow, forgetting method, artifact and recipient."""
        if self.state == DeliveryState.SENDING:
            raise DeliveryStateError("A send is in progress")
        self.state = DeliveryState.IDLE
        self.method = None
        self.file_name = None
        self.pending = None

    async def _send(self, request: DeliveryRequest) -> DeliveryResult:
        self.state = DeliveryState.SENDING
        try:
            if request.method == DistributionMethod.URL:
                await self._gateway.send_url(request.email, request.file_name)
            else:
                content, content_type = self._store.read(request.file_name)
                await self._gateway.send_image(
                    request.email, request.file_name, content, content_type
                )
        except (DeliveryError, ArtifactError) as e:
            logger.warning("Delivery to %s failed: %s", request.email, e)
            return DeliveryResult(delivered=False, message=str(e))
        finally:
            # Recipient entry stays open on any failure; a retry is a new request
            if self.state == DeliveryState.SENDING:
                self.state = DeliveryState.AWAITING_RECIPIENT

        logger.info("Delivered %s to %s", request.file_name, request.email)
        self.state = DeliveryState.IDLE
        self.method = None
        self.file_name = None
        return DeliveryResult(
            delivered=True, message=_SUCCESS_MESSAGES[request.method]
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "method": self.method,
            "fileName": self.file_name,
            "emailToConfirm": self.pending.email if self.pending else None,
        }
