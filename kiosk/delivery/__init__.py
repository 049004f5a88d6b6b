"""Emailing of scan artifacts through the mail gateway."""

from .gateway import MailGateway, create_token
from .workflow import (
    DeliveryRequest,
    DeliveryResult,
    DeliveryState,
    DeliveryWorkflow,
    normalize_email,
)

__all__ = [
    "DeliveryRequest",
    "DeliveryResult",
    "DeliveryState",
    "DeliveryWorkflow",
    "MailGateway",
    "create_token",
    "normalize_email",
]
