"""Custom exceptions for the kiosk services.

Provides a hierarchy of domain-specific exceptions so callers can tell
transport, job and delivery failures apart.
"""


class KioskError(Exception):
    """Base exception for all application errors."""


class ArtifactError(KioskError):
    """Base exception for scan artifact storage errors."""


class ArtifactNotFoundError(ArtifactError):
    """Raised when a requested artifact does not exist."""


class ArtifactAccessError(ArtifactError):
    """Raised when an artifact name resolves outside the artifact root."""


class ArtifactNamingError(ArtifactError):
    """Raised when no unused artifact name could be found."""


class ScannerError(KioskError):
    """Base exception for scan control errors."""


class ScannerConnectionError(ScannerError):
    """Raised when the scan control channel cannot be used."""

    def __init__(self, message: str = "Unable to reach the scanner") -> None:
        super().__init__(message)


class DeliveryError(KioskError):
    """Raised when the mail gateway rejects or fails a send."""


class DeliveryStateError(DeliveryError):
    """Raised when a delivery action is not valid in the current state."""


class InvalidRecipientError(DeliveryError):
    """Raised when a recipient address is not a valid email."""
