"""Enumerations for the kiosk services."""

from enum import StrEnum


class MessageType(StrEnum):
    """Discriminator of frames exchanged over the telemetry channel."""

    READY = "ready"
    COMMAND = "command"
    SENSOR_DATA = "sensor-data"
    ERROR = "error"
    MESSAGE = "message"


class ScanStatus(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    SCANNING = "scanning"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_active(self) -> bool:
        """True while a scan is in flight."""
        return self in (ScanStatus.CONNECTING, ScanStatus.SCANNING)

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.ERROR)


class DistributionMethod(StrEnum):
    """How a scan artifact is shared by email."""

    URL = "url"  # Link to the artifact on the kiosk
    IMAGE = "image"  # Artifact bytes as an attachment


class DisplayCommand(StrEnum):
    """Commands understood by the mock sensor producer."""

    DISPLAY_ON = "display:on"
    DISPLAY_OFF = "display:off"
