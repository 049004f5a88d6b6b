"""Centralized configuration for the kiosk services.

This package provides:
- Enums for wire message types, scan states and distribution methods
- Pydantic settings models for configuration
"""

from .enums import DisplayCommand, DistributionMethod, MessageType, ScanStatus
from .settings import (
    DeliverySettings,
    HEARTBEAT_INTERVAL_SEC,
    HubSettings,
    RECONNECT_DELAY_SEC,
    SCAN_NUMBER_RANGE,
    ScannerSettings,
    ServerSettings,
    Settings,
    TelemetrySettings,
    get_settings,
    parse_email_list,
)

__all__ = [
    # Enums
    "DisplayCommand",
    "DistributionMethod",
    "MessageType",
    "ScanStatus",
    # Settings models
    "DeliverySettings",
    "HubSettings",
    "ScannerSettings",
    "ServerSettings",
    "Settings",
    "TelemetrySettings",
    # Constants
    "HEARTBEAT_INTERVAL_SEC",
    "RECONNECT_DELAY_SEC",
    "SCAN_NUMBER_RANGE",
    # Functions
    "get_settings",
    "parse_email_list",
]
