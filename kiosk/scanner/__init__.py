"""Scan orchestration: control channels, state machine and device peer."""

from kiosk.lib.artifacts import ArtifactStore
from kiosk.lib.config import get_settings

from .channel import (
    START_INSTRUCTION,
    ControlChannel,
    SimulatedControlChannel,
    WebSocketControlChannel,
)
from .device import ScanDevice
from .orchestrator import ChannelFactory, ScanJob, ScanOrchestrator

__all__ = [
    "START_INSTRUCTION",
    "ChannelFactory",
    "ControlChannel",
    "ScanDevice",
    "ScanJob",
    "ScanOrchestrator",
    "SimulatedControlChannel",
    "WebSocketControlChannel",
    "get_channel_factory",
]


def get_channel_factory(store: ArtifactStore) -> ChannelFactory:
    """Factory for the configured control channel (real or simulated)."""
    if get_settings().scanner.simulated:
        return lambda: SimulatedControlChannel(store)
    return WebSocketControlChannel
