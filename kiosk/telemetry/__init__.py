"""Telemetry client and mock sensor producer."""

from .client import TelemetryClient

__all__ = ["TelemetryClient"]
