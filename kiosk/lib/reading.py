"""Environment reading exchanged between the sensor producer and dashboards."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

UNKNOWN_DEVICE = "Unknown Device"


def _as_float(value: Any) -> float:
    """Coerce a payload value to a finite float, defaulting to 0.0."""
    if isinstance(value, bool) or not isinstance(value, int | float | str):
        return 0.0
    try:
        result = float(value)
    except (ValueError, OverflowError):
        # Huge JSON integers overflow float conversion
        return 0.0
    return result if math.isfinite(result) else 0.0


@dataclass(frozen=True, slots=True)
class Reading:
    """One telemetry snapshot.

    Built from untrusted wire payloads: missing or mistyped fields are
    defaulted instead of raising.
    """

    temperature: float
    humidity: float
    pressure: float
    air_quality: float
    display_enabled: bool
    device_id: str
    timestamp: str

    @classmethod
    def from_payload(cls, payload: Any) -> Reading:
        """Create a reading from a `sensor-data` payload object."""
        if not isinstance(payload, dict):
            payload = {}
        device_id = payload.get("deviceId")
        timestamp = payload.get("timestamp")
        return cls(
            temperature=_as_float(payload.get("temperature")),
            humidity=_as_float(payload.get("humidity")),
            pressure=_as_float(payload.get("pressure")),
            air_quality=_as_float(payload.get("airQuality")),
            display_enabled=payload.get("displayEnabled") is True,
            device_id=(
                device_id if isinstance(device_id, str) and device_id
                else UNKNOWN_DEVICE
            ),
            timestamp=(
                timestamp if isinstance(timestamp, str) and timestamp
                else datetime.now(UTC).isoformat()
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "pressure": self.pressure,
            "airQuality": self.air_quality,
            "displayEnabled": self.display_enabled,
            "deviceId": self.device_id,
            "timestamp": self.timestamp,
        }
