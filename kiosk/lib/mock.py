"""Mock sensor data generators for development.

Provides a mock environment sensor that generates realistic readings
without requiring hardware. Used by the telemetry producer.
"""

import random
from datetime import UTC, datetime

from kiosk.lib.reading import Reading


def _random_walk(
    current: float, drift: float, min_val: float, max_val: float
) -> float:
    """Generate next value using random walk with bounds."""
    change = random.gauss(0, drift)
    new_val = current + change
    return max(min_val, min(max_val, new_val))


class MockEnvironmentSensor:
    """Mock environment sensor that generates realistic readings.

    - Temperature: drift=0.15, bounds 15-30
    - Humidity: drift=0.3, bounds 30-70
    - Pressure: drift=0.4, bounds 980-1040 hPa
    - Air quality index: drift=2.0, bounds 0-300
    """

    def __init__(self, device_id: str = "mock-sensor") -> None:
        self.device_id = device_id
        self.display_enabled = True
        self._temperature = random.uniform(20.0, 23.0)
        self._humidity = random.uniform(45.0, 55.0)
        self._pressure = random.uniform(1005.0, 1020.0)
        self._air_quality = random.uniform(20.0, 60.0)

    def read(self) -> Reading:
        """Advance every measure one step and return the snapshot."""
        self._temperature = _random_walk(
            self._temperature, drift=0.15, min_val=15.0, max_val=30.0
        )
        self._humidity = _random_walk(
            self._humidity, drift=0.3, min_val=30.0, max_val=70.0
        )
        self._pressure = _random_walk(
            self._pressure, drift=0.4, min_val=980.0, max_val=1040.0
        )
        self._air_quality = _random_walk(
            self._air_quality, drift=2.0, min_val=0.0, max_val=300.0
        )
        return Reading(
            temperature=round(self._temperature, 1),
            humidity=round(self._humidity, 1),
            pressure=round(self._pressure, 1),
            air_quality=round(self._air_quality),
            display_enabled=self.display_enabled,
            device_id=self.device_id,
            timestamp=datetime.now(UTC).isoformat(),
        )
