"""Mock environment sensor producer.

Publishes a reading to the relay hub at a fixed frequency and reacts to
display commands relayed by the hub.
"""

import asyncio

from kiosk.lib.config import DisplayCommand, get_settings
from kiosk.lib.mock import MockEnvironmentSensor
from kiosk.lib.service import run_service
from kiosk.logging import get_logger
from kiosk.telemetry.client import TelemetryClient

logger = get_logger("telemetry.producer")


def apply_command(sensor: MockEnvironmentSensor, command: str) -> None:
    """Apply a relayed command to the sensor."""
    if command == DisplayCommand.DISPLAY_ON:
        sensor.display_enabled = True
    elif command == DisplayCommand.DISPLAY_OFF:
        sensor.display_enabled = False
    else:
        logger.debug("Ignoring command %r", command)
        return
    logger.info("Display %s", "enabled" if sensor.display_enabled else "disabled")


async def publish_forever(
    client: TelemetryClient,
    sensor: MockEnvironmentSensor,
    frequency_sec: float,
) -> None:
    """Send one reading per interval. Readings taken while offline are dropped."""
    while True:
        await asyncio.sleep(frequency_sec)
        reading = sensor.read()
        if await client.send_reading(reading):
            logger.debug(
                "Published %.1f C, %.1f %%", reading.temperature, reading.humidity
            )
        else:
            logger.debug("Hub unreachable, reading dropped")


async def run() -> None:
    """Run the producer until cancelled."""
    cfg = get_settings().telemetry
    sensor = MockEnvironmentSensor(cfg.producer_device_id)
    client = TelemetryClient()
    client.start(on_command=lambda command: apply_command(sensor, command))
    try:
        await publish_forever(client, sensor, cfg.producer_frequency_sec)
    finally:
        await client.stop()


def main() -> None:
    """Start the mock producer service."""
    run_service(run, name="producer")
