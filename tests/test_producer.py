"""Tests for the mock sensor producer."""

import asyncio
import itertools
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kiosk.lib.mock import MockEnvironmentSensor
from kiosk.lib.reading import Reading
from kiosk.telemetry.producer import apply_command, main, publish_forever, run


class TestApplyCommand:
    """Tests for display commands."""

    def test_display_off_and_on(self):
        sensor = MockEnvironmentSensor()

        apply_command(sensor, "display:off")
        assert sensor.display_enabled is False

        apply_command(sensor, "display:on")
        assert sensor.display_enabled is True

    def test_unknown_command_is_ignored(self):
        sensor = MockEnvironmentSensor()

        apply_command(sensor, "reboot")

        assert sensor.display_enabled is True


class TestPublishForever:
    """Tests for the publishing loop."""

    @pytest.mark.asyncio
    async def test_publishes_until_cancelled(self, wait_until):
        """Readings keep flowing even while the hub is unreachable."""
        client = MagicMock()
        client.send_reading = AsyncMock(side_effect=itertools.cycle([True, False]))
        sensor = MockEnvironmentSensor("mock-1")

        task = asyncio.create_task(publish_forever(client, sensor, 0.001))
        await wait_until(lambda: client.send_reading.await_count >= 3)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        reading = client.send_reading.await_args_list[0].args[0]
        assert isinstance(reading, Reading)
        assert reading.device_id == "mock-1"


class TestRun:
    """Tests for the producer service."""

    @pytest.mark.asyncio
    async def test_stops_client_on_cancel(self):
        client = MagicMock()
        client.stop = AsyncMock()
        client.send_reading = AsyncMock(return_value=False)

        with patch("kiosk.telemetry.producer.TelemetryClient", return_value=client):
            task = asyncio.create_task(run())
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        client.start.assert_called_once()
        client.stop.assert_awaited_once()

    def test_main_runs_service(self):
        with patch("kiosk.telemetry.producer.run_service") as run_service:
            main()

        run_service.assert_called_once_with(run, name="producer")
