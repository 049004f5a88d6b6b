"""Reconnecting WebSocket client for the telemetry relay hub.

Keeps the most recent reading and a connectivity flag available to the
dashboard without the caller managing the connection. On any close or
error the client waits a fixed delay and reconnects, forever, until
stop() is called. Hub liveness pings are WebSocket protocol pings, which
the websockets library answers without involving this client.
"""
import asyncio
import json
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from kiosk.lib.config import MessageType, get_settings
from kiosk.lib.reading import Reading
from kiosk.logging import get_logger

_logger = get_logger("telemetry.client")

type ReadingCallback = Callable[[Reading], None]
type CommandCallback = Callable[[str], None]
type EventCallback = Callable[[], None]
type Connector = Callable[[str], AbstractAsyncContextManager[Any]]

_TRANSPORT_ERRORS = (OSError, TimeoutError, WebSocketException)


class TelemetryClient:
    """A single self-healing connection to the relay hub."""

    def __init__(
        self,
        url: str | None = None,
        *,
        reconnect_delay_sec: float | None = None,
        connector: Connector = connect,
    ) -> None:
        """Initialize the client.

        Args:
            url: Hub WebSocket URL. Defaults to the configured hub URL.
            reconnect_delay_sec: Fixed wait between connection attempts.
            connector: Factory returning an async context manager that
                yields a connection; tests substitute a fake.
        """
        cfg = get_settings().telemetry
        self.url = url or cfg.hub_url
        self.reconnect_delay_sec = (
            reconnect_delay_sec
            if reconnect_delay_sec is not None
            else cfg.reconnect_delay_sec
        )
        self._connector = connector
        self._ws: ClientConnection | None = None
        self._task: asyncio.Task[None] | None = None
        self._stopped = True
        self._on_reading: ReadingCallback | None = None
        self._on_command: CommandCallback | None = None
        self._on_connect: EventCallback | None = None
        self._on_disconnect: EventCallback | None = None
        self.latest: Reading | None = None
        self.attempts = 0

    @property
    def connected(self) -> bool:
        return self._ws is not None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        on_reading: ReadingCallback | None = None,
        on_connect: EventCallback | None = None,
        on_disconnect: EventCallback | None = None,
        *,
        on_command: CommandCallback | None = None,
    ) -> None:
        """Start connecting in the background.

        Raises:
            RuntimeError: If the client is already running.
        """
        if self.running:
            raise RuntimeError("Telemetry client already started")
        self._on_reading = on_reading
        self._on_connect = on_connect
        self._on_disconnect = on_disconnect
        self._on_command = on_command
        self._stopped = False
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Close the connection and cancel any pending reconnect.

        No connection attempt is made after this returns.
        """
        self._stopped = True
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                _logger.exception("Telemetry client failed during shutdown")
        self._ws = None
        _logger.info("Telemetry client stopped")

    async def send_command(self, command: str) -> bool:
        """Send a command to every hub peer.

        Returns:
            True if the frame was handed to an open connection. Commands
            are never queued; False means not delivered.
        """
        return await self._send({"command": command})

    async def send_reading(self, reading: Reading) -> bool:
        """Publish a reading through the hub. Same semantics as send_command."""
        return await self._send(reading.to_dict())

    async def _send(self, message: dict[str, Any]) -> bool:
        ws = self._ws
        if ws is None:
            return False
        try:
            await ws.send(json.dumps(message))
        except ConnectionClosed:
            return False
        return True

    async def _run(self) -> None:
        """Connect, listen until the connection drops, wait, repeat."""
        while not self._stopped:
            self.attempts += 1
            try:
                async with self._connector(self.url) as ws:
                    await self._listen(ws)
            except _TRANSPORT_ERRORS as e:
                _logger.warning("Connection to %s failed: %s", self.url, e)
            except Exception:
                _logger.exception("Connection to %s crashed", self.url)
            if self._stopped:
                break
            _logger.info(
                "Reconnecting to %s in %ss...", self.url, self.reconnect_delay_sec
            )
            await asyncio.sleep(self.reconnect_delay_sec)

    async def _listen(self, ws: ClientConnection) -> None:
        self._ws = ws
        _logger.info("Connected to %s", self.url)
        self._notify(self._on_connect)
        try:
            async for raw in ws:
                try:
                    self._handle(raw)
                except Exception:
                    _logger.exception("Failed to handle message from hub")
        finally:
            self._ws = None
            if not self._stopped:
                _logger.info("Disconnected from %s", self.url)
                self._notify(self._on_disconnect)

    def _handle(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (ValueError, RecursionError) as e:
            _logger.warning("Invalid message from hub: %s", e)
            return
        if not isinstance(message, dict):
            return

        msg_type = message.get("type")
        if msg_type == MessageType.SENSOR_DATA:
            payload = message.get("payload")
            if not isinstance(payload, dict):
                return
            self.latest = Reading.from_payload(payload)
            self._notify(self._on_reading, self.latest)
        elif msg_type == MessageType.COMMAND:
            command = message.get("command")
            if isinstance(command, str):
                self._notify(self._on_command, command)
        elif msg_type == MessageType.ERROR:
            _logger.warning("Hub rejected a frame: %s", message.get("message"))

    def _notify(self, callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            _logger.exception("Telemetry callback %r failed", callback)
