"""Control channels between the scan orchestrator and a scan peer.

A channel carries one instruction out and a stream of status messages
back. The WebSocket channel talks to a real scan device peer; the
simulated channel stands in for one in demo mode.
"""
import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import suppress
from typing import Any, Protocol, override

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from kiosk.lib.artifacts import ArtifactStore, route_path
from kiosk.lib.config import MessageType, ScanStatus, get_settings
from kiosk.lib.exceptions import ArtifactError, ScannerConnectionError
from kiosk.logging import get_logger
from kiosk.scanner.demo import render_demo_scan

logger = get_logger("scanner.channel")

START_INSTRUCTION = "startScan"

type StatusMessage = dict[str, Any]
type Connector = Callable[[str], Awaitable[ClientConnection]]

_TRANSPORT_ERRORS = (OSError, TimeoutError, WebSocketException)


class ControlChannel(Protocol):
    """Bidirectional control link to a scan-capable peer."""

    async def open(self) -> None: ...

    async def send(self, instruction: str) -> None: ...

    def messages(self) -> AsyncIterator[StatusMessage]: ...

    async def close(self) -> None: ...


def completed_message(name: str) -> StatusMessage:
    """Status message announcing a finished artifact."""
    return {
        "status": ScanStatus.COMPLETED,
        "routePath": route_path(name),
        "fileName": name,
    }


def error_message(error: str) -> StatusMessage:
    """Status message announcing a failed scan."""
    return {"status": ScanStatus.ERROR, "error": error}


def progress_message(text: str) -> StatusMessage:
    """Informational message that does not change the job state."""
    return {"type": MessageType.MESSAGE, "message": text}


class WebSocketControlChannel(ControlChannel):
    """Control channel to the scan device peer over WebSocket."""

    def __init__(
        self, url: str | None = None, *, connector: Connector = connect
    ) -> None:
        self.url = url or get_settings().scanner.peer_url
        self._connector = connector
        self._ws: ClientConnection | None = None

    @override
    async def open(self) -> None:
        try:
            self._ws = await self._connector(self.url)
        except _TRANSPORT_ERRORS as e:
            raise ScannerConnectionError(
                f"Unable to reach the scanner: {e}"
            ) from e
        logger.info("Scan control channel open to %s", self.url)

    @override
    async def send(self, instruction: str) -> None:
        if self._ws is None:
            raise ScannerConnectionError("Scan control channel is not open")
        try:
            await self._ws.send(json.dumps({"command": instruction}))
        except ConnectionClosed as e:
            raise ScannerConnectionError(f"Scanner connection lost: {e}") from e

    @override
    async def messages(self) -> AsyncIterator[StatusMessage]:
        if self._ws is None:
            return
        try:
            async for raw in self._ws:
                try:
                    message = json.loads(raw)
                except (ValueError, RecursionError) as e:
                    logger.warning("Invalid message from scanner: %s", e)
                    continue
                if isinstance(message, dict):
                    yield message
        except ConnectionClosed as e:
            raise ScannerConnectionError(f"Scanner connection lost: {e}") from e

    @override
    async def close(self) -> None:
        if self._ws is not None:
            with suppress(Exception):
                await self._ws.close()
            self._ws = None


class SimulatedControlChannel(ControlChannel):
    """Fake scan peer that completes after a fixed delay.

    Needs no network: it renders a demo page into the artifact store and
    reports it the way a real peer would.
    """

    def __init__(
        self,
        store: ArtifactStore,
        *,
        delay_sec: float | None = None,
    ) -> None:
        self._store = store
        self._delay_sec = (
            delay_sec
            if delay_sec is not None
            else get_settings().scanner.simulated_delay_sec
        )
        self._queue: asyncio.Queue[StatusMessage | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @override
    async def open(self) -> None:
        logger.info("Using simulated scanner")

    @override
    async def send(self, instruction: str) -> None:
        if instruction != START_INSTRUCTION:
            logger.debug("Simulated scanner ignoring %r", instruction)
            return
        if self._task is None:
            self._task = asyncio.create_task(self._simulate())

    async def _simulate(self) -> None:
        await self._queue.put(progress_message("Mock scan started"))
        await asyncio.sleep(self._delay_sec)
        try:
            name = self._store.new_name()
            data = await asyncio.to_thread(render_demo_scan, name)
            self._store.write(name, data)
        except (ArtifactError, OSError) as e:
            logger.error("Simulated scan failed: %s", e)
            await self._queue.put(error_message(str(e)))
            return
        await self._queue.put(completed_message(name))

    @override
    async def messages(self) -> AsyncIterator[StatusMessage]:
        while True:
            message = await self._queue.get()
            if message is None:
                return
            yield message

    @override
    async def close(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._queue.put_nowait(None)
