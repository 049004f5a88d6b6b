"""Tests for the scan job state machine."""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosed

from kiosk.lib.config import ScanStatus
from kiosk.lib.exceptions import ScannerConnectionError
from kiosk.scanner.channel import (
    START_INSTRUCTION,
    SimulatedControlChannel,
    WebSocketControlChannel,
    completed_message,
    error_message,
    progress_message,
)
from kiosk.scanner.orchestrator import (
    CLOSED_ERROR,
    CONNECTION_ERROR,
    TIMEOUT_ERROR,
    ScanOrchestrator,
)


class FakeChannel:
    """Scripted control channel."""

    def __init__(self, *, fail_open: bool = False) -> None:
        self.fail_open = fail_open
        self.sent: list[str] = []
        self.closed = False
        self._incoming: asyncio.Queue[dict | None] = asyncio.Queue()

    async def open(self) -> None:
        if self.fail_open:
            raise ScannerConnectionError()

    async def send(self, instruction: str) -> None:
        self.sent.append(instruction)

    async def messages(self):
        while True:
            message = await self._incoming.get()
            if message is None:
                return
            yield message

    async def close(self) -> None:
        self.closed = True

    def push(self, message: dict | None) -> None:
        self._incoming.put_nowait(message)


class ChannelFactory:
    """Creates FakeChannels and remembers them."""

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.channels: list[FakeChannel] = []

    def __call__(self) -> FakeChannel:
        channel = FakeChannel(**self.kwargs)
        self.channels.append(channel)
        return channel

    @property
    def last(self) -> FakeChannel:
        return self.channels[-1]


async def _scanning(orchestrator: ScanOrchestrator, wait_until) -> None:
    await wait_until(lambda: orchestrator.job.status == ScanStatus.SCANNING)


class TestStartScan:
    """Tests for starting scans."""

    @pytest.mark.asyncio
    async def test_connects_then_scans(self, wait_until):
        """A scan opens the channel and sends one start instruction."""
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory)

        assert orchestrator.start_scan() is True
        assert orchestrator.job.status == ScanStatus.CONNECTING
        assert orchestrator.job.job_id

        await _scanning(orchestrator, wait_until)
        assert factory.last.sent == [START_INSTRUCTION]
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_rejected_while_active(self, wait_until):
        """A second start leaves the running job untouched."""
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()
        await _scanning(orchestrator, wait_until)
        job = orchestrator.job

        assert orchestrator.start_scan() is False
        assert orchestrator.job == job
        assert len(factory.channels) == 1
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_rejected_while_connecting(self):
        """Starting again before the channel opens is also rejected."""
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()

        assert orchestrator.start_scan() is False
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_finished_job_is_replaced(self, wait_until):
        """A new scan after completion gets a fresh job."""
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()
        await _scanning(orchestrator, wait_until)
        factory.last.push(completed_message("scan_1234.png"))
        await orchestrator.wait()
        first_id = orchestrator.job.job_id

        assert orchestrator.start_scan() is True
        assert orchestrator.job.job_id != first_id
        assert orchestrator.job.file_name is None
        await orchestrator.close()


class TestTransitions:
    """Tests for terminal transitions."""

    @pytest.mark.asyncio
    async def test_completion(self, wait_until):
        """A completed message records the artifact."""
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()
        await _scanning(orchestrator, wait_until)

        factory.last.push(completed_message("scan_1234.png"))
        await orchestrator.wait()

        job = orchestrator.job
        assert job.status == ScanStatus.COMPLETED
        assert job.file_name == "scan_1234.png"
        assert job.route_path == "/scans/scan_1234.png"
        assert job.error is None
        assert factory.last.closed is True

    @pytest.mark.asyncio
    async def test_peer_error(self, wait_until):
        """An error message ends the job with its cause."""
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()
        await _scanning(orchestrator, wait_until)

        factory.last.push(error_message("Paper jam"))
        await orchestrator.wait()

        assert orchestrator.job.status == ScanStatus.ERROR
        assert orchestrator.job.error == "Paper jam"
        assert orchestrator.job.file_name is None

    @pytest.mark.asyncio
    async def test_progress_does_not_change_state(self, wait_until):
        """Progress text is recorded while scanning continues."""
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()
        await _scanning(orchestrator, wait_until)

        factory.last.push(progress_message("Scan started"))
        await wait_until(lambda: orchestrator.job.message == "Scan started")

        assert orchestrator.job.status == ScanStatus.SCANNING
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        """A channel that cannot open ends in a connection error."""
        factory = ChannelFactory(fail_open=True)
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()

        await orchestrator.wait()

        assert orchestrator.job.status == ScanStatus.ERROR
        assert orchestrator.job.error == CONNECTION_ERROR
        assert factory.last.sent == []
        assert orchestrator.start_scan() is True
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_channel_closed_early(self, wait_until):
        """A channel that ends without a verdict fails the job."""
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()
        await _scanning(orchestrator, wait_until)

        factory.last.push(None)
        await orchestrator.wait()

        assert orchestrator.job.status == ScanStatus.ERROR
        assert orchestrator.job.error == CLOSED_ERROR

    @pytest.mark.asyncio
    async def test_timeout(self):
        """A silent peer fails the job once the timeout elapses."""
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory, timeout_sec=0.05)
        orchestrator.start_scan()

        await asyncio.wait_for(orchestrator.wait(), timeout=1)

        assert orchestrator.job.status == ScanStatus.ERROR
        assert orchestrator.job.error == TIMEOUT_ERROR
        assert factory.last.closed is True


class TestStaleMessages:
    """Tests for messages that arrive outside the scanning state."""

    def test_ignored_when_idle(self):
        """Messages without an active scan change nothing."""
        orchestrator = ScanOrchestrator(ChannelFactory())

        assert orchestrator.handle_message(completed_message("scan_1.png")) is False
        assert orchestrator.job.status == ScanStatus.IDLE

    @pytest.mark.asyncio
    async def test_ignored_after_completion(self, wait_until):
        """A late error does not overwrite a completed job."""
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()
        await _scanning(orchestrator, wait_until)
        factory.last.push(completed_message("scan_1234.png"))
        await orchestrator.wait()
        job = orchestrator.job

        assert orchestrator.handle_message(error_message("late")) is False
        assert orchestrator.job == job


class TestDismiss:
    """Tests for dismissing finished jobs."""

    @pytest.mark.asyncio
    async def test_finished_job_returns_to_idle(self):
        factory = ChannelFactory(fail_open=True)
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()
        await orchestrator.wait()

        assert orchestrator.dismiss() is True
        assert orchestrator.job.status == ScanStatus.IDLE
        assert orchestrator.job.job_id is None

    @pytest.mark.asyncio
    async def test_running_job_is_kept(self, wait_until):
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()
        await _scanning(orchestrator, wait_until)

        assert orchestrator.dismiss() is False
        assert orchestrator.job.status == ScanStatus.SCANNING
        await orchestrator.close()

    @pytest.mark.asyncio
    async def test_close_abandons_scan(self, wait_until):
        """Closing cancels the in-flight scan and releases the channel."""
        factory = ChannelFactory()
        orchestrator = ScanOrchestrator(factory)
        orchestrator.start_scan()
        await _scanning(orchestrator, wait_until)

        await orchestrator.close()

        assert orchestrator.job.status == ScanStatus.IDLE
        assert factory.last.closed is True


class TestSimulatedChannel:
    """Tests for the demo mode scan peer."""

    @pytest.mark.asyncio
    async def test_produces_png_artifact(self, store):
        """A simulated scan stores a PNG and reports it."""
        orchestrator = ScanOrchestrator(
            lambda: SimulatedControlChannel(store, delay_sec=0)
        )
        orchestrator.start_scan()

        await asyncio.wait_for(orchestrator.wait(), timeout=5)

        job = orchestrator.job
        assert job.status == ScanStatus.COMPLETED
        assert job.message == "Mock scan started"
        data, content_type = store.read(job.file_name)
        assert data.startswith(b"\x89PNG")
        assert content_type == "image/png"

    @pytest.mark.asyncio
    async def test_ignores_unknown_instruction(self, store):
        channel = SimulatedControlChannel(store, delay_sec=0)
        await channel.open()
        await channel.send("stopScan")
        await channel.close()

        assert [m async for m in channel.messages()] == []


class FakeClientConnection:
    """Minimal websockets client connection."""

    def __init__(self, frames: list[str], *, fail: bool = False) -> None:
        self.sent: list[dict] = []
        self.closed = False
        self._frames = frames
        self._fail = fail

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def __aiter__(self):
        for frame in self._frames:
            yield frame
        if self._fail:
            raise ConnectionClosed(None, None)

    async def close(self) -> None:
        self.closed = True


class TestWebSocketControlChannel:
    """Tests for the WebSocket control channel."""

    @pytest.mark.asyncio
    async def test_unreachable_peer(self):
        """Transport errors on open become ScannerConnectionError."""

        async def refuse(url):
            raise OSError("Connection refused")

        channel = WebSocketControlChannel("ws://scanner.test", connector=refuse)

        with pytest.raises(ScannerConnectionError):
            await channel.open()

    @pytest.mark.asyncio
    async def test_exchanges_messages(self):
        """Instructions go out as JSON; valid objects come back."""
        conn = FakeClientConnection([
            "not json",
            json.dumps(progress_message("Scan started")),
            json.dumps([1]),
            json.dumps(completed_message("scan_1234.png")),
        ])

        async def connector(url):
            return conn

        channel = WebSocketControlChannel("ws://scanner.test", connector=connector)
        await channel.open()
        await channel.send(START_INSTRUCTION)
        received = [m async for m in channel.messages()]
        await channel.close()

        assert conn.sent == [{"command": "startScan"}]
        assert [m.get("type") or m.get("status") for m in received] == [
            "message",
            "completed",
        ]
        assert conn.closed is True

    @pytest.mark.asyncio
    async def test_dropped_connection(self):
        """A connection lost mid-scan raises ScannerConnectionError."""
        conn = FakeClientConnection([], fail=True)

        async def connector(url):
            return conn

        channel = WebSocketControlChannel("ws://scanner.test", connector=connector)
        await channel.open()

        with pytest.raises(ScannerConnectionError):
            [m async for m in channel.messages()]

    @pytest.mark.asyncio
    async def test_send_before_open(self):
        channel = WebSocketControlChannel("ws://scanner.test")

        with pytest.raises(ScannerConnectionError):
            await channel.send(START_INSTRUCTION)
