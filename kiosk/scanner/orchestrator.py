"""Scan job state machine.

Drives one physical scan at a time through
``idle -> connecting -> scanning -> completed | error``. A job leaves a
terminal state only when the operator dismisses it or starts a new scan.
"""
import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from kiosk.lib.config import MessageType, ScanStatus
from kiosk.lib.exceptions import ScannerError
from kiosk.logging import get_logger
from kiosk.scanner.channel import START_INSTRUCTION, ControlChannel

logger = get_logger("scanner.orchestrator")

type ChannelFactory = Callable[[], ControlChannel]

CONNECTION_ERROR = "Unable to connect to the scanner"
CLOSED_ERROR = "Scanner closed the connection before finishing"
TIMEOUT_ERROR = "Scanner did not respond in time"


@dataclass(frozen=True, slots=True)
class ScanJob:
    """Snapshot of the tracked scan."""

    job_id: str | None = None
    status: ScanStatus = ScanStatus.IDLE
    route_path: str | None = None
    file_name: str | None = None
    error: str | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobId": self.job_id,
            "status": self.status,
            "routePath": self.route_path,
            "fileName": self.file_name,
            "error": self.error,
            "message": self.message,
        }


class ScanOrchestrator:
    """Owns the single active ScanJob of a kiosk."""

    def __init__(
        self,
        channel_factory: ChannelFactory,
        *,
        timeout_sec: float | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            channel_factory: Creates a fresh control channel per scan.
            timeout_sec: Optional limit on a scan; None waits indefinitely.
        """
        self._channel_factory = channel_factory
        self._timeout_sec = timeout_sec
        self._job = ScanJob()
        self._task: asyncio.Task[None] | None = None

    @property
    def job(self) -> ScanJob:
        return self._job

    def _update(self, **changes: Any) -> None:
        previous = self._job.status
        self._job = replace(self._job, **changes)
        if self._job.status != previous:
            logger.info(
                "Scan %s: %s -> %s", self._job.job_id, previous, self._job.status
            )

    def start_scan(self) -> bool:
        """Begin a new scan.

        A finished job is replaced. While a scan is connecting or scanning
        the request is rejected, not queued.

        Returns:
            True if a scan was started.
        """
        if self._job.status.is_active:
            logger.info(
                "Scan %s already %s, ignoring start request",
                self._job.job_id, self._job.status,
            )
            return False
        self._job = ScanJob(
            job_id=uuid.uuid4().hex, status=ScanStatus.CONNECTING
        )
        logger.info("Scan %s: connecting", self._job.job_id)
        self._task = asyncio.create_task(self._drive(self._job.job_id))
        return True

    def dismiss(self) -> bool:
        """Reset a finished job to idle.

        Returns:
            True if there was a finished job to dismiss.
        """
        if not self._job.status.is_terminal:
            return False
        logger.info("Scan %s dismissed", self._job.job_id)
        self._job = ScanJob()
        return True

    def handle_message(self, message: dict[str, Any]) -> bool:
        """Apply one status message from the scan peer.

        Messages arriving outside the scanning state belong to an earlier
        job and are ignored.

        Returns:
            True if the message ended the job.
        """
        if self._job.status != ScanStatus.SCANNING:
            logger.debug("Ignoring stale scanner message: %s", message)
            return False

        status = message.get("status")
        if status == ScanStatus.COMPLETED:
            self._update(
                status=ScanStatus.COMPLETED,
                route_path=message.get("routePath"),
                file_name=message.get("fileName"),
            )
            return True
        if status == ScanStatus.ERROR:
            self._update(
                status=ScanStatus.ERROR,
                error=str(message.get("error") or "Unknown scanner error"),
            )
            return True
        if message.get("type") == MessageType.MESSAGE:
            self._update(message=str(message.get("message", "")))
        return False

    def _fail(self, error: str) -> None:
        if self._job.status.is_active:
            self._update(status=ScanStatus.ERROR, error=error)

    async def _drive(self, job_id: str) -> None:
        channel = self._channel_factory()
        try:
            async with asyncio.timeout(self._timeout_sec):
                await self._run_channel(channel)
        except TimeoutError:
            logger.warning("Scan %s timed out", job_id)
            self._fail(TIMEOUT_ERROR)
        except ScannerError as e:
            logger.error("Scan %s failed: %s", job_id, e)
            if self._job.status == ScanStatus.CONNECTING:
                self._fail(CONNECTION_ERROR)
            else:
                self._fail(str(e))
        except Exception:
            logger.exception("Scan %s crashed", job_id)
            self._fail("Unexpected scanner error")
        finally:
            await channel.close()

    async def _run_channel(self, channel: ControlChannel) -> None:
        await channel.open()
        self._update(status=ScanStatus.SCANNING)
        await channel.send(START_INSTRUCTION)
        async for message in channel.messages():
            if self.handle_message(message):
                return
        self._fail(CLOSED_ERROR)

    async def wait(self) -> None:
        """Wait for the current scan task to finish."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def close(self) -> None:
        """Abandon any in-flight scan and reset to idle."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._job = ScanJob()
