"""Scan device peer.

Serves the scan control channel: on a ``startScan`` instruction it
reserves a free artifact name, runs the scanner command line tool and
reports the outcome back on the same connection.
"""
import asyncio
import json
from contextlib import suppress

from starlette.websockets import WebSocket, WebSocketDisconnect

from kiosk.lib.artifacts import ArtifactStore
from kiosk.lib.config import get_settings
from kiosk.lib.exceptions import ArtifactError
from kiosk.logging import get_logger
from kiosk.scanner.channel import (
    START_INSTRUCTION,
    StatusMessage,
    completed_message,
    error_message,
    progress_message,
)

logger = get_logger("scanner.device")

_EXTENSIONS = {"jpeg": "jpg"}


class ScanDevice:
    """Runs the physical scanner through its command line tool."""

    def __init__(
        self,
        store: ArtifactStore,
        *,
        command: str | None = None,
        mode: str | None = None,
        image_format: str | None = None,
    ) -> None:
        cfg = get_settings().scanner
        self._store = store
        self.command = command or cfg.command
        self.mode = mode or cfg.mode
        self.image_format = image_format or cfg.image_format
        self._lock = asyncio.Lock()

    @property
    def extension(self) -> str:
        return _EXTENSIONS.get(self.image_format, self.image_format)

    def build_command(self, output_file: str) -> list[str]:
        """Argument vector for one scan into `output_file`."""
        return [
            self.command,
            f"--format={self.image_format}",
            "--mode",
            self.mode,
            f"--output-file={output_file}",
        ]

    async def scan(self) -> StatusMessage:
        """Run one scan and return the terminal status message."""
        async with self._lock:
            try:
                name = self._store.new_name(extension=self.extension)
                output = self._store.path_for(name)
                output.parent.mkdir(parents=True, exist_ok=True)
            except (ArtifactError, OSError) as e:
                logger.error("Cannot prepare scan output: %s", e)
                return error_message(str(e))

            argv = self.build_command(str(output))
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                logger.error("Cannot start %s: %s", self.command, e)
                return error_message(f"Cannot start {self.command}: {e}")

            try:
                _, stderr = await process.communicate()
            except asyncio.CancelledError:
                logger.warning("Scan cancelled, stopping %s", self.command)
                with suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
                raise
            if process.returncode != 0:
                detail = stderr.decode(errors="replace").strip()
                logger.error(
                    "Scan failed (exit %s): %s", process.returncode, detail
                )
                return error_message(
                    detail or f"{self.command} exited with {process.returncode}"
                )

            logger.info("Scan completed: %s", name)
            return completed_message(name)

    async def serve(self, websocket: WebSocket) -> None:
        """Handle one orchestrator connection."""
        await websocket.accept()
        client_id = id(websocket)
        logger.info("Scan client %s connected", client_id)
        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                raw = frame.get("text")
                if raw is None:
                    raw = frame.get("bytes") or b""
                try:
                    message = json.loads(raw)
                except (ValueError, RecursionError):
                    await websocket.send_json(error_message("Invalid JSON payload"))
                    continue

                instruction = (
                    message.get("command") if isinstance(message, dict) else None
                )
                if instruction != START_INSTRUCTION:
                    logger.warning("Unknown scan instruction: %r", instruction)
                    await websocket.send_json(
                        error_message(f"Unknown instruction: {instruction}")
                    )
                    continue

                await websocket.send_json(progress_message("Scan started"))
                await websocket.send_json(await self.scan())
        except WebSocketDisconnect:
            pass
        except asyncio.CancelledError:
            logger.info("Scan client %s cancelled (shutdown)", client_id)
            raise
        finally:
            logger.info("Scan client %s disconnected", client_id)
            with suppress(Exception):
                await websocket.close()
