"""In-memory telemetry relay.

One producer streams readings in, any number of dashboards listen. Every
frame a peer sends is rebroadcast to all attached peers, the sender
included. Liveness is tracked at the transport level: the server sends
WebSocket protocol pings and drops peers that stop answering, which ends
their receive loop with a disconnect.
"""
import asyncio
import json
from contextlib import suppress
from typing import Any

from starlette import status
from starlette.websockets import WebSocket, WebSocketDisconnect

from kiosk.lib.config import MessageType, get_settings
from kiosk.logging import get_logger

_logger = get_logger("hub.relay")

type Message = dict[str, Any]

_SEND_ERRORS = (WebSocketDisconnect, RuntimeError, OSError)


class Peer:
    """An attached connection and its outbound queue.

    Frames are written by a dedicated task so a stalled peer never blocks
    the broadcaster. When the queue is full the oldest frame is dropped.
    """

    def __init__(self, websocket: WebSocket, queue_size: int) -> None:
        self.websocket = websocket
        self.id = id(websocket)
        client = getattr(websocket, "client", None)
        self.address = getattr(client, "host", None) or "unknown"
        self.closed = False
        self.dropped = 0
        self._queue: asyncio.Queue[Message] = asyncio.Queue(maxsize=queue_size)
        self._writer: asyncio.Task[None] | None = None

    def start(self) -> None:
        """Start the writer task."""
        self._writer = asyncio.create_task(self._drain())

    def enqueue(self, message: Message) -> None:
        """Queue a frame for this peer."""
        if self._queue.full():
            self._queue.get_nowait()
            self._queue.task_done()
            self.dropped += 1
            _logger.warning(
                "Peer %s queue full, dropped oldest frame (total: %d)",
                self.id, self.dropped,
            )
        self._queue.put_nowait(message)

    async def flush(self) -> None:
        """Wait until every queued frame was written or discarded."""
        await self._queue.join()

    async def _drain(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                if not self.closed:
                    await self.websocket.send_json(message)
            except _SEND_ERRORS as e:
                _logger.debug("Send to peer %s failed: %s", self.id, e)
                self.closed = True
            finally:
                self._queue.task_done()

    async def stop(self) -> None:
        """Stop the writer and discard pending frames."""
        self.closed = True
        if self._writer is not None:
            self._writer.cancel()
            with suppress(asyncio.CancelledError):
                await self._writer
            self._writer = None
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()


class RelayHub:
    """Registry of attached peers and the broadcast point between them."""

    def __init__(
        self,
        *,
        heartbeat_interval_sec: float | None = None,
        peer_queue_size: int | None = None,
    ) -> None:
        cfg = get_settings().hub
        self.heartbeat_interval_sec = (
            heartbeat_interval_sec or cfg.heartbeat_interval_sec
        )
        self._peer_queue_size = peer_queue_size or cfg.peer_queue_size
        self._peers: dict[int, Peer] = {}

    @property
    def peer_count(self) -> int:
        return len(self._peers)

    def has_peer(self, peer: Peer) -> bool:
        return self._peers.get(peer.id) is peer

    async def accept(self, websocket: WebSocket) -> Peer:
        """Accept a connection, register it and greet it with `ready`."""
        await websocket.accept()
        peer = Peer(websocket, self._peer_queue_size)
        self._peers[peer.id] = peer
        peer.start()
        peer.enqueue({
            "type": MessageType.READY,
            "message": "WebSocket connected",
        })
        _logger.info(
            "Peer %s (%s) connected (total: %d)",
            peer.id, peer.address, self.peer_count,
        )
        return peer

    async def release(self, peer: Peer) -> None:
        """Forget a peer and stop its writer. Safe to call twice."""
        if self._peers.get(peer.id) is not peer:
            return
        del self._peers[peer.id]
        await peer.stop()
        _logger.info(
            "Peer %s (%s) disconnected (remaining: %d)",
            peer.id, peer.address, self.peer_count,
        )

    async def terminate(self, peer: Peer) -> None:
        """Forcibly drop a peer whose connection can no longer be written."""
        _logger.warning("Terminating dead peer %s (%s)", peer.id, peer.address)
        await self.release(peer)
        with suppress(Exception):
            await peer.websocket.close(code=status.WS_1001_GOING_AWAY)

    def on_message(self, peer: Peer, raw: str | bytes) -> None:
        """Route one inbound frame from a peer.

        `{"command": str}` frames are rebroadcast as commands, any other
        JSON object is rebroadcast as a reading. Anything else is answered
        with an error to the sender, which stays attached.
        """
        try:
            payload = json.loads(raw)
        except (ValueError, RecursionError) as e:
            # Also covers integers past the int conversion limit
            self._reject(peer, f"Invalid JSON payload: {e}")
            return

        if not isinstance(payload, dict):
            self._reject(
                peer, f"Expected JSON object, got {type(payload).__name__}"
            )
            return

        command = payload.get("command")
        if isinstance(command, str):
            count = self.broadcast({"type": MessageType.COMMAND, "command": command})
            _logger.info("Relayed command %r from peer %s to %d peers", command, peer.id, count)
            return

        count = self.broadcast({"type": MessageType.SENSOR_DATA, "payload": payload})
        _logger.debug("Relayed reading from peer %s to %d peers", peer.id, count)

    def _reject(self, peer: Peer, reason: str) -> None:
        _logger.warning("Rejected frame from peer %s: %s", peer.id, reason)
        peer.enqueue({"type": MessageType.ERROR, "message": "Invalid JSON payload"})

    def broadcast(self, message: Message) -> int:
        """Queue a frame for every live peer.

        Returns:
            The number of peers the frame was queued for.
        """
        sent_count = 0
        for peer in list(self._peers.values()):
            if peer.closed:
                continue
            peer.enqueue(message)
            sent_count += 1
        return sent_count

    async def flush(self) -> None:
        """Wait until all queued frames were handed to the transport."""
        await asyncio.gather(*(peer.flush() for peer in list(self._peers.values())))

    async def sweep(self) -> None:
        """Terminate peers whose writer failed.

        Silent peers are not touched here; unanswered protocol pings close
        them at the transport and `serve` releases them.
        """
        for peer in list(self._peers.values()):
            if peer.closed:
                await self.terminate(peer)

    async def run_sweeper(self) -> None:
        """Sweep dead peers forever at the heartbeat interval."""
        while True:
            await asyncio.sleep(self.heartbeat_interval_sec)
            await self.sweep()

    async def serve(self, websocket: WebSocket) -> None:
        """Handle one peer connection for its whole lifetime."""
        peer = await self.accept(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                self.on_message(peer, raw)
        except (WebSocketDisconnect, RuntimeError):
            pass
        except asyncio.CancelledError:
            _logger.info("Connection to peer %s cancelled (shutdown)", peer.id)
            raise
        finally:
            await self.release(peer)
            with suppress(Exception):
                await websocket.close()

    async def close(self) -> None:
        """Disconnect every peer."""
        for peer in list(self._peers.values()):
            await self.release(peer)
            with suppress(Exception):
                await peer.websocket.close(code=status.WS_1001_GOING_AWAY)
