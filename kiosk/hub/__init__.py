"""Application factory for the telemetry relay hub."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket

from kiosk.logging import configure, get_logger

from .relay import Peer, RelayHub

__all__ = ["Peer", "RelayHub", "create_app"]

_logger = get_logger("hub")


async def relay_endpoint(websocket: WebSocket) -> None:
    """Attach a producer or dashboard to the relay."""
    await websocket.app.state.hub.serve(websocket)


async def health_check(request: Request) -> JSONResponse:
    """Report the number of attached peers."""
    hub: RelayHub = request.app.state.hub
    return JSONResponse({"status": "healthy", "peers": hub.peer_count})


def create_app(hub: RelayHub | None = None) -> Starlette:
    """Create the relay application.

    Args:
        hub: Relay registry to serve. A new one is created if omitted.

    Returns:
        Configured Starlette application instance.
    """
    configure()
    relay = hub if hub is not None else RelayHub()

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        """Sweep dead peers for as long as the hub is up."""
        sweeper_task = asyncio.create_task(relay.run_sweeper())
        _logger.info(
            "Relay hub started (peer sweep every %ss)",
            relay.heartbeat_interval_sec,
        )
        try:
            yield
        finally:
            sweeper_task.cancel()
            try:
                await sweeper_task
            except asyncio.CancelledError:
                pass
            await relay.close()
            _logger.info("Relay hub stopped")

    routes = [
        Route("/health", health_check),
        WebSocketRoute("/", relay_endpoint),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)
    app.state.hub = relay
    return app
