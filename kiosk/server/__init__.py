"""Application factory for the kiosk dashboard server."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket

from kiosk.delivery import DeliveryWorkflow, MailGateway
from kiosk.lib.artifacts import ArtifactStore
from kiosk.lib.config import get_settings
from kiosk.logging import configure, get_logger
from kiosk.scanner import ScanDevice, ScanOrchestrator, get_channel_factory
from kiosk.telemetry import TelemetryClient

from .api.artifacts import get_artifact
from .api.delivery import (
    cancel_recipient,
    choose_distribution,
    confirm_recipient,
    get_delivery,
    submit_recipient,
)
from .api.health import health_check
from .api.scan import dismiss_scan, get_scan, start_scan
from .api.sensors import get_sensors, send_command

_logger = get_logger("server.entrypoint")


async def ws_scan(websocket: WebSocket) -> None:
    """Scan device control channel."""
    await websocket.app.state.device.serve(websocket)


@asynccontextmanager
async def lifespan(app: Starlette) -> AsyncIterator[None]:
    """Build the kiosk components and tear them down on shutdown.

    One kiosk owns one telemetry client, one scan orchestrator and one
    delivery workflow.
    """
    settings = get_settings()
    state = app.state
    state.settings = settings
    state.store = ArtifactStore()
    state.device = ScanDevice(state.store)
    state.orchestrator = ScanOrchestrator(
        get_channel_factory(state.store),
        timeout_sec=settings.scanner.timeout_sec,
    )
    state.gateway = MailGateway()
    state.workflow = DeliveryWorkflow(state.gateway, state.store)
    state.telemetry = TelemetryClient()
    state.telemetry.start()
    _logger.info(
        "Kiosk started (scans in %s, %s scanner)",
        state.store.root,
        "simulated" if settings.scanner.simulated else "real",
    )

    try:
        yield
    finally:
        await state.telemetry.stop()
        await state.orchestrator.close()
        await state.gateway.aclose()
        _logger.info("Kiosk stopped")


def create_app() -> Starlette:
    """Create and configure the Starlette application.

    Returns:
        Configured Starlette application instance.
    """
    configure()

    routes = [
        Route("/health", health_check),
        Route("/api/sensors", get_sensors),
        Route("/api/commands", send_command, methods=["POST"]),
        Route("/api/scan", get_scan),
        Route("/api/scan", start_scan, methods=["POST"]),
        Route("/api/scan", dismiss_scan, methods=["DELETE"]),
        Route("/api/delivery", get_delivery),
        Route("/api/delivery", choose_distribution, methods=["POST"]),
        Route("/api/delivery/submit", submit_recipient, methods=["POST"]),
        Route("/api/delivery/confirm", confirm_recipient, methods=["POST"]),
        Route("/api/delivery/cancel", cancel_recipient, methods=["POST"]),
        Route("/scans/{file}", get_artifact),
        WebSocketRoute("/ws/scan", ws_scan),
    ]

    return Starlette(routes=routes, lifespan=lifespan)
