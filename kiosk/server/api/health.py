"""Health check endpoint for monitoring service status."""

from datetime import UTC, datetime

from starlette.requests import Request
from starlette.responses import JSONResponse


async def health_check(request: Request) -> JSONResponse:
    """Return the kiosk status and the state of its links.

    The kiosk is healthy as long as it serves requests; a lost hub link
    is reported but recovers on its own.
    """
    state = request.app.state
    latest = state.telemetry.latest
    return JSONResponse(
        {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": {
                "telemetry": {
                    "ok": state.telemetry.connected,
                    "last_reading": latest.timestamp if latest else None,
                },
                "scanner": {
                    "simulated": state.settings.scanner.simulated,
                    "status": state.orchestrator.job.status,
                },
            },
        }
    )
