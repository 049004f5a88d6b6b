"""Scan job endpoints."""

from starlette.requests import Request
from starlette.responses import JSONResponse

from kiosk.scanner import ScanOrchestrator


def _orchestrator(request: Request) -> ScanOrchestrator:
    return request.app.state.orchestrator


async def get_scan(request: Request) -> JSONResponse:
    """Return the current scan job."""
    return JSONResponse(_orchestrator(request).job.to_dict())


async def start_scan(request: Request) -> JSONResponse:
    """Start a scan; 409 while one is already running."""
    orchestrator = _orchestrator(request)
    if not orchestrator.start_scan():
        return JSONResponse(
            {"error": "A scan is already in progress", **orchestrator.job.to_dict()},
            status_code=409,
        )
    return JSONResponse(orchestrator.job.to_dict(), status_code=202)


async def dismiss_scan(request: Request) -> JSONResponse:
    """Dismiss a finished scan; 409 if none is finished."""
    orchestrator = _orchestrator(request)
    if not orchestrator.dismiss():
        return JSONResponse(
            {"error": "No finished scan to dismiss", **orchestrator.job.to_dict()},
            status_code=409,
        )
    return JSONResponse(orchestrator.job.to_dict())
