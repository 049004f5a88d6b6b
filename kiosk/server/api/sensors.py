"""Telemetry endpoints: latest reading and relayed commands."""

from starlette.requests import Request
from starlette.responses import JSONResponse

from kiosk.logging import get_logger
from kiosk.server.validators import CommandRequest, InvalidBody, parse_body

logger = get_logger("server.api.sensors")


async def get_sensors(request: Request) -> JSONResponse:
    """Return the most recent reading and the hub connectivity flag."""
    telemetry = request.app.state.telemetry
    latest = telemetry.latest
    return JSONResponse(
        {
            "isOnline": telemetry.connected,
            "data": latest.to_dict() if latest else None,
        }
    )


async def send_command(request: Request) -> JSONResponse:
    """Relay a command through the hub.

    `sent` is False when the hub is unreachable; the command is dropped.
    """
    try:
        body = await parse_body(request, CommandRequest)
    except InvalidBody as e:
        return e.response

    sent = await request.app.state.telemetry.send_command(body.command)
    if not sent:
        logger.info("Command %r dropped, hub not connected", body.command)
    return JSONResponse({"sent": sent})
