"""Telemetry relay hub entrypoint.

Serves the relay with uvicorn. A failure to bind the listen address is
fatal and exits the process.

Peer liveness uses WebSocket protocol pings sent by uvicorn: a peer that
has not answered one ping before the next is due is disconnected. Any
standard WebSocket stack answers these pings on its own.

Usage: python -m kiosk.hub
"""
import uvicorn

from kiosk.lib.config import get_settings


def main() -> None:
    """Run the relay hub."""
    cfg = get_settings().hub
    uvicorn.run(
        "kiosk.hub:create_app",
        factory=True,
        host=cfg.host,
        port=cfg.port,
        ws="websockets",
        ws_ping_interval=cfg.heartbeat_interval_sec,
        ws_ping_timeout=cfg.heartbeat_interval_sec,
    )


if __name__ == "__main__":
    main()
