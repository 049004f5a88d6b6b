"""Kiosk dashboard server entrypoint.

Usage: python -m kiosk.server
"""
import uvicorn

from kiosk.lib.config import get_settings


def main() -> None:
    """Run the kiosk server."""
    cfg = get_settings().server
    uvicorn.run(
        "kiosk.server:create_app",
        factory=True,
        host=cfg.host,
        port=cfg.port,
    )


if __name__ == "__main__":
    main()
