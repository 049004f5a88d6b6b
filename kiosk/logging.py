"""Shared log setup for the hub, the kiosk server and the scan peer."""

import logging
import sys

_configured = False

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"

# Third-party loggers that only repeat what our own connection logs say
_QUIET_LOGGERS = ("uvicorn.protocols.websockets", "websockets", "httpx")


def configure(level: int = logging.INFO) -> None:
    """Attach one stderr handler to the `kiosk` and `uvicorn` loggers.

    Every service entry point calls this; calls after the first are no-ops.
    """
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    kiosk_log = logging.getLogger("kiosk")
    kiosk_log.setLevel(level)
    kiosk_log.addHandler(handler)

    # uvicorn.error and uvicorn.access propagate here
    uv_log = logging.getLogger("uvicorn")
    uv_log.handlers.clear()
    uv_log.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return the `kiosk.<name>` logger, e.g. `get_logger("hub.relay")`."""
    return logging.getLogger(f"kiosk.{name}")
