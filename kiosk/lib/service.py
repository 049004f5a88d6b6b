"""Service runner utility for long-running asyncio services."""

import asyncio
import signal
from collections.abc import Callable, Coroutine
from contextlib import suppress
from typing import Any

from kiosk.logging import configure, get_logger


def run_service(
    main: Callable[[], Coroutine[Any, Any, None]],
    *,
    name: str = "service",
) -> None:
    """Run an async service with signal handling.

    Configures logging, cancels the service on SIGTERM/SIGINT so its
    cleanup code runs, then closes the loop.

    Args:
        main: Async function to run (typically named ``run``).
        name: Service name for logging.
    """
    logger = get_logger(f"{name}.service")

    configure()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    task = loop.create_task(main())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, task.cancel)

    logger.info("%s service starting", name.capitalize())
    with suppress(asyncio.CancelledError, KeyboardInterrupt):
        loop.run_until_complete(task)
    loop.close()
    logger.info("%s service stopped", name.capitalize())
