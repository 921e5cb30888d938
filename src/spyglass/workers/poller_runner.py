"""Standalone runner for the sync poller.

Usage: python -m spyglass.workers.poller_runner

Use this instead of the in-app poller (set SPYGLASS_POLLER_ENABLED=false
on the API) when the API runs with more than one worker process; only
one poller may run at a time.
"""

from __future__ import annotations

import asyncio
import logging
import signal

from spyglass.config import get_settings
from spyglass.middleware.logging import setup_logging
from spyglass.services import Services

logger = logging.getLogger(__name__)


async def main() -> None:
    """Run the poller until SIGINT or SIGTERM."""
    settings = get_settings()
    setup_logging(settings)

    services = Services.from_settings(settings)
    await services.open()

    # Stop scheduling ticks on signal; the in-flight tick completes first
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, services.poller.stop)

    logger.info("Starting sync poller (interval=%ss)", settings.poll_interval_seconds)

    try:
        await services.poller.run()
    finally:
        await services.close()
        logger.info("Sync poller shut down")


if __name__ == "__main__":
    asyncio.run(main())
