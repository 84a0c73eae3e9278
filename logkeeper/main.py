"""
logkeeper - Main entry point.

Configures a log directory from the environment, writes one record per
level, and keeps the sinks and the size watcher running until SIGINT or
SIGTERM.

Usage:
    LOG_DIR=logs LOG_FLUSH_INTERVAL_SECONDS=30 python -m logkeeper.main

Configuration is entirely via environment variables.
See config.py for all available settings.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from .config import LogKeeperConfig
from .lifecycle import LogLifecycle
from .sinks import VERBOSE, build_formatter, verbose

logger = logging.getLogger(__name__)


def setup_logging(config: LogKeeperConfig) -> None:
    """Configure console logging and open the root logger to every level.

    Args:
        config: logkeeper configuration
    """
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    handler.setFormatter(build_formatter(config.log_format))

    root_logger = logging.getLogger()
    root_logger.setLevel(VERBOSE)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)


async def run(lifecycle: LogLifecycle, shutdown_event: asyncio.Event) -> None:
    """Start the lifecycle, emit sample records and wait for shutdown."""
    await lifecycle.start()
    lifecycle.config.log_config()

    # Writes to debug.log
    verbose(logger, "hello world")
    logger.debug("hello world")

    # Writes to latest.log
    logger.info("hello world")
    logger.warning("hello world")

    # Writes to error.log
    logger.error("hello world")
    logger.critical("hello world")

    await shutdown_event.wait()


def main() -> None:
    """Main entry point."""
    try:
        config = LogKeeperConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    lifecycle = LogLifecycle(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    shutdown_event = asyncio.Event()

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        loop.run_until_complete(run(lifecycle, shutdown_event))
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(lifecycle.close())
        loop.close()


if __name__ == "__main__":
    main()
