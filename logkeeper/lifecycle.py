"""
Log directory lifecycle for logkeeper.

configure() sets up one log directory and returns a LogLifecycle handle
that owns everything installed for it:
- The Archiver for the directory
- The three severity-routed sink handlers
- The periodic flush task (buffered sinks only)
- The SizeWatcher (only when max_log_size > 0)

Startup order:
    1. Create the directory (errors propagate as LogDirectoryError)
    2. Archive pre-existing logs if archive_old_logs is set
    3. Install the sinks
    4. Start the flush task and the size watcher

Invariants:
    - Archival errors never propagate to callers that emit log records
    - close() is idempotent and releases every resource start() acquired
    - Only one archival runs at a time per directory

How to change safely:
    - Keep the startup order: old logs must be bundled before new sinks
      create fresh files
    - Test shutdown with both buffered and unbuffered sinks
"""

from __future__ import annotations

import asyncio
import atexit
import dataclasses
import logging
from pathlib import Path
from typing import Any

from .archive import Archiver, ArchiveResult
from .config import LogKeeperConfig
from .errors import LogDirectoryError
from .sinks import build_formatter, install_sinks, remove_sinks
from .watch import SizeWatcher, create_size_watcher

logger = logging.getLogger(__name__)


def ensure_directory(directory: str | Path) -> Path:
    """Create the log directory if it does not exist.

    Raises:
        LogDirectoryError: If the directory cannot be created.
    """
    path = Path(directory)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LogDirectoryError(path, str(e)) from e
    if not path.is_dir():
        raise LogDirectoryError(path, "not a directory")
    return path


class LogLifecycle:
    """Handle for one configured log directory.

    Attributes:
        config: Lifecycle configuration
        target: Logger the sinks are attached to
        directory: Managed log directory
        archiver: Archiver for the directory
        watcher: Size watcher, None when size-triggered archival is disabled
        handlers: Installed sink handlers

    Example:
        >>> async with await configure(directory="logs", max_log_size=0) as lifecycle:
        ...     logging.getLogger("app").info("hello world")
    """

    def __init__(self, config: LogKeeperConfig, target: logging.Logger | None = None) -> None:
        """Initialize the lifecycle.

        Args:
            config: Lifecycle configuration
            target: Logger to attach sinks to (root logger if not provided)
        """
        config.validate()
        self.config = config
        self.target = target or logging.getLogger()
        self.directory = Path(config.directory)
        self.archiver = Archiver(
            self.directory,
            max_retries=config.archive_max_retries,
            retry_delay_seconds=config.archive_retry_delay_seconds,
        )
        self.watcher: SizeWatcher | None = None
        self.handlers: list[logging.Handler] = []

        self._running = False
        self._flush_task: asyncio.Task | None = None
        self._atexit_registered = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Prepare the directory, install the sinks and start the triggers.

        Raises:
            LogDirectoryError: If the directory cannot be created.
        """
        if self._running:
            logger.warning(f"Log lifecycle already running for {self.directory}")
            return

        ensure_directory(self.directory)

        if self.config.archive_old_logs:
            result = await self.archiver.archive()
            if result.bundles:
                logger.info(
                    f"Archived {len(result.archived)} old log files in {self.directory}",
                    extra={"bundles": [b.name for b in result.bundles]},
                )

        self._running = True

        try:
            self.handlers = install_sinks(
                self.target,
                self.directory,
                flush_interval=self.config.flush_interval_seconds,
                formatter=build_formatter(self.config.log_format),
                buffer_capacity=self.config.buffer_capacity,
            )

            if self.config.buffered:
                self._flush_task = asyncio.create_task(self._flush_loop())

            self.watcher = create_size_watcher(
                self.directory,
                self.config.max_log_size,
                self.archiver.archive,
                poll_interval_seconds=self.config.watch_poll_seconds,
            )
            if self.watcher is not None:
                await self.watcher.start()
        except Exception:
            await self.close()
            raise

        if self.config.auto_close_and_flush:
            atexit.register(self.close_and_flush)
            self._atexit_registered = True

        logger.info(
            f"Log lifecycle started for {self.directory}",
            extra={
                "buffered": self.config.buffered,
                "size_watch_enabled": self.watcher is not None,
            },
        )

    async def close(self) -> None:
        """Stop the triggers, then flush, close and detach the sinks."""
        was_running = self._running

        if self.watcher is not None:
            await self.watcher.stop()

        if self._flush_task is not None:
            self._flush_task.cancel()
            await asyncio.gather(self._flush_task, return_exceptions=True)
            self._flush_task = None

        self.close_and_flush()
        if was_running:
            logger.info(f"Log lifecycle closed for {self.directory}")

    def close_and_flush(self) -> None:
        """Flush and close the sinks without touching the event loop.

        Registered with atexit when auto_close_and_flush is set.
        """
        if self._atexit_registered:
            atexit.unregister(self.close_and_flush)
            self._atexit_registered = False

        handlers, self.handlers = self.handlers, []
        remove_sinks(self.target, handlers)
        self._running = False

    def flush(self) -> None:
        """Write any buffered records to disk."""
        for handler in self.handlers:
            handler.flush()

    async def archive_now(self) -> ArchiveResult:
        """Archive the active log files immediately."""
        return await self.archiver.archive()

    async def _flush_loop(self) -> None:
        """Background loop for periodic flushes."""
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.config.flush_interval_seconds)
            try:
                await loop.run_in_executor(None, self.flush)
            except Exception as e:
                logger.error(f"Failed to flush log sinks: {e}", exc_info=True)

    async def __aenter__(self) -> LogLifecycle:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def stats(self) -> dict[str, Any]:
        """Get lifecycle statistics."""
        return {
            "running": self._running,
            "directory": str(self.directory),
            "sinks": [Path(getattr(h, "path", "")).name for h in self.handlers],
            "archiver": self.archiver.stats,
            "watcher": self.watcher.stats if self.watcher is not None else None,
        }


async def configure(
    config: LogKeeperConfig | None = None,
    target: logging.Logger | None = None,
    **options: Any,
) -> LogLifecycle:
    """Configure a log directory and return its lifecycle handle.

    Args:
        config: Base configuration (loaded from env if not provided)
        target: Logger to attach sinks to (root logger if not provided)
        **options: LogKeeperConfig fields overriding the base configuration

    Returns:
        A started LogLifecycle

    Raises:
        LogDirectoryError: If the directory cannot be created.
        ValueError: If the configuration is invalid.

    Example:
        >>> lifecycle = await configure(
        ...     directory="logs",
        ...     archive_old_logs=True,
        ...     flush_interval_seconds=30,
        ...     max_log_size=10 * 1024 * 1024,
        ... )
    """
    if config is None:
        config = LogKeeperConfig(**options) if options else LogKeeperConfig.from_env()
    elif options:
        config = dataclasses.replace(config, **options)

    lifecycle = LogLifecycle(config, target)
    await lifecycle.start()
    return lifecycle
