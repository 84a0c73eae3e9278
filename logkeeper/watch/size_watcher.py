"""
Size-triggered archival for logkeeper.

The SizeWatcher polls a log directory for changes to *.log files and
requests an archival run when a changed file grows past max_log_size.

Change detection:
    Every poll interval the watcher stats each *.log file. A file whose
    (size, mtime) signature differs from the previous scan counts as one
    change notification.

Triggering:
    Notifications never await archival. They put a request on a queue
    with room for one pending request; a single worker task drains it and
    runs the archive callback. A request made while another is already
    pending is coalesced, since one run covers every active file.

Invariants:
    - A watcher is never created when max_log_size <= 0
    - At most one archival run is pending at any time
    - Errors in the archive callback are logged, never raised
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable

from ..archive.archiver import ACTIVE_LOG_PATTERN

logger = logging.getLogger(__name__)

ArchiveCallback = Callable[[], Awaitable[Any]]


class SizeWatcher:
    """Watches one log directory and triggers archival on growth.

    Attributes:
        directory: Directory to watch
        max_log_size: Size threshold in bytes
        poll_interval_seconds: Interval between scans

    Example:
        >>> watcher = SizeWatcher("logs", 10 * 1024 * 1024, archiver.archive)
        >>> await watcher.start()
        >>> ...
        >>> await watcher.stop()
    """

    def __init__(
        self,
        directory: str | Path,
        max_log_size: int,
        archive: ArchiveCallback,
        poll_interval_seconds: float = 1.0,
    ) -> None:
        """Initialize the watcher.

        Args:
            directory: Directory to watch
            max_log_size: Size threshold in bytes, must be positive
            archive: Coroutine function that archives the directory
            poll_interval_seconds: Interval between scans

        Raises:
            ValueError: If max_log_size is not positive
        """
        if max_log_size <= 0:
            raise ValueError("max_log_size must be positive to watch a directory")

        self.directory = Path(directory)
        self.max_log_size = max_log_size
        self.poll_interval_seconds = poll_interval_seconds
        self._archive = archive

        self._queue: asyncio.Queue[Path] = asyncio.Queue(maxsize=1)
        self._seen: dict[Path, tuple[int, int]] = {}
        self._running = False
        self._tasks: list[asyncio.Task] = []

        self._changes = 0
        self._triggers = 0
        self._coalesced = 0
        self._runs = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Take a baseline scan and start the observer and worker tasks."""
        if self._running:
            logger.warning(f"Size watcher already running for {self.directory}")
            return

        await self.scan()
        self._running = True
        self._tasks = [
            asyncio.create_task(self._observe_loop()),
            asyncio.create_task(self._worker_loop()),
        ]
        logger.info(
            "Started size watcher",
            extra={
                "log_dir": str(self.directory),
                "max_log_size": self.max_log_size,
                "poll_interval_seconds": self.poll_interval_seconds,
            },
        )

    async def stop(self) -> None:
        """Stop the observer and worker tasks."""
        if not self._running:
            return

        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info(f"Stopped size watcher for {self.directory}")

    async def scan(self) -> list[tuple[Path, int]]:
        """Stat the active log files and report the ones that changed.

        Returns:
            (path, size) for each file changed since the previous scan
        """
        loop = asyncio.get_running_loop()
        current = await loop.run_in_executor(None, self._stat_logs)
        changed = [
            (path, signature[0])
            for path, signature in current.items()
            if self._seen.get(path) != signature
        ]
        self._seen = current
        return changed

    async def poll_once(self) -> int:
        """Run one scan and dispatch its change notifications.

        Returns:
            Number of archival requests made
        """
        requests = 0
        for path, size in await self.scan():
            if self.on_change(path, size):
                requests += 1
        return requests

    def on_change(self, path: Path, size: int) -> bool:
        """Handle one change notification.

        Returns:
            True if an archival request was made
        """
        self._changes += 1
        if size <= self.max_log_size:
            return False

        logger.debug(
            f"Log file {path.name} exceeded {self.max_log_size} bytes",
            extra={"path": str(path), "size_bytes": size},
        )
        self._triggers += 1
        try:
            self._queue.put_nowait(path)
        except asyncio.QueueFull:
            self._coalesced += 1
        return True

    async def drain(self) -> None:
        """Wait until every queued archival request has been handled."""
        await self._queue.join()

    def _stat_logs(self) -> dict[Path, tuple[int, int]]:
        signatures = {}
        for path in self.directory.glob(ACTIVE_LOG_PATTERN):
            try:
                stat = path.stat()
            except FileNotFoundError:
                continue
            signatures[path] = (stat.st_size, stat.st_mtime_ns)
        return signatures

    async def _observe_loop(self) -> None:
        """Background loop for periodic scans."""
        while self._running:
            await asyncio.sleep(self.poll_interval_seconds)
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"Size watcher scan failed: {e}", exc_info=True)

    async def _worker_loop(self) -> None:
        """Run one archival per queued request."""
        while True:
            path = await self._queue.get()
            try:
                self._runs += 1
                await self._archive()
            except Exception as e:
                logger.error(f"Size-triggered archival after {path.name} failed: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    @property
    def stats(self) -> dict[str, Any]:
        """Get watcher statistics."""
        return {
            "running": self._running,
            "changes": self._changes,
            "triggers": self._triggers,
            "coalesced": self._coalesced,
            "archive_runs": self._runs,
            "pending": self._queue.qsize(),
        }


def create_size_watcher(
    directory: str | Path,
    max_log_size: int,
    archive: ArchiveCallback,
    poll_interval_seconds: float = 1.0,
) -> SizeWatcher | None:
    """Create a watcher, or None when size-triggered archival is disabled."""
    if max_log_size <= 0:
        logger.debug(f"Size-triggered archival disabled for {directory}")
        return None
    return SizeWatcher(directory, max_log_size, archive, poll_interval_seconds)
