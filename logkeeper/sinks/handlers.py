"""
File handlers used by the severity-routed sinks.

Two flavours share one file-writing core:
- SinkFileHandler writes every record as it arrives
- BufferedSinkHandler holds records in memory until flush() is called
  (by the lifecycle's periodic flush task) or the buffer fills up

Both reopen their file when the archiver has deleted it, so the next
record after an archival lands in a fresh file instead of an unlinked one.
"""

from __future__ import annotations

import logging
from logging.handlers import MemoryHandler, WatchedFileHandler
from pathlib import Path

import json_log_formatter

VERBOSE = 5
logging.addLevelName(VERBOSE, "VERBOSE")

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Buffered sinks only flush on the timer or when full, never on level.
_NEVER_FLUSH_LEVEL = logging.CRITICAL + 10


def verbose(logger: logging.Logger, msg: str, *args, **kwargs) -> None:
    """Log a message at VERBOSE level, below DEBUG."""
    logger.log(VERBOSE, msg, *args, **kwargs)


def build_formatter(log_format: str = "text") -> logging.Formatter:
    """Create the record formatter for a log format name (text, json)."""
    if log_format == "json":
        return json_log_formatter.JSONFormatter()
    return logging.Formatter(TEXT_FORMAT)


class SinkFileHandler(WatchedFileHandler):
    """Appends records to one sink file, reopening it if it was archived."""

    def __init__(self, path: str | Path, level: int, formatter: logging.Formatter | None = None) -> None:
        super().__init__(str(path), mode="a", encoding="utf-8")
        self.setLevel(level)
        self.setFormatter(formatter or build_formatter())

    @property
    def path(self) -> Path:
        return Path(self.baseFilename)


class BufferedSinkHandler(MemoryHandler):
    """Buffers records for one sink file until flushed.

    Attributes:
        target: The SinkFileHandler that receives flushed records
        capacity: Records held before a forced flush
    """

    def __init__(
        self,
        path: str | Path,
        level: int,
        capacity: int = 10000,
        formatter: logging.Formatter | None = None,
    ) -> None:
        target = SinkFileHandler(path, level, formatter)
        super().__init__(
            capacity,
            flushLevel=_NEVER_FLUSH_LEVEL,
            target=target,
            flushOnClose=True,
        )
        self.setLevel(level)

    @property
    def path(self) -> Path:
        return Path(self.target.baseFilename)

    @property
    def pending(self) -> int:
        """Number of records waiting for the next flush."""
        return len(self.buffer)

    def close(self) -> None:
        """Flush the buffer, then close the underlying file."""
        target = self.target
        try:
            super().close()
        finally:
            if target is not None:
                target.close()
