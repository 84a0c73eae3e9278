"""
Severity-routed file sinks.

install_sinks() attaches three file handlers to a logger, one per sink:

    debug.log   VERBOSE and above
    latest.log  INFO and above
    error.log   ERROR and above

A record goes to every sink whose threshold is at or below its level, so
a CRITICAL record lands in all three files and a VERBOSE record only in
debug.log.

Buffering is a single switch: passing flush_interval buffers all three
sinks (the caller flushes them every flush_interval seconds); omitting it
writes every record synchronously.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .handlers import VERBOSE, BufferedSinkHandler, SinkFileHandler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SinkSpec:
    """One severity-scoped log file.

    Attributes:
        name: Sink name
        filename: File name inside the log directory
        level: Minimum level routed to the file
    """

    name: str
    filename: str
    level: int


SINKS: tuple[SinkSpec, ...] = (
    SinkSpec("debug", "debug.log", VERBOSE),
    SinkSpec("latest", "latest.log", logging.INFO),
    SinkSpec("error", "error.log", logging.ERROR),
)


def sinks_for_level(level: int) -> list[SinkSpec]:
    """Sinks that receive a record at the given level."""
    return [spec for spec in SINKS if spec.level <= level]


def build_sink(
    path: Path,
    level: int,
    flush_interval: float | None = None,
    formatter: logging.Formatter | None = None,
    buffer_capacity: int = 10000,
) -> logging.Handler:
    """Create the handler for one sink file."""
    if flush_interval is None:
        return SinkFileHandler(path, level, formatter)
    return BufferedSinkHandler(path, level, capacity=buffer_capacity, formatter=formatter)


def install_sinks(
    target: logging.Logger,
    directory: str | Path,
    flush_interval: float | None = None,
    formatter: logging.Formatter | None = None,
    buffer_capacity: int = 10000,
) -> list[logging.Handler]:
    """Attach the debug, latest and error sinks to a logger.

    The sink files are created immediately, empty if they did not exist.

    Args:
        target: Logger to attach the handlers to
        directory: Existing log directory
        flush_interval: Flush cadence in seconds; None disables buffering
        formatter: Record formatter shared by the sinks
        buffer_capacity: Records a buffered sink holds before a forced flush

    Returns:
        The installed handlers, in SINKS order

    Raises:
        OSError: If a sink file cannot be opened; sinks already attached
            by this call are removed first.
    """
    directory = Path(directory)
    handlers: list[logging.Handler] = []
    try:
        for spec in SINKS:
            handler = build_sink(
                directory / spec.filename,
                spec.level,
                flush_interval=flush_interval,
                formatter=formatter,
                buffer_capacity=buffer_capacity,
            )
            target.addHandler(handler)
            handlers.append(handler)
    except OSError:
        remove_sinks(target, handlers)
        raise

    logger.debug(
        f"Installed {len(handlers)} log sinks in {directory}",
        extra={"buffered": flush_interval is not None, "flush_interval": flush_interval},
    )
    return handlers


def remove_sinks(target: logging.Logger, handlers: list[logging.Handler]) -> None:
    """Flush, close and detach previously installed sink handlers."""
    for handler in handlers:
        target.removeHandler(handler)
        try:
            handler.flush()
        finally:
            handler.close()
