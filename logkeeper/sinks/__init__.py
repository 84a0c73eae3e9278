"""
Sinks module for logkeeper.

This module routes log records to per-severity files in the log
directory (debug.log, latest.log, error.log).

Invariants:
    - Routing is threshold based: a record reaches every sink whose
      minimum level is at or below the record's level
    - All sinks share one buffering mode
"""

from .handlers import (
    TEXT_FORMAT,
    VERBOSE,
    BufferedSinkHandler,
    SinkFileHandler,
    build_formatter,
    verbose,
)
from .router import SINKS, SinkSpec, install_sinks, remove_sinks, sinks_for_level

__all__ = [
    # Levels and formatting
    "VERBOSE",
    "TEXT_FORMAT",
    "verbose",
    "build_formatter",
    # Handlers
    "SinkFileHandler",
    "BufferedSinkHandler",
    # Routing
    "SinkSpec",
    "SINKS",
    "sinks_for_level",
    "install_sinks",
    "remove_sinks",
]
