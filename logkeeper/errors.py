"""
Error types for logkeeper.

This module defines the exceptions raised by the lifecycle manager:
- LogKeeperError: Base exception
- LogDirectoryError: The log directory could not be created or used
- ArchiveError: A single log file could not be archived

Invariants:
    - All errors inherit from LogKeeperError
    - Only LogDirectoryError escapes to callers of configure()
    - ArchiveError is handled by the archiver's retry loop and never
      reaches the logging pipeline
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class LogKeeperError(Exception):
    """Base exception for all logkeeper errors.

    Attributes:
        message: Error message
        details: Additional error context
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class LogDirectoryError(LogKeeperError):
    """The configured log directory could not be created.

    Raised from configure() when:
    - The path exists but is not a directory
    - The process lacks permission to create it
    """

    def __init__(self, directory: str | Path, reason: str) -> None:
        super().__init__(
            f"Cannot use log directory {directory}: {reason}",
            details={"directory": str(directory)},
        )
        self.directory = Path(directory)


class ArchiveError(LogKeeperError):
    """Copying a log file into a bundle or deleting it failed."""

    def __init__(self, path: str | Path, reason: str) -> None:
        super().__init__(
            f"Failed to archive log file {path}: {reason}",
            details={"path": str(path)},
        )
        self.path = Path(path)
