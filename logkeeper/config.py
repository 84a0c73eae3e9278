"""
Configuration management for logkeeper.

All configuration is done via environment variables - no config files.
This module provides a typed configuration class with validation.

Invariants:
    - All settings have sensible defaults for local development
    - One configuration manages exactly one log directory
    - max_log_size <= 0 disables size-triggered archival entirely

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep from_env() and the dataclass defaults in sync
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MAX_LOG_SIZE = 10 * 1024 * 1024  # 10MB
LOG_FORMATS = ("text", "json")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_optional_float(name: str) -> float | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return float(value)


@dataclass(frozen=True)
class LogKeeperConfig:
    """Log directory lifecycle configuration.

    Attributes:
        directory: Target log directory (created if absent)
        archive_old_logs: Archive pre-existing logs before installing sinks
        flush_interval_seconds: Flush cadence for buffered sinks; None writes
            every record synchronously
        max_log_size: Size in bytes that triggers archival (<= 0 disables)
        auto_close_and_flush: Flush and close the sinks at interpreter exit
        log_format: Sink record format (text, json)
        watch_poll_seconds: Interval between size watcher scans
        archive_max_retries: Retries after a failed archival pass
        archive_retry_delay_seconds: Delay between archival retries
        buffer_capacity: Records held by a buffered sink before a forced flush
    """

    directory: str = "logs"
    archive_old_logs: bool = True
    flush_interval_seconds: float | None = None
    max_log_size: int = DEFAULT_MAX_LOG_SIZE
    auto_close_and_flush: bool = False
    log_format: str = "text"
    watch_poll_seconds: float = 1.0
    archive_max_retries: int = 5
    archive_retry_delay_seconds: float = 5.0
    buffer_capacity: int = 10000

    @property
    def buffered(self) -> bool:
        """Whether sinks buffer records between flushes."""
        return self.flush_interval_seconds is not None

    @classmethod
    def from_env(cls) -> LogKeeperConfig:
        """Load configuration from environment variables.

        Raises:
            ValueError: If a value cannot be parsed or is invalid.
        """
        config = cls(
            directory=os.getenv("LOG_DIR", "logs"),
            archive_old_logs=_env_bool("LOG_ARCHIVE_OLD", "true"),
            flush_interval_seconds=_env_optional_float("LOG_FLUSH_INTERVAL_SECONDS"),
            max_log_size=int(os.getenv("LOG_MAX_SIZE_BYTES", str(DEFAULT_MAX_LOG_SIZE))),
            auto_close_and_flush=_env_bool("LOG_AUTO_CLOSE", "false"),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
            watch_poll_seconds=float(os.getenv("LOG_WATCH_POLL_SECONDS", "1.0")),
            archive_max_retries=int(os.getenv("LOG_ARCHIVE_MAX_RETRIES", "5")),
            archive_retry_delay_seconds=float(os.getenv("LOG_ARCHIVE_RETRY_DELAY_SECONDS", "5.0")),
            buffer_capacity=int(os.getenv("LOG_BUFFER_CAPACITY", "10000")),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.directory:
            raise ValueError("LOG_DIR must not be empty")
        if self.flush_interval_seconds is not None and self.flush_interval_seconds <= 0:
            raise ValueError("LOG_FLUSH_INTERVAL_SECONDS must be positive when set")
        if self.watch_poll_seconds <= 0:
            raise ValueError("LOG_WATCH_POLL_SECONDS must be positive")
        if self.archive_max_retries < 0:
            raise ValueError("LOG_ARCHIVE_MAX_RETRIES must not be negative")
        if self.archive_retry_delay_seconds < 0:
            raise ValueError("LOG_ARCHIVE_RETRY_DELAY_SECONDS must not be negative")
        if self.buffer_capacity <= 0:
            raise ValueError("LOG_BUFFER_CAPACITY must be positive")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.log_format}'. Must be one of: text, json"
            )

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "logkeeper configuration loaded",
            extra={
                "log_dir": self.directory,
                "archive_old_logs": self.archive_old_logs,
                "buffered": self.buffered,
                "flush_interval_seconds": self.flush_interval_seconds,
                "max_log_size": self.max_log_size,
                "size_watch_enabled": self.max_log_size > 0,
                "log_format": self.log_format,
            },
        )
