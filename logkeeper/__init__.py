"""
logkeeper - Log file lifecycle management for Python logging.

This package augments the standard logging pipeline for one log directory:
- Severity-routed file sinks (debug.log, latest.log, error.log)
- Archival of the active log files into timestamped zip bundles, at
  startup and whenever a file grows past a size threshold
- Bounded retries for archival failures

Architecture:
    ┌─────────────┐     ┌──────────────────────────────────────┐
    │ logging.*   │────▶│ Sinks: debug.log latest.log error.log│
    │ (host app)  │     └──────────────────┬───────────────────┘
    └─────────────┘                        │ grows
                                           ▼
                        ┌─────────────┐  queue  ┌──────────┐
                        │ SizeWatcher │────────▶│ Archiver │──▶ logs-*.zip
                        └─────────────┘         └──────────┘

Invariants:
    - One configuration manages exactly one directory
    - Archival failures are logged, never raised into the logging pipeline
    - Archive bundles are immutable and never archived again

Example:
    >>> from logkeeper import configure
    >>> lifecycle = await configure(directory="logs", flush_interval_seconds=30)
    >>> ...
    >>> await lifecycle.close()
"""

from ._version import __version__
from .archive import ArchiveBundle, ArchiveResult, Archiver, list_bundles
from .config import LogKeeperConfig
from .errors import ArchiveError, LogDirectoryError, LogKeeperError
from .lifecycle import LogLifecycle, configure
from .sinks import SINKS, VERBOSE, install_sinks, verbose
from .watch import SizeWatcher

__all__ = [
    "__version__",
    # Entry points
    "configure",
    "LogLifecycle",
    "LogKeeperConfig",
    # Components
    "Archiver",
    "ArchiveBundle",
    "ArchiveResult",
    "list_bundles",
    "SizeWatcher",
    "install_sinks",
    "SINKS",
    "VERBOSE",
    "verbose",
    # Errors
    "LogKeeperError",
    "LogDirectoryError",
    "ArchiveError",
]
