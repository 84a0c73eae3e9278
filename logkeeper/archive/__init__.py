"""
Archive module for logkeeper.

This module bundles the active log files of a directory into
timestamped zip archives for:
- Keeping live log files small
- Preserving each run's logs as a unit

Invariants:
    - Archives are immutable once written
    - Archive bundles are never archived again
    - Archive names are unique and sortable by creation time
"""

from .archiver import (
    ArchiveBundle,
    ArchiveResult,
    Archiver,
    format_bundle_name,
    list_bundles,
    parse_bundle_name,
)

__all__ = [
    "Archiver",
    "ArchiveBundle",
    "ArchiveResult",
    "format_bundle_name",
    "parse_bundle_name",
    "list_bundles",
]
