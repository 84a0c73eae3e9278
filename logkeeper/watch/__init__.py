"""
Watch module for logkeeper.

This module triggers archival when an active log file grows past the
configured size threshold.

Invariants:
    - No watcher exists when max_log_size <= 0
    - Notifications never block on archival
"""

from .size_watcher import SizeWatcher, create_size_watcher

__all__ = ["SizeWatcher", "create_size_watcher"]
