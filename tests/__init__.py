"""
logkeeper Test Suite.

This package contains:
- unit/: Unit tests for the archiver, size watcher, sinks and config
- integration/: Lifecycle tests against a real temporary log directory
"""
