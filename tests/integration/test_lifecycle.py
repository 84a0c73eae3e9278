"""
Integration tests for the log directory lifecycle.

Tests cover:
- Archiving old logs at startup
- Directory creation, sink and setup errors
- Size-triggered archival with live sinks
- Buffered flushing and shutdown
"""

import asyncio
import logging
import tempfile
import uuid
import zipfile
from pathlib import Path

import pytest

from logkeeper import lifecycle as lifecycle_module
from logkeeper.archive import list_bundles
from logkeeper.config import LogKeeperConfig
from logkeeper.errors import LogDirectoryError
from logkeeper.lifecycle import LogLifecycle, configure
from logkeeper.sinks import VERBOSE, verbose


async def wait_for(predicate, timeout: float = 5.0) -> bool:
    """Poll until predicate() is true or the timeout passes."""
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


class TestLogLifecycle:
    """Integration tests for configure() and LogLifecycle."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.fixture
    def app_logger(self):
        """Create an isolated logger that accepts every level."""
        app_logger = logging.getLogger(f"test.lifecycle.{uuid.uuid4().hex}")
        app_logger.setLevel(VERBOSE)
        app_logger.propagate = False
        yield app_logger
        app_logger.handlers.clear()

    @pytest.mark.asyncio
    async def test_archives_old_logs_before_new_sinks(self, data_dir, app_logger):
        """Old logs are bundled and fresh empty sink files are created."""
        log_dir = data_dir / "logs"
        log_dir.mkdir()
        (log_dir / "debug.log").write_bytes(b"d" * 500)
        (log_dir / "error.log").write_bytes(b"e" * 10)

        lifecycle = await configure(
            target=app_logger,
            directory=str(log_dir),
            archive_old_logs=True,
            max_log_size=0,
        )
        try:
            bundles = list_bundles(log_dir)
            assert len(bundles) == 1
            assert sorted(bundles[0].entries) == ["debug.log", "error.log"]
            with zipfile.ZipFile(bundles[0].path) as zf:
                assert zf.read("debug.log") == b"d" * 500

            for filename in ("debug.log", "latest.log", "error.log"):
                assert (log_dir / filename).read_bytes() == b""
        finally:
            await lifecycle.close()

    @pytest.mark.asyncio
    async def test_keeps_old_logs_when_not_archiving(self, data_dir, app_logger):
        """archive_old_logs=False appends to the existing files."""
        (data_dir / "latest.log").write_text("previous run\n")

        lifecycle = await configure(
            target=app_logger,
            directory=str(data_dir),
            archive_old_logs=False,
            max_log_size=0,
        )
        try:
            app_logger.info("this run")
        finally:
            await lifecycle.close()

        latest = (data_dir / "latest.log").read_text()
        assert latest.startswith("previous run\n")
        assert "this run" in latest
        assert list_bundles(data_dir) == []

    @pytest.mark.asyncio
    async def test_creates_missing_directory(self, data_dir, app_logger):
        """Nested directories are created on configure."""
        log_dir = data_dir / "a" / "b" / "logs"

        async with await configure(
            target=app_logger, directory=str(log_dir), max_log_size=0
        ) as lifecycle:
            assert lifecycle.is_running
            assert log_dir.is_dir()
            assert (log_dir / "debug.log").exists()

        assert not lifecycle.is_running

    @pytest.mark.asyncio
    async def test_directory_error_propagates(self, data_dir, app_logger):
        """A path that cannot be a directory fails configure synchronously."""
        blocker = data_dir / "not-a-dir"
        blocker.write_text("file")

        with pytest.raises(LogDirectoryError):
            await configure(target=app_logger, directory=str(blocker / "logs"))

        assert app_logger.handlers == []

    @pytest.mark.asyncio
    async def test_sink_error_propagates_without_leaking_handlers(self, data_dir, app_logger):
        """A sink file that cannot be opened fails configure and detaches everything."""
        (data_dir / "latest.log").mkdir()

        with pytest.raises(OSError):
            await configure(
                target=app_logger,
                directory=str(data_dir),
                archive_old_logs=False,
                max_log_size=0,
            )

        assert app_logger.handlers == []

    @pytest.mark.asyncio
    async def test_routing_through_lifecycle(self, data_dir, app_logger):
        """Records are routed to the three sink files."""
        async with await configure(
            target=app_logger, directory=str(data_dir), max_log_size=0
        ):
            verbose(app_logger, "trace detail")
            app_logger.info("started")
            app_logger.error("broken")

        assert "trace detail" in (data_dir / "debug.log").read_text()
        assert "trace detail" not in (data_dir / "latest.log").read_text()
        assert "started" in (data_dir / "latest.log").read_text()
        error = (data_dir / "error.log").read_text()
        assert "broken" in error
        assert "started" not in error

    @pytest.mark.asyncio
    async def test_no_size_archival_when_disabled(self, data_dir, app_logger):
        """max_log_size <= 0 installs no watcher and never archives."""
        lifecycle = await configure(
            target=app_logger,
            directory=str(data_dir),
            max_log_size=0,
            watch_poll_seconds=0.01,
        )
        try:
            assert lifecycle.watcher is None
            for i in range(200):
                app_logger.error(f"record {i} " + "x" * 100)
            await asyncio.sleep(0.1)
        finally:
            await lifecycle.close()

        assert list_bundles(data_dir) == []
        assert (data_dir / "error.log").stat().st_size > 20000

    @pytest.mark.asyncio
    async def test_size_triggered_archival(self, data_dir, app_logger):
        """A sink growing past max_log_size is archived and recreated."""
        lifecycle = await configure(
            target=app_logger,
            directory=str(data_dir),
            max_log_size=1024,
            watch_poll_seconds=0.01,
            archive_retry_delay_seconds=0.01,
        )
        try:
            assert lifecycle.watcher is not None
            for i in range(20):
                app_logger.info(f"record {i} " + "x" * 100)

            assert await wait_for(lambda: len(list_bundles(data_dir)) >= 1)
            await asyncio.wait_for(lifecycle.watcher.drain(), timeout=5)

            app_logger.info("after archival")
            assert "after archival" in (data_dir / "latest.log").read_text()
        finally:
            await lifecycle.close()

        archived = [entry for bundle in list_bundles(data_dir) for entry in bundle.entries]
        assert "latest.log" in archived
        assert lifecycle.archiver.stats["bundles_created"] >= 1

    @pytest.mark.asyncio
    async def test_buffered_sinks_flush_on_interval(self, data_dir, app_logger):
        """Buffered records reach disk on the next periodic flush."""
        lifecycle = await configure(
            target=app_logger,
            directory=str(data_dir),
            max_log_size=0,
            flush_interval_seconds=0.05,
        )
        try:
            app_logger.error("buffered record")
            assert (data_dir / "error.log").read_text() == ""
            assert await wait_for(
                lambda: "buffered record" in (data_dir / "error.log").read_text()
            )
        finally:
            await lifecycle.close()

    @pytest.mark.asyncio
    async def test_close_flushes_and_detaches(self, data_dir, app_logger):
        """close() writes buffered records and removes the handlers."""
        lifecycle = await configure(
            target=app_logger,
            directory=str(data_dir),
            max_log_size=0,
            flush_interval_seconds=3600,
        )
        app_logger.warning("pending at shutdown")
        await lifecycle.close()
        await lifecycle.close()

        assert "pending at shutdown" in (data_dir / "latest.log").read_text()
        assert app_logger.handlers == []
        assert lifecycle.handlers == []

    @pytest.mark.asyncio
    async def test_auto_close_and_flush_registers_exit_hook(
        self, data_dir, app_logger, monkeypatch
    ):
        """The exit hook is registered on start and removed on close."""
        registered = []
        monkeypatch.setattr(lifecycle_module.atexit, "register", registered.append)
        monkeypatch.setattr(lifecycle_module.atexit, "unregister", registered.remove)

        lifecycle = await configure(
            target=app_logger,
            directory=str(data_dir),
            max_log_size=0,
            flush_interval_seconds=3600,
            auto_close_and_flush=True,
        )
        assert registered == [lifecycle.close_and_flush]

        app_logger.error("flushed at exit")
        registered[0]()

        assert registered == []
        assert "flushed at exit" in (data_dir / "error.log").read_text()
        assert app_logger.handlers == []
        await lifecycle.close()

    @pytest.mark.asyncio
    async def test_archive_now(self, data_dir, app_logger):
        """Manual archival bundles the live sink files."""
        lifecycle = LogLifecycle(
            LogKeeperConfig(directory=str(data_dir), max_log_size=0), app_logger
        )
        await lifecycle.start()
        try:
            app_logger.error("before manual archival")
            result = await lifecycle.archive_now()
            assert sorted(result.archived) == ["debug.log", "error.log", "latest.log"]

            app_logger.error("after manual archival")
            error = (data_dir / "error.log").read_text()
            assert "after manual archival" in error
            assert "before manual archival" not in error
        finally:
            await lifecycle.close()

        stats = lifecycle.stats
        assert stats["running"] is False
        assert stats["archiver"]["bundles_created"] == 1
        assert stats["watcher"] is None
