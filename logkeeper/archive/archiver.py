"""
Log directory archiver for logkeeper.

The Archiver bundles every active log file in a directory into a single
timestamped zip file and deletes the originals. This provides:
- Bounded growth of the live log files
- Point-in-time snapshots of a run's logs
- Best-effort retries when a file cannot be archived

Archive format:
    <directory>/logs-MM-dd-yyyy-HH-mm-ss.ffff.zip

Each entry in the bundle is named by the base name of the archived file
(debug.log, latest.log, error.log, ...).

Staging:
    A log file is first renamed to <name>.archiving, so writers reopen a
    fresh file while records appended before the rename stay in the staged
    copy. Staged files are deleted only after the bundle is closed; a
    staged file left behind by a failed pass is picked up by the next one.

Invariants:
    - Only *.log files (and their staged copies) are archived; bundles are
      never re-archived
    - Bundles are immutable once written
    - Bundle names issued by one Archiver are strictly increasing
    - Archival failures are logged, never raised to the caller

How to change safely:
    - Keep the bundle name format parseable by list_bundles()
    - Never open an existing bundle for writing
    - Test the retry loop with a file that cannot be read
"""

from __future__ import annotations

import asyncio
import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from ..errors import ArchiveError

logger = logging.getLogger(__name__)

ACTIVE_LOG_PATTERN = "*.log"
STAGING_SUFFIX = ".archiving"
BUNDLE_SUFFIX = ".zip"
BUNDLE_NAME_RE = re.compile(
    r"^logs-(?P<stamp>\d{2}-\d{2}-\d{4}-\d{2}-\d{2}-\d{2})\.(?P<frac>\d{4})\.zip$"
)


def format_bundle_name(moment: datetime) -> str:
    """Build a bundle file name with 100 microsecond resolution.

    Example:
        >>> format_bundle_name(datetime(2024, 3, 1, 9, 5, 7, 123456))
        'logs-03-01-2024-09-05-07.1234.zip'
    """
    fraction = f"{moment.microsecond:06d}"[:4]
    return f"logs-{moment:%m-%d-%Y-%H-%M-%S}.{fraction}{BUNDLE_SUFFIX}"


def parse_bundle_name(name: str) -> datetime | None:
    """Recover the creation time encoded in a bundle name, or None."""
    match = BUNDLE_NAME_RE.match(name)
    if not match:
        return None
    moment = datetime.strptime(match.group("stamp"), "%m-%d-%Y-%H-%M-%S")
    return moment.replace(microsecond=int(match.group("frac")) * 100)


def _truncate(moment: datetime) -> datetime:
    return moment.replace(microsecond=moment.microsecond - moment.microsecond % 100)


def _entry_name(path: Path) -> str:
    """Bundle entry name for a live or staged log file."""
    name = path.name
    if name.endswith(STAGING_SUFFIX):
        return name[: -len(STAGING_SUFFIX)]
    return name


@dataclass(frozen=True)
class ArchiveBundle:
    """Represents one archive bundle on disk.

    Attributes:
        name: Bundle file name
        path: Full path of the bundle
        entries: Base names of the archived log files
        size_bytes: Compressed size in bytes
        created_at: Creation time encoded in the name
    """

    name: str
    path: Path
    entries: tuple[str, ...]
    size_bytes: int
    created_at: datetime


@dataclass
class ArchiveResult:
    """Outcome of one archive() invocation.

    Attributes:
        directory: Directory that was archived
        noop: True when no active log files existed
        attempts: Number of passes made (1 + retries)
        bundles: Bundles created across all passes
        failed: Files still failing after the last pass
    """

    directory: Path
    noop: bool = False
    attempts: int = 0
    bundles: list[ArchiveBundle] = field(default_factory=list)
    failed: list[Path] = field(default_factory=list)

    @property
    def archived(self) -> list[str]:
        """Base names of every file archived by this invocation."""
        return [entry for bundle in self.bundles for entry in bundle.entries]


class Archiver:
    """Archives the active log files of one directory.

    Each archive() call lists the active log files, copies them into a new
    bundle and deletes them. If any file fails, the whole operation is
    retried from the top after a fixed delay, up to max_retries times.

    Calls on the same Archiver are serialized by an asyncio lock, so the
    size watcher and a manual trigger never race on the same files.

    Attributes:
        directory: Directory holding the active log files
        max_retries: Retries after a pass with failures
        retry_delay_seconds: Delay between passes

    Example:
        >>> archiver = Archiver("logs")
        >>> result = await archiver.archive()
        >>> result.bundles[0].entries
        ('debug.log', 'error.log', 'latest.log')
    """

    def __init__(
        self,
        directory: str | Path,
        max_retries: int = 5,
        retry_delay_seconds: float = 5.0,
    ) -> None:
        """Initialize the archiver.

        Args:
            directory: Directory holding the active log files
            max_retries: Retries after a pass with failures
            retry_delay_seconds: Delay between passes
        """
        self.directory = Path(directory)
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds

        self._lock = asyncio.Lock()
        self._last_stamp: datetime | None = None
        self._runs = 0
        self._bundles_created = 0
        self._files_archived = 0
        self._failures = 0

    def list_active_logs(self) -> list[Path]:
        """List the files to archive: staged leftovers first, then live logs.

        A live log whose staged copy still exists is skipped until the
        staged copy has been bundled.
        """
        staged = sorted(
            p for p in self.directory.glob(ACTIVE_LOG_PATTERN + STAGING_SUFFIX) if p.is_file()
        )
        pending = {_entry_name(p) for p in staged}
        live = sorted(
            p
            for p in self.directory.glob(ACTIVE_LOG_PATTERN)
            if p.is_file() and p.name not in pending
        )
        return staged + live

    async def archive(self) -> ArchiveResult:
        """Archive every active log file in the directory.

        Returns:
            ArchiveResult describing the bundles created and any files
            that were still failing when the retries ran out.
        """
        loop = asyncio.get_running_loop()
        result = ArchiveResult(directory=self.directory)

        async with self._lock:
            self._runs += 1

            for attempt in range(self.max_retries + 1):
                result.attempts = attempt + 1

                try:
                    logs = await loop.run_in_executor(None, self.list_active_logs)
                except OSError as e:
                    logger.error(
                        f"Failed to list log files in {self.directory}: {e}",
                        exc_info=True,
                        extra={"log_dir": str(self.directory)},
                    )
                    logs = None

                if logs is not None and not logs:
                    result.noop = attempt == 0
                    result.failed = []
                    if result.noop:
                        logger.debug(f"No active log files in {self.directory}")
                    return result

                if logs is None:
                    failed = [self.directory]
                else:
                    bundle_path = self._next_bundle_path()
                    try:
                        bundle, failed = await loop.run_in_executor(
                            None, self._archive_pass, bundle_path, logs
                        )
                    except OSError as e:
                        self._failures += len(logs)
                        logger.error(
                            f"Failed to write archive bundle {bundle_path}: {e}",
                            exc_info=True,
                            extra={"bundle": str(bundle_path)},
                        )
                        await loop.run_in_executor(None, self._discard_bundle, bundle_path)
                        bundle, failed = None, list(logs)

                    if bundle is not None:
                        result.bundles.append(bundle)
                result.failed = failed

                if not failed:
                    return result

                if attempt < self.max_retries:
                    logger.warning(
                        f"Archival of {self.directory} incomplete, retrying in "
                        f"{self.retry_delay_seconds}s",
                        extra={
                            "attempt": attempt + 1,
                            "max_retries": self.max_retries,
                            "failed": [str(p) for p in failed],
                        },
                    )
                    await asyncio.sleep(self.retry_delay_seconds)

            for path in result.failed:
                logger.error(
                    f"Giving up on archiving log file {path} after {self.max_retries} retries",
                    extra={"path": str(path), "attempts": result.attempts},
                )
            return result

    def _next_bundle_path(self) -> Path:
        """Reserve a bundle name later than any this archiver has issued.

        If the wall clock went backwards, the name continues from the last
        one issued instead of waiting for the clock to catch up.
        """
        stamp = _truncate(datetime.now())
        if self._last_stamp is not None and stamp <= self._last_stamp:
            stamp = self._last_stamp + timedelta(microseconds=100)
        self._last_stamp = stamp
        return self.directory / format_bundle_name(stamp)

    def _discard_bundle(self, bundle_path: Path) -> None:
        try:
            bundle_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove partial archive bundle {bundle_path}: {e}")

    def _archive_pass(
        self, bundle_path: Path, logs: list[Path]
    ) -> tuple[ArchiveBundle | None, list[Path]]:
        """Copy each log into a new bundle, then delete the staged copies.

        Runs in an executor thread. Staged copies are only deleted once the
        bundle has been closed, so an OSError raised before that point
        leaves every log recoverable by the next pass.

        Returns:
            The bundle (None if nothing was archived) and the failed files
        """
        entries: list[str] = []
        staged: list[tuple[Path, Path]] = []
        failed: list[Path] = []

        try:
            bundle_file = zipfile.ZipFile(bundle_path, "x", compression=zipfile.ZIP_DEFLATED)
        except OSError as e:
            self._failures += len(logs)
            logger.error(
                f"Failed to create archive bundle {bundle_path}: {e}",
                exc_info=True,
                extra={"bundle": str(bundle_path)},
            )
            return None, list(logs)

        with bundle_file as bundle:
            for log_path in logs:
                try:
                    staged_path = self._archive_file(bundle, log_path)
                except ArchiveError as e:
                    self._failures += 1
                    failed.append(log_path)
                    logger.error(e.message, exc_info=True, extra=e.details)
                    continue
                if staged_path is not None:
                    entries.append(_entry_name(log_path))
                    staged.append((log_path, staged_path))

        if not entries:
            bundle_path.unlink(missing_ok=True)
            return None, failed

        size_bytes = bundle_path.stat().st_size

        for log_path, staged_path in staged:
            try:
                staged_path.unlink(missing_ok=True)
            except OSError as e:
                self._failures += 1
                failed.append(log_path)
                logger.error(
                    f"Failed to delete archived log file {staged_path}: {e}",
                    exc_info=True,
                    extra={"path": str(staged_path)},
                )

        self._bundles_created += 1
        self._files_archived += len(entries)

        archive_bundle = ArchiveBundle(
            name=bundle_path.name,
            path=bundle_path,
            entries=tuple(entries),
            size_bytes=size_bytes,
            created_at=parse_bundle_name(bundle_path.name),
        )

        logger.info(
            f"Created archive bundle {archive_bundle.name}",
            extra={
                "bundle": str(bundle_path),
                "entries": list(archive_bundle.entries),
                "size_bytes": archive_bundle.size_bytes,
            },
        )

        return archive_bundle, failed

    def _archive_file(self, bundle: zipfile.ZipFile, log_path: Path) -> Path | None:
        """Stage one log file and copy it into the bundle.

        A live log is renamed to its staged name first, so writers move on
        to a new file. A staged leftover from an earlier pass is copied as is.

        Returns:
            The staged path to delete once the bundle is closed, or None if
            the file disappeared before it could be staged

        Raises:
            ArchiveError: If the rename or the copy fails
        """
        if log_path.name.endswith(STAGING_SUFFIX):
            staged_path = log_path
        else:
            staged_path = log_path.with_name(log_path.name + STAGING_SUFFIX)
            try:
                log_path.rename(staged_path)
            except FileNotFoundError:
                logger.debug(f"Log file {log_path} vanished before archival")
                return None
            except OSError as e:
                raise ArchiveError(log_path, str(e)) from e

        try:
            bundle.write(staged_path, arcname=_entry_name(log_path))
        except OSError as e:
            raise ArchiveError(log_path, str(e)) from e

        return staged_path

    @property
    def stats(self) -> dict[str, Any]:
        """Get archiver statistics."""
        return {
            "directory": str(self.directory),
            "runs": self._runs,
            "bundles_created": self._bundles_created,
            "files_archived": self._files_archived,
            "failures": self._failures,
            "locked": self._lock.locked(),
        }


def list_bundles(directory: str | Path) -> list[ArchiveBundle]:
    """List the archive bundles in a directory.

    Args:
        directory: Log directory

    Returns:
        Bundles sorted by creation time; unreadable files are skipped
    """
    bundles = []
    for path in Path(directory).glob(f"logs-*{BUNDLE_SUFFIX}"):
        created_at = parse_bundle_name(path.name)
        if created_at is None:
            continue
        try:
            with zipfile.ZipFile(path) as zf:
                entries = tuple(zf.namelist())
        except (OSError, zipfile.BadZipFile):
            logger.warning(f"Skipping unreadable archive bundle {path}")
            continue

        bundles.append(
            ArchiveBundle(
                name=path.name,
                path=path,
                entries=entries,
                size_bytes=path.stat().st_size,
                created_at=created_at,
            )
        )

    return sorted(bundles, key=lambda b: b.created_at)
