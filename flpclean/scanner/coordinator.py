"""Multithreaded scan coordination.

A scan pass is split into work units (whole roots, or the top-level
subdirectories of a root when there are more threads than roots). Each
unit is walked by one pool worker into a private ``UnitResult``; only the
coordinator thread folds those results into the shared accumulator held
by the ``ScanHandle``.
"""

import dataclasses
import logging
import os
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from flpclean.config import (
    DEFAULT_EXTENSIONS,
    InvalidConfigurationError,
    MatchMode,
    validate_scan_settings,
)
from flpclean.models import (
    BackupRecord,
    ErrorKind,
    ProjectGroup,
    ScanError,
    ScanReport,
    ScanStatus,
)
from flpclean.scanner.filesystem import (
    DirectoryBatch,
    DirectoryId,
    classify_os_error,
    directory_id,
    is_link,
    walk_directory,
)
from flpclean.scanner.matcher import BackupMatcher
from flpclean.scanner.progress import ScanProgress

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ScanProgress], None]


def default_thread_count() -> int:
    return max(1, os.cpu_count() or 1)


@dataclass
class WorkUnit:
    """A subtree walked entirely by one worker."""

    scan_root: Path
    start: Path
    depth: int = 0
    descend: bool = True
    ancestors: frozenset[DirectoryId] = frozenset()


@dataclass
class UnitResult:
    records: list[BackupRecord] = field(default_factory=list)
    errors: list[ScanError] = field(default_factory=list)
    cancelled: bool = False


def record_identity(record: BackupRecord) -> object:
    """Key under which copies of one backup reached through links are merged.

    Only records that carry a file identity (scans that follow symlinks) are
    merged across paths, and never across projects: hard links with
    different names stay separate backups.
    """
    if record.file_id is None:
        return record.path
    return (record.project_key, record.file_id)


class ScanHandle:
    """Observes and controls one scan pass running in the background."""

    def __init__(self, roots: tuple[Path, ...], on_progress: ProgressCallback | None = None):
        self.roots = roots
        self._on_progress = on_progress
        self._cancel_event = threading.Event()
        self._done_event = threading.Event()
        self._merge_lock = threading.Lock()
        self._progress_lock = threading.Lock()
        self._callback_lock = threading.Lock()
        self._progress = ScanProgress()
        self._records: dict[object, BackupRecord] = {}
        self._seen: set[object] = set()
        self._errors: list[ScanError] = []
        self._final_report: ScanReport | None = None
        self.thread: threading.Thread | None = None

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def is_running(self) -> bool:
        return not self._done_event.is_set()

    @property
    def progress(self) -> ScanProgress:
        with self._progress_lock:
            return dataclasses.replace(self._progress)

    def cancel(self) -> None:
        """Ask workers to stop after the directory they are on."""
        if not self._cancel_event.is_set():
            logger.info("Cancellation requested for scan of %d root(s)", len(self.roots))
        self._cancel_event.set()

    def wait(self, timeout: float | None = None) -> ScanReport:
        """Block until the scan finishes or timeout expires, then return a snapshot."""
        self._done_event.wait(timeout)
        return self.report()

    def report(self) -> ScanReport:
        if self._final_report is not None:
            return self._final_report
        progress = self.progress
        with self._merge_lock:
            return self._snapshot(ScanStatus.RUNNING, None, progress)

    def _record_directory(
        self,
        batch: DirectoryBatch,
        records: list[BackupRecord],
        errors: int,
    ) -> None:
        # Callbacks see snapshots in the order the counters changed.
        with self._callback_lock:
            with self._progress_lock:
                self._seen.update(record_identity(r) for r in records)
                self._progress.directories_scanned += 1
                self._progress.files_scanned += len(batch.files)
                self._progress.matched_files = len(self._seen)
                self._progress.error_count += errors
                self._progress.current_directory = str(batch.directory)
                snapshot = dataclasses.replace(self._progress)
            if self._on_progress is not None:
                self._on_progress(snapshot)

    def _merge(self, result: UnitResult) -> None:
        with self._merge_lock:
            for record in result.records:
                identity = record_identity(record)
                existing = self._records.get(identity)
                if existing is None or record.path < existing.path:
                    self._records[identity] = record
            self._errors.extend(result.errors)

    def _add_errors(self, errors: Iterable[ScanError]) -> None:
        with self._merge_lock:
            self._errors.extend(errors)

    def _finish(self, status: ScanStatus) -> None:
        progress = self.progress
        with self._merge_lock:
            self._final_report = self._snapshot(status, time.time(), progress)
        self._done_event.set()
        logger.info(
            "Scan %s: %d backups in %d projects",
            status.value,
            self._final_report.matched_file_count,
            len(self._final_report.groups),
        )

    def _snapshot(
        self,
        status: ScanStatus,
        finished_at: float | None,
        progress: ScanProgress,
    ) -> ScanReport:
        by_key: dict[str, list[BackupRecord]] = {}
        for record in self._records.values():
            by_key.setdefault(record.project_key, []).append(record)

        groups = {
            key: ProjectGroup(key, tuple(sorted(by_key[key], key=lambda r: r.path)))
            for key in sorted(by_key)
        }
        errors = tuple(sorted(self._errors, key=lambda e: (str(e.path), e.kind.value)))

        return ScanReport(
            roots=self.roots,
            groups=MappingProxyType(groups),
            status=status,
            scanned_directory_count=progress.directories_scanned,
            scanned_file_count=progress.files_scanned,
            matched_file_count=len(self._records),
            errors=errors,
            started_at=progress.start_time,
            finished_at=finished_at,
        )


class ScanCoordinator:
    """Runs scan passes on a fixed-size thread pool."""

    def __init__(
        self,
        thread_count: int | None = None,
        max_depth: int | None = None,
        mode: MatchMode = MatchMode.MARKER,
        extensions: tuple[str, ...] = DEFAULT_EXTENSIONS,
        follow_symlinks: bool = False,
        group_by_folder: bool = False,
        on_progress: ProgressCallback | None = None,
    ):
        validate_scan_settings(max_depth, thread_count, extensions)
        self.thread_count = thread_count or default_thread_count()
        self.max_depth = max_depth
        self.follow_symlinks = follow_symlinks
        self.on_progress = on_progress
        self.matcher = BackupMatcher(
            mode=mode,
            extensions=extensions,
            group_by_folder=group_by_folder,
            follow_symlinks=follow_symlinks,
        )

    def start(self, roots: Iterable[str | Path]) -> ScanHandle:
        """Start a scan in the background and return its handle immediately."""
        normalized = normalize_roots(roots)
        handle = ScanHandle(normalized, on_progress=self.on_progress)
        thread = threading.Thread(
            target=self._run,
            args=(handle,),
            name="flpclean-scan",
            daemon=True,
        )
        handle.thread = thread
        thread.start()
        return handle

    def scan(self, roots: Iterable[str | Path]) -> ScanReport:
        return self.start(roots).wait()

    def _run(self, handle: ScanHandle) -> None:
        logger.info(
            "Scanning %s with %d thread(s)",
            ", ".join(str(r) for r in handle.roots),
            self.thread_count,
        )
        try:
            cut_short = self._execute(handle)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.exception("Scan pool failed")
            handle._add_errors([ScanError(Path(handle.roots[0]), ErrorKind.IO_ERROR, str(e))])
            handle._finish(ScanStatus.FAILED)
            return

        status = ScanStatus.CANCELLED if cut_short else ScanStatus.COMPLETED
        handle._finish(status)

    def _execute(self, handle: ScanHandle) -> bool:
        """Walk every unit and merge the results. Returns True if any unit stopped early."""
        units, planning_errors = plan_work_units(
            handle.roots,
            self.thread_count,
            self.max_depth,
            self.follow_symlinks,
        )
        handle._add_errors(planning_errors)

        cut_short = False
        with ThreadPoolExecutor(
            max_workers=self.thread_count,
            thread_name_prefix="flpclean-worker",
        ) as pool:
            futures = {pool.submit(self._process_unit, unit, handle): unit for unit in units}
            for future in as_completed(futures):
                unit = futures[future]
                result = future.result()
                if result.cancelled:
                    logger.debug("Unit %s stopped early", unit.start)
                    cut_short = True
                handle._merge(result)
        return cut_short

    def _process_unit(self, unit: WorkUnit, handle: ScanHandle) -> UnitResult:
        result = UnitResult()
        if handle.cancel_requested:
            result.cancelled = True
            return result

        # A crash keeps what the unit had already found.
        try:
            self._walk_unit(unit, handle, result)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.exception("Worker failed while scanning %s", unit.start)
            result.errors.append(ScanError(unit.start, ErrorKind.IO_ERROR, str(e)))
        return result

    def _walk_unit(self, unit: WorkUnit, handle: ScanHandle, result: UnitResult) -> None:
        batches = walk_directory(
            unit.start,
            max_depth=self.max_depth,
            follow_symlinks=self.follow_symlinks,
            start_depth=unit.depth,
            ancestors=unit.ancestors,
            descend=unit.descend,
        )
        for batch in batches:
            records, errors = self.matcher.match_batch(batch, unit.scan_root)
            result.records.extend(records)
            result.errors.extend(batch.errors)
            result.errors.extend(errors)
            handle._record_directory(batch, records, len(batch.errors) + len(errors))

            if handle.cancel_requested:
                logger.debug("Stopping unit %s after %s", unit.start, batch.directory)
                result.cancelled = True
                break


def normalize_roots(roots: Iterable[str | Path]) -> tuple[Path, ...]:
    """Resolve roots, check they are readable and drop roots nested in others.

    Raises:
        InvalidConfigurationError: If no roots are given or one cannot be read.
    """
    resolved: set[Path] = set()
    for root in roots:
        path = Path(root).expanduser()
        try:
            path = path.resolve(strict=True)
        except OSError as e:
            raise InvalidConfigurationError(f"Scan root does not exist: {root}") from e
        if not path.is_dir():
            raise InvalidConfigurationError(f"Scan root is not a directory: {path}")
        try:
            with os.scandir(path):
                pass
        except OSError as e:
            raise InvalidConfigurationError(f"Scan root is not readable: {path} ({e})") from e
        resolved.add(path)

    if not resolved:
        raise InvalidConfigurationError("No scan roots given")

    kept: list[Path] = []
    for path in sorted(resolved):
        parent = next((k for k in kept if path.is_relative_to(k)), None)
        if parent is not None:
            logger.info("Skipping %s, already covered by %s", path, parent)
            continue
        kept.append(path)
    return tuple(kept)


def plan_work_units(
    roots: tuple[Path, ...],
    thread_count: int,
    max_depth: int | None,
    follow_symlinks: bool = False,
) -> tuple[list[WorkUnit], list[ScanError]]:
    """Split roots into units of work for the pool.

    Roots are only split into their top-level subdirectories when there
    are fewer roots than threads, since a unit is the smallest piece of
    work one worker can take.
    """
    split = len(roots) < thread_count and (max_depth is None or max_depth > 0)
    units: list[WorkUnit] = []
    errors: list[ScanError] = []

    for root in roots:
        if not split:
            units.append(WorkUnit(scan_root=root, start=root))
            continue

        try:
            subdirs, entry_errors = _top_level_subdirectories(root, follow_symlinks)
            root_id = directory_id(root) if follow_symlinks else None
        except OSError as e:
            logger.warning("Cannot split %s, scanning it as one unit: %s", root, e)
            units.append(WorkUnit(scan_root=root, start=root))
            continue

        units.append(WorkUnit(scan_root=root, start=root, descend=False))
        errors.extend(entry_errors)
        ancestors = frozenset({root_id}) if root_id is not None else frozenset()
        for subdir in subdirs:
            if root_id is not None:
                try:
                    if directory_id(subdir) == root_id:
                        errors.append(
                            ScanError(
                                subdir,
                                ErrorKind.SYMLINK_CYCLE_DETECTED,
                                "directory links back to its scan root",
                            )
                        )
                        continue
                except OSError as e:
                    errors.append(ScanError(subdir, classify_os_error(e), str(e)))
                    continue
            units.append(WorkUnit(scan_root=root, start=subdir, depth=1, ancestors=ancestors))

    return units, errors


def _top_level_subdirectories(
    root: Path,
    follow_symlinks: bool,
) -> tuple[list[Path], list[ScanError]]:
    subdirs: list[Path] = []
    errors: list[ScanError] = []
    with os.scandir(root) as entries:
        for entry in entries:
            try:
                if is_link(entry) and not follow_symlinks:
                    continue
                if entry.is_dir(follow_symlinks=follow_symlinks):
                    subdirs.append(Path(entry.path))
            except OSError as e:
                logger.warning("Cannot inspect %s: %s", entry.path, e)
                errors.append(ScanError(Path(entry.path), classify_os_error(e), str(e)))
    return sorted(subdirs), errors
