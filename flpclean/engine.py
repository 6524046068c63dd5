"""Public entry points used by front ends.

Every setting is passed in explicitly; nothing here reads configuration
files or keeps state between calls.
"""

from collections.abc import Iterable, Mapping
from pathlib import Path

from flpclean.cleanup import CleanupExecutor
from flpclean.config import DEFAULT_EXTENSIONS, MatchMode
from flpclean.models import CleanupResult, RetentionDecision, ScanReport
from flpclean.retention import collect_delete_set, select_retention
from flpclean.scanner.coordinator import ProgressCallback, ScanCoordinator, ScanHandle
from flpclean.scanner.drives import list_drives


def start_scan(
    roots: Iterable[str | Path],
    max_depth: int | None = None,
    thread_count: int | None = None,
    *,
    mode: MatchMode = MatchMode.MARKER,
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS,
    follow_symlinks: bool = False,
    group_by_folder: bool = False,
    on_progress: ProgressCallback | None = None,
) -> ScanHandle:
    """Start scanning roots in the background.

    Raises:
        InvalidConfigurationError: If the settings or a root are unusable.
    """
    coordinator = ScanCoordinator(
        thread_count=thread_count,
        max_depth=max_depth,
        mode=mode,
        extensions=extensions,
        follow_symlinks=follow_symlinks,
        group_by_folder=group_by_folder,
        on_progress=on_progress,
    )
    return coordinator.start(roots)


def scan(roots: Iterable[str | Path], **kwargs) -> ScanReport:
    """Run a scan to completion and return its report."""
    return start_scan(roots, **kwargs).wait()


def cancel_scan(handle: ScanHandle) -> None:
    handle.cancel()


def get_report(handle: ScanHandle) -> ScanReport:
    return handle.report()


def compute_retention(report: ScanReport) -> dict[str, RetentionDecision]:
    return select_retention(report)


def preview_cleanup(decisions: Mapping[str, RetentionDecision]) -> CleanupResult:
    return _executor_for(decisions).execute(collect_delete_set(decisions), dry_run=True)


def execute_cleanup(decisions: Mapping[str, RetentionDecision]) -> CleanupResult:
    return _executor_for(decisions).execute(collect_delete_set(decisions), dry_run=False)


def default_roots() -> list[Path]:
    return list_drives()


def _executor_for(decisions: Mapping[str, RetentionDecision]) -> CleanupExecutor:
    return CleanupExecutor(protected=(d.keep.path for d in decisions.values()))
