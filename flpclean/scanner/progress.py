"""Progress reporting utilities for scanning."""

import sys
import time
from dataclasses import dataclass, field

_SIZE_UNITS = ("KB", "MB", "GB", "TB")


@dataclass
class ScanProgress:
    """Counters for an ongoing scan pass."""

    files_scanned: int = 0
    directories_scanned: int = 0
    matched_files: int = 0
    error_count: int = 0
    current_directory: str = ""
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time


class ProgressReporter:
    """Reports scan progress to the user."""

    def __init__(self, interval: int = 1000):
        self.interval = interval
        self._last_report_count = 0

    def report_if_needed(self, progress: ScanProgress) -> None:
        if progress.files_scanned - self._last_report_count >= self.interval:
            self._print_progress(progress)
            self._last_report_count = progress.files_scanned

    def report_completion(self, progress: ScanProgress) -> None:
        duration = format_duration(progress.elapsed_seconds)
        print(
            f"\nScan complete: {progress.files_scanned:,} files in "
            f"{progress.directories_scanned:,} directories ({duration})",
            file=sys.stderr,
        )

    def report_cancellation(self, progress: ScanProgress) -> None:
        print(
            f"\nScan cancelled. Keeping partial results.\n"
            f"Scanned: {progress.files_scanned:,} files in "
            f"{progress.directories_scanned:,} directories, "
            f"{progress.matched_files:,} backups found",
            file=sys.stderr,
        )

    def _print_progress(self, progress: ScanProgress) -> None:
        print(
            f"[{progress.files_scanned:,} files, {progress.matched_files:,} backups] "
            f"Scanning: {progress.current_directory}",
            file=sys.stderr,
        )


def format_duration(seconds: float) -> str:
    """Tenths of a second below a minute, then minutes and zero-padded seconds."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(round(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m {secs:02d}s"


def format_bytes(size: int | None) -> str:
    """Human-readable size; whole bytes below one kilobyte."""
    size = size or 0
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in _SIZE_UNITS:
        value /= 1024
        if value < 1024 or unit == _SIZE_UNITS[-1]:
            break
    return f"{value:.1f} {unit}"
