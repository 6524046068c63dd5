"""Configuration module for flpclean."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class InvalidConfigurationError(ValueError):
    """Raised when an operation is started with unusable settings."""


class MatchMode(Enum):
    """How backup files are recognised during a scan."""

    MARKER = "marker"
    BACKUP_FOLDER = "backup-folder"
    HEURISTIC = "heuristic"


DEFAULT_EXTENSIONS: tuple[str, ...] = (".flp",)


def _get_data_dir() -> Path:
    return Path.home() / ".flpclean"


@dataclass
class ScannerConfig:
    max_depth: int | None = None
    thread_count: int | None = None
    progress_interval: int = 1000
    mode: MatchMode = MatchMode.MARKER
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    follow_symlinks: bool = False
    group_by_folder: bool = False

    def validate(self) -> None:
        validate_scan_settings(self.max_depth, self.thread_count, self.extensions)
        if self.progress_interval < 1:
            raise InvalidConfigurationError(
                f"progress interval must be at least 1, got {self.progress_interval}"
            )


@dataclass
class CleanupConfig:
    auto_clean: bool = False
    dry_run: bool = False


@dataclass
class Config:
    history_path: Path = field(default_factory=lambda: _get_data_dir() / "history.db")
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)

    def validate(self) -> None:
        self.scanner.validate()


def validate_scan_settings(
    max_depth: int | None,
    thread_count: int | None,
    extensions: tuple[str, ...],
) -> None:
    """Reject settings a scan cannot start with."""
    if thread_count is not None and thread_count < 1:
        raise InvalidConfigurationError(f"thread count must be at least 1, got {thread_count}")
    if max_depth is not None and max_depth < 0:
        raise InvalidConfigurationError(f"max depth cannot be negative, got {max_depth}")
    if not extensions:
        raise InvalidConfigurationError("at least one project file extension is required")
    for ext in extensions:
        if not ext.startswith(".") or len(ext) < 2:
            raise InvalidConfigurationError(f"extension must look like '.flp', got {ext!r}")


def normalize_extensions(extensions: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Lowercase extensions and add the leading dot when it is missing."""
    normalized: list[str] = []
    for ext in extensions:
        ext = ext.strip().lower()
        if ext and not ext.startswith("."):
            ext = "." + ext
        if ext not in normalized:
            normalized.append(ext)
    return tuple(normalized)
