"""Data models shared by the scanner, the retention selector and the cleanup executor."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class ScanStatus(Enum):
    """Status of a scan pass."""

    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ErrorKind(Enum):
    """Kinds of per-item problems reported by scans and cleanups."""

    PERMISSION_DENIED = "permission_denied"
    IO_ERROR = "io_error"
    SYMLINK_CYCLE_DETECTED = "symlink_cycle_detected"
    FILE_ALREADY_GONE = "file_already_gone"
    FILE_LOCKED = "file_locked"
    INVALID_CONFIGURATION = "invalid_configuration"


@dataclass(frozen=True)
class ScanError:
    """A directory or file the scan could not read."""

    path: Path
    kind: ErrorKind
    message: str = ""


@dataclass(frozen=True)
class BackupRecord:
    """One discovered backup file."""

    path: Path
    project_key: str
    project_name: str
    timestamp: datetime
    size_bytes: int
    modified_at: float
    scan_root: Path
    source: str = "marker"
    file_id: tuple[int, int] | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ProjectGroup:
    """All backups sharing a project key within one scan pass."""

    project_key: str
    records: tuple[BackupRecord, ...]

    def __post_init__(self) -> None:
        if not self.records:
            raise ValueError(f"project group {self.project_key!r} has no records")
        for record in self.records:
            if record.project_key != self.project_key:
                raise ValueError(
                    f"record {record.path} has key {record.project_key!r}, "
                    f"expected {self.project_key!r}"
                )

    @property
    def total_bytes(self) -> int:
        return sum(r.size_bytes for r in self.records)


@dataclass(frozen=True)
class RetentionDecision:
    """Keep/delete partition for one project's backups."""

    project_key: str
    keep: BackupRecord
    delete: tuple[BackupRecord, ...]

    def __post_init__(self) -> None:
        if self.keep in self.delete:
            raise ValueError(f"{self.keep.path} is both kept and deleted")
        for record in (self.keep, *self.delete):
            if record.project_key != self.project_key:
                raise ValueError(
                    f"record {record.path} does not belong to project {self.project_key!r}"
                )

    @property
    def reclaimable_bytes(self) -> int:
        return sum(r.size_bytes for r in self.delete)

    @property
    def records(self) -> tuple[BackupRecord, ...]:
        return (self.keep, *self.delete)


@dataclass(frozen=True)
class ScanReport:
    """Snapshot of a running or finished scan pass."""

    roots: tuple[Path, ...]
    groups: Mapping[str, ProjectGroup]
    status: ScanStatus
    scanned_directory_count: int = 0
    scanned_file_count: int = 0
    matched_file_count: int = 0
    errors: tuple[ScanError, ...] = ()
    started_at: float = 0.0
    finished_at: float | None = None

    @property
    def total_bytes(self) -> int:
        return sum(group.total_bytes for group in self.groups.values())


@dataclass(frozen=True)
class CleanupFailure:
    """A file the executor tried and failed to remove."""

    path: Path
    kind: ErrorKind
    message: str = ""


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of one cleanup invocation, live or dry-run."""

    dry_run: bool
    freed_bytes: int = 0
    deleted_count: int = 0
    failures: tuple[CleanupFailure, ...] = ()
    deleted_paths: tuple[Path, ...] = field(default=())

    @property
    def attempted_count(self) -> int:
        return self.deleted_count + len(self.failures)
