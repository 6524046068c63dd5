"""Scanner module for finding backup files."""

from .coordinator import ScanCoordinator, ScanHandle, normalize_roots
from .drives import list_drives
from .filesystem import walk_directory
from .matcher import BackupMatcher
from .naming import parse_backup_name
from .progress import ProgressReporter, ScanProgress

__all__ = [
    "ScanCoordinator",
    "ScanHandle",
    "BackupMatcher",
    "normalize_roots",
    "parse_backup_name",
    "walk_directory",
    "list_drives",
    "ProgressReporter",
    "ScanProgress",
]
