"""FL Studio backup cleaner - keeps the latest backup of every project."""

__version__ = "0.1.0"

from flpclean.engine import (
    cancel_scan,
    compute_retention,
    execute_cleanup,
    get_report,
    preview_cleanup,
    start_scan,
)

__all__ = [
    "start_scan",
    "cancel_scan",
    "get_report",
    "compute_retention",
    "preview_cleanup",
    "execute_cleanup",
]
