"""CleanupExecutor implementation."""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from flpclean.models import BackupRecord, CleanupFailure, CleanupResult
from flpclean.scanner.filesystem import classify_os_error

logger = logging.getLogger(__name__)


class CleanupExecutor:
    """Removes exactly the backups it is handed.

    The executor never decides what is old. It deletes the records in the
    delete set it receives, each one independently, and accounts for every
    attempt as either freed space or a failure.
    """

    def __init__(self, protected: Iterable[Path] = ()) -> None:
        self.protected = frozenset(protected)

    def execute(self, delete_set: Iterable[BackupRecord], dry_run: bool = False) -> CleanupResult:
        """Delete (or, in dry-run mode, only size up) the given backups."""
        targets = self._unique_targets(delete_set)

        if dry_run:
            freed = sum(r.size_bytes for r in targets)
            logger.info("Dry run: %d files, %d bytes would be freed", len(targets), freed)
            return CleanupResult(
                dry_run=True,
                freed_bytes=freed,
                deleted_count=len(targets),
                deleted_paths=tuple(r.path for r in targets),
            )

        freed = 0
        deleted: list[Path] = []
        failures: list[CleanupFailure] = []

        for record in targets:
            try:
                os.unlink(record.path)
            except OSError as e:
                kind = classify_os_error(e)
                logger.warning("Failed to delete %s (%s): %s", record.path, kind.value, e)
                failures.append(CleanupFailure(record.path, kind, str(e)))
                continue

            logger.debug("Deleted %s", record.path)
            freed += record.size_bytes
            deleted.append(record.path)

        logger.info(
            "Cleanup finished: %d deleted, %d failed, %d bytes freed",
            len(deleted),
            len(failures),
            freed,
        )
        return CleanupResult(
            dry_run=False,
            freed_bytes=freed,
            deleted_count=len(deleted),
            failures=tuple(failures),
            deleted_paths=tuple(deleted),
        )

    def _unique_targets(self, delete_set: Iterable[BackupRecord]) -> list[BackupRecord]:
        targets: dict[Path, BackupRecord] = {}
        for record in delete_set:
            if record.path in self.protected:
                logger.error("Refusing to delete kept backup %s", record.path)
                continue
            targets.setdefault(record.path, record)
        return [targets[path] for path in sorted(targets)]
