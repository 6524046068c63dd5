"""Turns directory listings into backup records."""

import logging
import os
from datetime import datetime
from pathlib import Path

from flpclean.config import DEFAULT_EXTENSIONS, MatchMode
from flpclean.models import BackupRecord, ScanError
from flpclean.scanner.filesystem import DirectoryBatch, classify_os_error
from flpclean.scanner.naming import is_project_file, normalize_project_key, parse_backup_name

logger = logging.getLogger(__name__)

BACKUP_FOLDER_NAME = "backup"


class BackupMatcher:
    """Recognises backup files in a directory batch.

    The matcher is stateless apart from its settings, so a single instance
    can be shared by every worker of a scan.
    """

    def __init__(
        self,
        mode: MatchMode = MatchMode.MARKER,
        extensions: tuple[str, ...] = DEFAULT_EXTENSIONS,
        group_by_folder: bool = False,
        follow_symlinks: bool = False,
    ) -> None:
        self.mode = mode
        self.extensions = extensions
        self.group_by_folder = group_by_folder
        self.follow_symlinks = follow_symlinks

    def match_batch(
        self,
        batch: DirectoryBatch,
        scan_root: Path,
    ) -> tuple[list[BackupRecord], list[ScanError]]:
        in_backup_folder = is_backup_folder(batch.directory)
        if self.mode is MatchMode.BACKUP_FOLDER and not in_backup_folder:
            return [], []

        accept_unmarked = (
            self.mode is MatchMode.HEURISTIC
            and in_backup_folder
            and _contains_project_file(batch.directory.parent, self.extensions)
        )

        records: list[BackupRecord] = []
        errors: list[ScanError] = []
        for entry in batch.files:
            try:
                record = self._match_entry(entry, batch.directory, scan_root, accept_unmarked)
            except FileNotFoundError:
                logger.warning("File disappeared during scan: %s", entry.path)
                continue
            except OSError as e:
                logger.warning("Cannot read %s: %s", entry.path, e)
                errors.append(ScanError(Path(entry.path), classify_os_error(e), str(e)))
                continue
            if record is not None:
                records.append(record)
        return records, errors

    def _match_entry(
        self,
        entry: os.DirEntry,
        directory: Path,
        scan_root: Path,
        accept_unmarked: bool,
    ) -> BackupRecord | None:
        parsed = parse_backup_name(entry.name, self.extensions)
        if parsed is None and not (accept_unmarked and is_project_file(entry.name, self.extensions)):
            return None

        stat_result = entry.stat(follow_symlinks=self.follow_symlinks)
        modified_at = stat_result.st_mtime

        if parsed is not None:
            project_name = parsed.project_name
            project_key = parsed.project_key
            timestamp = parsed.timestamp_for(modified_at)
            source = "marker"
        else:
            project_name = Path(entry.name).stem.strip()
            project_key = normalize_project_key(project_name)
            timestamp = datetime.fromtimestamp(modified_at)
            source = "heuristic"

        if self.group_by_folder:
            project_key = f"{project_folder(directory)}#{project_key}"

        return BackupRecord(
            path=Path(entry.path),
            project_key=project_key,
            project_name=project_name,
            timestamp=timestamp,
            size_bytes=stat_result.st_size,
            modified_at=modified_at,
            scan_root=scan_root,
            source=source,
            file_id=_file_identity(stat_result) if self.follow_symlinks else None,
        )


def is_backup_folder(directory: Path) -> bool:
    return directory.name.casefold() == BACKUP_FOLDER_NAME


def project_folder(directory: Path) -> Path:
    """Folder a backup belongs to: the parent of a Backup folder, else the folder itself."""
    if is_backup_folder(directory):
        return directory.parent
    return directory


def _contains_project_file(directory: Path, extensions: tuple[str, ...]) -> bool:
    try:
        with os.scandir(directory) as entries:
            for entry in entries:
                if is_project_file(entry.name, extensions) and entry.is_file():
                    return True
    except OSError as e:
        logger.debug("Cannot inspect project folder %s: %s", directory, e)
    return False


def _file_identity(stat_result: os.stat_result) -> tuple[int, int] | None:
    if not stat_result.st_ino:
        return None
    return (stat_result.st_dev, stat_result.st_ino)
