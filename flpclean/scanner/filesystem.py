"""Filesystem traversal utilities for scanning directories."""

import errno
import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from flpclean.models import ErrorKind, ScanError

logger = logging.getLogger(__name__)

_LOCKED_WINERRORS = {32, 33}
_LOCKED_ERRNOS = {errno.EBUSY, errno.ETXTBSY}

DirectoryId = tuple[int, int]


@dataclass
class DirectoryBatch:
    """Files found directly inside one directory."""

    directory: Path
    depth: int
    files: list[os.DirEntry] = field(default_factory=list)
    errors: list[ScanError] = field(default_factory=list)


@dataclass
class _PendingDirectory:
    path: Path
    depth: int
    ancestors: frozenset[DirectoryId]


def classify_os_error(exc: OSError) -> ErrorKind:
    """Map an OSError to the error kind reported to the user."""
    if isinstance(exc, FileNotFoundError):
        return ErrorKind.FILE_ALREADY_GONE
    if getattr(exc, "winerror", None) in _LOCKED_WINERRORS or exc.errno in _LOCKED_ERRNOS:
        return ErrorKind.FILE_LOCKED
    if isinstance(exc, PermissionError):
        return ErrorKind.PERMISSION_DENIED
    return ErrorKind.IO_ERROR


def is_link(entry: os.DirEntry) -> bool:
    """True for symlinks and for NTFS junctions, which is_symlink() does not report."""
    return entry.is_symlink() or entry.is_junction()


def directory_id(path: Path) -> DirectoryId:
    stat_result = os.stat(path)
    return (stat_result.st_dev, stat_result.st_ino)


def walk_directory(
    root: Path,
    max_depth: int | None = None,
    follow_symlinks: bool = False,
    start_depth: int = 0,
    ancestors: frozenset[DirectoryId] = frozenset(),
    descend: bool = True,
) -> Iterator[DirectoryBatch]:
    """Yield one batch per directory under root, depth-first in name order.

    Args:
        root: Directory to start from.
        max_depth: Deepest directory level to list, counted from the scan
            root at depth 0. None means unlimited.
        follow_symlinks: Descend into symlinked directories and junctions
            and accept symlinked files. Cycles are detected per branch.
        start_depth: Depth of root relative to the scan root.
        ancestors: Identities of directories above root on this branch.
        descend: When False only root itself is listed.
    """
    stack = [_PendingDirectory(root, start_depth, ancestors)]

    while stack:
        pending = stack.pop()
        batch, subdirs = _scan_directory(pending, follow_symlinks)

        children: list[_PendingDirectory] = []
        if descend and (max_depth is None or pending.depth < max_depth):
            branch = pending.ancestors
            if follow_symlinks:
                try:
                    branch = branch | {directory_id(pending.path)}
                except OSError as e:
                    logger.debug("Could not identify %s: %s", pending.path, e)

            for subdir in subdirs:
                child = _enter_subdirectory(subdir, pending.depth + 1, branch, follow_symlinks)
                if isinstance(child, ScanError):
                    batch.errors.append(child)
                    continue
                children.append(child)

        yield batch
        stack.extend(reversed(children))


def _enter_subdirectory(
    subdir: Path,
    depth: int,
    branch: frozenset[DirectoryId],
    follow_symlinks: bool,
) -> _PendingDirectory | ScanError:
    if not follow_symlinks:
        return _PendingDirectory(subdir, depth, branch)

    try:
        identity = directory_id(subdir)
    except OSError as e:
        logger.warning("Cannot stat directory %s: %s", subdir, e)
        return ScanError(path=subdir, kind=classify_os_error(e), message=str(e))

    if identity in branch:
        logger.warning("Symlink cycle detected, not descending: %s", subdir)
        return ScanError(
            path=subdir,
            kind=ErrorKind.SYMLINK_CYCLE_DETECTED,
            message="directory is already being traversed on this branch",
        )
    return _PendingDirectory(subdir, depth, branch)


def _scan_directory(
    pending: _PendingDirectory,
    follow_symlinks: bool,
) -> tuple[DirectoryBatch, list[Path]]:
    batch = DirectoryBatch(directory=pending.path, depth=pending.depth)
    subdirs: list[Path] = []

    try:
        with os.scandir(pending.path) as entries:
            for entry in sorted(entries, key=lambda e: e.name):
                _classify_entry(entry, batch, subdirs, follow_symlinks)
    except PermissionError as e:
        logger.warning("Permission denied scanning directory: %s", pending.path)
        batch.errors.append(ScanError(pending.path, ErrorKind.PERMISSION_DENIED, str(e)))
    except OSError as e:
        logger.error("Error scanning directory %s: %s", pending.path, e)
        batch.errors.append(ScanError(pending.path, classify_os_error(e), str(e)))

    return batch, subdirs


def _classify_entry(
    entry: os.DirEntry,
    batch: DirectoryBatch,
    subdirs: list[Path],
    follow_symlinks: bool,
) -> None:
    try:
        if is_link(entry) and not follow_symlinks:
            return
        if entry.is_dir(follow_symlinks=follow_symlinks):
            subdirs.append(Path(entry.path))
        elif entry.is_file(follow_symlinks=follow_symlinks):
            batch.files.append(entry)
    except PermissionError as e:
        logger.warning("Permission denied: %s", entry.path)
        batch.errors.append(ScanError(Path(entry.path), ErrorKind.PERMISSION_DENIED, str(e)))
    except OSError as e:
        logger.error("Error processing %s: %s", entry.path, e)
        batch.errors.append(ScanError(Path(entry.path), classify_os_error(e), str(e)))
