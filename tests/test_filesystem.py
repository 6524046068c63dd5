"""Tests for directory traversal."""

import contextlib
import errno
import os
from pathlib import Path

import pytest

from flpclean.models import ErrorKind
from flpclean.scanner.filesystem import classify_os_error, walk_directory


def _dirs(batches) -> list[Path]:
    return [b.directory for b in batches]


class _JunctionEntry:
    """Directory entry that reports itself as an NTFS junction."""

    def __init__(self, entry: os.DirEntry):
        self._entry = entry

    def __getattr__(self, name):
        return getattr(self._entry, name)

    def is_symlink(self) -> bool:
        return False

    def is_junction(self) -> bool:
        return True


def _scandir_with_junctions(real_scandir, names: set[str]):
    def fake_scandir(path):
        with real_scandir(path) as entries:
            listed = [_JunctionEntry(e) if e.name in names else e for e in entries]
        return contextlib.nullcontext(listed)

    return fake_scandir


class TestWalkDirectory:
    """Tests for walk_directory function."""

    def test_walks_empty_directory(self, tmp_path: Path):
        batches = list(walk_directory(tmp_path))
        assert len(batches) == 1
        assert batches[0].directory == tmp_path
        assert batches[0].files == []
        assert batches[0].errors == []

    def test_lists_files_in_name_order(self, tmp_path: Path):
        (tmp_path / "zebra.flp").write_text("z")
        (tmp_path / "apple.flp").write_text("a")
        (tmp_path / "middle.flp").write_text("m")

        batches = list(walk_directory(tmp_path))
        names = [entry.name for entry in batches[0].files]

        assert names == ["apple.flp", "middle.flp", "zebra.flp"]

    def test_depth_first_in_name_order(self, tmp_path: Path):
        (tmp_path / "b").mkdir()
        (tmp_path / "a" / "y").mkdir(parents=True)
        (tmp_path / "a" / "x").mkdir()

        batches = list(walk_directory(tmp_path))

        assert _dirs(batches) == [
            tmp_path,
            tmp_path / "a",
            tmp_path / "a" / "x",
            tmp_path / "a" / "y",
            tmp_path / "b",
        ]
        assert [b.depth for b in batches] == [0, 1, 2, 2, 1]

    def test_directories_are_not_files(self, tmp_path: Path):
        (tmp_path / "sub").mkdir()
        batches = list(walk_directory(tmp_path))
        assert batches[0].files == []

    def test_max_depth_limits_descent(self, tmp_path: Path):
        (tmp_path / "a" / "b" / "c").mkdir(parents=True)

        batches = list(walk_directory(tmp_path, max_depth=1))

        assert _dirs(batches) == [tmp_path, tmp_path / "a"]

    def test_max_depth_zero_lists_root_only(self, tmp_path: Path):
        (tmp_path / "a").mkdir()
        batches = list(walk_directory(tmp_path, max_depth=0))
        assert _dirs(batches) == [tmp_path]

    def test_no_descend_lists_start_only(self, tmp_path: Path):
        (tmp_path / "a").mkdir()
        batches = list(walk_directory(tmp_path, descend=False))
        assert _dirs(batches) == [tmp_path]

    def test_start_depth_counts_toward_max_depth(self, tmp_path: Path):
        (tmp_path / "a").mkdir()
        batches = list(walk_directory(tmp_path, max_depth=1, start_depth=1))
        assert _dirs(batches) == [tmp_path]

    def test_skips_symlinks_by_default(self, tmp_path: Path):
        real = tmp_path / "real.flp"
        real.write_text("real")
        (tmp_path / "link.flp").symlink_to(real)
        (tmp_path / "dir").mkdir()
        (tmp_path / "dirlink").symlink_to(tmp_path / "dir")

        batches = list(walk_directory(tmp_path))

        assert [e.name for e in batches[0].files] == ["real.flp"]
        assert _dirs(batches) == [tmp_path, tmp_path / "dir"]

    def test_detects_symlink_cycle(self, tmp_path: Path):
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "loop").symlink_to(tmp_path)

        batches = list(walk_directory(tmp_path, follow_symlinks=True))
        errors = [e for b in batches for e in b.errors]

        assert _dirs(batches) == [tmp_path, tmp_path / "a"]
        assert len(errors) == 1
        assert errors[0].kind is ErrorKind.SYMLINK_CYCLE_DETECTED
        assert errors[0].path == tmp_path / "a" / "loop"

    def test_follows_symlink_without_cycle(self, tmp_path: Path):
        target = tmp_path / "target"
        target.mkdir()
        (target / "song.flp").write_text("x")
        root = tmp_path / "root"
        root.mkdir()
        (root / "link").symlink_to(target)

        batches = list(walk_directory(root, follow_symlinks=True))

        assert _dirs(batches) == [root, root / "link"]
        assert [e.name for e in batches[1].files] == ["song.flp"]

    def test_skips_junctions_by_default(self, tmp_path: Path, monkeypatch):
        (tmp_path / "loop").mkdir()
        (tmp_path / "loop" / "song.flp").write_text("x")
        (tmp_path / "real").mkdir()
        monkeypatch.setattr(
            "flpclean.scanner.filesystem.os.scandir",
            _scandir_with_junctions(os.scandir, {"loop"}),
        )

        batches = list(walk_directory(tmp_path))

        assert _dirs(batches) == [tmp_path, tmp_path / "real"]
        assert all(b.errors == [] for b in batches)

    def test_unreadable_directory_is_recorded_and_skipped(self, tmp_path: Path, monkeypatch):
        (tmp_path / "locked").mkdir()
        (tmp_path / "open").mkdir()
        (tmp_path / "open" / "song.flp").write_text("x")
        locked = str(tmp_path / "locked")
        real_scandir = os.scandir

        def fake_scandir(path):
            if str(path) == locked:
                raise PermissionError(errno.EACCES, "Permission denied", locked)
            return real_scandir(path)

        monkeypatch.setattr("flpclean.scanner.filesystem.os.scandir", fake_scandir)

        batches = list(walk_directory(tmp_path))
        errors = [e for b in batches for e in b.errors]

        assert len(errors) == 1
        assert errors[0].path == tmp_path / "locked"
        assert errors[0].kind is ErrorKind.PERMISSION_DENIED
        assert [e.name for e in batches[-1].files] == ["song.flp"]

    def test_missing_root_is_recorded(self, tmp_path: Path):
        batches = list(walk_directory(tmp_path / "missing"))
        assert len(batches) == 1
        assert batches[0].errors[0].kind is ErrorKind.FILE_ALREADY_GONE


class TestClassifyOsError:
    """Tests for classify_os_error function."""

    def test_missing_file(self):
        assert classify_os_error(FileNotFoundError(errno.ENOENT, "gone")) is ErrorKind.FILE_ALREADY_GONE

    def test_permission_denied(self):
        assert classify_os_error(PermissionError(errno.EACCES, "no")) is ErrorKind.PERMISSION_DENIED

    def test_busy_file_is_locked(self):
        assert classify_os_error(OSError(errno.EBUSY, "busy")) is ErrorKind.FILE_LOCKED

    def test_windows_sharing_violation_is_locked(self):
        error = PermissionError(errno.EACCES, "in use")
        error.winerror = 32
        assert classify_os_error(error) is ErrorKind.FILE_LOCKED

    @pytest.mark.parametrize("code", [errno.EIO, errno.ENOSPC])
    def test_other_errors(self, code):
        assert classify_os_error(OSError(code, "fail")) is ErrorKind.IO_ERROR
