"""Default scan roots when the user does not pick any."""

import os
import string
from pathlib import Path

POSIX_MOUNT_ROOTS = ("/home", "/Users", "/mnt", "/media", "/Volumes")


def list_drives() -> list[Path]:
    """List the drives or mount roots worth scanning on this machine."""
    if os.name == "nt":
        return _windows_drives()
    return _posix_roots()


def _windows_drives() -> list[Path]:
    drives: list[Path] = []
    for letter in string.ascii_uppercase:
        drive = Path(f"{letter}:\\")
        if drive.exists():
            drives.append(drive)
    return drives


def _posix_roots() -> list[Path]:
    roots = [Path(p) for p in POSIX_MOUNT_ROOTS if os.path.isdir(p)]
    if not roots:
        roots.append(Path.home())
    return roots
