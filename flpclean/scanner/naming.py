"""Recognition of FL Studio backup file names.

FL Studio writes a backup every time a project is overwritten, named
after the project with the time of day appended::

    MySong (overwritten at 14h05).flp

The marker carries no date, so the day comes from the file's own
modification time.
"""

import re
from dataclasses import dataclass
from datetime import datetime, time

from flpclean.config import DEFAULT_EXTENSIONS

_BACKUP_NAME_PATTERN = re.compile(
    r"^(?P<name>.+?)\s*\(overwritten at (?P<hour>\d{1,2})h(?P<minute>\d{2})\)(?P<ext>\.[^.]+)$",
    re.IGNORECASE,
)

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ParsedBackupName:
    """Components extracted from a backup file name."""

    project_name: str
    project_key: str
    hour: int
    minute: int
    extension: str

    def timestamp_for(self, modified_at: float) -> datetime:
        """Combine the marker's time of day with the day the file was written."""
        day = datetime.fromtimestamp(modified_at).date()
        return datetime.combine(day, time(self.hour, self.minute))


def normalize_project_key(project_name: str) -> str:
    return _WHITESPACE.sub(" ", project_name.strip()).casefold()


def parse_backup_name(
    file_name: str,
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS,
) -> ParsedBackupName | None:
    """Parse a backup file name, returning None when it is not one.

    Args:
        file_name: Bare file name, without directory.
        extensions: Accepted project extensions, lowercase with leading dot.

    Returns:
        The parsed name, or None if the marker is missing, the extension is
        not a project extension, or the time of day is out of range.
    """
    match = _BACKUP_NAME_PATTERN.match(file_name)
    if match is None:
        return None

    extension = match.group("ext").lower()
    if extension not in extensions:
        return None

    hour = int(match.group("hour"))
    minute = int(match.group("minute"))
    if hour > 23 or minute > 59:
        return None

    project_name = match.group("name").strip()
    if not project_name:
        return None

    return ParsedBackupName(
        project_name=project_name,
        project_key=normalize_project_key(project_name),
        hour=hour,
        minute=minute,
        extension=extension,
    )


def is_project_file(file_name: str, extensions: tuple[str, ...] = DEFAULT_EXTENSIONS) -> bool:
    lowered = file_name.lower()
    return any(lowered.endswith(ext) and len(lowered) > len(ext) for ext in extensions)
