"""SQLite journal of scan passes and cleanup runs."""

import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Self

from flpclean.models import CleanupResult, ScanReport

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS scan_runs (
    id INTEGER PRIMARY KEY,
    roots TEXT NOT NULL,
    status TEXT NOT NULL,
    started_at_unix REAL NOT NULL,
    finished_at_unix REAL,
    directories_scanned INTEGER NOT NULL DEFAULT 0,
    files_scanned INTEGER NOT NULL DEFAULT 0,
    backups_found INTEGER NOT NULL DEFAULT 0,
    project_count INTEGER NOT NULL DEFAULT 0,
    error_count INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS cleanup_runs (
    id INTEGER PRIMARY KEY,
    scan_run_id INTEGER REFERENCES scan_runs(id) ON DELETE SET NULL,
    dry_run INTEGER NOT NULL,
    executed_at_unix REAL NOT NULL,
    deleted_count INTEGER NOT NULL,
    freed_bytes INTEGER NOT NULL,
    failure_count INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS cleanup_failures (
    id INTEGER PRIMARY KEY,
    cleanup_run_id INTEGER NOT NULL REFERENCES cleanup_runs(id) ON DELETE CASCADE,
    path TEXT NOT NULL,
    kind TEXT NOT NULL,
    message TEXT
);

CREATE INDEX IF NOT EXISTS idx_cleanup_runs_scan ON cleanup_runs(scan_run_id);
"""


@dataclass
class HistoryEntry:
    """One scan run, joined with the latest cleanup that followed it."""

    scan_run_id: int
    roots: str
    status: str
    started_at_unix: float
    backups_found: int
    project_count: int
    error_count: int
    deleted_count: int | None
    freed_bytes: int | None
    dry_run: bool | None


class History:
    """Records what each scan found and what each cleanup removed."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA_SQL)
        return self._conn

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def record_scan(self, report: ScanReport) -> int:
        cursor = self.conn.execute(
            """
            INSERT INTO scan_runs
            (roots, status, started_at_unix, finished_at_unix, directories_scanned,
             files_scanned, backups_found, project_count, error_count)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                ";".join(str(r) for r in report.roots),
                report.status.value,
                report.started_at,
                report.finished_at,
                report.scanned_directory_count,
                report.scanned_file_count,
                report.matched_file_count,
                len(report.groups),
                len(report.errors),
            ),
        )
        self.conn.commit()
        assert cursor.lastrowid is not None
        return cursor.lastrowid

    def record_cleanup(self, result: CleanupResult, scan_run_id: int | None = None) -> int:
        cursor = self.conn.execute(
            """
            INSERT INTO cleanup_runs
            (scan_run_id, dry_run, executed_at_unix, deleted_count, freed_bytes, failure_count)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                scan_run_id,
                int(result.dry_run),
                time.time(),
                result.deleted_count,
                result.freed_bytes,
                len(result.failures),
            ),
        )
        run_id = cursor.lastrowid
        assert run_id is not None
        self.conn.executemany(
            "INSERT INTO cleanup_failures (cleanup_run_id, path, kind, message) VALUES (?, ?, ?, ?)",
            [(run_id, str(f.path), f.kind.value, f.message) for f in result.failures],
        )
        self.conn.commit()
        return run_id

    def recent(self, limit: int = 20) -> list[HistoryEntry]:
        rows = self.conn.execute(
            """
            SELECT s.id, s.roots, s.status, s.started_at_unix, s.backups_found,
                   s.project_count, s.error_count,
                   c.deleted_count, c.freed_bytes, c.dry_run
            FROM scan_runs s
            LEFT JOIN cleanup_runs c ON c.id = (
                SELECT MAX(id) FROM cleanup_runs WHERE scan_run_id = s.id
            )
            ORDER BY s.id DESC
            LIMIT ?
            """,
            (limit,),
        ).fetchall()

        return [
            HistoryEntry(
                scan_run_id=row["id"],
                roots=row["roots"],
                status=row["status"],
                started_at_unix=row["started_at_unix"],
                backups_found=row["backups_found"],
                project_count=row["project_count"],
                error_count=row["error_count"],
                deleted_count=row["deleted_count"],
                freed_bytes=row["freed_bytes"],
                dry_run=None if row["dry_run"] is None else bool(row["dry_run"]),
            )
            for row in rows
        ]

    def failures_for(self, cleanup_run_id: int) -> list[sqlite3.Row]:
        return self.conn.execute(
            "SELECT path, kind, message FROM cleanup_failures WHERE cleanup_run_id = ? ORDER BY id",
            (cleanup_run_id,),
        ).fetchall()
