"""Latest-backup selection for project groups.

Everything in this module is pure: decisions are computed from records
already collected by a scan and never touch the filesystem.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from flpclean.models import BackupRecord, ProjectGroup, RetentionDecision, ScanReport


@dataclass
class RetentionSummary:
    """Totals over a set of retention decisions."""

    project_count: int = 0
    projects_with_old_backups: int = 0
    kept_count: int = 0
    delete_count: int = 0
    reclaimable_bytes: int = 0


def group_records(records: Iterable[BackupRecord]) -> dict[str, ProjectGroup]:
    """Group records by project key, keys and records in sorted order."""
    by_key: dict[str, list[BackupRecord]] = {}
    for record in records:
        by_key.setdefault(record.project_key, []).append(record)
    return {
        key: ProjectGroup(key, tuple(sorted(by_key[key], key=lambda r: r.path)))
        for key in sorted(by_key)
    }


def rank_records(records: Iterable[BackupRecord]) -> list[BackupRecord]:
    """Order records newest first.

    Ties on timestamp go to the larger file, then to the path that sorts
    first as a plain string.
    """
    by_path = sorted(records, key=lambda r: str(r.path))
    # Stable sort: equal (timestamp, size) keep the path order from above.
    return sorted(by_path, key=lambda r: (r.timestamp, r.size_bytes), reverse=True)


def decide(group: ProjectGroup) -> RetentionDecision:
    ranked = rank_records(group.records)
    return RetentionDecision(
        project_key=group.project_key,
        keep=ranked[0],
        delete=tuple(ranked[1:]),
    )


def select_retention(
    report: ScanReport | Mapping[str, ProjectGroup],
) -> dict[str, RetentionDecision]:
    """Compute the keep/delete partition for every project group.

    Args:
        report: A scan report, or a mapping of project key to group.

    Returns:
        Mapping of project key to decision, in sorted key order.
    """
    groups = report.groups if isinstance(report, ScanReport) else report
    return {key: decide(groups[key]) for key in sorted(groups)}


def collect_delete_set(decisions: Mapping[str, RetentionDecision]) -> list[BackupRecord]:
    """Flatten the delete side of all decisions, sorted by path."""
    records = [r for decision in decisions.values() for r in decision.delete]
    return sorted(records, key=lambda r: r.path)


def summarize(decisions: Mapping[str, RetentionDecision]) -> RetentionSummary:
    summary = RetentionSummary(project_count=len(decisions))
    for decision in decisions.values():
        summary.kept_count += 1
        summary.delete_count += len(decision.delete)
        summary.reclaimable_bytes += decision.reclaimable_bytes
        if decision.delete:
            summary.projects_with_old_backups += 1
    return summary
