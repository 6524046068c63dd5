"""Retention selection: which backup of each project survives a cleanup."""

from flpclean.retention.selector import (
    RetentionSummary,
    collect_delete_set,
    group_records,
    select_retention,
    summarize,
)

__all__ = [
    "RetentionSummary",
    "collect_delete_set",
    "group_records",
    "select_retention",
    "summarize",
]
