"""Tests for retention selection."""

from datetime import datetime
from pathlib import Path
from types import MappingProxyType

import pytest

from flpclean.models import BackupRecord, ProjectGroup, RetentionDecision, ScanReport, ScanStatus
from flpclean.retention.selector import (
    collect_delete_set,
    group_records,
    rank_records,
    select_retention,
    summarize,
)


def _record(path: str, when: datetime, size: int = 100, key: str = "song") -> BackupRecord:
    return BackupRecord(
        path=Path(path),
        project_key=key,
        project_name=key.title(),
        timestamp=when,
        size_bytes=size,
        modified_at=when.timestamp(),
        scan_root=Path("/"),
    )


def _report(*records: BackupRecord) -> ScanReport:
    return ScanReport(
        roots=(Path("/"),),
        groups=MappingProxyType(group_records(records)),
        status=ScanStatus.COMPLETED,
        matched_file_count=len(records),
    )


class TestRankRecords:
    """Tests for the keep ordering."""

    def test_newest_first(self):
        older = _record("/a.flp", datetime(2024, 1, 1, 9, 0))
        newer = _record("/b.flp", datetime(2024, 1, 1, 18, 30))
        assert rank_records([older, newer]) == [newer, older]

    def test_tie_goes_to_larger_file(self):
        when = datetime(2024, 1, 1, 9, 0)
        small = _record("/a.flp", when, size=10)
        large = _record("/b.flp", when, size=20)
        assert rank_records([small, large])[0] == large

    def test_full_tie_goes_to_smallest_path(self):
        when = datetime(2024, 1, 1, 9, 0)
        b = _record("/b/x.flp", when)
        a = _record("/a/x.flp", when)
        c = _record("/c/x.flp", when)
        assert rank_records([b, c, a]) == [a, b, c]

    def test_path_tie_compares_whole_strings(self):
        when = datetime(2024, 1, 1, 9, 0)
        nested = _record("/a/b/c.flp", when)
        dashed = _record("/a/b-c.flp", when)
        # "-" sorts before "/", so the dashed path wins even though "b" < "b-c.flp".
        assert rank_records([nested, dashed]) == [dashed, nested]


class TestSelectRetention:
    """Tests for select_retention function."""

    def test_spec_scenario_day_beats_time_of_day(self):
        day1_morning = _record("/p1/Song (overwritten at 09h00).flp", datetime(2024, 3, 1, 9, 0))
        day1_evening = _record("/p1/Song (overwritten at 18h30).flp", datetime(2024, 3, 1, 18, 30))
        day2_morning = _record("/p2/Song (overwritten at 09h00).flp", datetime(2024, 3, 2, 9, 0))

        decisions = select_retention(_report(day1_morning, day1_evening, day2_morning))

        assert list(decisions) == ["song"]
        decision = decisions["song"]
        assert decision.keep == day2_morning
        assert set(decision.delete) == {day1_morning, day1_evening}

    def test_single_record_has_nothing_to_delete(self):
        only = _record("/a.flp", datetime(2024, 1, 1))
        decision = select_retention(_report(only))["song"]
        assert decision.keep == only
        assert decision.delete == ()

    def test_partition_covers_group(self):
        records = [
            _record(f"/{i}.flp", datetime(2024, 1, 1 + i % 3, i % 24, 0), size=i)
            for i in range(7)
        ]
        report = _report(*records)

        for key, decision in select_retention(report).items():
            group = report.groups[key]
            assert decision.keep not in decision.delete
            assert len(decision.delete) == len(group.records) - 1
            assert set(decision.records) == set(group.records)

    def test_deterministic(self):
        when = datetime(2024, 1, 1, 12, 0)
        records = [_record(f"/{name}.flp", when) for name in "dcab"]
        first = select_retention(_report(*records))
        second = select_retention(_report(*reversed(records)))
        assert first == second
        assert first["song"].keep.path == Path("/a.flp")

    def test_accepts_plain_group_mapping(self):
        record = _record("/a.flp", datetime(2024, 1, 1))
        decisions = select_retention({"song": ProjectGroup("song", (record,))})
        assert decisions["song"].keep == record

    def test_groups_are_independent(self):
        song = _record("/song.flp", datetime(2024, 1, 1), key="song")
        beat = _record("/beat.flp", datetime(2023, 1, 1), key="beat")
        decisions = select_retention(_report(song, beat))
        assert decisions["beat"].keep == beat
        assert decisions["song"].keep == song


class TestHelpers:
    """Tests for grouping and summary helpers."""

    def test_group_records(self):
        a = _record("/b.flp", datetime(2024, 1, 1), key="x")
        b = _record("/a.flp", datetime(2024, 1, 1), key="x")
        c = _record("/c.flp", datetime(2024, 1, 1), key="y")

        groups = group_records([a, b, c])

        assert list(groups) == ["x", "y"]
        assert groups["x"].records == (b, a)

    def test_collect_delete_set_sorted(self):
        records = [
            _record("/z.flp", datetime(2024, 1, 1, 1)),
            _record("/y.flp", datetime(2024, 1, 1, 2)),
            _record("/x.flp", datetime(2024, 1, 1, 3)),
        ]
        decisions = select_retention(_report(*records))
        assert [r.path for r in collect_delete_set(decisions)] == [Path("/y.flp"), Path("/z.flp")]

    def test_summarize(self):
        records = [
            _record("/a.flp", datetime(2024, 1, 1, 1), size=10),
            _record("/b.flp", datetime(2024, 1, 1, 2), size=20),
            _record("/c.flp", datetime(2024, 1, 1, 3), size=30, key="other"),
        ]
        summary = summarize(select_retention(_report(*records)))

        assert summary.project_count == 2
        assert summary.projects_with_old_backups == 1
        assert summary.kept_count == 2
        assert summary.delete_count == 1
        assert summary.reclaimable_bytes == 10


class TestModelInvariants:
    """Tests for invariants enforced by the data model."""

    def test_decision_rejects_kept_record_in_delete(self):
        record = _record("/a.flp", datetime(2024, 1, 1))
        with pytest.raises(ValueError):
            RetentionDecision("song", keep=record, delete=(record,))

    def test_group_rejects_foreign_key(self):
        record = _record("/a.flp", datetime(2024, 1, 1), key="other")
        with pytest.raises(ValueError):
            ProjectGroup("song", (record,))

    def test_group_rejects_empty(self):
        with pytest.raises(ValueError):
            ProjectGroup("song", ())
