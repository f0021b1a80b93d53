"""
Tests for data models (lotbot/common/models.py)
"""
from datetime import date

import pytest

from lotbot.common.models import (
    ApplicationOutcome,
    DesiredEntry,
    EntryResult,
    Job,
    PortalSlot,
    RunSummary,
    TimeRange,
    format_display_date,
)


def result(outcome: ApplicationOutcome, day: int = 1) -> EntryResult:
    return EntryResult(
        entry=DesiredEntry(facility="中央体育館", room="競技場", date=f"2026-01-{day:02d}", time="9-12"),
        outcome=outcome,
    )


class TestDesiredEntry:
    def test_accepts_web_app_field_names(self):
        entry = DesiredEntry(**{"gymName": "中央体育館", "room": "競技場", "date": "2026-01-04", "time": "9:00-12:00"})
        assert entry.facility == "中央体育館"

    def test_missing_fields_become_empty(self):
        entry = DesiredEntry(gymName=None, room=None)
        assert entry.facility == ""
        assert entry.is_blank

    def test_dates_become_iso_text(self):
        assert DesiredEntry(date=date(2026, 1, 4)).date == "2026-01-04"

    def test_time_range(self):
        assert DesiredEntry(time="9-12").time_range == TimeRange("09:00", "12:00")
        assert DesiredEntry(time="").time_range is None

    def test_describe_uses_placeholders(self):
        assert DesiredEntry().describe() == "施設未指定 / 部屋未指定 / 日付未指定 時間未指定"

    def test_entries_are_frozen(self):
        entry = DesiredEntry(facility="A")
        with pytest.raises(Exception):
            entry.facility = "B"


class TestPortalSlot:
    def test_minutes(self):
        slot = PortalSlot(start="09:30", end="10:45")
        assert slot.start_minutes == 570
        assert slot.end_minutes == 645

    def test_to_entry_uses_display_formats(self):
        slot = PortalSlot(facility="中央体育館", room="競技場 / A面", day=date(2026, 1, 4), start="09:00", end="12:00", contention=3)
        entry = slot.to_entry()
        assert entry.date == "2026年1月4日(日)"
        assert entry.time == "9:00-12:00"
        assert entry.room == "競技場 / A面"

    def test_format_display_date_weekday(self):
        assert format_display_date(date(2026, 1, 5)) == "2026年1月5日(月)"


class TestJob:
    def test_aliases(self):
        job = Job(**{"jobId": "job-1", "entryCount": 12, "userId": "u1"})
        assert job.job_id == "job-1"
        assert job.entry_count == 12
        assert job.password is None


class TestRunSummary:
    def test_record_is_immutable(self):
        empty = RunSummary()
        updated = empty.record(result(ApplicationOutcome.SUCCESS))
        assert empty.success_count == 0
        assert updated.success_count == 1

    def test_record_each_outcome(self):
        summary = RunSummary()
        for outcome in ApplicationOutcome:
            summary = summary.record(result(outcome))
        assert (summary.success_count, summary.failed_count, summary.skipped, summary.cancelled) == (1, 1, 1, 1)

    def test_reconcile_adds_shortfall_to_cancelled(self):
        summary = RunSummary(expected_total=10)
        for _ in range(4):
            summary = summary.record(result(ApplicationOutcome.SUCCESS))
        for _ in range(2):
            summary = summary.record(result(ApplicationOutcome.FAILED))
        summary = summary.with_skipped(1)

        reconciled = summary.reconcile()

        assert reconciled.cancelled == 3
        assert reconciled.recorded == 10

    def test_reconcile_is_idempotent(self):
        summary = RunSummary(expected_total=5).with_skipped(1)
        once = summary.reconcile()
        assert once.reconcile() == once
        assert once.cancelled == 4

    def test_reconcile_never_reduces_counts(self):
        summary = RunSummary(expected_total=1).with_skipped(3)
        assert summary.reconcile().skipped == 3
        assert summary.reconcile().cancelled == 0

    def test_reconcile_without_expected_total(self):
        summary = RunSummary().with_skipped(2)
        assert summary.reconcile() == summary

    def test_summary_line(self):
        summary = RunSummary(expected_total=4).record(result(ApplicationOutcome.SUCCESS)).with_skipped(1).reconcile()
        assert summary.summary_line() == "成功1件 失敗0件 スキップ1件 キャンセル2件"
