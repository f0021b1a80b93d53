"""
Tests for entry normalization and diffing (lotbot/lottery/normalize.py)
"""
from datetime import date

import pytest

from lotbot.common.models import AppliedEntry, DesiredEntry, TimeRange
from lotbot.lottery.normalize import (
    diff_entries,
    entry_key,
    normalize_date,
    normalize_entry,
    normalize_text,
    normalize_time,
    parse_display_date,
    parse_slot_title,
    parse_time_range,
    split_room_and_booth,
)


class TestNormalizeText:
    def test_strips_all_whitespace(self):
        assert normalize_text(" 中央 体育館　") == "中央体育館"

    def test_folds_full_width(self):
        assert normalize_text("Ａ面") == "A面"
        assert normalize_text("１２３") == "123"

    def test_unifies_brackets(self):
        assert normalize_text("体育室（Ａ）") == "体育室(A)"

    def test_none_and_empty(self):
        assert normalize_text(None) == ""
        assert normalize_text("") == ""


class TestParseDisplayDate:
    @pytest.mark.parametrize("text", [
        "2026年1月4日(日)",
        "2026年01月04日",
        "2026/1/4",
        "2026-01-04",
        "２０２６年１月４日（日）",
        "令和8年1月4日",
    ])
    def test_recognised_spellings(self, text):
        assert parse_display_date(text) == date(2026, 1, 4)

    def test_gannen(self):
        assert parse_display_date("令和元年5月1日") == date(2019, 5, 1)

    def test_invalid_dates(self):
        assert parse_display_date("来週の土曜") is None
        assert parse_display_date("2026年2月30日") is None
        assert parse_display_date("") is None


class TestTimeParsing:
    @pytest.mark.parametrize("text", ["9:00-12:00", "09:00〜12:00", "9-12", "９：００～１２：００", "9:00 - 12:00"])
    def test_time_range_spellings(self, text):
        assert parse_time_range(text) == TimeRange("09:00", "12:00")

    def test_half_hours(self):
        assert parse_time_range("18:30-21:00") == TimeRange("18:30", "21:00")

    def test_unparseable(self):
        assert parse_time_range("午前") is None
        assert parse_time_range(None) is None

    def test_slot_title(self):
        assert parse_slot_title("9時から10時30分 抽選申込可") == TimeRange("09:00", "10:30")
        assert parse_slot_title("空き") is None

    def test_normalize_time_keeps_unparseable_text(self):
        assert normalize_time("午前 中") == "午前中"


class TestSplitRoomAndBooth:
    def test_room_with_booth(self):
        assert split_room_and_booth("競技場 / Ａ面") == ("競技場", "A面")

    def test_room_without_booth(self):
        assert split_room_and_booth("体育室") == ("体育室", None)

    def test_booth_is_last_segment(self):
        assert split_room_and_booth("第1体育室 / 北 / 半面") == ("第1体育室 / 北", "半面")

    def test_empty(self):
        assert split_room_and_booth("") == ("", None)


class TestNormalizeEntry:
    def test_equivalent_spellings_share_a_key(self):
        web = DesiredEntry(gymName="中央体育館", room="競技場 / Ａ面", date="2026年1月4日(日)", time="9:00-12:00")
        portal = DesiredEntry(facility="中央 体育館", room="競技場/A面", date="2026-01-04", time="09:00〜12:00")
        assert entry_key(web) == entry_key(portal)

    def test_normalize_is_idempotent(self):
        entry = DesiredEntry(facility=" 中央体育館 ", room="競技場 / Ａ面", date="令和8年1月4日", time="9-12")
        once = normalize_entry(entry)
        assert normalize_entry(once) == once
        assert once.date == "2026-01-04"
        assert once.time == "09:00-12:00"

    def test_unparseable_date_falls_back_to_text(self):
        assert normalize_date(" 未定 ") == "未定"


class TestDiffEntries:
    def test_applied_entries_are_skipped(self):
        desired = [
            DesiredEntry(facility="中央体育館", room="競技場", date="2026年1月4日(日)", time="9:00-12:00"),
            DesiredEntry(facility="中央体育館", room="競技場", date="2026年1月5日(月)", time="18:00-21:00"),
        ]
        applied = [AppliedEntry(facility="中央体育館", room="競技場", date="2026-01-04", time="09:00 ～ 12:00")]

        pending, skipped = diff_entries(desired, applied)

        assert pending == [desired[1]]
        assert skipped == [desired[0]]

    def test_duplicates_within_desired_are_skipped(self):
        entry = DesiredEntry(facility="中央体育館", room="競技場", date="2026-01-04", time="9:00-12:00")
        again = DesiredEntry(facility="中央体育館", room="競技場", date="2026年1月4日", time="09:00-12:00")

        pending, skipped = diff_entries([entry, again], [])

        assert pending == [entry]
        assert skipped == [again]

    def test_everything_pending_without_applied(self):
        desired = [DesiredEntry(facility="A", room="r", date="2026-01-04", time="9-10")]
        assert diff_entries(desired, []).pending == desired

    def test_partition_preserves_every_entry(self):
        desired = [
            DesiredEntry(facility="A", room="r", date=f"2026-01-{day:02d}", time="9-10")
            for day in range(1, 8)
        ]
        applied = [AppliedEntry(facility="A", room="r", date="2026-01-03", time="9:00-10:00")]

        result = diff_entries(desired, applied)

        assert len(result.pending) + len(result.skipped) == len(desired)
