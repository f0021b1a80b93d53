"""
Entry normalization and diffing

Portal pages, the metadata store and hand-written config all spell the same
slot slightly differently (full-width letters, stray spaces, era dates,
zero padding). Everything here is pure so that two spellings of one slot
compare equal after normalization.
"""
import re
import unicodedata
from datetime import date
from typing import Iterable, List, NamedTuple, Optional, Tuple

from ..common.models import DesiredEntry, TimeRange

ERA_OFFSETS = {
    "令和": 2018,
    "平成": 1988,
    "昭和": 1925,
}

_WHITESPACE = re.compile(r"\s+")
_ERA_DATE = re.compile(r"(令和|平成|昭和)(元|\d{1,2})年(\d{1,2})月(\d{1,2})日")
_YMD_DATE = re.compile(r"(\d{4})[年/.\-](\d{1,2})[月/.\-](\d{1,2})")
_ISO_KEY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RANGE = re.compile(r"(\d{1,2})(?::?(\d{2}))?\s*[-~〜～－]\s*(\d{1,2})(?::?(\d{2}))?")
_SLOT_TITLE = re.compile(r"(\d{1,2})時(?:(\d{1,2})分)?から(\d{1,2})時(?:(\d{1,2})分)?")


class EntryKey(NamedTuple):
    facility: str
    room: str
    date: str
    time: str


class EntryDiff(NamedTuple):
    pending: List[DesiredEntry]
    skipped: List[DesiredEntry]


def normalize_text(value: Optional[str]) -> str:
    """Width-fold, drop all whitespace and unify bracket and slash notation."""
    if not value:
        return ""
    text = unicodedata.normalize("NFKC", value)
    text = _WHITESPACE.sub("", text)
    return text.replace("（", "(").replace("）", ")")


def parse_display_date(value: Optional[str]) -> Optional[date]:
    """
    Parse the date spellings used by the portal and the web app.

    Handles 2026年1月4日(日), 令和8年1月4日, 2026/01/04 and 2026-1-4.
    Returns None when the text holds no recognisable date.
    """
    text = normalize_text(value)
    if not text:
        return None

    match = _ERA_DATE.search(text)
    if match:
        era, year, month, day = match.groups()
        era_year = 1 if year == "元" else int(year)
        return _safe_date(ERA_OFFSETS[era] + era_year, int(month), int(day))

    match = _YMD_DATE.search(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)

    return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def normalize_date(value: Optional[str]) -> str:
    """Comparable date key: ISO YYYY-MM-DD, or the normalized text if unparseable."""
    text = normalize_text(value)
    if _ISO_KEY.match(text):
        return text
    parsed = parse_display_date(text)
    if parsed:
        return parsed.isoformat()
    return text


def _hhmm(hour: str, minute: Optional[str]) -> str:
    return f"{int(hour):02d}:{int(minute or 0):02d}"


def parse_time_range(value: Optional[str]) -> Optional[TimeRange]:
    """9:00-12:00, 09:00〜12:00 or 9-12 -> TimeRange("09:00", "12:00")"""
    if not value:
        return None
    match = _TIME_RANGE.search(normalize_text(value))
    if not match:
        return None
    start_hour, start_minute, end_hour, end_minute = match.groups()
    return TimeRange(_hhmm(start_hour, start_minute), _hhmm(end_hour, end_minute))


def parse_slot_title(title: Optional[str]) -> Optional[TimeRange]:
    """Parse a slot button title such as "9時から10時30分 抽選申込可"."""
    if not title:
        return None
    match = _SLOT_TITLE.search(unicodedata.normalize("NFKC", title))
    if not match:
        return None
    start_hour, start_minute, end_hour, end_minute = match.groups()
    return TimeRange(_hhmm(start_hour, start_minute), _hhmm(end_hour, end_minute))


def normalize_time(value: Optional[str]) -> str:
    parsed = parse_time_range(value)
    if parsed:
        return str(parsed)
    return normalize_text(value)


def to_minutes(hhmm: str) -> int:
    hour, minute = hhmm.split(":")
    return int(hour) * 60 + int(minute)


def split_room_and_booth(room: Optional[str]) -> Tuple[str, Optional[str]]:
    """
    "体育室 / Ａ面" -> ("体育室", "A面"); a room without a slash has no booth.
    """
    segments = [
        segment.strip()
        for segment in unicodedata.normalize("NFKC", room or "").split("/")
        if segment.strip()
    ]
    if not segments:
        return "", None
    if len(segments) == 1:
        return segments[0], None
    booth = segments.pop()
    return " / ".join(segments), booth


def normalize_entry(entry: DesiredEntry) -> DesiredEntry:
    return DesiredEntry(
        facility=normalize_text(entry.facility),
        room=normalize_text(entry.room),
        date=normalize_date(entry.date),
        time=normalize_time(entry.time),
    )


def entry_key(entry: DesiredEntry) -> EntryKey:
    """Structural identity of an entry"""
    return EntryKey(
        normalize_text(entry.facility),
        normalize_text(entry.room),
        normalize_date(entry.date),
        normalize_time(entry.time),
    )


def diff_entries(
    desired: Iterable[DesiredEntry],
    applied: Iterable[DesiredEntry],
) -> EntryDiff:
    """
    Split desired entries into those still to apply for and those to skip.

    An entry is skipped when it matches an applied entry, or when an earlier
    desired entry already has the same identity.
    """
    seen = {entry_key(entry) for entry in applied}
    pending: List[DesiredEntry] = []
    skipped: List[DesiredEntry] = []

    for entry in desired:
        key = entry_key(entry)
        if key in seen:
            skipped.append(entry)
            continue
        seen.add(key)
        pending.append(entry)

    return EntryDiff(pending, skipped)
