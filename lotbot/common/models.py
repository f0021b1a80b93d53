"""
Data models for the lottery bot
"""
from datetime import date
from enum import Enum
from typing import Any, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

WEEKDAY_LABELS = ["月", "火", "水", "木", "金", "土", "日"]


class ApplicationOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class TimeRange(NamedTuple):
    """A start/end pair of zero-padded HH:MM strings"""
    start: str
    end: str

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


class DesiredEntry(BaseModel):
    """A (facility, room, date, time range) the group wants to apply for"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    facility: str = Field(default="", alias="gymName")
    room: str = ""
    date: str = ""
    time: str = ""

    @field_validator("facility", "room", "date", "time", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, date):
            return value.isoformat()
        return str(value)

    @property
    def time_range(self) -> Optional[TimeRange]:
        from ..lottery.normalize import parse_time_range
        return parse_time_range(self.time)

    @property
    def is_blank(self) -> bool:
        return not (self.facility or self.room or self.date or self.time)

    def describe(self) -> str:
        return (
            f"{self.facility or '施設未指定'} / {self.room or '部屋未指定'} / "
            f"{self.date or '日付未指定'} {self.time or '時間未指定'}"
        )


class AppliedEntry(DesiredEntry):
    """An entry the account has already applied for, read from the request status page"""
    pass


class PortalSlot(BaseModel):
    """One lottery time block scraped from an availability page"""
    facility: str = ""
    room: str = ""
    day: Optional[date] = None
    start: str
    end: str
    contention: int = 0
    handle: Any = Field(default=None, exclude=True, repr=False)

    @property
    def start_minutes(self) -> int:
        hour, minute = self.start.split(":")
        return int(hour) * 60 + int(minute)

    @property
    def end_minutes(self) -> int:
        hour, minute = self.end.split(":")
        return int(hour) * 60 + int(minute)

    def to_entry(self) -> DesiredEntry:
        """Convert to a desired entry using the portal's display formats"""
        return DesiredEntry(
            facility=self.facility,
            room=self.room,
            date=format_display_date(self.day) if self.day else "",
            time=f"{_strip_hour(self.start)}-{_strip_hour(self.end)}",
        )


def format_display_date(value: date) -> str:
    """2026-01-04 -> 2026年1月4日(日)"""
    return f"{value.year}年{value.month}月{value.day}日({WEEKDAY_LABELS[value.weekday()]})"


def _strip_hour(hhmm: str) -> str:
    hour, minute = hhmm.split(":")
    return f"{int(hour)}:{minute}"


class EntryResult(BaseModel):
    """Outcome of running one entry through the submission pipeline"""
    entry: DesiredEntry
    outcome: ApplicationOutcome
    reason: Optional[str] = None
    state: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == ApplicationOutcome.SUCCESS


class Job(BaseModel):
    """Run request stored by the web app"""
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    entry_count: Optional[int] = Field(default=None, alias="entryCount")
    user_id: Optional[str] = Field(default=None, alias="userId")
    password: Optional[str] = None


class RunSummary(BaseModel):
    """
    Per-run outcome counters.

    Every mutation returns a new summary so a run threads one value through
    its steps instead of sharing counters.
    """
    expected_total: Optional[int] = None
    succeeded: List[DesiredEntry] = Field(default_factory=list)
    failed: List[EntryResult] = Field(default_factory=list)
    skipped: int = 0
    cancelled: int = 0

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def recorded(self) -> int:
        return self.success_count + self.failed_count + self.skipped + self.cancelled

    def record(self, result: EntryResult) -> "RunSummary":
        if result.outcome == ApplicationOutcome.SUCCESS:
            return self.model_copy(update={"succeeded": [*self.succeeded, result.entry]})
        if result.outcome == ApplicationOutcome.FAILED:
            return self.model_copy(update={"failed": [*self.failed, result]})
        if result.outcome == ApplicationOutcome.SKIPPED:
            return self.model_copy(update={"skipped": self.skipped + 1})
        return self.model_copy(update={"cancelled": self.cancelled + 1})

    def with_skipped(self, count: int) -> "RunSummary":
        return self.model_copy(update={"skipped": self.skipped + count})

    def with_expected_total(self, total: Optional[int]) -> "RunSummary":
        return self.model_copy(update={"expected_total": total})

    def shortfall(self) -> int:
        if self.expected_total is None:
            return 0
        return max(0, self.expected_total - self.recorded)

    def reconcile(self) -> "RunSummary":
        """Count every entry the run never reached as cancelled"""
        missing = self.shortfall()
        if missing == 0:
            return self
        return self.model_copy(update={"cancelled": self.cancelled + missing})

    def summary_line(self) -> str:
        return (
            f"成功{self.success_count}件 失敗{self.failed_count}件 "
            f"スキップ{self.skipped}件 キャンセル{self.cancelled}件"
        )


class NotificationPayload(BaseModel):
    """Notification content"""
    title: str
    message: str
    urgency: str = "normal"  # low, normal, high
    summary: Optional[RunSummary] = None
