"""
Submission pipeline

Runs one desired entry through the portal's lottery application flow:

    SEARCH -> FACILITY_SELECT -> AVAILABILITY_COMPARE -> AVAILABILITY_SELECT
           -> LOT_REQUEST_FORM -> CONFIRM -> SUCCESS | FAILED

Every failure inside the flow ends the entry as FAILED with the reason and
the state it happened in; it never stops the run.
"""
import logging
from datetime import date
from enum import Enum
from typing import Optional, Tuple

from .normalize import parse_display_date, parse_time_range, split_room_and_booth
from .resolver import resolve_slots
from ..browser.portal import Portal
from ..common.errors import InvalidEntryError, PortalBusinessError, SelectionMismatchError
from ..common.models import ApplicationOutcome, DesiredEntry, EntryResult, TimeRange

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    SEARCH = "search"
    FACILITY_SELECT = "facility_select"
    AVAILABILITY_COMPARE = "availability_compare"
    AVAILABILITY_SELECT = "availability_select"
    LOT_REQUEST_FORM = "lot_request_form"
    CONFIRM = "confirm"
    SUCCESS = "success"
    FAILED = "failed"


class SubmissionPipeline:
    """Applies for one entry at a time on the shared portal tab"""

    def __init__(self, portal: Portal):
        self.portal = portal
        self.state = PipelineState.SEARCH

    async def run(self, entry: DesiredEntry) -> EntryResult:
        """Apply for ``entry``; never raises for per-entry problems"""
        self.state = PipelineState.SEARCH
        logger.info(f"Processing entry: {entry.describe()}")

        try:
            await self._apply(entry)
        except Exception as e:
            failed_in = self.state
            self.state = PipelineState.FAILED
            logger.error(f"Entry failed in {failed_in.value} ({entry.describe()}): {e}")
            return EntryResult(
                entry=entry,
                outcome=ApplicationOutcome.FAILED,
                reason=str(e) or type(e).__name__,
                state=failed_in.value,
            )

        self.state = PipelineState.SUCCESS
        logger.info(f"Applied: {entry.describe()}")
        return EntryResult(entry=entry, outcome=ApplicationOutcome.SUCCESS, state=self.state.value)

    async def _apply(self, entry: DesiredEntry):
        keyword, day, wanted = validate_entry(entry)
        _, booth = split_room_and_booth(entry.room)

        self.state = PipelineState.SEARCH
        await self.portal.search(keyword, day)

        self.state = PipelineState.FACILITY_SELECT
        await self.portal.select_facility()

        self.state = PipelineState.AVAILABILITY_COMPARE
        await self.portal.open_comparison_slot(booth, day)

        self.state = PipelineState.AVAILABILITY_SELECT
        slots = await self.portal.lottery_slots(booth)
        chosen = resolve_slots(slots, wanted)
        await self.portal.select_slots(chosen)
        await self._verify_selection(day, wanted)
        await self.portal.request_lottery()
        await self._raise_portal_error()

        self.state = PipelineState.LOT_REQUEST_FORM
        await self.portal.fill_lot_request()

        self.state = PipelineState.CONFIRM
        await self.portal.confirm()
        await self._raise_portal_error()

    async def _verify_selection(self, day: date, wanted: TimeRange):
        date_text, time_text = await self.portal.selection_summary()
        selected_day = parse_display_date(date_text)
        selected_range = parse_time_range(time_text)

        if selected_day != day or selected_range != wanted:
            raise SelectionMismatchError(
                "selected date/time does not match the request",
                selected=f"{date_text} {time_text}".strip(),
                expected=f"{day.isoformat()} {wanted}",
            )

    async def _raise_portal_error(self):
        message = await self.portal.portal_error()
        if message:
            raise PortalBusinessError(message)


def validate_entry(entry: DesiredEntry) -> Tuple[str, date, TimeRange]:
    """
    Facility keyword, date and time range needed to search for the entry.

    Raises:
        InvalidEntryError: if any of them is missing or unparseable
    """
    keyword = entry.facility.strip()
    if not keyword:
        raise InvalidEntryError("entry has no facility name to search for")

    day: Optional[date] = parse_display_date(entry.date)
    if day is None:
        raise InvalidEntryError(f"invalid date: {entry.date!r}")

    wanted = entry.time_range
    if wanted is None:
        raise InvalidEntryError(f"invalid time range: {entry.time!r}")

    return keyword, day, wanted
