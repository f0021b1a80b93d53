"""
Page adapter for the Sapporo facility reservation portal

Everything that knows about the portal's markup lives here: URLs, CSS and
role selectors, button labels. The lottery engine only sees the step-level
operations of ``Portal``.
"""
import logging
import re
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional, Tuple

from .automation import Automation
from .urls import WebPages
from ..common.config import PortalConfig
from ..common.errors import ConditionTimeout, LoginError
from ..common.models import AppliedEntry, PortalSlot
from ..lottery.normalize import normalize_text, parse_slot_title
from ..common.scheduler import PortalClock

logger = logging.getLogger(__name__)

# Loading overlay (sic, the portal's id)
LOADING_OVERLAY = "#fixedCotnentsWrapper"
TUTORIAL_SKIP = "text=スキップ"

LOGIN_LINK = 'role=link[name="ログインする"]'
LOGIN_USER_INPUT = 'input[name="userId"]'
LOGIN_PASSWORD_INPUT = 'input[name="password"]'
LOGIN_BUTTON = 'role=button[name="ログイン"s]'

STATUS_FILTER_BUTTON = 'button:has-text("申込状態")'
STATUS_LOTTERY_WAIT_BUTTON = 'button:has-text("抽選待ち")'
STATUS_LIST_ITEMS = 'div[role="list"].v-list.is-withBorder-marginL.h-radius-s div[role="listitem"].v-list-item'
STATUS_ICON = "span.Label.is-status i.material-icons"
STATUS_TIME_RANGE = "span.InputContainer.InputRange.is-time.d-inline-block"
LOTTERY_WAIT_ICON = "lottery_wait"

FACILITY_COMBOBOX = 'role=combobox[name="施設"]'
FACILITY_SUGGESTIONS = 'div[role="group"] div.v-list-item__content div.v-list-item__title'
SEARCH_BUTTON = 'role=button[name="検索"s]'
FACILITY_AVAILABILITY_LINK = 'a[href*="/FacilityAvailability/Index/"]:not([href*="rc="]):not([title])'

GRID_TABLE = "table.AvailabilityFrames_gridTable"
GRID_ROWS = "table.AvailabilityFrames_gridTable tr"
GRID_ROW_TITLE = "th.AvailabilityFrames_gridTable_tbody_rowTitle .v-btn__content"
DEFAULT_ROW_INDEX = 3
WHOLE_FLOOR_LABEL = "全面"
COMPARISON_DAY_LINKS = "a.AvailabilityFrames_dayFrame_content"
COMPARISON_LOT_LINKS = "a.AvailabilityFrames_dayFrame_content.is-lot"
LOTTERY_OPEN_TITLE = "抽選申込可"
ROW_LOTTERY_BUTTONS = 'button[title$="抽選申込可"]'

SELECTION_SUMMARY = 'span.d-inline-block:has-text("日時")'
CONFIRM_SPAN = 'span:has-text("確認")'
APPLY_LOTTERY_SPAN = 'span:has-text("抽選申込へ")'
ERROR_BANNERS = [
    "text=抽選数が利用制限に該当します。",
    "text=サービス利用時間外です。",
]

SPORT_COMBOBOX = 'input[role="combobox"][aria-controls]'
PARTICIPANTS_INPUT = "#input-55"
FORM_CONFIRM_BUTTON = 'role=button[name="確認"]'

ACKNOWLEDGE_SPAN = 'span:has-text("注意事項を確認しました")'
SUBMIT_SPAN = 'span:has-text("申込確定")'

DETAIL_LOT_SLOTS = "button.AvailabilityFrameSet_frame_content.is-lot"
DETAIL_APPLICANTS = ".IconTextContainer_text"
DETAIL_FACILITY = "a.h-ctDeep.headline"
DETAIL_ROOM = "button.SearchForm_simple_condition span.InputContainer"
DETAIL_BOOTH = 'xpath=ancestor::tr/th//span[contains(@class, "v-btn__content")]'


class Portal(ABC):
    """Step-level operations the lottery engine performs on the portal"""

    @abstractmethod
    async def login(self, user_id: str, password: str):
        pass

    @abstractmethod
    async def applied_entries(self) -> List[AppliedEntry]:
        """Entries already waiting for the lottery on this account"""

    @abstractmethod
    async def search(self, keyword: str, day: date):
        pass

    @abstractmethod
    async def select_facility(self):
        pass

    @abstractmethod
    async def open_comparison_slot(self, booth: Optional[str], day: date):
        pass

    @abstractmethod
    async def lottery_slots(self, booth: Optional[str]) -> List[PortalSlot]:
        """Lottery-open slots of the availability row for booth"""

    @abstractmethod
    async def select_slots(self, slots: List[PortalSlot]):
        pass

    @abstractmethod
    async def selection_summary(self) -> Tuple[str, str]:
        """(date text, time text) the portal shows for the current selection"""

    @abstractmethod
    async def request_lottery(self):
        pass

    @abstractmethod
    async def fill_lot_request(self):
        pass

    @abstractmethod
    async def confirm(self):
        pass

    @abstractmethod
    async def portal_error(self) -> Optional[str]:
        """Text of a visible error banner, if any"""

    @abstractmethod
    async def comparison_links(self, url: str) -> List[str]:
        """Absolute URLs of every lottery-open day on a comparison page"""

    @abstractmethod
    async def detail_slots(self, url: str) -> List[PortalSlot]:
        """All lottery slots, with applicant counts, on a facility detail page"""

    @abstractmethod
    def isolated(self):
        """Async context manager yielding a Portal on its own tab"""

    @abstractmethod
    async def capture_diagnostic(self, label: str) -> Optional[Path]:
        pass


class SapporoPortal(Portal):
    """Portal adapter driving yoyaku.harp.lg.jp/sapporo through an Automation"""

    def __init__(self, automation: Automation, config: PortalConfig, clock: Optional[PortalClock] = None):
        self.automation = automation
        self.config = config
        self.pages = WebPages(config.base_url)
        self.clock = clock or PortalClock()

    @property
    def timeout(self) -> float:
        return self.config.wait_timeout

    async def _settle(self, seconds: Optional[float] = None):
        await self.automation.settle(self.config.settle_seconds if seconds is None else seconds)

    async def _wait_page(self, prefix: str, timeout: Optional[float] = None):
        await self.automation.wait_for_url(prefix, timeout or self.timeout)

    async def _click(self, selector: str, root: Any = None):
        element = await self.automation.wait_for_element(selector, self.timeout, root=root)
        await self.automation.click(element)

    async def _dismiss_tutorial(self):
        """Skip the first-visit tutorial overlay when the portal shows one"""
        await self.automation.wait_until_gone(LOADING_OVERLAY, self.timeout)
        try:
            skip = await self.automation.wait_for_element(TUTORIAL_SKIP, timeout=self.config.tutorial_timeout)
        except ConditionTimeout:
            return
        await self.automation.click(skip)
        await self.automation.wait_until_gone(LOADING_OVERLAY, self.timeout)

    # ========================================
    # Session
    # ========================================

    async def login(self, user_id: str, password: str):
        """
        Sign in from the request status page.

        Raises:
            LoginError: if the login form is not accepted
        """
        await self.automation.navigate(self.pages.request_statuses())
        try:
            link = await self.automation.wait_for_element(LOGIN_LINK, timeout=self.config.login_link_timeout)
        except ConditionTimeout:
            logger.info("Login link not shown; session is already signed in")
            return

        if not user_id or not password:
            raise LoginError("Portal credentials are not configured")

        logger.info(f"Logging in as {user_id}...")
        try:
            await self.automation.click(link)
            await self._wait_page(self.pages.login())
            await self.automation.fill(
                await self.automation.wait_for_element(LOGIN_USER_INPUT, self.timeout), user_id
            )
            await self.automation.fill(
                await self.automation.wait_for_element(LOGIN_PASSWORD_INPUT, self.timeout), password
            )
            await self._click(LOGIN_BUTTON)

            login_page = self.pages.login()

            async def left_login_page() -> bool:
                return not self.automation.current_url().startswith(login_page)

            await self.automation.wait_for(left_login_page, self.config.login_timeout, "login to complete")
        except ConditionTimeout as e:
            raise LoginError(f"Login failed: {e}") from e

        logger.info("Login successful")

    async def applied_entries(self) -> List[AppliedEntry]:
        await self.automation.navigate(self.pages.request_statuses())
        await self._wait_page(self.pages.request_statuses_prefix())
        await self._click(STATUS_FILTER_BUTTON)
        await self._click(STATUS_LOTTERY_WAIT_BUTTON)
        await self._settle(0.2)
        await self.automation.wait_until_gone(LOADING_OVERLAY, self.timeout)

        try:
            await self.automation.wait_for_element(STATUS_LIST_ITEMS, self.timeout, visible=False)
        except ConditionTimeout:
            logger.info("No lottery applications listed yet")
            return []

        next_month = self.clock.next_month()
        entries: List[AppliedEntry] = []

        for item in await self.automation.query(STATUS_LIST_ITEMS):
            icon = await self.automation.query_one(STATUS_ICON, item)
            status = await self.automation.text(icon) if icon else ""
            if status != LOTTERY_WAIT_ICON:
                logger.debug("Skipping request that is not waiting for the lottery")
                continue

            time_element = await self.automation.query_one("time", item)
            started = await self.automation.get_attribute(time_element, "datetime") if time_element else None
            start_day = _parse_datetime_attr(started)
            if not start_day:
                logger.debug("Skipping request without a valid start date")
                continue
            if (start_day.year, start_day.month) != (next_month.year, next_month.month):
                logger.debug("Skipping request that is not for next month")
                continue

            link = await self.automation.query_one("a", item)
            facility, room = _split_status_link(await self.automation.text(link) if link else "")
            range_element = await self.automation.query_one(STATUS_TIME_RANGE, item)
            time_text = await self.automation.text(range_element) if range_element else ""

            entries.append(AppliedEntry(
                facility=facility,
                room=room,
                date=start_day.isoformat(),
                time=re.sub(r"\s+", " ", time_text).strip(),
            ))

        logger.info(f"Found {len(entries)} lottery applications already made")
        return entries

    # ========================================
    # Submission steps
    # ========================================

    async def search(self, keyword: str, day: date):
        await self.automation.navigate(self.pages.lot_search(day))
        await self._wait_page(self.pages.lot_search_prefix())

        combobox = await self.automation.wait_for_element(FACILITY_COMBOBOX, self.timeout)
        await self._settle()
        await self.automation.fill(combobox, keyword)
        await self._settle(self.config.suggestion_settle_seconds)
        await self._click(FACILITY_SUGGESTIONS)
        await self._settle()
        await self._click(SEARCH_BUTTON)

    async def select_facility(self):
        await self._wait_page(self.pages.facility_search_prefix())
        await self._click(FACILITY_AVAILABILITY_LINK)

    async def open_comparison_slot(self, booth: Optional[str], day: date):
        await self._wait_page(self.pages.comparison_prefix())
        await self._dismiss_tutorial()
        await self.automation.wait_for_element(GRID_TABLE, self.timeout)

        row = await self._comparison_row(booth)
        for link in await self.automation.query(COMPARISON_DAY_LINKS, row):
            title = await self.automation.get_attribute(link, "title") or ""
            if LOTTERY_OPEN_TITLE not in title:
                continue
            if await self._link_day(link) != day:
                continue
            await self.automation.click(link)
            return

        raise ConditionTimeout(f"lottery-open day {day.isoformat()} on the comparison page", 0)

    async def _comparison_row(self, booth: Optional[str]) -> Any:
        rows = await self.automation.query(GRID_ROWS)
        target = normalize_text(booth)
        if not target or target == WHOLE_FLOOR_LABEL:
            return _row_at(rows, DEFAULT_ROW_INDEX)

        fallback = None
        for index, label in enumerate(await self._row_labels(rows)):
            label = normalize_text(label).replace("(", "").replace(")", "")
            if not label:
                continue
            if label == target:
                return rows[index]
            if fallback is None and target in label:
                fallback = rows[index]

        if fallback is not None:
            return fallback
        raise ConditionTimeout(f"comparison row for booth {booth}", 0)

    async def _row_labels(self, rows: List[Any]) -> List[str]:
        labels = []
        for row in rows:
            title = await self.automation.query_one(GRID_ROW_TITLE, row)
            labels.append(await self.automation.text(title) if title else "")
        return labels

    async def _link_day(self, link: Any) -> Optional[date]:
        time_element = await self.automation.query_one("time", link)
        if time_element:
            day = _parse_datetime_attr(await self.automation.get_attribute(time_element, "datetime"))
            if day:
                return day
        href = await self.automation.get_attribute(link, "href") or ""
        match = re.search(r"[?&]d=(\d{4}-\d{2}-\d{2})", href)
        return _parse_datetime_attr(match.group(1)) if match else None

    async def lottery_slots(self, booth: Optional[str]) -> List[PortalSlot]:
        await self._wait_page(self.pages.availability_prefix())
        await self._dismiss_tutorial()
        await self._settle()

        rows = await self.automation.query(GRID_ROWS)
        row = _row_at(rows, DEFAULT_ROW_INDEX)
        if booth:
            target = normalize_text(booth)
            matches = [
                rows[index]
                for index, label in enumerate(await self._row_labels(rows))
                if label and normalize_text(label) == target
            ]
            if not matches:
                raise ConditionTimeout(f"availability row for booth {booth}", 0)
            row = matches[0]

        slots = []
        for button in await self.automation.query(ROW_LOTTERY_BUTTONS, row):
            span = parse_slot_title(await self.automation.get_attribute(button, "title"))
            if span:
                slots.append(PortalSlot(start=span.start, end=span.end, handle=button))
        logger.debug(f"Row offers {len(slots)} lottery slots")
        return slots

    async def select_slots(self, slots: List[PortalSlot]):
        for slot in slots:
            await self.automation.click(slot.handle)
        await self._settle(self.config.selection_settle_seconds)

    async def selection_summary(self) -> Tuple[str, str]:
        summary = await self.automation.wait_for_element(SELECTION_SUMMARY, self.timeout)
        time_element = await self.automation.query_one("time", summary)
        date_text = await self.automation.text(time_element) if time_element else ""
        full_text = await self.automation.text(summary)
        time_text = full_text.split(date_text, 1)[-1] if date_text else full_text
        return date_text, time_text.strip()

    async def request_lottery(self):
        await self._click(CONFIRM_SPAN)
        await self._click(APPLY_LOTTERY_SPAN)
        await self._settle()

    async def fill_lot_request(self):
        await self._wait_page(self.pages.lot_request_prefix())
        await self.automation.wait_until_gone(LOADING_OVERLAY, self.timeout)
        await self._settle(self.config.form_settle_seconds)

        sport_input = await self.automation.wait_for_element(SPORT_COMBOBOX, self.timeout)
        await self.automation.click(sport_input)
        await self.automation.fill(sport_input, self.config.sport)

        list_id = await self.automation.get_attribute(sport_input, "aria-controls")
        if not list_id:
            raise ConditionTimeout("sport option list", 0)
        await self._click(f'#{list_id} [role="option"]:has-text("{self.config.sport}")')

        participants = await self.automation.wait_for_element(PARTICIPANTS_INPUT, self.timeout)
        await self.automation.fill(participants, str(self.config.participants))
        await self._click(FORM_CONFIRM_BUTTON)

    async def confirm(self):
        await self._wait_page(self.pages.confirmation_prefix())
        await self._click(ACKNOWLEDGE_SPAN)
        await self._click(SUBMIT_SPAN)
        await self._settle()

    async def portal_error(self) -> Optional[str]:
        for selector in ERROR_BANNERS:
            for banner in await self.automation.query(selector):
                if await self.automation.is_visible(banner):
                    return await self.automation.text(banner) or selector.removeprefix("text=")
        return None

    # ========================================
    # Exploration
    # ========================================

    async def comparison_links(self, url: str) -> List[str]:
        await self.automation.navigate(url)
        await self._wait_page(self.pages.comparison_prefix())
        await self._dismiss_tutorial()

        try:
            await self.automation.wait_for_element(COMPARISON_LOT_LINKS, self.timeout)
        except ConditionTimeout:
            return []
        await self._settle(self.config.comparison_settle_seconds)

        links = []
        for link in await self.automation.query(COMPARISON_LOT_LINKS):
            href = await self.automation.get_attribute(link, "href")
            if href:
                links.append(self.pages.absolute(href))
        return links

    async def detail_slots(self, url: str) -> List[PortalSlot]:
        await self.automation.navigate(url)
        await self._wait_page(self.pages.availability_prefix())
        await self._dismiss_tutorial()
        await self.automation.wait_for_element(DETAIL_LOT_SLOTS, self.timeout)
        await self._settle()

        facility_element = await self.automation.query_one(DETAIL_FACILITY)
        room_element = await self.automation.query_one(DETAIL_ROOM)
        facility = await self.automation.text(facility_element) if facility_element else ""
        room = await self.automation.text(room_element) if room_element else ""

        slots = []
        for button in await self.automation.query(DETAIL_LOT_SLOTS):
            times = await self.automation.query("time", button)
            if len(times) < 2:
                continue
            start = await self.automation.get_attribute(times[0], "datetime")
            end = await self.automation.get_attribute(times[1], "datetime")
            if not start or not end:
                continue

            # "2026-01-04 09:00:00"
            day, start_time = start.split(" ")[:2]
            end_time = end.split(" ")[1]

            applicants = await self.automation.query_one(DETAIL_APPLICANTS, button)
            count_text = await self.automation.text(applicants) if applicants else ""
            contention = int(count_text) if count_text.isdigit() else 0

            booth_element = await self.automation.query_one(DETAIL_BOOTH, button)
            booth = await self.automation.text(booth_element) if booth_element else ""

            slots.append(PortalSlot(
                facility=facility,
                room=f"{room} / {booth}" if booth else room,
                day=date.fromisoformat(day),
                start=start_time[:5],
                end=end_time[:5],
                contention=contention,
            ))
        return slots

    @asynccontextmanager
    async def isolated(self) -> AsyncIterator["SapporoPortal"]:
        async with self.automation.isolated() as automation:
            yield SapporoPortal(automation, self.config, self.clock)

    async def capture_diagnostic(self, label: str) -> Optional[Path]:
        return await self.automation.capture_diagnostic(label)


def _row_at(rows: List[Any], index: int) -> Any:
    if len(rows) <= index:
        raise ConditionTimeout(f"availability grid row {index}", 0)
    return rows[index]


def _parse_datetime_attr(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip()).date()
    except ValueError:
        return None


def _split_status_link(text: str) -> Tuple[str, str]:
    """
    "1234 中央体育館 / 競技場" -> ("中央体育館", "競技場")

    The leading token is the request number.
    """
    text = re.sub(r"\s+", " ", text).strip()
    head, _, detail = text.partition("/")
    head = head.strip()
    parts = head.split(" ", 1)
    facility = parts[1] if len(parts) > 1 else head
    return facility.strip(), detail.strip()
