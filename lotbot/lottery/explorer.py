"""
Lottery candidate explorer

When the group has fewer desired entries than the job asks for, the explorer
walks the portal's comparison pages for next month and proposes the least
contested lottery slots it can find.
"""
import asyncio
import logging
import random
from datetime import date
from typing import Iterable, List, Optional, Set

from .selector import BoundedCandidateSelector
from ..browser.portal import Portal
from ..common.config import ExplorerConfig
from ..common.models import DesiredEntry, PortalSlot
from ..common.scheduler import PortalClock

logger = logging.getLogger(__name__)

SATURDAY = 5


class HolidayCalendar:
    """Public holiday lookup backed by a fixed set of dates"""

    def __init__(self, holidays: Iterable[date] = ()):
        self._holidays: Set[date] = set(holidays)

    def is_holiday(self, day: date) -> bool:
        return day in self._holidays


class LotteryCandidateExplorer:
    """
    Finds up to ``needed`` lottery slots with the fewest applicants.

    Detail pages are scraped by a fixed pool of workers, each on its own tab.
    A comparison or detail page that fails is logged and dropped.
    """

    def __init__(
        self,
        portal: Portal,
        config: ExplorerConfig,
        clock: Optional[PortalClock] = None,
        holidays: Optional[HolidayCalendar] = None,
        rng: Optional[random.Random] = None,
    ):
        self.portal = portal
        self.config = config
        self.clock = clock or PortalClock()
        self.holidays = holidays or HolidayCalendar(config.holidays)
        self.rng = rng or random.Random()

    def comparison_urls(self) -> List[str]:
        """Comparison pages open for lottery in the current half of the month"""
        base_urls = self.config.first_half_urls if self.clock.is_first_half() else self.config.second_half_urls
        month = self.clock.next_month_key()
        return [f"{url}{month}" for url in base_urls]

    def is_eligible(self, slot: PortalSlot) -> bool:
        """Weekday daytime slots are of no use unless the day is a holiday"""
        if slot.day is None:
            return False
        if slot.day.weekday() >= SATURDAY or self.holidays.is_holiday(slot.day):
            return True
        return slot.start_minutes >= self.config.weekday_evening_hour * 60

    async def explore(self, needed: int, exclude: Iterable[DesiredEntry] = ()) -> List[DesiredEntry]:
        """
        Propose up to ``needed`` entries, least contested first.

        Entries in ``exclude`` (already listed or applied for) are never proposed.
        """
        if needed <= 0:
            return []

        selector = BoundedCandidateSelector(needed, exclude=exclude)

        for url in self.comparison_urls():
            try:
                links = await self.portal.comparison_links(url)
            except Exception as e:
                logger.warning(f"Skipping comparison page {url}: {e}")
                continue
            if not links:
                logger.info(f"No lottery-open days on {url}")
                continue

            self.rng.shuffle(links)
            logger.info(f"Detail check started {self.clock.format_now()} ({len(links)} pages)")
            await self._scan(links, selector)
            logger.info(f"Detail check finished {self.clock.format_now()} ({len(links)} pages)")

        results = selector.results()
        logger.info(f"Explorer proposes {len(results)} of {needed} requested entries")
        return results

    async def _scan(self, links: List[str], selector: BoundedCandidateSelector):
        queue: asyncio.Queue = asyncio.Queue()
        for link in links:
            queue.put_nowait(link)

        total = len(links)
        processed = 0

        async def worker(worker_id: int):
            nonlocal processed
            while True:
                try:
                    link = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return

                try:
                    async with self.portal.isolated() as tab:
                        slots = await tab.detail_slots(link)
                except Exception as e:
                    logger.warning(f"Worker {worker_id} dropped {link}: {e}")
                    slots = []

                for slot in sorted(slots, key=lambda s: s.contention):
                    if self.is_eligible(slot):
                        await selector.offer(slot.contention, slot.to_entry())

                processed += 1
                if processed % self.config.progress_every == 0:
                    logger.info(f"  {max(total - processed, 0)} pages left")

        workers = min(self.config.concurrency, total)
        await asyncio.gather(*(worker(i) for i in range(workers)))
