"""
Timing helpers for the lottery bot

Portal-local clock and the fixed-delay retry strategy used for notifications.
"""
import asyncio
import logging
from datetime import date, datetime
from typing import Optional
import pytz

logger = logging.getLogger(__name__)


class PortalClock:
    """
    Calendar as seen by the portal (Asia/Tokyo).

    Lottery applications are always for next month, and which facility
    group is open for lottery depends on the half of the current month.
    """

    def __init__(self, timezone: str = "Asia/Tokyo", fixed_now: Optional[datetime] = None):
        self.tz = pytz.timezone(timezone)
        self._fixed_now = fixed_now

    def now(self) -> datetime:
        """Get current time in configured timezone"""
        if self._fixed_now is not None:
            if self._fixed_now.tzinfo is None:
                return self.tz.localize(self._fixed_now)
            return self._fixed_now.astimezone(self.tz)
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def is_first_half(self) -> bool:
        return self.today().day <= 15

    def next_month(self) -> date:
        """First day of next month"""
        today = self.today()
        if today.month == 12:
            return date(today.year + 1, 1, 1)
        return date(today.year, today.month + 1, 1)

    def next_month_key(self) -> str:
        """YYYY-MM of next month, as the comparison pages expect it"""
        return self.next_month().strftime("%Y-%m")

    def format_now(self) -> str:
        return self.now().strftime("%Y-%m-%d %H:%M:%S %Z")


class RetryStrategy:
    """
    Bounded retry with a fixed delay between attempts.
    """

    def __init__(self, max_attempts: int = 3, delay_seconds: float = 2.0):
        if max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self.attempts = 0

    def should_retry(self) -> bool:
        """Check if another attempt should be made"""
        return self.attempts < self.max_attempts

    def record_attempt(self):
        """Record an attempt"""
        self.attempts += 1

    async def wait(self):
        """Wait before the next attempt"""
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
