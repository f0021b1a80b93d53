"""
Error types shared by the lottery bot
"""
from typing import Optional


class LotteryError(Exception):
    """Base class for every error raised by the bot"""
    pass


class ConditionTimeout(LotteryError):
    """Raised when the browser does not reach an expected condition in time"""

    def __init__(self, description: str, timeout: float):
        super().__init__(f"Timed out after {timeout:.1f}s waiting for {description}")
        self.description = description
        self.timeout = timeout


class InvalidEntryError(LotteryError):
    """Raised when a desired entry cannot be searched for (missing facility, bad date/time)"""
    pass


class SlotResolutionError(LotteryError):
    """Raised when no run of portal slots covers the desired time range"""
    pass


class SelectionMismatchError(LotteryError):
    """Raised when the portal's selection summary disagrees with the requested entry"""

    def __init__(self, message: str, selected: str = "", expected: str = ""):
        super().__init__(message)
        self.selected = selected
        self.expected = expected


class PortalBusinessError(LotteryError):
    """Raised when the portal shows an error banner (lottery limit, outside service hours)"""
    pass


class LoginError(LotteryError):
    """Raised when the portal session cannot be authenticated"""
    pass


class StoreError(LotteryError):
    """Raised when the metadata store API request fails"""

    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class NotificationError(LotteryError):
    """Raised when a notification could not be delivered after all retries"""
    pass
