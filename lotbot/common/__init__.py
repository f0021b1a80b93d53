"""
Common utilities for the lottery bot
"""
from .config import Config, load_config
from .errors import (
    LotteryError,
    ConditionTimeout,
    InvalidEntryError,
    SlotResolutionError,
    SelectionMismatchError,
    PortalBusinessError,
    LoginError,
    StoreError,
    NotificationError,
)
from .models import (
    ApplicationOutcome,
    AppliedEntry,
    DesiredEntry,
    EntryResult,
    Job,
    NotificationPayload,
    PortalSlot,
    RunSummary,
    TimeRange,
)
from .notifications import NotificationManager
from .scheduler import PortalClock, RetryStrategy

__all__ = [
    "Config",
    "load_config",
    "LotteryError",
    "ConditionTimeout",
    "InvalidEntryError",
    "SlotResolutionError",
    "SelectionMismatchError",
    "PortalBusinessError",
    "LoginError",
    "StoreError",
    "NotificationError",
    "ApplicationOutcome",
    "AppliedEntry",
    "DesiredEntry",
    "EntryResult",
    "Job",
    "NotificationPayload",
    "PortalSlot",
    "RunSummary",
    "TimeRange",
    "NotificationManager",
    "PortalClock",
    "RetryStrategy",
]
