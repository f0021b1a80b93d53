"""
Sapporo facility lottery bot

Applies for next month's facility lotteries on the Sapporo reservation
portal (yoyaku.harp.lg.jp/sapporo) on behalf of a group:

1. Desired entries come from the group's web app (or the config file)
2. When the group asked for more entries than it listed, the explorer
   proposes the least contested lottery slots it can find
3. Entries already applied for are skipped; the rest are submitted one
   by one through a Playwright-driven browser
"""
from .common.config import Config, load_config

__version__ = "1.0.0"

__all__ = [
    "Config",
    "load_config",
]
