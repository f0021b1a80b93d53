"""
Browser automation for the Sapporo facility reservation portal
"""
from .automation import Automation, BrowserRuntime, PlaywrightAutomation
from .portal import Portal, SapporoPortal
from .urls import WebPages

__all__ = [
    "Automation",
    "BrowserRuntime",
    "PlaywrightAutomation",
    "Portal",
    "SapporoPortal",
    "WebPages",
]
