"""
Browser automation capability

The lottery engine only talks to the portal through ``Automation``: navigate,
wait for a condition, look elements up, read them, click and fill. The
Playwright implementation below is the one used for real runs; tests swap in
an in-memory fake.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
)

from ..common.config import BrowserConfig
from ..common.errors import ConditionTimeout

logger = logging.getLogger(__name__)

Condition = Callable[[], Awaitable[bool]]


class Automation(ABC):
    """Abstract browser tab the lottery engine drives"""

    poll_interval: float = 0.2

    def __init__(self, default_timeout: float = 10.0):
        self.default_timeout = default_timeout

    @abstractmethod
    async def navigate(self, url: str):
        """Open a URL in this tab"""

    @abstractmethod
    def current_url(self) -> str:
        """URL currently shown"""

    @abstractmethod
    async def query(self, selector: str, root: Any = None) -> List[Any]:
        """All elements matching selector, optionally below root"""

    @abstractmethod
    async def get_attribute(self, element: Any, name: str) -> Optional[str]:
        pass

    @abstractmethod
    async def text(self, element: Any) -> str:
        pass

    @abstractmethod
    async def is_visible(self, element: Any) -> bool:
        pass

    @abstractmethod
    async def click(self, element: Any):
        pass

    @abstractmethod
    async def fill(self, element: Any, value: str):
        pass

    @abstractmethod
    async def capture_diagnostic(self, label: str) -> Optional[Path]:
        """Save a screenshot for post-mortem inspection"""

    @abstractmethod
    def isolated(self):
        """
        Async context manager yielding an independent tab that shares the
        login session. The tab is closed when the block exits, including on
        error.
        """

    # ========================================
    # Waiting helpers
    # ========================================

    async def wait_for(
        self,
        condition: Condition,
        timeout: Optional[float] = None,
        description: str = "condition",
    ):
        """
        Poll ``condition`` until it returns True.

        Raises:
            ConditionTimeout: if the condition is still false after ``timeout`` seconds
        """
        timeout = self.default_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            if await condition():
                return
            if loop.time() >= deadline:
                raise ConditionTimeout(description, timeout)
            await asyncio.sleep(self.poll_interval)

    async def wait_for_url(self, prefix: str, timeout: Optional[float] = None):
        async def reached() -> bool:
            return self.current_url().startswith(prefix)

        await self.wait_for(reached, timeout, f"page {prefix}")

    async def wait_for_element(
        self,
        selector: str,
        timeout: Optional[float] = None,
        root: Any = None,
        visible: bool = True,
    ) -> Any:
        """Wait for the first element matching selector and return it"""
        found: List[Any] = []

        async def present() -> bool:
            for element in await self.query(selector, root):
                if not visible or await self.is_visible(element):
                    found.append(element)
                    return True
            return False

        await self.wait_for(present, timeout, f"element {selector}")
        return found[0]

    async def wait_until_gone(self, selector: str, timeout: Optional[float] = None):
        async def gone() -> bool:
            for element in await self.query(selector):
                if await self.is_visible(element):
                    return False
            return True

        await self.wait_for(gone, timeout, f"{selector} to disappear")

    async def query_one(self, selector: str, root: Any = None) -> Optional[Any]:
        elements = await self.query(selector, root)
        return elements[0] if elements else None

    async def settle(self, seconds: float):
        """Give client-side rendering a moment after a page change"""
        if seconds > 0:
            await asyncio.sleep(seconds)


class PlaywrightAutomation(Automation):
    """Automation backed by one Playwright page"""

    def __init__(self, page: Page, default_timeout: float = 10.0, diagnostic_dir: str = "."):
        super().__init__(default_timeout)
        self.page = page
        self.diagnostic_dir = Path(diagnostic_dir)

    async def navigate(self, url: str):
        logger.debug(f"Navigating to {url}")
        await self.page.goto(url, wait_until="domcontentloaded")

    def current_url(self) -> str:
        return self.page.url

    def _seconds(self, timeout: Optional[float]) -> float:
        return self.default_timeout if timeout is None else timeout

    async def wait_for_url(self, prefix: str, timeout: Optional[float] = None):
        try:
            await self.page.wait_for_url(
                lambda url: url.startswith(prefix),
                wait_until="domcontentloaded",
                timeout=self._seconds(timeout) * 1000,
            )
        except PlaywrightTimeoutError as e:
            raise ConditionTimeout(f"page {prefix}", self._seconds(timeout)) from e

    async def wait_for_element(
        self,
        selector: str,
        timeout: Optional[float] = None,
        root: Any = None,
        visible: bool = True,
    ) -> Any:
        scope = root if root is not None else self.page
        try:
            return await scope.wait_for_selector(
                selector,
                state="visible" if visible else "attached",
                timeout=self._seconds(timeout) * 1000,
            )
        except PlaywrightTimeoutError as e:
            raise ConditionTimeout(f"element {selector}", self._seconds(timeout)) from e

    async def wait_until_gone(self, selector: str, timeout: Optional[float] = None):
        try:
            await self.page.wait_for_selector(selector, state="hidden", timeout=self._seconds(timeout) * 1000)
        except PlaywrightTimeoutError as e:
            raise ConditionTimeout(f"{selector} to disappear", self._seconds(timeout)) from e

    async def query(self, selector: str, root: Any = None) -> List[Any]:
        scope = root if root is not None else self.page
        try:
            return await scope.query_selector_all(selector)
        except PlaywrightError as e:
            # The DOM is replaced while a page is still loading
            logger.debug(f"Query {selector} failed: {e}")
            return []

    async def get_attribute(self, element: Any, name: str) -> Optional[str]:
        return await element.get_attribute(name)

    async def text(self, element: Any) -> str:
        return (await element.inner_text()).strip()

    async def is_visible(self, element: Any) -> bool:
        try:
            return await element.is_visible()
        except PlaywrightError:
            return False

    async def click(self, element: Any):
        await element.scroll_into_view_if_needed()
        await element.click()

    async def fill(self, element: Any, value: str):
        await element.fill(value)

    async def capture_diagnostic(self, label: str) -> Optional[Path]:
        self.diagnostic_dir.mkdir(parents=True, exist_ok=True)
        path = self.diagnostic_dir / f"{label}.png"
        await self.page.screenshot(path=str(path), full_page=True)
        logger.info(f"Saved diagnostic screenshot to {path}")
        return path

    @asynccontextmanager
    async def isolated(self) -> AsyncIterator["PlaywrightAutomation"]:
        page = await self.page.context.new_page()
        try:
            yield PlaywrightAutomation(page, self.default_timeout, str(self.diagnostic_dir))
        finally:
            await page.close()


class BrowserRuntime:
    """
    Owns the Playwright process, browser and context for one run.

    Usage:
        async with BrowserRuntime(config.browser) as runtime:
            automation = runtime.automation
    """

    def __init__(self, config: BrowserConfig, default_timeout: float = 10.0, diagnostic_dir: str = "."):
        self.config = config
        self.default_timeout = default_timeout
        self.diagnostic_dir = diagnostic_dir
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.automation: Optional[PlaywrightAutomation] = None

    async def start(self) -> PlaywrightAutomation:
        """Start the browser"""
        logger.info("Starting browser...")

        self.playwright = await async_playwright().start()

        self.browser = await self.playwright.chromium.launch(
            headless=self.config.headless,
            slow_mo=self.config.slow_mo,
        )

        context_options = {
            "locale": self.config.locale,
            "timezone_id": self.config.timezone,
            "viewport": {"width": self.config.viewport_width, "height": self.config.viewport_height},
        }
        if self.config.user_agent:
            context_options["user_agent"] = self.config.user_agent
        self.context = await self.browser.new_context(**context_options)

        page = await self.context.new_page()
        self.automation = PlaywrightAutomation(page, self.default_timeout, self.diagnostic_dir)

        logger.info("Browser started")
        return self.automation

    async def stop(self):
        """Stop the browser"""
        if self.context:
            await self.context.close()
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()
        logger.info("Browser stopped")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *args):
        await self.stop()
