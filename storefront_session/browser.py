"""
Browser manager: Playwright lifecycle for pages that host verification widgets.

Single browser instance shared by every proof provider. Pages are tracked so
a provider can drop its page on teardown without touching the others.
"""
import logging
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

logger = logging.getLogger(__name__)


class BrowserManager:
    """Manages a single Playwright browser instance across verification requests."""

    def __init__(self, headless: bool = False):
        self._headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._pages: list[Page] = []

    @property
    def headless(self) -> bool:
        return self._headless

    @property
    def page_count(self) -> int:
        return len(self._pages)

    async def _ensure_browser(self) -> Browser:
        """Launch browser if not already running."""
        if self._browser and self._browser.is_connected():
            return self._browser

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._headless,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
            ],
        )
        logger.info("Browser launched (headless=%s)", self._headless)
        return self._browser

    async def _ensure_context(self) -> BrowserContext:
        if self._context:
            return self._context

        browser = await self._ensure_browser()
        self._context = await browser.new_context(
            viewport={"width": 1280, "height": 800},
            user_agent=(
                "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
                "AppleWebKit/537.36 (KHTML, like Gecko) "
                "Chrome/120.0.0.0 Safari/537.36"
            ),
        )
        return self._context

    async def open_page(self, url: str) -> Page:
        """Open a URL in a new tab and start tracking it."""
        context = await self._ensure_context()
        page = await context.new_page()
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=30000)
        except Exception:
            await page.close()
            raise
        self._pages.append(page)
        logger.info("Opened page %s", url)
        return page

    async def close_page(self, page: Page) -> None:
        """Close one tracked page. Already-closed pages are ignored."""
        if page in self._pages:
            self._pages.remove(page)
        try:
            await page.close()
        except Exception as e:
            logger.debug("Page close failed: %s", e)
        logger.debug("Page closed, %d still open", self.page_count)

    async def close(self) -> None:
        """Shut down browser and Playwright."""
        for page in list(self._pages):
            await self.close_page(page)

        if self._context:
            try:
                await self._context.close()
            except Exception as e:
                logger.debug("Context close failed: %s", e)
            self._context = None

        if self._browser:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug("Browser close failed: %s", e)
            self._browser = None

        if self._playwright:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug("Playwright stop failed: %s", e)
            self._playwright = None

        logger.info("Browser closed")
