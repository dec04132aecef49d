# cs2_stats/scraper/session.py
"""
Browser session management for Playwright-based scraping.

One browser and context are shared by every page fetched during a run and
released exactly once when the session exits.
"""

import logging
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

LOGGER = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-web-security",
    "--disable-features=VizDisplayCompositor",
]


class BrowserSession:
    """Async context manager owning Playwright, a Chromium browser and one context."""

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None

    async def __aenter__(self) -> 'BrowserSession':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        """Launch the browser. Calling it on a started session is a no-op."""
        if self.browser:
            return

        LOGGER.info("Initializing browser (headless=%s)...", self.headless)
        try:
            self._playwright = await async_playwright().start()
            self.browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=LAUNCH_ARGS,
            )
            self.context = await self.browser.new_context(
                user_agent=USER_AGENT,
                viewport=VIEWPORT,
                locale="en-US",
            )
        except Exception as e:
            await self.close()
            raise RuntimeError(f"Failed to create browser context: {e}") from e
        LOGGER.info("Browser initialized")

    async def close(self) -> None:
        """Clean up browser resources."""
        for resource, closer in (
            (self.context, "close"),
            (self.browser, "close"),
            (self._playwright, "stop"),
        ):
            if resource is None:
                continue
            try:
                await getattr(resource, closer)()
            except Exception as e:
                LOGGER.debug("Ignoring browser cleanup error: %s", e)

        if self.browser:
            LOGGER.info("Browser closed")
        self._playwright = None
        self.browser = None
        self.context = None
