# cs2_stats/scraper/core.py
"""
Rendering client for csgostats.gg player pages.

StatsPageClient loads one player page per call in a shared browser context,
waits for the stat widgets to render and hands back a DocumentSnapshot.
Failures surface as ScrapeError subclasses so callers can record them per
player.
"""

from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from .document import DocumentSnapshot
from .session import BrowserSession

LOGGER = logging.getLogger(__name__)


class ScrapeError(Exception):
    """Base class for failures while scraping one player page."""


class TransportError(ScrapeError):
    """Raised when the page cannot be loaded (DNS, connection, browser errors)."""


class NotOkResponse(TransportError):
    """Raised when the player page answers with a non-2xx status."""

    def __init__(self, status_code: int, status_text: str = ""):
        self.status_code = status_code
        self.status_text = status_text
        message = f"HTTP {status_code}: {status_text}" if status_text else f"HTTP {status_code}"
        super().__init__(message)


class RenderTimeoutError(ScrapeError):
    """Raised when navigation exceeds its time budget."""


class NoDataFound(ScrapeError):
    """Raised when the page rendered but no stats could be extracted."""


class StatsPageClient:
    """Fetch rendered csgostats.gg player pages as document snapshots."""

    BASE_URL = "https://csgostats.gg/player/{steam_id64}"
    STATS_SELECTOR = "[data-tippy-content], .stat-card, .stats-section"
    FALLBACK_SELECTOR = "text=K/D"
    FALLBACK_TIMEOUT_MS = 10000

    def __init__(
        self,
        headless: bool = True,
        nav_timeout_ms: int = 60000,
        stats_timeout_ms: int = 30000,
        session: Optional[BrowserSession] = None,
    ):
        self.nav_timeout_ms = nav_timeout_ms
        self.stats_timeout_ms = stats_timeout_ms
        self.session = session or BrowserSession(headless=headless)

    async def __aenter__(self) -> 'StatsPageClient':
        await self.session.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.session.close()

    def player_url(self, steam_id64: str) -> str:
        return self.BASE_URL.format(steam_id64=steam_id64)

    async def fetch_document(self, steam_id64: str) -> DocumentSnapshot:
        """
        Load a player page and snapshot it once the stats have rendered.

        Raises:
            NotOkResponse: Non-2xx response
            RenderTimeoutError: Navigation timed out
            TransportError: Any other navigation failure
            NoDataFound: Page loaded but no stat elements appeared
        """
        if not self.session.context:
            await self.session.start()

        url = self.player_url(steam_id64)
        page = await self.session.context.new_page()
        try:
            LOGGER.info("Navigating to: %s", url)
            try:
                response = await page.goto(url, wait_until="networkidle", timeout=self.nav_timeout_ms)
            except PlaywrightTimeout as exc:
                raise RenderTimeoutError(f"Navigation to {url} timed out after {self.nav_timeout_ms}ms") from exc
            except PlaywrightError as exc:
                raise TransportError(f"Navigation to {url} failed: {exc}") from exc

            if response is None:
                raise TransportError(f"No response received for {url}")
            if not response.ok:
                raise NotOkResponse(response.status, response.status_text)

            await self._wait_for_stats(page)

            html = await page.content()
            return DocumentSnapshot.from_html(html, url=page.url)
        finally:
            await page.close()

    async def _wait_for_stats(self, page) -> None:
        """Wait for stat widgets, falling back to the K/D label."""
        try:
            await page.wait_for_selector(self.STATS_SELECTOR, state="visible", timeout=self.stats_timeout_ms)
            LOGGER.debug("Stats elements found")
            return
        except PlaywrightTimeout:
            pass

        try:
            await page.wait_for_selector(self.FALLBACK_SELECTOR, timeout=self.FALLBACK_TIMEOUT_MS)
            LOGGER.debug("Basic stats found")
        except PlaywrightTimeout as exc:
            raise NoDataFound("Stats elements not found - player might not have CS2 data") from exc
