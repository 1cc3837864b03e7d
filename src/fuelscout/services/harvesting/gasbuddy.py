"""Playwright-driven station source for the GasBuddy website."""

from __future__ import annotations

import logging
from urllib.parse import quote_plus

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ...config import settings
from ...errors import HarvestError, TRY_AGAIN_LATER
from ...models.domain import Listing, StationDetail
from .source import extract_station_detail, parse_listings

logger = logging.getLogger(__name__)

LISTING_SELECTOR = '[class*="GenericStationListItem"]'
STATION_LINK_SELECTOR = 'a[href*="/station/"]'
ADDRESS_SELECTOR = 'address, [class*="Address"]'

# Runs inside the page; returns plain dicts so parsing stays in Python.
LISTING_EXTRACTION_SCRIPT = """
(selector) => Array.from(document.querySelectorAll(selector)).map((el) => {
  const link = el.querySelector('a[href*="/station/"]');
  const priceEl = el.querySelector('[class*="StationDisplayPrice"], [class*="Price"]');
  return {
    href: link ? link.getAttribute('href') : null,
    name: link ? link.textContent.trim() : null,
    price: priceEl ? priceEl.textContent.trim() : null,
  };
})
"""


class PlaywrightStationSource:
    """One browser, one context, one page: a single consistent identity per session."""

    def __init__(
        self,
        base_url: str | None = None,
        fuel_type: int | None = None,
        headless: bool | None = None,
        user_agent: str | None = None,
        search_timeout: float | None = None,
        listing_wait: float | None = None,
        detail_timeout: float | None = None,
    ) -> None:
        self.base_url = (base_url or settings.station_source_base_url).rstrip("/")
        self.fuel_type = fuel_type or settings.station_source_fuel_type
        self.headless = settings.browser_headless if headless is None else headless
        self.user_agent = user_agent or settings.browser_user_agent
        self.search_timeout_ms = int((search_timeout or settings.search_timeout_seconds) * 1000)
        self.listing_wait_ms = int((listing_wait if listing_wait is not None else settings.listing_wait_seconds) * 1000)
        self.detail_timeout_ms = int((detail_timeout or settings.detail_timeout_seconds) * 1000)
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    async def __aenter__(self) -> "PlaywrightStationSource":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def start(self) -> None:
        if self._page is not None:
            return
        try:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
            self._context = await self._browser.new_context(
                viewport={"width": 1366, "height": 768},
                locale="en-US",
                user_agent=self.user_agent,
                extra_http_headers={
                    "Accept-Language": "en-US,en;q=0.9",
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
                },
            )
            self._page = await self._context.new_page()
        except Exception as exc:
            await self.close()
            raise HarvestError(
                message="Could not start the browser session.",
                remediation=TRY_AGAIN_LATER,
                details=str(exc),
            ) from exc
        logger.info("Browser session started")

    async def _close_browser(self) -> None:
        for resource in (self._page, self._context, self._browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.debug(f"Ignoring error while closing browser resource: {e}")
        self._page = None
        self._context = None
        self._browser = None

    async def restart(self) -> None:
        """Drop the current browser and context and start a fresh fingerprint."""
        logger.info("Restarting browser session")
        await self._close_browser()
        await self.start()

    async def close(self) -> None:
        await self._close_browser()
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"Ignoring error while stopping Playwright: {e}")
            self._playwright = None

    def _require_page(self) -> Page:
        if self._page is None:
            raise HarvestError(message="Browser session is not running.")
        return self._page

    def search_url(self, term: str) -> str:
        return f"{self.base_url}/home?search={quote_plus(term)}&fuel={self.fuel_type}"

    def detail_url(self, station_id: str) -> str:
        return f"{self.base_url}/station/{station_id}"

    async def search(self, term: str) -> list[Listing]:
        page = self._require_page()
        await page.goto(self.search_url(term), wait_until="networkidle", timeout=self.search_timeout_ms)
        try:
            await page.wait_for_selector(STATION_LINK_SELECTOR, timeout=self.listing_wait_ms)
        except PlaywrightTimeoutError:
            # An empty page is a valid answer; block detection decides what it means.
            pass
        raw_items = await page.evaluate(LISTING_EXTRACTION_SCRIPT, LISTING_SELECTOR)
        return parse_listings(raw_items or [])

    async def fetch_detail(self, station_id: str) -> StationDetail | None:
        page = self._require_page()
        await page.goto(self.detail_url(station_id), wait_until="networkidle", timeout=self.detail_timeout_ms)
        html = await page.content()
        address = None
        address_el = await page.query_selector(ADDRESS_SELECTOR)
        if address_el is not None:
            address = await address_el.text_content()
        return extract_station_detail(html, address)
