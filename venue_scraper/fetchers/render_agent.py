import asyncio
import logging
from typing import Callable, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)
from playwright_stealth import Stealth

from venue_scraper.config import ScrapeSettings
from venue_scraper.errors import NavigationError, NavigationTimeout, RenderInitError
from venue_scraper.fetchers.fingerprint import Fingerprint, FingerprintPool
from venue_scraper.fetchers.page_source import NextControl
from venue_scraper.utils import random_delay

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-infobars',
    '--disable-blink-features=AutomationControlled',
    '--disable-dev-shm-usage',
    '--disable-gpu',
]

WEBDRIVER_INIT_SCRIPT = "Object.defineProperty(navigator, 'webdriver', {get: () => undefined})"

# Only headers Chromium accepts as context-wide extras; the UA is set on the context itself.
CONTEXT_HEADER_KEYS = ("Accept", "Accept-Language", "Upgrade-Insecure-Requests")


class RenderSession:
    """
    One headless browser page with a fixed fingerprint.

    Holds a browser process until close() is called; use it as an async
    context manager so it is released on every exit path.
    """

    def __init__(self, config: ScrapeSettings, fingerprint: Fingerprint):
        self.config = config
        self.fingerprint = fingerprint
        self.current_url: Optional[str] = None
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._page is not None and not self._closed

    async def start(self, playwright_factory: Callable = async_playwright):
        fp = self.fingerprint
        self._playwright = await playwright_factory().start()
        self._browser = await self._playwright.chromium.launch(headless=self.config.headless, args=BROWSER_ARGS)
        self._context = await self._browser.new_context(
            user_agent=fp.user_agent,
            viewport=fp.viewport,
            locale=fp.locale,
            timezone_id=fp.timezone_id,
            extra_http_headers={k: v for k, v in fp.headers.items() if k in CONTEXT_HEADER_KEYS},
        )
        await self._context.add_init_script(WEBDRIVER_INIT_SCRIPT)
        self._page = await self._context.new_page()
        await Stealth().apply_stealth_async(self._page)
        logger.info(f"Render session started (UA: {fp.user_agent[:60]}..., viewport: {fp.viewport}).")

    def _require_page(self, url: Optional[str] = None) -> Page:
        if not self.is_open:
            raise NavigationError("Render session is not open", url=url)
        return self._page

    async def load(self, url: str, timeout_ms: Optional[int] = None) -> str:
        """Navigates to url, waits for network idleness and returns the rendered HTML."""
        page = self._require_page(url)
        timeout = timeout_ms or self.config.navigation_timeout_ms

        await random_delay(self.config.pre_nav_delay_range, logger)
        logger.info(f"Navigating to {url}")
        try:
            await page.goto(url, wait_until="networkidle", timeout=timeout)
            await random_delay(self.config.post_nav_delay_range, logger)
            html = await page.content()
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"Page load exceeded {timeout}ms", url=url) from e
        except PlaywrightError as e:
            raise NavigationError(f"Navigation failed: {e}", url=url) from e

        self.current_url = page.url
        return html

    async def follow(self, control: NextControl) -> Optional[str]:
        """Clicks a 'next' control and returns the HTML of the page it leads to."""
        page = self._require_page(self.current_url)
        timeout = self.config.navigation_timeout_ms
        locator = page.locator(control.selector).nth(control.index)
        try:
            await locator.click(timeout=timeout)
            try:
                await page.wait_for_load_state("networkidle", timeout=timeout)
            except PlaywrightTimeoutError:
                logger.debug("Network did not go idle after clicking next; continuing.")
            if self.config.pagination_settle_delay_s:
                await asyncio.sleep(self.config.pagination_settle_delay_s)
            html = await page.content()
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"Clicking '{control.selector}' timed out", url=self.current_url) from e
        except PlaywrightError as e:
            raise NavigationError(f"Clicking '{control.selector}' failed: {e}", url=self.current_url) from e

        self.current_url = page.url
        return html

    async def close(self):
        """Releases page, context, browser and the playwright driver. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        for name, resource in (("page", self._page), ("context", self._context), ("browser", self._browser)):
            if resource is None:
                continue
            try:
                await resource.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing {name}: {e}")
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except PlaywrightError as e:
                logger.warning(f"Error stopping playwright: {e}")
        self._page = self._context = self._browser = self._playwright = None
        logger.info("Render session closed.")


class RenderAgent:
    """Creates render sessions; each open() draws a fresh fingerprint from the pool."""

    def __init__(
        self,
        config: ScrapeSettings,
        fingerprints: Optional[FingerprintPool] = None,
        playwright_factory: Callable = async_playwright,
    ):
        self.config = config
        self.fingerprints = fingerprints or FingerprintPool()
        self._playwright_factory = playwright_factory

    async def open(self) -> RenderSession:
        """Starts a browser session, or raises RenderInitError if the runtime cannot start."""
        session = RenderSession(self.config, self.fingerprints.next_fingerprint())
        try:
            await session.start(self._playwright_factory)
        except Exception as e:
            logger.warning(f"Render Agent unavailable: {e}", exc_info=True)
            await session.close()
            raise RenderInitError(f"Could not start headless browser: {e}") from e
        return session
