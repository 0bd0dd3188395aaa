from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from venue_scraper.config import ScrapeSettings
from venue_scraper.errors import NavigationError, NavigationTimeout, RenderInitError
from venue_scraper.fetchers.fingerprint import FingerprintPool
from venue_scraper.fetchers.page_source import NextControl
from venue_scraper.fetchers.render_agent import RenderAgent


class DummyLocator:
    def __init__(self, should_raise=None):
        self.should_raise = should_raise
        self.clicked = 0

    def nth(self, index):
        self.index = index
        return self

    async def click(self, timeout=None):
        if self.should_raise:
            raise self.should_raise
        self.clicked += 1


class DummyPage:
    def __init__(self, content_html="<html><body>rendered</body></html>"):
        self.url = None
        self._content_html = content_html
        self.goto_should_raise = None
        self.locator_instance = DummyLocator()
        self.goto_calls = []
        self.close = AsyncMock()
        self.wait_for_load_state = AsyncMock()

    async def goto(self, url, wait_until=None, timeout=30000):
        if self.goto_should_raise:
            raise self.goto_should_raise
        self.goto_calls.append((url, wait_until, timeout))
        self.url = url

    async def content(self):
        return self._content_html

    def locator(self, selector):
        self.locator_selector = selector
        return self.locator_instance


def _playwright_factory(page, launch_error=None):
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.add_init_script = AsyncMock()
    context.close = AsyncMock()
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser, side_effect=launch_error)
    playwright.stop = AsyncMock()
    factory = MagicMock()
    factory.return_value.start = AsyncMock(return_value=playwright)
    return factory, playwright, browser, context


@pytest.fixture
def config():
    return ScrapeSettings.without_delays(navigation_timeout_ms=5000)


@pytest.fixture(autouse=True)
def stealth():
    with patch("venue_scraper.fetchers.render_agent.Stealth") as mock_stealth:
        mock_stealth.return_value.apply_stealth_async = AsyncMock()
        yield mock_stealth


@pytest.mark.asyncio
async def test_open_applies_fingerprint_and_stealth(config, stealth):
    page = DummyPage()
    factory, playwright, browser, context = _playwright_factory(page)
    agent = RenderAgent(config, fingerprints=FingerprintPool(user_agents=["agent-one", "agent-two"]), playwright_factory=factory)

    session = await agent.open()

    launch_kwargs = playwright.chromium.launch.call_args.kwargs
    assert launch_kwargs["headless"] is True
    context_kwargs = browser.new_context.call_args.kwargs
    assert context_kwargs["user_agent"] == session.fingerprint.user_agent
    assert context_kwargs["viewport"] == session.fingerprint.viewport
    assert set(context_kwargs["extra_http_headers"]) <= {"Accept", "Accept-Language", "Upgrade-Insecure-Requests"}
    context.add_init_script.assert_awaited_once()
    stealth.return_value.apply_stealth_async.assert_awaited_once_with(page)
    await session.close()


@pytest.mark.asyncio
async def test_load_waits_for_network_idle(config):
    page = DummyPage()
    factory, *_ = _playwright_factory(page)

    async with await RenderAgent(config, playwright_factory=factory).open() as session:
        html = await session.load("https://example.com/venues")

    assert html == "<html><body>rendered</body></html>"
    assert page.goto_calls == [("https://example.com/venues", "networkidle", 5000)]
    assert session.current_url == "https://example.com/venues"


@pytest.mark.asyncio
async def test_load_timeout_becomes_navigation_timeout(config):
    page = DummyPage()
    page.goto_should_raise = PlaywrightTimeoutError("Timeout 5000ms exceeded")
    factory, *_ = _playwright_factory(page)
    session = await RenderAgent(config, playwright_factory=factory).open()

    with pytest.raises(NavigationTimeout):
        await session.load("https://example.com/slow")
    await session.close()


@pytest.mark.asyncio
async def test_follow_clicks_nth_match(config):
    page = DummyPage(content_html="<html>page 2</html>")
    factory, *_ = _playwright_factory(page)
    session = await RenderAgent(config, playwright_factory=factory).open()

    html = await session.follow(NextControl(selector="button, a", index=3))

    assert html == "<html>page 2</html>"
    assert page.locator_selector == "button, a"
    assert page.locator_instance.index == 3
    assert page.locator_instance.clicked == 1
    await session.close()


@pytest.mark.asyncio
async def test_follow_failure_becomes_navigation_error(config):
    page = DummyPage()
    page.locator_instance = DummyLocator(should_raise=PlaywrightError("element detached"))
    factory, *_ = _playwright_factory(page)
    session = await RenderAgent(config, playwright_factory=factory).open()

    with pytest.raises(NavigationError):
        await session.follow(NextControl(selector=".next-page"))
    await session.close()


@pytest.mark.asyncio
async def test_launch_failure_raises_render_init_error_and_cleans_up(config):
    factory, playwright, *_ = _playwright_factory(DummyPage(), launch_error=PlaywrightError("Executable doesn't exist"))

    with pytest.raises(RenderInitError):
        await RenderAgent(config, playwright_factory=factory).open()

    playwright.stop.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_is_idempotent_and_blocks_further_loads(config):
    page = DummyPage()
    factory, playwright, browser, _ = _playwright_factory(page)
    session = await RenderAgent(config, playwright_factory=factory).open()

    await session.close()
    await session.close()

    browser.close.assert_awaited_once()
    playwright.stop.assert_awaited_once()
    with pytest.raises(NavigationError):
        await session.load("https://example.com/after-close")
