import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import urljoin

from venue_scraper.errors import HtmlUnavailableError, NavigationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NextControl:
    """A located 'next page' element: the nth match of selector, plus its href if any."""
    selector: str
    index: int = 0
    href: Optional[str] = None
    label: str = ""


class PageSource(Protocol):
    current_url: Optional[str]

    async def load(self, url: str) -> str:
        ...

    async def follow(self, control: NextControl) -> Optional[str]:
        ...


def resolve_href(control: NextControl, current_url: Optional[str]) -> Optional[str]:
    """Absolute URL for a control's href, or None when it is not navigable."""
    href = (control.href or "").strip()
    if not href or href.startswith("#") or href.lower().startswith("javascript:"):
        return None
    return urljoin(current_url or "", href)


class FallbackPageSource:
    """
    Loads pages through the render session when there is one, and through the
    Fallback Fetcher when there is not or when rendering fails.
    """

    def __init__(self, render_session, fetcher):
        self.render_session = render_session
        self.fetcher = fetcher
        self.current_url: Optional[str] = None
        self.pages_loaded = 0
        # whether the browser is showing the page last returned
        self.rendered = False

    async def load(self, url: str) -> str:
        render_error: Optional[Exception] = None
        self.rendered = False
        if self.render_session is not None:
            try:
                html = await self.render_session.load(url)
                self._mark_loaded(url, rendered=True)
                return html
            except NavigationError as e:
                render_error = e
                logger.warning(f"Render Agent failed for {url}: {e}. Trying Fallback Fetcher.")

        try:
            html = await self.fetcher.fetch(url)
        except NavigationError as e:
            reason = f"render: {render_error}; fetch: {e}" if render_error else f"fetch: {e}"
            raise HtmlUnavailableError(f"No HTML obtainable ({reason})", url=url) from e
        self._mark_loaded(url)
        return html

    async def follow(self, control: NextControl) -> Optional[str]:
        if self.render_session is not None and self.rendered:
            html = await self.render_session.follow(control)
            self._mark_loaded(self.render_session.current_url, rendered=True)
            return html

        target = resolve_href(control, self.current_url)
        if target is None:
            logger.info(f"Next control '{control.selector}' has no followable href outside the browser.")
            return None
        html = await self.fetcher.fetch(target)
        self._mark_loaded(target)
        return html

    def _mark_loaded(self, url: Optional[str], rendered: bool = False):
        self.current_url = url
        self.rendered = rendered
        self.pages_loaded += 1
