"""Exceptions raised by the scraping pipeline."""
from typing import Optional


class VenueScraperError(Exception):
    """Base class for all pipeline errors."""


class RenderInitError(VenueScraperError):
    """The headless browser runtime could not be started."""


class NavigationError(VenueScraperError):
    """A page could not be loaded or advanced to."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url

    def __str__(self):
        base = super().__str__()
        return f"{base} (url={self.url})" if self.url else base


class NavigationTimeout(NavigationError):
    """Page load exceeded the navigation timeout."""


class FetchError(NavigationError):
    """The plain HTTP fallback path failed."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, url=url)
        self.status_code = status_code


class HtmlUnavailableError(NavigationError):
    """Both the Render Agent and the Fallback Fetcher failed for a URL."""


class ProfileExtractionError(VenueScraperError):
    """A detail page could not be parsed into a profile."""

