import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from venue_scraper.errors import NavigationError
from venue_scraper.extraction.listing_extractor import ListingExtractor
from venue_scraper.extraction.strategies import parse_html
from venue_scraper.fetchers.page_source import NextControl, PageSource
from venue_scraper.models import RawListingRecord

logger = logging.getLogger(__name__)

NEXT_CONTROL_SELECTORS = [
    '[data-testid="pagination-next"]',
    '.pagination-next',
    '.next-page',
    'button[aria-label*="Next"]',
    'a[aria-label*="Next"]',
    'button[title*="Next"]',
    'a[title*="Next"]',
    'button[aria-label*="next"]',
    'a[aria-label*="next"]',
    'button[title*="next"]',
    'a[title*="next"]',
]
NEXT_TEXT_TOKENS = ("next", "→", ">")
TEXT_CONTROL_SELECTOR = "button, a"


def _is_hidden_or_disabled(element: Tag) -> bool:
    if element.has_attr("disabled") or element.has_attr("hidden"):
        return True
    if (element.get("aria-disabled") or "").lower() == "true":
        return True
    style = (element.get("style") or "").replace(" ", "").lower()
    if "display:none" in style or "visibility:hidden" in style:
        return True
    return any(parent.has_attr("hidden") for parent in element.parents if isinstance(parent, Tag))


def find_next_control(html_or_soup) -> Optional[NextControl]:
    """Locates a usable 'next page' element, trying selectors first and link text second."""
    soup = html_or_soup if isinstance(html_or_soup, BeautifulSoup) else parse_html(html_or_soup)

    for selector in NEXT_CONTROL_SELECTORS:
        for index, element in enumerate(soup.select(selector)):
            if not _is_hidden_or_disabled(element):
                return NextControl(selector=selector, index=index, href=element.get("href"), label=element.get_text(strip=True))

    for index, element in enumerate(soup.select(TEXT_CONTROL_SELECTOR)):
        text = element.get_text(strip=True).lower()
        if text and any(token in text for token in NEXT_TEXT_TOKENS) and not _is_hidden_or_disabled(element):
            return NextControl(selector=TEXT_CONTROL_SELECTOR, index=index, href=element.get("href"), label=text)
    return None


async def paginate(
    source: PageSource,
    region_url: str,
    per_region_cap: int,
    max_pages: int,
    extractor: ListingExtractor,
) -> List[RawListingRecord]:
    """
    Collects listing records for one region, following 'next' controls until
    the cap or page limit is reached, no control is found, or navigation fails.
    A failure loading the first page propagates to the caller.
    """
    html = await source.load(region_url)
    records = list(extractor.extract(html))
    page_number = 1
    logger.info(f"Page 1 of {region_url}: {len(records)} records.")

    while len(records) < per_region_cap and page_number < max_pages:
        control = find_next_control(html)
        if control is None:
            logger.info(f"No next control after page {page_number} of {region_url}; region complete.")
            break

        try:
            next_html = await source.follow(control)
        except NavigationError as e:
            logger.warning(f"Stopping pagination of {region_url} at page {page_number}: {e}")
            break
        if next_html is None:
            logger.info(f"Next control on page {page_number} of {region_url} could not be followed; region complete.")
            break

        html = next_html
        page_number += 1
        try:
            page_records = extractor.extract(html)
        except Exception as e:
            logger.error(f"Extraction failed on page {page_number} of {region_url}: {e}", exc_info=True)
            break
        records.extend(page_records)
        logger.info(f"Page {page_number} of {region_url}: {len(page_records)} records ({len(records)} total).")

    return records[:per_region_cap]
