import logging
from typing import Iterable

from venue_scraper.errors import NavigationError, ProfileExtractionError
from venue_scraper.extraction.profile_extractor import ProfileExtractor
from venue_scraper.fetchers.page_source import PageSource
from venue_scraper.models import RawListingRecord

logger = logging.getLogger(__name__)


async def enrich_profiles(
    source: PageSource,
    records: Iterable[RawListingRecord],
    extractor: ProfileExtractor,
    limit: int,
) -> int:
    """
    Loads up to `limit` detail pages and attaches the parsed profile to each
    record. Records with a synthesized URL are skipped. A failed profile
    leaves the record without one. Returns the number of profiles attached.
    """
    attempted = 0
    attached = 0
    for record in records:
        if attempted >= limit:
            break
        if record.profile is not None or record.url_synthesized or not record.url:
            continue
        attempted += 1
        try:
            html = await source.load(record.url)
            record.profile = extractor.extract(html, source_url=record.url)
            attached += 1
        except (NavigationError, ProfileExtractionError) as e:
            logger.warning(f"Profile for '{record.name}' not available: {e}")
    if attempted:
        logger.info(f"Attached {attached}/{attempted} venue profiles.")
    return attached
