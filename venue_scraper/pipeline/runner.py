"""
Entry points that wire the fetchers, extractors, scheduler and sink together.

``run_scrape_batch`` is the single-invocation contract: scrape a slice of
regions, dedupe, optionally persist, and return a BatchResponse carrying the
offset the next invocation should resume from.
"""
import asyncio
import logging
from typing import List, Optional, Sequence

from venue_scraper.config import ScrapeSettings
from venue_scraper.errors import RenderInitError
from venue_scraper.extraction.listing_extractor import ListingExtractor
from venue_scraper.extraction.profile_extractor import ProfileExtractor
from venue_scraper.fetchers.fallback_fetcher import FallbackFetcher
from venue_scraper.fetchers.page_source import FallbackPageSource
from venue_scraper.fetchers.render_agent import RenderAgent, RenderSession
from venue_scraper.models import (
    BatchInfo,
    BatchOutcome,
    BatchResponse,
    BatchSummary,
    RawListingRecord,
    Region,
    SubBatchReport,
    VenueProfile,
)
from venue_scraper.pipeline.batch_scheduler import run_batch
from venue_scraper.pipeline.dedupe import dedupe
from venue_scraper.regions import US_STATES
from venue_scraper.sink import ResultSink

logger = logging.getLogger(__name__)

NO_HTML_ERROR = "No HTML could be obtained for any region; Render Agent and Fallback Fetcher both failed."


async def _open_render_session(render_agent: Optional[RenderAgent]) -> Optional[RenderSession]:
    if render_agent is None:
        return None
    try:
        return await render_agent.open()
    except RenderInitError as e:
        logger.warning(f"Continuing with the Fallback Fetcher only: {e}")
        return None


async def _upsert(sink: ResultSink, records: Sequence[RawListingRecord], batch_size: int) -> List[SubBatchReport]:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, sink.upsert, list(records), batch_size)


def build_response(
    outcome: BatchOutcome,
    records: Sequence[RawListingRecord],
    max_regions: int,
    sink_reports: Optional[List[SubBatchReport]] = None,
) -> BatchResponse:
    total = outcome.total_regions
    processed = outcome.regions_processed
    venues = len(records)
    no_html = processed > 0 and outcome.pages_loaded == 0
    end = min(outcome.start_index + max_regions, total)

    return BatchResponse(
        success=not no_html,
        venues_scraped=venues,
        batch_info=BatchInfo(
            current_batch=f"{outcome.start_index + 1}-{end}",
            next_start_index=None if outcome.is_complete else outcome.next_start_index,
            is_complete=outcome.is_complete,
            total_regions=total,
        ),
        summary=BatchSummary(
            regions_processed=processed,
            records_per_region=round(venues / processed) if processed else 0,
        ),
        error=NO_HTML_ERROR if no_html else None,
        sink=sink_reports,
    )


async def run_scrape_batch(
    start_index: int,
    max_regions: int,
    scrape_settings: ScrapeSettings,
    regions: Sequence[Region] = US_STATES,
    sink: Optional[ResultSink] = None,
    render_agent: Optional[RenderAgent] = None,
    fetcher: Optional[FallbackFetcher] = None,
) -> BatchResponse:
    """
    Scrapes regions [start_index, start_index + max_regions) and returns the
    batch response. Pass render_agent=None to skip the browser entirely.
    """
    owns_fetcher = fetcher is None
    fetcher = fetcher or FallbackFetcher(scrape_settings)
    extractor = ListingExtractor(scrape_settings)
    profile_extractor = ProfileExtractor(scrape_settings) if scrape_settings.enrich_profiles else None

    session = await _open_render_session(render_agent)
    try:
        source = FallbackPageSource(session, fetcher)
        outcome = await run_batch(
            source,
            regions,
            start_index,
            max_regions,
            scrape_settings,
            extractor,
            profile_extractor=profile_extractor,
        )
    finally:
        if session is not None:
            await session.close()
        if owns_fetcher:
            fetcher.close()

    records = dedupe(outcome.records)
    sink_reports = None
    if sink is not None and records:
        sink_reports = await _upsert(sink, records, scrape_settings.sink_batch_size)

    response = build_response(
        outcome, records, min(max_regions, scrape_settings.max_regions_per_call), sink_reports
    )
    if not response.success:
        logger.error(response.error)
    logger.info(
        f"Batch {response.batch_info.current_batch}: {response.venues_scraped} venues, "
        f"next start {response.batch_info.next_start_index}."
    )
    return response


async def scrape_catalog(scrape_settings: ScrapeSettings, fetcher: Optional[FallbackFetcher] = None) -> List[RawListingRecord]:
    """Fetches the first catalog URL that yields listings, without a browser."""
    owns_fetcher = fetcher is None
    fetcher = fetcher or FallbackFetcher(scrape_settings)
    extractor = ListingExtractor(scrape_settings)
    try:
        url, _, records = await fetcher.fetch_catalog(extractor.extract)
    finally:
        if owns_fetcher:
            fetcher.close()
    unique = dedupe(records)
    logger.info(f"Catalog {url}: {len(unique)} unique venues.")
    return unique


async def scrape_profile(
    url: str,
    scrape_settings: ScrapeSettings,
    render_agent: Optional[RenderAgent] = None,
    fetcher: Optional[FallbackFetcher] = None,
) -> VenueProfile:
    """Loads one venue detail page and parses it into a VenueProfile."""
    owns_fetcher = fetcher is None
    fetcher = fetcher or FallbackFetcher(scrape_settings)
    session = await _open_render_session(render_agent)
    try:
        html = await FallbackPageSource(session, fetcher).load(url)
    finally:
        if session is not None:
            await session.close()
        if owns_fetcher:
            fetcher.close()
    return ProfileExtractor(scrape_settings).extract(html, source_url=url)
