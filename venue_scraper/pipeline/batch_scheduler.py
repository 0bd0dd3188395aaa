import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from venue_scraper.config import ScrapeSettings
from venue_scraper.errors import NavigationError
from venue_scraper.extraction.listing_extractor import ListingExtractor
from venue_scraper.extraction.profile_extractor import ProfileExtractor
from venue_scraper.fetchers.page_source import PageSource
from venue_scraper.models import BatchOutcome, RawListingRecord, Region
from venue_scraper.pipeline.enrichment import enrich_profiles
from venue_scraper.pipeline.pagination import paginate
from venue_scraper.regions import region_url
from venue_scraper.utils import random_delay

logger = logging.getLogger(__name__)


@dataclass
class ScrapeBatchState:
    """Progress of one batch invocation; lives only until the batch returns."""
    start_index: int
    max_regions: int
    started_at: float
    records: List[RawListingRecord] = field(default_factory=list)
    regions_processed: int = 0
    failed_regions: List[str] = field(default_factory=list)

    def elapsed(self, clock: Callable[[], float]) -> float:
        return clock() - self.started_at


async def run_batch(
    source: PageSource,
    regions: Sequence[Region],
    start_index: int,
    max_regions: int,
    config: ScrapeSettings,
    extractor: ListingExtractor,
    profile_extractor: Optional[ProfileExtractor] = None,
    clock: Callable[[], float] = time.monotonic,
) -> BatchOutcome:
    """
    Scrapes regions [start_index, start_index + max_regions) in ascending order.

    The deadline is checked before each region after the first, so every call
    makes progress. When it has been exceeded, the batch stops and
    next_start_index points at the first region not processed, so the next
    invocation resumes without gaps or overlap. A region that fails
    is logged, counted as processed, and contributes no records.
    """
    if start_index < 0:
        raise ValueError(f"start_index must be >= 0, got {start_index}")
    if max_regions < 1:
        raise ValueError(f"max_regions must be >= 1, got {max_regions}")

    total = len(regions)
    max_regions = min(max_regions, config.max_regions_per_call)
    end_index = min(start_index + max_regions, total)
    state = ScrapeBatchState(start_index=start_index, max_regions=max_regions, started_at=clock())
    next_start_index = max(end_index, start_index)
    deadline_hit = False

    logger.info(f"Batch starting at region {start_index} ({max_regions} max, {total} total).")

    for index in range(start_index, end_index):
        elapsed = state.elapsed(clock)
        if state.regions_processed > 0 and elapsed > config.batch_deadline_s:
            logger.warning(
                f"Batch deadline of {config.batch_deadline_s:.1f}s exceeded after {elapsed:.1f}s; "
                f"stopping before region {index}."
            )
            next_start_index = index
            deadline_hit = True
            break

        region = regions[index]
        url = region_url(region, config.region_url_template)
        logger.info(f"[{index + 1}/{total}] Scraping {region.name} ({url})")
        try:
            region_records = await paginate(
                source, url, config.per_region_cap, config.max_pages_per_region, extractor
            )
        except NavigationError as e:
            logger.warning(f"Region {region.name} skipped: {e}")
            region_records = []
            state.failed_regions.append(region.slug)
        except Exception as e:
            logger.error(f"Region {region.name} failed during extraction: {e}", exc_info=True)
            region_records = []
            state.failed_regions.append(region.slug)

        for record in region_records:
            record.region = region.slug
        if profile_extractor is not None and config.enrich_profiles and region_records:
            await enrich_profiles(source, region_records, profile_extractor, config.max_profiles_per_region)

        state.records.extend(region_records)
        state.regions_processed += 1
        logger.info(f"{region.name}: {len(region_records)} records ({len(state.records)} in batch).")

        if index < end_index - 1:
            await random_delay(config.inter_region_delay_range, logger)

    outcome = BatchOutcome(
        records=state.records,
        start_index=start_index,
        next_start_index=next_start_index,
        total_regions=total,
        is_complete=next_start_index >= total,
        regions_processed=state.regions_processed,
        pages_loaded=getattr(source, "pages_loaded", 0),
        failed_regions=state.failed_regions,
        deadline_hit=deadline_hit,
    )
    logger.info(
        f"Batch done: {outcome.regions_processed} regions, {len(outcome.records)} records, "
        f"next start {outcome.next_start_index}, complete={outcome.is_complete}."
    )
    return outcome
