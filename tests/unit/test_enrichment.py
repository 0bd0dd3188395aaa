import pytest

from venue_scraper.config import ScrapeSettings
from venue_scraper.extraction.listing_extractor import ListingExtractor
from venue_scraper.extraction.profile_extractor import ProfileExtractor
from venue_scraper.models import RawListingRecord
from venue_scraper.pipeline.batch_scheduler import run_batch
from venue_scraper.pipeline.enrichment import enrich_profiles
from venue_scraper.regions import build_regions

from fakes import DummyPageSource, listing_page

PROFILE_HTML = (
    '<html><body><h1>Lakeview Barn</h1><div class="capacity">Up to 180 guests</div>'
    '<ul class="amenities"><li>Indoor Event Space</li></ul></body></html>'
)
DETAIL_URL = "https://www.theknot.com/marketplace/lakeview-barn"


@pytest.mark.asyncio
async def test_profiles_are_attached_and_synthesized_urls_skipped():
    records = [
        RawListingRecord(name="Guessed Venue", url="https://www.theknot.com/marketplace/guessed", url_synthesized=True),
        RawListingRecord(name="Lakeview Barn", url=DETAIL_URL),
    ]
    source = DummyPageSource(pages={DETAIL_URL: PROFILE_HTML})

    attached = await enrich_profiles(source, records, ProfileExtractor(), limit=5)

    assert attached == 1
    assert records[0].profile is None
    assert records[1].profile.capacity.max_capacity == 180
    assert source.loaded == [DETAIL_URL]

    doc = records[1].to_persisted()
    assert doc["maxCapacity"] == 180
    assert doc["capacity"]["max"] == 180
    assert doc["amenities"] == ["Indoor Event Space"]
    assert doc["indoorEventSpace"] is True


@pytest.mark.asyncio
async def test_unreachable_or_empty_profiles_are_skipped():
    records = [
        RawListingRecord(name="Gone Venue", url="https://www.theknot.com/marketplace/gone"),
        RawListingRecord(name="Blank Venue", url="https://www.theknot.com/marketplace/blank"),
    ]
    source = DummyPageSource(pages={"https://www.theknot.com/marketplace/blank": "  "})

    attached = await enrich_profiles(source, records, ProfileExtractor(), limit=5)

    assert attached == 0
    assert all(record.profile is None for record in records)


@pytest.mark.asyncio
async def test_limit_bounds_detail_page_loads():
    records = [RawListingRecord(name=f"Venue {i}", url=f"https://www.theknot.com/marketplace/v{i}") for i in range(4)]
    source = DummyPageSource(html_for=lambda url: PROFILE_HTML)

    await enrich_profiles(source, records, ProfileExtractor(), limit=2)

    assert len(source.loaded) == 2


@pytest.mark.asyncio
async def test_batch_enriches_records_when_enabled():
    config = ScrapeSettings.without_delays(enrich_profiles=True, max_profiles_per_region=1)
    regions = build_regions([("Illinois", "IL")])
    region_page = listing_page([("Lakeview Barn", "4.5(120)", "Springfield, IL")])
    source = DummyPageSource(html_for=lambda url: PROFILE_HTML if url == DETAIL_URL else region_page)

    outcome = await run_batch(
        source, regions, 0, 1, config, ListingExtractor(config), profile_extractor=ProfileExtractor(config)
    )

    assert outcome.records[0].profile is not None
    assert outcome.records[0].region == "illinois"
