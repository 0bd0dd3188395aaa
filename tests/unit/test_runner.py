from unittest.mock import AsyncMock, MagicMock

import pytest

from venue_scraper.config import ScrapeSettings
from venue_scraper.errors import FetchError, RenderInitError
from venue_scraper.models import SubBatchReport
from venue_scraper.pipeline.runner import run_scrape_batch, scrape_catalog, scrape_profile
from venue_scraper.regions import build_regions

from fakes import listing_page

REGIONS = build_regions([("Texas", "TX"), ("Ohio", "OH"), ("Utah", "UT")])
LISTING_HTML = listing_page([
    ("Oak Hall", "4.8(55)", "Austin, TX"),
    ("Lakeview Barn", "4.5(120)", "Springfield, IL"),
])


@pytest.fixture
def config():
    return ScrapeSettings.without_delays()


def _fetcher(html=LISTING_HTML, error=None):
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=html, side_effect=error)
    return fetcher


def _failing_render_agent():
    agent = MagicMock()
    agent.open = AsyncMock(side_effect=RenderInitError("Could not start headless browser"))
    return agent


@pytest.mark.asyncio
async def test_render_init_failure_falls_back_to_fetcher(config):
    fetcher = _fetcher()

    response = await run_scrape_batch(0, 2, config, regions=REGIONS, render_agent=_failing_render_agent(), fetcher=fetcher)

    assert response.success is True
    # both regions serve the same page, so dedupe leaves two venues
    assert response.venues_scraped == 2
    assert fetcher.fetch.await_count == 2
    fetcher.close.assert_not_called()

    output = response.to_output()
    assert output["batchInfo"] == {
        "currentBatch": "1-2",
        "nextStartIndex": 2,
        "isComplete": False,
        "totalRegions": 3,
    }
    assert output["summary"] == {"regionsProcessed": 2, "recordsPerRegion": 1}
    assert "error" not in output


@pytest.mark.asyncio
async def test_render_session_is_used_and_closed(config):
    session = MagicMock()
    session.load = AsyncMock(return_value=LISTING_HTML)
    session.close = AsyncMock()
    agent = MagicMock()
    agent.open = AsyncMock(return_value=session)
    fetcher = _fetcher()

    response = await run_scrape_batch(0, 3, config, regions=REGIONS, render_agent=agent, fetcher=fetcher)

    assert response.success is True
    assert response.batch_info.is_complete is True
    assert response.to_output()["batchInfo"]["nextStartIndex"] is None
    assert session.load.await_count == 3
    fetcher.fetch.assert_not_awaited()
    session.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_session_is_closed_when_batch_raises(config):
    session = MagicMock()
    session.close = AsyncMock()
    agent = MagicMock()
    agent.open = AsyncMock(return_value=session)

    with pytest.raises(ValueError):
        await run_scrape_batch(-1, 1, config, regions=REGIONS, render_agent=agent, fetcher=_fetcher())

    session.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_no_html_anywhere_reports_failure(config):
    fetcher = _fetcher(error=FetchError("HTTP 503: Service Unavailable", status_code=503))

    response = await run_scrape_batch(0, 2, config, regions=REGIONS, render_agent=_failing_render_agent(), fetcher=fetcher)

    assert response.success is False
    assert response.venues_scraped == 0
    assert response.summary.regions_processed == 2
    assert response.summary.records_per_region == 0
    assert "error" in response.to_output()


@pytest.mark.asyncio
async def test_records_are_upserted_into_sink(config):
    sink = MagicMock()
    sink.upsert.return_value = [SubBatchReport(index=0, attempted=2, upserted=2)]

    response = await run_scrape_batch(0, 1, config, regions=REGIONS, sink=sink, fetcher=_fetcher())

    records, batch_size = sink.upsert.call_args[0]
    assert [r.name for r in records] == ["Oak Hall", "Lakeview Barn"]
    assert all(r.region == "texas" for r in records)
    assert batch_size == config.sink_batch_size
    assert response.to_output()["sink"] == [
        {"index": 0, "attempted": 2, "upserted": 2, "modified": 0, "error": None}
    ]


@pytest.mark.asyncio
async def test_scrape_catalog_dedupes(config):
    duplicated = listing_page([
        ("Oak Hall", "4.8(55)", "Austin, TX"),
        ("oak hall", "4.8(55)", "Austin, TX"),
    ])
    fetcher = MagicMock()
    fetcher.fetch_catalog = AsyncMock(
        side_effect=lambda extract: ("https://www.theknot.com/marketplace/wedding-venues", duplicated, extract(duplicated))
    )

    records = await scrape_catalog(config, fetcher=fetcher)

    assert [r.name for r in records] == ["Oak Hall"]


@pytest.mark.asyncio
async def test_scrape_profile_without_browser(config):
    fetcher = _fetcher(html='<html><body><h1>Oak Hall</h1><div class="capacity">150+ guests</div></body></html>')

    profile = await scrape_profile("https://www.theknot.com/marketplace/oak-hall", config, fetcher=fetcher)

    assert profile.basic.name == "Oak Hall"
    assert profile.capacity.max_capacity == 150
    assert profile.metadata.source_url == "https://www.theknot.com/marketplace/oak-hall"
