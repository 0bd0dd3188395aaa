import time
from unittest.mock import MagicMock

import pytest
import requests

from venue_scraper.config import ScrapeSettings
from venue_scraper.errors import FetchError
from venue_scraper.extraction.listing_extractor import ListingExtractor
from venue_scraper.fetchers.fallback_fetcher import FallbackFetcher
from venue_scraper.fetchers.fingerprint import FingerprintPool

from fakes import listing_page

USER_AGENTS = ["agent-one", "agent-two"]


def _response(text="<html></html>", status_code=200, reason="OK"):
    return MagicMock(text=text, status_code=status_code, reason=reason, ok=status_code < 400)


@pytest.fixture
def config():
    return ScrapeSettings.without_delays()


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def fetcher(config, session):
    return FallbackFetcher(config, fingerprints=FingerprintPool(user_agents=USER_AGENTS), session=session)


@pytest.mark.asyncio
async def test_fetch_returns_body_with_rotated_headers(fetcher, session, config):
    session.get.return_value = _response("<html>ok</html>")

    html = await fetcher.fetch("https://example.com/venues")

    assert html == "<html>ok</html>"
    _, kwargs = session.get.call_args
    assert kwargs["timeout"] == config.fetch_timeout_s
    assert kwargs["headers"]["User-Agent"] in USER_AGENTS
    assert "Accept-Language" in kwargs["headers"]


@pytest.mark.asyncio
async def test_user_agent_changes_between_fetches(fetcher, session):
    session.get.return_value = _response()

    await fetcher.fetch("https://example.com/a")
    first = session.get.call_args.kwargs["headers"]["User-Agent"]
    await fetcher.fetch("https://example.com/b")
    second = session.get.call_args.kwargs["headers"]["User-Agent"]

    assert first != second


@pytest.mark.asyncio
async def test_http_error_status_raises_fetch_error(fetcher, session):
    session.get.return_value = _response(status_code=503, reason="Service Unavailable")

    with pytest.raises(FetchError) as excinfo:
        await fetcher.fetch("https://example.com/down")

    assert excinfo.value.status_code == 503
    assert excinfo.value.url == "https://example.com/down"


@pytest.mark.asyncio
async def test_timeout_raises_fetch_error(fetcher, session):
    session.get.side_effect = requests.Timeout("read timed out")

    with pytest.raises(FetchError, match="timed out"):
        await fetcher.fetch("https://example.com/slow")


@pytest.mark.asyncio
async def test_fetch_catalog_uses_first_candidate_with_records(fetcher, session, config):
    good = listing_page([("Oak Hall", "4.8(55)", "Austin, TX")])
    session.get.side_effect = [
        requests.ConnectionError("refused"),
        _response("<html><body>No venues</body></html>"),
        _response(good),
    ]
    urls = ["https://example.com/1", "https://example.com/2", "https://example.com/3"]

    url, html, records = await fetcher.fetch_catalog(ListingExtractor(config).extract, urls)

    assert url == "https://example.com/3"
    assert html == good
    assert [r.name for r in records] == ["Oak Hall"]


@pytest.mark.asyncio
async def test_fetch_catalog_raises_when_nothing_yields(fetcher, session, config):
    session.get.return_value = _response("<html></html>")

    with pytest.raises(FetchError):
        await fetcher.fetch_catalog(ListingExtractor(config).extract, ["https://example.com/empty"])


def test_context_manager_closes_session(config, session):
    with FallbackFetcher(config, session=session):
        pass
    session.close.assert_called_once()


def test_default_session_mounts_retrying_adapter(config):
    fetcher = FallbackFetcher(config)
    adapter = fetcher.session.get_adapter("https://example.com")
    assert adapter.max_retries.total == config.fetch_retry_total
    assert 503 in adapter.max_retries.status_forcelist
    fetcher.close()


@pytest.mark.asyncio
async def test_whole_fetch_is_bounded_by_timeout(session):
    config = ScrapeSettings.without_delays(fetch_timeout_s=0.05)
    fetcher = FallbackFetcher(config, fingerprints=FingerprintPool(user_agents=USER_AGENTS), session=session)

    def slow_get(url, headers, timeout):
        # a request that keeps retrying past the overall budget
        time.sleep(0.5)
        return _response()

    session.get.side_effect = slow_get

    with pytest.raises(FetchError, match="including retries") as excinfo:
        await fetcher.fetch("https://example.com/stalls")

    assert excinfo.value.url == "https://example.com/stalls"
