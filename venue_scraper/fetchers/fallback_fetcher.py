import asyncio
import logging
from typing import Callable, List, Optional, Sequence, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from venue_scraper.config import ScrapeSettings
from venue_scraper.errors import FetchError
from venue_scraper.fetchers.fingerprint import FingerprintPool
from venue_scraper.utils import random_delay

logger = logging.getLogger(__name__)


class FallbackFetcher:
    """
    Plain HTTP retrieval used when no headless browser is available.

    Every call rotates the user agent and header set from the same pool the
    Render Agent uses. No scripts are executed.
    """

    def __init__(
        self,
        config: ScrapeSettings,
        fingerprints: Optional[FingerprintPool] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.fingerprints = fingerprints or FingerprintPool()
        self.session: requests.Session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retries = Retry(
            total=self.config.fetch_retry_total,
            backoff_factor=1.0,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retries)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _get(self, url: str, headers: dict) -> str:
        try:
            response = self.session.get(url, headers=headers, timeout=self.config.fetch_timeout_s)
        except requests.Timeout as e:
            raise FetchError(f"Request timed out after {self.config.fetch_timeout_s}s", url=url) from e
        except requests.RequestException as e:
            raise FetchError(f"Request failed: {e}", url=url) from e

        if not response.ok:
            raise FetchError(f"HTTP {response.status_code}: {response.reason}", url=url, status_code=response.status_code)
        return response.text

    async def fetch(self, url: str) -> str:
        """
        Fetches url with a fresh header set; raises FetchError on any failure.
        fetch_timeout_s bounds the whole call, retries and backoff included.
        """
        self.fingerprints.rotate_user_agent()
        headers = self.fingerprints.random_headers()
        await random_delay(self.config.pre_nav_delay_range, logger)

        logger.info(f"Fetching {url} without a browser")
        loop = asyncio.get_running_loop()
        try:
            html = await asyncio.wait_for(
                loop.run_in_executor(None, self._get, url, headers),
                timeout=self.config.fetch_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise FetchError(f"Fetch exceeded {self.config.fetch_timeout_s}s including retries", url=url) from e
        logger.info(f"Fetched {len(html)} characters from {url}")
        return html

    async def fetch_catalog(
        self,
        extract: Callable[[str], List],
        candidate_urls: Optional[Sequence[str]] = None,
    ) -> Tuple[str, str, List]:
        """
        Tries each catalog URL in order and returns (url, html, records) for the
        first response that yields at least one record.
        """
        urls = list(candidate_urls or self.config.catalog_urls)
        for url in urls:
            try:
                html = await self.fetch(url)
            except FetchError as e:
                logger.warning(f"Catalog candidate {url} failed: {e}")
                continue
            records = extract(html)
            if records:
                logger.info(f"Catalog candidate {url} yielded {len(records)} records.")
                return url, html, records
            logger.info(f"Catalog candidate {url} yielded no records.")
        raise FetchError(f"No catalog URL yielded records (tried {len(urls)}: {', '.join(urls)})")

