"""
Browser fingerprint pool shared by the Render Agent and the Fallback Fetcher,
so both retrieval paths present the same kind of client.
"""
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

MODERN_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:126.0) Gecko/20100101 Firefox/126.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.5 Safari/605.1.15",
]

COMMON_RESOLUTIONS: List[Tuple[int, int]] = [
    (1920, 1080), (1366, 768), (1440, 900), (1536, 864),
    (2560, 1440), (1280, 720), (1600, 900),
]

ACCEPT_LANGUAGES = ["en-US,en;q=0.9", "en-US,en;q=0.8", "en-US,en;q=0.5"]

US_TIMEZONES = ["America/New_York", "America/Chicago", "America/Denver", "America/Los_Angeles"]


@dataclass
class Fingerprint:
    user_agent: str
    viewport: Dict[str, int]
    headers: Dict[str, str]
    locale: str = "en-US"
    timezone_id: str = "America/New_York"


class FingerprintPool:
    """Draws user agent, viewport and header combinations from fixed pools."""

    def __init__(self, user_agents: Optional[Sequence[str]] = None, rng: Optional[random.Random] = None):
        self.user_agents = list(user_agents) if user_agents else list(MODERN_USER_AGENTS)
        self._rng = rng or random.Random()
        self.current_user_agent: str = self._rng.choice(self.user_agents)

    def rotate_user_agent(self) -> str:
        """Picks a new user agent, different from the current one when the pool allows it."""
        new_ua = self._rng.choice(self.user_agents)
        if len(self.user_agents) > 1:
            while new_ua == self.current_user_agent:
                new_ua = self._rng.choice(self.user_agents)
        self.current_user_agent = new_ua
        return new_ua

    def random_viewport(self) -> Dict[str, int]:
        width, height = self._rng.choice(COMMON_RESOLUTIONS)
        width += self._rng.randint(-20, 20)
        height += self._rng.randint(-20, 20)
        return {"width": max(800, width), "height": max(600, height)}

    def random_headers(self, user_agent: Optional[str] = None) -> Dict[str, str]:
        """A browser-like request header set."""
        headers = {
            "User-Agent": user_agent or self.current_user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
            "Accept-Language": self._rng.choice(ACCEPT_LANGUAGES),
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": self._rng.choice(["none", "same-origin"]),
            "Sec-Fetch-User": "?1",
        }
        if self._rng.random() < 0.5:
            headers["Referer"] = f"https://{self._rng.choice(['www.google.com', 'www.bing.com', 'duckduckgo.com'])}/"
        return headers

    def next_fingerprint(self) -> Fingerprint:
        """Rotates the user agent and builds a complete fingerprint around it."""
        user_agent = self.rotate_user_agent()
        headers = self.random_headers(user_agent)
        return Fingerprint(
            user_agent=user_agent,
            viewport=self.random_viewport(),
            headers=headers,
            locale=headers["Accept-Language"].split(",")[0],
            timezone_id=self._rng.choice(US_TIMEZONES),
        )
