"""
Listing page parsing.

Three ordered strategies find candidate cards in a listing page: structured
data blocks, class-name heuristics and heading-text heuristics. The first
strategy that produces at least one valid record wins for the whole
document; results of different strategies are never merged.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from venue_scraper.config import ScrapeSettings
from venue_scraper.data_quality.cleaning import clean_text
from venue_scraper.extraction.strategies import parse_html
from venue_scraper.models import UNKNOWN, Capacity, Location, Pricing, RawListingRecord
from venue_scraper.regions import US_STATES
from venue_scraper.utils import slugify

logger = logging.getLogger(__name__)

CARD_SELECTORS = [
    '.info-container--37e68',
    '[class*="info-container"]',
    '[class*="vendor"]',
    '[data-testid="vendor-card"]',
    '.vendor-card',
    '.result-card',
    '.vendor-result',
    '.marketplace-vendor-card',
    '.vendor-result-card',
]

BOILERPLATE_PHRASES = ("Are you a vendor", "Start here")
MIN_CARD_TEXT_LENGTH = 20
MAX_RATING = 5.0

RATING_PATTERN = re.compile(r'(\d+\.?\d*)\s*\((\d+)\)')
NAME_PATTERN = re.compile(r'^([^0-9]+?)\s*\d+\.?\d*\s*\(\d+\)')
LOCATION_PATTERN = re.compile(r'([A-Z][a-z]+(?: [A-Z][a-z]+)*, [A-Z]{2})')
CAPACITY_PATTERN = re.compile(r'(Up to \d+ Guests|\d+\+ Guests)')
PRICING_PATTERN = re.compile(r'(\$\$+(?:\s*[–—-]\s*(?:Very )?[A-Z][a-z]+)?)')

VENUE_SCHEMA_TYPES = {
    "LocalBusiness", "EventVenue", "Place", "Organization", "WeddingVenue",
    "LodgingBusiness", "Hotel", "Restaurant", "Winery",
}

_STATE_CODES = {region.name.lower(): region.code for region in US_STATES}


@dataclass(frozen=True)
class Card:
    """One candidate listing element reduced to the parts the parser needs."""
    text: str
    href: Optional[str] = None
    image: Optional[str] = None
    name_hint: Optional[str] = None
    # built from structured data rather than page text; exempt from the length rule
    structured: bool = False


# --- Card discovery strategies ---

def _rating_count(text: str) -> int:
    return len(RATING_PATTERN.findall(text))


def _card_text(element: Tag) -> str:
    # textContent semantics: adjacent inline nodes are joined without separators
    return clean_text(element.get_text())


def _usable_href(href: Optional[str]) -> Optional[str]:
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith("#") or href.lower().startswith("javascript:"):
        return None
    return href


def _find_link(element: Tag) -> Optional[str]:
    if element.name == "a" and "/marketplace/" in (element.get("href") or ""):
        return _usable_href(element.get("href"))
    link = element.select_one('a[href*="/marketplace/"]')
    if link is not None:
        return _usable_href(link.get("href"))
    if element.name == "a":
        return _usable_href(element.get("href"))
    for link in element.select("a[href]"):
        href = _usable_href(link.get("href"))
        if href:
            return href
    return None


def _find_image(element: Tag) -> Optional[str]:
    img = element if element.name == "img" else element.find("img")
    if img is None:
        return None
    return (img.get("src") or img.get("data-src") or "").strip() or None


def _element_card(element: Tag, name_hint: Optional[str] = None) -> Card:
    return Card(
        text=_card_text(element),
        href=_find_link(element),
        image=_find_image(element),
        name_hint=name_hint,
    )


def _innermost_valid_cards(elements: Iterable[Tag]) -> List[Tag]:
    """
    Keeps elements whose text passes the listing check and holds exactly one
    rating, then drops any of those that contains another one. A wrapper
    around a single card loses to the card itself.
    """
    valid = []
    for el in elements:
        text = _card_text(el)
        if is_listing_text(text) and _rating_count(text) == 1:
            valid.append(el)
    valid_ids = {id(el) for el in valid}
    containers = set()
    for el in valid:
        for parent in el.parents:
            if id(parent) in valid_ids:
                containers.add(id(parent))
    return [el for el in valid if id(el) not in containers]


def cards_from_class_heuristics(soup: BeautifulSoup) -> List[Card]:
    matched = soup.select(", ".join(CARD_SELECTORS))
    return [_element_card(el) for el in _innermost_valid_cards(matched)]


def cards_from_headings(soup: BeautifulSoup, max_depth: int = 6) -> List[Card]:
    cards: List[Card] = []
    seen = set()
    for heading in soup.find_all(["h2", "h3"]):
        heading_text = clean_text(heading.get_text(" "))
        if not heading_text:
            continue
        container = None
        node = heading
        for _ in range(max_depth):
            count = _rating_count(_card_text(node))
            if count == 1:
                container = node
                break
            if count > 1 or node.parent is None:
                break
            node = node.parent
        if container is None or id(container) in seen:
            continue
        seen.add(id(container))
        # a heading that already carries the rating is parsed like any card text
        hint = None if RATING_PATTERN.search(heading_text) else heading_text
        cards.append(_element_card(container, name_hint=hint))
    return cards


def _iter_json_ld_items(data: Any) -> Iterable[Dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _iter_json_ld_items(item)
        return
    if not isinstance(data, dict):
        return
    if "@graph" in data:
        yield from _iter_json_ld_items(data["@graph"])
    types = data.get("@type")
    types = types if isinstance(types, list) else [types]
    if "ItemList" in types:
        for element in data.get("itemListElement") or []:
            if isinstance(element, dict) and isinstance(element.get("item"), dict):
                yield from _iter_json_ld_items(element["item"])
            else:
                yield from _iter_json_ld_items(element)
        return
    if VENUE_SCHEMA_TYPES.intersection(t for t in types if isinstance(t, str)):
        yield data


def _json_ld_location(address: Any) -> str:
    if isinstance(address, list) and address:
        address = address[0]
    if isinstance(address, str):
        return address
    if not isinstance(address, dict):
        return ""
    city = (address.get("addressLocality") or "").strip()
    region = (address.get("addressRegion") or "").strip()
    if len(region) > 2:
        region = _STATE_CODES.get(region.lower(), region)
    if city and region:
        return f"{city}, {region.upper()}"
    return city


def _json_ld_image(image: Any) -> Optional[str]:
    if isinstance(image, list):
        image = image[0] if image else None
    if isinstance(image, dict):
        image = image.get("url")
    return image if isinstance(image, str) and image else None


def cards_from_structured_data(soup: BeautifulSoup) -> List[Card]:
    cards: List[Card] = []
    for script in soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed JSON-LD block.")
            continue
        for item in _iter_json_ld_items(data):
            name = clean_text(item.get("name"))
            rating = item.get("aggregateRating") or {}
            if not name or not isinstance(rating, dict):
                continue
            value = rating.get("ratingValue")
            count = rating.get("reviewCount", rating.get("ratingCount"))
            if value is None or count is None:
                continue
            text = f"{name} {value}({count}) {_json_ld_location(item.get('address'))}".strip()
            cards.append(Card(
                text=text,
                href=_usable_href(item.get("url") if isinstance(item.get("url"), str) else None),
                image=_json_ld_image(item.get("image")),
                name_hint=name,
                structured=True,
            ))
    return cards


CardStrategy = Tuple[str, Callable[[BeautifulSoup], List[Card]]]

LISTING_STRATEGIES: Sequence[CardStrategy] = (
    ("structured_data", cards_from_structured_data),
    ("class_heuristics", cards_from_class_heuristics),
    ("heading_heuristics", cards_from_headings),
)


# --- Card parsing ---

def is_listing_text(text: str, min_length: int = MIN_CARD_TEXT_LENGTH) -> bool:
    """The minimal validity check every candidate card must pass."""
    if len(text) < min_length:
        return False
    if any(phrase in text for phrase in BOILERPLATE_PHRASES):
        return False
    return RATING_PATTERN.search(text) is not None


def parse_rating(text: str) -> Tuple[float, int]:
    match = RATING_PATTERN.search(text)
    if not match:
        return 0.0, 0
    rating = float(match.group(1))
    if rating > MAX_RATING:
        logger.debug(f"Clamping parsed rating {rating} to {MAX_RATING}")
        rating = MAX_RATING
    return rating, int(match.group(2))


def parse_location(text: str) -> Location:
    rating_match = RATING_PATTERN.search(text)
    tail = text[rating_match.end():] if rating_match else ""
    match = LOCATION_PATTERN.search(tail) or LOCATION_PATTERN.search(text)
    if not match:
        return Location()
    full = match.group(1)
    city, state = [part.strip() for part in full.split(", ", 1)]
    return Location(city=city, state=state, full=full)


def parse_capacity(text: str) -> Capacity:
    match = CAPACITY_PATTERN.search(text)
    if not match:
        return Capacity()
    description = match.group(1)
    number = re.search(r'\d+', description)
    return Capacity(max=int(number.group(0)) if number else 0, description=description)


def parse_pricing(text: str) -> Pricing:
    match = PRICING_PATTERN.search(text)
    return Pricing(description=match.group(1).strip()) if match else Pricing()


def describe(location: Location, capacity: Capacity, pricing: Pricing) -> str:
    """Short description for cards that carry no free text of their own."""
    description = f"Beautiful venue in {location.full}"
    if capacity.description != UNKNOWN:
        description += f", {capacity.description}"
    if pricing.description != UNKNOWN:
        description += f" ({pricing.description})"
    return description


class ListingExtractor:
    """Turns listing page HTML into RawListingRecords. Deterministic for a given input."""

    def __init__(self, config: Optional[ScrapeSettings] = None, strategies: Sequence[CardStrategy] = LISTING_STRATEGIES):
        config = config or ScrapeSettings()
        self.site_base_url = config.site_base_url.rstrip("/")
        self.source_tag = config.source_tag
        self.strategies = strategies

    def extract(self, html: str) -> List[RawListingRecord]:
        if not html or not html.strip():
            return []
        soup = parse_html(html)
        for name, find_cards in self.strategies:
            cards = find_cards(soup)
            records = [record for record in (self.parse_card(card) for card in cards) if record is not None]
            if records:
                logger.debug(f"Strategy '{name}' produced {len(records)} records from {len(cards)} candidates.")
                return records
        logger.debug("No listing strategy produced records for this document.")
        return []

    def parse_card(self, card: Card) -> Optional[RawListingRecord]:
        text = card.text
        if not is_listing_text(text, min_length=0 if card.structured else MIN_CARD_TEXT_LENGTH):
            return None

        name = clean_text(card.name_hint)
        if not name:
            match = NAME_PATTERN.match(text)
            name = match.group(1).strip() if match else ""
        if not name:
            return None

        rating, review_count = parse_rating(text)
        location = parse_location(text)
        capacity = parse_capacity(text)
        pricing = parse_pricing(text)
        url, synthesized = self.detail_url(card.href, name, location)

        return RawListingRecord(
            name=name,
            location=location,
            rating=rating,
            review_count=review_count,
            url=url,
            url_synthesized=synthesized,
            image_url=card.image or "",
            source=self.source_tag,
            pricing=pricing,
            capacity=capacity,
            description=describe(location, capacity, pricing),
        )

    def detail_url(self, href: Optional[str], name: str, location: Location) -> Tuple[str, bool]:
        """Absolute detail URL from href, or a slug-based guess flagged as synthesized."""
        if href:
            return urljoin(self.site_base_url + "/", href), False
        parts = [name] + [part for part in (location.city, location.state) if part and part != UNKNOWN]
        return f"{self.site_base_url}/marketplace/{slugify(' '.join(parts))}", True
