"""
Detail page parsing into a VenueProfile.

Every field has its own ordered list of strategies and the first non-empty
result wins, field by field. Amenity, setting and service flags are plain
keyword-presence tests over the collected amenity and setting texts.
"""
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from venue_scraper.config import ScrapeSettings
from venue_scraper.data_quality.cleaning import clamp_rating, clean_text, parse_first_float
from venue_scraper.errors import ProfileExtractionError
from venue_scraper.extraction.strategies import (
    Strategy,
    element_text,
    first_value,
    parse_html,
    select_text,
    select_texts,
    texts_for,
)
from venue_scraper.models import (
    AmenityFlags,
    Awards,
    BasicInfo,
    ContactInfo,
    Media,
    ProfileCapacity,
    ProfileMetadata,
    ProfilePricing,
    Review,
    ReviewSummary,
    ServiceOfferings,
    Services,
    SettingFlags,
    TeamInfo,
    VenueProfile,
)

logger = logging.getLogger(__name__)

MAX_REVIEWS = 10

PHONE_PATTERN = re.compile(r'\(?([0-9]{3})\)?[-. ]?([0-9]{3})[-. ]?([0-9]{4})')
EMAIL_PATTERN = re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')


def _selectors(*selectors: str) -> List[Strategy]:
    return [select_text(selector) for selector in selectors]


FIELD_STRATEGIES: Dict[str, List[Strategy]] = {
    "name": _selectors('h1', '[data-testid="vendor-name"]', '.vendor-name'),
    "tagline": _selectors('.tagline', '[data-testid="tagline"]', '.vendor-tagline'),
    "description": _selectors(
        '[data-testid="vendor-description"]', '.vendor-description', '.description',
        '.about-section', '.venue-description', '.vendor-about',
    ),
    "address": _selectors('address', '.address', '[data-testid="address"]', '.vendor-address'),
    "neighborhood": _selectors('.neighborhood', '[data-testid="neighborhood"]'),
    "business_type": _selectors('.business-type', '[data-testid="business-type"]'),
    "languages": [select_texts('.languages li'), select_texts('[data-testid="language"]')],
    "guest_range": _selectors('.capacity', '.guest-capacity', '[data-testid="capacity"]', '.guest-range'),
    "overall_rating": _selectors('.overall-rating', '.rating-summary', '[data-testid="rating"]', '.average-rating'),
    "ai_summary": _selectors('.ai-summary', '[data-testid="ai-summary"]', '.review-summary'),
    "sort_options": [select_texts('.sort-options option'), select_texts('.review-sort option')],
    "team_name": _selectors('.team-name', '[data-testid="team-name"]', '.team-member .name'),
    "team_role": _selectors('.team-role', '[data-testid="team-role"]', '.team-member .role'),
    "response_time": _selectors('.response-time', '[data-testid="response-time"]'),
    "team_description": _selectors('.team-description', '[data-testid="team-description"]'),
    "team_message": _selectors('.team-message', '[data-testid="team-message"]'),
    "awards": _selectors('.awards', '.award', '[data-testid="awards"]'),
    "award_type": _selectors('.award-type'),
    "award_source": _selectors('.award-source'),
    "pricing_details": _selectors('.pricing', '[data-testid="pricing"]', '.venue-pricing', '.rates'),
}

REVIEW_FIELD_STRATEGIES: Dict[str, List[Strategy]] = {
    "author": _selectors('.review-author', '.author', '[data-testid="review-author"]'),
    "rating": _selectors('.review-rating', '.rating'),
    "date": _selectors('.review-date', '.date', 'time'),
    "content": _selectors('.review-content', '.review-text', '[data-testid="review-content"]', 'p'),
    "venue_response": _selectors('.venue-response', '.vendor-response'),
}

AMENITY_SELECTORS = ['.amenities li', '.amenity-item', '[data-testid="amenity"]', '.feature-item', '.amenity']
SETTING_SELECTORS = ['.settings li', '.setting-item', '[data-testid="setting"]', '.venue-setting', '.style-item']
REVIEW_SELECTOR = '.review, .review-item, [data-testid="review"], .customer-review'
RATING_ROW_SELECTOR = '.rating-breakdown li, .rating-category'
REVIEW_PHOTO_SELECTOR = '.review-photo img, .review-image img'

AMENITY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "ceremony_area": ("ceremony area",),
    "covered_outdoors_space": ("covered outdoor",),
    "dressing_room": ("dressing room",),
    "handicap_accessible": ("handicap", "accessible"),
    "indoor_event_space": ("indoor",),
    "liability_insurance": ("liability insurance",),
    "outdoor_event_space": ("outdoor event",),
    "reception_area": ("reception area",),
    "wireless_internet": ("wireless", "wifi", "wi-fi"),
}

SETTING_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "ballroom": ("ballroom",),
    "garden": ("garden",),
    "historic_venue": ("historic",),
    "industrial_warehouse": ("industrial", "warehouse"),
    "trees": ("tree",),
}

SERVICE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "bar_and_drinks": ("bar", "drink"),
    "bar_rental": ("bar rental",),
    "cakes_and_desserts": ("cake", "dessert"),
    "cupcakes": ("cupcake",),
    "other_desserts": ("dessert",),
    "catering": ("catering", "food"),
    "planning": ("planning",),
    "spanish_speaking": ("español", "spanish"),
    "design": ("design",),
    "rentals_and_equipment": ("rental", "equipment"),
    "tents": ("tent",),
    "service_staff": ("staff", "service"),
    "transportation": ("transportation", "shuttle"),
    "shuttle_service": ("shuttle",),
}

CEREMONY_TYPE_KEYWORDS = ("ceremony", "civil union", "elopement")
PRICING_CONTACT_PHRASES = ("contact for pricing", "no pricing details")


def keyword_flags(texts: Sequence[str], keywords: Dict[str, Tuple[str, ...]]) -> Dict[str, bool]:
    """For each flag, True when any text contains any of its keywords (case-insensitive)."""
    lowered = [text.lower() for text in texts]
    return {
        flag: any(keyword in text for text in lowered for keyword in words)
        for flag, words in keywords.items()
    }


def parse_max_capacity(guest_range: str) -> int:
    """'Up to 200', '150+', '50 to 300' -> 200, 150, 300; anything else -> 0."""
    text = guest_range.lower()
    match = re.search(r'up to (\d+)', text) or re.search(r'(\d+)\+', text)
    if match:
        return int(match.group(1))
    match = re.search(r'(\d+)\s*to\s*(\d+)', text)
    if match:
        return int(match.group(2))
    return 0


class ProfileExtractor:
    """Parses a venue detail page. Apart from the scrape timestamp, output depends only on the HTML."""

    def __init__(self, config: Optional[ScrapeSettings] = None):
        config = config or ScrapeSettings()
        self.source_tag = config.source_tag
        self.site_host = urlparse(config.site_base_url).netloc.lower()

    def extract(self, html: str, source_url: str = "") -> VenueProfile:
        if not html or not html.strip():
            raise ProfileExtractionError(f"Empty document for profile {source_url or '<unknown>'}")
        soup = parse_html(html)

        amenity_texts = texts_for(soup, AMENITY_SELECTORS)
        setting_texts = texts_for(soup, SETTING_SELECTORS)
        page_text = clean_text(soup.get_text(" "))

        profile = VenueProfile(
            basic=self._basic(soup),
            capacity=self._capacity(soup),
            amenities=AmenityFlags(**keyword_flags(amenity_texts, AMENITY_KEYWORDS)),
            settings=SettingFlags(**keyword_flags(setting_texts, SETTING_KEYWORDS)),
            service_offerings=ServiceOfferings(**keyword_flags(amenity_texts, SERVICE_KEYWORDS)),
            services=self._services(amenity_texts),
            reviews=self._reviews(soup),
            contact=self._contact(soup, page_text),
            awards=self._awards(soup),
            pricing=self._pricing(soup, page_text),
            team=self._team(soup),
            media=self._media(soup),
            metadata=ProfileMetadata(source_url=source_url, source=self.source_tag),
            amenity_texts=amenity_texts,
        )
        logger.debug(
            f"Profile '{profile.basic.name}' parsed: {len(amenity_texts)} amenities, "
            f"{len(profile.reviews.individual_reviews)} reviews."
        )
        return profile

    @staticmethod
    def _field(soup, name: str, default=""):
        return first_value(soup, FIELD_STRATEGIES[name], default)

    def _basic(self, soup: BeautifulSoup) -> BasicInfo:
        return BasicInfo(
            name=self._field(soup, "name"),
            tagline=self._field(soup, "tagline"),
            description=self._field(soup, "description"),
            address=self._field(soup, "address"),
            neighborhood=self._field(soup, "neighborhood"),
            business_type=self._field(soup, "business_type"),
            languages=self._field(soup, "languages", []),
        )

    def _capacity(self, soup: BeautifulSoup) -> ProfileCapacity:
        guest_range = self._field(soup, "guest_range")
        return ProfileCapacity(guest_range=guest_range, max_capacity=parse_max_capacity(guest_range))

    @staticmethod
    def _services(amenity_texts: List[str]) -> Services:
        joined = " ".join(amenity_texts).lower()
        return Services(
            ceremonies_and_receptions="ceremony" in joined and "reception" in joined,
            ceremony_types=[
                text for text in amenity_texts
                if any(keyword in text.lower() for keyword in CEREMONY_TYPE_KEYWORDS)
            ],
        )

    def _reviews(self, soup: BeautifulSoup) -> ReviewSummary:
        summary_text = self._field(soup, "overall_rating")
        total = re.search(r'\((\d+)\)', summary_text) or re.search(r'(\d+)\s+reviews?', summary_text, re.IGNORECASE)

        breakdown: Dict[str, float] = {}
        for row in soup.select(RATING_ROW_SELECTOR):
            text = element_text(row)
            label = clean_text(re.sub(r'\d+(?:\.\d+)?', '', text)).strip(" :-")
            value = parse_first_float(text)
            if label and value is not None and label not in breakdown:
                breakdown[label] = value

        return ReviewSummary(
            overall_rating=clamp_rating(parse_first_float(summary_text)),
            total_reviews=int(total.group(1)) if total else 0,
            rating_breakdown=breakdown,
            ai_summary=self._field(soup, "ai_summary"),
            sort_options=self._field(soup, "sort_options", []),
            individual_reviews=self._individual_reviews(soup),
        )

    @staticmethod
    def _individual_reviews(soup: BeautifulSoup) -> List[Review]:
        reviews: List[Review] = []
        for element in soup.select(REVIEW_SELECTOR):
            if len(reviews) >= MAX_REVIEWS:
                break
            values = {name: first_value(element, strategies, "") for name, strategies in REVIEW_FIELD_STRATEGIES.items()}
            if not values["author"] or not values["content"]:
                continue
            reviews.append(Review(
                author=values["author"],
                content=values["content"],
                rating=clamp_rating(parse_first_float(values["rating"])),
                date=values["date"],
                highlighted=any("highlight" in cls for cls in element.get("class", [])),
                venue_response=values["venue_response"],
            ))
        return reviews

    def _contact(self, soup: BeautifulSoup, page_text: str) -> ContactInfo:
        phone = PHONE_PATTERN.search(page_text)
        email = EMAIL_PATTERN.search(page_text)
        return ContactInfo(
            team_name=self._field(soup, "team_name"),
            role=self._field(soup, "team_role"),
            response_time=self._field(soup, "response_time"),
            contact_form=soup.find("form") is not None,
            phone=phone.group(0) if phone else "",
            email=email.group(0) if email else "",
            website=self._external_website(soup),
        )

    def _external_website(self, soup: BeautifulSoup) -> str:
        for link in soup.select('a[href^="http"]'):
            href = link.get("href", "").strip()
            host = urlparse(href).netloc.lower()
            if host and not (host == self.site_host or host.endswith("." + self.site_host.removeprefix("www."))):
                return href
        return ""

    def _awards(self, soup: BeautifulSoup) -> Awards:
        count = re.search(r'(\d+)X', self._field(soup, "awards"))
        return Awards(
            award_count=int(count.group(1)) if count else 0,
            award_type=self._field(soup, "award_type"),
            award_source=self._field(soup, "award_source"),
        )

    def _pricing(self, soup: BeautifulSoup, page_text: str) -> ProfilePricing:
        details = self._field(soup, "pricing_details")
        lowered = page_text.lower()
        requires_contact = any(phrase in lowered for phrase in PRICING_CONTACT_PHRASES)
        return ProfilePricing(
            available=bool(details) and not requires_contact,
            requires_contact=requires_contact,
            details=details,
        )

    def _team(self, soup: BeautifulSoup) -> TeamInfo:
        return TeamInfo(
            name=self._field(soup, "team_name"),
            role=self._field(soup, "team_role"),
            description=self._field(soup, "team_description"),
            message=self._field(soup, "team_message"),
        )

    @staticmethod
    def _media(soup: BeautifulSoup) -> Media:
        sources: List[str] = []
        for img in soup.find_all("img"):
            src = (img.get("src") or img.get("data-src") or "").strip()
            if src and src not in sources:
                sources.append(src)

        review_photos = []
        for img in soup.select(REVIEW_PHOTO_SELECTOR):
            src = (img.get("src") or img.get("data-src") or "").strip()
            if src and src not in review_photos:
                review_photos.append(src)

        primary = sources[0] if sources else ""
        portfolio = [
            src for src in sources[1:]
            if src.startswith("http") and "logo" not in src.lower() and "icon" not in src.lower()
        ]
        return Media(primary_image=primary, portfolio=portfolio, review_photos=review_photos)
