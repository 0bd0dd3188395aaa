"""
Pydantic data model for scraped venue listings, detail profiles and batch results.

Field names are snake_case in Python. ``to_persisted`` and the ``by_alias``
dump of ``BatchResponse`` produce the camelCase documents consumers expect.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from venue_scraper.data_quality.cleaning import clamp_rating

UNKNOWN = "Unknown"
DEFAULT_SPECIALTIES = ["Wedding Reception", "Ceremony", "Corporate Events"]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


class Region(BaseModel):
    """One geographic unit to scrape."""
    index: int = Field(..., ge=0, description="Position in the ordered region list.")
    name: str = Field(..., description="Display name, e.g. 'New Hampshire'.")
    slug: str = Field(..., description="URL slug, e.g. 'new-hampshire'.")
    code: str = Field(..., description="Two-letter postal code.")

    model_config = ConfigDict(frozen=True)


class Location(BaseModel):
    city: str = UNKNOWN
    state: str = UNKNOWN
    full: str = f"{UNKNOWN}, {UNKNOWN}"


class Pricing(BaseModel):
    min: int = 1000
    max: int = 5000
    currency: str = "USD"
    description: str = UNKNOWN


class Capacity(BaseModel):
    min: int = 0
    max: int = 0
    description: str = UNKNOWN


# --- Venue profile ---

class BasicInfo(BaseModel):
    name: str = ""
    tagline: str = ""
    description: str = ""
    address: str = ""
    neighborhood: str = ""
    business_type: str = ""
    languages: List[str] = Field(default_factory=list)


class ProfileCapacity(BaseModel):
    guest_range: str = ""
    max_capacity: int = 0


class AmenityFlags(BaseModel):
    ceremony_area: bool = False
    covered_outdoors_space: bool = False
    dressing_room: bool = False
    handicap_accessible: bool = False
    indoor_event_space: bool = False
    liability_insurance: bool = False
    outdoor_event_space: bool = False
    reception_area: bool = False
    wireless_internet: bool = False


class SettingFlags(BaseModel):
    ballroom: bool = False
    garden: bool = False
    historic_venue: bool = False
    industrial_warehouse: bool = False
    trees: bool = False


class ServiceOfferings(BaseModel):
    bar_and_drinks: bool = False
    bar_rental: bool = False
    cakes_and_desserts: bool = False
    cupcakes: bool = False
    other_desserts: bool = False
    catering: bool = False
    planning: bool = False
    spanish_speaking: bool = False
    design: bool = False
    rentals_and_equipment: bool = False
    tents: bool = False
    service_staff: bool = False
    transportation: bool = False
    shuttle_service: bool = False


class Services(BaseModel):
    ceremonies_and_receptions: bool = False
    ceremony_types: List[str] = Field(default_factory=list)


class Review(BaseModel):
    author: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    rating: float = 0.0
    date: str = ""
    highlighted: bool = False
    venue_response: str = ""

    @field_validator("rating")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_rating(value)


class ReviewSummary(BaseModel):
    overall_rating: float = 0.0
    total_reviews: int = 0
    rating_breakdown: Dict[str, float] = Field(default_factory=dict)
    ai_summary: str = ""
    sort_options: List[str] = Field(default_factory=list)
    individual_reviews: List[Review] = Field(default_factory=list, max_length=10)

    @field_validator("overall_rating")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_rating(value)


class ContactInfo(BaseModel):
    team_name: str = ""
    role: str = ""
    response_time: str = ""
    contact_form: bool = False
    phone: str = ""
    email: str = ""
    website: str = ""


class Awards(BaseModel):
    award_count: int = 0
    award_type: str = ""
    award_source: str = ""


class ProfilePricing(BaseModel):
    available: bool = False
    requires_contact: bool = False
    details: str = ""


class TeamInfo(BaseModel):
    name: str = ""
    role: str = ""
    description: str = ""
    message: str = ""


class Media(BaseModel):
    primary_image: str = ""
    portfolio: List[str] = Field(default_factory=list)
    review_photos: List[str] = Field(default_factory=list)


class ProfileMetadata(BaseModel):
    source_url: str = ""
    source: str = "theknot"
    scraped_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    page_type: str = "venue_profile"


class VenueProfile(BaseModel):
    """Extended structured detail for one venue, parsed from its detail page."""
    basic: BasicInfo = Field(default_factory=BasicInfo)
    capacity: ProfileCapacity = Field(default_factory=ProfileCapacity)
    amenities: AmenityFlags = Field(default_factory=AmenityFlags)
    settings: SettingFlags = Field(default_factory=SettingFlags)
    service_offerings: ServiceOfferings = Field(default_factory=ServiceOfferings)
    services: Services = Field(default_factory=Services)
    reviews: ReviewSummary = Field(default_factory=ReviewSummary)
    contact: ContactInfo = Field(default_factory=ContactInfo)
    awards: Awards = Field(default_factory=Awards)
    pricing: ProfilePricing = Field(default_factory=ProfilePricing)
    team: TeamInfo = Field(default_factory=TeamInfo)
    media: Media = Field(default_factory=Media)
    metadata: ProfileMetadata = Field(default_factory=ProfileMetadata)
    amenity_texts: List[str] = Field(default_factory=list, description="Raw amenity strings the flags were derived from.")

    def to_flat_fields(self) -> Dict[str, Any]:
        """Flattens the profile into the camelCase fields stored alongside a listing."""
        flat: Dict[str, Any] = {
            "tagline": self.basic.tagline,
            "address": self.basic.address,
            "neighborhood": self.basic.neighborhood,
            "businessType": self.basic.business_type,
            "languages": list(self.basic.languages),
            "detailedDescription": self.basic.description,
            "guestRange": self.capacity.guest_range,
            "maxCapacity": self.capacity.max_capacity,
        }
        for group in (self.amenities, self.settings, self.service_offerings):
            for field_name, value in group.model_dump().items():
                flat[_camel(field_name)] = value
        flat.update({
            "ceremoniesAndReceptions": self.services.ceremonies_and_receptions,
            "ceremonyTypes": list(self.services.ceremony_types),
            "reviews": {
                "overallRating": self.reviews.overall_rating,
                "totalReviews": self.reviews.total_reviews,
                "ratingBreakdown": dict(self.reviews.rating_breakdown),
                "aiSummary": self.reviews.ai_summary,
            },
            "individualReviews": [
                {_camel(k): v for k, v in review.model_dump().items()}
                for review in self.reviews.individual_reviews
            ],
            "teamName": self.contact.team_name or self.team.name,
            "teamRole": self.contact.role or self.team.role,
            "responseTime": self.contact.response_time,
            "contactForm": self.contact.contact_form,
            "contactPhone": self.contact.phone,
            "contactEmail": self.contact.email,
            "contactWebsite": self.contact.website,
            "awardCount": self.awards.award_count,
            "pricingAvailable": self.pricing.available,
            "pricingRequiresContact": self.pricing.requires_contact,
            "primaryImage": self.media.primary_image,
            "portfolio": list(self.media.portfolio),
            "reviewPhotos": list(self.media.review_photos),
            "sourceUrl": self.metadata.source_url,
            "scrapedAt": self.metadata.scraped_at.isoformat(),
        })
        return flat


# --- Listing record ---

class RawListingRecord(BaseModel):
    """One candidate venue scraped from a listing card."""
    name: str = Field(..., description="Venue name; never empty.")
    location: Location = Field(default_factory=Location)
    rating: float = Field(0.0, description="Star rating, clamped to 5.0.")
    review_count: int = Field(0, ge=0)
    url: str = Field("", description="Detail page URL.")
    url_synthesized: bool = Field(False, description="True when url was guessed from name and location.")
    image_url: str = ""
    source: str = "theknot"
    pricing: Pricing = Field(default_factory=Pricing)
    capacity: Capacity = Field(default_factory=Capacity)
    description: str = ""
    venue_type: str = "Event Venue"
    amenities: List[str] = Field(default_factory=list)
    specialties: List[str] = Field(default_factory=lambda: list(DEFAULT_SPECIALTIES))
    region: Optional[str] = None
    profile: Optional[VenueProfile] = None

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value

    @field_validator("rating")
    @classmethod
    def _clamp_rating(cls, value: float) -> float:
        return clamp_rating(value)

    def dedupe_key(self) -> str:
        full = self.location.full or "unknown"
        return f"{self.name.lower()}-{full.lower()}"

    def to_persisted(self) -> Dict[str, Any]:
        """The document handed to the result sink."""
        doc: Dict[str, Any] = {
            "name": self.name,
            "category": "venue",
            "location": self.location.model_dump(),
            "pricing": self.pricing.model_dump(),
            "rating": self.rating,
            "reviewCount": self.review_count,
            "description": self.description,
            "capacity": self.capacity.model_dump(),
            "venueType": self.venue_type,
            "amenities": list(self.amenities),
            "specialties": list(self.specialties),
            "source": self.source,
            "url": self.url,
            "urlSynthesized": self.url_synthesized,
            "imageUrl": self.image_url,
            "region": self.region,
        }
        if self.profile is not None:
            doc.update(self.profile.to_flat_fields())
            if not self.capacity.max and self.profile.capacity.max_capacity:
                doc["capacity"]["max"] = self.profile.capacity.max_capacity
            if not self.amenities and self.profile.amenity_texts:
                doc["amenities"] = list(self.profile.amenity_texts)
        return doc


# --- Batch results ---

class BatchOutcome(BaseModel):
    """What the batch scheduler hands back to the runner."""
    records: List[RawListingRecord] = Field(default_factory=list)
    start_index: int = 0
    next_start_index: int = 0
    total_regions: int = 0
    is_complete: bool = False
    regions_processed: int = 0
    pages_loaded: int = 0
    failed_regions: List[str] = Field(default_factory=list)
    deadline_hit: bool = False


class SubBatchReport(BaseModel):
    """Result of upserting one sub-batch into the result sink."""
    index: int
    attempted: int
    upserted: int = 0
    modified: int = 0
    error: Optional[str] = None

    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True)

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchInfo(BaseModel):
    current_batch: str
    next_start_index: Optional[int]
    is_complete: bool
    total_regions: int

    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True)


class BatchSummary(BaseModel):
    regions_processed: int
    records_per_region: int

    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True)


class BatchResponse(BaseModel):
    """Output of one batch invocation; dump with ``by_alias=True``."""
    success: bool
    venues_scraped: int
    batch_info: BatchInfo
    summary: BatchSummary
    error: Optional[str] = None
    sink: Optional[List[SubBatchReport]] = None

    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True)

    def to_output(self) -> Dict[str, Any]:
        # nextStartIndex stays as an explicit null; only the optional extras are dropped
        exclude = {name for name in ("error", "sink") if getattr(self, name) is None}
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)
