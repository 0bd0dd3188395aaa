"""
Venue Listing Scraper

Discovers venue listings region by region, extracts structured records from
rendered or raw HTML, deduplicates them and upserts them into MongoDB.
"""
from .models import BatchResponse, RawListingRecord, Region, VenueProfile
from .pipeline.runner import run_scrape_batch, scrape_catalog, scrape_profile

__all__ = [
    "BatchResponse",
    "RawListingRecord",
    "Region",
    "VenueProfile",
    "run_scrape_batch",
    "scrape_catalog",
    "scrape_profile",
]
