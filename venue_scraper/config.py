from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import Field, AliasChoices, HttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MongoDBSettings(BaseSettings):
    """MongoDB connection settings for the result sink."""
    uri: str = Field("mongodb://localhost:27017/", validation_alias=AliasChoices('MONGODB_URI', 'MONGO_URI'))
    database: str = Field("venue_scraper", validation_alias=AliasChoices('MONGODB_DATABASE', 'MONGO_DATABASE'))
    collection: str = Field("vendors", validation_alias=AliasChoices('MONGODB_COLLECTION', 'MONGO_COLLECTION'))
    server_selection_timeout_ms: int = Field(10000, description="pymongo serverSelectionTimeoutMS.")

    model_config = SettingsConfigDict(
        env_prefix='MONGODB_',
        extra='ignore',
        populate_by_name=True
    )


class LoggingSettings(BaseSettings):
    """Where and whether log files are written."""
    log_output_directory: Path = Field(Path("scraper_logs"), validation_alias=AliasChoices('LOGGING_LOG_OUTPUT_DIRECTORY', 'LOG_OUTPUT_DIRECTORY'))
    enable_file_logging: bool = Field(True, validation_alias=AliasChoices('LOGGING_ENABLE_FILE_LOGGING', 'ENABLE_FILE_LOGGING'))

    model_config = SettingsConfigDict(
        env_prefix='LOGGING_',
        extra='ignore',
        populate_by_name=True
    )


class SentrySettings(BaseSettings):
    """Configuration for Sentry error tracking."""
    dsn: Optional[HttpUrl] = Field(None, validation_alias=AliasChoices('SENTRY_DSN'))
    environment: Optional[str] = Field(None, description="Overrides the app environment for Sentry if set.")
    traces_sample_rate: float = Field(0.0, ge=0.0, le=1.0, description="Sentry performance monitoring traces sample rate.")

    model_config = SettingsConfigDict(
        env_prefix='SENTRY_',
        extra='ignore',
        populate_by_name=True
    )


DEFAULT_CATALOG_URLS = [
    "https://www.theknot.com/marketplace/wedding-reception-venues",
    "https://www.theknot.com/marketplace/wedding-venues",
]


class ScrapeSettings(BaseSettings):
    """
    Every delay, cap and timeout used by the scraping pipeline.

    One instance is handed to the batch scheduler and everything below it;
    nothing in the pipeline reads module-level settings.
    """
    per_region_cap: int = Field(20, ge=1, description="Max records kept per region.")
    max_pages_per_region: int = Field(3, ge=1, description="Max listing pages visited per region.")
    max_regions_per_call: int = Field(10, ge=1, description="Upper bound on regions per batch invocation.")
    navigation_timeout_ms: int = Field(30000, ge=1, description="Render Agent page load timeout.")
    pre_nav_delay_range: Tuple[float, float] = Field((1.0, 3.0), description="Random delay (s) before each navigation.")
    post_nav_delay_range: Tuple[float, float] = Field((1.0, 3.0), description="Random delay (s) after each navigation.")
    pagination_settle_delay_s: float = Field(3.0, ge=0.0, description="Wait after clicking a 'next' control.")
    inter_region_delay_range: Tuple[float, float] = Field((2.0, 5.0), description="Random delay (s) between regions.")
    batch_deadline_ms: int = Field(240000, ge=1, description="Wall-clock limit of one batch, checked at region boundaries.")
    fetch_timeout_s: float = Field(30.0, gt=0.0, description="Fallback Fetcher hard timeout.")
    fetch_retry_total: int = Field(2, ge=0, description="urllib3 Retry total for the Fallback Fetcher.")
    headless: bool = True

    region_url_template: str = "https://www.theknot.com/marketplace/wedding-reception-venues/{slug}"
    catalog_urls: List[str] = Field(default_factory=lambda: list(DEFAULT_CATALOG_URLS))
    site_base_url: str = "https://www.theknot.com"
    source_tag: str = "theknot"

    enrich_profiles: bool = False
    max_profiles_per_region: int = Field(5, ge=0)
    sink_batch_size: int = Field(50, ge=1)

    model_config = SettingsConfigDict(
        env_prefix='SCRAPE_',
        extra='ignore',
        populate_by_name=True
    )

    @field_validator("pre_nav_delay_range", "post_nav_delay_range", "inter_region_delay_range")
    @classmethod
    def _check_delay_range(cls, value: Tuple[float, float]) -> Tuple[float, float]:
        low, high = value
        if low < 0 or high < low:
            raise ValueError(f"delay range must satisfy 0 <= low <= high, got {value}")
        return value

    @model_validator(mode="after")
    def _check_template(self) -> "ScrapeSettings":
        if "{slug}" not in self.region_url_template:
            raise ValueError("region_url_template must contain a '{slug}' placeholder")
        return self

    @property
    def batch_deadline_s(self) -> float:
        return self.batch_deadline_ms / 1000.0

    @classmethod
    def without_delays(cls, **overrides) -> "ScrapeSettings":
        """Settings with every random delay set to zero; used by tests and local debugging."""
        values = {
            "pre_nav_delay_range": (0.0, 0.0),
            "post_nav_delay_range": (0.0, 0.0),
            "inter_region_delay_range": (0.0, 0.0),
            "pagination_settle_delay_s": 0.0,
        }
        values.update(overrides)
        return cls(**values)


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field("development", validation_alias=AliasChoices('APP_ENV', 'ENVIRONMENT'))
    log_level: str = Field("INFO", validation_alias=AliasChoices('APP_LOG_LEVEL', 'LOG_LEVEL'))

    mongodb: MongoDBSettings = MongoDBSettings()
    logging: LoggingSettings = LoggingSettings()
    sentry: SentrySettings = SentrySettings()
    scrape: ScrapeSettings = ScrapeSettings()

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        env_nested_delimiter='__',
        extra='ignore',
        populate_by_name=True
    )


settings = Settings()
