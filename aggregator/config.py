"""
Configuration management for the UK public-sector organisation aggregator.

Uses pydantic-settings for type-safe configuration with environment variable support.
Lookup tables at the bottom of this module are immutable and loaded once per process.
"""

from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Optional, TypedDict

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineSettings(BaseSettings):
    """Aggregation pipeline settings."""

    model_config = SettingsConfigDict(
        env_prefix="AGGREGATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Files
    output_path: Path = Field(default=Path("./dist/orgs.json"))
    cache_dir: Path = Field(default=Path("./.cache"))
    cache_ttl_seconds: int = 3600  # 1 hour

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    # Scheduling
    max_concurrency: int = 4
    per_host_concurrency: int = 1
    deadline_seconds: Optional[float] = 900.0  # None or 0 = no deadline

    # HTTP settings
    http_timeout: int = 30  # seconds

    @field_validator("max_concurrency", "per_host_concurrency")
    @classmethod
    def at_least_one(cls, v):
        """Worker pools need at least one slot."""
        if v < 1:
            raise ValueError("concurrency limits must be >= 1")
        return v


class RetrySettings(BaseSettings):
    """Retry policy for source adapter calls."""

    model_config = SettingsConfigDict(
        env_prefix="AGGREGATOR_RETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    initial_delay: float = 1.0     # seconds
    multiplier: float = 2.0
    max_delay: float = 32.0        # seconds
    max_attempts: int = 5
    rate_limit_max_delay: float = 120.0  # cap for waits after a 429


class Settings(BaseSettings):
    """Main settings class that combines all settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Convenience function for quick access
settings = get_settings()


# =============================================================================
# Data quality constants
# =============================================================================

# Below this completeness a record is flagged for review
MIN_COMPLETENESS = 0.6

# Name similarity at or above which two drafts may denote the same body
SIMILARITY_THRESHOLD = 0.9

# Fixed completeness weights; identity fields dominate
COMPLETENESS_WEIGHTS = MappingProxyType({
    "name": 3.0,
    "type": 2.0,
    "status": 2.0,
    "classification": 1.0,
    "location": 1.0,
    "establishment_date": 0.5,
    "dissolution_date": 0.5,
    "alternative_names": 0.5,
    "parent_organisation": 0.5,
    "controlling_unit": 0.5,
    "sub_type": 0.5,
})

# Default confidence per reliability tier
TIER_CONFIDENCE = MappingProxyType({
    "registry": 1.0,            # direct API / registry
    "official_download": 0.9,   # structured official download
    "official_scrape": 0.8,     # HTML scrape of an official site
    "crowd_sourced": 0.6,       # wiki / crowd-sourced
})


# =============================================================================
# Data Source Configuration
# =============================================================================

class SourceConfigType(TypedDict, total=False):
    name: str
    description: str
    tier: str
    host: str
    url: str
    license: str


SOURCE_CONFIG: Mapping[str, SourceConfigType] = MappingProxyType({
    # Core government registers
    "gov_uk_api": {
        "name": "GOV.UK",
        "description": "GOV.UK organisations API",
        "tier": "registry",
        "host": "www.gov.uk",
        "url": "https://www.gov.uk/api/organisations",
        "license": "OGL v3.0",
    },
    "ons": {
        "name": "ONS Classification Guide",
        "description": "Public sector classification guide",
        "tier": "official_download",
        "host": "www.ons.gov.uk",
        "url": "https://www.ons.gov.uk/economy/nationalaccounts/uksectoraccounts/datasets/publicsectorclassificationguide",
        "license": "OGL v3.0",
    },
    "ons_unitary": {
        "name": "ONS Unitary Authorities",
        "description": "List of unitary authorities in England",
        "tier": "official_download",
        "host": "www.ons.gov.uk",
        "url": "https://www.ons.gov.uk/aboutus/transparencyandgovernance/freedomofinformationfoi/alistofunitaryauthoritiesinenglandwithageographicalmap",
        "license": "OGL v3.0",
    },
    "devolved": {
        "name": "Devolved Administrations",
        "description": "Manually curated list of devolved governments",
        "tier": "registry",
        "host": "local",
        "license": "OGL v3.0",
    },
    # Sector sources (labels used by the summary/report layer)
    "defra": {
        "name": "DEFRA UK-AIR",
        "description": "Local authority list from DEFRA UK-AIR",
        "tier": "official_scrape",
        "host": "uk-air.defra.gov.uk",
        "url": "https://uk-air.defra.gov.uk/links?view=la",
    },
    "gias": {
        "name": "Get Information About Schools",
        "tier": "official_download",
        "host": "get-information-schools.service.gov.uk",
    },
    "nhs": {
        "name": "NHS England Provider Directory",
        "tier": "official_scrape",
        "host": "www.england.nhs.uk",
    },
    "police": {
        "name": "Police.uk",
        "tier": "registry",
        "host": "data.police.uk",
    },
    "nfcc": {
        "name": "National Fire Chiefs Council",
        "tier": "official_scrape",
        "host": "nfcc.org.uk",
    },
    "national_parks": {
        "name": "National Parks UK",
        "tier": "official_scrape",
        "host": "www.nationalparks.uk",
    },
    "healthwatch": {
        "name": "Healthwatch England",
        "tier": "official_scrape",
        "host": "www.healthwatch.co.uk",
    },
    "courts": {
        "name": "GOV.UK Courts & Tribunals",
        "tier": "registry",
        "host": "courttribunalfinder.service.gov.uk",
    },
    "wikipedia": {
        "name": "Wikipedia",
        "tier": "crowd_sourced",
        "host": "en.wikipedia.org",
    },
})

# Source id -> human label, for reports and the viewer
SOURCE_LABELS = MappingProxyType({
    source_id: config["name"] for source_id, config in SOURCE_CONFIG.items()
})


def source_label(source_id: str) -> str:
    """Human label for a source id, falling back to the id itself."""
    return SOURCE_LABELS.get(source_id, source_id)
