"""
Base source adapter.

All source-specific adapters inherit from BaseSourceAdapter. An adapter
fetches and parses one source into raw key/value records and must fail its
own call promptly, with FormatChangeError, when the source's shape no longer
matches what it expects.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import httpx
from loguru import logger

from aggregator.config import SOURCE_CONFIG, settings
from aggregator.errors import FormatChangeError
from aggregator.mapping.mapper import MISSING, get_path
from aggregator.mapping.rules import SourceMapping
from aggregator.models import DataSourceReference, DataSourceType, RawRecord, ReliabilityTier
from aggregator.utils.http import make_client


class BaseSourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses must implement:
    - fetch_records(): Download and parse the source into raw dicts

    and declare ``mapping`` describing how those dicts become drafts.
    """

    # Class attributes to be set by subclasses
    source_id: str = None               # e.g., "gov_uk_api"
    source_name: str = None             # e.g., "GOV.UK"
    source_type: DataSourceType = DataSourceType.OTHER
    tier: ReliabilityTier = ReliabilityTier.OFFICIAL_SCRAPE
    host: str = None                    # external host, for per-host scheduling
    url: str = None
    mapping: SourceMapping = None

    # Structural expectations
    min_expected_records: int = 1
    expected_fields: tuple[str, ...] = ()

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        """
        Initialize the adapter.

        Args:
            http_client: Optional shared HTTP client
        """
        if self.source_id is None:
            raise ValueError("source_id must be set in subclass")
        if self.mapping is None:
            raise ValueError(f"{type(self).__name__} must declare a field mapping")

        self.source_info = SOURCE_CONFIG.get(self.source_id, {})
        self.source_name = self.source_name or self.source_info.get("name", self.source_id)
        self.host = self.host or self.source_info.get("host", self.source_id)
        self.url = self.url or self.source_info.get("url")

        self._http_client = http_client
        self._owns_client = http_client is None

        logger.debug(f"Initialized {self.source_name} adapter")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = make_client(settings.pipeline.http_timeout)
            self._owns_client = True
        return self._http_client

    @property
    def confidence(self) -> float:
        return self.tier.confidence

    @abstractmethod
    async def fetch_records(self) -> list[dict[str, Any]]:
        """
        Download and parse the source.

        Returns:
            Source-shaped records

        Raises:
            NetworkError, RateLimitError: Transient failures
            FormatChangeError: The response no longer has the expected shape
        """
        pass

    async def fetch(self) -> list[RawRecord]:
        """Fetch, structurally validate and tag the source's records."""
        logger.info(f"Fetching {self.source_name}")
        records = await self.fetch_records()
        self.validate_shape(records)
        logger.info(f"{self.source_name}: fetched {len(records):,} records")
        return [RawRecord(source_id=self.source_id, data=record) for record in records]

    def validate_shape(self, records: list[Any]) -> None:
        """
        Fail fast on structural anomalies.

        Raises:
            FormatChangeError: Too few records, non-object records, or an
                expected field absent from every record
        """
        if len(records) < self.min_expected_records:
            raise FormatChangeError(
                f"{self.source_name}: got {len(records)} records, "
                f"expected at least {self.min_expected_records}",
                self.source_id,
            )

        if any(not isinstance(record, Mapping) for record in records):
            raise FormatChangeError(f"{self.source_name}: records are not key/value objects", self.source_id)

        missing = [
            field_name for field_name in self.expected_fields
            if all(get_path(record, field_name) is MISSING for record in records)
        ]
        if missing:
            raise FormatChangeError(
                f"{self.source_name}: expected fields missing: {', '.join(missing)}",
                self.source_id,
            )

    def reference_for(self, raw: RawRecord, retrieved_at: datetime) -> DataSourceReference:
        """Provenance for a record; the mapper fills the native id and URL."""
        return DataSourceReference(
            source=self.source_type,
            retrieved_at=retrieved_at,
            confidence=self.confidence,
        )
