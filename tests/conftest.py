# SPDX-License-Identifier: MIT
"""Pytest configuration and fixtures for aggregator tests."""

import asyncio
import copy
import os
from datetime import datetime, timedelta, timezone

import pytest

# Set test environment variables before importing the package
os.environ.setdefault("DISABLE_LOGGING", "1")

from aggregator.adapters.base import BaseSourceAdapter  # noqa: E402
from aggregator.mapping.rules import FieldRule, SourceMapping  # noqa: E402
from aggregator.mapping.transformers import map_status  # noqa: E402
from aggregator.models import (  # noqa: E402
    DataSourceReference,
    DataSourceType,
    OrganisationDraft,
    OrganisationLocation,
    OrganisationStatus,
    OrganisationType,
    ReliabilityTier,
)

T0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

GENERIC_MAPPING = SourceMapping(
    source=DataSourceType.OTHER,
    rules=(
        FieldRule("name", "name"),
        FieldRule("id", "source_id"),
        FieldRule("type", "type"),
        FieldRule("status", "status", map_status),
        FieldRule("classification", "classification"),
        FieldRule("region", "location.region"),
    ),
)


class ScriptedAdapter(BaseSourceAdapter):
    """
    Adapter whose successive calls follow a script.

    Each outcome is either a list of raw record dicts or an exception to raise.
    The last outcome repeats once the script runs out.
    """

    mapping = GENERIC_MAPPING
    tier = ReliabilityTier.OFFICIAL_SCRAPE

    def __init__(self, source_id, outcomes, host=None, delay=0.0, tracker=None,
                 source_type=DataSourceType.OTHER):
        self.source_id = source_id
        self.host = host or f"{source_id}.example"
        self.source_type = source_type
        self.outcomes = list(outcomes)
        self.delay = delay
        self.tracker = tracker
        self.calls = 0
        super().__init__()

    async def fetch_records(self):
        self.calls += 1
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]

        if self.tracker is not None:
            self.tracker["active"] += 1
            self.tracker["peak"] = max(self.tracker["peak"], self.tracker["active"])
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            if self.tracker is not None:
                self.tracker["active"] -= 1

        if isinstance(outcome, BaseException):
            raise outcome
        return copy.deepcopy(outcome)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def make_draft():
    """Factory for drafts with sensible defaults."""

    def factory(
        name: str,
        type: str = "other",
        status: str = "active",
        source: str = "defra",
        confidence: float = 0.8,
        retrieved_at: datetime = T0,
        region: str | None = None,
        source_id: str | None = None,
        **fields,
    ) -> OrganisationDraft:
        return OrganisationDraft(
            name=name,
            type=OrganisationType(type),
            status=OrganisationStatus(status),
            source=DataSourceReference(
                source=DataSourceType(source),
                retrieved_at=retrieved_at,
                confidence=confidence,
                source_id=source_id,
            ),
            location=OrganisationLocation(region=region) if region else None,
            **fields,
        )

    return factory


@pytest.fixture
def make_adapter():
    """Factory for scripted adapters."""
    return ScriptedAdapter


@pytest.fixture
def hours():
    return lambda n: T0 + timedelta(hours=n)


@pytest.fixture
def record_sleep():
    """Awaitable sleep that records requested delays without waiting."""
    delays: list[float] = []

    async def sleep(delay: float) -> None:
        delays.append(delay)

    sleep.delays = delays
    return sleep
