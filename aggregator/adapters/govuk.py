"""
GOV.UK organisations API adapter.

API: https://www.gov.uk/api/organisations
Paginated JSON; each page has ``results`` and an optional ``next_page_url``.
"""

from typing import Any
from urllib.parse import urljoin

from loguru import logger

from aggregator.adapters.base import BaseSourceAdapter
from aggregator.errors import FormatChangeError
from aggregator.mapping.rules import FieldRule, SourceMapping
from aggregator.mapping.transformers import map_govuk_type, map_locale, map_status, parse_date, split_names
from aggregator.models import DataSourceType, ReliabilityTier
from aggregator.utils.http import fetch_json

GOVUK_BASE_URL = "https://www.gov.uk"


def first_parent_slug(parents) -> str | None:
    """Slug of the first parent organisation, taken from its web URL."""
    if isinstance(parents, (str, dict)):
        parents = [parents]
    for parent in parents or ():
        if isinstance(parent, dict):
            web_url = parent.get("web_url") or parent.get("id") or ""
        elif isinstance(parent, str):
            # Some payloads list bare slugs or URLs
            web_url = parent
        else:
            continue
        slug = str(web_url).rstrip("/").rsplit("/", 1)[-1]
        if slug:
            return slug
    return None


GOVUK_MAPPING = SourceMapping(
    source=DataSourceType.GOV_UK_API,
    rules=(
        FieldRule("title", "name"),
        FieldRule("details.content_id", "source_id"),
        FieldRule("web_url", "url"),
        FieldRule("format", "type", map_govuk_type),
        FieldRule("format", "classification"),
        FieldRule("details.govuk_status", "status", map_status),
        FieldRule("details.abbreviation", "alternative_names", split_names),
        FieldRule("details.closed_at", "dissolution_date", parse_date),
        FieldRule("parent_organisations", "parent_organisation", first_parent_slug),
        FieldRule("locale", "location.country", map_locale),
    ),
    defaults={
        "status": "active",
        "location.country": "United Kingdom",
    },
)


class GovUkOrganisationsAdapter(BaseSourceAdapter):
    """Adapter for the GOV.UK organisations register."""

    source_id = "gov_uk_api"
    source_name = "GOV.UK"
    source_type = DataSourceType.GOV_UK_API
    tier = ReliabilityTier.REGISTRY
    mapping = GOVUK_MAPPING

    min_expected_records = 300
    expected_fields = ("title", "format")

    # Safety limit to prevent infinite pagination
    max_pages = 100

    async def fetch_records(self) -> list[dict[str, Any]]:
        records: list[dict[str, Any]] = []
        next_url: str | None = self.url
        pages = 0

        while next_url and pages < self.max_pages:
            page = await fetch_json(self.http_client, next_url, self.source_id)
            if not isinstance(page, dict) or not isinstance(page.get("results"), list):
                raise FormatChangeError(
                    f"GOV.UK page {pages + 1} has no 'results' list",
                    self.source_id,
                )

            records.extend(page["results"])
            pages += 1
            logger.debug(f"GOV.UK page {pages}: {len(page['results'])} orgs (total: {len(records)})")

            next_url = page.get("next_page_url")
            if next_url:
                next_url = urljoin(GOVUK_BASE_URL, next_url)

        if next_url:
            logger.warning(f"GOV.UK pagination stopped after {self.max_pages} pages")

        return records
