"""
Adapters for structured CSV downloads.

CsvDownloadAdapter handles the download and column checks; subclasses
declare which columns hold the name and how rows map to drafts.
"""

import csv
import io
import re
from typing import Any
from urllib.parse import urljoin

from aggregator.adapters.base import BaseSourceAdapter
from aggregator.errors import FormatChangeError
from aggregator.mapping.rules import FieldRule, SourceMapping
from aggregator.models import DataSourceType, OrganisationType, ReliabilityTier
from aggregator.utils.http import fetch_text

CSV_LINK_PATTERN = re.compile(r"""href=["']([^"']+\.csv[^"']*)["']""", re.IGNORECASE)


def parse_csv(text: str) -> tuple[list[str], list[dict[str, str]]]:
    """Parse CSV text into (header, rows). Blank rows are skipped."""
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    header = [column.strip() for column in reader.fieldnames or []]
    rows = []
    for row in reader:
        cleaned = {
            (key or "").strip(): value.strip() if isinstance(value, str) else value
            for key, value in row.items()
            if key
        }
        if any(cleaned.values()):
            rows.append(cleaned)
    return header, rows


class CsvDownloadAdapter(BaseSourceAdapter):
    """Base class for sources published as a single CSV file."""

    tier = ReliabilityTier.OFFICIAL_DOWNLOAD

    # At least one of these columns must hold the organisation name
    name_columns: tuple[str, ...] = ("Name",)
    required_columns: tuple[str, ...] = ()

    async def csv_url(self) -> str:
        """Location of the CSV file."""
        return self.url

    async def fetch_records(self) -> list[dict[str, Any]]:
        url = await self.csv_url()
        text = await fetch_text(self.http_client, url, self.source_id)
        header, rows = parse_csv(text)
        self.check_columns(header)
        return rows

    def check_columns(self, header: list[str]) -> None:
        missing = [column for column in self.required_columns if column not in header]
        if missing:
            raise FormatChangeError(
                f"{self.source_name}: CSV columns missing: {', '.join(missing)}",
                self.source_id,
            )
        if not any(column in header for column in self.name_columns):
            raise FormatChangeError(
                f"{self.source_name}: no name column among {', '.join(self.name_columns)}",
                self.source_id,
            )


ONS_UNITARY_MAPPING = SourceMapping(
    source=DataSourceType.ONS_UNITARY,
    rules=(
        FieldRule("Name", "name"),
        FieldRule("Unitary Authority", "name"),
        FieldRule("Local Authority", "name"),
        FieldRule("Authority", "name"),
        FieldRule("Code", "source_id"),
        FieldRule("ONS Code", "source_id"),
        FieldRule("LA Code", "source_id"),
    ),
    defaults={
        "type": OrganisationType.UNITARY_AUTHORITY,
        "classification": "Unitary authority",
        "status": "active",
        "location.country": "England",
    },
)


class OnsUnitaryAuthoritiesAdapter(CsvDownloadAdapter):
    """
    Unitary authorities in England, published by ONS.

    The CSV link is discovered on the landing page since its URL changes
    with each release.
    """

    source_id = "ons_unitary"
    source_name = "ONS Unitary Authorities"
    source_type = DataSourceType.ONS_UNITARY
    mapping = ONS_UNITARY_MAPPING

    name_columns = ("Name", "Unitary Authority", "Local Authority", "Authority")
    min_expected_records = 50

    async def csv_url(self) -> str:
        page = await fetch_text(self.http_client, self.url, self.source_id)
        match = CSV_LINK_PATTERN.search(page)
        if not match:
            raise FormatChangeError(f"{self.source_name}: no CSV link on {self.url}", self.source_id)
        return urljoin(self.url, match.group(1))
