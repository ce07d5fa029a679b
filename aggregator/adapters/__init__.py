"""
Source adapters.

Each adapter fetches one source and declares the field mapping for its
records. ADAPTERS maps source ids to adapter classes.
"""

from collections.abc import Iterable

from aggregator.adapters.base import BaseSourceAdapter
from aggregator.adapters.csv_source import CsvDownloadAdapter, OnsUnitaryAuthoritiesAdapter
from aggregator.adapters.govuk import GovUkOrganisationsAdapter
from aggregator.adapters.static import DevolvedAdministrationsAdapter
from aggregator.mapping.mapper import FieldMapper

# Registry of available adapters
ADAPTERS: dict[str, type[BaseSourceAdapter]] = {
    GovUkOrganisationsAdapter.source_id: GovUkOrganisationsAdapter,
    OnsUnitaryAuthoritiesAdapter.source_id: OnsUnitaryAuthoritiesAdapter,
    DevolvedAdministrationsAdapter.source_id: DevolvedAdministrationsAdapter,
}


def build_mapper(adapters: Iterable[BaseSourceAdapter]) -> FieldMapper:
    """Field mapper holding the mapping rules of the given adapters."""
    return FieldMapper({adapter.source_id: adapter.mapping for adapter in adapters})


__all__ = [
    "ADAPTERS",
    "BaseSourceAdapter",
    "CsvDownloadAdapter",
    "DevolvedAdministrationsAdapter",
    "GovUkOrganisationsAdapter",
    "OnsUnitaryAuthoritiesAdapter",
    "build_mapper",
]
