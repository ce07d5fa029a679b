"""
Manually curated sources that need no network access.
"""

import copy
from typing import Any

from aggregator.adapters.base import BaseSourceAdapter
from aggregator.mapping.rules import FieldRule, SourceMapping
from aggregator.mapping.transformers import parse_date, split_names
from aggregator.models import DataSourceType, OrganisationType, ReliabilityTier

DEVOLVED_ADMINISTRATIONS: tuple[dict[str, Any], ...] = (
    {
        "id": "scottish-government",
        "name": "Scottish Government",
        "type": OrganisationType.DEVOLVED_ADMINISTRATION.value,
        "nation": "Scotland",
        "established": "1999-07-01",
        "website": "https://www.gov.scot",
        "alternativeNames": ["Riaghaltas na h-Alba", "Scottish Executive"],
    },
    {
        "id": "scottish-parliament",
        "name": "Scottish Parliament",
        "type": OrganisationType.LEGISLATIVE_BODY.value,
        "nation": "Scotland",
        "established": "1999-05-12",
        "website": "https://www.parliament.scot",
        "alternativeNames": ["Pàrlamaid na h-Alba"],
    },
    {
        "id": "welsh-government",
        "name": "Welsh Government",
        "type": OrganisationType.DEVOLVED_ADMINISTRATION.value,
        "nation": "Wales",
        "established": "2007-05-25",
        "website": "https://www.gov.wales",
        "alternativeNames": ["Llywodraeth Cymru"],
    },
    {
        "id": "senedd-cymru",
        "name": "Senedd Cymru",
        "type": OrganisationType.LEGISLATIVE_BODY.value,
        "nation": "Wales",
        "established": "1999-05-12",
        "website": "https://senedd.wales",
        "alternativeNames": ["Welsh Parliament", "National Assembly for Wales"],
    },
    {
        "id": "northern-ireland-executive",
        "name": "Northern Ireland Executive",
        "type": OrganisationType.DEVOLVED_ADMINISTRATION.value,
        "nation": "Northern Ireland",
        "established": "1999-12-02",
        "website": "https://www.northernireland.gov.uk",
    },
    {
        "id": "northern-ireland-assembly",
        "name": "Northern Ireland Assembly",
        "type": OrganisationType.LEGISLATIVE_BODY.value,
        "nation": "Northern Ireland",
        "established": "1998-06-25",
        "website": "https://www.niassembly.gov.uk",
    },
)

DEVOLVED_MAPPING = SourceMapping(
    source=DataSourceType.DEVOLVED,
    rules=(
        FieldRule("name", "name"),
        FieldRule("id", "source_id"),
        FieldRule("website", "url"),
        FieldRule("type", "type"),
        FieldRule("nation", "location.country"),
        FieldRule("established", "establishment_date", parse_date),
        FieldRule("alternativeNames", "alternative_names", split_names),
    ),
    defaults={
        "classification": "Devolved administration",
        "status": "active",
    },
)


class DevolvedAdministrationsAdapter(BaseSourceAdapter):
    """The devolved governments and legislatures of Scotland, Wales and Northern Ireland."""

    source_id = "devolved"
    source_name = "Devolved Administrations"
    source_type = DataSourceType.DEVOLVED
    tier = ReliabilityTier.REGISTRY
    mapping = DEVOLVED_MAPPING

    min_expected_records = len(DEVOLVED_ADMINISTRATIONS)
    expected_fields = ("name", "type", "nation")

    async def fetch_records(self) -> list[dict[str, Any]]:
        return copy.deepcopy(list(DEVOLVED_ADMINISTRATIONS))
