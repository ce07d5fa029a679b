"""
Data models for the organisation aggregator.

Defines the canonical record shapes that flow through the pipeline:

    RawRecord -> OrganisationDraft -> (merge) -> Organisation

Drafts and organisations are immutable once built. Anything a source
provides that has no canonical field lives in ``additional_properties``
as opaque passthrough data.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from aggregator.config import TIER_CONFIDENCE


class OrganisationType(str, Enum):
    """Category of public-sector body. OTHER is the generic fallback."""
    MINISTERIAL_DEPARTMENT = "ministerial_department"
    GOVERNMENT_DEPARTMENT = "government_department"
    CENTRAL_GOVERNMENT = "central_government"
    EXECUTIVE_AGENCY = "executive_agency"
    NON_DEPARTMENTAL_PUBLIC_BODY = "non_departmental_public_body"
    EXECUTIVE_NDPB = "executive_ndpb"
    ADVISORY_NDPB = "advisory_ndpb"
    TRIBUNAL_NDPB = "tribunal_ndpb"
    PUBLIC_CORPORATION = "public_corporation"
    PUBLIC_BODY = "public_body"
    DEVOLVED_ADMINISTRATION = "devolved_administration"
    LEGISLATIVE_BODY = "legislative_body"
    JUDICIAL_BODY = "judicial_body"
    RESEARCH_COUNCIL = "research_council"
    # Local government
    LOCAL_AUTHORITY = "local_authority"
    UNITARY_AUTHORITY = "unitary_authority"
    DISTRICT_COUNCIL = "district_council"
    NATIONAL_PARK_AUTHORITY = "national_park_authority"
    WELSH_COMMUNITY_COUNCIL = "welsh_community_council"
    SCOTTISH_COMMUNITY_COUNCIL = "scottish_community_council"
    REGIONAL_TRANSPORT_PARTNERSHIP = "regional_transport_partnership"
    # Health
    NHS_TRUST = "nhs_trust"
    NHS_FOUNDATION_TRUST = "nhs_foundation_trust"
    HEALTH_BOARD = "health_board"
    INTEGRATED_CARE_BOARD = "integrated_care_board"
    NI_HEALTH_TRUST = "ni_health_trust"
    LOCAL_HEALTHWATCH = "local_healthwatch"
    # Education and emergency services
    ACADEMY_TRUST = "academy_trust"
    EDUCATIONAL_INSTITUTION = "educational_institution"
    EMERGENCY_SERVICE = "emergency_service"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Any) -> "OrganisationType":
        """Parse a free-text or enum value, falling back to OTHER."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.OTHER
        key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            return cls.OTHER


class OrganisationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISSOLVED = "dissolved"


class DataSourceType(str, Enum):
    """Enumerated source ids. New sources are added here, never as bare strings."""
    GOV_UK_API = "gov_uk_api"
    ONS = "ons"
    ONS_UNITARY = "ons_unitary"
    DEVOLVED = "devolved"
    DEFRA = "defra"
    GIAS = "gias"
    NHS = "nhs"
    POLICE = "police"
    NFCC = "nfcc"
    NATIONAL_PARKS = "national_parks"
    HEALTHWATCH = "healthwatch"
    COURTS = "courts"
    WIKIPEDIA = "wikipedia"
    MANUAL = "manual"
    OTHER = "other"


class ReliabilityTier(str, Enum):
    """How a source is obtained; seeds the default confidence of its drafts."""
    REGISTRY = "registry"
    OFFICIAL_DOWNLOAD = "official_download"
    OFFICIAL_SCRAPE = "official_scrape"
    CROWD_SOURCED = "crowd_sourced"

    @property
    def confidence(self) -> float:
        return TIER_CONFIDENCE[self.value]


@dataclass(frozen=True)
class RawRecord:
    """A source-shaped key/value bag tagged with the adapter that produced it."""
    source_id: str
    data: dict[str, Any]


@dataclass(frozen=True)
class DataSourceReference:
    """Provenance of one draft."""
    source: DataSourceType
    retrieved_at: datetime
    confidence: float
    source_id: str | None = None    # the source's native key
    url: str | None = None

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    def to_dict(self) -> dict[str, Any]:
        data = {
            "source": self.source.value,
            "retrievedAt": self.retrieved_at.isoformat(),
            "confidence": self.confidence,
        }
        if self.source_id is not None:
            data["sourceId"] = self.source_id
        if self.url is not None:
            data["url"] = self.url
        return data


@dataclass(frozen=True)
class OrganisationLocation:
    address: str | None = None
    region: str | None = None
    country: str | None = None

    @property
    def is_populated(self) -> bool:
        return any((self.address, self.region, self.country))

    def to_dict(self) -> dict[str, str]:
        return {
            key: value
            for key, value in (
                ("address", self.address),
                ("region", self.region),
                ("country", self.country),
            )
            if value
        }


@dataclass(frozen=True)
class OrganisationDraft:
    """One source's unreconciled view of one organisation."""
    name: str
    source: DataSourceReference
    type: OrganisationType = OrganisationType.OTHER
    status: OrganisationStatus = OrganisationStatus.ACTIVE
    classification: str = ""
    sub_type: str | None = None
    alternative_names: tuple[str, ...] = ()
    parent_organisation: str | None = None
    controlling_unit: str | None = None
    establishment_date: str | None = None   # ISO yyyy-mm-dd
    dissolution_date: str | None = None
    location: OrganisationLocation | None = None
    additional_properties: dict[str, Any] = field(default_factory=dict)

    @property
    def confidence(self) -> float:
        return self.source.confidence

    @property
    def region(self) -> str | None:
        return self.location.region if self.location else None


@dataclass(frozen=True)
class DataQuality:
    completeness: float
    has_conflicts: bool = False
    conflict_fields: frozenset[str] = frozenset()
    requires_review: bool = False
    review_reasons: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data = {
            "completeness": self.completeness,
            "hasConflicts": self.has_conflicts,
            "requiresReview": self.requires_review,
        }
        if self.conflict_fields:
            data["conflictFields"] = sorted(self.conflict_fields)
        if self.review_reasons:
            data["reviewReasons"] = list(self.review_reasons)
        return data


def plain_value(value: Any) -> Any:
    """JSON-friendly form of a canonical field value."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, OrganisationLocation):
        return value.to_dict()
    return value


@dataclass(frozen=True)
class ConflictValue:
    """What one source said about a conflicting field."""
    source: DataSourceReference
    value: Any

    def to_dict(self) -> dict[str, Any]:
        data = {
            "source": self.source.source.value,
            "retrievedAt": self.source.retrieved_at.isoformat(),
            "confidence": self.source.confidence,
            "value": plain_value(self.value),
        }
        if self.source.source_id is not None:
            data["sourceId"] = self.source.source_id
        return data


@dataclass(frozen=True)
class DataConflict:
    """
    Equally confident sources disagreeing on one field of a merged organisation.

    ``values`` starts with the value that was kept, followed by the
    disagreeing values in rank order.
    """
    field: str
    values: tuple[ConflictValue, ...]

    @property
    def kept(self) -> ConflictValue:
        return self.values[0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "resolvedValue": plain_value(self.kept.value),
            "values": [value.to_dict() for value in self.values],
        }


@dataclass(frozen=True)
class Organisation:
    """A reconciled, merged organisation. Terminal output of the pipeline."""
    id: str
    name: str
    type: OrganisationType
    status: OrganisationStatus
    sources: tuple[DataSourceReference, ...]
    last_updated: datetime
    data_quality: DataQuality
    classification: str = ""
    sub_type: str | None = None
    alternative_names: tuple[str, ...] = ()
    parent_organisation: str | None = None
    controlling_unit: str | None = None
    establishment_date: str | None = None
    dissolution_date: str | None = None
    location: OrganisationLocation | None = None
    additional_properties: dict[str, Any] = field(default_factory=dict)
    # Not part of the artifact; exported separately for reviewers
    conflicts: tuple[DataConflict, ...] = ()

    def __post_init__(self):
        if not self.sources:
            raise ValueError(f"Organisation {self.id!r} has no sources")

    @property
    def region(self) -> str | None:
        return self.location.region if self.location else None

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the camelCase shape of the published artifact."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "classification": self.classification,
            "status": self.status.value,
        }
        optional = {
            "subType": self.sub_type,
            "alternativeNames": list(self.alternative_names) or None,
            "parentOrganisation": self.parent_organisation,
            "controllingUnit": self.controlling_unit,
            "establishmentDate": self.establishment_date,
            "dissolutionDate": self.dissolution_date,
            "location": self.location.to_dict() if self.location and self.location.is_populated else None,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        data["sources"] = [ref.to_dict() for ref in self.sources]
        data["lastUpdated"] = self.last_updated.isoformat()
        data["dataQuality"] = self.data_quality.to_dict()
        if self.additional_properties:
            data["additionalProperties"] = dict(self.additional_properties)
        return data
