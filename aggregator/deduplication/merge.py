"""
Field reconciliation for one merge cluster.

For every canonical field the populated value of the best-ranked draft wins:
highest confidence first, then earliest retrieval. Equally confident drafts
that disagree beyond formatting mark the field as conflicting, and the
conflicting source values are kept on the organisation for export.
"""

import hashlib
import json
from collections.abc import Sequence
from dataclasses import asdict, dataclass, replace
from typing import Any

from aggregator.models import (
    ConflictValue,
    DataConflict,
    DataQuality,
    Organisation,
    OrganisationDraft,
    OrganisationLocation,
    OrganisationStatus,
    OrganisationType,
)
from aggregator.quality import QualityScorer, is_populated
from aggregator.utils.text import matching_key, normalize_for_search, slugify

RECONCILED_FIELDS = (
    "name",
    "type",
    "status",
    "classification",
    "sub_type",
    "parent_organisation",
    "controlling_unit",
    "establishment_date",
    "dissolution_date",
    "location",
)

EMPTY_VALUES = {
    "type": OrganisationType.OTHER,
    "classification": "",
}


def fingerprint(payload: Any) -> str:
    """Stable content hash of any JSON-able structure."""
    text = json.dumps(payload, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def draft_fingerprint(draft: OrganisationDraft) -> str:
    return fingerprint(asdict(draft))


def rank_key(draft: OrganisationDraft) -> tuple:
    """Best first: confidence desc, retrieval asc, then content for total order."""
    return (
        -draft.confidence,
        draft.source.retrieved_at,
        draft.source.source.value,
        draft.source.source_id or "",
        draft_fingerprint(draft),
    )


def retrieval_key(draft: OrganisationDraft) -> tuple:
    """First-seen order of provenance."""
    return (
        draft.source.retrieved_at,
        draft.source.source.value,
        draft.source.source_id or "",
        -draft.confidence,
        draft_fingerprint(draft),
    )


def comparable(value: Any, field_name: str = "") -> Any:
    """Reduce a value to the form used to detect real disagreements."""
    if isinstance(value, (OrganisationType, OrganisationStatus)):
        return value.value
    if isinstance(value, OrganisationLocation):
        return tuple(normalize_for_search(part or "") for part in (value.address, value.region, value.country))
    if isinstance(value, str):
        # Names compare the way the matcher sees them
        return matching_key(value) if field_name == "name" else normalize_for_search(value)
    return value


@dataclass(frozen=True)
class FieldResolution:
    value: Any
    conflict: DataConflict | None = None


def resolve_field(ranked: Sequence[OrganisationDraft], field_name: str) -> FieldResolution:
    """Pick the winning value of one field from drafts sorted by ``rank_key``."""
    candidates = [draft for draft in ranked if is_populated(draft, field_name)]
    if not candidates:
        if field_name == "status":
            return FieldResolution(ranked[0].status)
        return FieldResolution(EMPTY_VALUES.get(field_name))

    winner = candidates[0]
    value = getattr(winner, field_name)
    expected = comparable(value, field_name)
    disagreeing = [
        draft for draft in candidates[1:]
        if draft.confidence == winner.confidence
        and comparable(getattr(draft, field_name), field_name) != expected
    ]
    if not disagreeing:
        return FieldResolution(value)

    conflict = DataConflict(
        field=field_name,
        values=tuple(ConflictValue(draft.source, getattr(draft, field_name)) for draft in (winner, *disagreeing)),
    )
    return FieldResolution(value, conflict)


def merge_alternative_names(by_retrieval: Sequence[OrganisationDraft], winning_name: str) -> tuple[str, ...]:
    """Union of alternative names plus differing draft names, first-seen order."""
    seen = {normalize_for_search(winning_name)}
    names = []
    for draft in by_retrieval:
        for name in (*draft.alternative_names, draft.name):
            key = normalize_for_search(name)
            if key and key not in seen:
                seen.add(key)
                names.append(name)
    return tuple(names)


def merge_additional_properties(ranked: Sequence[OrganisationDraft]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for draft in ranked:
        for key, value in draft.additional_properties.items():
            merged.setdefault(key, value)
    return merged


def organisation_id(name: str, primary: OrganisationDraft) -> str:
    """Deterministic id from the winning name and primary source."""
    reference = primary.source
    seed = f"{matching_key(name)}|{reference.source.value}|{reference.source_id or ''}"
    digest = hashlib.sha1(seed.encode("utf-8")).hexdigest()[:10]
    return f"{slugify(name)}-{digest}"


def merge_cluster(drafts: Sequence[OrganisationDraft], scorer: QualityScorer) -> Organisation:
    """Reduce one non-empty cluster of drafts to an organisation."""
    if not drafts:
        raise ValueError("Cannot merge an empty cluster")

    ranked = sorted(drafts, key=rank_key)
    by_retrieval = sorted(drafts, key=retrieval_key)

    values: dict[str, Any] = {}
    conflicts = []
    for field_name in RECONCILED_FIELDS:
        resolution = resolve_field(ranked, field_name)
        values[field_name] = resolution.value
        if resolution.conflict is not None:
            conflicts.append(resolution.conflict)

    organisation = Organisation(
        id=organisation_id(values["name"], ranked[0]),
        sources=tuple(draft.source for draft in by_retrieval),
        last_updated=max(draft.source.retrieved_at for draft in drafts),
        data_quality=DataQuality(completeness=0.0),
        alternative_names=merge_alternative_names(by_retrieval, values["name"]),
        additional_properties=merge_additional_properties(ranked),
        conflicts=tuple(conflicts),
        **values,
    )
    conflict_fields = [conflict.field for conflict in conflicts]
    return replace(organisation, data_quality=scorer.score(organisation, conflict_fields))


def organisation_fingerprint(organisation: Organisation) -> str:
    """Content hash ignoring the id, used to order id collisions."""
    payload = organisation.to_dict()
    payload.pop("id")
    return fingerprint(payload)
