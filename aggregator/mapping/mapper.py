"""
Field mapper: RawRecord + DataSourceReference -> OrganisationDraft.

Pure and deterministic. Everything the rules do not consume, and any raw
value a transformer rejects, is preserved under ``additional_properties``.
Nested objects that were only partly mapped contribute their remaining
leaves under dotted keys.
"""

from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from loguru import logger

from aggregator.errors import AggregatorError, ValidationError
from aggregator.mapping.rules import LIST_FIELDS, SourceMapping
from aggregator.mapping.transformers import infer_type_from_classification, map_status, parse_date, split_names
from aggregator.models import (
    DataSourceReference,
    OrganisationDraft,
    OrganisationLocation,
    OrganisationType,
    RawRecord,
)

MISSING = object()


def get_path(data: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path in nested mappings. Exact keys take precedence."""
    if path in data:
        return data[path]
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


def is_empty(value: Any) -> bool:
    if value is MISSING or value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def flatten(data: Mapping[str, Any], prefix: str = "") -> Iterable[tuple[str, Any]]:
    """Yield (dotted_key, leaf_value) pairs of a nested mapping."""
    for key, value in data.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping) and value:
            yield from flatten(value, dotted)
        else:
            yield dotted, value


def extract_unmapped(data: Mapping[str, Any], consumed: frozenset[str]) -> dict[str, Any]:
    """Everything in ``data`` not read by a rule, keyed top-level or dotted."""
    roots = {path.split(".", 1)[0] for path in consumed if path not in data}
    unmapped: dict[str, Any] = {}

    for key, value in data.items():
        if key in consumed or is_empty(value):
            continue
        if key in roots and isinstance(value, Mapping):
            for dotted, leaf in flatten(value, key):
                if dotted in consumed or is_empty(leaf):
                    continue
                if any(dotted.startswith(path + ".") for path in consumed):
                    continue
                unmapped[dotted] = leaf
        else:
            unmapped[key] = value

    return unmapped


class FieldMapper:
    """
    Applies source-specific mapping rules to raw records.

    Mappings are registered per adapter id (``RawRecord.source_id``).
    """

    def __init__(self, mappings: Mapping[str, SourceMapping] | None = None):
        self._mappings: dict[str, SourceMapping] = dict(mappings or {})

    def register(self, source_id: str, mapping: SourceMapping) -> None:
        self._mappings[source_id] = mapping

    def mapping_for(self, source_id: str) -> SourceMapping:
        try:
            return self._mappings[source_id]
        except KeyError:
            raise AggregatorError(f"No field mapping registered for source {source_id!r}") from None

    def map(self, raw: RawRecord, source: DataSourceReference) -> OrganisationDraft:
        """
        Build a draft from one raw record.

        Raises:
            ValidationError: When the record has no usable name
        """
        mapping = self.mapping_for(raw.source_id)
        values, untransformed = self._apply_rules(raw, mapping)

        name = values.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(
                f"Record from {raw.source_id} has no name",
                field="name",
                value=name,
            )

        source = self._with_provenance(source, values, mapping)
        classification = str(values.get("classification") or "").strip()
        org_type = OrganisationType.coerce(values.get("type"))
        if org_type is OrganisationType.OTHER:
            org_type = infer_type_from_classification(classification)

        location = OrganisationLocation(
            address=values.get("location.address"),
            region=values.get("location.region"),
            country=values.get("location.country"),
        )

        return OrganisationDraft(
            name=" ".join(name.split()),
            source=source,
            type=org_type,
            status=map_status(values.get("status")),
            classification=classification,
            sub_type=values.get("sub_type"),
            alternative_names=tuple(values.get("alternative_names", ())),
            parent_organisation=values.get("parent_organisation"),
            controlling_unit=values.get("controlling_unit"),
            establishment_date=parse_date(values.get("establishment_date")),
            dissolution_date=parse_date(values.get("dissolution_date")),
            location=location if location.is_populated else None,
            additional_properties={**extract_unmapped(raw.data, mapping.consumed_paths), **untransformed},
        )

    def _apply_rules(self, raw: RawRecord, mapping: SourceMapping) -> tuple[dict[str, Any], dict[str, Any]]:
        """
        Apply rules in order.

        Returns:
            (canonical values by target field, raw values whose transform failed
            keyed by their source path)
        """
        values: dict[str, Any] = {}
        untransformed: dict[str, Any] = {}

        for rule in mapping.rules:
            target = rule.target_field
            if target in values and target not in LIST_FIELDS:
                continue

            raw_value = get_path(raw.data, rule.source_field)
            if is_empty(raw_value):
                continue

            value = raw_value
            if rule.transformer is not None:
                try:
                    value = rule.transformer(raw_value)
                except Exception as e:
                    logger.debug(f"{raw.source_id}: cannot transform {rule.source_field}={raw_value!r}: {e}")
                    value = None
                if is_empty(value):
                    untransformed.setdefault(rule.source_field, raw_value)
                    continue

            if target in LIST_FIELDS:
                values.setdefault(target, [])
                for item in split_names(value) or ():
                    if item not in values[target]:
                        values[target].append(item)
            elif isinstance(value, str):
                values[target] = value.strip()
            else:
                values[target] = value

        for target, default in mapping.defaults.items():
            if target not in values and not is_empty(default):
                values[target] = list(default) if target in LIST_FIELDS else default

        return values, untransformed

    def _with_provenance(
        self,
        source: DataSourceReference,
        values: Mapping[str, Any],
        mapping: SourceMapping,
    ) -> DataSourceReference:
        """Fill the reference's native id and URL from the record when absent."""
        native_id = source.source_id
        if native_id is None and not is_empty(values.get("source_id")):
            native_id = str(values["source_id"])

        url = source.url
        if url is None and not is_empty(values.get("url")):
            url = str(values["url"])
        if url is None and mapping.url_template and native_id is not None:
            url = mapping.url_template.format(source_id=native_id)

        if native_id == source.source_id and url == source.url:
            return source
        return replace(source, source_id=native_id, url=url)
