"""
Declarative field-mapping rules.

Each source adapter ships a ``SourceMapping`` describing how its raw records
translate to canonical draft fields. The mapper itself holds no
source-specific knowledge.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from aggregator.models import DataSourceType

# Canonical targets a rule may write to. Dotted targets address nested values.
CANONICAL_FIELDS = frozenset({
    "name",
    "type",
    "status",
    "classification",
    "sub_type",
    "alternative_names",
    "parent_organisation",
    "controlling_unit",
    "establishment_date",
    "dissolution_date",
    "location.address",
    "location.region",
    "location.country",
    # Provenance
    "source_id",
    "url",
})

# Targets that accumulate values from every matching rule
LIST_FIELDS = frozenset({"alternative_names"})


@dataclass(frozen=True)
class FieldRule:
    """Copy one source field (dotted path allowed) to one canonical field."""
    source_field: str
    target_field: str
    transformer: Callable[[Any], Any] | None = None

    def __post_init__(self):
        if self.target_field not in CANONICAL_FIELDS:
            raise ValueError(f"Unknown target field: {self.target_field}")


@dataclass(frozen=True)
class SourceMapping:
    """
    Field-mapping rules for one source.

    Rules are applied in order; for single-valued targets the first rule
    producing a value wins. ``defaults`` fill targets no rule populated.
    ``url_template`` may reference ``{source_id}``.
    """
    source: DataSourceType
    rules: tuple[FieldRule, ...]
    defaults: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))
    url_template: str | None = None

    def __post_init__(self):
        unknown = set(self.defaults) - CANONICAL_FIELDS
        if unknown:
            raise ValueError(f"Unknown default fields: {sorted(unknown)}")
        if not isinstance(self.defaults, MappingProxyType):
            object.__setattr__(self, "defaults", MappingProxyType(dict(self.defaults)))

    @property
    def consumed_paths(self) -> frozenset[str]:
        return frozenset(rule.source_field for rule in self.rules)
