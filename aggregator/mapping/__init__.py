"""Field mapping from source-shaped records to canonical drafts."""

from aggregator.mapping.mapper import FieldMapper
from aggregator.mapping.rules import CANONICAL_FIELDS, FieldRule, SourceMapping

__all__ = [
    "FieldMapper",
    "FieldRule",
    "SourceMapping",
    "CANONICAL_FIELDS",
]
