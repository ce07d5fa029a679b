"""
Quality scoring for drafts and merged organisations.

Completeness is a weighted fraction of populated canonical fields. Weights
are fixed in ``aggregator.config.COMPLETENESS_WEIGHTS`` so scores are
comparable between runs.
"""

from collections.abc import Iterable
from typing import Any

from aggregator.config import COMPLETENESS_WEIGHTS, MIN_COMPLETENESS
from aggregator.models import DataQuality, Organisation, OrganisationDraft, OrganisationType

UNCLASSIFIED = frozenset({"", "unclassified", "unknown"})

REASON_LOW_COMPLETENESS = "Low data completeness"
REASON_MISSING_CLASSIFICATION = "Missing classification"


def is_populated(record: OrganisationDraft | Organisation, field_name: str) -> bool:
    """Whether a canonical field carries real information."""
    value: Any = getattr(record, field_name)
    if field_name == "type":
        return value is not None and value != OrganisationType.OTHER
    if field_name == "classification":
        return (value or "").strip().lower() not in UNCLASSIFIED
    if field_name == "location":
        return value is not None and value.is_populated
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (tuple, list)):
        return len(value) > 0
    return value is not None


class QualityScorer:
    """Computes ``DataQuality`` for a draft or organisation."""

    def __init__(self, min_completeness: float = MIN_COMPLETENESS):
        self.min_completeness = min_completeness
        self.weights = COMPLETENESS_WEIGHTS
        self.total_weight = sum(self.weights.values())

    def completeness(self, record: OrganisationDraft | Organisation) -> float:
        populated = sum(
            weight for field_name, weight in self.weights.items()
            if is_populated(record, field_name)
        )
        return round(populated / self.total_weight, 4)

    def score(
        self,
        record: OrganisationDraft | Organisation,
        conflict_fields: Iterable[str] = (),
    ) -> DataQuality:
        """
        Score a record, folding in merge conflicts when given.

        Args:
            record: Draft or merged organisation
            conflict_fields: Fields on which equally-confident sources disagreed

        Returns:
            DataQuality with review flags set
        """
        completeness = self.completeness(record)
        conflicts = frozenset(conflict_fields)
        requires_review = completeness < self.min_completeness or bool(conflicts)

        reasons = []
        if completeness < self.min_completeness:
            reasons.append(REASON_LOW_COMPLETENESS)
        if conflicts:
            reasons.append(f"Conflicting values for: {', '.join(sorted(conflicts))}")
        # Only explains a review already required
        if requires_review and not is_populated(record, "classification"):
            reasons.append(REASON_MISSING_CLASSIFICATION)

        return DataQuality(
            completeness=completeness,
            has_conflicts=bool(conflicts),
            conflict_fields=conflicts,
            requires_review=requires_review,
            review_reasons=tuple(reasons),
        )
