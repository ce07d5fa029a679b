# SPDX-License-Identifier: MIT
"""Tests for quality scoring."""

from dataclasses import replace

import pytest

from aggregator.config import COMPLETENESS_WEIGHTS
from aggregator.models import OrganisationLocation, OrganisationType
from aggregator.quality import QualityScorer, is_populated


@pytest.fixture
def scorer():
    return QualityScorer()


class TestCompleteness:
    """Test weighted completeness."""

    def test_identity_fields_dominate(self, scorer, make_draft):
        """Name, type and status together outweigh every optional field."""
        identity = sum(COMPLETENESS_WEIGHTS[f] for f in ("name", "type", "status"))
        optional = sum(w for f, w in COMPLETENESS_WEIGHTS.items() if f not in ("name", "type", "status"))
        assert identity > optional

        draft = make_draft("Adur District Council", type="district_council")
        assert scorer.completeness(draft) == pytest.approx(identity / sum(COMPLETENESS_WEIGHTS.values()), abs=1e-4)

    def test_fully_populated(self, scorer, make_draft):
        """A draft with every field populated scores 1.0."""
        draft = make_draft(
            "Adur District Council",
            type="district_council",
            region="South East",
            classification="Non-metropolitan district",
            sub_type="shire district",
            alternative_names=("Adur Council",),
            parent_organisation="West Sussex County Council",
            controlling_unit="MHCLG",
            establishment_date="1974-04-01",
            dissolution_date="2026-04-01",
        )
        assert scorer.completeness(draft) == 1.0

    def test_fallback_values_unpopulated(self, make_draft):
        """The generic type and 'unclassified' count as absent."""
        draft = make_draft("X", type="other", classification="Unclassified")
        assert not is_populated(draft, "type")
        assert not is_populated(draft, "classification")
        assert not is_populated(replace(draft, location=OrganisationLocation()), "location")

    @pytest.mark.parametrize("field, value", [
        ("classification", "Local government"),
        ("sub_type", "metropolitan borough"),
        ("alternative_names", ("ABC",)),
        ("parent_organisation", "Parent"),
        ("controlling_unit", "Sponsor"),
        ("establishment_date", "1974-04-01"),
        ("dissolution_date", "2020-01-01"),
        ("location", OrganisationLocation(region="Wales")),
        ("type", OrganisationType.LOCAL_AUTHORITY),
    ])
    def test_monotonic(self, scorer, make_draft, field, value):
        """Adding a previously missing field never decreases completeness."""
        draft = make_draft("Some Council")
        assert scorer.completeness(replace(draft, **{field: value})) >= scorer.completeness(draft)


class TestReviewFlags:
    """Test review decisions."""

    def test_low_completeness_requires_review(self, scorer, make_draft):
        """Below 0.6 completeness the record needs review."""
        quality = scorer.score(make_draft("Mystery Body"))
        assert quality.completeness < 0.6
        assert quality.requires_review
        assert "Low data completeness" in quality.review_reasons

    def test_complete_without_conflicts(self, scorer, make_draft):
        """A complete enough, conflict-free record needs no review."""
        draft = make_draft("Adur District Council", type="district_council", classification="District", region="South East")
        quality = scorer.score(draft)
        assert quality.completeness >= 0.6
        assert not quality.requires_review
        assert not quality.has_conflicts

    def test_conflicts_require_review(self, scorer, make_draft):
        """Merge conflicts force review regardless of completeness."""
        draft = make_draft("Adur District Council", type="district_council", classification="District", region="South East")
        quality = scorer.score(draft, conflict_fields={"status"})
        assert quality.has_conflicts
        assert quality.conflict_fields == frozenset({"status"})
        assert quality.requires_review
        assert any("status" in reason for reason in quality.review_reasons)

    def test_missing_classification_only_explains_review(self, scorer, make_draft):
        """A missing classification is listed only when review is already required."""
        populated = make_draft("Adur District Council", type="district_council", region="South East")
        quality = scorer.score(populated)
        assert not quality.requires_review
        assert quality.review_reasons == ()

        sparse = scorer.score(make_draft("Mystery Body"))
        assert sparse.requires_review
        assert "Missing classification" in sparse.review_reasons
