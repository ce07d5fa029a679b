# SPDX-License-Identifier: MIT
"""Tests for field-mapping value transformers."""

import pytest

from aggregator.mapping.transformers import (
    infer_type_from_classification,
    map_govuk_type,
    map_locale,
    map_status,
    parse_date,
    split_names,
)
from aggregator.models import OrganisationStatus, OrganisationType


class TestMapStatus:
    """Test free-text status mapping."""

    @pytest.mark.parametrize("text", ["Closed", "abolished in 2012", "merged with X", "DISSOLVED"])
    def test_dissolved(self, text):
        """Closure keywords map to dissolved."""
        assert map_status(text) is OrganisationStatus.DISSOLVED

    @pytest.mark.parametrize("text", ["dormant", "Suspended", "exempted"])
    def test_inactive(self, text):
        """Dormancy keywords map to inactive."""
        assert map_status(text) is OrganisationStatus.INACTIVE

    @pytest.mark.parametrize("text", ["live", "Active", "", None, "something else"])
    def test_active_default(self, text):
        """Anything else is active."""
        assert map_status(text) is OrganisationStatus.ACTIVE


class TestParseDate:
    """Test date parsing."""

    @pytest.mark.parametrize("text, expected", [
        ("2019-04-01", "2019-04-01"),
        ("2019-04-01T10:30:00.000+01:00", "2019-04-01"),
        ("01/04/2019", "2019-04-01"),
        ("1-4-2019", "2019-04-01"),
        ("1 April 2019", "2019-04-01"),
        ("1974", "1974-01-01"),
    ])
    def test_formats(self, text, expected):
        """Common notations become ISO dates."""
        assert parse_date(text) == expected

    @pytest.mark.parametrize("text", ["", "   ", None, "soon", "31/02/2019"])
    def test_unparseable(self, text):
        """Unparseable or impossible dates give None."""
        assert parse_date(text) is None


class TestTypeMapping:
    """Test organisation type inference."""

    def test_govuk_format(self):
        """GOV.UK formats map to organisation types."""
        assert map_govuk_type("Ministerial department") is OrganisationType.MINISTERIAL_DEPARTMENT
        assert map_govuk_type("Executive agency") is OrganisationType.EXECUTIVE_AGENCY
        assert map_govuk_type("Sub organisation") is OrganisationType.OTHER

    def test_classification(self):
        """Classifications are matched most specific first."""
        assert infer_type_from_classification("Non-metropolitan district council") is OrganisationType.DISTRICT_COUNCIL
        assert infer_type_from_classification("NHS Foundation Trust") is OrganisationType.NHS_FOUNDATION_TRUST
        assert infer_type_from_classification("Central government") is OrganisationType.OTHER
        assert infer_type_from_classification("Medical Research Council") is OrganisationType.RESEARCH_COUNCIL

    def test_coerce_fallback(self):
        """Unknown type strings fall back to other."""
        assert OrganisationType.coerce("District Council") is OrganisationType.DISTRICT_COUNCIL
        assert OrganisationType.coerce("spaceport") is OrganisationType.OTHER
        assert OrganisationType.coerce(None) is OrganisationType.OTHER


class TestMisc:
    """Test remaining transformers."""

    def test_locale(self):
        """Locales map to countries."""
        assert map_locale("cy-GB") == "Wales"
        assert map_locale("xx") == "United Kingdom"

    def test_split_names(self):
        """Delimited names become a list."""
        assert split_names("DfE") == ["DfE"]
        assert split_names("A; B | C") == ["A", "B", "C"]
        assert split_names(["X", "", None]) == ["X"]
        assert split_names("") is None
