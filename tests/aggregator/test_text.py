# SPDX-License-Identifier: MIT
"""Tests for text normalisation helpers."""

from aggregator.utils.text import (
    distinctive_tokens,
    matching_key,
    name_tokens,
    normalize_for_search,
    normalize_name,
    slugify,
)


class TestNormalizeName:
    """Test display-insensitive name normalisation."""

    def test_strips_accents_and_case(self):
        """Diacritics are removed and case folded."""
        assert normalize_name("Pàrlamaid na h-Alba") == "parlamaid na h-alba"

    def test_collapses_whitespace(self):
        """Runs of whitespace become single spaces."""
        assert normalize_name("  Adur   District\tCouncil ") == "adur district council"

    def test_empty(self):
        """Empty input gives an empty string."""
        assert normalize_name("") == ""
        assert normalize_name(None) == ""


class TestNormalizeForSearch:
    """Test aggressive normalisation."""

    def test_punctuation_removed(self):
        """Punctuation becomes whitespace."""
        assert normalize_for_search("St. Helens (Borough) Council!") == "st helens borough council"


class TestNameTokens:
    """Test significant-token extraction used for matching."""

    def test_order_insensitive(self):
        """Token order does not change the matching key."""
        assert matching_key("Council, Adur District") == matching_key("Adur District Council")

    def test_stop_words_and_ampersand(self):
        """'&' becomes 'and', and stop words are dropped."""
        assert name_tokens("Department for Culture, Media & Sport") == [
            "culture", "department", "media", "sport",
        ]

    def test_abbreviations_expanded(self):
        """Known abbreviations match their long forms."""
        assert matching_key("Dept of Health") == matching_key("Department of Health")

    def test_only_stop_words_kept(self):
        """A name made only of stop words keeps its tokens."""
        assert name_tokens("The") == ["the"]

    def test_distinctive_tokens(self):
        """Generic organisational words are not distinctive."""
        assert distinctive_tokens("Adur District Council") == ["adur"]
        assert distinctive_tokens("District Council") == []


class TestSlugify:
    """Test id slug generation."""

    def test_slug(self):
        """Slugs are lowercase and hyphen separated."""
        assert slugify("Adur District Council") == "adur-district-council"

    def test_empty_slug(self):
        """Names without usable characters still produce a slug."""
        assert slugify("!!!") == "organisation"
