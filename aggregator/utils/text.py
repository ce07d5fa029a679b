"""Text processing utility functions for the aggregator."""

import re
import unicodedata

# Words that carry no identity in organisation names
STOP_WORDS = frozenset({"the", "of", "and", "for"})

# Abbreviation expansions applied token-wise before matching
ABBREVIATIONS = {
    "dept": "department",
    "org": "organisation",
    "assoc": "association",
    "comm": "commission",
    "corp": "corporation",
    "ltd": "limited",
}

# Words shared by many unrelated bodies; they say what kind of body, not which one
GENERIC_TOKENS = frozenset({
    "agency",
    "authority",
    "board",
    "borough",
    "city",
    "commission",
    "council",
    "county",
    "department",
    "district",
    "foundation",
    "government",
    "metropolitan",
    "national",
    "nhs",
    "office",
    "service",
    "services",
    "trust",
})


def normalize_name(name: str, remove_parentheses: bool = False, remove_brackets: bool = True) -> str:
    """Normalize an organisation name for display-insensitive comparison.

    Applies the following transformations:
    - Unicode NFKD normalization (decomposes characters)
    - Removes diacritical marks (accents)
    - Optionally removes content in brackets [...]
    - Optionally removes content in parentheses (...)
    - Collapses whitespace, converts to lowercase

    Args:
        name: The name to normalize
        remove_parentheses: Whether to remove content in parentheses
        remove_brackets: Whether to remove content in square brackets

    Returns:
        Normalized name string, or empty string if input is empty/None
    """
    if not name:
        return ""

    name = unicodedata.normalize("NFKD", name)
    name = "".join(c for c in name if not unicodedata.combining(c))

    if remove_brackets:
        name = re.sub(r"\[.*?\]", "", name)

    if remove_parentheses:
        name = re.sub(r"\(.*?\)", "", name)

    name = re.sub(r"\s+", " ", name)
    return name.lower().strip()


def normalize_for_search(text: str) -> str:
    """Normalize text for search/indexing.

    More aggressive normalization suitable for search:
    - Removes all special characters
    - Removes extra whitespace
    - Lowercase

    Args:
        text: Text to normalize

    Returns:
        Normalized text
    """
    if not text:
        return ""

    text = unicodedata.normalize("NFKD", text)
    text = "".join(c for c in text if not unicodedata.combining(c))

    # Remove non-alphanumeric (keep spaces)
    text = re.sub(r"[^a-zA-Z0-9\s]", " ", text)

    # Collapse whitespace
    text = re.sub(r"\s+", " ", text)

    return text.lower().strip()


def name_tokens(name: str) -> list[str]:
    """Significant tokens of an organisation name, sorted.

    '&' becomes 'and', known abbreviations are expanded and stop words
    dropped. Names made only of stop words keep all their tokens.
    """
    text = normalize_for_search((name or "").replace("&", " and "))
    tokens = [ABBREVIATIONS.get(token, token) for token in text.split()]
    significant = [token for token in tokens if token not in STOP_WORDS]
    return sorted(significant or tokens)


def matching_key(name: str) -> str:
    """Token-order-insensitive comparison form of a name."""
    return " ".join(name_tokens(name))


def slugify(text: str, max_length: int = 60) -> str:
    """Convert text to a lowercase, hyphen-separated identifier fragment.

    Args:
        text: Original text
        max_length: Maximum slug length

    Returns:
        Slug string, "organisation" when nothing usable remains
    """
    slug = normalize_for_search(text).replace(" ", "-")
    slug = slug[:max_length].strip("-")
    return slug or "organisation"


def distinctive_tokens(name: str) -> list[str]:
    """Significant tokens minus generic organisational words."""
    return [token for token in name_tokens(name) if token not in GENERIC_TOKENS]
