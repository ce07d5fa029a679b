"""Utility modules for the aggregator."""

from aggregator.utils.http import fetch, fetch_json, fetch_text
from aggregator.utils.logging import setup_logging
from aggregator.utils.text import (
    matching_key,
    normalize_for_search,
    normalize_name,
    slugify,
)

__all__ = [
    # HTTP utilities
    "fetch",
    "fetch_json",
    "fetch_text",
    # Logging
    "setup_logging",
    # Text utilities
    "normalize_name",
    "normalize_for_search",
    "matching_key",
    "slugify",
]
