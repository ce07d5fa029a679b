"""
Name similarity and the same-entity rule.

Any callable ``(str, str) -> float`` returning a symmetric score in [0, 1]
can replace ``name_similarity``; the match threshold is applied inclusively.
Two drafts are compared on the best pair among their names and alternative
names.
"""

from collections.abc import Callable

from rapidfuzz.distance import Levenshtein

from aggregator.config import SIMILARITY_THRESHOLD
from aggregator.deduplication.blocking import draft_names
from aggregator.models import OrganisationDraft, OrganisationType
from aggregator.utils.text import distinctive_tokens, name_tokens, normalize_for_search, normalize_name

SimilarityFn = Callable[[str, str], float]


def _similarity(left: str, right: str) -> float:
    return Levenshtein.normalized_similarity(left, right)


def name_similarity(left: str, right: str) -> float:
    """
    Token-order, case and punctuation insensitive similarity of two names.

    Normalised Levenshtein similarity of the sorted significant tokens. When
    both names have distinctive (non-generic) tokens, the score is capped by
    their similarity, so "Adur District Council" and "Arun District Council"
    stay apart. Rounded to 6 places so threshold comparisons are exact.
    """
    left_tokens, right_tokens = name_tokens(left), name_tokens(right)
    if not left_tokens or not right_tokens:
        return 1.0 if normalize_name(left) == normalize_name(right) else 0.0

    score = _similarity(" ".join(left_tokens), " ".join(right_tokens))

    left_distinct, right_distinct = distinctive_tokens(left), distinctive_tokens(right)
    if left_distinct and right_distinct:
        score = min(score, _similarity(" ".join(left_distinct), " ".join(right_distinct)))

    return round(score, 6)


def types_compatible(left: OrganisationType, right: OrganisationType) -> bool:
    return left == right or OrganisationType.OTHER in (left, right)


def regions_compatible(left: str | None, right: str | None) -> bool:
    if not left or not right:
        return True
    return normalize_for_search(left) == normalize_for_search(right)


def best_name_similarity(
    left: OrganisationDraft,
    right: OrganisationDraft,
    similarity: SimilarityFn = name_similarity,
) -> float:
    """Highest similarity over every (name or alternative name) pair of two drafts."""
    best = 0.0
    for left_name in draft_names(left):
        for right_name in draft_names(right):
            # Fixed argument order keeps the decision independent of pool order
            first, second = sorted((left_name, right_name))
            best = max(best, similarity(first, second))
    return best


def is_same_entity(
    left: OrganisationDraft,
    right: OrganisationDraft,
    similarity: SimilarityFn = name_similarity,
    threshold: float = SIMILARITY_THRESHOLD,
) -> bool:
    """Whether two drafts denote the same organisation."""
    if not types_compatible(left.type, right.type):
        return False
    if not regions_compatible(left.region, right.region):
        return False
    return best_name_similarity(left, right, similarity) >= threshold
