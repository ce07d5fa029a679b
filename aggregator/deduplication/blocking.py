"""
Blocking: cheap coarse keys that limit pairwise comparison to plausible pairs.

A draft's blocks are (first letter of the first distinctive token, type) for
its name and each of its alternative names. Drafts typed OTHER are compared
against every type sharing one of their name keys.
"""

from collections import defaultdict
from collections.abc import Iterator, Sequence

from aggregator.models import OrganisationDraft, OrganisationType
from aggregator.utils.text import distinctive_tokens, name_tokens

EMPTY_NAME_KEY = "#"


def name_key(name: str) -> str:
    tokens = distinctive_tokens(name) or name_tokens(name)
    return tokens[0][0] if tokens else EMPTY_NAME_KEY


def draft_names(draft: OrganisationDraft) -> tuple[str, ...]:
    """The draft's name followed by its alternative names."""
    return (draft.name, *draft.alternative_names)


def name_keys(draft: OrganisationDraft) -> list[str]:
    return sorted({name_key(name) for name in draft_names(draft)})


def build_blocks(drafts: Sequence[OrganisationDraft]) -> dict[str, dict[OrganisationType, list[int]]]:
    """Group draft indices by name key, then by type."""
    blocks: dict[str, dict[OrganisationType, list[int]]] = defaultdict(lambda: defaultdict(list))
    for index, draft in enumerate(drafts):
        for key in name_keys(draft):
            blocks[key][draft.type].append(index)
    return blocks


def candidate_pairs(drafts: Sequence[OrganisationDraft]) -> Iterator[tuple[int, int]]:
    """
    Yield each index pair worth comparing exactly once, as (low, high).

    Pairs are formed within one type group, and between the OTHER group and
    every other group of the same name key. Drafts sharing several keys are
    still paired once.
    """
    seen: set[tuple[int, int]] = set()

    def emit(left: int, right: int) -> Iterator[tuple[int, int]]:
        pair = (min(left, right), max(left, right))
        if pair not in seen:
            seen.add(pair)
            yield pair

    for types in build_blocks(drafts).values():
        groups = list(types.items())
        others = types.get(OrganisationType.OTHER, [])

        for org_type, members in groups:
            for i, left in enumerate(members):
                for right in members[i + 1:]:
                    yield from emit(left, right)

            if org_type is OrganisationType.OTHER:
                continue
            for left in others:
                for right in members:
                    yield from emit(left, right)


def bucket_count(drafts: Sequence[OrganisationDraft]) -> int:
    return sum(len(types) for types in build_blocks(drafts).values())
