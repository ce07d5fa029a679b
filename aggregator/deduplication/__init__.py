"""
Entity resolution: cluster drafts that describe the same organisation and
reconcile each cluster into one ``Organisation``.
"""

from aggregator.deduplication.resolver import EntityResolver, ResolutionReport
from aggregator.deduplication.similarity import name_similarity

__all__ = [
    "EntityResolver",
    "ResolutionReport",
    "name_similarity",
]
