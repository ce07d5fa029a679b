"""
Entity resolver: the deduplication/merge pass over the frozen draft pool.

1. Block drafts by name key and type.
2. Score candidate pairs within blocks; matching pairs become edges.
3. Union all edges, then reduce each cluster to one organisation.

Every edge is collected before clustering, so cluster membership depends
only on pool content, never on pool order. Clusters are not re-evaluated
once formed.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, replace

from loguru import logger

from aggregator.config import SIMILARITY_THRESHOLD
from aggregator.deduplication.blocking import bucket_count, candidate_pairs
from aggregator.deduplication.clustering import UnionFind
from aggregator.deduplication.merge import merge_cluster, organisation_fingerprint
from aggregator.deduplication.similarity import SimilarityFn, is_same_entity, name_similarity
from aggregator.models import Organisation, OrganisationDraft
from aggregator.quality import QualityScorer
from aggregator.utils.text import matching_key


@dataclass(frozen=True)
class ResolutionReport:
    """Statistics of one resolution pass."""
    drafts: int = 0
    buckets: int = 0
    comparisons: int = 0
    matches: int = 0
    clusters: int = 0
    merged_clusters: int = 0
    conflicted: int = 0


class EntityResolver:
    """
    Clusters drafts describing the same organisation and merges each cluster.

    Args:
        similarity: Name similarity function, symmetric, scores in [0, 1]
        threshold: Inclusive similarity threshold for a match
        scorer: Quality scorer applied to merged organisations
    """

    def __init__(
        self,
        similarity: SimilarityFn = name_similarity,
        threshold: float = SIMILARITY_THRESHOLD,
        scorer: QualityScorer | None = None,
    ):
        self.similarity = similarity
        self.threshold = threshold
        self.scorer = scorer or QualityScorer()

    def resolve(self, drafts: Iterable[OrganisationDraft]) -> list[Organisation]:
        organisations, _ = self.resolve_with_report(drafts)
        return organisations

    def resolve_with_report(
        self, drafts: Iterable[OrganisationDraft]
    ) -> tuple[list[Organisation], ResolutionReport]:
        pool = tuple(drafts)
        if not pool:
            return [], ResolutionReport()

        clusters, comparisons, matches = self.cluster(pool)
        organisations = [merge_cluster([pool[i] for i in members], self.scorer) for members in clusters]
        organisations = self._disambiguate_ids(organisations)
        organisations.sort(key=lambda org: (matching_key(org.name), org.id))

        report = ResolutionReport(
            drafts=len(pool),
            buckets=bucket_count(pool),
            comparisons=comparisons,
            matches=matches,
            clusters=len(clusters),
            merged_clusters=sum(1 for members in clusters if len(members) > 1),
            conflicted=sum(1 for org in organisations if org.data_quality.has_conflicts),
        )
        logger.info(
            f"Resolved {report.drafts} drafts into {report.clusters} organisations "
            f"({report.merged_clusters} merged, {report.conflicted} with conflicts)"
        )
        logger.debug(f"{report.buckets} buckets, {report.comparisons} comparisons, {report.matches} matches")
        return organisations, report

    def cluster(self, pool: tuple[OrganisationDraft, ...]) -> tuple[list[list[int]], int, int]:
        """Return (clusters of pool indices, comparisons made, matching pairs)."""
        union_find = UnionFind(len(pool))
        comparisons = matches = 0

        for left, right in candidate_pairs(pool):
            comparisons += 1
            if is_same_entity(pool[left], pool[right], self.similarity, self.threshold):
                matches += 1
                union_find.union(left, right)

        return union_find.groups(), comparisons, matches

    def _disambiguate_ids(self, organisations: list[Organisation]) -> list[Organisation]:
        """Suffix colliding ids in content order so every id is unique and stable."""
        by_id: dict[str, list[Organisation]] = defaultdict(list)
        for organisation in organisations:
            by_id[organisation.id].append(organisation)

        result = []
        for org_id, group in by_id.items():
            if len(group) == 1:
                result.append(group[0])
                continue
            logger.debug(f"Disambiguating {len(group)} organisations sharing id {org_id}")
            group.sort(key=organisation_fingerprint)
            result.append(group[0])
            result.extend(
                replace(organisation, id=f"{org_id}-{n}")
                for n, organisation in enumerate(group[1:], start=2)
            )
        return result
