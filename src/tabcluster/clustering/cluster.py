"""Union-find clustering of feature vectors with a two-threshold hysteresis pass."""

import logging

from ..config import BorderlineRule, Thresholds
from ..exceptions import InvariantViolation
from ..models import BorderlinePair, ClusterResult, FeatureVector
from .similarity import SimilarityCache
from .union_find import UnionFind

logger = logging.getLogger(__name__)

_JOIN_EPSILON = 1e-9


def is_corroborated(pair: BorderlinePair, rule: BorderlineRule) -> bool:
    """Whether a secondary signal backs up a pair scored between split and join."""
    if pair.same_domain and pair.merge_hint_overlap >= rule.merge_hint_overlap:
        return True
    if pair.primary_topic_overlap >= rule.primary_topic_overlap and pair.taxonomy_overlap >= rule.taxonomy_overlap:
        return True
    if pair.simhash_similarity >= rule.simhash:
        return True
    return pair.embedding_cosine >= rule.embedding


def make_cluster(cluster_id: int, members: list[int], vectors: list[FeatureVector]) -> ClusterResult:
    members = sorted(members)
    return ClusterResult(
        cluster_id=cluster_id,
        vector_indices=members,
        document_indices=[vectors[i].document_index for i in members],
    )


def validate_members(
    clusters: list[ClusterResult], n_vectors: int, strict: bool = False
) -> list[ClusterResult]:
    """Drop (or, when strict, reject) member indices outside the vector range."""
    valid = []
    for cluster in clusters:
        bad = [i for i in cluster.vector_indices if not 0 <= i < n_vectors]
        if bad:
            message = f"Cluster {cluster.cluster_id} references unknown vector indices {bad}"
            if strict:
                raise InvariantViolation(message)
            logger.warning(f"{message}, dropping them")
            kept = [(i, d) for i, d in zip(cluster.vector_indices, cluster.document_indices) if 0 <= i < n_vectors]
            cluster.vector_indices = [i for i, _ in kept]
            cluster.document_indices = [d for _, d in kept]
        if cluster.vector_indices:
            valid.append(cluster)
    return valid


def absorb_singletons(groups: list[list[int]], cache: SimilarityCache, split_threshold: float) -> list[list[int]]:
    """Move each singleton into its best-scoring group when that score clears the split threshold.

    Singletons are visited in order; ties go to the earliest group.
    """
    if len(groups) <= 1:
        return groups
    groups = [list(g) for g in groups]
    removed: set[int] = set()
    for position, group in enumerate(groups):
        if len(group) != 1 or position in removed:
            continue
        member = group[0]
        best_position, best_score = None, 0.0
        for candidate_position, candidate in enumerate(groups):
            if candidate_position == position or candidate_position in removed:
                continue
            score = max(cache.get(member, other) for other in candidate)
            if score > best_score:
                best_position, best_score = candidate_position, score
        if best_position is not None and best_score >= split_threshold:
            groups[best_position].append(member)
            removed.add(position)
    return [sorted(g) for position, g in enumerate(groups) if position not in removed]


def cluster_vectors(
    vectors: list[FeatureVector],
    cache: SimilarityCache,
    thresholds: Thresholds | None = None,
) -> list[ClusterResult]:
    """Initial clusters: join-threshold unions, corroborated borderline unions, singleton absorption.

    Returns clusters ordered by their lowest member, ids assigned in that order.
    """
    thresholds = thresholds or Thresholds()
    n = len(vectors)
    if n == 0:
        return []

    uf = UnionFind(n)
    borderline: list[BorderlinePair] = []
    for i in range(n):
        for j in range(i + 1, n):
            score = cache.get(i, j)
            if score >= thresholds.join_threshold:
                uf.union(i, j)
            elif score >= thresholds.split_threshold:
                borderline.append(cache.borderline(i, j))

    borderline.sort(key=lambda p: (-p.score, p.i, p.j))
    hysteresis_merges = 0
    for pair in borderline:
        if uf.find(pair.i) == uf.find(pair.j):
            continue
        if pair.score >= thresholds.join_threshold - _JOIN_EPSILON or is_corroborated(pair, thresholds.borderline):
            uf.union(pair.i, pair.j)
            hysteresis_merges += 1

    groups = uf.groups()
    before = len(groups)
    groups = absorb_singletons(groups, cache, thresholds.split_threshold)
    groups.sort(key=lambda members: members[0])
    logger.debug(
        f"Union-find: {len(borderline)} borderline pairs, {hysteresis_merges} hysteresis merges, "
        f"{before - len(groups)} singletons absorbed, {len(groups)} clusters"
    )
    return [make_cluster(cluster_id, members, vectors) for cluster_id, members in enumerate(groups)]
