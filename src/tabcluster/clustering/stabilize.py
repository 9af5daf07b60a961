"""Cluster stabilization passes. Every pass merges clusters; none splits one."""

import logging
import re
from typing import Callable

from ..config import Thresholds
from ..features.tokenizer import Tokenizer
from ..models import ClusterResult, FeatureVector
from ..oracles.base import OracleGate
from .cluster import make_cluster
from .relationships import candidate_attachments
from .similarity import SimilarityCache, normalized_overlap
from .union_find import UnionFind

logger = logging.getLogger(__name__)

PLACEHOLDER_NAME = re.compile(r"^group\s+\d+$", re.IGNORECASE)


def is_placeholder_name(name: str | None) -> bool:
    if not name or not name.strip():
        return True
    return bool(PLACEHOLDER_NAME.match(name.strip()))


def _aggregate(cluster: ClusterResult, vectors: list[FeatureVector], attribute: str) -> set[str]:
    tokens: set[str] = set()
    for i in cluster.vector_indices:
        tokens |= getattr(vectors[i], attribute)
    return tokens


def _regroup(
    clusters: list[ClusterResult], uf: UnionFind, vectors: list[FeatureVector]
) -> list[ClusterResult]:
    """Collapse clusters joined in a cluster-level union-find; ids follow the lowest member."""
    merged: dict[int, list[int]] = {}
    for position, cluster in enumerate(clusters):
        merged.setdefault(uf.find(position), []).extend(cluster.vector_indices)
    groups = sorted((sorted(members) for members in merged.values()), key=lambda m: m[0])
    return [make_cluster(cluster_id, members, vectors) for cluster_id, members in enumerate(groups)]


def merge_small_clusters(
    clusters: list[ClusterResult],
    vectors: list[FeatureVector],
    cache: SimilarityCache,
    thresholds: Thresholds,
) -> tuple[list[ClusterResult], int]:
    """Cross-merge pairs where at least one side is small and the evidence agrees.

    Returns the new clusters and the number of unions performed.
    """
    if len(clusters) <= 1:
        return clusters, 0

    keyword_sets = [_aggregate(c, vectors, "keyword_tokens") for c in clusters]
    topic_sets = [_aggregate(c, vectors, "topic_tokens") for c in clusters]
    taxonomy_sets = [_aggregate(c, vectors, "taxonomy_tags") for c in clusters]
    uf = UnionFind(len(clusters))
    unions = 0

    for i in range(len(clusters)):
        for j in range(i + 1, len(clusters)):
            a, b = clusters[i], clusters[j]
            if a.size > thresholds.small_cluster_max_size and b.size > thresholds.small_cluster_max_size:
                continue
            best = cache.best_between(a.vector_indices, b.vector_indices)
            keyword_overlap = normalized_overlap(keyword_sets[i], keyword_sets[j])
            topic_overlap = normalized_overlap(topic_sets[i], topic_sets[j])
            taxonomy_overlap = normalized_overlap(taxonomy_sets[i], taxonomy_sets[j])

            meets_threshold = best >= thresholds.cross_group_threshold and (
                keyword_overlap >= thresholds.cross_group_keyword_overlap
                or topic_overlap >= thresholds.cross_group_topic_overlap
            )
            meets_taxonomy = (
                taxonomy_overlap >= thresholds.cross_group_taxonomy_overlap
                and best >= thresholds.taxonomy_support_floor
            )
            if (meets_threshold or meets_taxonomy) and uf.union(i, j):
                unions += 1

    if not unions:
        return clusters, 0
    return _regroup(clusters, uf, vectors), unions


def merge_duplicate_origin_singletons(
    clusters: list[ClusterResult], vectors: list[FeatureVector]
) -> tuple[list[ClusterResult], int]:
    """Singletons from the same site and channel belong together, whatever their score."""
    by_identity: dict[str, list[int]] = {}
    for position, cluster in enumerate(clusters):
        if cluster.size != 1:
            continue
        key = vectors[cluster.vector_indices[0]].identity_key
        if key:
            by_identity.setdefault(key, []).append(position)

    uf = UnionFind(len(clusters))
    unions = 0
    for positions in by_identity.values():
        first, *rest = positions
        for other in rest:
            if uf.union(first, other):
                unions += 1

    if not unions:
        return clusters, 0
    return _regroup(clusters, uf, vectors), unions


def stabilize(
    clusters: list[ClusterResult],
    vectors: list[FeatureVector],
    cache: SimilarityCache,
    thresholds: Thresholds | None = None,
) -> tuple[list[ClusterResult], list[int]]:
    """Repeat the small-cluster and duplicate-origin passes until nothing merges.

    Bounded by the initial number of clusters. Returns the clusters and the
    merge count of each round.
    """
    thresholds = thresholds or Thresholds()
    merges_per_round: list[int] = []
    for _ in range(max(1, len(clusters))):
        clusters, small = merge_small_clusters(clusters, vectors, cache, thresholds)
        clusters, origin = merge_duplicate_origin_singletons(clusters, vectors)
        merges_per_round.append(small + origin)
        logger.debug(f"Stabilization round {len(merges_per_round)}: {small} small-cluster, {origin} same-origin merges")
        if not small and not origin:
            break
    return clusters, merges_per_round


def merge_similar_named_clusters(
    clusters: list[ClusterResult],
    vectors: list[FeatureVector],
    cache: SimilarityCache,
    thresholds: Thresholds,
    tokenizer: Tokenizer | None = None,
) -> tuple[list[ClusterResult], set[int]]:
    """Merge clusters whose names overlap and whose members are close enough.

    Closeness is the best member TF-IDF or embedding cosine. Every cross-cluster
    combined score is already below the join threshold at this point.
    Placeholder names carry no tokens, so two placeholders never merge. The
    merged cluster keeps the longest non-placeholder name. Returns the new
    clusters and the ids (in the new list) of clusters produced by a merge.
    """
    if len(clusters) <= 1:
        return clusters, set()

    tokenizer = tokenizer or Tokenizer()
    name_tokens = [
        set() if is_placeholder_name(c.name) else set(tokenizer.tokenize(c.name)) for c in clusters
    ]
    uf = UnionFind(len(clusters))
    unions = 0
    for i in range(len(clusters)):
        for j in range(i + 1, len(clusters)):
            if not name_tokens[i] or not name_tokens[j]:
                continue
            overlap = normalized_overlap(name_tokens[i], name_tokens[j])
            if overlap < thresholds.name_similarity_threshold:
                continue
            best = cache.best_affinity(clusters[i].vector_indices, clusters[j].vector_indices)
            if best >= thresholds.name_vector_threshold and uf.union(i, j):
                unions += 1
                logger.debug(
                    f"Label merge: {clusters[i].name!r} + {clusters[j].name!r} "
                    f"(label {overlap:.2f}, affinity {best:.2f})"
                )

    if not unions:
        return clusters, set()

    names: dict[int, list[str]] = {}
    for position, cluster in enumerate(clusters):
        names.setdefault(uf.find(position), []).append(cluster.name)
    merged_roots = {root for root, group_names in names.items() if len(group_names) > 1}

    regrouped = _regroup(clusters, uf, vectors)
    member_root = {i: uf.find(p) for p, c in enumerate(clusters) for i in c.vector_indices}
    merged_ids = set()
    for cluster in regrouped:
        root = member_root[cluster.vector_indices[0]]
        candidates = [n for n in names[root] if not is_placeholder_name(n)]
        # Longest wins; ties keep the earliest
        cluster.name = max(candidates, key=len) if candidates else names[root][0]
        if root in merged_roots:
            merged_ids.add(cluster.cluster_id)
    return regrouped, merged_ids


def attach_verified_singletons(
    clusters: list[ClusterResult],
    vectors: list[FeatureVector],
    cache: SimilarityCache,
    thresholds: Thresholds,
    gate: OracleGate,
    summarize: Callable[[int], str],
) -> tuple[list[ClusterResult], set[int]]:
    """Ask the verifier about singletons just below the join threshold.

    ``summarize`` maps a vector index to the short text the verifier sees.
    Returns the new clusters and the ids of clusters that gained a member.
    """
    if not gate.available or len(clusters) <= 1:
        return clusters, set()

    candidates = candidate_attachments(
        clusters, cache, thresholds.verifier_floor, thresholds.join_threshold, min_target_size=2
    )
    by_id = {c.cluster_id: c for c in clusters}
    attach: dict[int, list[int]] = {}
    for link in candidates:
        target = by_id[link.cluster_id]
        representative = target.representatives[0] if target.representatives else link.doc_b
        verdict = gate.call("verify", summarize(link.doc_a), summarize(representative))
        if verdict is None:
            continue
        if verdict.same_topic and verdict.confidence >= thresholds.verifier_min_confidence:
            attach.setdefault(link.cluster_id, []).append(link.doc_a)
            logger.debug(f"Verifier attached {link.doc_a} to cluster {link.cluster_id} ({verdict.reason})")

    if not attach:
        return clusters, set()

    moved = {m for members in attach.values() for m in members}
    result = []
    grown = set()
    for cluster in clusters:
        if cluster.size == 1 and cluster.vector_indices[0] in moved:
            continue
        extra = attach.get(cluster.cluster_id, [])
        if extra:
            members = sorted(cluster.vector_indices + extra)
            cluster.vector_indices = members
            cluster.document_indices = [vectors[i].document_index for i in members]
            grown.add(cluster.cluster_id)
        result.append(cluster)
    return result, grown
