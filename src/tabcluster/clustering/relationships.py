"""Scored links between documents: within clusters, and from singletons to their nearest cluster."""

from itertools import combinations

from ..models import ClusterResult, Relationship
from .similarity import SimilarityCache


def extract_relationships(
    clusters: list[ClusterResult],
    cache: SimilarityCache,
    min_score: float = 0.0,
) -> list[Relationship]:
    """Pairwise relationships between members of each cluster.

    ``doc_a`` and ``doc_b`` are positions in the run's document list.
    """
    relationships = []

    for cluster in clusters:
        if cluster.size < 2:
            continue
        for a, b in combinations(cluster.vector_indices, 2):
            score = cache.get(a, b)
            if score < min_score:
                continue
            relationships.append(Relationship(
                doc_a=a,
                doc_b=b,
                score=score,
                cluster_id=cluster.cluster_id,
                label=cluster.name,
            ))

    # Sort by score descending
    relationships.sort(key=lambda r: (-r.score, r.doc_a, r.doc_b))
    return relationships


def candidate_attachments(
    clusters: list[ClusterResult],
    cache: SimilarityCache,
    floor: float,
    ceiling: float,
    min_target_size: int = 1,
) -> list[Relationship]:
    """For each singleton, its best link into another cluster when the score is in [floor, ceiling).

    Ties go to the earlier cluster, then the lower member.
    """
    candidates = []
    for cluster in clusters:
        if cluster.size != 1:
            continue
        member = cluster.vector_indices[0]
        best: Relationship | None = None
        for other in clusters:
            if other is cluster or other.size < min_target_size:
                continue
            for target in other.vector_indices:
                score = cache.get(member, target)
                if best is None or score > best.score:
                    best = Relationship(
                        doc_a=member, doc_b=target, score=score, cluster_id=other.cluster_id, label=other.name
                    )
        if best is not None and floor <= best.score < ceiling:
            candidates.append(best)
    return candidates
