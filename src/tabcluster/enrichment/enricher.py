"""Cluster enrichment: centroid terms, representatives, dominant attributes and signature."""

from collections import Counter
from typing import Iterable

from ..clustering.cluster import make_cluster
from ..clustering.similarity import SimilarityCache
from ..config import EnrichmentSettings
from ..features.hashing import compute_hash
from ..models import ClusterResult, FeatureVector


def rank_by_frequency(groups: Iterable[Iterable[str]], limit: int) -> list[str]:
    """Most frequent values across groups; ties keep first-appearance order."""
    counts: Counter = Counter()
    first_seen: dict[str, int] = {}
    for group in groups:
        for value in group:
            if not value:
                continue
            counts[value] += 1
            first_seen.setdefault(value, len(first_seen))
    ranked = sorted(counts, key=lambda v: (-counts[v], first_seen[v]))
    return ranked[:limit]


def dominant(values: Iterable[str]) -> str:
    """Most common non-empty value, ties to the first seen."""
    ranked = rank_by_frequency([[v] for v in values], 1)
    return ranked[0] if ranked else ""


def centroid_terms(members: list[FeatureVector], limit: int) -> list[str]:
    centroid: dict[str, float] = {}
    for vector in members:
        for term in sorted(vector.tfidf):
            centroid[term] = centroid.get(term, 0.0) + vector.tfidf[term]
    return [term for term, _ in sorted(centroid.items(), key=lambda item: (-item[1], item[0]))[:limit]]


def pick_representatives(indices: list[int], cache: SimilarityCache, count: int = 2) -> list[int]:
    """Members with the highest average score to the rest of the cluster."""
    if len(indices) <= count:
        return list(indices)
    averages = []
    for i in indices:
        scores = [cache.get(i, j) for j in indices if j != i]
        averages.append((sum(scores) / len(scores), i))
    averages.sort(key=lambda item: (-item[0], item[1]))
    return [i for _, i in averages[:count]]


def centroid_signature(terms: list[str], keywords: list[str], settings: EnrichmentSettings) -> str:
    """Short stable fingerprint of a cluster's vocabulary; keys the label cache."""
    text = ",".join(terms[: settings.signature_centroid_terms]) + "|" + ",".join(keywords[: settings.signature_keywords])
    return compute_hash(text)[:16]


def enrich_cluster(
    vector_indices: list[int],
    vectors: list[FeatureVector],
    cache: SimilarityCache,
    settings: EnrichmentSettings | None = None,
    cluster_id: int = 0,
    name: str = "",
) -> ClusterResult:
    settings = settings or EnrichmentSettings()
    cluster = make_cluster(cluster_id, vector_indices, vectors)
    members = [vectors[i] for i in cluster.vector_indices]

    cluster.name = name
    cluster.keywords = rank_by_frequency((sorted(v.keyword_tokens) for v in members), settings.top_k)
    cluster.taxonomy_tags = rank_by_frequency((sorted(v.taxonomy_tags) for v in members), settings.top_k)
    cluster.entities = rank_by_frequency((sorted(v.entities) for v in members), settings.top_k)
    cluster.merge_hints = rank_by_frequency((sorted(v.merge_hint_tokens) for v in members), settings.top_k)
    cluster.centroid_terms = centroid_terms(members, settings.centroid_terms)
    cluster.representatives = pick_representatives(cluster.vector_indices, cache, settings.representatives)

    cluster.dominant_domain = dominant(v.domain for v in members)
    cluster.dominant_language = dominant(v.language for v in members)
    cluster.dominant_topic = dominant(v.primary_topic for v in members)
    cluster.dominant_doc_type = dominant(v.doc_type for v in members)

    if members:
        cluster.generic_landing_ratio = sum(v.generic_landing for v in members) / len(members)
        if cluster.dominant_topic:
            matching = sum(v.primary_topic == cluster.dominant_topic for v in members)
            cluster.topic_purity = matching / len(members)

    cluster.centroid_signature = centroid_signature(cluster.centroid_terms, cluster.keywords, settings)
    return cluster
