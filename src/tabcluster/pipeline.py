"""End-to-end clustering run: features, scoring, clustering, stabilization, naming."""

import logging
from dataclasses import dataclass, field
from typing import Any

from .clustering.cluster import cluster_vectors, validate_members
from .clustering.relationships import extract_relationships
from .clustering.similarity import SimilarityCache, SimilarityScorer
from .clustering.stabilize import (
    attach_verified_singletons,
    is_placeholder_name,
    merge_similar_named_clusters,
    stabilize,
)
from .config import EngineSettings
from .enrichment.enricher import enrich_cluster
from .enrichment.labeler import Labeler
from .features.builder import FeatureBuilder
from .features.tokenizer import Tokenizer
from .models import ClusterResult, Document, FeatureVector, Relationship, SemanticFeatures
from .oracles.base import OracleGate, OracleSet

logger = logging.getLogger(__name__)


@dataclass
class ClusteringRun:
    """Everything one run produced. ``clusters`` are ordered biggest first."""
    documents: list[Document]
    vectors: list[FeatureVector]
    clusters: list[ClusterResult]
    cache: SimilarityCache
    document_frequency: dict[str, int]
    semantic: list[SemanticFeatures] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)

    def cluster_of(self, position: int) -> ClusterResult | None:
        for cluster in self.clusters:
            if position in cluster.vector_indices:
                return cluster
        return None

    def assignments(self) -> dict[int, int]:
        """Document position -> cluster id."""
        return {i: c.cluster_id for c in self.clusters for i in c.vector_indices}


def _summary(document: Document, semantic: SemanticFeatures, vector: FeatureVector) -> str:
    lines = [document.title, semantic.primary_topic, vector.domain]
    bullets = semantic.summary_bullets or list(document.summary_bullets)
    if bullets:
        lines.append(bullets[0])
    elif document.meta_description:
        lines.append(document.meta_description)
    return "\n".join(line for line in lines if line)


def run_pipeline(
    documents: list[Document],
    config: dict[str, Any] | None = None,
    oracles: OracleSet | None = None,
    settings: EngineSettings | None = None,
) -> ClusteringRun:
    """Cluster documents and name the clusters.

    Works with every oracle absent. With ``oracles.strict`` on, oracle errors
    other than timeouts propagate.
    """
    settings = settings or EngineSettings.from_config(config)
    oracles = oracles or OracleSet()
    thresholds = settings.thresholds

    corpus = FeatureBuilder(settings, oracles.topic, oracles.embedding).build(documents)
    vectors = corpus.vectors
    scorer = SimilarityScorer(
        settings.weights, settings.penalties, settings.strict_invariants, settings.features.simhash_bits
    )
    cache = SimilarityCache(vectors, scorer)

    clusters = cluster_vectors(vectors, cache, thresholds)
    initial_clusters = len(clusters)
    clusters, merges_per_round = stabilize(clusters, vectors, cache, thresholds)
    clusters = validate_members(clusters, len(vectors), settings.strict_invariants)

    def enrich(cluster: ClusterResult) -> ClusterResult:
        enriched = enrich_cluster(
            cluster.vector_indices, vectors, cache, settings.enrichment, cluster.cluster_id, cluster.name
        )
        enriched.description = cluster.description
        return enriched

    titles = [d.title for d in documents]
    labeler = Labeler(settings, oracles.label)
    clusters = labeler.label_clusters([enrich(c) for c in clusters], titles)

    clusters, merged_ids = merge_similar_named_clusters(
        clusters, vectors, cache, thresholds, Tokenizer(settings.features)
    )
    if merged_ids:
        relabeled = []
        for cluster in clusters:
            enriched = enrich(cluster)
            # Unchanged clusters hit the label cache and keep their label
            label = labeler.label(enriched, titles, keep_name=cluster.name)
            enriched.name = label.name or cluster.name
            enriched.description = label.description
            relabeled.append(enriched)
        clusters = relabeled

    verifier = OracleGate(oracles.verifier, None, settings.oracles.strict)
    summaries = [_summary(d, s, v) for d, s, v in zip(documents, corpus.semantic, vectors)]
    before_verifier = len(clusters)
    clusters, grown = attach_verified_singletons(
        clusters, vectors, cache, thresholds, verifier, lambda i: summaries[i]
    )
    clusters = [enrich(c) if c.cluster_id in grown else c for c in clusters]

    clusters.sort(key=lambda c: (-c.size, c.vector_indices[0]))
    for position, cluster in enumerate(clusters):
        cluster.cluster_id = position
        if is_placeholder_name(cluster.name):
            cluster.name = f"Group {position + 1}"

    stats: dict[str, Any] = dict(corpus.stats)
    stats.update(
        documents=len(documents),
        initial_clusters=initial_clusters,
        stabilization_rounds=len(merges_per_round),
        merges_per_round=merges_per_round,
        label_merges=len(merged_ids),
        label_oracle_calls=labeler.gate.calls,
        label_fallbacks=labeler.fallbacks,
        verifier_calls=verifier.calls,
        verifier_attached=before_verifier - len(clusters),
        final_clusters=len(clusters),
        cache_entries=len(cache),
        cache_hits=cache.hits,
        cache_misses=cache.misses,
    )
    logger.info(
        f"Clustered {len(documents)} documents into {len(clusters)} clusters "
        f"({initial_clusters} before stabilization)"
    )
    logger.debug(f"Similarity cache: {len(cache)} entries, {cache.hits} hits, {cache.misses} misses")

    return ClusteringRun(
        documents=documents,
        vectors=vectors,
        clusters=clusters,
        cache=cache,
        document_frequency=corpus.document_frequency,
        semantic=corpus.semantic,
        relationships=extract_relationships(clusters, cache),
        stats=stats,
    )
