"""Data models used throughout tabcluster."""

from dataclasses import dataclass, field
from typing import Any

import numpy as np


@dataclass
class SemanticFeatures:
    """Topic-level description of a document, from an oracle or the fallback rules."""
    primary_topic: str = ""
    subtopics: list[str] = field(default_factory=list)
    entities: list[str] = field(default_factory=list)
    doc_type: str = ""
    is_generic_landing: bool = False
    merge_hints: list[str] = field(default_factory=list)
    summary_bullets: list[str] = field(default_factory=list)
    origin: str = "fallback"  # "input", "oracle" or "fallback"


@dataclass(frozen=True)
class Document:
    """A single tab or page handed to the engine."""
    index: int
    title: str = ""
    url: str = ""
    domain: str = ""
    language: str = ""
    content: str = ""
    meta_description: str = ""
    headings: tuple[str, ...] = ()
    meta_keywords: tuple[str, ...] = ()
    summary_bullets: tuple[str, ...] = ()
    channel: str = ""
    source_topic: str = ""
    tags: tuple[str, ...] = ()
    features: SemanticFeatures | None = None
    embedding: tuple[float, ...] | None = None


@dataclass(frozen=True, eq=False)
class FeatureVector:
    """Derived per-document representation consumed by the similarity scorer."""
    index: int
    document_index: int
    keyword_tokens: frozenset[str]
    title_tokens: frozenset[str]
    path_tokens: frozenset[str]
    topic_tokens: frozenset[str]
    taxonomy_tags: frozenset[str]
    domain_tokens: frozenset[str]
    tfidf: dict[str, float]
    tfidf_norm: float
    embedding: np.ndarray
    simhash: int | None
    domain: str
    language: str
    primary_topic: str
    primary_topic_tokens: frozenset[str]
    doc_type: str
    merge_hint_tokens: frozenset[str]
    entities: frozenset[str]
    generic_landing: bool
    channel: str = ""
    source_topic: str = ""
    identity_key: str = ""
    features_origin: str = "fallback"


@dataclass
class BorderlinePair:
    """A pair scored between the split and join thresholds, with corroborating signals."""
    i: int
    j: int
    score: float
    same_domain: bool = False
    merge_hint_overlap: float = 0.0
    primary_topic_overlap: float = 0.0
    taxonomy_overlap: float = 0.0
    simhash_similarity: float = 0.0
    embedding_cosine: float = 0.0


@dataclass
class ClusterResult:
    """A group of documents plus its enrichment."""
    cluster_id: int
    vector_indices: list[int]
    document_indices: list[int] = field(default_factory=list)
    name: str = ""
    description: str = ""
    centroid_terms: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    representatives: list[int] = field(default_factory=list)
    dominant_domain: str = ""
    dominant_language: str = ""
    dominant_topic: str = ""
    dominant_doc_type: str = ""
    taxonomy_tags: list[str] = field(default_factory=list)
    merge_hints: list[str] = field(default_factory=list)
    entities: list[str] = field(default_factory=list)
    generic_landing_ratio: float = 0.0
    centroid_signature: str = ""
    topic_purity: float = 0.0

    @property
    def size(self) -> int:
        return len(self.vector_indices)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cluster_id": self.cluster_id,
            "name": self.name,
            "description": self.description,
            "size": self.size,
            "document_indices": list(self.document_indices),
            "representatives": list(self.representatives),
            "keywords": list(self.keywords),
            "centroid_terms": list(self.centroid_terms),
            "taxonomy_tags": list(self.taxonomy_tags),
            "entities": list(self.entities),
            "merge_hints": list(self.merge_hints),
            "dominant_domain": self.dominant_domain,
            "dominant_language": self.dominant_language,
            "dominant_topic": self.dominant_topic,
            "dominant_doc_type": self.dominant_doc_type,
            "generic_landing_ratio": self.generic_landing_ratio,
            "topic_purity": self.topic_purity,
            "centroid_signature": self.centroid_signature,
        }


@dataclass
class Relationship:
    """A scored relationship between two documents."""
    doc_a: int
    doc_b: int
    score: float
    cluster_id: int = -1
    label: str = ""


@dataclass
class ClusterLabel:
    """Human-readable name for a cluster."""
    name: str
    description: str = ""


@dataclass
class LabelRequest:
    """What the label oracle gets to see about a cluster."""
    centroid_terms: list[str]
    keywords: list[str]
    titles: list[str]
    dominant_domain: str = ""
    dominant_language: str = ""
    taxonomy_tags: list[str] = field(default_factory=list)


@dataclass
class Verdict:
    """Answer from the verifier oracle about two documents."""
    same_topic: bool
    confidence: float = 0.0
    reason: str = ""


@dataclass
class GoldScenario:
    """Hand-labeled partition of a set of urls."""
    name: str
    gold: dict[str, str]
    notes: str = ""


@dataclass
class EvaluationResult:
    """Pairwise and B-cubed agreement between a predicted and a gold partition."""
    n_documents: int
    n_gold_clusters: int
    n_predicted_clusters: int
    true_positives: int
    false_positives: int
    false_negatives: int
    pairwise_precision: float
    pairwise_recall: float
    pairwise_f1: float
    bcubed_precision: float
    bcubed_recall: float
    bcubed_f1: float
    over_merge_rate: float
    under_cluster_rate: float
    purity: float
    cluster_purity: dict[str, float] = field(default_factory=dict)
    scenario: str = ""

    def to_record(self) -> dict[str, Any]:
        """Flat, JSON-compatible view of the metrics."""
        record: dict[str, Any] = {
            "scenario": self.scenario,
            "n_documents": self.n_documents,
            "n_gold_clusters": self.n_gold_clusters,
            "n_predicted_clusters": self.n_predicted_clusters,
            "true_positives": self.true_positives,
            "false_positives": self.false_positives,
            "false_negatives": self.false_negatives,
            "pairwise_precision": self.pairwise_precision,
            "pairwise_recall": self.pairwise_recall,
            "pairwise_f1": self.pairwise_f1,
            "bcubed_precision": self.bcubed_precision,
            "bcubed_recall": self.bcubed_recall,
            "bcubed_f1": self.bcubed_f1,
            "over_merge_rate": self.over_merge_rate,
            "under_cluster_rate": self.under_cluster_rate,
            "purity": self.purity,
        }
        for cluster, value in self.cluster_purity.items():
            record[f"purity[{cluster}]"] = value
        return record
