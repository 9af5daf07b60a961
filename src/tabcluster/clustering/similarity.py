"""Weighted multi-signal similarity between feature vectors, and its per-run cache."""

import logging
import math
from typing import AbstractSet

import numpy as np

from ..config import Penalties, SimilarityWeights
from ..exceptions import InvariantViolation
from ..features.hashing import simhash_similarity
from ..models import BorderlinePair, FeatureVector

logger = logging.getLogger(__name__)

_TOLERANCE = 1e-9


def jaccard(a: AbstractSet[str], b: AbstractSet[str]) -> float:
    if not a or not b:
        return 0.0
    intersection = len(a & b)
    return intersection / (len(a) + len(b) - intersection)


def normalized_overlap(a: AbstractSet[str], b: AbstractSet[str]) -> float:
    """Intersection size relative to the smaller set."""
    if not a or not b:
        return 0.0
    return len(a & b) / min(len(a), len(b))


def tfidf_cosine(a: FeatureVector, b: FeatureVector) -> float:
    if not a.tfidf or not b.tfidf or a.tfidf_norm == 0.0 or b.tfidf_norm == 0.0:
        return 0.0
    # Sorted so the float sum is identical for (a, b) and (b, a).
    dot = sum(a.tfidf[t] * b.tfidf[t] for t in sorted(a.tfidf.keys() & b.tfidf.keys()))
    return dot / (a.tfidf_norm * b.tfidf_norm)


def embedding_cosine(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine of two embeddings, clamped at 0. Mismatched or zero vectors give 0."""
    if a.shape != b.shape or a.size == 0:
        return 0.0
    norm = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return max(0.0, float(np.dot(a, b)) / norm)


def borderline_signals(a: FeatureVector, b: FeatureVector, score: float, bits: int = 32) -> BorderlinePair:
    return BorderlinePair(
        i=a.index,
        j=b.index,
        score=score,
        same_domain=bool(a.domain) and a.domain == b.domain,
        merge_hint_overlap=normalized_overlap(a.merge_hint_tokens, b.merge_hint_tokens),
        primary_topic_overlap=normalized_overlap(a.primary_topic_tokens, b.primary_topic_tokens),
        taxonomy_overlap=normalized_overlap(a.taxonomy_tags, b.taxonomy_tags),
        simhash_similarity=simhash_similarity(a.simhash, b.simhash, bits),
        embedding_cosine=embedding_cosine(a.embedding, b.embedding),
    )


class SimilarityScorer:
    """Scores a pair of feature vectors in [0, 1].

    The raw score is the weighted sum of the sub-signals plus an identity bonus
    for tabs from the same channel or topic, multiplied by the applicable
    penalties and clamped.
    """

    def __init__(
        self,
        weights: SimilarityWeights | None = None,
        penalties: Penalties | None = None,
        strict_invariants: bool = False,
        simhash_bits: int = 32,
    ):
        self.weights = (weights or SimilarityWeights()).as_dict()
        self.penalties = penalties or Penalties()
        self.strict_invariants = strict_invariants
        self.simhash_bits = simhash_bits

    def components(self, a: FeatureVector, b: FeatureVector) -> dict[str, float]:
        return {
            "keyword": jaccard(a.keyword_tokens, b.keyword_tokens),
            "topic": jaccard(a.topic_tokens, b.topic_tokens),
            "title": jaccard(a.title_tokens, b.title_tokens),
            "tfidf": tfidf_cosine(a, b),
            "embedding": embedding_cosine(a.embedding, b.embedding),
            "simhash": simhash_similarity(a.simhash, b.simhash, self.simhash_bits),
            "taxonomy": normalized_overlap(a.taxonomy_tags, b.taxonomy_tags),
            "url_path": jaccard(a.path_tokens, b.path_tokens),
            "domain": 1.0 if a.domain and a.domain == b.domain else 0.0,
            "domain_tokens": jaccard(a.domain_tokens, b.domain_tokens),
            "language": 1.0 if a.language and a.language == b.language else 0.0,
            "merge_hints": jaccard(a.merge_hint_tokens, b.merge_hint_tokens),
            "doc_type": 1.0 if a.doc_type and a.doc_type == b.doc_type else 0.0,
            "entities": normalized_overlap(a.entities, b.entities),
            "primary_topic": normalized_overlap(a.primary_topic_tokens, b.primary_topic_tokens),
        }

    def identity_bonus(self, a: FeatureVector, b: FeatureVector) -> float:
        if a.source_topic and a.source_topic == b.source_topic:
            return self.penalties.identity_bonus
        if a.identity_key and a.identity_key == b.identity_key:
            return self.penalties.identity_bonus
        return 0.0

    def penalty_factors(
        self, a: FeatureVector, b: FeatureVector, components: dict[str, float] | None = None
    ) -> dict[str, float]:
        """Multipliers that apply to this pair, in the order they are applied."""
        p = self.penalties
        components = components or self.components(a, b)
        factors: dict[str, float] = {}
        if a.language and b.language and a.language != b.language:
            factors["language_mismatch"] = p.language_mismatch
        if a.generic_landing and b.generic_landing:
            factors["generic_landing"] = p.generic_landing_both
        elif a.generic_landing or b.generic_landing:
            factors["generic_landing"] = p.generic_landing_one
        if (
            a.entities
            and b.entities
            and not (a.entities & b.entities)
            and not (a.doc_type == "article" and b.doc_type == "article")
        ):
            factors["entity_mismatch"] = p.entity_mismatch
        if (
            a.primary_topic_tokens
            and b.primary_topic_tokens
            and components["primary_topic"] == 0.0
            and components["topic"] < p.topic_token_floor
        ):
            factors["topic_mismatch"] = p.topic_mismatch
        return factors

    def _check(self, name: str, value: float, a: FeatureVector, b: FeatureVector) -> float:
        if math.isfinite(value) and -_TOLERANCE <= value <= 1.0 + _TOLERANCE:
            return min(1.0, max(0.0, value))
        message = f"{name} signal out of range for pair ({a.index}, {b.index}): {value!r}"
        if self.strict_invariants:
            raise InvariantViolation(message)
        logger.warning(f"{message}, clamping")
        return min(1.0, max(0.0, value)) if math.isfinite(value) else 0.0

    def score(self, a: FeatureVector, b: FeatureVector) -> float:
        components = self.components(a, b)
        raw = 0.0
        for name, weight in self.weights.items():
            raw += weight * self._check(name, components[name], a, b)
        raw += self.identity_bonus(a, b)
        for factor in self.penalty_factors(a, b, components).values():
            raw *= factor
        if not math.isfinite(raw):
            return self._check("score", raw, a, b)
        return min(1.0, max(0.0, raw))


class SimilarityCache:
    """Pairwise scores memoized by unordered pair for one run.

    An entry is written once and never overwritten.
    """

    def __init__(self, vectors: list[FeatureVector], scorer: SimilarityScorer):
        self.vectors = vectors
        self.scorer = scorer
        self._scores: dict[tuple[int, int], float] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._scores)

    def __contains__(self, pair: tuple[int, int]) -> bool:
        i, j = pair
        return (min(i, j), max(i, j)) in self._scores

    def get(self, i: int, j: int) -> float:
        key = (i, j) if i <= j else (j, i)
        score = self._scores.get(key)
        if score is not None:
            self.hits += 1
            return score
        self.misses += 1
        score = self.scorer.score(self.vectors[key[0]], self.vectors[key[1]])
        self._scores[key] = score
        return score

    def best_between(self, members_a: list[int], members_b: list[int]) -> float:
        """Highest cached score between any member of one group and any member of the other."""
        best = 0.0
        for i in members_a:
            for j in members_b:
                if i != j:
                    best = max(best, self.get(i, j))
        return best

    def best_affinity(self, members_a: list[int], members_b: list[int]) -> float:
        """Highest TF-IDF or embedding cosine between any member of one group and any of the other.

        Not memoized; it is only consulted for cluster pairs that already share a name.
        """
        best = 0.0
        for i in members_a:
            for j in members_b:
                if i == j:
                    continue
                a, b = self.vectors[i], self.vectors[j]
                best = max(best, tfidf_cosine(a, b), embedding_cosine(a.embedding, b.embedding))
        return best

    def borderline(self, i: int, j: int) -> BorderlinePair:
        return borderline_signals(self.vectors[i], self.vectors[j], self.get(i, j), self.scorer.simhash_bits)
