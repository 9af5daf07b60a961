"""Turn documents into feature vectors: token sets, TF-IDF, embedding, simhash."""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from urllib.parse import urlparse

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer

from ..config import EngineSettings
from ..models import Document, FeatureVector, SemanticFeatures
from ..oracles.base import EmbeddingOracle, OracleGate, TopicOracle
from .hashing import hashed_embedding, l2_normalize, simhash
from .taxonomy import TaxonomyRules
from .tokenizer import Tokenizer, without_generic

logger = logging.getLogger(__name__)

CATEGORY_SEGMENTS = frozenset({
    "category", "categories", "tag", "tags", "topic", "topics", "section", "sections",
    "browse", "collections", "collection", "archive", "archives", "list", "explore",
})
DOCS_SEGMENTS = frozenset({
    "docs", "doc", "documentation", "reference", "api", "manual", "guides", "handbook", "wiki",
})


def _identity(tokens: list[str]) -> list[str]:
    return tokens


def normalize_domain(domain: str | None, url: str | None = None) -> str:
    """Lowercased host without a leading ``www.``; derived from the url when missing."""
    host = (domain or "").strip().lower()
    if not host and url:
        try:
            host = (urlparse(url).hostname or "").lower()
        except ValueError:
            host = ""
    return host.removeprefix("www.")


def main_domain_segment(domain: str) -> str:
    parts = [p for p in domain.split(".") if p]
    if len(parts) >= 2:
        return parts[-2]
    return parts[0] if parts else ""


def infer_doc_type(url: str | None) -> str:
    """Guess a page type from the shape of its url path."""
    if not url:
        return ""
    try:
        path = urlparse(url).path
    except ValueError:
        return ""
    segments = [s.lower() for s in path.split("/") if s]
    if not segments or (len(segments) == 1 and len(segments[0]) <= 2):
        return "landing"
    if any(s in CATEGORY_SEGMENTS for s in segments):
        return "category"
    if any(s in DOCS_SEGMENTS for s in segments):
        return "docs"
    return "article"


@dataclass
class FeatureCorpus:
    """Feature vectors for one run plus the shared document-frequency table."""
    vectors: list[FeatureVector]
    document_frequency: dict[str, int]
    semantic: list[SemanticFeatures] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)


class FeatureBuilder:
    """Builds one FeatureVector per document, consulting the optional oracles within budget."""

    def __init__(
        self,
        settings: EngineSettings | None = None,
        topic_oracle: TopicOracle | None = None,
        embedding_oracle: EmbeddingOracle | None = None,
    ):
        self.settings = settings or EngineSettings()
        self.features = self.settings.features
        oracle_settings = self.settings.oracles
        self.tokenizer = Tokenizer(self.features)
        self.taxonomy = TaxonomyRules(self.features.taxonomy_rules, self.features.signal_rules)
        self.topic_gate = OracleGate(topic_oracle, oracle_settings.max_topic_calls, oracle_settings.strict)
        self.embedding_gate = OracleGate(
            embedding_oracle, oracle_settings.max_embedding_calls, oracle_settings.strict
        )

    def topic_hints(self, document: Document) -> list[str]:
        sample = document.content[: self.features.content_sample_chars]
        text = " ".join(p for p in (document.title, document.meta_description, sample) if p)
        return self.tokenizer.meaningful_keywords(text)

    def fallback_features(self, document: Document, hints: list[str], domain: str) -> SemanticFeatures:
        primary_topic = document.source_topic.strip()
        if not primary_topic and hints:
            primary_topic = " ".join(hints[:3])
        if not primary_topic:
            primary_topic = main_domain_segment(domain)
        doc_type = infer_doc_type(document.url)
        return SemanticFeatures(
            primary_topic=primary_topic,
            subtopics=list(hints[:6]),
            entities=[],
            doc_type=doc_type,
            is_generic_landing=doc_type == "landing",
            merge_hints=[],
            summary_bullets=list(document.summary_bullets),
            origin="fallback",
        )

    def semantic_features(self, document: Document, hints: list[str], domain: str) -> SemanticFeatures:
        if document.features is not None:
            return document.features
        if len(document.content) > self.settings.oracles.min_topic_content_chars:
            result = self.topic_gate.call("features", document)
            if result is not None:
                return result
        return self.fallback_features(document, hints, domain)

    def embedding(self, document: Document, semantic: SemanticFeatures, hints: list[str]) -> tuple[np.ndarray, bool]:
        """Return the normalized embedding and whether it came from outside the fallback."""
        if document.embedding is not None:
            vector = l2_normalize(document.embedding)
            if vector is not None:
                return vector, True

        oracle_settings = self.settings.oracles
        eligible = (
            len(document.content) >= oracle_settings.min_embedding_content_chars
            or len(semantic.primary_topic) >= 8
        )
        if eligible and self.embedding_gate.available:
            result = self.embedding_gate.call("embed", document)
            vector = l2_normalize(result) if result is not None else None
            if vector is not None:
                return vector, True

        tokens = self.tokenizer.tokenize(document.title)
        tokens += self.tokenizer.tokenize(semantic.primary_topic)
        tokens += self.tokenizer.tokenize_many(semantic.subtopics)
        tokens += self.tokenizer.tokenize(document.meta_description)
        tokens += hints
        tokens += self.tokenizer.tokenize(document.source_topic)
        tokens += self.tokenizer.tokenize_many(document.tags)
        return hashed_embedding(tokens, self.features.embedding_dim, self.features.embedding_max_tokens), False

    def build(self, documents: list[Document]) -> FeatureCorpus:
        tok = self.tokenizer
        stats: Counter = Counter()
        partial = []
        semantic_features: list[SemanticFeatures] = []
        streams: list[list[str]] = []

        for document in documents:
            domain = normalize_domain(document.domain, document.url)
            hints = self.topic_hints(document)
            semantic = self.semantic_features(document, hints, domain)
            stats[f"features_{semantic.origin}"] += 1
            embedding, external = self.embedding(document, semantic, hints)
            stats["embedding_external" if external else "embedding_fallback"] += 1

            taxonomy_tags = self.taxonomy.infer(
                domain,
                document.url,
                [document.title, *hints, *document.meta_keywords, *semantic.subtopics, semantic.primary_topic],
                source_topic=document.source_topic,
                channel=document.channel,
            )
            title_tokens = tok.tokenize(document.title)
            path_tokens = tok.url_path_tokens(document.url)
            tag_tokens = tok.tokenize_many(document.tags)
            meta_keyword_tokens = tok.tokenize_many(document.meta_keywords)
            heading_tokens = tok.tokenize_many(document.headings)
            entity_tokens = tok.tokenize_many(semantic.entities)
            taxonomy_tokens = tok.tokenize_many(taxonomy_tags)
            primary_tokens = tok.tokenize(semantic.primary_topic)
            hint_tokens = tok.tokenize_many(semantic.merge_hints)
            subtopic_tokens = tok.tokenize_many(semantic.subtopics)

            keywords = without_generic(
                title_tokens
                + tok.tokenize(document.meta_description)
                + heading_tokens
                + meta_keyword_tokens
                + hints
                + primary_tokens
                + hint_tokens
                + subtopic_tokens
                + entity_tokens
                + tok.tokenize_many(semantic.summary_bullets)
                + tok.tokenize_many(document.summary_bullets)
                + tag_tokens
                + taxonomy_tokens
            )

            stream = (
                tok.tokenize(document.content[: self.features.content_sample_chars])
                + hints
                + title_tokens
                + path_tokens
                + tag_tokens
                + meta_keyword_tokens
                + heading_tokens
                + entity_tokens
                + taxonomy_tokens
            )[: self.features.token_budget]
            streams.append(stream)

            channel = document.channel.strip().lower()
            language = document.language.strip().lower().split("-")[0]
            partial.append(dict(
                document_index=document.index,
                keyword_tokens=frozenset(keywords),
                title_tokens=frozenset(title_tokens),
                path_tokens=frozenset(path_tokens),
                topic_tokens=frozenset(without_generic(primary_tokens + subtopic_tokens + hints)),
                taxonomy_tags=frozenset(taxonomy_tags),
                domain_tokens=frozenset(tok.domain_tokens(domain)),
                embedding=embedding,
                simhash=simhash(keywords, self.features.simhash_bits),
                domain=domain,
                language=language,
                primary_topic=semantic.primary_topic.strip().lower(),
                primary_topic_tokens=frozenset(primary_tokens),
                doc_type=semantic.doc_type.strip().lower(),
                merge_hint_tokens=frozenset(without_generic(hint_tokens)),
                entities=frozenset(e.strip().lower() for e in semantic.entities if e.strip()),
                generic_landing=bool(semantic.is_generic_landing),
                channel=channel,
                source_topic=document.source_topic.strip().lower(),
                identity_key=f"{domain}|{channel}" if channel else "",
                features_origin=semantic.origin,
            ))
            semantic_features.append(semantic)

        weights, document_frequency = self._tfidf(streams)
        vectors = []
        for index, values in enumerate(partial):
            tfidf = weights[index]
            vectors.append(FeatureVector(
                index=index,
                tfidf=tfidf,
                tfidf_norm=math.sqrt(sum(v * v for v in tfidf.values())),
                **values,
            ))

        stats["topic_oracle_calls"] = self.topic_gate.calls
        stats["topic_oracle_failures"] = self.topic_gate.failures
        stats["embedding_oracle_calls"] = self.embedding_gate.calls
        stats["embedding_oracle_failures"] = self.embedding_gate.failures
        if stats["features_fallback"]:
            logger.info(f"Fallback semantic features for {stats['features_fallback']}/{len(documents)} documents")
        logger.debug(f"Built {len(vectors)} feature vectors, vocabulary of {len(document_frequency)} terms")
        return FeatureCorpus(vectors, document_frequency, semantic_features, dict(stats))

    @staticmethod
    def _tfidf(streams: list[list[str]]) -> tuple[list[dict[str, float]], dict[str, int]]:
        """Per-document TF-IDF maps, with tf = count / stream length and smoothed idf."""
        document_frequency: Counter = Counter()
        for stream in streams:
            document_frequency.update(set(stream))
        if not document_frequency:
            return [{} for _ in streams], {}

        vectorizer = TfidfVectorizer(analyzer=_identity, smooth_idf=True, norm=None)
        matrix = vectorizer.fit_transform(streams).tocsr()
        terms = vectorizer.get_feature_names_out()
        weights = []
        for row, stream in enumerate(streams):
            start, end = matrix.indptr[row], matrix.indptr[row + 1]
            length = len(stream)
            weights.append({
                str(terms[col]): float(value) / length
                for col, value in zip(matrix.indices[start:end], matrix.data[start:end])
            })
        return weights, dict(document_frequency)
