"""Configuration management for tabcluster."""

import copy
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


DEFAULT_TAXONOMY_RULES = [
    {"match": r"youtube\.com|youtu\.be", "tags": ["media", "video", "youtube"]},
    {"match": r"news|cnn|bbc|reuters|guardian", "tags": ["news", "media"]},
    {"match": r"wikipedia\.org", "tags": ["reference", "encyclopedia"]},
    {"match": r"github\.com", "tags": ["software", "development", "github"]},
    {"match": r"stackoverflow\.com", "tags": ["software", "programming", "questions"]},
    {"match": r"futbin\.com|fut\.gg|ea\.com/fc|fifa", "tags": ["gaming", "fifa ultimate team"]},
    {"match": r"nature\.com", "tags": ["medical research", "science", "journal"]},
    {"match": r"nejm\.org", "tags": ["medical research", "clinical medicine", "journal"]},
    {"match": r"pubmed\.ncbi\.nlm\.nih\.gov|nih\.gov|medscape", "tags": ["medical research", "healthcare"]},
    {"match": r"chrome\.developers|developer\.chrome\.com|chromium\.org", "tags": ["software", "chrome", "web platform"]},
    {"match": r"gmail\.com|mail\.google\.com|outlook\.com", "tags": ["email", "communications"]},
    {"match": r"amazon\.|ebay\.|shop|store", "tags": ["commerce", "shopping"]},
    {"match": r"docs\.google\.com|notion\.so|drive\.google\.com", "tags": ["productivity", "documents"]},
]

DEFAULT_SIGNAL_RULES = [
    {"match": r"medical|clinical", "tags": ["medical research"]},
    {"match": r"research", "tags": ["research"]},
    {"match": r"iphone|apple", "tags": ["apple", "technology"]},
    {"match": r"chrome|extension", "tags": ["chrome", "browser"]},
    {"match": r"fifa|ultimate team|fc 26", "tags": ["fifa ultimate team", "gaming"]},
    {"match": r"news", "tags": ["news"]},
    {"match": r"finance|market", "tags": ["finance"]},
]


@dataclass(frozen=True)
class BorderlineRule:
    """Secondary corroboration for pairs between the split and join thresholds."""
    merge_hint_overlap: float = 0.35
    primary_topic_overlap: float = 0.55
    taxonomy_overlap: float = 0.35
    simhash: float = 0.62
    embedding: float = 0.68


@dataclass(frozen=True)
class Thresholds:
    join_threshold: float = 0.42
    split_threshold: float = 0.35
    cross_group_threshold: float = 0.40
    cross_group_keyword_overlap: float = 0.25
    cross_group_topic_overlap: float = 0.30
    cross_group_taxonomy_overlap: float = 0.35
    taxonomy_support_floor: float = 0.35
    small_cluster_max_size: int = 3
    name_similarity_threshold: float = 0.62
    name_vector_threshold: float = 0.50
    verifier_floor: float = 0.28
    verifier_min_confidence: float = 0.6
    borderline: BorderlineRule = field(default_factory=BorderlineRule)


@dataclass(frozen=True)
class SimilarityWeights:
    keyword: float = 0.12
    topic: float = 0.17
    title: float = 0.06
    tfidf: float = 0.08
    embedding: float = 0.14
    simhash: float = 0.05
    taxonomy: float = 0.07
    url_path: float = 0.04
    domain: float = 0.03
    domain_tokens: float = 0.02
    language: float = 0.02
    merge_hints: float = 0.07
    doc_type: float = 0.04
    entities: float = 0.04
    primary_topic: float = 0.05

    def as_dict(self) -> dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class Penalties:
    identity_bonus: float = 0.03
    language_mismatch: float = 0.85
    generic_landing_one: float = 0.85
    generic_landing_both: float = 0.70
    entity_mismatch: float = 0.85
    topic_mismatch: float = 0.80
    topic_token_floor: float = 0.20


@dataclass(frozen=True)
class FeatureSettings:
    min_token_length: int = 3
    min_stem_length: int = 4
    extra_alphabet: str = "α-ωάέίήύόώϊϋΐΰ"
    extra_stopwords: tuple[str, ...] = ()
    topic_hint_limit: int = 8
    content_sample_chars: int = 2000
    token_budget: int = 1200
    embedding_dim: int = 64
    embedding_max_tokens: int = 48
    simhash_bits: int = 32
    taxonomy_rules: tuple[dict, ...] = tuple(DEFAULT_TAXONOMY_RULES)
    signal_rules: tuple[dict, ...] = tuple(DEFAULT_SIGNAL_RULES)


@dataclass(frozen=True)
class EnrichmentSettings:
    centroid_terms: int = 24
    top_k: int = 10
    representatives: int = 2
    signature_centroid_terms: int = 8
    signature_keywords: int = 6
    fallback_name_terms: int = 3


@dataclass(frozen=True)
class OracleSettings:
    topic: str = "none"
    embedding: str = "none"
    label: str = "none"
    verifier: str = "none"
    strict: bool = False
    timeout: float = 10.0
    max_topic_calls: int = 6
    max_embedding_calls: int = 12
    max_label_calls: int = 5
    min_topic_content_chars: int = 200
    min_embedding_content_chars: int = 160


@dataclass(frozen=True)
class EngineSettings:
    """Typed view over the configuration dict, built once per run."""
    thresholds: Thresholds = field(default_factory=Thresholds)
    weights: SimilarityWeights = field(default_factory=SimilarityWeights)
    penalties: Penalties = field(default_factory=Penalties)
    features: FeatureSettings = field(default_factory=FeatureSettings)
    enrichment: EnrichmentSettings = field(default_factory=EnrichmentSettings)
    oracles: OracleSettings = field(default_factory=OracleSettings)
    strict_invariants: bool = False

    @classmethod
    def from_config(cls, config: dict[str, Any] | None = None) -> "EngineSettings":
        config = config or DEFAULT_CONFIG
        clustering = dict(config.get("clustering", {}))
        borderline = _build(BorderlineRule, clustering.pop("borderline", None), "clustering.borderline")
        thresholds = _build(Thresholds, clustering, "clustering")
        thresholds = replace(thresholds, borderline=borderline)
        if thresholds.join_threshold <= thresholds.split_threshold:
            raise ConfigurationError(
                f"join_threshold ({thresholds.join_threshold}) must be above "
                f"split_threshold ({thresholds.split_threshold})"
            )

        feature_values = dict(config.get("features", {}))
        feature_values["extra_stopwords"] = tuple(feature_values.get("extra_stopwords") or ())
        feature_values["taxonomy_rules"] = tuple(config.get("taxonomy_rules", DEFAULT_TAXONOMY_RULES))
        feature_values["signal_rules"] = tuple(config.get("signal_rules", DEFAULT_SIGNAL_RULES))

        return cls(
            thresholds=thresholds,
            weights=_build(SimilarityWeights, config.get("weights"), "weights"),
            penalties=_build(Penalties, config.get("penalties"), "penalties"),
            features=_build(FeatureSettings, feature_values, "features"),
            enrichment=_build(EnrichmentSettings, config.get("enrichment"), "enrichment"),
            oracles=_build(OracleSettings, config.get("oracles"), "oracles"),
            strict_invariants=bool(config.get("strict_invariants", False)),
        )


def _section(settings, exclude: tuple[str, ...] = ()) -> dict[str, Any]:
    """Plain YAML-friendly dict of a settings dataclass."""
    values = asdict(settings)
    for key in exclude:
        values.pop(key)
    return {k: list(v) if isinstance(v, tuple) else v for k, v in values.items()}


DEFAULT_CONFIG = {
    "claude_model": "claude-sonnet-4-20250514",
    "embedding_model": "intfloat/e5-large-v2",
    "strict_invariants": False,
    "clustering": _section(Thresholds()),
    "weights": _section(SimilarityWeights()),
    "penalties": _section(Penalties()),
    "features": _section(FeatureSettings(), exclude=("taxonomy_rules", "signal_rules")),
    "enrichment": _section(EnrichmentSettings()),
    "oracles": _section(OracleSettings()),
    "taxonomy_rules": DEFAULT_TAXONOMY_RULES,
    "signal_rules": DEFAULT_SIGNAL_RULES,
}


def _find_config_file() -> Path | None:
    """Look for a config file in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "tabcluster.yaml",
        Path.home() / ".tabcluster" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        with open(path, encoding="utf-8") as f:
            file_cfg = yaml.safe_load(f) or {}
        _deep_merge(cfg, file_cfg)

    # Env overrides
    if api_key := os.environ.get("ANTHROPIC_API_KEY"):
        cfg["claude_api_key"] = api_key
    if backend := os.environ.get("TABCLUSTER_ORACLES"):
        for role in ("topic", "label", "verifier"):
            cfg["oracles"][role] = backend
        if backend == "none":
            cfg["oracles"]["embedding"] = "none"

    return cfg


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v


def _build(cls, values: dict[str, Any] | None, section: str):
    values = dict(values or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"Unknown {section} setting(s): {', '.join(unknown)}")
    return cls(**values)


