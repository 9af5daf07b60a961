"""Abstract oracle interfaces, the per-run call gate and the factory function."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..exceptions import ConfigurationError, OracleError, OracleTimeout
from ..models import ClusterLabel, Document, LabelRequest, SemanticFeatures, Verdict

logger = logging.getLogger(__name__)


class TopicOracle(ABC):
    """Describes a document at topic level."""

    name = "topic"

    @abstractmethod
    def features(self, document: Document) -> SemanticFeatures:
        """Return semantic features, or raise OracleError."""


class EmbeddingOracle(ABC):
    """Produces a dense vector for a document."""

    name = "embedding"

    @abstractmethod
    def embed(self, document: Document) -> list[float]:
        """Return an embedding, or raise OracleError."""


class LabelOracle(ABC):
    """Names a cluster."""

    name = "label"

    @abstractmethod
    def label(self, request: LabelRequest) -> ClusterLabel:
        """Return a label, or raise OracleError."""


class VerifierOracle(ABC):
    """Decides whether two short summaries are about the same topic."""

    name = "verifier"

    @abstractmethod
    def verify(self, summary_a: str, summary_b: str) -> Verdict:
        """Return a verdict, or raise OracleError."""


@dataclass
class OracleSet:
    topic: TopicOracle | None = None
    embedding: EmbeddingOracle | None = None
    label: LabelOracle | None = None
    verifier: VerifierOracle | None = None

    def configured(self) -> list[str]:
        return [role for role in ("topic", "embedding", "label", "verifier") if getattr(self, role) is not None]


class OracleGate:
    """Wraps one oracle for one run: call budget, strict mode, disable on timeout.

    ``call`` returns None whenever the caller should use its fallback.
    """

    def __init__(self, oracle: Any, limit: int | None = None, strict: bool = False):
        self.oracle = oracle
        self.limit = limit
        self.strict = strict
        self.calls = 0
        self.failures = 0
        self.disabled = False

    @property
    def available(self) -> bool:
        if self.oracle is None or self.disabled:
            return False
        return self.limit is None or self.calls < self.limit

    def call(self, method: str, *args: Any) -> Any:
        if not self.available:
            return None
        self.calls += 1
        name = getattr(self.oracle, "name", type(self.oracle).__name__)
        try:
            return getattr(self.oracle, method)(*args)
        except OracleTimeout as e:
            self.failures += 1
            self.disabled = True
            logger.warning(f"{name} oracle timed out, disabled for the rest of the run: {e}")
            return None
        except OracleError as e:
            self.failures += 1
            if self.strict:
                raise
            logger.info(f"{name} oracle failed, using fallback: {e}")
            return None


def get_oracles(config: dict[str, Any]) -> OracleSet:
    """Factory: build the configured oracles. ``none`` leaves a role empty."""
    oracle_cfg = config.get("oracles", {})
    timeout = float(oracle_cfg.get("timeout", 10.0))
    oracles = OracleSet()

    for role in ("topic", "label", "verifier"):
        backend = oracle_cfg.get(role, "none")
        if backend == "none":
            continue
        elif backend == "claude":
            from .claude import ClaudeLabelOracle, ClaudeTopicOracle, ClaudeVerifierOracle
            cls = {"topic": ClaudeTopicOracle, "label": ClaudeLabelOracle, "verifier": ClaudeVerifierOracle}[role]
            setattr(oracles, role, cls(config, timeout=timeout))
        else:
            raise ConfigurationError(f"Unknown {role} oracle backend: {backend}")

    backend = oracle_cfg.get("embedding", "none")
    if backend == "sentence-transformers":
        from .embedder import SentenceTransformerEmbeddingOracle
        oracles.embedding = SentenceTransformerEmbeddingOracle(config)
    elif backend != "none":
        raise ConfigurationError(f"Unknown embedding oracle backend: {backend}")

    return oracles
