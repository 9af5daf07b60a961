"""Human-readable cluster names: label oracle within budget, deterministic fallback otherwise."""

import logging

from ..clustering.stabilize import is_placeholder_name
from ..config import EngineSettings
from ..models import ClusterLabel, ClusterResult, LabelRequest
from ..oracles.base import LabelOracle, OracleGate

logger = logging.getLogger(__name__)


def title_case(tokens: list[str]) -> str:
    words = []
    for token in tokens:
        words.extend(part.capitalize() for part in token.split())
    return " ".join(words)


class Labeler:
    """Names clusters for one run.

    Labels are cached by centroid signature, so a cluster that comes back
    unchanged after a merge pass is not sent to the oracle twice.
    """

    def __init__(self, settings: EngineSettings | None = None, oracle: LabelOracle | None = None):
        self.settings = settings or EngineSettings()
        oracle_settings = self.settings.oracles
        self.gate = OracleGate(oracle, oracle_settings.max_label_calls, oracle_settings.strict)
        self.cache: dict[str, ClusterLabel] = {}
        self.fallbacks = 0

    def fallback_label(self, cluster: ClusterResult) -> ClusterLabel:
        n = self.settings.enrichment.fallback_name_terms
        taxonomy = [tag for tag in cluster.taxonomy_tags if ":" not in tag]
        for source in (cluster.centroid_terms, taxonomy, cluster.keywords):
            if source:
                return ClusterLabel(name=title_case(source[:n]))
        if cluster.dominant_domain:
            return ClusterLabel(name=cluster.dominant_domain)
        return ClusterLabel(name="")

    def request(self, cluster: ClusterResult, titles: list[str]) -> LabelRequest:
        order = cluster.representatives + [i for i in cluster.vector_indices if i not in cluster.representatives]
        return LabelRequest(
            centroid_terms=list(cluster.centroid_terms),
            keywords=list(cluster.keywords),
            titles=[titles[i] for i in order if 0 <= i < len(titles) and titles[i]][:6],
            dominant_domain=cluster.dominant_domain,
            dominant_language=cluster.dominant_language,
            taxonomy_tags=list(cluster.taxonomy_tags),
        )

    def label(self, cluster: ClusterResult, titles: list[str], keep_name: str = "") -> ClusterLabel:
        """Label one cluster. ``keep_name`` wins over the fallback, not over the oracle."""
        signature = cluster.centroid_signature
        if signature and signature in self.cache:
            return self.cache[signature]

        result = None
        if cluster.size >= 2:
            result = self.gate.call("label", self.request(cluster, titles))
        if result is None or not result.name.strip():
            self.fallbacks += 1
            if keep_name and not is_placeholder_name(keep_name):
                result = ClusterLabel(name=keep_name, description=cluster.description)
            else:
                result = self.fallback_label(cluster)
        if signature:
            self.cache[signature] = result
        return result

    def label_clusters(self, clusters: list[ClusterResult], titles: list[str]) -> list[ClusterResult]:
        """Name clusters biggest first; unnamed ones become ``Group N``."""
        ordered = sorted(clusters, key=lambda c: (-c.size, c.vector_indices[0]))
        for position, cluster in enumerate(ordered, 1):
            label = self.label(cluster, titles)
            cluster.name = label.name.strip() or f"Group {position}"
            cluster.description = label.description
        logger.debug(f"Labeled {len(clusters)} clusters, {self.gate.calls} oracle calls, {self.fallbacks} fallbacks")
        return clusters
