"""End-to-end tests for a clustering run."""

from dataclasses import replace

import pytest

from tabcluster.evaluation.scenarios import evaluate_scenario, predictions_from_run
from tabcluster.exceptions import ConfigurationError, OracleError
from tabcluster.models import ClusterLabel, Document, GoldScenario
from tabcluster.oracles.base import LabelOracle, OracleSet
from tabcluster.pipeline import run_pipeline


class TermLabelOracle(LabelOracle):
    def __init__(self):
        self.calls = 0

    def label(self, request):
        self.calls += 1
        return ClusterLabel(name=f"About {request.centroid_terms[0]}", description="oracle")


class BrokenLabelOracle(LabelOracle):
    def label(self, request):
        raise OracleError("label", "malformed response")


class SameNameLabelOracle(LabelOracle):
    def __init__(self):
        self.calls = 0

    def label(self, request):
        self.calls += 1
        return ClusterLabel(name="Kubernetes Operations")


def _partition(run):
    return sorted(tuple(c.vector_indices) for c in run.clusters)


def test_gold_tabs_are_recovered(gold_documents, gold_labels):
    run = run_pipeline(gold_documents)
    assert _partition(run) == [(0, 3), (1, 4), (2, 5)]
    result = evaluate_scenario(GoldScenario(name="gold", gold=gold_labels), run)
    assert result.pairwise_f1 == 1.0
    assert result.bcubed_f1 == pytest.approx(1.0)


def test_clusters_are_named_and_ordered(gold_documents):
    run = run_pipeline(gold_documents)
    assert [c.cluster_id for c in run.clusters] == [0, 1, 2]
    assert [c.vector_indices[0] for c in run.clusters] == [0, 1, 2]
    for cluster in run.clusters:
        assert cluster.name
        assert not cluster.name.lower().startswith("group")
        assert len(cluster.centroid_signature) == 16
    assert run.cluster_of(4).vector_indices == [1, 4]
    assert run.cluster_of(99) is None
    assert run.assignments() == {0: 0, 3: 0, 1: 1, 4: 1, 2: 2, 5: 2}


def test_relationships_follow_clusters(gold_documents):
    run = run_pipeline(gold_documents)
    assert {(r.doc_a, r.doc_b) for r in run.relationships} == {(0, 3), (1, 4), (2, 5)}
    scores = [r.score for r in run.relationships]
    assert scores == sorted(scores, reverse=True)


def test_deterministic(gold_documents):
    first, second = run_pipeline(gold_documents), run_pipeline(gold_documents)
    assert _partition(first) == _partition(second)
    assert [c.name for c in first.clusters] == [c.name for c in second.clusters]
    assert [c.centroid_signature for c in first.clusters] == [c.centroid_signature for c in second.clusters]


def test_no_documents():
    run = run_pipeline([])
    assert run.clusters == []
    assert run.relationships == []
    assert run.stats["final_clusters"] == 0


def test_empty_documents_still_get_a_cluster_each():
    run = run_pipeline([Document(index=0), Document(index=1)])
    assert len(run.clusters) == 2
    assert sorted(i for c in run.clusters for i in c.vector_indices) == [0, 1]
    assert all(c.name for c in run.clusters)


def test_empty_document_among_real_tabs_stays_alone(gold_documents):
    run = run_pipeline(gold_documents + [Document(index=6)])
    assert _partition(run) == [(0, 3), (1, 4), (2, 5), (6,)]
    assert run.cluster_of(6).vector_indices == [6]
    assert run.stats["final_clusters"] == 4


def test_stats(gold_documents):
    stats = run_pipeline(gold_documents).stats
    assert stats["documents"] == 6
    assert stats["final_clusters"] == 3
    assert stats["features_input"] == 6
    assert stats["label_oracle_calls"] == 0
    assert stats["verifier_calls"] == 0
    assert stats["merges_per_round"][-1] == 0
    assert stats["cache_entries"] == 15


def test_label_oracle_names_clusters(gold_documents):
    oracle = TermLabelOracle()
    run = run_pipeline(gold_documents, oracles=OracleSet(label=oracle))
    assert oracle.calls == 3
    assert all(c.name.startswith("About ") for c in run.clusters)
    assert run.stats["label_oracle_calls"] == 3


def test_same_named_clusters_with_close_members_merge(gold_documents):
    documents = [replace(d, embedding=(1.0, 0.0)) for d in gold_documents]
    oracle = SameNameLabelOracle()
    run = run_pipeline(documents, oracles=OracleSet(label=oracle))
    assert _partition(run) == [(0, 1, 2, 3, 4, 5)]
    assert run.clusters[0].name == "Kubernetes Operations"
    assert run.stats["label_merges"] == 1
    assert oracle.calls == 4


def test_same_named_clusters_stay_apart_without_close_members(gold_documents):
    run = run_pipeline(gold_documents, oracles=OracleSet(label=SameNameLabelOracle()))
    assert _partition(run) == [(0, 3), (1, 4), (2, 5)]
    assert run.stats["label_merges"] == 0


def test_label_oracle_failure_falls_back(gold_documents):
    run = run_pipeline(gold_documents, oracles=OracleSet(label=BrokenLabelOracle()))
    assert len(run.clusters) == 3
    assert run.stats["label_fallbacks"] == 3


def test_strict_mode_propagates_oracle_errors(gold_documents):
    with pytest.raises(OracleError):
        run_pipeline(gold_documents, {"oracles": {"strict": True}}, OracleSet(label=BrokenLabelOracle()))


def test_invalid_thresholds_are_rejected(gold_documents):
    with pytest.raises(ConfigurationError):
        run_pipeline(gold_documents, {"clustering": {"join_threshold": 0.30}})


def test_predictions_key_by_url_or_position():
    run = run_pipeline([Document(index=0, url="https://a.test/x"), Document(index=1)])
    predicted = predictions_from_run(run)
    assert set(predicted) == {"https://a.test/x", "#1"}
