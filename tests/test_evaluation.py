"""Tests for partition metrics and gold scenario loading."""

import json

import pytest

from tabcluster.evaluation.metrics import evaluate_partition
from tabcluster.evaluation.scenarios import load_scenario, scenario_from_dict
from tabcluster.exceptions import EvaluationInputError


def test_perfect_partition():
    result = evaluate_partition({"a": "x", "b": "x", "c": "y"}, {"a": "1", "b": "1", "c": "2"})
    assert result.pairwise_precision == 1.0
    assert result.pairwise_recall == 1.0
    assert result.pairwise_f1 == 1.0
    assert result.bcubed_f1 == pytest.approx(1.0)
    assert result.purity == 1.0
    assert result.over_merge_rate == 0.0
    assert result.under_cluster_rate == 0.0


def test_missing_prediction_counts_as_singleton():
    gold = {"a": "x", "b": "x", "c": "y", "d": "y"}
    result = evaluate_partition(gold, {"a": "1", "b": "1", "c": "2"})
    assert (result.true_positives, result.false_positives, result.false_negatives) == (1, 0, 1)
    assert result.pairwise_precision == 1.0
    assert result.pairwise_recall == 0.5
    assert result.n_documents == 4
    assert result.n_gold_clusters == 2
    assert result.n_predicted_clusters == 3


def test_missing_gold_label_counts_as_singleton():
    result = evaluate_partition({"a": "x"}, {"a": "1", "b": "1", "c": "1"})
    assert result.n_gold_clusters == 3
    assert result.n_predicted_clusters == 1
    assert result.false_positives == 3


def test_all_singletons():
    result = evaluate_partition({"a": "x", "b": "x", "c": "x"}, {"a": "1", "b": "2", "c": "3"})
    assert result.pairwise_precision == 0.0
    assert result.pairwise_recall == 0.0
    assert result.pairwise_f1 == 0.0
    assert result.under_cluster_rate == 1.0
    assert result.bcubed_precision == pytest.approx(1.0)
    assert result.bcubed_recall == pytest.approx(1 / 3)


def test_everything_in_one_cluster():
    result = evaluate_partition({"a": "x", "b": "x", "c": "y", "d": "y"}, dict.fromkeys("abcd", "1"))
    assert (result.true_positives, result.false_positives, result.false_negatives) == (2, 4, 0)
    assert result.pairwise_precision == pytest.approx(1 / 3)
    assert result.pairwise_recall == 1.0
    assert result.bcubed_precision == pytest.approx(0.5)
    assert result.bcubed_recall == pytest.approx(1.0)
    assert result.over_merge_rate == pytest.approx(4 / 6)
    assert result.purity == pytest.approx(0.5)
    assert result.cluster_purity == {"1": pytest.approx(0.5)}


def test_no_pairs_anywhere_is_perfect():
    result = evaluate_partition({"a": "x"}, {"a": "1"})
    assert result.pairwise_precision == 1.0
    assert result.pairwise_recall == 1.0


def test_empty_partitions_are_rejected():
    with pytest.raises(EvaluationInputError):
        evaluate_partition({}, {})


def test_record_is_flat():
    record = evaluate_partition({"a": "x", "b": "x"}, {"a": "1", "b": "1"}, scenario="tiny").to_record()
    assert record["scenario"] == "tiny"
    assert record["purity[1]"] == 1.0
    json.dumps(record)


def test_scenario_skips_bad_entries_and_keeps_first_label():
    scenario = scenario_from_dict({
        "name": "mixed",
        "tabs": [
            {"url": "https://a.test", "gold": "x"},
            {"url": "https://a.test", "gold": "y"},
            {"url": "", "gold": "x"},
            {"url": "https://b.test"},
            "https://c.test",
            {"url": "https://d.test", "gold": 7},
        ],
    })
    assert scenario.name == "mixed"
    assert scenario.gold == {"https://a.test": "x", "https://d.test": "7"}


def test_scenario_without_valid_entries():
    with pytest.raises(EvaluationInputError):
        scenario_from_dict({"tabs": [{"url": "https://a.test"}]})
    with pytest.raises(EvaluationInputError):
        scenario_from_dict(["not", "an", "object"])


def test_load_yaml_scenario(tmp_path):
    path = tmp_path / "baking.yaml"
    path.write_text("tabs:\n  - url: https://a.test\n    gold: bread\n  - url: https://b.test\n    gold: bread\n")
    scenario = load_scenario(path)
    assert scenario.name == "baking"
    assert scenario.gold == {"https://a.test": "bread", "https://b.test": "bread"}


def test_load_scenario_errors(tmp_path):
    with pytest.raises(EvaluationInputError):
        load_scenario(tmp_path / "missing.json")
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(EvaluationInputError):
        load_scenario(broken)
