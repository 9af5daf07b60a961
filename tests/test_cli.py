"""Tests for the command line interface."""

import json

import pytest
from click.testing import CliRunner

from tabcluster.cli import cli
from tabcluster.config import EngineSettings, load_config


@pytest.fixture
def tabs_file(tmp_path, gold_documents):
    entries = [
        {
            "title": doc.title,
            "url": doc.url,
            "language": doc.language,
            "semanticFeatures": {
                "primaryTopic": doc.features.primary_topic,
                "subtopics": doc.features.subtopics,
                "entities": doc.features.entities,
                "docType": doc.features.doc_type,
                "mergeHints": doc.features.merge_hints,
            },
        }
        for doc in gold_documents
    ]
    path = tmp_path / "tabs.json"
    path.write_text(json.dumps(entries))
    return path


@pytest.fixture
def scenario_file(tmp_path, gold_labels):
    path = tmp_path / "gold.json"
    path.write_text(json.dumps({"name": "gold", "tabs": [{"url": u, "gold": g} for u, g in gold_labels.items()]}))
    return path


@pytest.fixture
def run(tmp_path, monkeypatch):
    monkeypatch.delenv("TABCLUSTER_ORACLES", raising=False)
    runner = CliRunner()

    def invoke(*args):
        return runner.invoke(cli, ["-c", str(tmp_path / "none.yaml"), *args])
    return invoke


def test_cluster(run, tabs_file, tmp_path):
    out = tmp_path / "clusters.json"
    result = run("cluster", str(tabs_file), "--no-oracles", "--json", str(out), "--show-links")
    assert result.exit_code == 0, result.output
    assert "6 tab(s)" in result.output
    assert "3 relationship(s)" in result.output
    payload = json.loads(out.read_text())
    assert len(payload["clusters"]) == 3
    assert payload["clusters"][0]["urls"] == [
        "https://bakery.test/recipes/sourdough-starter",
        "https://bakery.test/recipes/feeding-sourdough",
    ]
    assert payload["stats"]["final_clusters"] == 3


def test_cluster_min_size_hides_small_clusters(run, tabs_file):
    result = run("cluster", str(tabs_file), "--no-oracles", "--min-size", "3")
    assert result.exit_code == 0
    assert "3 cluster(s) below --min-size hidden" in result.output


def test_cluster_bad_input(run, tmp_path):
    bad = tmp_path / "tabs.json"
    bad.write_text("[{")
    result = run("cluster", str(bad), "--no-oracles")
    assert result.exit_code == 1
    assert "Cannot parse" in result.output


def test_explain(run, tabs_file):
    result = run("explain", str(tabs_file), "0", "3")
    assert result.exit_code == 0, result.output
    assert "Signals" in result.output
    assert "Score:" in result.output
    assert "joins" in result.output


def test_explain_index_out_of_range(run, tabs_file):
    result = run("explain", str(tabs_file), "0", "9")
    assert result.exit_code == 1
    assert "out of range" in result.output


def test_evaluate(run, tabs_file, scenario_file, tmp_path):
    out = tmp_path / "metrics.json"
    result = run("evaluate", str(scenario_file), str(tabs_file), "--no-oracles", "--json", str(out))
    assert result.exit_code == 0, result.output
    assert "Evaluation: gold" in result.output
    record = json.loads(out.read_text())
    assert record["pairwise_f1"] == 1.0


def test_init(run, tmp_path, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("TABCLUSTER_ORACLES", raising=False)
    target = tmp_path / "conf"
    result = run("init", "--path", str(target))
    assert result.exit_code == 0
    assert (target / "config.yaml").exists()
    written = load_config(target / "config.yaml")
    assert EngineSettings.from_config(written) == EngineSettings()
    assert "!!python" not in (target / "config.yaml").read_text()
    again = run("init", "--path", str(target))
    assert "already exists" in again.output
