"""Tests for the Claude oracles and the call gate, with a stubbed client."""

from types import SimpleNamespace

import anthropic
import httpx
import pytest

from tabcluster.exceptions import OracleError, OracleTimeout
from tabcluster.models import Document, LabelRequest
from tabcluster.oracles.base import OracleGate
from tabcluster.oracles.claude import (
    ClaudeLabelOracle,
    ClaudeTopicOracle,
    ClaudeVerifierOracle,
    _parse_json_response,
)

CONFIG = {"claude_api_key": "sk-test"}


class StubMessages:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts = []

    def create(self, model, max_tokens, messages):
        self.prompts.append(messages[0]["content"])
        if self.error:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


def _stubbed(cls, text=None, error=None):
    oracle = cls(CONFIG)
    oracle.client = SimpleNamespace(messages=StubMessages(text, error))
    return oracle


def test_parse_json_response():
    assert _parse_json_response('{"name": "x"}') == {"name": "x"}
    assert _parse_json_response('Sure:\n```json\n{"name": "x"}\n```') == {"name": "x"}
    assert _parse_json_response('Here you go {"name": "x"} hope it helps') == {"name": "x"}
    assert _parse_json_response("[1, 2]") is None
    assert _parse_json_response("no json here") is None


def test_topic_oracle():
    oracle = _stubbed(ClaudeTopicOracle, '{"primary_topic": "Sourdough", "subtopics": "starters", "doc_type": "Article"}')
    features = oracle.features(Document(index=0, title="Sourdough", content="flour and water"))
    assert features.primary_topic == "Sourdough"
    assert features.subtopics == ["starters"]
    assert features.doc_type == "article"
    assert features.origin == "oracle"
    assert "flour and water" in oracle.client.messages.prompts[0]


def test_topic_oracle_without_topic():
    oracle = _stubbed(ClaudeTopicOracle, '{"subtopics": []}')
    with pytest.raises(OracleError):
        oracle.features(Document(index=0))


def test_label_oracle():
    oracle = _stubbed(ClaudeLabelOracle, '{"name": "\\"Sourdough Baking\\"", "description": "Bread at home"}')
    label = oracle.label(LabelRequest(centroid_terms=["sourdough"], keywords=[], titles=["Starter guide"]))
    assert label.name == "Sourdough Baking"
    assert label.description == "Bread at home"
    assert "Starter guide" in oracle.client.messages.prompts[0]


def test_verifier_oracle_clamps_confidence():
    oracle = _stubbed(ClaudeVerifierOracle, '{"same_topic": true, "confidence": 3, "reason": "both bread"}')
    verdict = oracle.verify("a", "b")
    assert verdict.same_topic
    assert verdict.confidence == 1.0


def test_verifier_oracle_reads_string_booleans():
    oracle = _stubbed(ClaudeVerifierOracle, '{"same_topic": "false", "confidence": 0.9}')
    assert not oracle.verify("a", "b").same_topic

    oracle = _stubbed(ClaudeVerifierOracle, '{"same_topic": "TRUE", "confidence": 0.9}')
    assert oracle.verify("a", "b").same_topic


def test_topic_oracle_reads_string_booleans():
    oracle = _stubbed(ClaudeTopicOracle, '{"primary_topic": "News", "is_generic_landing": "false"}')
    assert not oracle.features(Document(index=0, title="Front page")).is_generic_landing


def test_unparseable_response():
    oracle = _stubbed(ClaudeVerifierOracle, "I cannot tell")
    with pytest.raises(OracleError):
        oracle.verify("a", "b")


def test_api_timeout_disables_the_oracle():
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    oracle = _stubbed(ClaudeVerifierOracle, error=anthropic.APITimeoutError(request=request))
    with pytest.raises(OracleTimeout):
        oracle.verify("a", "b")

    gate = OracleGate(oracle)
    assert gate.call("verify", "a", "b") is None
    assert gate.disabled
    assert not gate.available
    assert gate.call("verify", "a", "b") is None
    assert len(oracle.client.messages.prompts) == 2


def test_gate_budget():
    oracle = _stubbed(ClaudeVerifierOracle, '{"same_topic": false}')
    gate = OracleGate(oracle, limit=2)
    results = [gate.call("verify", "a", "b") for _ in range(3)]
    assert results[2] is None
    assert gate.calls == 2
    assert not results[0].same_topic
