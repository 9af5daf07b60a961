"""Claude-backed topic, label and verifier oracles."""

import json
import re
from typing import Any

from ..enrichment.prompts import CLUSTER_LABEL_PROMPT, SAME_TOPIC_PROMPT, TOPIC_FEATURES_PROMPT
from ..exceptions import ConfigurationError, OracleError, OracleTimeout
from ..models import ClusterLabel, Document, LabelRequest, SemanticFeatures, Verdict
from .base import LabelOracle, TopicOracle, VerifierOracle


def _parse_json_response(text: str) -> dict | None:
    """Extract JSON from Claude's response, handling markdown code blocks."""
    text = text.strip()
    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    # Try extracting from ```json ... ``` or ``` ... ```
    match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
    if match:
        try:
            parsed = json.loads(match.group(1).strip())
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            pass

    # Try finding first { ... } block
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        try:
            parsed = json.loads(match.group(0))
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            pass
    return None


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def _flag(value: Any) -> bool:
    """JSON booleans, or the strings models sometimes send instead."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


class _ClaudeOracle:
    """Shared client handling. One request per call, no retries."""

    max_tokens = 600

    def __init__(self, config: dict[str, Any], timeout: float = 10.0):
        api_key = config.get("claude_api_key")
        if not api_key:
            raise ConfigurationError(
                "Claude API key required for the claude oracles. Set ANTHROPIC_API_KEY or claude_api_key in config."
            )

        import anthropic
        self._anthropic = anthropic
        self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = config.get("claude_model", "claude-sonnet-4-20250514")

    def _ask(self, prompt: str) -> dict:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except self._anthropic.APITimeoutError as e:
            raise OracleTimeout(self.name, str(e)) from e
        except self._anthropic.APIError as e:
            raise OracleError(self.name, str(e)) from e

        text = "".join(getattr(block, "text", "") for block in response.content)
        result = _parse_json_response(text)
        if result is None:
            raise OracleError(self.name, f"unparseable response: {text[:100]!r}")
        return result


class ClaudeTopicOracle(_ClaudeOracle, TopicOracle):
    def features(self, document: Document) -> SemanticFeatures:
        prompt = TOPIC_FEATURES_PROMPT.format(
            title=document.title,
            url=document.url,
            description=document.meta_description,
            content=document.content[:2000],
        )
        result = self._ask(prompt)
        primary_topic = str(result.get("primary_topic") or "").strip()
        if not primary_topic:
            raise OracleError(self.name, "response without primary_topic")
        return SemanticFeatures(
            primary_topic=primary_topic,
            subtopics=_string_list(result.get("subtopics")),
            entities=_string_list(result.get("entities")),
            doc_type=str(result.get("doc_type") or "").strip().lower(),
            is_generic_landing=_flag(result.get("is_generic_landing")),
            merge_hints=_string_list(result.get("merge_hints")),
            summary_bullets=_string_list(result.get("summary_bullets")),
            origin="oracle",
        )


class ClaudeLabelOracle(_ClaudeOracle, LabelOracle):
    max_tokens = 300

    def label(self, request: LabelRequest) -> ClusterLabel:
        prompt = CLUSTER_LABEL_PROMPT.format(
            centroid_terms=", ".join(request.centroid_terms[:12]) or "(none)",
            keywords=", ".join(request.keywords[:12]) or "(none)",
            domain=request.dominant_domain or "(mixed)",
            language=request.dominant_language or "(unknown)",
            taxonomy=", ".join(request.taxonomy_tags[:8]) or "(none)",
            titles="\n".join(f"- {t}" for t in request.titles[:6]),
        )
        result = self._ask(prompt)
        name = str(result.get("name") or result.get("label") or "").strip().strip('"')
        if not name:
            raise OracleError(self.name, "response without a name")
        return ClusterLabel(name=name, description=str(result.get("description") or "").strip())


class ClaudeVerifierOracle(_ClaudeOracle, VerifierOracle):
    max_tokens = 200

    def verify(self, summary_a: str, summary_b: str) -> Verdict:
        result = self._ask(SAME_TOPIC_PROMPT.format(summary_a=summary_a, summary_b=summary_b))
        if "same_topic" not in result:
            raise OracleError(self.name, "response without same_topic")
        try:
            confidence = float(result.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0
        return Verdict(
            same_topic=_flag(result["same_topic"]),
            confidence=min(1.0, max(0.0, confidence)),
            reason=str(result.get("reason") or ""),
        )
