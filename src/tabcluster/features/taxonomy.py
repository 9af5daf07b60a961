"""Rule-based taxonomy tags deduced from domains and page signals."""

import re
from typing import Iterable


class TaxonomyRules:
    """Two tables of ``{match: regex, tags: [...]}`` rules.

    Domain rules are checked against the domain (or the url when the domain is
    unknown); signal rules against the page's title, hints and topics.
    """

    def __init__(self, domain_rules: Iterable[dict], signal_rules: Iterable[dict]):
        self.domain_rules = [self._compile(rule) for rule in domain_rules]
        self.signal_rules = [self._compile(rule) for rule in signal_rules]

    @staticmethod
    def _compile(rule: dict) -> tuple[re.Pattern, list[str]]:
        tags = [str(tag).lower().strip() for tag in rule.get("tags", []) if str(tag).strip()]
        return re.compile(rule["match"], re.IGNORECASE), tags

    def infer(
        self,
        domain: str,
        url: str,
        signals: Iterable[str],
        source_topic: str = "",
        channel: str = "",
    ) -> list[str]:
        tags: dict[str, None] = {}
        target = (domain or url or "").lower()
        if target:
            for pattern, rule_tags in self.domain_rules:
                if pattern.search(target):
                    tags.update(dict.fromkeys(rule_tags))

        combined = " ".join(s for s in signals if s).lower()
        if combined:
            for pattern, rule_tags in self.signal_rules:
                if pattern.search(combined):
                    tags.update(dict.fromkeys(rule_tags))

        if source_topic:
            tags[f"youtube:{source_topic.lower().strip()}"] = None
        if channel:
            tags[f"channel:{channel.lower().strip()}"] = None
        return list(tags)
