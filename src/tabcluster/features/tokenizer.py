"""Tokenization rules shared by the feature builder and the labeling passes."""

import re
from collections import Counter
from typing import Iterable
from urllib.parse import urlparse

from ..config import FeatureSettings

STOPWORDS = frozenset({
    "the", "and", "with", "from", "that", "this", "have", "has", "will", "would", "could", "should",
    "about", "into", "onto", "after", "before", "while", "where", "which", "their", "there", "other",
    "these", "those", "than", "then", "when", "what", "your", "yours", "ours", "ourselves", "hers",
    "his", "her", "its", "they", "them", "were", "was", "been", "being", "because", "over", "under",
    "again", "further", "once", "here", "every", "most", "some", "such", "only", "own", "same", "very",
    "just", "also", "like", "more", "less", "many", "much", "any", "each", "for", "are", "not", "you",
    "but", "all", "can", "our", "out", "how", "who", "why",
    "http", "https", "www", "com", "net", "org", "html", "amp", "php", "utm", "ref", "aspx", "index",
    "home", "main", "default", "article", "video", "watch", "channel", "official",
})

# Filler words that may describe a page but must never drive a merge on their own.
GENERIC_MERGE_STOPWORDS = frozenset({
    "news", "blog", "overview", "official", "latest", "update", "updates", "guide", "page",
    "home", "welcome", "online", "free", "best", "top", "new", "general", "browsing", "login",
    "sign", "search", "results", "today",
})

STEM_SUFFIXES = ("ing", "ed", "s")


class Tokenizer:
    """Lowercases, filters to the allowed alphabet, drops stopwords and stems lightly."""

    def __init__(self, settings: FeatureSettings | None = None):
        settings = settings or FeatureSettings()
        self.min_length = settings.min_token_length
        self.min_stem_length = settings.min_stem_length
        self.topic_hint_limit = settings.topic_hint_limit
        self.stopwords = STOPWORDS | frozenset(w.lower() for w in settings.extra_stopwords)
        alphabet = settings.extra_alphabet or ""
        self._strip = re.compile(rf"[^a-z0-9\s{alphabet}]+")
        self._path_strip = re.compile(rf"[^a-z0-9{alphabet}]+")

    def stem(self, token: str) -> str:
        for suffix in STEM_SUFFIXES:
            if not token.endswith(suffix):
                continue
            if suffix == "s" and token.endswith("ss"):
                return token
            if len(token) - len(suffix) >= self.min_stem_length:
                return token[: -len(suffix)]
            return token
        return token

    def tokenize(self, value: str | None) -> list[str]:
        """Split text into normalized tokens, in order of appearance."""
        if not value:
            return []
        text = self._strip.sub(" ", str(value).lower())
        tokens = []
        for token in text.split():
            if len(token) < self.min_length or token in self.stopwords:
                continue
            tokens.append(self.stem(token))
        return tokens

    def tokenize_many(self, values: Iterable[str] | None) -> list[str]:
        tokens: list[str] = []
        for value in values or ():
            tokens.extend(self.tokenize(value))
        return tokens

    def url_path_tokens(self, url: str | None) -> list[str]:
        """Tokens from the path part of a url; digits-only segments are dropped."""
        if not url:
            return []
        try:
            path = urlparse(url).path
        except ValueError:
            return []
        tokens = []
        for segment in re.split(r"[/#?\-_\s]+", path.lower()):
            token = self._path_strip.sub("", segment)
            if len(token) < self.min_length or token.isdigit() or token in self.stopwords:
                continue
            tokens.append(self.stem(token))
        return tokens

    @staticmethod
    def domain_tokens(domain: str | None) -> list[str]:
        if not domain:
            return []
        return [part for part in domain.lower().split(".") if part and part != "www" and len(part) >= 3]

    def meaningful_keywords(self, text: str | None, limit: int | None = None) -> list[str]:
        """Most characteristic keywords of a text: frequent first, then longer first.

        Single occurrences only count for short texts (30 tokens or fewer).
        """
        tokens = self.tokenize(text)
        if not tokens:
            return []
        frequency = Counter(tokens)
        short_text = len(tokens) <= 30
        candidates = [(token, count) for token, count in frequency.items() if count > 1 or short_text]
        candidates.sort(key=lambda item: (-item[1], -len(item[0])))
        return [token for token, _ in candidates[: limit or self.topic_hint_limit]]


def without_generic(tokens: Iterable[str]) -> set[str]:
    return {token for token in tokens if token and token not in GENERIC_MERGE_STOPWORDS}
