"""Read tab exports (JSON, JSONL or YAML) into Document records."""

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from ..exceptions import DocumentLoadError
from ..features.builder import normalize_domain
from ..models import Document, SemanticFeatures

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".json", ".jsonl", ".ndjson", ".yaml", ".yml"}


def _get(entry: dict, *keys: str) -> Any:
    for key in keys:
        if key in entry and entry[key] is not None:
            return entry[key]
    return None


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list, tuple)):
        return ""
    return str(value).strip()


def _strings(value: Any, split_commas: bool = False) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",") if split_commas else [value]
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        return ()
    return tuple(s for s in (_text(v) for v in items) if s)


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _embedding(value: Any) -> tuple[float, ...] | None:
    if not isinstance(value, (list, tuple)) or not value:
        return None
    try:
        return tuple(float(v) for v in value)
    except (TypeError, ValueError):
        return None


def _semantic_features(value: Any) -> SemanticFeatures | None:
    if not isinstance(value, dict):
        return None
    primary_topic = _text(_get(value, "primary_topic", "primaryTopic"))
    if not primary_topic:
        return None
    return SemanticFeatures(
        primary_topic=primary_topic,
        subtopics=list(_strings(_get(value, "subtopics"))),
        entities=list(_strings(_get(value, "entities"))),
        doc_type=_text(_get(value, "doc_type", "docType")).lower(),
        is_generic_landing=_flag(_get(value, "is_generic_landing", "isGenericLanding")),
        merge_hints=list(_strings(_get(value, "merge_hints", "mergeHints"))),
        summary_bullets=list(_strings(_get(value, "summary_bullets", "summaryBullets"))),
        origin="input",
    )


def document_from_entry(index: int, entry: Any) -> Document:
    """Coerce one exported tab into a Document. Bad fields become empty, never an error."""
    if isinstance(entry, str):
        entry = {"url": entry} if "://" in entry else {"title": entry}
    if not isinstance(entry, dict):
        logger.warning(f"Entry {index} is not an object, keeping it as an empty document")
        return Document(index=index)

    youtube = entry.get("youtubeAnalysis") or entry.get("youtube_analysis") or {}
    if not isinstance(youtube, dict):
        youtube = {}

    url = _text(_get(entry, "url", "href"))
    summary = _get(entry, "summary_bullets", "summaryBullets") or _get(youtube, "summaryBullets", "summary_bullets")
    return Document(
        index=index,
        title=_text(_get(entry, "title")),
        url=url,
        domain=normalize_domain(_text(_get(entry, "domain", "hostname")), url),
        language=_text(_get(entry, "language", "lang")),
        content=_text(_get(entry, "content", "text", "pageContent")),
        meta_description=_text(_get(entry, "meta_description", "metaDescription", "description")),
        headings=_strings(_get(entry, "headings")),
        meta_keywords=_strings(_get(entry, "meta_keywords", "metaKeywords", "keywords"), split_commas=True),
        summary_bullets=_strings(summary),
        channel=_text(_get(entry, "channel", "youtubeChannel") or _get(youtube, "channel")),
        source_topic=_text(_get(entry, "source_topic", "sourceTopic", "youtubeTopic") or _get(youtube, "topic")),
        tags=_strings(_get(entry, "tags") or _get(youtube, "tags"), split_commas=True),
        features=_semantic_features(_get(entry, "semantic_features", "semanticFeatures", "features")),
        embedding=_embedding(_get(entry, "embedding")),
    )


def _read_entries(path: Path) -> list[Any]:
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    try:
        if suffix in {".jsonl", ".ndjson"}:
            return [json.loads(line) for line in text.splitlines() if line.strip()]
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise DocumentLoadError(f"Cannot parse {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("tabs", data.get("documents"))
    if data is None:
        return []
    if not isinstance(data, list):
        raise DocumentLoadError(f"{path} must hold a list of tabs (or an object with a 'tabs' list)")
    return data


def load_documents(path: str | Path) -> list[Document]:
    """Load tabs from a JSON array, a JSONL file or a YAML list."""
    path = Path(path)
    if not path.exists():
        raise DocumentLoadError(f"No such file: {path}")
    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise DocumentLoadError(f"Unsupported file type {path.suffix!r}, expected one of {sorted(SUPPORTED_EXTENSIONS)}")
    documents = [document_from_entry(i, entry) for i, entry in enumerate(_read_entries(path))]
    logger.debug(f"Loaded {len(documents)} documents from {path}")
    return documents
