"""Tests for reading tab exports."""

import json

import pytest

from tabcluster.exceptions import DocumentLoadError
from tabcluster.ingest.loader import document_from_entry, load_documents


def test_camel_case_export():
    doc = document_from_entry(3, {
        "title": " Lofi beats to study to ",
        "url": "https://www.youtube.com/watch?v=abc",
        "metaDescription": "Chill music",
        "metaKeywords": "lofi, study,  ",
        "language": "en-US",
        "youtubeAnalysis": {"channel": "Lofi Girl", "topic": "Music", "summaryBullets": ["beats", ""]},
        "semanticFeatures": {"primaryTopic": "lofi music", "docType": "Video", "mergeHints": ["study music"]},
        "embedding": [1, "2.5"],
    })
    assert doc.index == 3
    assert doc.title == "Lofi beats to study to"
    assert doc.domain == "youtube.com"
    assert doc.meta_description == "Chill music"
    assert doc.meta_keywords == ("lofi", "study")
    assert doc.channel == "Lofi Girl"
    assert doc.source_topic == "Music"
    assert doc.summary_bullets == ("beats",)
    assert doc.features.primary_topic == "lofi music"
    assert doc.features.doc_type == "video"
    assert doc.features.merge_hints == ["study music"]
    assert doc.features.origin == "input"
    assert doc.embedding == (1.0, 2.5)


def test_malformed_entries_become_empty_fields():
    doc = document_from_entry(0, {"title": {"nested": True}, "embedding": ["x"], "semanticFeatures": {"subtopics": []}})
    assert doc.title == ""
    assert doc.embedding is None
    assert doc.features is None
    assert document_from_entry(1, 42).title == ""
    assert document_from_entry(2, "https://example.com/a").url == "https://example.com/a"
    assert document_from_entry(3, "Just a title").title == "Just a title"


def test_generic_landing_flag_from_strings():
    def flag(value):
        entry = {"semanticFeatures": {"primaryTopic": "news", "isGenericLanding": value}}
        return document_from_entry(0, entry).features.is_generic_landing

    assert flag("false") is False
    assert flag("False ") is False
    assert flag("true") is True
    assert flag(True) is True
    assert flag(None) is False


def test_explicit_domain_is_normalized():
    assert document_from_entry(0, {"domain": "WWW.BBC.co.uk", "url": "https://other.test"}).domain == "bbc.co.uk"


def test_load_json_object_with_tabs(tmp_path):
    path = tmp_path / "tabs.json"
    path.write_text(json.dumps({"tabs": [{"title": "one"}, {"title": "two"}]}))
    docs = load_documents(path)
    assert [d.title for d in docs] == ["one", "two"]
    assert [d.index for d in docs] == [0, 1]


def test_load_jsonl(tmp_path):
    path = tmp_path / "tabs.jsonl"
    path.write_text('{"title": "one"}\n\n{"title": "two"}\n')
    assert [d.title for d in load_documents(path)] == ["one", "two"]


def test_load_yaml(tmp_path):
    path = tmp_path / "tabs.yaml"
    path.write_text("- title: one\n  url: https://a.test/x\n- title: two\n")
    docs = load_documents(path)
    assert docs[0].domain == "a.test"
    assert docs[1].title == "two"


def test_load_errors(tmp_path):
    with pytest.raises(DocumentLoadError):
        load_documents(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("[{")
    with pytest.raises(DocumentLoadError):
        load_documents(broken)

    scalar = tmp_path / "scalar.json"
    scalar.write_text('"tabs"')
    with pytest.raises(DocumentLoadError):
        load_documents(scalar)

    text = tmp_path / "tabs.txt"
    text.write_text("hello")
    with pytest.raises(DocumentLoadError):
        load_documents(text)
