"""Shared fixtures: a small hand-labeled tab set and a table-driven scorer."""

import pytest

from tabcluster.features.builder import FeatureBuilder
from tabcluster.models import Document, SemanticFeatures


def _tab(index, title, url, topic, subtopics, entities, hints, gold):
    return Document(
        index=index,
        title=title,
        url=url,
        language="en",
        features=SemanticFeatures(
            primary_topic=topic,
            subtopics=subtopics,
            entities=entities,
            doc_type="article",
            merge_hints=hints,
            origin="input",
        ),
    ), gold


GOLD_TABS = [
    _tab(0, "Sourdough bread starter recipe", "https://bakery.test/recipes/sourdough-starter",
         "sourdough baking", ["bread starter", "fermentation"], ["King Arthur"], ["sourdough starter"], "baking"),
    _tab(1, "Kubernetes pod networking explained", "https://kubernetes.dev/concepts/pod-networking",
         "kubernetes networking", ["container network interface", "cluster dns"], ["Kubernetes"],
         ["pod networking"], "k8s"),
    _tab(2, "Marathon training plan for beginners", "https://running.org/plans/marathon-beginner",
         "marathon training", ["long runs", "tempo pace"], ["Boston Marathon"], ["marathon plan"], "running"),
    _tab(3, "Feeding your sourdough starter for bread", "https://bakery.test/recipes/feeding-sourdough",
         "sourdough baking", ["bread starter", "fermentation"], ["King Arthur"], ["sourdough starter"], "baking"),
    _tab(4, "Debugging kubernetes pod networking with cni", "https://kubernetes.dev/tasks/debug-pod-networking",
         "kubernetes networking", ["container network interface", "cluster dns"], ["Kubernetes"],
         ["pod networking"], "k8s"),
    _tab(5, "Marathon long run pacing tips", "https://running.org/plans/marathon-long-run",
         "marathon training", ["long runs", "tempo pace"], ["Boston Marathon"], ["marathon plan"], "running"),
]


@pytest.fixture
def gold_documents():
    return [doc for doc, _ in GOLD_TABS]


@pytest.fixture
def gold_labels():
    return {doc.url: label for doc, label in GOLD_TABS}


class TableScorer:
    """Scores looked up by vector index pair; anything missing scores 0."""

    simhash_bits = 32

    def __init__(self, table):
        self.table = {(min(i, j), max(i, j)): s for (i, j), s in table.items()}

    def score(self, a, b):
        return self.table.get((min(a.index, b.index), max(a.index, b.index)), 0.0)


@pytest.fixture
def table_scorer():
    return TableScorer


@pytest.fixture
def blank_vectors():
    """Feature vectors of empty documents, to be specialized with dataclasses.replace."""
    def make(n):
        return FeatureBuilder().build([Document(index=i) for i in range(n)]).vectors
    return make
