"""Agreement between a predicted partition and a hand-labeled one."""

import numpy as np
from sklearn.metrics.cluster import contingency_matrix, pair_confusion_matrix

from ..exceptions import EvaluationInputError
from ..models import EvaluationResult


def _f1(precision: float, recall: float) -> float:
    if precision + recall == 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


def _labels(universe: list[str], mapping: dict[str, str], side: str) -> list[str]:
    # A document missing from one side is alone in its own cluster there.
    return [str(mapping[key]) if key in mapping else f"\x00{side}:{key}" for key in universe]


def evaluate_partition(gold: dict[str, str], predicted: dict[str, str], scenario: str = "") -> EvaluationResult:
    """Pairwise and B-cubed precision/recall/F1, error rates and purity.

    Both partitions map a document key (usually its url) to a cluster label.
    """
    universe = sorted(set(gold) | set(predicted))
    if not universe:
        raise EvaluationInputError("Nothing to evaluate: both partitions are empty")
    gold_labels = _labels(universe, gold, "gold")
    predicted_labels = _labels(universe, predicted, "predicted")
    n = len(universe)

    # pair_confusion_matrix counts ordered pairs
    pairs = pair_confusion_matrix(gold_labels, predicted_labels)
    tp = int(pairs[1, 1]) // 2
    fn = int(pairs[1, 0]) // 2
    fp = int(pairs[0, 1]) // 2

    if tp + fp == 0:
        precision = 1.0 if tp + fn == 0 else 0.0
    else:
        precision = tp / (tp + fp)
    recall = 1.0 if tp + fn == 0 else tp / (tp + fn)
    errors = tp + fp + fn
    over_merge = fp / errors if errors else 0.0
    under_cluster = fn / errors if errors else 0.0

    # Rows are gold classes, columns predicted clusters
    table = contingency_matrix(gold_labels, predicted_labels)
    table = np.asarray(table.toarray() if hasattr(table, "toarray") else table, dtype=float)
    gold_sizes = table.sum(axis=1, keepdims=True)
    predicted_sizes = table.sum(axis=0, keepdims=True)
    bcubed_precision = float((table * table / predicted_sizes).sum() / n)
    bcubed_recall = float((table * table / gold_sizes).sum() / n)

    predicted_names = sorted(set(predicted_labels))
    cluster_purity = {}
    for column, name in enumerate(predicted_names):
        if name.startswith("\x00"):
            continue
        cluster_purity[name] = float(table[:, column].max() / predicted_sizes[0, column])
    purity = float(table.max(axis=0).sum() / n)

    return EvaluationResult(
        n_documents=n,
        n_gold_clusters=len(set(gold_labels)),
        n_predicted_clusters=len(set(predicted_labels)),
        true_positives=tp,
        false_positives=fp,
        false_negatives=fn,
        pairwise_precision=precision,
        pairwise_recall=recall,
        pairwise_f1=_f1(precision, recall),
        bcubed_precision=bcubed_precision,
        bcubed_recall=bcubed_recall,
        bcubed_f1=_f1(bcubed_precision, bcubed_recall),
        over_merge_rate=over_merge,
        under_cluster_rate=under_cluster,
        purity=purity,
        cluster_purity=cluster_purity,
        scenario=scenario,
    )
