"""Token- and entity-level evaluation metrics for taggers.

Examples
--------
>>> gold = ["noun", "verb", "det", "noun"]
>>> pred = ["noun", "verb", "adj", "noun"]
>>> accuracy(gold, pred)
0.75
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .bracketing import f1_score

AVERAGES = ("macro", "micro", "weighted")
Entity = Tuple[Hashable, int, int]


@dataclass(frozen=True)
class ClassMetrics:
    """Precision, recall and F1 for one label.

    Attributes
    ----------
    precision : float
    recall : float
    f1 : float
    support : int
        Number of gold occurrences
    """
    precision: float
    recall: float
    f1: float
    support: int


@dataclass(frozen=True)
class EntityMetrics:
    """Strict span-match scores for named entities."""
    precision: float
    recall: float
    f1: float
    true_positives: int
    false_positives: int
    false_negatives: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _check_aligned(gold: Sequence, predicted: Sequence):
    if len(gold) != len(predicted):
        raise ValueError(f"Got {len(gold)} gold labels but {len(predicted)} predictions")


def flatten_sequences(sequences: Iterable[Sequence[Hashable]]) -> List[Hashable]:
    """Concatenate per-sentence label lists for token-level scoring."""
    return [label for sequence in sequences for label in sequence]


def unique_labels(*label_lists: Sequence[Hashable]) -> List[Hashable]:
    seen: Dict[Hashable, None] = {}
    for labels in label_lists:
        for label in labels:
            seen.setdefault(label, None)
    return sorted(seen, key=str)


def accuracy(gold: Sequence[Hashable], predicted: Sequence[Hashable]) -> float:
    """Fraction of positions where prediction equals gold; 0.0 for empty input."""
    _check_aligned(gold, predicted)
    if not gold:
        return 0.0
    return float(np.mean([g == p for g, p in zip(gold, predicted)]))


def per_class_metrics(gold: Sequence[Hashable], predicted: Sequence[Hashable], label: Hashable) -> ClassMetrics:
    _check_aligned(gold, predicted)
    tp = sum(1 for g, p in zip(gold, predicted) if g == label and p == label)
    fp = sum(1 for g, p in zip(gold, predicted) if g != label and p == label)
    fn = sum(1 for g, p in zip(gold, predicted) if g == label and p != label)

    precision = tp / (tp + fp) if tp + fp else 0.0
    recall = tp / (tp + fn) if tp + fn else 0.0
    return ClassMetrics(precision, recall, f1_score(precision, recall), tp + fn)


def confusion_matrix(gold: Sequence[Hashable],
                     predicted: Sequence[Hashable],
                     labels: Optional[Sequence[Hashable]] = None) -> pd.DataFrame:
    """Counts of (gold, predicted) pairs.

    Parameters
    ----------
    gold, predicted : Sequence[Hashable]
        Aligned label sequences
    labels : Optional[Sequence[Hashable]]
        Row/column order; defaults to all labels seen, sorted

    Returns
    -------
    pd.DataFrame
        Rows are gold labels, columns predicted labels
    """
    _check_aligned(gold, predicted)
    labels = list(labels) if labels is not None else unique_labels(gold, predicted)
    index = {label: i for i, label in enumerate(labels)}
    counts = np.zeros((len(labels), len(labels)), dtype=int)
    for g, p in zip(gold, predicted):
        if g in index and p in index:
            counts[index[g], index[p]] += 1

    matrix = pd.DataFrame(counts, index=labels, columns=labels)
    matrix.index.name = "gold"
    matrix.columns.name = "predicted"
    return matrix


def classification_metrics(gold: Sequence[Hashable],
                           predicted: Sequence[Hashable],
                           average: str = "macro",
                           labels: Optional[Sequence[Hashable]] = None) -> Dict[str, Any]:
    """Accuracy plus averaged precision, recall and F1.

    Parameters
    ----------
    gold, predicted : Sequence[Hashable]
        Aligned label sequences
    average : str, default="macro"
        ``"macro"`` (unweighted mean over labels), ``"micro"`` (pooled
        counts) or ``"weighted"`` (mean weighted by support)
    labels : Optional[Sequence[Hashable]]
        Labels to include; defaults to all labels seen

    Returns
    -------
    Dict[str, Any]
        ``accuracy``, ``precision``, ``recall``, ``f1``, ``per_class`` and
        ``confusion_matrix``
    """
    if average not in AVERAGES:
        raise ValueError(f"Unknown average {average!r}. Available: {list(AVERAGES)}")
    _check_aligned(gold, predicted)
    labels = list(labels) if labels is not None else unique_labels(gold, predicted)
    per_class = {label: per_class_metrics(gold, predicted, label) for label in labels}

    if average == "micro":
        label_set = set(labels)
        tp = sum(1 for g, p in zip(gold, predicted) if g == p and g in label_set)
        predicted_total = sum(1 for p in predicted if p in label_set)
        gold_total = sum(1 for g in gold if g in label_set)
        precision = tp / predicted_total if predicted_total else 0.0
        recall = tp / gold_total if gold_total else 0.0
        f1 = f1_score(precision, recall)
    elif per_class:
        weights = np.array([m.support for m in per_class.values()], dtype=float)
        if average == "macro" or weights.sum() == 0:
            weights = np.ones(len(per_class))
        weights = weights / weights.sum()
        precision = float(np.dot(weights, [m.precision for m in per_class.values()]))
        recall = float(np.dot(weights, [m.recall for m in per_class.values()]))
        f1 = float(np.dot(weights, [m.f1 for m in per_class.values()]))
    else:
        precision = recall = f1 = 0.0

    return {
        'accuracy': accuracy(gold, predicted),
        'precision': precision,
        'recall': recall,
        'f1': f1,
        'per_class': per_class,
        'confusion_matrix': confusion_matrix(gold, predicted, labels)
    }


def classification_report(metrics: Dict[str, Any]) -> pd.DataFrame:
    """Per-label precision/recall/F1/support table from :func:`classification_metrics`."""
    rows = {label: asdict(m) for label, m in metrics['per_class'].items()}
    report = pd.DataFrame.from_dict(rows, orient='index', columns=['precision', 'recall', 'f1', 'support'])
    report.index.name = 'label'
    return report.sort_index(key=lambda index: index.map(str))


def extract_entities(labels: Sequence[Hashable], outside: Hashable = "none") -> List[Entity]:
    """Collapse runs of identical non-``outside`` labels into ``(type, start, end)`` spans."""
    entities: List[Entity] = []
    start = None
    for i, label in enumerate(list(labels) + [outside]):
        if start is not None and label != labels[start]:
            entities.append((labels[start], start, i - 1))
            start = None
        if start is None and label != outside and i < len(labels):
            start = i
    return entities


def entity_metrics(gold_entities: Iterable[Entity], predicted_entities: Iterable[Entity]) -> EntityMetrics:
    """Strict matching: an entity counts only if type and both boundaries agree."""
    gold_set = set(gold_entities)
    predicted_set = set(predicted_entities)
    tp = len(gold_set & predicted_set)
    fp = len(predicted_set) - tp
    fn = len(gold_set) - tp

    precision = tp / (tp + fp) if tp + fp else 0.0
    recall = tp / (tp + fn) if tp + fn else 0.0
    return EntityMetrics(precision, recall, f1_score(precision, recall), tp, fp, fn)


def sequence_entity_metrics(gold_sequences: Sequence[Sequence[Hashable]],
                            predicted_sequences: Sequence[Sequence[Hashable]],
                            outside: Hashable = "none") -> EntityMetrics:
    """Entity metrics over many sentences; spans only match within their sentence."""
    _check_aligned(gold_sequences, predicted_sequences)
    gold = [(s,) + e for s, labels in enumerate(gold_sequences) for e in extract_entities(labels, outside)]
    predicted = [(s,) + e for s, labels in enumerate(predicted_sequences)
                 for e in extract_entities(labels, outside)]
    return entity_metrics(gold, predicted)
