"""Labelled-bracket (PARSEVAL-style) scoring of parse trees."""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Hashable, Iterable, Sequence, Set, Tuple

Bracket = Tuple[Hashable, int, int]


@dataclass(frozen=True)
class BracketingMetrics:
    """Corpus-level bracketing scores.

    Attributes
    ----------
    precision : float
        Matched predicted brackets over all predicted brackets
    recall : float
        Matched gold brackets over all gold brackets
    f1 : float
        Harmonic mean of precision and recall
    exact_match : float
        Fraction of sentences whose bracket sets are identical
    total : int
        Number of sentences scored
    """
    precision: float
    recall: float
    f1: float
    exact_match: float
    total: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def f1_score(precision: float, recall: float) -> float:
    if precision + recall <= 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


def bracket_scores(gold: Sequence[Iterable[Bracket]], predicted: Sequence[Iterable[Bracket]]) -> BracketingMetrics:
    """Score predicted against gold brackets, one bracket collection per sentence.

    Brackets only match within the same sentence. Duplicate brackets inside
    one sentence count once.

    Parameters
    ----------
    gold : Sequence[Iterable[Bracket]]
        Gold ``(label, i, j)`` brackets per sentence
    predicted : Sequence[Iterable[Bracket]]
        Predicted brackets per sentence, aligned with ``gold``

    Returns
    -------
    BracketingMetrics
        Scores; all zero when there is nothing to compare

    Examples
    --------
    >>> same = [("s", 0, 1), ("np", 0, 0)]
    >>> bracket_scores([same], [same]).f1
    1.0
    """
    if len(gold) != len(predicted):
        raise ValueError(f"Got {len(gold)} gold sentences but {len(predicted)} predictions")

    correct = gold_total = predicted_total = exact = 0
    for gold_brackets, predicted_brackets in zip(gold, predicted):
        gold_set: Set[Bracket] = set(gold_brackets)
        predicted_set: Set[Bracket] = set(predicted_brackets)
        correct += len(gold_set & predicted_set)
        gold_total += len(gold_set)
        predicted_total += len(predicted_set)
        exact += gold_set == predicted_set

    precision = correct / predicted_total if predicted_total else 0.0
    recall = correct / gold_total if gold_total else 0.0
    total = len(gold)
    return BracketingMetrics(
        precision=precision,
        recall=recall,
        f1=f1_score(precision, recall),
        exact_match=exact / total if total else 0.0,
        total=total
    )
