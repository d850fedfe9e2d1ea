"""Tests for labelled-bracket scoring."""

import pytest

from probabilistic_syntax.evaluation import BracketingMetrics, bracket_scores, f1_score


class TestBracketScores:

    def test_identical(self):
        brackets = [("s", 0, 2), ("np", 0, 1), ("vp", 2, 2)]
        metrics = bracket_scores([brackets], [brackets])
        assert metrics == BracketingMetrics(1.0, 1.0, 1.0, 1.0, 1)

    def test_disjoint(self):
        metrics = bracket_scores([[("np", 0, 1)]], [[("vp", 0, 1)]])
        assert metrics.precision == 0.0
        assert metrics.recall == 0.0
        assert metrics.f1 == 0.0

    def test_partial_overlap(self):
        gold = [[("s", 0, 2), ("np", 0, 1), ("vp", 2, 2)]]
        predicted = [[("s", 0, 2), ("np", 1, 2)]]
        metrics = bracket_scores(gold, predicted)

        assert metrics.precision == pytest.approx(0.5)
        assert metrics.recall == pytest.approx(1 / 3)
        assert metrics.exact_match == 0.0

    def test_brackets_match_per_sentence(self):
        gold = [[("np", 0, 0)], [("vp", 0, 0)]]
        predicted = [[("vp", 0, 0)], [("np", 0, 0)]]
        assert bracket_scores(gold, predicted).f1 == 0.0

    def test_duplicates_count_once(self):
        metrics = bracket_scores([[("np", 0, 0)]], [[("np", 0, 0), ("np", 0, 0)]])
        assert metrics.precision == 1.0

    def test_empty(self):
        metrics = bracket_scores([], [])
        assert metrics.total == 0
        assert metrics.exact_match == 0.0

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            bracket_scores([[("s", 0, 0)]], [])

    def test_to_dict(self):
        assert set(bracket_scores([[]], [[]]).to_dict()) == {
            "precision", "recall", "f1", "exact_match", "total"
        }


def test_f1_score():
    assert f1_score(0.5, 0.5) == pytest.approx(0.5)
    assert f1_score(0.0, 0.0) == 0.0
