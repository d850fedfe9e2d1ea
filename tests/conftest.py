"""
Pytest configuration and shared fixtures for the Probabilistic Syntax test suite.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

# Add src (package) and the repository root (cli.py) to path for testing
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "src"))
sys.path.insert(0, str(repo_root))

from probabilistic_syntax.config import set_global_seed
from probabilistic_syntax.data import Token
from probabilistic_syntax.parsing import Terminal


@pytest.fixture(scope="session")
def global_test_seed():
    """Set global random seed for all tests to ensure reproducibility."""
    seed = 42
    set_global_seed(seed)
    np.random.seed(seed)
    return seed


@pytest.fixture
def ner_labels():
    return ["person", "place", "none"]


@pytest.fixture
def ner_examples():
    """Tiny NER training set."""
    return [
        (["John", "lives", "in", "London"], ["person", "none", "none", "place"]),
        (["Mary", "visited", "Paris"], ["person", "none", "place"]),
        (["David", "likes", "Berlin"], ["person", "none", "place"]),
    ]


@pytest.fixture
def pos_examples():
    """Small POS training set of (words, tags) pairs."""
    return [
        (["the", "cat", "sleeps"], ["det", "noun", "verb"]),
        (["a", "dog", "runs"], ["det", "noun", "verb"]),
        (["the", "dog", "sees", "a", "cat"], ["det", "noun", "verb", "det", "noun"]),
        (["cats", "sleep"], ["noun", "verb"]),
    ]


@pytest.fixture
def toy_grammar_triples():
    """Grammar counts for ``cat sleeps``-style sentences."""
    return [
        ("s", ("np", "vp"), 1),
        ("np", (Terminal("cat"),), 1),
        ("vp", (Terminal("sleeps"),), 1),
    ]


@pytest.fixture
def toy_treebank():
    """(tokens, tree) pairs with nested tuple trees."""
    return [
        (["the", "cat", "sleeps"],
         ("s", [("np", [("det", "the"), ("noun", "cat")]), ("vp", [("verb", "sleeps")])])),
        (["a", "dog", "sees", "the", "cat"],
         ("s", [("np", [("det", "a"), ("noun", "dog")]),
                ("vp", [("verb", "sees"), ("np", [("det", "the"), ("noun", "cat")])])])),
        (["the", "dog", "runs"],
         ("s", [("np", [("det", "the"), ("noun", "dog")]), ("vp", [("verb", "runs")])])),
    ]


@pytest.fixture
def sample_conllu():
    """CoNLL-U text with comments, a multi-word token and an empty node."""
    return (
        "# sent_id = 1\n"
        "# text = John lives in London\n"
        "1\tJohn\tJohn\tPROPN\tNNP\t_\t2\tnsubj\t_\tEntity=PERSON\n"
        "2\tlives\tlive\tVERB\tVBZ\t_\t0\troot\t_\t_\n"
        "3\tin\tin\tADP\tIN\t_\t4\tcase\t_\t_\n"
        "4\tLondon\tLondon\tPROPN\tNNP\t_\t2\tobl\t_\tEntity=PLACE\n"
        "\n"
        "# sent_id = 2\n"
        "1-2\tdon't\t_\t_\t_\t_\t_\t_\t_\t_\n"
        "1\tdo\tdo\tAUX\tVBP\t_\t3\taux\t_\t_\n"
        "2\tn't\tnot\tPART\tRB\t_\t3\tadvmod\t_\t_\n"
        "2.1\tgo\tgo\tVERB\tVB\t_\t_\t_\t_\t_\n"
        "3\tstop\tstop\tVERB\tVB\t_\t0\troot\t_\t_\n"
        "\n"
    )


@pytest.fixture
def tagged_tokens():
    return [Token(text="John", lemma="John", pos_tag="propn"),
            Token(text="sleeps", lemma="sleep", pos_tag="verb")]


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "visual: marks tests that generate visual output"
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark integration and visual tests."""
    for item in items:
        if "integration" in item.nodeid or "end_to_end" in item.nodeid or "test_cli" in item.nodeid:
            item.add_marker(pytest.mark.integration)

        if "test_viz" in item.nodeid:
            item.add_marker(pytest.mark.visual)
