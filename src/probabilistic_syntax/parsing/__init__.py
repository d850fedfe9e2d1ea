"""Constituency parsing with probabilistic context-free grammars.

This module provides:
- Grammar rules, terminals and Chomsky Normal Form conversion
- CYK chart parsing with k-best derivations and beam pruning
- PCFG training from treebanks or rule counts
"""

from .grammar import (
    Rule,
    Terminal,
    index_by_lhs,
    is_lexical,
    is_unary,
    is_binary,
    is_synthetic,
    normalize_probabilities,
    apply_smoothing,
    non_terminals,
    terminals,
    build_lexicon,
    to_cnf
)
from .cyk import (
    build_chart,
    parse,
    n_best_parses,
    to_brackets,
    extract_brackets,
    debinarize
)
from .pcfg import PCFG, extract_productions

__all__ = [
    # Grammar
    'Rule',
    'Terminal',
    'index_by_lhs',
    'is_lexical',
    'is_unary',
    'is_binary',
    'is_synthetic',
    'normalize_probabilities',
    'apply_smoothing',
    'non_terminals',
    'terminals',
    'build_lexicon',
    'to_cnf',

    # CYK
    'build_chart',
    'parse',
    'n_best_parses',
    'to_brackets',
    'extract_brackets',
    'debinarize',

    # Model
    'PCFG',
    'extract_productions'
]
