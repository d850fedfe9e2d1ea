"""Data values, corpus readers and model persistence.

This module provides:
- Immutable token and parse-tree values
- CoNLL-U and bracketed-tree corpus readers
- Versioned binary model serialization
"""

from .tokens import Token, ParseTree, as_token, as_tokens
from .corpus import (
    parse_conllu,
    read_conllu,
    parse_bracketed,
    read_treebank,
    tree_words,
    tree_tokens
)
from .serialization import (
    serialize,
    deserialize,
    save_model,
    load_model,
    FORMAT_VERSION
)

__all__ = [
    # Values
    'Token',
    'ParseTree',
    'as_token',
    'as_tokens',

    # Corpus readers
    'parse_conllu',
    'read_conllu',
    'parse_bracketed',
    'read_treebank',
    'tree_words',
    'tree_tokens',

    # Persistence
    'serialize',
    'deserialize',
    'save_model',
    'load_model',
    'FORMAT_VERSION'
]
