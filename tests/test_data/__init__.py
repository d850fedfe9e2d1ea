"""
Data layer tests for Probabilistic Syntax.

Tests for:
- Token and parse-tree values
- CoNLL-U and bracketed-tree corpus readers
- Versioned model serialization
"""
