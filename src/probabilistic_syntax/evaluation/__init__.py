"""Evaluation metrics for taggers and parsers.

This module provides:
- Token-level accuracy, per-class and averaged precision/recall/F1
- Confusion matrices and classification reports as DataFrames
- Strict span matching for named entities
- Labelled-bracket scoring for parse trees
"""

from .metrics import (
    ClassMetrics,
    EntityMetrics,
    accuracy,
    per_class_metrics,
    classification_metrics,
    classification_report,
    confusion_matrix,
    extract_entities,
    entity_metrics,
    sequence_entity_metrics,
    flatten_sequences,
    unique_labels
)
from .bracketing import BracketingMetrics, bracket_scores, f1_score

__all__ = [
    # Tagging
    'ClassMetrics',
    'EntityMetrics',
    'accuracy',
    'per_class_metrics',
    'classification_metrics',
    'classification_report',
    'confusion_matrix',
    'extract_entities',
    'entity_metrics',
    'sequence_entity_metrics',
    'flatten_sequences',
    'unique_labels',

    # Parsing
    'BracketingMetrics',
    'bracket_scores',
    'f1_score'
]
