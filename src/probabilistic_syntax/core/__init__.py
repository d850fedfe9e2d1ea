"""Statistical sequence models for tagging and entity recognition.

This module contains the sequence-labeling components:
- Feature extraction from tokens and their context
- Viterbi decoding and forward-backward inference
- Gradient-based optimization with L2 regularization
- Linear-chain CRF and trigram HMM models
"""

from .features import FeatureOptions, extract, extract_sequence
from .viterbi import (
    decode,
    emission_score,
    transition_score,
    forward_probabilities,
    backward_probabilities,
    log_sum_exp,
    partition_function,
    label_marginals,
    sequence_score
)
from .optimizer import OptimizerState
from .model import StatisticalModel
from .crf import CRF, CRFIterationStats
from .hmm import HMMTagger

__all__ = [
    # Features
    'FeatureOptions',
    'extract',
    'extract_sequence',

    # Inference
    'decode',
    'emission_score',
    'transition_score',
    'forward_probabilities',
    'backward_probabilities',
    'log_sum_exp',
    'partition_function',
    'label_marginals',
    'sequence_score',

    # Optimization
    'OptimizerState',

    # Models
    'StatisticalModel',
    'CRF',
    'CRFIterationStats',
    'HMMTagger'
]
