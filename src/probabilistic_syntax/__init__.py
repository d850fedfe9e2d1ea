"""
Probabilistic Syntax - statistical sequence labeling and parsing from scratch.

This package provides a linear-chain CRF, a trigram HMM tagger and a PCFG with
CYK parsing for use inside a multi-language text-processing pipeline.
"""

__version__ = "0.1.0"

from .core import CRF, HMMTagger
from .data import Token, ParseTree
from .parsing import PCFG, Rule, Terminal
from .errors import (
    ProbabilisticSyntaxError,
    ConfigurationError,
    TrainingDataError,
    ModelIOError,
    IncompatibleModelError,
    ParseError,
    NotTrainedError
)

__all__ = [
    'CRF',
    'HMMTagger',
    'PCFG',
    'Rule',
    'Terminal',
    'Token',
    'ParseTree',
    'ProbabilisticSyntaxError',
    'ConfigurationError',
    'TrainingDataError',
    'ModelIOError',
    'IncompatibleModelError',
    'ParseError',
    'NotTrainedError'
]
