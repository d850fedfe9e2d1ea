"""Configuration management for Probabilistic Syntax.

Provides global configuration and random seed management for reproducible training.
"""

from .settings import get_config, set_config, Settings
from .random_state import set_global_seed, get_random_state, make_rng
from .defaults import NER_CONFIG, POS_CONFIG, TASK_CONFIGS, DefaultConfig, validate_config

__all__ = [
    'get_config',
    'set_config',
    'set_global_seed',
    'get_random_state',
    'make_rng',
    'Settings',
    'NER_CONFIG',
    'POS_CONFIG',
    'TASK_CONFIGS',
    'DefaultConfig',
    'validate_config'
]
