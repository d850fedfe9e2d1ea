"""Global random seed management for reproducible model training."""

import os
import random
import hashlib
from typing import Optional, Dict, Any

import numpy as np

SEED_ENV_VAR = 'PROBABILISTIC_SYNTAX_SEED'
DEFAULT_SEED = 42

# Global random state storage
_GLOBAL_SEED: Optional[int] = None
_RNG_STATE: Optional[Dict[str, Any]] = None


def set_global_seed(seed: int) -> None:
    """Set global random seed for Python's ``random`` and NumPy.

    Weight initialization in :class:`~probabilistic_syntax.core.crf.CRF` falls
    back to this seed when no explicit ``random_state`` is given.

    Parameters
    ----------
    seed : int
        Random seed value for reproducibility

    Examples
    --------
    >>> set_global_seed(42)
    >>> get_global_seed()
    42
    """
    global _GLOBAL_SEED, _RNG_STATE

    _GLOBAL_SEED = seed
    random.seed(seed)
    np.random.seed(seed)

    _RNG_STATE = {
        'seed': seed,
        'python_state': random.getstate(),
        'numpy_state': np.random.get_state()
    }


def get_global_seed() -> Optional[int]:
    """Current global seed, or None if never set."""
    return _GLOBAL_SEED


def get_random_state() -> Optional[Dict[str, Any]]:
    return _RNG_STATE


def create_deterministic_seed(base_string: str) -> int:
    """Create a deterministic seed from a string such as a corpus or run name.

    Parameters
    ----------
    base_string : str
        String to hash

    Returns
    -------
    int
        Seed in ``[0, 2**31 - 1)``
    """
    digest = hashlib.sha256(base_string.encode()).hexdigest()
    return int(digest[:8], 16) % (2**31 - 1)


def reset_random_state() -> None:
    """Restore the generator states captured by the last :func:`set_global_seed`."""
    if _RNG_STATE is None:
        raise RuntimeError("Random state not initialized. Call set_global_seed() first.")

    random.setstate(_RNG_STATE['python_state'])
    np.random.set_state(_RNG_STATE['numpy_state'])


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Independent generator seeded with ``seed`` or, failing that, the global seed."""
    return np.random.default_rng(seed if seed is not None else _GLOBAL_SEED)


def get_environment_seed() -> int:
    """Seed from ``PROBABILISTIC_SYNTAX_SEED``; non-integer values are hashed.

    Returns
    -------
    int
        Seed from the environment, or 42 if unset
    """
    env_seed = os.environ.get(SEED_ENV_VAR)

    if env_seed is not None:
        try:
            return int(env_seed)
        except ValueError:
            return create_deterministic_seed(env_seed)

    return DEFAULT_SEED


def ensure_reproducibility() -> int:
    """Set the global seed from the environment unless one is already set."""
    if _GLOBAL_SEED is None:
        seed = get_environment_seed()
        set_global_seed(seed)
        return seed
    return _GLOBAL_SEED


# Seed on import unless the environment variable is explicitly empty
if os.environ.get(SEED_ENV_VAR) != '':
    ensure_reproducibility()
