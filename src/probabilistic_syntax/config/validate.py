"""Environment validation for Probabilistic Syntax dependencies."""

import sys
import importlib
import warnings
from typing import Dict, List, Optional, Tuple

import numpy as np
from packaging import version

# (import name, minimum version, purpose)
REQUIRED = [
    ('numpy', '1.24', 'lattice arithmetic'),
    ('scipy', '1.10', 'log-sum-exp'),
    ('tqdm', '4.60', 'training progress'),
    ('packaging', '21.0', 'version checking'),
]
OPTIONAL = [
    ('matplotlib', '3.5', 'figures'),
    ('seaborn', '0.12', 'heatmaps'),
    ('pandas', '1.5', 'metric tables'),
    ('tomli_w', '1.0', 'writing TOML settings'),
    ('yaml', '6.0', 'YAML configuration files'),
]


def _installed_version(module_name: str) -> Optional[str]:
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        return None
    return getattr(module, '__version__', 'unknown')


def _below(found: str, minimum: str) -> bool:
    if found == 'unknown':
        return False
    return version.parse(found) < version.parse(minimum)


def check_environment(requirements: Optional[List[Tuple[str, str, str]]] = None) -> List[str]:
    """Check that environment meets minimum dependency requirements.

    Parameters
    ----------
    requirements : Optional[List[Tuple[str, str, str]]]
        ``(module, minimum version, purpose)`` triples; defaults to the
        core dependencies

    Returns
    -------
    List[str]
        Warnings about optional dependencies

    Raises
    ------
    RuntimeError
        If any required dependency is missing or too old

    Examples
    --------
    >>> check_environment()  # doctest: +SKIP
    []
    """
    errors = []

    if sys.version_info < (3, 8):
        errors.append(f"Python 3.8+ required, found {sys.version_info.major}.{sys.version_info.minor}")

    for name, minimum, purpose in requirements or REQUIRED:
        found = _installed_version(name)
        if found is None:
            errors.append(f"{name} not installed - required for {purpose}")
        elif _below(found, minimum):
            errors.append(f"{name} {minimum}+ required, found {found}")

    optional_warnings = []
    for name, minimum, purpose in OPTIONAL:
        found = _installed_version(name)
        if found is None:
            optional_warnings.append(f"{name} not found - needed for {purpose}")
        elif _below(found, minimum):
            optional_warnings.append(f"{name} {minimum}+ recommended, found {found}")

    if errors:
        error_msg = "Environment validation failed:\n" + "\n".join(f"  - {err}" for err in errors)
        if optional_warnings:
            error_msg += "\n\nWarnings:\n" + "\n".join(f"  - {warn}" for warn in optional_warnings)
        error_msg += "\n\nTo install required dependencies:\n  pip install -e ."
        raise RuntimeError(error_msg)

    if optional_warnings:
        warning_msg = "Environment warnings:\n" + "\n".join(f"  - {warn}" for warn in optional_warnings)
        warnings.warn(warning_msg, UserWarning)

    return optional_warnings


def get_dependency_versions() -> Dict[str, str]:
    """Get versions of all relevant dependencies.

    Returns
    -------
    dict
        Dictionary mapping package names to version strings
    """
    versions = {
        'python': f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    }
    for name, _minimum, _purpose in REQUIRED + OPTIONAL:
        versions[name] = _installed_version(name) or 'not installed'

    if sys.version_info >= (3, 11):
        versions['tomllib'] = 'built-in (3.11+)'
    else:
        versions['tomli'] = _installed_version('tomli') or 'not installed'

    return versions


def format_environment_info() -> str:
    """Environment report used by the ``info`` command."""
    versions = get_dependency_versions()
    lines = ["Probabilistic Syntax - Environment Information", "=" * 50, "", "Core Dependencies:"]
    for name in ['python'] + [name for name, _, _ in REQUIRED]:
        lines.append(f"  {name:12}: {versions[name]}")

    lines.extend(["", "Optional:"])
    for name, _, _ in OPTIONAL:
        lines.append(f"  {name:12}: {versions[name]}")
    for name in ('tomllib', 'tomli'):
        if name in versions:
            lines.append(f"  {name:12}: {versions[name]}")

    lines.extend(["", "System Information:",
                  f"  Platform     : {sys.platform}",
                  f"  Architecture : {'64-bit' if sys.maxsize > 2**32 else '32-bit'}"])
    return "\n".join(lines)


def validate_numerical_stability() -> None:
    """Check the log-domain operations training relies on."""
    from scipy.special import logsumexp

    scores = np.array([-1e4, -1e4 + 1.0, -np.inf])
    total = logsumexp(scores)
    if not np.isfinite(total) or total < scores.max():
        raise RuntimeError("Log-sum-exp stability test failed")

    if logsumexp(np.array([-np.inf, -np.inf])) != -np.inf:
        raise RuntimeError("Log-sum-exp does not preserve -inf")
