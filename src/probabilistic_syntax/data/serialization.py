"""Versioned binary persistence for trained models.

A saved model is a zlib-compressed pickle of a small envelope::

    {'format_version': '1.0', 'model_type': 'CRF', 'metadata': {...}, 'model': <model>}

The format is private to this package; only ``format_version`` ``'1.0'`` is
readable and no cross-version compatibility is promised.
"""

import logging
import pickle
import zlib
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from ..errors import IncompatibleModelError, ModelIOError

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"
COMPATIBLE_VERSIONS = frozenset({"1.0"})
COMPRESSION_LEVEL = 6


def serialize(model: Any, metadata: Dict[str, Any]) -> bytes:
    envelope = {
        'format_version': FORMAT_VERSION,
        'model_type': type(model).__name__,
        'metadata': dict(metadata),
        'model': model
    }
    payload = pickle.dumps(envelope, protocol=pickle.HIGHEST_PROTOCOL)
    return zlib.compress(payload, COMPRESSION_LEVEL)


def deserialize(blob: bytes) -> Tuple[Any, Dict[str, Any]]:
    """Decode a blob produced by :func:`serialize`.

    Parameters
    ----------
    blob : bytes
        Compressed envelope

    Returns
    -------
    Tuple[Any, Dict[str, Any]]
        The model and its metadata

    Raises
    ------
    ModelIOError
        If the blob is corrupt or not an envelope
    IncompatibleModelError
        If the envelope carries an unknown format version
    """
    try:
        envelope = pickle.loads(zlib.decompress(blob))
    except (zlib.error, pickle.UnpicklingError, EOFError, AttributeError, ImportError) as exc:
        raise ModelIOError(f"Could not deserialize model: {exc}") from exc

    if not isinstance(envelope, dict) or not {'format_version', 'model'} <= envelope.keys():
        raise ModelIOError("Invalid model format: missing envelope fields")

    version = envelope['format_version']
    if version not in COMPATIBLE_VERSIONS:
        raise IncompatibleModelError(f"Incompatible model format version: {version!r}")

    return envelope['model'], envelope.get('metadata', {})


def save_model(model: Any, path: Union[str, Path], metadata: Optional[Dict[str, Any]] = None) -> Path:
    """Write ``model`` to ``path``; I/O failures surface as :class:`ModelIOError`."""
    path = Path(path)
    blob = serialize(model, metadata if metadata is not None else getattr(model, 'metadata', {}))
    try:
        path.write_bytes(blob)
    except OSError as exc:
        raise ModelIOError(f"Failed to write model to {path}: {exc}") from exc
    logger.info("Saved %s model to %s (%d bytes)", type(model).__name__, path, len(blob))
    return path


def load_model(path: Union[str, Path], expected_type: Optional[type] = None) -> Any:
    """Read a model written by :func:`save_model`.

    Parameters
    ----------
    path : Union[str, Path]
        File to read
    expected_type : Optional[type]
        If given, the loaded model must be an instance of this class

    Returns
    -------
    Any
        The deserialized model
    """
    path = Path(path)
    try:
        blob = path.read_bytes()
    except OSError as exc:
        raise ModelIOError(f"Failed to read model from {path}: {exc}") from exc

    model, _metadata = deserialize(blob)

    if expected_type is not None and not isinstance(model, expected_type):
        raise IncompatibleModelError(
            f"{path} holds a {type(model).__name__} model, expected {expected_type.__name__}"
        )

    logger.info("Loaded %s model from %s", type(model).__name__, path)
    return model
