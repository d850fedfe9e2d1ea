"""Common interface for the trainable statistical models.

Every model follows the same lifecycle::

    model = SomeModel(**options)
    model = model.train(training_data)
    model.save("model.bin")
    model = SomeModel.load("model.bin")
    predictions = model.predict(inputs)

``train`` returns a new trained instance; the receiver is left untouched so
that a failed or interrupted training run never leaves half-updated tables.
"""

import copy
import datetime
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Union

from ..data.serialization import load_model, save_model
from ..errors import NotTrainedError


class StatisticalModel(ABC):
    """Base class providing persistence and metadata for trained models."""

    def __init__(self):
        self.metadata: Dict[str, Any] = {}

    @abstractmethod
    def train(self, training_data, **options) -> 'StatisticalModel':
        """Return a new model fitted to ``training_data``."""

    @abstractmethod
    def predict(self, inputs, **options):
        """Predict labels or structures for ``inputs``."""

    @property
    def is_trained(self) -> bool:
        return 'trained_at' in self.metadata

    def _require_trained(self):
        if not self.is_trained:
            raise NotTrainedError(f"{type(self).__name__} must be trained before use")

    def _copy(self) -> 'StatisticalModel':
        return copy.deepcopy(self)

    @staticmethod
    def _timestamp() -> str:
        return datetime.datetime.now(datetime.timezone.utc).isoformat()

    def save(self, path: Union[str, Path]) -> Path:
        """Serialize the model to ``path``."""
        return save_model(self, path, self.metadata)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'StatisticalModel':
        """Load a model saved with :meth:`save`; the stored type must match ``cls``."""
        return load_model(path, expected_type=cls)
