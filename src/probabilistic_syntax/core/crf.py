"""Linear-chain conditional random field for sequence labeling.

Models the conditional probability of a label sequence ``y`` given tokens ``x``::

    P(y | x) = exp(score(x, y)) / Z(x)
    score(x, y) = sum_t sum_{f in features(x_t)} w[f][y_t] + sum_{t>0} T[y_{t-1}, y_t]

Training minimizes the average negative log-likelihood with L2 regularization
by gradient descent, computing expected feature counts with forward-backward.
Prediction is Viterbi decoding.
"""

import logging
import math
import warnings
from dataclasses import dataclass
from typing import Dict, FrozenSet, Hashable, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from . import optimizer
from .features import FeatureOptions, extract_sequence
from .model import StatisticalModel
from .viterbi import (
    emission_matrix,
    transition_matrix,
    viterbi_lattice,
    forward_lattice,
    backward_lattice,
    partition_function,
    label_marginals,
    transition_marginals,
    sequence_score
)
from ..config.random_state import make_rng
from ..data.tokens import TokenLike
from ..errors import ConfigurationError, TrainingDataError

logger = logging.getLogger(__name__)

INIT_SCALE = 0.01
LOG_EVERY = 10


@dataclass
class CRFIterationStats:
    """Loss and gradient statistics for one training iteration.

    Attributes
    ----------
    iteration : int
        1-based iteration number
    loss : float
        Average negative log-likelihood before this iteration's update
    gradient_norm : float
        L2 norm of the combined feature and transition gradient
    """
    iteration: int
    loss: float
    gradient_norm: float


class CRF(StatisticalModel):
    """Linear-chain CRF over sparse string features.

    Parameters
    ----------
    labels : Sequence[Hashable]
        Label inventory. Its order breaks decoding ties.
    language : str, default="en"
        Language code recorded with the model

    Attributes
    ----------
    feature_weights : Dict[str, Dict[Hashable, float]]
        ``feature -> label -> weight``
    transition_weights : Dict[Tuple[Hashable, Hashable], float]
        ``(prev, curr) -> weight``
    feature_options : FeatureOptions
        Feature extraction settings used at training time, reused for prediction
    history : List[CRFIterationStats]
        Statistics of the most recent training run

    Examples
    --------
    >>> crf = CRF(["person", "none"])
    >>> trained = crf.train([(["John", "runs"], ["person", "none"])], iterations=20)
    >>> len(trained.predict(["Mary", "sleeps"]))
    2
    """

    def __init__(self, labels: Sequence[Hashable], language: str = "en"):
        super().__init__()
        labels = list(labels)
        if not labels:
            raise ConfigurationError("CRF requires at least one label")
        if len(set(labels)) != len(labels):
            raise ConfigurationError(f"Duplicate labels in {labels}")

        self.labels: List[Hashable] = labels
        self.label_set = frozenset(labels)
        self.language = language
        self.feature_weights: Dict[str, Dict[Hashable, float]] = {}
        self.transition_weights: Dict[Tuple[Hashable, Hashable], float] = {}
        self.feature_options = FeatureOptions()
        self.history: List[CRFIterationStats] = []

    def _validate_data(self, training_data) -> List[Tuple[list, list]]:
        if training_data is None or len(training_data) == 0:
            raise TrainingDataError("Training data is empty")

        pairs = []
        for i, example in enumerate(training_data):
            try:
                tokens, labels = example
            except (TypeError, ValueError) as exc:
                raise TrainingDataError(f"Example {i} is not a (tokens, labels) pair") from exc
            tokens, labels = list(tokens), list(labels)
            if len(tokens) != len(labels):
                raise TrainingDataError(
                    f"Example {i}: {len(tokens)} tokens but {len(labels)} labels"
                )
            unknown = set(labels) - self.label_set
            if unknown:
                raise TrainingDataError(
                    f"Example {i}: labels {sorted(map(str, unknown))} not in label set {self.labels}"
                )
            pairs.append((tokens, labels))
        return pairs

    @staticmethod
    def _validate_options(iterations, learning_rate, regularization, method,
                          convergence_threshold, loss_threshold):
        if not isinstance(iterations, int) or iterations < 1:
            raise ConfigurationError(f"iterations must be a positive integer, got {iterations!r}")
        if convergence_threshold < 0 or loss_threshold < 0:
            raise ConfigurationError("Convergence thresholds must be non-negative")
        # Remaining checks live with the optimizer configuration.
        optimizer.new(method=method, learning_rate=learning_rate, regularization=regularization)

    def _initial_weights(self, feature_sequences, rng: np.random.Generator):
        """Carry existing weights forward; new features get small random weights, new transitions 0."""
        feature_weights = {f: dict(w) for f, w in self.feature_weights.items()}
        seen = set()
        for sequence in feature_sequences:
            for features in sequence:
                seen.update(features)
        new_features = sorted(seen - feature_weights.keys())

        for feature in new_features:
            feature_weights[feature] = optimizer.initialize_weights(self.labels, INIT_SCALE, rng)
        for feature, label_weights in feature_weights.items():
            missing = [label for label in self.labels if label not in label_weights]
            if missing:
                label_weights.update(optimizer.initialize_weights(missing, INIT_SCALE, rng))

        transition_weights = {(prev, curr): self.transition_weights.get((prev, curr), 0.0)
                              for prev in self.labels for curr in self.labels}

        return feature_weights, transition_weights, len(new_features)

    def _gradient(self, feature_sequences, gold_indices, feature_weights, transition_weights):
        """Average NLL and its gradients ``-(observed - expected) / N``."""
        num_labels = len(self.labels)
        transitions = transition_matrix(transition_weights, self.labels)
        feature_grad: Dict[str, np.ndarray] = {}
        transition_grad = np.zeros((num_labels, num_labels))
        total_loss = 0.0

        for sequence, gold in zip(feature_sequences, gold_indices):
            if not sequence:
                continue
            emissions = emission_matrix(sequence, feature_weights, self.labels)
            forward = forward_lattice(emissions, transitions)
            backward = backward_lattice(emissions, transitions)
            log_z = partition_function(forward)
            marginals = label_marginals(forward, backward, log_z)

            gold_score = emissions[np.arange(len(gold)), gold].sum()
            gold_score += sum(transitions[gold[t - 1], gold[t]] for t in range(1, len(gold)))
            total_loss += log_z - gold_score

            for t, features in enumerate(sequence):
                delta = -marginals[t]
                delta[gold[t]] += 1.0
                for feature in features:
                    accumulated = feature_grad.get(feature)
                    if accumulated is None:
                        feature_grad[feature] = delta.copy()
                    else:
                        accumulated += delta

            if len(sequence) > 1:
                pairwise = transition_marginals(forward, backward, emissions, transitions, log_z)
                transition_grad -= pairwise.sum(axis=0)
                for t in range(1, len(gold)):
                    transition_grad[gold[t - 1], gold[t]] += 1.0

        n = len(feature_sequences)
        feature_gradient = {
            feature: {label: float(-values[j] / n) for j, label in enumerate(self.labels)}
            for feature, values in feature_grad.items()
        }
        transition_gradient = {
            (prev, curr): float(-transition_grad[i, j] / n)
            for i, prev in enumerate(self.labels)
            for j, curr in enumerate(self.labels)
        }
        return feature_gradient, transition_gradient, total_loss / n

    def train(self,
              training_data,
              iterations: int = 100,
              learning_rate: float = 0.1,
              regularization: float = 1.0,
              method: str = "momentum",
              convergence_threshold: float = 0.01,
              loss_threshold: float = 1e-4,
              feature_options: Optional[FeatureOptions] = None,
              random_state: Optional[int] = None,
              verbose: bool = False) -> 'CRF':
        """Fit feature and transition weights to labelled sequences.

        Parameters
        ----------
        training_data : Sequence[Tuple[Sequence[TokenLike], Sequence[Hashable]]]
            ``(tokens, labels)`` pairs of equal length
        iterations : int, default=100
            Maximum number of gradient evaluations
        learning_rate : float, default=0.1
            Optimizer step size
        regularization : float, default=1.0
            L2 strength
        method : str, default="momentum"
            ``"sgd"``, ``"momentum"`` or ``"adagrad"``
        convergence_threshold : float, default=0.01
            Stop once the gradient norm falls below this
        loss_threshold : float, default=1e-4
            Stop once the relative loss improvement falls below this
        feature_options : Optional[FeatureOptions]
            Feature extraction settings; defaults to the model's current ones
        random_state : Optional[int]
            Seed for initializing new weights; defaults to the global seed
        verbose : bool, default=False
            Show a progress bar

        Returns
        -------
        CRF
            A new trained model; ``self`` is not modified

        Raises
        ------
        TrainingDataError
            If the data is empty, lengths mismatch, or labels are unknown
        ConfigurationError
            If an option value is invalid
        """
        pairs = self._validate_data(training_data)
        self._validate_options(iterations, learning_rate, regularization, method,
                               convergence_threshold, loss_threshold)

        trained = self._copy()
        if feature_options is not None:
            trained.feature_options = feature_options

        label_index = {label: j for j, label in enumerate(trained.labels)}
        feature_sequences = [extract_sequence(tokens, trained.feature_options) for tokens, _ in pairs]
        gold_indices = [np.array([label_index[label] for label in labels], dtype=int)
                        for _, labels in pairs]

        rng = make_rng(random_state)
        feature_weights, transition_weights, num_new = trained._initial_weights(feature_sequences, rng)

        feature_state = optimizer.new(method=method, learning_rate=learning_rate,
                                      regularization=regularization)
        transition_state = optimizer.new(method=method, learning_rate=learning_rate,
                                         regularization=regularization)

        logger.info("Starting CRF training: %d sequences, %d features (%d new), %d labels, method=%s",
                    len(pairs), len(feature_weights), num_new, len(trained.labels), method)

        history: List[CRFIterationStats] = []
        prev_loss = math.inf
        converged = False
        steps = 0

        progress = tqdm(range(1, iterations + 1), desc="CRF training", disable=not verbose)
        for iteration in progress:
            feature_grad, transition_grad, loss = trained._gradient(
                feature_sequences, gold_indices, feature_weights, transition_weights)
            grad_norm = optimizer.gradient_norm(feature_grad, transition_grad)
            history.append(CRFIterationStats(iteration, loss, grad_norm))

            if not math.isfinite(loss):
                warnings.warn(f"Non-finite CRF loss at iteration {iteration}; stopping training")
                break

            if optimizer.converged(grad_norm, prev_loss, loss,
                                   grad_threshold=convergence_threshold,
                                   loss_threshold=loss_threshold,
                                   max_iterations=iterations,
                                   iteration=steps):
                converged = True
                logger.info("CRF converged at iteration %d (loss=%.4f, grad_norm=%.4f)",
                            iteration, loss, grad_norm)
                break

            feature_weights, feature_state = optimizer.step(feature_weights, feature_grad, feature_state)
            transition_weights, transition_state = optimizer.step(
                transition_weights, transition_grad, transition_state)
            steps += 1
            prev_loss = loss

            if iteration % LOG_EVERY == 0:
                logger.info("Iteration %d: loss=%.4f, grad_norm=%.4f", iteration, loss, grad_norm)
            else:
                logger.debug("Iteration %d: loss=%.4f, grad_norm=%.4f", iteration, loss, grad_norm)
            progress.set_postfix(loss=f"{loss:.4f}")
        progress.close()

        trained.feature_weights = feature_weights
        trained.transition_weights = transition_weights
        trained.history = history
        trained.metadata = {
            **self.metadata,
            'model_type': 'crf',
            'language': trained.language,
            'labels': list(trained.labels),
            'iterations': steps,
            'final_loss': history[-1].loss if history else math.nan,
            'loss_history': [stats.loss for stats in history],
            'converged': converged,
            'trained_at': self._timestamp(),
            'training_size': len(pairs),
            'num_features': len(feature_weights)
        }
        return trained

    def _features(self, tokens: Sequence[TokenLike]) -> List[FrozenSet[str]]:
        return extract_sequence(list(tokens), self.feature_options)

    def predict_with_score(self, tokens: Sequence[TokenLike]) -> Tuple[List[Hashable], float]:
        """Viterbi labels and their unnormalized log score."""
        self._require_trained()
        emissions = emission_matrix(self._features(tokens), self.feature_weights, self.labels)
        path, score = viterbi_lattice(emissions, transition_matrix(self.transition_weights, self.labels))
        return [self.labels[j] for j in path], score

    def predict(self, tokens: Sequence[TokenLike], **options) -> List[Hashable]:
        """Most likely label sequence for ``tokens`` (same length, ``[]`` for no tokens)."""
        labels, _score = self.predict_with_score(tokens)
        return labels

    def marginals(self, tokens: Sequence[TokenLike]) -> List[Dict[Hashable, float]]:
        """Posterior label distribution at each position."""
        self._require_trained()
        emissions = emission_matrix(self._features(tokens), self.feature_weights, self.labels)
        transitions = transition_matrix(self.transition_weights, self.labels)
        forward = forward_lattice(emissions, transitions)
        backward = backward_lattice(emissions, transitions)
        probabilities = label_marginals(forward, backward, partition_function(forward))
        return [dict(zip(self.labels, map(float, row))) for row in probabilities]

    def score(self, tokens: Sequence[TokenLike], labels: Sequence[Hashable]) -> float:
        """Unnormalized log score of a given labelling."""
        self._require_trained()
        return sequence_score(self._features(tokens), list(labels),
                              self.feature_weights, self.transition_weights)

    def log_likelihood(self, tokens: Sequence[TokenLike], labels: Sequence[Hashable]) -> float:
        """``log P(labels | tokens)`` under the model."""
        self._require_trained()
        features = self._features(tokens)
        forward = forward_lattice(emission_matrix(features, self.feature_weights, self.labels),
                                  transition_matrix(self.transition_weights, self.labels))
        return self.score(tokens, labels) - partition_function(forward)

    def __repr__(self) -> str:
        return (f"CRF(labels={self.labels!r}, language={self.language!r}, "
                f"features={len(self.feature_weights)}, trained={self.is_trained})")
