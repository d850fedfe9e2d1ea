"""Viterbi decoding and forward-backward inference for linear-chain CRFs.

Scores live in the log domain. For a feature-set sequence of length ``n`` and a
label list of length ``L`` the engine builds two lattice matrices:

- emissions ``E`` of shape ``(n, L)``, ``E[t, j] = sum_f weight(f, labels[j])``
- transitions ``T`` of shape ``(L, L)``, ``T[i, j] = transitions[(labels[i], labels[j])]``

and runs the usual O(n·L²) recurrences over them. There is no start or stop
transition: the first position scores by emission alone.
"""

import math
from typing import Dict, FrozenSet, Hashable, List, Sequence, Tuple

import numpy as np
from scipy.special import logsumexp

FeatureWeights = Dict[str, Dict[Hashable, float]]
TransitionWeights = Dict[Tuple[Hashable, Hashable], float]
FeatureSequence = Sequence[FrozenSet[str]]


def emission_score(features, label: Hashable, weights: FeatureWeights) -> float:
    """Sum of ``weight(f, label)`` over the features present; unknown features score 0."""
    total = 0.0
    for feature in features:
        label_weights = weights.get(feature)
        if label_weights is not None:
            total += label_weights.get(label, 0.0)
    return total


def transition_score(prev: Hashable, curr: Hashable, transitions: TransitionWeights) -> float:
    return transitions.get((prev, curr), 0.0)


def emission_matrix(feature_sequence: FeatureSequence,
                    weights: FeatureWeights,
                    labels: Sequence[Hashable]) -> np.ndarray:
    """Emission scores as an ``(n, L)`` array."""
    index = {label: j for j, label in enumerate(labels)}
    matrix = np.zeros((len(feature_sequence), len(labels)))
    for t, features in enumerate(feature_sequence):
        for feature in features:
            label_weights = weights.get(feature)
            if not label_weights:
                continue
            for label, w in label_weights.items():
                j = index.get(label)
                if j is not None:
                    matrix[t, j] += w
    return matrix


def transition_matrix(transitions: TransitionWeights, labels: Sequence[Hashable]) -> np.ndarray:
    """Transition scores as an ``(L, L)`` array indexed ``[prev, curr]``."""
    return np.array([[transitions.get((prev, curr), 0.0) for curr in labels]
                     for prev in labels], dtype=float).reshape(len(labels), len(labels))


def viterbi_lattice(emissions: np.ndarray, transitions: np.ndarray) -> Tuple[List[int], float]:
    """Best label index path and its score over precomputed lattice matrices.

    Ties are broken toward the lower label index.
    """
    n, num_labels = emissions.shape
    if n == 0:
        return [], 0.0

    scores = emissions[0].copy()
    backpointers = np.zeros((n, num_labels), dtype=int)
    for t in range(1, n):
        candidates = scores[:, None] + transitions
        backpointers[t] = np.argmax(candidates, axis=0)
        scores = candidates[backpointers[t], np.arange(num_labels)] + emissions[t]

    best = int(np.argmax(scores))
    path = [best]
    for t in range(n - 1, 0, -1):
        best = int(backpointers[t, best])
        path.append(best)
    path.reverse()
    return path, float(np.max(scores))


def forward_lattice(emissions: np.ndarray, transitions: np.ndarray) -> np.ndarray:
    n, num_labels = emissions.shape
    forward = np.full((n, num_labels), -np.inf)
    if n == 0:
        return forward
    forward[0] = emissions[0]
    for t in range(1, n):
        forward[t] = logsumexp(forward[t - 1][:, None] + transitions, axis=0) + emissions[t]
    return forward


def backward_lattice(emissions: np.ndarray, transitions: np.ndarray) -> np.ndarray:
    n, num_labels = emissions.shape
    backward = np.full((n, num_labels), -np.inf)
    if n == 0:
        return backward
    backward[n - 1] = 0.0
    for t in range(n - 2, -1, -1):
        backward[t] = logsumexp(transitions + (emissions[t + 1] + backward[t + 1])[None, :], axis=1)
    return backward


def decode(feature_sequence: FeatureSequence,
           weights: FeatureWeights,
           transitions: TransitionWeights,
           labels: Sequence[Hashable]) -> Tuple[List[Hashable], float]:
    """Most likely label sequence under the model.

    Parameters
    ----------
    feature_sequence : Sequence[FrozenSet[str]]
        One feature set per token
    weights : FeatureWeights
        ``feature -> label -> weight``
    transitions : TransitionWeights
        ``(prev, curr) -> weight``
    labels : Sequence[Hashable]
        Label inventory; its order breaks ties

    Returns
    -------
    Tuple[List[Hashable], float]
        Best labels (same length as the input) and their unnormalized log score;
        ``([], 0.0)`` for an empty sequence

    Examples
    --------
    >>> decode([frozenset({"word=the"})], {"word=the": {"det": 1.0}}, {}, ["det", "noun"])
    (['det'], 1.0)
    """
    emissions = emission_matrix(feature_sequence, weights, labels)
    path, score = viterbi_lattice(emissions, transition_matrix(transitions, labels))
    return [labels[j] for j in path], score


def forward_probabilities(feature_sequence: FeatureSequence,
                          weights: FeatureWeights,
                          transitions: TransitionWeights,
                          labels: Sequence[Hashable]) -> np.ndarray:
    """Log forward scores, shape ``(n, L)``."""
    return forward_lattice(emission_matrix(feature_sequence, weights, labels),
                           transition_matrix(transitions, labels))


def backward_probabilities(feature_sequence: FeatureSequence,
                           weights: FeatureWeights,
                           transitions: TransitionWeights,
                           labels: Sequence[Hashable]) -> np.ndarray:
    """Log backward scores, shape ``(n, L)``; the last row is zero."""
    return backward_lattice(emission_matrix(feature_sequence, weights, labels),
                            transition_matrix(transitions, labels))


def log_sum_exp(a: float, b: float) -> float:
    """``log(exp(a) + exp(b))`` computed stably; ``-inf`` is the identity."""
    if a == -math.inf:
        return b
    if b == -math.inf:
        return a
    return max(a, b) + math.log1p(math.exp(-abs(a - b)))


def partition_function(forward: np.ndarray) -> float:
    """Log normalizer ``log Z`` from a forward lattice; 0.0 for an empty sequence."""
    if forward.shape[0] == 0:
        return 0.0
    return float(logsumexp(forward[-1]))


def label_marginals(forward: np.ndarray, backward: np.ndarray, log_z: float) -> np.ndarray:
    """Per-position label posteriors; each row sums to one."""
    return np.exp(forward + backward - log_z)


def transition_marginals(forward: np.ndarray,
                         backward: np.ndarray,
                         emissions: np.ndarray,
                         transitions: np.ndarray,
                         log_z: float) -> np.ndarray:
    """Pairwise posteriors ``P(y_t = i, y_{t+1} = j)``, shape ``(n - 1, L, L)``."""
    scores = (forward[:-1, :, None]
              + transitions[None, :, :]
              + (emissions[1:] + backward[1:])[:, None, :])
    return np.exp(scores - log_z)


def sequence_score(feature_sequence: FeatureSequence,
                   labels: Sequence[Hashable],
                   weights: FeatureWeights,
                   transitions: TransitionWeights) -> float:
    """Unnormalized log score of a given label sequence."""
    score = 0.0
    for t, (features, label) in enumerate(zip(feature_sequence, labels)):
        score += emission_score(features, label, weights)
        if t > 0:
            score += transition_score(labels[t - 1], label, transitions)
    return score
