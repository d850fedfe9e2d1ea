"""Gradient-based optimization over sparse weight tables.

Weight tables are plain dictionaries whose values are either numbers (flat
tables such as CRF transitions keyed by ``(prev, curr)``) or dictionaries of
numbers (nested tables such as CRF feature weights ``feature -> label -> w``).
Every function returns new tables; inputs are never mutated.

Update rules (L2 regularization strength ``reg``, learning rate ``lr``)::

    sgd       w := w - lr * (g + reg * w)
    momentum  v := mu * v + lr * (g + reg * w);   w := w - v
    adagrad   G := G + g**2;  w := w - lr / (sqrt(G) + eps) * (g + reg * w)
"""

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Hashable, Iterable, Optional, Union

import numpy as np

from ..errors import ConfigurationError

Value = Union[float, Dict[Hashable, float]]
WeightTable = Dict[Hashable, Value]

METHODS = ("sgd", "momentum", "adagrad")
SCHEDULES = ("constant", "step", "exponential", "inverse")
ADAGRAD_EPSILON = 1e-8


@dataclass(frozen=True)
class OptimizerState:
    """Optimizer configuration plus per-weight accumulator.

    Attributes
    ----------
    method : str
        One of ``"sgd"``, ``"momentum"``, ``"adagrad"``
    learning_rate : float
        Step size
    momentum : float
        Velocity decay for ``"momentum"``
    regularization : float
        L2 strength
    velocity : WeightTable
        Momentum velocity, or accumulated squared gradients for adagrad
    iteration : int
        Number of steps taken
    """
    method: str = "momentum"
    learning_rate: float = 0.1
    momentum: float = 0.9
    regularization: float = 1.0
    velocity: WeightTable = field(default_factory=dict)
    iteration: int = 0


def new(method: str = "momentum",
        learning_rate: float = 0.1,
        momentum: float = 0.9,
        regularization: float = 1.0) -> OptimizerState:
    """Create a fresh optimizer state, validating its configuration."""
    if method not in METHODS:
        raise ConfigurationError(f"Unknown optimization method {method!r}. Available: {list(METHODS)}")
    if not learning_rate > 0:
        raise ConfigurationError(f"learning_rate must be positive, got {learning_rate}")
    if regularization < 0:
        raise ConfigurationError(f"regularization must be non-negative, got {regularization}")
    if not 0 <= momentum < 1:
        raise ConfigurationError(f"momentum must be in [0, 1), got {momentum}")
    return OptimizerState(method=method, learning_rate=learning_rate,
                          momentum=momentum, regularization=regularization)


def _entry(table: Any, label: Optional[Hashable]) -> float:
    """Scalar for ``label`` from a number or a label map (missing -> 0.0)."""
    if isinstance(table, dict):
        return table.get(label, 0.0) if label is not None else 0.0
    return table if label is None else 0.0


def _map_leaves(weight: Value, fn) -> Value:
    """Apply ``fn(label, w)`` to a number (label ``None``) or each entry of a label map."""
    if isinstance(weight, dict):
        return {label: fn(label, w) for label, w in weight.items()}
    return fn(None, weight)


def _update_scalar(state: OptimizerState, w: float, g: float, acc: float):
    lr = state.learning_rate
    reg = state.regularization
    if state.method == "sgd":
        return w - lr * (g + reg * w), acc
    if state.method == "momentum":
        velocity = state.momentum * acc + lr * (g + reg * w)
        return w - velocity, velocity
    accumulated = acc + g * g
    return w - lr / (math.sqrt(accumulated) + ADAGRAD_EPSILON) * (g + reg * w), accumulated


def step(weights: WeightTable, gradient: WeightTable, state: OptimizerState):
    """Perform one optimization step.

    Only keys present in ``weights`` are updated; gradient entries for unknown
    keys are ignored and missing gradient entries count as zero.

    Parameters
    ----------
    weights : WeightTable
        Current weights
    gradient : WeightTable
        Loss gradient, same shape as ``weights``
    state : OptimizerState
        Optimizer state from :func:`new` or a previous step

    Returns
    -------
    Tuple[WeightTable, OptimizerState]
        Updated weights and optimizer state
    """
    new_weights: WeightTable = {}
    new_velocity: WeightTable = dict(state.velocity)

    for key, weight in weights.items():
        grad = gradient.get(key, 0.0)
        prev = state.velocity.get(key, 0.0)
        updates = _map_leaves(
            weight, lambda label, w: _update_scalar(state, w, _entry(grad, label), _entry(prev, label)))

        if isinstance(updates, dict):
            new_weights[key] = {label: pair[0] for label, pair in updates.items()}
            new_velocity[key] = {label: pair[1] for label, pair in updates.items()}
        else:
            new_weights[key], new_velocity[key] = updates

    return new_weights, replace(state, velocity=new_velocity, iteration=state.iteration + 1)


def flatten(weights: WeightTable) -> Dict[Hashable, float]:
    """Flatten nested tables to ``(key, label) -> w``; flat entries keep their key."""
    flat: Dict[Hashable, float] = {}
    for key, value in weights.items():
        if isinstance(value, dict):
            for label, w in value.items():
                flat[(key, label)] = w
        else:
            flat[key] = value
    return flat


def gradient_norm(*gradients: WeightTable) -> float:
    """L2 norm over every entry of one or more gradient tables."""
    total = 0.0
    for gradient in gradients:
        values = np.fromiter(flatten(gradient).values(), dtype=float)
        total += float(np.dot(values, values))
    return math.sqrt(total)


def converged(gradient: Union[WeightTable, float],
              prev_loss: float,
              curr_loss: float,
              grad_threshold: float = 0.01,
              loss_threshold: float = 1e-4,
              max_iterations: int = 100,
              iteration: int = 0) -> bool:
    """Decide whether training should stop.

    Stops when the iteration budget is spent, the gradient norm falls below
    ``grad_threshold``, or the relative loss improvement falls below
    ``loss_threshold``.

    Parameters
    ----------
    gradient : WeightTable or float
        Gradient table, or an already computed gradient norm
    prev_loss, curr_loss : float
        Losses of the previous and current iteration
    grad_threshold : float, default=0.01
        Gradient norm threshold
    loss_threshold : float, default=1e-4
        Relative improvement threshold
    max_iterations : int, default=100
        Iteration budget
    iteration : int, default=0
        Current iteration

    Returns
    -------
    bool
        Whether any stopping criterion is met

    Notes
    -----
    A non-finite previous loss (the first iteration) yields an infinite
    relative improvement, so the loss criterion never fires before two finite
    losses have been observed.
    """
    if iteration >= max_iterations:
        return True

    grad_norm = gradient if isinstance(gradient, (int, float)) else gradient_norm(gradient)
    if grad_norm < grad_threshold:
        return True

    if not (math.isfinite(prev_loss) and math.isfinite(curr_loss)):
        return False

    improvement = abs(prev_loss - curr_loss)
    relative = improvement / abs(prev_loss) if prev_loss != 0 else improvement
    return relative < loss_threshold


def regularize_weights(weights: WeightTable, strength: float) -> float:
    """L2 penalty ``strength / 2 * ||w||^2``."""
    values = np.fromiter(flatten(weights).values(), dtype=float)
    return float(strength / 2.0 * np.dot(values, values))


def regularization_gradient(weights: WeightTable, strength: float) -> WeightTable:
    return scale_weights(weights, strength)


def clip_gradient(gradient: WeightTable, max_norm: float = 5.0) -> WeightTable:
    """Rescale ``gradient`` so that its L2 norm does not exceed ``max_norm``."""
    norm = gradient_norm(gradient)
    if norm <= max_norm:
        return gradient
    return scale_weights(gradient, max_norm / norm)


def learning_rate_schedule(initial_lr: float,
                           iteration: int,
                           schedule: str = "constant",
                           decay_factor: float = 0.9,
                           decay_steps: int = 10,
                           decay_rate: float = 0.95,
                           decay: float = 0.01) -> float:
    """Learning rate at ``iteration`` under ``schedule``.

    ``"step"`` multiplies by ``decay_factor`` every ``decay_steps`` iterations,
    ``"exponential"`` by ``decay_rate`` every iteration, and ``"inverse"`` gives
    ``initial_lr / (1 + decay * iteration)``.
    """
    if schedule == "constant":
        return initial_lr
    if schedule == "step":
        return initial_lr * decay_factor ** (iteration // decay_steps)
    if schedule == "exponential":
        return initial_lr * decay_rate ** iteration
    if schedule == "inverse":
        return initial_lr / (1.0 + decay * iteration)
    raise ConfigurationError(f"Unknown learning rate schedule {schedule!r}. Available: {list(SCHEDULES)}")


def initialize_weights(keys: Iterable[Hashable],
                       scale: float = 0.01,
                       rng: Optional[np.random.Generator] = None) -> Dict[Hashable, float]:
    """Uniform random weights in ``[-scale, scale]`` for each key."""
    keys = list(keys)
    rng = rng if rng is not None else np.random.default_rng()
    values = rng.uniform(-scale, scale, size=len(keys))
    return {key: float(value) for key, value in zip(keys, values)}


def add_weights(first: WeightTable, second: WeightTable) -> WeightTable:
    """Element-wise sum over the union of keys (and labels, for nested entries)."""
    result: WeightTable = {}
    for key in first.keys() | second.keys():
        a = first.get(key)
        b = second.get(key)
        if a is None:
            result[key] = dict(b) if isinstance(b, dict) else b
        elif b is None:
            result[key] = dict(a) if isinstance(a, dict) else a
        elif isinstance(a, dict) and isinstance(b, dict):
            result[key] = {label: a.get(label, 0.0) + b.get(label, 0.0)
                           for label in a.keys() | b.keys()}
        elif isinstance(a, dict):
            result[key] = {label: w + b for label, w in a.items()}
        elif isinstance(b, dict):
            result[key] = {label: a + w for label, w in b.items()}
        else:
            result[key] = a + b
    return result


def scale_weights(weights: WeightTable, factor: float) -> WeightTable:
    return {key: _map_leaves(value, lambda _label, w: w * factor)
            for key, value in weights.items()}
