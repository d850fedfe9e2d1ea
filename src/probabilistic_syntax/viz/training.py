"""
Training and evaluation figures.

Loss curves for CRF training, confusion-matrix heatmaps for taggers and
per-token marginal heatmaps for inspecting CRF uncertainty.
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from pathlib import Path
from dataclasses import dataclass

# Publication settings
plt.style.use('seaborn-v0_8-paper')


@dataclass
class TrainingVisualizationConfig:
    """Configuration for training and evaluation figures."""
    figure_size: Tuple[float, float] = (8, 5)
    dpi: int = 100
    font_size: int = 10
    colormap: str = 'Blues'
    annotate: bool = True


def _loss_history(history: Union[Sequence[float], Dict[str, Any], Any]) -> List[float]:
    """Accept a loss list, a metadata dict or a trained CRF."""
    metadata = getattr(history, 'metadata', None)
    if metadata is not None:
        history = metadata
    if isinstance(history, dict):
        if 'loss_history' not in history:
            raise ValueError("No 'loss_history' found; was the model trained?")
        history = history['loss_history']
    return [float(v) for v in history]


def plot_loss_curve(history: Union[Sequence[float], Dict[str, Any], Any],
                    config: Optional[TrainingVisualizationConfig] = None,
                    log_scale: bool = False) -> plt.Figure:
    """
    Plot average negative log-likelihood per training iteration.

    Parameters
    ----------
    history : Sequence[float], dict or CRF
        Loss values, model metadata, or a trained model
    config : Optional[TrainingVisualizationConfig]
        Visualization configuration
    log_scale : bool, default=False
        Use a logarithmic y axis

    Returns
    -------
    plt.Figure
        Loss curve figure
    """
    if config is None:
        config = TrainingVisualizationConfig()
    losses = _loss_history(history)

    fig, ax = plt.subplots(figsize=config.figure_size, dpi=config.dpi)
    iterations = range(1, len(losses) + 1)
    ax.plot(iterations, losses, 'b-', linewidth=2, marker='o' if len(losses) < 30 else None)
    ax.set_xlabel('Iteration', fontsize=config.font_size)
    ax.set_ylabel('Negative Log-Likelihood', fontsize=config.font_size)
    ax.set_title('CRF Training Loss', fontsize=config.font_size)
    ax.grid(True, alpha=0.3)
    ax.tick_params(labelsize=config.font_size - 1)
    if log_scale and losses and min(losses) > 0:
        ax.set_yscale('log')

    plt.tight_layout()
    return fig


def plot_confusion_matrix(matrix: pd.DataFrame,
                          normalize: bool = False,
                          config: Optional[TrainingVisualizationConfig] = None) -> plt.Figure:
    """
    Heatmap of a confusion matrix from
    :func:`~probabilistic_syntax.evaluation.metrics.confusion_matrix`.

    Parameters
    ----------
    matrix : pd.DataFrame
        Gold labels as rows, predicted labels as columns
    normalize : bool, default=False
        Show row-normalized rates instead of counts
    config : Optional[TrainingVisualizationConfig]
        Visualization configuration

    Returns
    -------
    plt.Figure
        Heatmap figure
    """
    if config is None:
        config = TrainingVisualizationConfig()

    values = matrix.astype(float)
    if normalize:
        row_sums = values.sum(axis=1).replace(0, np.nan)
        values = values.div(row_sums, axis=0).fillna(0.0)

    fig, ax = plt.subplots(figsize=config.figure_size, dpi=config.dpi)
    sns.heatmap(values, annot=config.annotate, fmt='.2f' if normalize else '.0f',
                cmap=config.colormap, cbar=True, square=True, ax=ax)
    ax.set_xlabel('Predicted', fontsize=config.font_size)
    ax.set_ylabel('Gold', fontsize=config.font_size)
    ax.set_title('Confusion Matrix' + (' (row-normalized)' if normalize else ''),
                 fontsize=config.font_size)

    plt.tight_layout()
    return fig


def plot_marginals(marginals: Sequence[Dict[Any, float]],
                   tokens: Optional[Sequence[Any]] = None,
                   config: Optional[TrainingVisualizationConfig] = None) -> plt.Figure:
    """Heatmap of per-token label probabilities returned by ``CRF.marginals``."""
    if config is None:
        config = TrainingVisualizationConfig()

    frame = pd.DataFrame(list(marginals)).fillna(0.0)
    if tokens is not None:
        frame.index = [getattr(t, 'text', t) for t in tokens]

    fig, ax = plt.subplots(figsize=config.figure_size, dpi=config.dpi)
    sns.heatmap(frame.T, annot=config.annotate, fmt='.2f', vmin=0.0, vmax=1.0,
                cmap=config.colormap, ax=ax)
    ax.set_xlabel('Token', fontsize=config.font_size)
    ax.set_ylabel('Label', fontsize=config.font_size)
    ax.set_title('Label Marginals', fontsize=config.font_size)

    plt.tight_layout()
    return fig


def save_figure(fig: plt.Figure,
                path: Union[str, Path],
                formats: Sequence[str] = ('png',),
                dpi: int = 300) -> List[Path]:
    """Save a figure under ``path`` (suffix replaced) in each format."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    saved = []
    for fmt in formats:
        target = path.with_suffix(f'.{fmt}')
        fig.savefig(target, dpi=dpi, bbox_inches='tight')
        saved.append(target)
    return saved
