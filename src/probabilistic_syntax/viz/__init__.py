"""
Probabilistic Syntax Visualization Module.

Figures for monitoring training and inspecting model output.

Modules:
- training: loss curves, confusion matrices and marginal heatmaps
"""

from .training import (
    TrainingVisualizationConfig,
    plot_loss_curve,
    plot_confusion_matrix,
    plot_marginals,
    save_figure
)

__all__ = [
    'TrainingVisualizationConfig',
    'plot_loss_curve',
    'plot_confusion_matrix',
    'plot_marginals',
    'save_figure'
]
