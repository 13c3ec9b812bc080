"""
Visualization and utility functions for the regression engine.

The engine works on 3-D points, so plots show a planar slice through the
domain: the posterior mean or variance evaluated on a grid in the plane
``axis = value``, with the zero level set of the mean drawn on top (the
estimated implicit surface when targets encode signed distance).

Example:
    >>> from incgp import GaussianProcessEngine, plot_prediction_slice
    >>> gp = GaussianProcessEngine(noise=1e-4)
    >>> gp.add_observations(points, targets)
    >>> plot_prediction_slice(gp, axis="z", value=0.0, quantity="variance")
"""

import logging
from typing import Tuple

import matplotlib.pyplot as plt
import numpy as np
import torch
from scipy import stats

from .config import (
    DEFAULT_CONFIDENCE_LEVEL,
    DEFAULT_DPI,
    DEFAULT_FIGSIZE,
    DEFAULT_SLICE_RESOLUTION,
    DTYPE,
)

logger = logging.getLogger(__name__)

AXES = {"x": 0, "y": 1, "z": 2}


def confidence_bounds(
    mean: torch.Tensor,
    var: torch.Tensor,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL
) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Two-sided Gaussian confidence interval around a predictive mean.

    The bounds are mean ± k*std with k = Φ⁻¹((1 + confidence_level) / 2),
    so 0.95 gives k ≈ 1.96. Negative variances from round-off are treated
    as zero.

    Args:
        mean: Predictive means, any shape
        var: Predictive variances, same shape as mean
        confidence_level: Coverage probability in (0, 1). Default: 0.95

    Returns:
        Tuple (lower, upper) with the shape of mean

    Raises:
        ValueError: If confidence_level is not strictly between 0 and 1
    """
    if not 0.0 < confidence_level < 1.0:
        raise ValueError(f"confidence_level must be in (0, 1), got {confidence_level}")
    k = float(stats.norm.ppf((1.0 + confidence_level) / 2.0))
    std = torch.sqrt(torch.clamp(torch.as_tensor(var, dtype=DTYPE), min=0.0))
    mean = torch.as_tensor(mean, dtype=DTYPE)
    return mean - k * std, mean + k * std


def slice_grid(
    axis: str = "z",
    value: float = 0.0,
    extent: Tuple[float, float] = (-1.5, 1.5),
    resolution: int = DEFAULT_SLICE_RESOLUTION
) -> Tuple[np.ndarray, np.ndarray, torch.Tensor]:
    """
    Points of a square grid in the plane ``axis = value``.

    Returns:
        Tuple (U, V, points): meshgrid coordinates of the two free axes, each
        (resolution, resolution), and the grid as 3-D points of shape
        (resolution², 3)

    Raises:
        ValueError: If axis is not "x", "y" or "z"
    """
    if axis not in AXES:
        raise ValueError(f"axis must be one of {', '.join(AXES)}, got '{axis}'")
    ticks = np.linspace(extent[0], extent[1], resolution)
    U, V = np.meshgrid(ticks, ticks)
    free = [i for i in range(3) if i != AXES[axis]]
    points = np.empty((U.size, 3))
    points[:, AXES[axis]] = value
    points[:, free[0]] = U.ravel()
    points[:, free[1]] = V.ravel()
    return U, V, torch.as_tensor(points, dtype=DTYPE)


def plot_prediction_slice(
    engine,
    axis: str = "z",
    value: float = 0.0,
    extent: Tuple[float, float] = (-1.5, 1.5),
    resolution: int = DEFAULT_SLICE_RESOLUTION,
    quantity: str = "variance",
    title: str | None = None,
    figsize: tuple = DEFAULT_FIGSIZE,
    save_path: str | None = None,
    show: bool = True
):
    """
    Plot the posterior mean or variance of an engine on a planar slice.

    Draws a filled contour of the chosen quantity, the zero level set of
    the mean, and the training points lying close to the slice plane.

    Args:
        engine: A GaussianProcessEngine
        axis: Axis normal to the slice ("x", "y" or "z"). Default: "z"
        value: Coordinate of the slice along ``axis``. Default: 0.0
        extent: Range of both in-plane coordinates. Default: (-1.5, 1.5)
        resolution: Grid points per in-plane axis
        quantity: "variance" or "mean". Default: "variance"
        title: Plot title. Default: derived from quantity and slice
        figsize: Figure size as (width, height) tuple
        save_path: If provided, save figure to this path
        show: Whether to call ``plt.show()``. Default: True

    Returns:
        The matplotlib Figure

    Raises:
        ValueError: If quantity or axis is not recognized
    """
    if quantity not in ("variance", "mean"):
        raise ValueError(f"quantity must be 'variance' or 'mean', got '{quantity}'")

    U, V, points = slice_grid(axis, value, extent, resolution)
    mean, var = engine.predict(points)
    mean = mean.numpy().reshape(U.shape)
    field = var.numpy().reshape(U.shape) if quantity == "variance" else mean

    fig, ax = plt.subplots(figsize=figsize)
    contour = ax.contourf(U, V, field, levels=30, cmap="viridis")
    fig.colorbar(contour, ax=ax, label=quantity)
    if mean.min() < 0.0 < mean.max():
        ax.contour(U, V, mean, levels=[0.0], colors="white", linewidths=2)

    free = [i for i in range(3) if i != AXES[axis]]
    if len(engine):
        X = engine.samples.inputs().numpy()
        spacing = (extent[1] - extent[0]) / max(resolution - 1, 1)
        near = np.abs(X[:, AXES[axis]] - value) <= spacing
        ax.scatter(X[near, free[0]], X[near, free[1]], color="red", s=15,
                   label="Training Data", zorder=3)
        if near.any():
            ax.legend(loc="best", fontsize=10)

    names = [name for name in AXES if name != axis]
    ax.set_xlabel(names[0], fontsize=12)
    ax.set_ylabel(names[1], fontsize=12)
    ax.set_aspect("equal")
    ax.set_title(title or f"Posterior {quantity} on slice {axis} = {value:g}",
                 fontsize=14, fontweight="bold")
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=DEFAULT_DPI, bbox_inches="tight")
        logger.info(f"Figure saved to: {save_path}")

    if show:
        plt.show()

    return fig
