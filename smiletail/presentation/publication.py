"""Styling primitives for publication-grade Matplotlib output."""

from __future__ import annotations

from typing import Any


def _apply_publication_style(plt: Any) -> None:
    """Apply publication-ready style settings to Matplotlib.

    Args:
        plt: Matplotlib pyplot module whose global RC params are updated.
    """
    plt.rcParams.update(
        {
            "figure.facecolor": "white",
            "axes.facecolor": "#F8F8F8",
            "font.family": "sans-serif",
            "font.sans-serif": ["DejaVu Sans", "Arial", "sans-serif"],
            "font.size": 11,
            "axes.labelsize": 11,
            "axes.titlesize": 14,
            "legend.fontsize": 10,
            "axes.grid": True,
            "grid.alpha": 0.3,
            "grid.color": "#CCCCCC",
            "axes.edgecolor": "#CCCCCC",
            "axes.labelcolor": "#333333",
            "axes.titlecolor": "#333333",
        }
    )


def _style_publication_axes(ax: Any) -> None:
    """Hide the top/right spines and soften the remaining ones.

    Args:
        ax: Matplotlib axes instance to style.
    """
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    for side in ("left", "bottom"):
        ax.spines[side].set_color("#CCCCCC")
        ax.spines[side].set_linewidth(0.5)
    ax.set_axisbelow(True)
    ax.tick_params(axis="both", which="major", labelsize=10, colors="#666666", length=0)
