"""Plotting helpers for extrapolated smile profiles."""

from __future__ import annotations

from typing import Any, Literal, Optional, Tuple

import pandas as pd

from smiletail.presentation.publication import (
    _apply_publication_style,
    _style_publication_axes,
)

_LABELS = {
    "price": "Option price",
    "strike_derivative": "dPrice / dStrike",
    "forward_derivative": "dPrice / dForward",
}


def plot_tail_profile(
    profile: pd.DataFrame,
    kind: Literal["price", "strike_derivative", "forward_derivative"] = "price",
    cutoff_strike: Optional[float] = None,
    figsize: Tuple[float, float] = (10.0, 5.0),
    title: Optional[str] = None,
    log_scale: bool = False,
    style: Literal["publication", "default"] = "publication",
    **kwargs: Any,
):
    """Plot a tail profile, splitting the smile-model and extrapolated regions.

    Args:
        profile: pd.DataFrame
            Output of :func:`smiletail.pipelines.tail_profile`.
        kind: str, default "price"
            Column to plot.
        cutoff_strike: float | None, optional
            Strike at which to draw a vertical marker.
        figsize: tuple[float, float], default (10.0, 5.0)
            Matplotlib figure size in inches.
        title: str | None, optional
            Custom title.
        log_scale: bool, default False
            Use a logarithmic y axis (only meaningful for positive prices).
        style: Literal["publication", "default"], default "publication"
            Visual palette to apply.
        **kwargs: Any
            Additional keyword arguments forwarded to Matplotlib plot calls.

    Returns:
        matplotlib.figure.Figure: Figure containing the requested plot.

    Raises:
        ImportError: If Matplotlib is unavailable.
        ValueError: If ``kind`` is not a profile column.
    """
    try:
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover - import guard
        raise ImportError(
            "Matplotlib is required for plotting. Install with: pip install matplotlib"
        ) from exc

    if kind not in _LABELS:
        raise ValueError(f"kind must be one of {sorted(_LABELS)}, got {kind!r}")

    if style == "publication":
        _apply_publication_style(plt)

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    colors = {"model": "#1976D2", "extrapolated": "#C62828"}
    for region, frame in profile.groupby("region", sort=False):
        ax.plot(
            frame["strike"],
            frame[kind],
            color=colors.get(region, "black"),
            linewidth=1.5,
            label="Smile model" if region == "model" else "Extrapolation",
            **kwargs,
        )

    if cutoff_strike is not None:
        ax.axvline(cutoff_strike, color="#666666", linestyle="--", linewidth=1.0)
    if log_scale:
        ax.set_yscale("log")

    ax.set_xlabel("Strike", fontsize=11)
    ax.set_ylabel(_LABELS[kind], fontsize=11)
    ax.set_title(title or f"{_LABELS[kind]} across the cut-off")
    ax.legend(frameon=False)
    if style == "publication":
        _style_publication_axes(ax)

    fig.tight_layout()
    return fig


__all__ = ["plot_tail_profile"]
