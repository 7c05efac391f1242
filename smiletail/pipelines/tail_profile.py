"""Tabulate prices and strike/forward sensitivities across a strike grid."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

import numpy as np
import pandas as pd

from smiletail.core.errors import InvalidInputError
from smiletail.core.types import PutCall, is_call

if TYPE_CHECKING:  # pragma: no cover
    from smiletail.core.extrapolation import SmileExtrapolation

PROFILE_COLUMNS = (
    "strike",
    "price",
    "strike_derivative",
    "forward_derivative",
    "region",
)


def tail_profile(
    extrapolation: "SmileExtrapolation",
    strikes: Iterable[float] | np.ndarray,
    put_call: PutCall = "call",
    *,
    include_forward_derivative: bool = True,
) -> pd.DataFrame:
    """Evaluate an extrapolated smile on a grid of strikes.

    Args:
        extrapolation: Fitted :class:`SmileExtrapolation`.
        strikes: Strictly positive strikes, in any order.
        put_call: ``"call"`` or ``"put"``.
        include_forward_derivative: Whether to compute ``forward_derivative``.
            Above the cut-off this triggers the (cached) coefficient
            sensitivities; when ``False`` the column is NaN.

    Returns:
        DataFrame sorted by strike with columns ``strike``, ``price``,
        ``strike_derivative``, ``forward_derivative`` and ``region``
        (``"model"`` at or below the cut-off, ``"extrapolated"`` above).

    Raises:
        InvalidInputError: If the grid is empty or contains non-positive strikes.
    """

    is_call(put_call)
    strikes_arr = np.sort(np.asarray(list(strikes), dtype=float).ravel())
    if strikes_arr.size == 0:
        raise InvalidInputError("At least one strike is required")
    if np.any(~np.isfinite(strikes_arr)) or np.any(strikes_arr <= 0.0):
        raise InvalidInputError("Strikes must be finite and strictly positive")

    prices = [extrapolation.price(k, put_call) for k in strikes_arr]
    strike_derivatives = [extrapolation.price_derivative_strike(k, put_call) for k in strikes_arr]
    if include_forward_derivative:
        forward_derivatives = [
            extrapolation.price_derivative_forward(k, put_call) for k in strikes_arr
        ]
    else:
        forward_derivatives = [np.nan] * strikes_arr.size
    region = np.where(strikes_arr <= extrapolation.cutoff_strike, "model", "extrapolated")

    return pd.DataFrame(
        {
            "strike": strikes_arr,
            "price": np.asarray(prices, dtype=float),
            "strike_derivative": np.asarray(strike_derivatives, dtype=float),
            "forward_derivative": np.asarray(forward_derivatives, dtype=float),
            "region": region,
        },
        columns=list(PROFILE_COLUMNS),
    )


__all__ = ["PROFILE_COLUMNS", "tail_profile"]
