"""Capability protocols for smile models and base pricing formulas."""

from __future__ import annotations

from typing import Literal, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from smiletail.core.types import BlackData, EuropeanOption, ValueDerivatives, ValueDerivatives2

BumpMode = Literal["relative", "absolute"]


@runtime_checkable
class VolatilityProvider(Protocol):
    """Smile model returning implied volatilities and their derivatives.

    First order derivatives are ordered ``[dF, dK, dp_1, ..., dp_N]`` where
    ``p_i`` are the model parameters in ``parameter_names`` order. The second
    order block covers ``(forward, strike)`` only.
    """

    parameter_names: Tuple[str, ...]
    bump_modes: Tuple[BumpMode, ...]

    def volatility(
        self, forward: float, strike: float, expiry: float, parameters: Sequence[float]
    ) -> float:
        ...

    def volatility_adjoint(
        self, forward: float, strike: float, expiry: float, parameters: Sequence[float]
    ) -> ValueDerivatives:
        ...

    def volatility_adjoint2(
        self, forward: float, strike: float, expiry: float, parameters: Sequence[float]
    ) -> ValueDerivatives2:
        ...


@runtime_checkable
class PriceFormula(Protocol):
    """Option pricing formula with adjoints in ``(forward, volatility, strike)``."""

    def price(self, option: EuropeanOption, data: BlackData) -> float:
        ...

    def price_adjoint(self, option: EuropeanOption, data: BlackData) -> ValueDerivatives:
        ...

    def price_adjoint2(self, option: EuropeanOption, data: BlackData) -> ValueDerivatives2:
        ...


class FlatVolatilityProvider:
    """Strike and forward independent volatility with a single parameter."""

    parameter_names: Tuple[str, ...] = ("sigma",)
    bump_modes: Tuple[BumpMode, ...] = ("relative",)

    def volatility(self, forward, strike, expiry, parameters) -> float:
        (sigma,) = parameters
        return float(sigma)

    def volatility_adjoint(self, forward, strike, expiry, parameters) -> ValueDerivatives:
        return ValueDerivatives(
            self.volatility(forward, strike, expiry, parameters),
            np.array([0.0, 0.0, 1.0]),
        )

    def volatility_adjoint2(self, forward, strike, expiry, parameters) -> ValueDerivatives2:
        first = self.volatility_adjoint(forward, strike, expiry, parameters)
        return ValueDerivatives2(first.value, first.derivatives, np.zeros((2, 2)))


__all__ = ["BumpMode", "VolatilityProvider", "PriceFormula", "FlatVolatilityProvider"]
