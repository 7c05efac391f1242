from __future__ import annotations

"""Black-76 forward-based European option pricer and its adjoint derivatives."""

import math
from typing import Union

import numpy as np
from scipy.stats import norm

from smiletail.core.types import BlackData, EuropeanOption, ValueDerivatives, ValueDerivatives2, is_call

ArrayLike = Union[float, np.ndarray]

# Standard deviations below this are priced at intrinsic value.
SMALL_STDEV = 1.0e-14


def black76_price(
    F: ArrayLike,
    K: ArrayLike,
    sigma: ArrayLike,
    t: ArrayLike,
    put_call: str = "call",
    numeraire: float = 1.0,
):
    """Vectorised Black-76 price of a European call or put.

    Parameters
    ----------
    F : array-like
        Forward price of the underlying asset.
    K : array-like
        Strike price.
    sigma : array-like
        Volatility.
    t : array-like
        Time to expiry in years. Negative values denote expired options,
        which are worth zero.
    put_call : str, default "call"
        ``"call"`` or ``"put"``.
    numeraire : float, default 1.0
        Multiplier applied to the undiscounted price (e.g. a discount factor
        or an annuity).
    """
    omega = 1.0 if is_call(put_call) else -1.0
    F = np.asarray(F, dtype=float)
    K = np.asarray(K, dtype=float)
    sigma = np.asarray(sigma, dtype=float)
    t = np.asarray(t, dtype=float)

    stdev = sigma * np.sqrt(np.maximum(t, 0.0))
    safe_stdev = np.where(stdev < SMALL_STDEV, 1.0, stdev)
    with np.errstate(divide="ignore", invalid="ignore"):
        d1 = np.log(F / K) / safe_stdev + 0.5 * safe_stdev
    d2 = d1 - safe_stdev
    price = omega * (F * norm.cdf(omega * d1) - K * norm.cdf(omega * d2))
    intrinsic = np.maximum(omega * (F - K), 0.0)
    price = np.where(stdev < SMALL_STDEV, intrinsic, price)
    price = np.where(t < 0.0, 0.0, price)
    return numeraire * price


class Black76Formula:
    """Black price function with first and second order adjoints.

    Derivatives are ordered ``(forward, volatility, strike)`` in both the
    first order vector and the 3x3 second order block.
    """

    def price(self, option: EuropeanOption, data: BlackData) -> float:
        return float(
            black76_price(
                data.forward,
                option.strike,
                data.volatility,
                option.expiry,
                option.put_call,
                data.numeraire,
            )
        )

    def price_adjoint(self, option: EuropeanOption, data: BlackData) -> ValueDerivatives:
        """Price and its first order derivatives ``[dF, dsigma, dK]``."""

        result = self.price_adjoint2(option, data)
        return ValueDerivatives(result.value, result.derivatives)

    def price_adjoint2(self, option: EuropeanOption, data: BlackData) -> ValueDerivatives2:
        """Price with first order derivatives and the 3x3 second order block.

        Args:
            option: Strike, expiry and exercise type.
            data: Forward, volatility and numeraire.

        Returns:
            The price, ``[dF, dsigma, dK]`` and the symmetric matrix of second
            order derivatives in the same ordering.
        """

        forward = data.forward
        strike = option.strike
        vol = data.volatility
        expiry = option.expiry
        numeraire = data.numeraire
        omega = 1.0 if option.is_call else -1.0
        first = np.zeros(3)
        second = np.zeros((3, 3))

        if expiry < 0.0:
            return ValueDerivatives2(0.0, first, second)

        sqrt_t = math.sqrt(expiry)
        stdev = vol * sqrt_t
        if stdev < SMALL_STDEV:
            in_the_money = omega * (forward - strike) > 0.0
            value = numeraire * max(omega * (forward - strike), 0.0)
            if in_the_money:
                first[0] = numeraire * omega
                first[2] = -numeraire * omega
            return ValueDerivatives2(value, first, second)

        d1 = math.log(forward / strike) / stdev + 0.5 * stdev
        d2 = d1 - stdev
        n_d1 = norm.pdf(d1)
        n_d2 = norm.pdf(d2)
        cdf_d1 = norm.cdf(omega * d1)
        cdf_d2 = norm.cdf(omega * d2)

        value = numeraire * omega * (forward * cdf_d1 - strike * cdf_d2)
        first[0] = numeraire * omega * cdf_d1
        first[1] = numeraire * forward * n_d1 * sqrt_t
        first[2] = -numeraire * omega * cdf_d2

        second[0, 0] = numeraire * n_d1 / (forward * stdev)
        second[0, 1] = -numeraire * n_d1 * d2 / vol
        second[0, 2] = -numeraire * n_d1 / (strike * stdev)
        second[1, 1] = numeraire * forward * n_d1 * sqrt_t * d1 * d2 / vol
        second[1, 2] = numeraire * n_d2 * d1 / vol
        second[2, 2] = numeraire * n_d2 / (strike * stdev)
        second[1, 0] = second[0, 1]
        second[2, 0] = second[0, 2]
        second[2, 1] = second[1, 2]
        return ValueDerivatives2(value, first, second)


__all__ = ["black76_price", "Black76Formula", "SMALL_STDEV"]
