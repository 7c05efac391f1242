"""Hagan et al. (2002) SABR implied volatility with analytic derivatives.

The lognormal approximation is written as a function of ``L = ln(F/K)`` and
``s = ln(F*K)``::

    sigma = alpha * (FK)^(-(1-beta)/2) / D(L) * z/x(z) * C(s)

with ``D(L) = 1 + (1-beta)^2/24 L^2 + (1-beta)^4/1920 L^4``,
``z = nu/alpha (FK)^((1-beta)/2) L`` and
``C(s) = 1 + T [(1-beta)^2 alpha^2 / (24 (FK)^(1-beta))
+ rho beta nu alpha / (4 (FK)^((1-beta)/2)) + (2 - 3 rho^2) nu^2 / 24]``.

Derivatives are obtained on ``ln(sigma)`` in the ``(L, s)`` coordinates and
mapped back to ``(F, K)``, which keeps every expression a short product rule.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from smiletail.core.errors import InvalidInputError
from smiletail.core.types import ValueDerivatives, ValueDerivatives2
from smiletail.core.volatility import BumpMode

# Below this |z| the ratio z/x(z) is evaluated from its Taylor expansion.
SMALL_Z = 1.0e-4


@dataclass(frozen=True)
class SABRParameters:
    """SABR parameters ``(alpha, beta, rho, nu)``.

    The constraints are ``alpha > 0``, ``0 <= beta <= 1``, ``|rho| < 1`` and
    ``nu >= 0``.
    """

    alpha: float
    beta: float
    rho: float
    nu: float

    def __post_init__(self) -> None:
        if self.alpha <= 0.0:
            raise InvalidInputError("SABR parameter 'alpha' must be positive")
        if not (0.0 <= self.beta <= 1.0):
            raise InvalidInputError("SABR parameter 'beta' must lie in [0, 1]")
        if not (-1.0 < self.rho < 1.0):
            raise InvalidInputError("SABR parameter 'rho' must lie in (-1, 1)")
        if self.nu < 0.0:
            raise InvalidInputError("SABR parameter 'nu' must be non-negative")

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return (self.alpha, self.beta, self.rho, self.nu)


def _log_z_over_x(z: float, rho: float) -> Tuple[float, float, float, float]:
    """Return ``h = ln(z/x(z))`` with ``h'``, ``h''`` and ``dh/drho``."""

    if abs(z) < SMALL_Z:
        k2 = (4.0 - 9.0 * rho * rho) / 24.0
        k3 = rho * (7.0 - 10.0 * rho * rho) / 24.0
        h = z * (-0.5 * rho + z * (k2 + z * k3))
        h1 = -0.5 * rho + z * (2.0 * k2 + 3.0 * z * k3)
        h2 = 2.0 * k2 + 6.0 * z * k3
        h_rho = z * (-0.5 - z * (0.75 * rho - z * (7.0 - 30.0 * rho * rho) / 24.0))
        return h, h1, h2, h_rho

    root = math.sqrt(1.0 - 2.0 * rho * z + z * z)
    shifted = z - rho
    if shifted >= 0.0:
        num = root + shifted
    else:
        num = (1.0 - rho * rho) / (root - shifted)
    x = math.log(num / (1.0 - rho))
    x1 = 1.0 / root
    x2 = -shifted / root**3
    x_rho = (-z / root - 1.0) / num + 1.0 / (1.0 - rho)

    h = math.log(z / x)
    h1 = 1.0 / z - x1 / x
    h2 = -1.0 / (z * z) - x2 / x + (x1 / x) ** 2
    h_rho = -x_rho / x
    return h, h1, h2, h_rho


class HaganVolatilityProvider:
    """Lognormal SABR volatility following Hagan, Kumar, Lesniewski and Woodward.

    Model parameters are passed as ``(alpha, beta, rho, nu)``. Parameter
    derivatives are returned in the same order after ``[dF, dK]``.
    """

    parameter_names: Tuple[str, ...] = ("alpha", "beta", "rho", "nu")
    bump_modes: Tuple[BumpMode, ...] = ("relative", "absolute", "absolute", "relative")

    def volatility(
        self, forward: float, strike: float, expiry: float, parameters: Sequence[float]
    ) -> float:
        return self._evaluate(forward, strike, expiry, parameters)[0]

    def volatility_adjoint(
        self, forward: float, strike: float, expiry: float, parameters: Sequence[float]
    ) -> ValueDerivatives:
        """Volatility and ``[dF, dK, dalpha, dbeta, drho, dnu]``."""

        result = self.volatility_adjoint2(forward, strike, expiry, parameters)
        return ValueDerivatives(result.value, result.derivatives)

    def volatility_adjoint2(
        self, forward: float, strike: float, expiry: float, parameters: Sequence[float]
    ) -> ValueDerivatives2:
        """Volatility, first derivatives and the ``(F, K)`` second order block.

        Args:
            forward: Forward rate.
            strike: Option strike.
            expiry: Time to expiry in years.
            parameters: ``(alpha, beta, rho, nu)``.

        Returns:
            The volatility, ``[dF, dK, dalpha, dbeta, drho, dnu]`` and the
            2x2 matrix ``[[dFF, dFK], [dKF, dKK]]``.
        """

        sigma, g_l, g_s, g_ll, g_ls, g_ss, g_params = self._evaluate(
            forward, strike, expiry, parameters
        )
        sig_l = sigma * g_l
        sig_s = sigma * g_s
        sig_ll = sigma * (g_ll + g_l * g_l)
        sig_ls = sigma * (g_ls + g_l * g_s)
        sig_ss = sigma * (g_ss + g_s * g_s)

        first = np.empty(2 + len(g_params))
        first[0] = (sig_l + sig_s) / forward
        first[1] = (sig_s - sig_l) / strike
        first[2:] = sigma * np.asarray(g_params)

        second = np.empty((2, 2))
        second[0, 0] = (sig_ll + 2.0 * sig_ls + sig_ss - sig_l - sig_s) / forward**2
        second[1, 1] = (sig_ll - 2.0 * sig_ls + sig_ss + sig_l - sig_s) / strike**2
        second[0, 1] = second[1, 0] = (sig_ss - sig_ll) / (forward * strike)
        return ValueDerivatives2(sigma, first, second)

    def _evaluate(self, forward, strike, expiry, parameters):
        if forward <= 0.0 or strike <= 0.0:
            raise InvalidInputError(
                f"Forward and strike must be positive, got {forward!r} and {strike!r}"
            )
        alpha, beta, rho, nu = (float(p) for p in parameters)

        one_beta = 1.0 - beta
        omega = 0.5 * one_beta
        log_fk = math.log(forward / strike)
        log_prod = math.log(forward * strike)
        l2 = log_fk * log_fk

        e1 = math.exp(-omega * log_prod)
        e2 = e1 * e1

        a2 = one_beta**2 / 24.0
        a4 = one_beta**4 / 1920.0
        d = 1.0 + a2 * l2 + a4 * l2 * l2
        d_l = 2.0 * a2 * log_fk + 4.0 * a4 * l2 * log_fk
        d_ll = 2.0 * a2 + 12.0 * a4 * l2

        c1 = one_beta**2 * alpha**2 / 24.0
        c2 = rho * beta * nu * alpha / 4.0
        c3 = (2.0 - 3.0 * rho * rho) * nu * nu / 24.0
        c = 1.0 + expiry * (c1 * e2 + c2 * e1 + c3)
        c_s = -expiry * omega * (2.0 * c1 * e2 + c2 * e1)
        c_ss = expiry * omega * omega * (4.0 * c1 * e2 + c2 * e1)

        z_l = nu / (alpha * e1)
        z = z_l * log_fk
        h, h1, h2, h_rho = _log_z_over_x(z, rho)

        sigma = alpha * e1 / d * math.exp(h) * c

        g_l = -d_l / d + h1 * z_l
        g_s = -omega + h1 * omega * z + c_s / c
        g_ll = -(d_ll / d - (d_l / d) ** 2) + h2 * z_l * z_l
        g_ls = omega * z_l * (h2 * z + h1)
        g_ss = omega * omega * z * (h2 * z + h1) + c_ss / c - (c_s / c) ** 2

        g_alpha = (1.0 - h1 * z) / alpha + expiry * (2.0 * c1 * e2 + c2 * e1) / (alpha * c)
        d_beta = -(one_beta / 12.0) * l2 - (one_beta**3 / 480.0) * l2 * l2
        c_beta = expiry * (
            (-one_beta * alpha**2 / 12.0 + c1 * log_prod) * e2
            + (rho * nu * alpha / 4.0 + 0.5 * c2 * log_prod) * e1
        )
        g_beta = 0.5 * log_prod - d_beta / d - 0.5 * h1 * z * log_prod + c_beta / c
        g_rho = h_rho + expiry * (beta * nu * alpha / 4.0 * e1 - rho * nu * nu / 4.0) / c
        g_nu = h1 * log_fk / (alpha * e1) + expiry * (
            rho * beta * alpha / 4.0 * e1 + (2.0 - 3.0 * rho * rho) * nu / 12.0
        ) / c

        return sigma, g_l, g_s, g_ll, g_ls, g_ss, (g_alpha, g_beta, g_rho, g_nu)


__all__ = ["SABRParameters", "HaganVolatilityProvider", "SMALL_Z"]
