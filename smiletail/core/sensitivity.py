"""Sensitivities of the tail coefficients by implicit differentiation.

The coefficients ``(a, b, c)`` solve ``F(a, b, c; x) = p(x)`` where ``F`` is
the tail function with its first two strike derivatives at the cut-off and
``p`` is the model price with its strike derivatives. Differentiating with
respect to ``x`` (the forward or a model parameter) gives::

    J . d(a, b, c)/dx = dp/dx

``J`` only depends on the cut-off, ``mu`` and the fitted coefficients. The
right-hand side needs third order cross derivatives of the model price,
estimated by finite differences (central by default) on the second order
adjoints.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Callable, Optional, Sequence, Tuple

import numpy as np

from smiletail.core.errors import CalculationError
from smiletail.core.types import BlackData, EuropeanOption, ValueDerivatives2
from smiletail.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from smiletail.core.extrapolation import SmileExtrapolation

logger = get_logger("smiletail.sensitivity")


def svd_solve(
    matrix: np.ndarray, rhs: np.ndarray, rcond: Optional[float] = None
) -> np.ndarray:
    """Solve ``matrix @ x = rhs`` through a singular value decomposition.

    Singular values below ``rcond`` times the largest one are discarded, which
    returns the minimum-norm least-squares solution for singular systems.

    Args:
        matrix: Square system matrix.
        rhs: Right-hand side vector, or matrix with one column per system.
        rcond: Relative cut-off for small singular values. Defaults to
            ``max(matrix.shape)`` times the machine epsilon.

    Returns:
        The solution with the same trailing shape as ``rhs``.
    """

    if rcond is None:
        rcond = max(matrix.shape) * np.finfo(float).eps
    u, s, vt = np.linalg.svd(matrix)
    cutoff = rcond * s[0] if s.size else 0.0
    inv_s = np.divide(1.0, s, out=np.zeros_like(s), where=s > cutoff)
    return (vt.T * inv_s) @ (u.T @ rhs)


def _reciprocal_scale(magnitudes: np.ndarray) -> np.ndarray:
    return np.divide(1.0, magnitudes, out=np.ones_like(magnitudes), where=magnitudes > 0.0)


def equilibrated_solve(
    matrix: np.ndarray, rhs: np.ndarray, rcond: Optional[float] = None
) -> np.ndarray:
    """Solve ``matrix @ x = rhs`` after scaling rows and columns to unit size.

    The tail Jacobian has rows proportional to the cut-off price and its
    strike derivatives, and columns proportional to ``1``, ``1/K`` and
    ``1/K^2``. Both spread by many orders of magnitude for short expiries, so
    the system is solved as ``(R A C) y = R rhs`` with ``x = C y``.
    """

    rows = _reciprocal_scale(np.abs(matrix).max(axis=1))
    scaled = matrix * rows[:, None]
    columns = _reciprocal_scale(np.abs(scaled).max(axis=0))
    scaled = scaled * columns
    trailing = (1,) * (np.ndim(rhs) - 1)
    solution = svd_solve(scaled, rhs * rows.reshape(-1, *trailing), rcond)
    return solution * columns.reshape(-1, *trailing)


def _checked(result, step: float, label: str) -> np.ndarray:
    result = np.asarray(result, dtype=float)
    if not np.all(np.isfinite(result)):
        raise CalculationError(f"Finite difference for {label} is not finite (step={step!r})")
    return result


class TailSensitivity:
    """Derivatives of the fitted tail coefficients of a :class:`SmileExtrapolation`."""

    def __init__(self, extrapolation: "SmileExtrapolation") -> None:
        self._ext = extrapolation
        self._options = extrapolation.options

    def coefficient_jacobian(self) -> np.ndarray:
        """Jacobian of ``(f, f', f'')`` at the cut-off with respect to ``(a, b, c)``.

        Row ``i`` holds the derivatives of the ``i``-th strike derivative of
        the tail function.
        """

        snapshot = self._ext.snapshot
        coefficients = self._ext.fitted_coefficients
        k = self._ext.cutoff_strike
        mu = self._ext.mu
        f = snapshot.price
        fp = snapshot.price_derivative
        fpp = snapshot.price_second_derivative
        b, c = coefficients.b, coefficients.c

        f_b = f / k
        f_c = f_b / k
        jac = np.empty((3, 3))
        jac[0] = (f, f_b, f_c)
        jac[1] = (fp, (fp - f_b) / k, (fp - 2.0 * f_b) / (k * k))
        jac[2, 0] = fpp
        jac[2, 1] = (
            fpp + f_c * (2.0 * (mu + 1.0) + 2.0 * b / k + 4.0 * c / (k * k))
        ) / k
        jac[2, 2] = (
            fpp + f_c * (2.0 * (2.0 * mu + 3.0) + 4.0 * b / k + 8.0 * c / (k * k))
        ) / (k * k)
        return jac

    def derivative_forward(self) -> np.ndarray:
        """Return ``d(a, b, c)/dforward``.

        Raises:
            CalculationError: If a finite-difference step is degenerate.
        """

        if self._ext.is_degenerate:
            return self._frozen(np.zeros(3))

        ext = self._ext
        k = ext.cutoff_strike
        vol, vd, vd2, bd, bd2 = self._cutoff_adjoints()
        option = EuropeanOption(k, ext.expiry, "call")
        formula = ext.price_formula

        rhs = np.empty(3)
        rhs[0] = bd[0] + bd[1] * vd[0]
        rhs[1] = (
            bd2[0, 2]
            + bd2[1, 0] * vd[1]
            + (bd2[2, 1] + bd2[1, 1] * vd[1]) * vd[0]
            + bd[1] * vd2[1, 0]
        )

        strike_step = k * self._options.bump

        def black_fk(step: float) -> np.ndarray:
            bumped = EuropeanOption(k + step, ext.expiry, "call")
            return np.array([formula.price_adjoint2(bumped, BlackData(ext.forward, vol)).second[2, 0]])

        d3_fkk = float(self._difference(black_fk, bd2[2, 0], strike_step, "d3P/dFdK2")[0])

        d3_sss, d3_sfk, d3_sfs, d3_skk, d3_ssk = self._volatility_cross_derivatives(
            option, vol, bd2, ((1, 1), (0, 2), (0, 1), (2, 2), (1, 2))
        )

        def smile_kf(step: float) -> np.ndarray:
            bumped = self._bumped_volatility(ext.forward, k + step, ext.model_parameters)
            return np.array([bumped.second[1, 0]])

        v3_kkf = float(self._difference(smile_kf, vd2[1, 0], strike_step, "d3sigma/dK2dF")[0])

        rhs[2] = (
            d3_fkk
            + d3_sfk * vd[1]
            + (d3_sfk + d3_sfs * vd[1]) * vd[1]
            + bd2[1, 0] * vd2[1, 1]
            + (d3_skk + d3_ssk * vd[1] + (d3_ssk + d3_sss * vd[1]) * vd[1] + bd2[1, 1] * vd2[1, 1])
            * vd[0]
            + 2.0 * (bd2[2, 1] + bd2[1, 1] * vd[1]) * vd2[1, 0]
            + bd[1] * v3_kkf
        )

        result = equilibrated_solve(self.coefficient_jacobian(), rhs, self._options.svd_rcond)
        logger.debug("Tail coefficient forward sensitivities: %s", result)
        return self._frozen(result)

    def derivative_model_parameters(self) -> np.ndarray:
        """Return ``d(a, b, c)/dp_i`` as an array of shape ``(N, 3)``.

        Relative bumps fall back to the absolute bump for parameters equal
        to zero.

        Raises:
            CalculationError: If a finite-difference step is degenerate or the
                smile model fails at a bumped parameter set.
        """

        ext = self._ext
        parameters = ext.model_parameters
        n_params = len(parameters)
        if ext.is_degenerate:
            return self._frozen(np.zeros((n_params, 3)))

        k = ext.cutoff_strike
        vol, vd, vd2, bd, bd2 = self._cutoff_adjoints()
        option = EuropeanOption(k, ext.expiry, "call")
        d3_sss, d3_skk, d3_ssk = self._volatility_cross_derivatives(
            option, vol, bd2, ((1, 1), (2, 2), (1, 2))
        )
        slope = bd2[2, 1] + bd2[1, 1] * vd[1]
        curvature_vol = (
            d3_skk + d3_ssk * vd[1] + (d3_ssk + d3_sss * vd[1]) * vd[1] + bd2[1, 1] * vd2[1, 1]
        )

        rhs = np.empty((3, n_params))
        for index, step in enumerate(self._parameter_steps(parameters)):

            def smile_k(h: float, index: int = index) -> np.ndarray:
                bumped = list(parameters)
                bumped[index] += h
                result = self._bumped_volatility(ext.forward, k, tuple(bumped))
                return np.array([result.derivatives[1], result.second[1, 1]])

            v2_kp, v3_kkp = self._difference(
                smile_k, np.array([vd[1], vd2[1, 1]]), step, "d2sigma/dKdp"
            )
            dp = vd[2 + index]
            rhs[0, index] = bd[1] * dp
            rhs[1, index] = slope * dp + bd[1] * v2_kp
            rhs[2, index] = (
                curvature_vol * dp
                + 2.0 * (bd2[1, 2] + bd2[1, 1] * vd[1]) * v2_kp
                + bd[1] * v3_kkp
            )

        result = equilibrated_solve(self.coefficient_jacobian(), rhs, self._options.svd_rcond).T
        logger.debug("Tail coefficient model sensitivities: %s", result)
        return self._frozen(result)

    def _difference(
        self, evaluate: Callable[[float], np.ndarray], base, step: float, label: str
    ) -> np.ndarray:
        """Differentiate ``evaluate`` at zero; ``base`` is its unbumped value."""

        if self._options.finite_difference == "central":
            return _checked((evaluate(step) - evaluate(-step)) / (2.0 * step), step, label)
        return _checked((evaluate(step) - np.asarray(base, dtype=float)) / step, step, label)

    def _cutoff_adjoints(self):
        ext = self._ext
        snapshot = ext.snapshot
        k = ext.cutoff_strike
        vol = ext.volatility_provider.volatility_adjoint2(
            ext.forward, k, ext.expiry, ext.model_parameters
        )
        option = EuropeanOption(k, ext.expiry, "call")
        bs = ext.price_formula.price_adjoint2(option, BlackData(ext.forward, snapshot.volatility))
        return snapshot.volatility, vol.derivatives, vol.second, bs.derivatives, bs.second

    def _volatility_cross_derivatives(
        self,
        option: EuropeanOption,
        vol: float,
        base_second: np.ndarray,
        entries: Sequence[Tuple[int, int]],
    ) -> Tuple[float, ...]:
        """Derivatives of the formula's second order block with respect to volatility."""

        if not (math.isfinite(vol) and vol > 0.0):
            raise CalculationError(f"Cannot bump a non-positive volatility {vol!r}")
        formula = self._ext.price_formula
        forward = self._ext.forward

        def block(step: float) -> np.ndarray:
            bumped = formula.price_adjoint2(option, BlackData(forward, vol + step))
            return np.array([bumped.second[i, j] for i, j in entries])

        base = np.array([base_second[i, j] for i, j in entries])
        derivatives = self._difference(block, base, vol * self._options.bump, "d3P/dsigma")
        return tuple(float(d) for d in derivatives)

    def _parameter_steps(self, parameters: Sequence[float]) -> Tuple[float, ...]:
        provider = self._ext.volatility_provider
        modes = getattr(provider, "bump_modes", None)
        if modes is None:
            modes = ("relative",) * len(parameters)
        names = getattr(provider, "parameter_names", None) or tuple(
            f"p{i}" for i in range(len(parameters))
        )
        shift = self._options.bump
        steps = []
        for name, value, mode in zip(names, parameters, modes, strict=True):
            # Absolute steps for parameters living in a fixed range (beta, rho),
            # and for relative parameters sitting at zero.
            step = value * shift if mode == "relative" and value != 0.0 else shift
            if step == 0.0 or not math.isfinite(step):
                raise CalculationError(
                    f"Cannot apply a {mode} bump to parameter {name!r} with value {value!r}"
                )
            steps.append(step)
        return tuple(steps)

    def _bumped_volatility(self, forward: float, strike: float, parameters) -> ValueDerivatives2:
        try:
            return self._ext.volatility_provider.volatility_adjoint2(
                forward, strike, self._ext.expiry, parameters
            )
        except (ArithmeticError, ValueError) as exc:
            raise CalculationError(
                f"Volatility model failed at bumped point (strike={strike!r}, "
                f"parameters={parameters!r}): {exc}"
            ) from exc

    @staticmethod
    def _frozen(array: np.ndarray) -> np.ndarray:
        array.setflags(write=False)
        return array


__all__ = ["TailSensitivity", "equilibrated_solve", "svd_solve"]
