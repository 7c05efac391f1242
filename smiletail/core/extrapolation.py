"""Smile extrapolation for large strikes by fitting a parametric call-price tail.

Above a cut-off strike ``K*`` the call price is replaced by::

    f(K) = K^(-mu) * exp(a + b/K + c/K^2)

where ``(a, b, c)`` are chosen so that ``f``, ``f'`` and ``f''`` match the
smile-model price at ``K*``. Below the cut-off the smile model and the base
pricing formula are used unchanged.

Reference: Benaim, S., Dodgson, M. and Kainth, D. (2008). An arbitrage-free
method for smile extrapolation. Technical report, Royal Bank of Scotland.
"""

from __future__ import annotations

import math
from functools import cached_property
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

import numpy as np

from smiletail.core.errors import CalculationError, InvalidInputError
from smiletail.core.root_finding import bracket_root, ridder_root
from smiletail.core.sabr import HaganVolatilityProvider
from smiletail.core.sensitivity import TailSensitivity
from smiletail.core.types import (
    DEFAULT_OPTIONS,
    BlackData,
    CutoffSnapshot,
    EuropeanOption,
    ExtrapolationOptions,
    FittedCoefficients,
    PutCall,
    ValueDerivatives,
    is_call,
)
from smiletail.core.volatility import PriceFormula, VolatilityProvider
from smiletail.logging import get_logger
from smiletail.pricing.black76 import Black76Formula

logger = get_logger("smiletail.extrapolation")


def compute_cutoff_snapshot(
    forward: float,
    cutoff_strike: float,
    expiry: float,
    parameters: Sequence[float],
    volatility_provider: VolatilityProvider,
    price_formula: PriceFormula,
) -> CutoffSnapshot:
    """Evaluate the model call price and its strike derivatives at the cut-off.

    The strike derivatives combine the formula adjoints with the smile
    derivatives: ``p' = P_K + P_s s_K`` and
    ``p'' = P_KK + 2 P_sK s_K + P_ss s_K^2 + P_s s_KK``.
    """

    vol = volatility_provider.volatility_adjoint2(forward, cutoff_strike, expiry, parameters)
    option = EuropeanOption(cutoff_strike, expiry, "call")
    bs = price_formula.price_adjoint2(option, BlackData(forward, vol.value))
    vd, vd2 = vol.derivatives, vol.second
    bd, bd2 = bs.derivatives, bs.second

    p1 = bd[2] + bd[1] * vd[1]
    p2 = (
        bd2[2, 2]
        + bd2[1, 2] * vd[1]
        + (bd2[2, 1] + bd2[1, 1] * vd[1]) * vd[1]
        + bd[1] * vd2[1, 1]
    )
    return CutoffSnapshot(
        volatility=float(vol.value),
        price=float(bs.value),
        price_derivative=float(p1),
        price_second_derivative=float(p2),
    )


def b_from_c(c: float, snapshot: CutoffSnapshot, cutoff_strike: float, mu: float) -> float:
    """Coefficient ``b`` implied by ``c`` and the first derivative condition."""

    ratio = snapshot.price_derivative / snapshot.price
    return -2.0 * c / cutoff_strike - (ratio * cutoff_strike + mu) * cutoff_strike


def a_from_bc(
    b: float, c: float, snapshot: CutoffSnapshot, cutoff_strike: float, mu: float
) -> float:
    """Coefficient ``a`` implied by ``(b, c)`` and the price condition."""

    return (
        math.log(snapshot.price / cutoff_strike ** (-mu))
        - b / cutoff_strike
        - c / (cutoff_strike * cutoff_strike)
    )


def curvature_residual(
    snapshot: CutoffSnapshot, cutoff_strike: float, mu: float
) -> Callable[[float], float]:
    """Return the second derivative condition as a scalar function of ``c``.

    ``b`` and ``a`` are eliminated through the price and slope conditions, so
    the root of the returned function fixes all three coefficients.
    """

    k = cutoff_strike
    k2 = k * k
    curvature = snapshot.price_second_derivative / snapshot.price

    def residual(c: float) -> float:
        b = b_from_c(c, snapshot, k, mu)
        return (
            -curvature * k2
            + mu * (mu + 1.0)
            + 2.0 * b * (mu + 1.0) / k
            + (2.0 * c * (2.0 * mu + 3.0) + b * b) / k2
            + 4.0 * b * c / (k2 * k)
            + 4.0 * c * c / (k2 * k2)
        )

    return residual


def sentinel_coefficients(options: ExtrapolationOptions = DEFAULT_OPTIONS) -> FittedCoefficients:
    """Coefficients for which the extrapolated price is numerically zero."""

    return FittedCoefficients(options.sentinel, 0.0, 0.0)


def fit_tail_coefficients(
    snapshot: CutoffSnapshot,
    cutoff_strike: float,
    mu: float,
    options: ExtrapolationOptions = DEFAULT_OPTIONS,
) -> FittedCoefficients:
    """Fit ``(a, b, c)`` to the price, slope and curvature at the cut-off.

    Args:
        snapshot: Model price and strike derivatives at the cut-off.
        cutoff_strike: Strike above which the tail is used.
        mu: Tail thickness parameter.
        options: Numerical settings.

    Returns:
        The fitted coefficients, or the sentinel coefficients when the
        snapshot is negligible.

    Raises:
        CalculationError: If the cut-off price is not positive.
        RootFindingError: If ``c`` cannot be bracketed or solved.
    """

    if snapshot.is_negligible(options.small_price):
        logger.debug(
            "Cut-off price and derivatives below %.1e; using sentinel coefficients",
            options.small_price,
        )
        return sentinel_coefficients(options)
    if snapshot.price <= 0.0:
        raise CalculationError(
            f"Cut-off call price must be positive to fit the tail, got {snapshot.price!r}"
        )

    residual = curvature_residual(snapshot, cutoff_strike, mu)
    lo, hi = bracket_root(
        residual,
        *options.bracket_start,
        ratio=options.bracket_ratio,
        max_steps=options.bracket_max_steps,
    )
    c = ridder_root(
        residual, lo, hi, xtol=options.root_tolerance, max_iter=options.root_max_iter
    )
    b = b_from_c(c, snapshot, cutoff_strike, mu)
    a = a_from_bc(b, c, snapshot, cutoff_strike, mu)
    logger.debug(
        "Fitted tail at K*=%g, mu=%g: a=%.10g b=%.10g c=%.10g", cutoff_strike, mu, a, b, c
    )
    return FittedCoefficients(a, b, c)


def tail_value(strike: float, coefficients: FittedCoefficients, mu: float) -> float:
    """Evaluate ``f(K) = K^-mu exp(a + b/K + c/K^2)``."""

    return strike ** (-mu) * math.exp(
        coefficients.a + coefficients.b / strike + coefficients.c / (strike * strike)
    )


def tail_strike_derivative(strike: float, coefficients: FittedCoefficients, mu: float) -> float:
    """Evaluate ``f'(K) = -f(K) (mu + (b + 2c/K)/K) / K``."""

    value = tail_value(strike, coefficients, mu)
    return -value * (mu + (coefficients.b + 2.0 * coefficients.c / strike) / strike) / strike


def _coerce_parameters(
    model_parameters: Any, volatility_provider: VolatilityProvider
) -> Tuple[float, ...]:
    if model_parameters is None:
        raise InvalidInputError("model_parameters must be provided")
    if hasattr(model_parameters, "to_tuple"):
        model_parameters = model_parameters.to_tuple()
    try:
        parameters = tuple(float(p) for p in model_parameters)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(
            f"model_parameters must be a sequence of numbers, got {model_parameters!r}"
        ) from exc

    names = getattr(volatility_provider, "parameter_names", None)
    if names is not None and len(parameters) != len(names):
        raise InvalidInputError(
            f"Expected {len(names)} model parameters {tuple(names)}, got {len(parameters)}"
        )
    modes = getattr(volatility_provider, "bump_modes", None)
    if modes is not None and len(modes) != len(parameters):
        raise InvalidInputError(
            f"Volatility provider declares {len(modes)} bump modes for {len(parameters)} parameters"
        )
    if not parameters or not all(math.isfinite(p) for p in parameters):
        raise InvalidInputError(f"model_parameters must be finite, got {parameters!r}")
    return parameters


class SmileExtrapolation:
    """Smile-model pricing below a cut-off strike and tail extrapolation above.

    The tail coefficients are fitted once at construction. Sensitivities of
    the coefficients to the forward and to the model parameters are computed
    on first use and cached for the lifetime of the instance.

    Args:
        forward: Forward of the underlying.
        model_parameters: Ordered smile-model parameters (e.g. SABR
            ``(alpha, beta, rho, nu)`` or a :class:`SABRParameters`).
        cutoff_strike: Strike above which the tail is used. Must be positive.
        expiry: Time to expiry in years.
        mu: Tail thickness parameter.
        volatility_provider: Smile model. Defaults to
            :class:`HaganVolatilityProvider`.
        price_formula: Base pricing formula. Defaults to
            :class:`Black76Formula`.
        options: Numerical settings or a mapping of overrides.

    Raises:
        InvalidInputError: If the inputs are malformed.
        RootFindingError: If the tail cannot be fitted.
    """

    def __init__(
        self,
        forward: float,
        model_parameters: Any,
        cutoff_strike: float,
        expiry: float,
        mu: float,
        *,
        volatility_provider: Optional[VolatilityProvider] = None,
        price_formula: Optional[PriceFormula] = None,
        options: ExtrapolationOptions | Mapping[str, Any] | None = None,
    ) -> None:
        for name, value in (
            ("forward", forward),
            ("cutoff_strike", cutoff_strike),
            ("expiry", expiry),
            ("mu", mu),
        ):
            if not math.isfinite(value):
                raise InvalidInputError(f"{name} must be finite, got {value!r}")
        if cutoff_strike <= 0.0:
            raise InvalidInputError(f"cutoff_strike must be positive, got {cutoff_strike!r}")

        self._volatility_provider = volatility_provider or HaganVolatilityProvider()
        self._price_formula = price_formula or Black76Formula()
        self._options = ExtrapolationOptions.from_mapping(options)
        self._forward = float(forward)
        self._parameters = _coerce_parameters(model_parameters, self._volatility_provider)
        self._cutoff_strike = float(cutoff_strike)
        self._expiry = float(expiry)
        self._mu = float(mu)

        self._snapshot: Optional[CutoffSnapshot] = None
        if self._expiry > self._options.small_expiry:
            self._snapshot = compute_cutoff_snapshot(
                self._forward,
                self._cutoff_strike,
                self._expiry,
                self._parameters,
                self._volatility_provider,
                self._price_formula,
            )
            self._coefficients = fit_tail_coefficients(
                self._snapshot, self._cutoff_strike, self._mu, self._options
            )
            self._degenerate = self._snapshot.is_negligible(self._options.small_price)
        else:
            logger.debug(
                "Expiry %g at or below %.1e; tail set to zero", self._expiry, self._options.small_expiry
            )
            self._coefficients = sentinel_coefficients(self._options)
            self._degenerate = True

    @classmethod
    def of(
        cls,
        forward: float,
        model_parameters: Any,
        cutoff_strike: float,
        expiry: float,
        mu: float,
        volatility_provider: Optional[VolatilityProvider] = None,
        price_formula: Optional[PriceFormula] = None,
        options: ExtrapolationOptions | Mapping[str, Any] | None = None,
    ) -> SmileExtrapolation:
        """Create an instance, defaulting to the Hagan SABR smile and Black formula."""

        return cls(
            forward,
            model_parameters,
            cutoff_strike,
            expiry,
            mu,
            volatility_provider=volatility_provider,
            price_formula=price_formula,
            options=options,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def forward(self) -> float:
        return self._forward

    @property
    def model_parameters(self) -> Tuple[float, ...]:
        return self._parameters

    @property
    def cutoff_strike(self) -> float:
        return self._cutoff_strike

    @property
    def expiry(self) -> float:
        return self._expiry

    @property
    def mu(self) -> float:
        """Tail thickness parameter."""
        return self._mu

    tail_thickness = mu

    @property
    def options(self) -> ExtrapolationOptions:
        return self._options

    @property
    def volatility_provider(self) -> VolatilityProvider:
        return self._volatility_provider

    @property
    def price_formula(self) -> PriceFormula:
        return self._price_formula

    @property
    def snapshot(self) -> Optional[CutoffSnapshot]:
        """Cut-off snapshot, ``None`` when the expiry is below the threshold."""
        return self._snapshot

    @property
    def fitted_coefficients(self) -> FittedCoefficients:
        return self._coefficients

    @property
    def is_degenerate(self) -> bool:
        """Whether the tail is pinned to zero by the sentinel coefficients."""
        return self._degenerate

    @cached_property
    def parameter_derivative_forward(self) -> np.ndarray:
        """Derivatives of ``(a, b, c)`` with respect to the forward."""
        return TailSensitivity(self).derivative_forward()

    @cached_property
    def parameter_derivative_model(self) -> np.ndarray:
        """Derivatives of ``(a, b, c)`` with respect to each model parameter, shape (N, 3).

        Raises:
            CalculationError: If a bumped smile-model evaluation fails.
        """

        return TailSensitivity(self).derivative_model_parameters()

    # ------------------------------------------------------------------
    # Tail function
    # ------------------------------------------------------------------
    def extrapolation(self, strike: float) -> float:
        return tail_value(strike, self._coefficients, self._mu)

    def extrapolation_derivative(self, strike: float) -> float:
        return tail_strike_derivative(strike, self._coefficients, self._mu)

    def _model_adjoints(self, strike: float, put_call: PutCall):
        vol = self._volatility_provider.volatility_adjoint(
            self._forward, strike, self._expiry, self._parameters
        )
        option = EuropeanOption(strike, self._expiry, put_call)
        price = self._price_formula.price_adjoint(option, BlackData(self._forward, vol.value))
        return vol, price

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------
    def price(self, strike: float, put_call: PutCall = "call") -> float:
        """Option price with numeraire 1.

        Args:
            strike: Option strike.
            put_call: ``"call"`` or ``"put"``.

        Returns:
            The smile-model price at or below the cut-off, the extrapolated
            price above it (puts by call/put parity).
        """

        call = is_call(put_call)
        if strike <= self._cutoff_strike:
            vol = self._volatility_provider.volatility(
                self._forward, strike, self._expiry, self._parameters
            )
            option = EuropeanOption(strike, self._expiry, put_call)
            return self._price_formula.price(option, BlackData(self._forward, vol))
        value = self.extrapolation(strike)
        if not call:
            value -= self._forward - strike
        return value

    def price_derivative_strike(self, strike: float, put_call: PutCall = "call") -> float:
        """Derivative of the option price with respect to the strike."""

        call = is_call(put_call)
        if strike <= self._cutoff_strike:
            vol, price = self._model_adjoints(strike, put_call)
            return price.derivative(2) + price.derivative(1) * vol.derivative(1)
        derivative = self.extrapolation_derivative(strike)
        if not call:
            derivative += 1.0
        return derivative

    def price_derivative_forward(self, strike: float, put_call: PutCall = "call") -> float:
        """Derivative of the option price with respect to the forward."""

        call = is_call(put_call)
        if strike <= self._cutoff_strike:
            vol, price = self._model_adjoints(strike, put_call)
            return price.derivative(0) + price.derivative(1) * vol.derivative(0)
        derivative = float(np.dot(self._tail_coefficient_gradient(strike), self.parameter_derivative_forward))
        if not call:
            derivative -= 1.0
        return derivative

    def price_adjoint_model_parameters(
        self, strike: float, put_call: PutCall = "call"
    ) -> ValueDerivatives:
        """Option price and its derivatives with respect to the model parameters.

        Above the cut-off the derivatives go through
        :attr:`parameter_derivative_model`, which bumps each model parameter.

        Raises:
            CalculationError: If the smile model cannot be evaluated at a
                bumped parameter set, for instance SABR ``rho`` within the
                bump size of 1.
        """

        call = is_call(put_call)
        if strike <= self._cutoff_strike:
            vol, price = self._model_adjoints(strike, put_call)
            return ValueDerivatives(
                price.value, price.derivative(1) * np.asarray(vol.derivatives[2:], dtype=float)
            )
        gradient = self._tail_coefficient_gradient(strike)
        value = gradient[0]
        if not call:
            value -= self._forward - strike
        return ValueDerivatives(value, self.parameter_derivative_model @ gradient)

    def _tail_coefficient_gradient(self, strike: float) -> np.ndarray:
        # (df/da, df/db, df/dc)
        value = self.extrapolation(strike)
        return np.array([value, value / strike, value / (strike * strike)])

    def __repr__(self) -> str:
        c = self._coefficients
        return (
            f"{type(self).__name__}(forward={self._forward!r}, cutoff_strike={self._cutoff_strike!r}, "
            f"expiry={self._expiry!r}, mu={self._mu!r}, coefficients=({c.a:.6g}, {c.b:.6g}, {c.c:.6g}))"
        )


__all__ = [
    "SmileExtrapolation",
    "compute_cutoff_snapshot",
    "curvature_residual",
    "fit_tail_coefficients",
    "sentinel_coefficients",
    "b_from_c",
    "a_from_bc",
    "tail_value",
    "tail_strike_derivative",
]
