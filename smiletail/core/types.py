"""Typed containers shared by the pricing formulas and the tail extrapolation."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Literal, Mapping, Tuple

import numpy as np

from smiletail.core.errors import InvalidInputError

PutCall = Literal["call", "put"]
FiniteDifference = Literal["central", "forward"]
PUT_CALL_VALUES: Tuple[str, ...] = ("call", "put")


def is_call(put_call: str) -> bool:
    """Return ``True`` for calls and ``False`` for puts.

    Args:
        put_call: Either ``"call"`` or ``"put"``.

    Raises:
        InvalidInputError: If ``put_call`` is neither value.
    """

    if put_call == "call":
        return True
    if put_call == "put":
        return False
    raise InvalidInputError(
        f"put_call must be one of {PUT_CALL_VALUES}, got {put_call!r}"
    )


@dataclass(frozen=True)
class ValueDerivatives:
    """A value bundled with its first order partial derivatives.

    Args:
        value: The computed value.
        derivatives: First order partials, ordered as documented by the
            producing function.
    """

    value: float
    derivatives: np.ndarray

    def derivative(self, index: int) -> float:
        """Return the partial derivative at ``index``."""

        return float(self.derivatives[index])


@dataclass(frozen=True)
class ValueDerivatives2(ValueDerivatives):
    """A value with its first order partials and a second order block.

    Args:
        value: The computed value.
        derivatives: First order partials.
        second: Square matrix of second order partials.
    """

    second: np.ndarray

    def second_derivative(self, i: int, j: int) -> float:
        """Return the second order partial ``d2 value / dx_i dx_j``."""

        return float(self.second[i, j])


@dataclass(frozen=True)
class EuropeanOption:
    """Strike, time to expiry and exercise type of a European option."""

    strike: float
    expiry: float
    put_call: PutCall = "call"

    @property
    def is_call(self) -> bool:
        return is_call(self.put_call)


@dataclass(frozen=True)
class BlackData:
    """Market data consumed by the Black formula."""

    forward: float
    volatility: float
    numeraire: float = 1.0


@dataclass(frozen=True)
class CutoffSnapshot:
    """Smile-model call price and its strike derivatives at the cut-off.

    Args:
        volatility: Model volatility at the cut-off strike.
        price: Call price at the cut-off.
        price_derivative: First derivative of the price with respect to strike.
        price_second_derivative: Second derivative of the price with respect
            to strike.
    """

    volatility: float
    price: float
    price_derivative: float
    price_second_derivative: float

    def as_array(self) -> np.ndarray:
        return np.array(
            [self.price, self.price_derivative, self.price_second_derivative]
        )

    def is_negligible(self, threshold: float) -> bool:
        """Whether price and both derivatives are below ``threshold`` in size."""

        return bool(np.all(np.abs(self.as_array()) < threshold))


@dataclass(frozen=True)
class FittedCoefficients:
    """Coefficients of ``f(K) = K^-mu exp(a + b/K + c/K^2)``."""

    a: float
    b: float
    c: float

    def as_array(self) -> np.ndarray:
        return np.array([self.a, self.b, self.c])


@dataclass(frozen=True)
class ExtrapolationOptions:
    """Numerical settings controlling the tail fit and its sensitivities.

    Args:
        small_expiry: Time to expiry at or below which the tail is set to zero.
        small_price: Absolute level below which the cut-off price and its
            strike derivatives are treated as zero.
        sentinel: Value of ``a`` used when the tail is degenerate; large and
            negative so that the extrapolated price vanishes.
        root_tolerance: Absolute tolerance on ``c`` for Ridder's method.
        root_max_iter: Maximum Ridder iterations.
        bracket_start: Initial interval for the bracket search on ``c``.
        bracket_ratio: Expansion factor applied at each bracket step.
        bracket_max_steps: Maximum number of bracket expansions.
        bump: Finite-difference step for third order cross derivatives.
        finite_difference: ``"central"`` or ``"forward"`` differencing of the
            second order adjoints.
        svd_rcond: Relative cut-off for small singular values in the
            sensitivity solve. ``None`` uses the matrix size times the
            machine epsilon.
    """

    small_expiry: float = 1.0e-6
    small_price: float = 1.0e-15
    sentinel: float = -1.0e4
    root_tolerance: float = 1.0e-12
    root_max_iter: int = 100
    bracket_start: Tuple[float, float] = (-1.0, 1.0)
    bracket_ratio: float = 1.6
    bracket_max_steps: int = 50
    bump: float = 1.0e-5
    finite_difference: FiniteDifference = "central"
    svd_rcond: float | None = None

    def __post_init__(self) -> None:
        if self.root_tolerance <= 0.0:
            raise InvalidInputError("root_tolerance must be positive")
        if self.bump <= 0.0:
            raise InvalidInputError("bump must be positive")
        if self.svd_rcond is not None and not self.svd_rcond > 0.0:
            raise InvalidInputError("svd_rcond must be positive")
        if self.finite_difference not in ("central", "forward"):
            raise InvalidInputError(
                f"finite_difference must be 'central' or 'forward', got {self.finite_difference!r}"
            )
        if self.bracket_ratio <= 0.0:
            raise InvalidInputError("bracket_ratio must be positive")
        if self.bracket_max_steps < 1 or self.root_max_iter < 1:
            raise InvalidInputError("Iteration limits must be at least 1")
        lo, hi = self.bracket_start
        if lo == hi:
            raise InvalidInputError("bracket_start must span a non-empty interval")

    @classmethod
    def field_names(cls) -> set[str]:
        """Return the names of supported configuration fields."""

        return {f.name for f in fields(cls)}

    @classmethod
    def from_mapping(
        cls, overrides: ExtrapolationOptions | Mapping[str, Any] | None = None
    ) -> ExtrapolationOptions:
        """Build an options instance from optional overrides.

        Args:
            overrides: Either an existing :class:`ExtrapolationOptions` or a
                mapping of field overrides.

        Returns:
            A fully populated :class:`ExtrapolationOptions` instance.

        Raises:
            TypeError: If ``overrides`` contains unrecognised keys.
        """

        if overrides is None:
            return cls()
        if isinstance(overrides, cls):
            return overrides
        unknown = set(overrides) - cls.field_names()
        if unknown:
            raise TypeError(f"Unknown extrapolation option(s): {sorted(unknown)}")
        return replace(cls(), **{name: overrides[name] for name in overrides})

    def to_mapping(self) -> dict[str, Any]:
        """Return a mapping representation of the options."""

        return asdict(self)


DEFAULT_OPTIONS: ExtrapolationOptions = ExtrapolationOptions()


__all__ = [
    "PutCall",
    "FiniteDifference",
    "PUT_CALL_VALUES",
    "is_call",
    "ValueDerivatives",
    "ValueDerivatives2",
    "EuropeanOption",
    "BlackData",
    "CutoffSnapshot",
    "FittedCoefficients",
    "ExtrapolationOptions",
    "DEFAULT_OPTIONS",
]
