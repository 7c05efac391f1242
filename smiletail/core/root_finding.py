"""One-dimensional bracketing and root solving used by the tail fitter."""

from __future__ import annotations

import math
from typing import Callable, Tuple

from scipy import optimize

from smiletail.core.errors import RootFindingError
from smiletail.logging import get_logger

logger = get_logger("smiletail.root_finding")

ScalarFunction = Callable[[float], float]


def _evaluate(func: ScalarFunction, x: float) -> float:
    value = float(func(x))
    if not math.isfinite(value):
        raise RootFindingError(f"Function is not finite at x={x!r} (value={value!r})")
    return value


def bracket_root(
    func: ScalarFunction,
    x1: float,
    x2: float,
    *,
    ratio: float = 1.6,
    max_steps: int = 50,
) -> Tuple[float, float]:
    """Expand ``[x1, x2]`` outwards until ``func`` changes sign.

    The end point with the smaller absolute function value is pushed away
    from the other by ``ratio`` times the current width at each step.

    Args:
        func: Scalar function whose root is sought.
        x1: Initial lower end point.
        x2: Initial upper end point.
        ratio: Expansion factor applied at each step.
        max_steps: Maximum number of expansions.

    Returns:
        A tuple ``(lo, hi)`` with ``func(lo) * func(hi) <= 0`` and ``lo < hi``.

    Raises:
        RootFindingError: If the end points coincide, if the function is not
            finite, or if no sign change is found within ``max_steps``.
    """

    if x1 == x2:
        raise RootFindingError("Bracket end points must differ")

    f1 = _evaluate(func, x1)
    f2 = _evaluate(func, x2)
    for _ in range(max_steps):
        if f1 * f2 <= 0.0:
            return (x1, x2) if x1 < x2 else (x2, x1)
        if abs(f1) < abs(f2):
            x1 += ratio * (x1 - x2)
            f1 = _evaluate(func, x1)
        else:
            x2 += ratio * (x2 - x1)
            f2 = _evaluate(func, x2)

    if f1 * f2 <= 0.0:
        return (x1, x2) if x1 < x2 else (x2, x1)

    logger.warning(
        "No sign change found after %d expansions; last interval [%g, %g]",
        max_steps,
        min(x1, x2),
        max(x1, x2),
    )
    raise RootFindingError(
        f"Failed to bracket a root after {max_steps} expansions "
        f"(last interval [{min(x1, x2)!r}, {max(x1, x2)!r}])"
    )


def ridder_root(
    func: ScalarFunction,
    lo: float,
    hi: float,
    *,
    xtol: float = 1.0e-12,
    max_iter: int = 100,
) -> float:
    """Solve ``func(x) = 0`` on a bracketing interval with Ridder's method.

    Args:
        func: Scalar function with a sign change on ``[lo, hi]``.
        lo: Lower end of the bracket.
        hi: Upper end of the bracket.
        xtol: Absolute tolerance on the root.
        max_iter: Maximum number of iterations.

    Returns:
        The root estimate.

    Raises:
        RootFindingError: If the interval does not bracket a root or the
            solver does not converge within ``max_iter`` iterations.
    """

    try:
        root, result = optimize.ridder(
            func, lo, hi, xtol=xtol, maxiter=max_iter, full_output=True, disp=False
        )
    except (ValueError, RuntimeError) as exc:
        raise RootFindingError(f"Ridder solve failed on [{lo!r}, {hi!r}]: {exc}") from exc

    if not result.converged:
        raise RootFindingError(
            f"Ridder solve did not converge in {result.iterations} iterations "
            f"({result.flag})"
        )
    logger.debug(
        "Ridder converged to %.12g in %d iterations", root, result.iterations
    )
    return float(root)


__all__ = ["bracket_root", "ridder_root"]
