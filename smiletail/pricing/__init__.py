from __future__ import annotations

"""Registry + convenience helpers for pricing formulas and smile models.

Add any new formula or smile model here and expose it through
*get_price_formula()* / *get_volatility_provider()* so callers can select
implementations by name.
"""

from typing import Callable, Dict

from smiletail.core.sabr import HaganVolatilityProvider
from smiletail.core.volatility import FlatVolatilityProvider, PriceFormula, VolatilityProvider

from .black76 import Black76Formula, black76_price

# Map *name* -> factory. Each call returns a fresh, stateless instance.
_PRICE_FORMULAS: Dict[str, Callable[[], PriceFormula]] = {
    "black76": Black76Formula,
}

_VOLATILITY_PROVIDERS: Dict[str, Callable[[], VolatilityProvider]] = {
    "hagan": HaganVolatilityProvider,
    "flat": FlatVolatilityProvider,
}


def get_price_formula(engine: str = "black76") -> PriceFormula:
    """Return a pricing formula by *engine* key.

    Parameters
    ----------
    engine: str, default "black76"
        Identifier registered in the internal `_PRICE_FORMULAS` mapping.

    Returns
    -------
    PriceFormula
        An object exposing ``price``, ``price_adjoint`` and ``price_adjoint2``.
    """
    try:
        return _PRICE_FORMULAS[engine]()
    except KeyError as exc:
        raise ValueError(
            f"Unknown pricing engine '{engine}'. Available: {list(_PRICE_FORMULAS.keys())}"
        ) from exc


def get_volatility_provider(name: str = "hagan") -> VolatilityProvider:
    """Return a smile model by *name* (``"hagan"`` or ``"flat"``)."""
    try:
        return _VOLATILITY_PROVIDERS[name]()
    except KeyError as exc:
        raise ValueError(
            f"Unknown volatility provider '{name}'. "
            f"Available: {list(_VOLATILITY_PROVIDERS.keys())}"
        ) from exc


__all__ = [
    "Black76Formula",
    "black76_price",
    "get_price_formula",
    "get_volatility_provider",
]
