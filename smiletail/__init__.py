# smiletail - smile extrapolation for large strikes
"""Price options beyond a cut-off strike with a C2-continuous parametric tail."""

from smiletail.core import (
    SmileTailError,
    InvalidInputError,
    CalculationError,
    RootFindingError,
    SmileExtrapolation,
    TailSensitivity,
    ExtrapolationOptions,
    FittedCoefficients,
    CutoffSnapshot,
    ValueDerivatives,
    ValueDerivatives2,
    EuropeanOption,
    BlackData,
    PutCall,
    VolatilityProvider,
    PriceFormula,
    FlatVolatilityProvider,
    HaganVolatilityProvider,
    SABRParameters,
)
from smiletail.pricing import (
    Black76Formula,
    black76_price,
    get_price_formula,
    get_volatility_provider,
)
from smiletail.pipelines import tail_profile
from smiletail.logging import configure_logging, get_logger

__version__ = "0.1.0"

__all__ = [
    # Exceptions
    "SmileTailError",
    "InvalidInputError",
    "CalculationError",
    "RootFindingError",
    # Extrapolation
    "SmileExtrapolation",
    "TailSensitivity",
    "ExtrapolationOptions",
    "FittedCoefficients",
    "CutoffSnapshot",
    "ValueDerivatives",
    "ValueDerivatives2",
    "EuropeanOption",
    "BlackData",
    "PutCall",
    # Collaborators
    "VolatilityProvider",
    "PriceFormula",
    "FlatVolatilityProvider",
    "HaganVolatilityProvider",
    "SABRParameters",
    "Black76Formula",
    "black76_price",
    "get_price_formula",
    "get_volatility_provider",
    # Reports
    "tail_profile",
    # Logging
    "configure_logging",
    "get_logger",
]
