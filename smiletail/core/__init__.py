from smiletail.core.errors import (
    CalculationError,
    InvalidInputError,
    RootFindingError,
    SmileTailError,
)
from smiletail.core.extrapolation import (
    SmileExtrapolation,
    compute_cutoff_snapshot,
    fit_tail_coefficients,
    tail_strike_derivative,
    tail_value,
)
from smiletail.core.root_finding import bracket_root, ridder_root
from smiletail.core.sabr import HaganVolatilityProvider, SABRParameters
from smiletail.core.sensitivity import TailSensitivity, svd_solve
from smiletail.core.types import (
    BlackData,
    CutoffSnapshot,
    EuropeanOption,
    ExtrapolationOptions,
    FittedCoefficients,
    PutCall,
    ValueDerivatives,
    ValueDerivatives2,
)
from smiletail.core.volatility import (
    FlatVolatilityProvider,
    PriceFormula,
    VolatilityProvider,
)


__all__ = [
    "SmileTailError",
    "InvalidInputError",
    "CalculationError",
    "RootFindingError",
    "SmileExtrapolation",
    "compute_cutoff_snapshot",
    "fit_tail_coefficients",
    "tail_value",
    "tail_strike_derivative",
    "bracket_root",
    "ridder_root",
    "HaganVolatilityProvider",
    "SABRParameters",
    "TailSensitivity",
    "svd_solve",
    "BlackData",
    "CutoffSnapshot",
    "EuropeanOption",
    "ExtrapolationOptions",
    "FittedCoefficients",
    "PutCall",
    "ValueDerivatives",
    "ValueDerivatives2",
    "FlatVolatilityProvider",
    "PriceFormula",
    "VolatilityProvider",
]
