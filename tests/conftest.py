"""Shared fixtures for the smile extrapolation tests."""

import pytest

from smiletail import FlatVolatilityProvider, SABRParameters, SmileExtrapolation

FORWARD = 0.05
SABR = SABRParameters(alpha=0.05, beta=0.5, rho=-0.25, nu=0.5)
CUTOFF = 0.10
EXPIRY = 2.0
MU = 2.5


@pytest.fixture
def sabr_parameters():
    return SABR


@pytest.fixture
def sabr_extrapolation():
    """SABR smile extrapolated above a cut-off at twice the forward."""
    return SmileExtrapolation(FORWARD, SABR, CUTOFF, EXPIRY, MU)


@pytest.fixture
def flat_extrapolation():
    """Flat 20% volatility with the cut-off well out of the money."""
    return SmileExtrapolation(
        0.03,
        (0.2,),
        0.10,
        5.0,
        2.5,
        volatility_provider=FlatVolatilityProvider(),
    )
