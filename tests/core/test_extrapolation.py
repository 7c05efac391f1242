"""Tests for the tail fit and the extrapolated pricing surface."""

import math

import numpy as np
import pytest
from scipy.stats import norm

from smiletail import (
    CalculationError,
    CutoffSnapshot,
    ExtrapolationOptions,
    FlatVolatilityProvider,
    InvalidInputError,
    SABRParameters,
    SmileExtrapolation,
)
from smiletail.core import extrapolation as extrapolation_module
from smiletail.core.extrapolation import (
    curvature_residual,
    fit_tail_coefficients,
    sentinel_coefficients,
    tail_strike_derivative,
    tail_value,
)
from smiletail.pricing.black76 import black76_price


def _tail_second_derivative(strike, coefficients, mu):
    b, c = coefficients.b, coefficients.c
    slope = -(mu / strike + b / strike**2 + 2.0 * c / strike**3)
    curvature = mu / strike**2 + 2.0 * b / strike**3 + 6.0 * c / strike**4
    return tail_value(strike, coefficients, mu) * (slope * slope + curvature)


class TestCutoffSnapshot:
    def test_flat_volatility_matches_black_closed_form(self, flat_extrapolation):
        snapshot = flat_extrapolation.snapshot
        stdev = 0.2 * math.sqrt(5.0)
        d2 = math.log(0.03 / 0.10) / stdev - 0.5 * stdev

        assert snapshot.volatility == 0.2
        assert snapshot.price == pytest.approx(float(black76_price(0.03, 0.10, 0.2, 5.0)), rel=1e-12)
        assert snapshot.price_derivative == pytest.approx(-norm.cdf(d2), rel=1e-12)
        assert snapshot.price_second_derivative == pytest.approx(
            norm.pdf(d2) / (0.10 * stdev), rel=1e-12
        )

    def test_is_negligible(self):
        assert CutoffSnapshot(0.2, 1e-17, -1e-16, 1e-16).is_negligible(1e-15)
        assert not CutoffSnapshot(0.2, 1e-17, -1e-16, 1e-12).is_negligible(1e-15)


class TestTailFit:
    @pytest.mark.parametrize("fixture", ["sabr_extrapolation", "flat_extrapolation"])
    def test_tail_reproduces_value_slope_and_curvature(self, fixture, request):
        ext = request.getfixturevalue(fixture)
        k = ext.cutoff_strike
        coefficients = ext.fitted_coefficients
        snapshot = ext.snapshot

        assert ext.extrapolation(k) == pytest.approx(snapshot.price, rel=1e-12)
        assert ext.extrapolation_derivative(k) == pytest.approx(snapshot.price_derivative, rel=1e-9)
        assert _tail_second_derivative(k, coefficients, ext.mu) == pytest.approx(
            snapshot.price_second_derivative, rel=1e-6
        )

    def test_fitted_c_is_root_of_curvature_residual(self, sabr_extrapolation):
        ext = sabr_extrapolation
        residual = curvature_residual(ext.snapshot, ext.cutoff_strike, ext.mu)
        # the residual is linear in c with slope 2 / K*^2
        slope = 2.0 / ext.cutoff_strike**2
        assert abs(residual(ext.fitted_coefficients.c)) / slope < 1e-5

    def test_flat_scenario_coefficients(self, flat_extrapolation):
        coefficients = flat_extrapolation.fitted_coefficients
        assert coefficients.c < 0.0 < coefficients.b
        assert not flat_extrapolation.is_degenerate

    def test_flat_scenario_price(self, flat_extrapolation):
        ext = flat_extrapolation
        tail_price = ext.price(0.15, "call")
        cutoff_price = ext.price(0.10, "call")
        assert tail_price == pytest.approx(1.3976435e-06, rel=1e-6)
        assert cutoff_price == pytest.approx(float(black76_price(0.03, 0.10, 0.2, 5.0)), rel=1e-12)
        assert 0.0 < tail_price < cutoff_price

    def test_non_positive_cutoff_price_raises(self):
        snapshot = CutoffSnapshot(0.2, -1e-3, -0.01, 0.5)
        with pytest.raises(CalculationError):
            fit_tail_coefficients(snapshot, 0.10, 2.5)

    def test_negligible_snapshot_skips_root_search(self, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("root search must not run for a negligible snapshot")

        monkeypatch.setattr(extrapolation_module, "bracket_root", fail)
        monkeypatch.setattr(extrapolation_module, "ridder_root", fail)
        ext = SmileExtrapolation(
            0.03, (0.01,), 0.10, 1.0, 2.5, volatility_provider=FlatVolatilityProvider()
        )

        assert ext.is_degenerate
        assert ext.fitted_coefficients == sentinel_coefficients(ext.options)
        assert ext.price(0.12) == 0.0
        assert ext.price_derivative_strike(0.12) == 0.0
        np.testing.assert_array_equal(ext.parameter_derivative_forward, np.zeros(3))

    def test_sentinel_coefficients_follow_options(self):
        coefficients = sentinel_coefficients(ExtrapolationOptions(sentinel=-500.0))
        assert (coefficients.a, coefficients.b, coefficients.c) == (-500.0, 0.0, 0.0)


class TestPricing:
    def test_model_price_at_and_below_cutoff(self, sabr_extrapolation, sabr_parameters):
        ext = sabr_extrapolation
        for strike in (0.03, 0.05, ext.cutoff_strike):
            vol = ext.volatility_provider.volatility(0.05, strike, 2.0, sabr_parameters.to_tuple())
            expected = float(black76_price(0.05, strike, vol, 2.0))
            assert ext.price(strike) == pytest.approx(expected, rel=1e-12)

    @pytest.mark.parametrize("fixture", ["sabr_extrapolation", "flat_extrapolation"])
    def test_price_is_continuous_across_cutoff(self, fixture, request):
        ext = request.getfixturevalue(fixture)
        k = ext.cutoff_strike
        below, above = k * (1.0 - 1e-10), k * (1.0 + 1e-10)

        assert ext.price(above) == pytest.approx(ext.price(below), rel=1e-7)
        assert ext.price_derivative_strike(above) == pytest.approx(
            ext.price_derivative_strike(below), rel=1e-6
        )

    @pytest.mark.parametrize("strike", [0.02, 0.05, 0.09, 0.10, 0.11, 0.2, 0.5])
    def test_put_call_parity(self, sabr_extrapolation, strike):
        ext = sabr_extrapolation
        call = ext.price(strike, "call")
        put = ext.price(strike, "put")
        assert call - put == pytest.approx(ext.forward - strike, abs=1e-12)
        d_call = ext.price_derivative_strike(strike, "call")
        d_put = ext.price_derivative_strike(strike, "put")
        assert d_call - d_put == pytest.approx(-1.0, abs=1e-10)

    def test_put_price_above_cutoff_is_exact_parity(self, sabr_extrapolation):
        ext = sabr_extrapolation
        strike = 0.14
        assert ext.price(strike, "put") == ext.extrapolation(strike) - (ext.forward - strike)

    @pytest.mark.parametrize("mu", [2.5, 5.0])
    def test_extrapolated_calls_decay(self, mu):
        ext = SmileExtrapolation(
            0.03, (0.2,), 0.10, 5.0, mu, volatility_provider=FlatVolatilityProvider()
        )
        strikes = np.linspace(0.10, 1.0, 60)
        prices = np.array([ext.price(k) for k in strikes])
        assert np.all(np.diff(prices) < 0.0)
        assert np.all(prices > 0.0)
        assert all(ext.price_derivative_strike(k) < 0.0 for k in strikes[1:])

    def test_strike_derivative_matches_finite_difference(self, sabr_extrapolation):
        ext = sabr_extrapolation
        for strike in (0.07, 0.12, 0.25):
            h = strike * 1e-6
            fd = (ext.price(strike + h) - ext.price(strike - h)) / (2.0 * h)
            assert ext.price_derivative_strike(strike) == pytest.approx(fd, rel=1e-6, abs=1e-10)

    def test_tail_strike_derivative_function(self, flat_extrapolation):
        coefficients = flat_extrapolation.fitted_coefficients
        strike, h = 0.3, 1e-7
        fd = (tail_value(strike + h, coefficients, 2.5) - tail_value(strike - h, coefficients, 2.5)) / (
            2.0 * h
        )
        assert tail_strike_derivative(strike, coefficients, 2.5) == pytest.approx(fd, rel=1e-6)


class TestDegenerateExpiry:
    def test_tiny_expiry_gives_zero_tail(self, sabr_parameters):
        ext = SmileExtrapolation(0.05, sabr_parameters, 0.10, 1e-7, 2.5)
        assert ext.snapshot is None
        assert ext.is_degenerate
        assert ext.price(0.12) == 0.0
        assert ext.price(0.12, "put") == pytest.approx(0.07)
        assert ext.price_derivative_forward(0.12) == 0.0
        assert ext.price_derivative_forward(0.12, "put") == -1.0
        np.testing.assert_array_equal(ext.parameter_derivative_model, np.zeros((4, 3)))

    def test_negative_expiry_is_degenerate(self, sabr_parameters):
        ext = SmileExtrapolation(0.05, sabr_parameters, 0.10, -0.5, 2.5)
        assert ext.is_degenerate
        assert ext.price(0.2) == 0.0
        assert ext.price(0.04) == 0.0


class TestConstruction:
    def test_of_matches_constructor(self, sabr_parameters):
        direct = SmileExtrapolation(0.05, sabr_parameters, 0.10, 2.0, 2.5)
        built = SmileExtrapolation.of(0.05, sabr_parameters, 0.10, 2.0, 2.5)
        assert built.fitted_coefficients == direct.fitted_coefficients
        assert built.model_parameters == sabr_parameters.to_tuple()
        assert built.tail_thickness == built.mu == 2.5

    @pytest.mark.parametrize(
        "args",
        [
            (0.05, (0.05, 0.5, -0.25, 0.5), 0.0, 2.0, 2.5),
            (0.05, (0.05, 0.5, -0.25, 0.5), -0.1, 2.0, 2.5),
            (math.nan, (0.05, 0.5, -0.25, 0.5), 0.10, 2.0, 2.5),
            (0.05, (0.05, 0.5, -0.25, 0.5), 0.10, 2.0, math.inf),
            (0.05, (0.05, 0.5, -0.25), 0.10, 2.0, 2.5),
            (0.05, None, 0.10, 2.0, 2.5),
            (0.05, ("a", 0.5, -0.25, 0.5), 0.10, 2.0, 2.5),
            (0.05, (0.05, 0.5, math.nan, 0.5), 0.10, 2.0, 2.5),
        ],
    )
    def test_invalid_inputs_raise(self, args):
        with pytest.raises(InvalidInputError):
            SmileExtrapolation(*args)

    def test_bump_modes_must_match_parameters(self):
        class MismatchedProvider(FlatVolatilityProvider):
            bump_modes = ("relative", "absolute")

        with pytest.raises(InvalidInputError, match="bump modes"):
            SmileExtrapolation(0.03, (0.2,), 0.10, 5.0, 2.5, volatility_provider=MismatchedProvider())

    def test_invalid_put_call_raises(self, sabr_extrapolation):
        with pytest.raises(InvalidInputError):
            sabr_extrapolation.price(0.12, "straddle")

    def test_options_from_mapping(self):
        ext = SmileExtrapolation(
            0.05,
            SABRParameters(0.05, 0.5, -0.25, 0.5),
            0.10,
            2.0,
            2.5,
            options={"root_tolerance": 1e-10, "finite_difference": "forward"},
        )
        assert ext.options.root_tolerance == 1e-10
        assert ext.options.finite_difference == "forward"
        assert ext.options.bump == ExtrapolationOptions().bump

    def test_unknown_option_raises(self):
        with pytest.raises(TypeError, match="Unknown extrapolation option"):
            ExtrapolationOptions.from_mapping({"tolerance": 1e-6})

    @pytest.mark.parametrize(
        "overrides",
        [
            {"bump": 0.0},
            {"root_tolerance": -1.0},
            {"finite_difference": "backward"},
            {"svd_rcond": 0.0},
        ],
    )
    def test_invalid_option_values_raise(self, overrides):
        with pytest.raises(InvalidInputError):
            ExtrapolationOptions.from_mapping(overrides)

    def test_options_round_trip_mapping(self):
        options = ExtrapolationOptions(bump=1e-6)
        assert ExtrapolationOptions.from_mapping(options.to_mapping()) == options

    def test_repr_mentions_coefficients(self, flat_extrapolation):
        assert "coefficients=" in repr(flat_extrapolation)
