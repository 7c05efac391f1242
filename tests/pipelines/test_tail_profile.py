"""Tests for the tabulated tail profile."""

import numpy as np
import pandas as pd
import pytest

from smiletail import InvalidInputError, tail_profile
from smiletail.pipelines.tail_profile import PROFILE_COLUMNS


class TestTailProfile:
    def test_columns_and_ordering(self, sabr_extrapolation):
        profile = tail_profile(sabr_extrapolation, [0.2, 0.05, 0.12, 0.10])

        assert isinstance(profile, pd.DataFrame)
        assert tuple(profile.columns) == PROFILE_COLUMNS
        np.testing.assert_allclose(profile["strike"], [0.05, 0.10, 0.12, 0.2])
        assert list(profile["region"]) == ["model", "model", "extrapolated", "extrapolated"]

    def test_values_match_extrapolation(self, sabr_extrapolation):
        ext = sabr_extrapolation
        strikes = np.linspace(0.04, 0.3, 12)
        profile = tail_profile(ext, strikes, "put")

        expected_price = [ext.price(k, "put") for k in strikes]
        expected_strike = [ext.price_derivative_strike(k, "put") for k in strikes]
        expected_forward = [ext.price_derivative_forward(k, "put") for k in strikes]
        np.testing.assert_allclose(profile["price"], expected_price)
        np.testing.assert_allclose(profile["strike_derivative"], expected_strike)
        np.testing.assert_allclose(profile["forward_derivative"], expected_forward)

    def test_forward_derivative_can_be_skipped(self, flat_extrapolation):
        profile = tail_profile(flat_extrapolation, [0.05, 0.2], include_forward_derivative=False)
        assert profile["forward_derivative"].isna().all()
        assert profile["price"].notna().all()

    @pytest.mark.parametrize("strikes", [[], [0.05, -0.1], [0.05, np.nan]])
    def test_invalid_grid_raises(self, flat_extrapolation, strikes):
        with pytest.raises(InvalidInputError):
            tail_profile(flat_extrapolation, strikes)

    def test_invalid_put_call_raises(self, flat_extrapolation):
        with pytest.raises(InvalidInputError):
            tail_profile(flat_extrapolation, [0.05], "digital")
