"""
Tests for the synthetic input surfaces.
"""

import pytest
import numpy as np

from localvol import config
from localvol.interpolation import grid_interpolator
from localvol.local_volatility import DupireLocalVolatilityCalculator
from localvol.synthetic import generate_svi_grid, reference_frame, reference_surfaces, svi_surface


class TestReference:

    def test_frame_layout(self):
        df = reference_frame()
        assert list(df.columns) == ["T", "strike", "iv", "price"]
        assert len(df) == 12
        # strike-major
        assert df["strike"].iloc[:4].tolist() == [0.8] * 4
        assert df["T"].iloc[:4].tolist() == list(config.REFERENCE_TIMES)
        assert df["iv"].tolist() == list(config.REFERENCE_VOLS)

    def test_surfaces(self):
        vol, price = reference_surfaces()
        assert vol.name == "TestVol"
        assert price.name == "TestPrice"
        assert vol.evaluate(1.0, 2.0) == pytest.approx(0.13, abs=1e-12)
        assert price.evaluate(0.25, 1.4) == pytest.approx(0.04868, abs=1e-12)

    def test_custom_interpolator(self):
        vol, _ = reference_surfaces(grid_interpolator("linear", "linear"))
        assert vol.evaluate(0.375, 0.8) == pytest.approx(0.19)


class TestSVIGrid:

    def test_full_grid(self):
        df, S = generate_svi_grid()
        assert S == config.SPOT
        assert len(df) == len(config.SVI_MATURITIES) * config.SVI_N_STRIKES
        strikes_per_T = df.groupby("T")["strike"].apply(lambda s: tuple(np.round(s, 12)))
        assert strikes_per_T.nunique() == 1

    def test_columns(self):
        df, _ = generate_svi_grid(S=100.0)
        assert set(df.columns) == {"strike", "T", "iv", "moneyness", "log_moneyness"}
        np.testing.assert_allclose(df["moneyness"], df["strike"] / 100.0)

    def test_negative_skew(self):
        """Low strikes carry higher vol than the money at every maturity."""
        df, _ = generate_svi_grid(S=100.0)
        for _, smile in df.groupby("T"):
            smile = smile.sort_values("strike")
            atm = smile.loc[smile["log_moneyness"].abs().idxmin(), "iv"]
            assert smile["iv"].iloc[0] > atm

    def test_deterministic(self):
        a, _ = generate_svi_grid()
        b, _ = generate_svi_grid()
        assert a.equals(b)

    def test_iv_bounds(self):
        df, _ = generate_svi_grid()
        assert df["iv"].between(config.MIN_IV, config.MAX_IV).all()

    def test_explicit_axes(self):
        df, _ = generate_svi_grid(S=1.0, maturities=[0.5, 1.0], strikes=[0.9, 1.0, 1.1])
        assert len(df) == 6


class TestSVISurface:

    def test_surface(self):
        surface, S = svi_surface()
        assert surface.name == "SVI"
        assert surface.parameter_count == len(config.SVI_MATURITIES) * config.SVI_N_STRIKES
        assert S == config.SPOT

    @pytest.mark.parametrize("T", [0.5, 1.0])
    def test_local_vol_at_the_money_reasonable(self, T):
        surface, S = svi_surface()
        local = DupireLocalVolatilityCalculator().local_volatility_from_implied_volatility(
            surface, S, config.RISK_FREE_RATE, config.DIVIDEND_YIELD)
        lv = local.evaluate(T, S)
        assert 0.05 < lv < 0.5
