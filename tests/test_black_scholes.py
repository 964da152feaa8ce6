"""
Tests for the Black-Scholes pricing module.

Covers: pricing accuracy, put-call parity, the strike/time derivatives
Dupire needs, the sqrt(T)-scaled d1/d2, and IV round-trip consistency.

Run with: pytest tests/ -v
"""

import pytest
import numpy as np
from localvol.black_scholes import (
    call_price, put_price, bs_price,
    vega, call_dual_delta, call_dual_gamma, call_time_derivative,
    implied_vol,
    d1, d2, d1_root_t, d2_root_t,
)


# ── fixtures ─────────────────────────────────────────────────────────

# standard test parameters: ATM index-like option
S = 600.0
K = 600.0
T = 0.25  # 3 months
r = 0.05
sigma = 0.20
q = 0.013

H = 1e-4


class TestPricing:
    """Basic pricing correctness."""

    def test_call_price_positive(self):
        c = call_price(S, K, T, r, sigma, q)
        assert c > 0

    def test_put_price_positive(self):
        p = put_price(S, K, T, r, sigma, q)
        assert p > 0

    def test_put_call_parity(self):
        """
        Put-call parity: C - P = S*e^{-qT} - K*e^{-rT}

        Model-independent for European options. If this fails, something
        fundamental is wrong with the pricing formulas.
        """
        for K_test in [500.0, 550.0, 600.0, 650.0, 700.0]:
            c = call_price(S, K_test, T, r, sigma, q)
            p = put_price(S, K_test, T, r, sigma, q)
            rhs = S * np.exp(-q * T) - K_test * np.exp(-r * T)
            assert abs(c - p - rhs) < 1e-10, f"PCP failed at K={K_test}"

    def test_call_lower_bound(self):
        """Call price >= max(S*e^{-qT} - K*e^{-rT}, 0)."""
        for K_test in [400.0, 600.0, 800.0]:
            c = call_price(S, K_test, T, r, sigma, q)
            intrinsic = max(S * np.exp(-q * T) - K_test * np.exp(-r * T), 0)
            assert c >= intrinsic - 1e-10

    def test_known_value(self):
        """S=K=100, T=1, r=5%, sigma=20%, no dividend: textbook 10.4506."""
        assert call_price(100.0, 100.0, 1.0, 0.05, 0.20) == pytest.approx(10.4506, abs=1e-4)

    def test_expired_call(self):
        """At expiry, call = max(S-K, 0)."""
        assert call_price(600, 550, 0, r, sigma) == 50.0
        assert call_price(600, 650, 0, r, sigma) == 0.0

    def test_expired_put(self):
        assert put_price(600, 650, 0, r, sigma) == 50.0
        assert put_price(600, 550, 0, r, sigma) == 0.0

    def test_zero_vol_call(self):
        """With zero vol, call = max(S*e^{-qT} - K*e^{-rT}, 0)."""
        c = call_price(600, 550, 0.5, 0.05, 0.0, 0.0)
        expected = max(600 - 550 * np.exp(-0.05 * 0.5), 0)
        assert abs(c - expected) < 1e-10

    def test_bs_price_dispatch(self):
        assert bs_price(S, K, T, r, sigma, "call", q) == call_price(S, K, T, r, sigma, q)
        assert bs_price(S, K, T, r, sigma, "put", q) == put_price(S, K, T, r, sigma, q)
        assert bs_price(S, K, T, r, sigma, "C", q) == call_price(S, K, T, r, sigma, q)
        assert bs_price(S, K, T, r, sigma, "p", q) == put_price(S, K, T, r, sigma, q)

    def test_bs_price_invalid_type(self):
        with pytest.raises(ValueError):
            bs_price(S, K, T, r, sigma, "invalid")


class TestD1D2:

    def test_root_t_forms_agree(self):
        rt = np.sqrt(T)
        assert d1_root_t(S, 650.0, T, r, sigma, q) == pytest.approx(d1(S, 650.0, T, r, sigma, q) * rt)
        assert d2_root_t(S, 650.0, T, r, sigma, q) == pytest.approx(d2(S, 650.0, T, r, sigma, q) * rt)

    def test_root_t_finite_at_zero_time(self):
        """ln(S/K)/sigma at T=0, no division by sqrt(T)."""
        assert d1_root_t(1.4, 1.1, 0.0, 0.04, 0.2) == pytest.approx(np.log(1.4 / 1.1) / 0.2)
        assert d2_root_t(1.4, 1.1, 0.0, 0.04, 0.2) == d1_root_t(1.4, 1.1, 0.0, 0.04, 0.2)

    def test_d1_degenerate(self):
        assert d1(S, K, 0.0, r, sigma) == 0.0
        assert d1(S, K, T, r, 0.0) == 0.0


class TestCallDerivatives:
    """Closed-form strike/time derivatives against central differences."""

    def test_vega_matches_bump(self):
        bumped = (call_price(S, 620.0, T, r, sigma + H, q)
                  - call_price(S, 620.0, T, r, sigma - H, q)) / (2 * H)
        assert vega(S, 620.0, T, r, sigma, q) == pytest.approx(bumped, rel=1e-6)

    def test_vega_positive(self):
        for K_test in [500, 550, 600, 650, 700]:
            assert vega(S, K_test, T, r, sigma, q) >= 0

    def test_vega_degenerate(self):
        assert vega(S, K, 0.0, r, sigma) == 0.0

    def test_dual_delta_matches_bump(self):
        h = 1e-3
        bumped = (call_price(S, 620.0 + h, T, r, sigma, q)
                  - call_price(S, 620.0 - h, T, r, sigma, q)) / (2 * h)
        assert call_dual_delta(S, 620.0, T, r, sigma, q) == pytest.approx(bumped, rel=1e-6)

    def test_dual_delta_bounds(self):
        """-e^{-rT} <= dC/dK <= 0."""
        for K_test in [400, 600, 800]:
            dd = call_dual_delta(S, K_test, T, r, sigma, q)
            assert -np.exp(-r * T) <= dd <= 0

    def test_dual_gamma_matches_bump(self):
        h = 0.05
        bumped = (call_price(S, 620.0 + h, T, r, sigma, q) + call_price(S, 620.0 - h, T, r, sigma, q)
                  - 2 * call_price(S, 620.0, T, r, sigma, q)) / (h * h)
        assert call_dual_gamma(S, 620.0, T, r, sigma, q) == pytest.approx(bumped, rel=1e-4)

    def test_time_derivative_matches_bump(self):
        bumped = (call_price(S, 620.0, T + H, r, sigma, q)
                  - call_price(S, 620.0, T - H, r, sigma, q)) / (2 * H)
        assert call_time_derivative(S, 620.0, T, r, sigma, q) == pytest.approx(bumped, rel=1e-6)

    @pytest.mark.parametrize("K_test", [1.1, 1.4, 2.2])
    def test_dupire_price_formula_recovers_flat_vol(self, K_test):
        """Closed-form derivatives in Dupire's price formula give sigma back."""
        spot, rate, div, vol, t = 1.4, 0.03, 0.02, 0.25, 0.6
        c = call_price(spot, K_test, t, rate, vol, div)
        c_t = call_time_derivative(spot, K_test, t, rate, vol, div)
        c_k = call_dual_delta(spot, K_test, t, rate, vol, div)
        c_kk = call_dual_gamma(spot, K_test, t, rate, vol, div)
        var = 2 * (c_t + (rate - div) * K_test * c_k + div * c) / (K_test ** 2 * c_kk)
        assert np.sqrt(var) == pytest.approx(vol, abs=1e-10)


class TestImpliedVol:
    """Implied volatility solver tests."""

    def test_iv_round_trip_call(self):
        price = call_price(S, K, T, r, sigma, q)
        assert abs(implied_vol(price, S, K, T, r, "call", q) - sigma) < 1e-8

    def test_iv_round_trip_put(self):
        price = put_price(S, K, T, r, sigma, q)
        assert abs(implied_vol(price, S, K, T, r, "put", q) - sigma) < 1e-8

    def test_iv_round_trip_various_vols(self):
        for test_sigma in [0.05, 0.10, 0.25, 0.50, 1.0, 2.0]:
            price = call_price(S, K, T, r, test_sigma, q)
            iv_recovered = implied_vol(price, S, K, T, r, "call", q)
            assert abs(iv_recovered - test_sigma) < 1e-6, \
                f"Round-trip failed for sigma={test_sigma}: got {iv_recovered}"

    def test_iv_zero_price(self):
        assert np.isnan(implied_vol(0.0, S, K, T, r, "put"))

    def test_iv_negative_price(self):
        assert np.isnan(implied_vol(-5.0, S, K, T, r, "put"))

    def test_iv_expired(self):
        assert np.isnan(implied_vol(10.0, S, K, 0, r, "put"))

    def test_iv_below_intrinsic(self):
        intrinsic = S * np.exp(-q * T) - 500.0 * np.exp(-r * T)
        assert np.isnan(implied_vol(intrinsic - 1.0, S, 500.0, T, r, "call", q))

    def test_iv_above_bracket(self):
        """A call can't be worth more than the discounted spot."""
        assert np.isnan(implied_vol(S, S, K, T, r, "call", q))
