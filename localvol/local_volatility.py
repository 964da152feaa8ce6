"""
Dupire local volatility from an implied vol surface or a call price surface.

Both entry points return a DeformedSurface: nothing is precomputed, each
query re-derives the local vol from the input surface on a five-point
stencil (centre, T +/- h, K +/- h) with a single step h.

From implied vol, with sigma and its stencil derivatives at (T, K):

    d1 sqrt(T) = (ln(S/K) + (r - q) T) / sigma + sigma T / 2
    d2 sqrt(T) = d1 sqrt(T) - sigma T

    den = 1 + 2 K sigma_K d1 sqrt(T)
            + K^2 (sigma_K^2 d1 sqrt(T) d2 sqrt(T) + T sigma sigma_KK)
    var = (sigma^2 + 2 sigma T (sigma_T + (r - q) K sigma_K)) / den

This is the usual formula with d1, d2 written as d1 sqrt(T), d2 sqrt(T),
which keeps T = 0 free of divisions. A flat input makes every
derivative exactly zero, so den = 1 and the local vol is the input vol.

From present-value call prices:

    var = 2 (P_T + (r - q) K P_K + q P) / (K^2 P_KK)

Sensitivities: var is a closed-form function of four stencil estimates
(value, d/dT, d/dK, d2/dK2), each of which is a fixed linear combination
of the five samples. Differentiating var analytically and pushing it
through those combinations gives d(local vol)/d(sample) for every stencil
point; DeformedSurface applies them to the input surface's node
sensitivities.
"""

from typing import Callable, Optional, Union

import numpy as np

from . import config
from .black_scholes import d1_root_t
from .deformed_surface import DeformedSurface, Stencil
from .surface import Surface, SurfaceMetadata


RateFunction = Callable[[float], float]


def rate_function(rate: Union[RateFunction, float]) -> RateFunction:
    """Accept a callable t -> rate, or a number for a flat rate."""
    if callable(rate):
        return rate
    value = float(rate)
    return lambda t: value


def check_spot(spot: float) -> float:
    spot = float(spot)
    if not (np.isfinite(spot) and spot > 0):
        raise ValueError(f"Spot must be positive and finite, got {spot}")
    return spot


class DupireLocalVolatilityCalculator:
    """
    Builds local volatility surfaces with Dupire's formula.

    Parameters
    ----------
    fd_eps : finite-difference step in both time and strike
             (default: config.FD_EPS)
    small_strike : strikes below this are floored inside ln(S/K) only
                   (default: config.SMALL_STRIKE)
    time_floor : the backward time point of the stencil is never placed
                 before this (default: config.TIME_FLOOR)
    """

    def __init__(self, fd_eps: Optional[float] = None, small_strike: Optional[float] = None,
                 time_floor: Optional[float] = None):
        if fd_eps is None:
            fd_eps = config.FD_EPS
        if small_strike is None:
            small_strike = config.SMALL_STRIKE
        if time_floor is None:
            time_floor = config.TIME_FLOOR
        if not fd_eps > 0:
            raise ValueError(f"fd_eps must be positive, got {fd_eps}")
        self.fd_eps = float(fd_eps)
        self.small_strike = float(small_strike)
        self.time_floor = float(time_floor)
        self.stencil = Stencil.five_point(self.fd_eps, x_min=self.time_floor)

    # ── stencil derivatives ──────────────────────────────────────────────

    def _derivative_weights(self, points: np.ndarray):
        """
        Weights turning the five samples into (d/dT, d/dK, d2/dK2).

        The time difference is central unless the backward point was
        clipped at time_floor, in which case it uses the actual spacing.
        """
        eps = self.fd_eps
        time_step = points[1, 0] - points[2, 0]
        if points[2, 0] == points[0, 0] - eps:
            time_step = 2.0 * eps
        w_t = np.array([0.0, 1.0 / time_step, -1.0 / time_step, 0.0, 0.0])
        w_k = np.array([0.0, 0.0, 0.0, 0.5 / eps, -0.5 / eps])
        w_kk = np.array([-2.0, 0.0, 0.0, 1.0, 1.0]) / (eps * eps)
        return w_t, w_k, w_kk

    def _stencil_estimates(self, points: np.ndarray, s: np.ndarray):
        """Value and first/second derivatives from the five samples."""
        eps = self.fd_eps
        w_t, _, _ = self._derivative_weights(points)
        value = s[0]
        # written as differences so a flat input gives exact zeros
        d_t = (s[1] - s[2]) * w_t[1]
        d_k = (s[3] - s[4]) * (0.5 / eps)
        d_kk = (s[3] + s[4] - 2.0 * value) / (eps * eps)
        return value, d_t, d_k, d_kk

    def _chain(self, points: np.ndarray, g_value: float, g_t: float,
               g_k: float, g_kk: float) -> np.ndarray:
        """Map partials wrt (value, d/dT, d/dK, d2/dK2) onto the five samples."""
        w_t, w_k, w_kk = self._derivative_weights(points)
        coefficients = g_t * w_t + g_k * w_k + g_kk * w_kk
        coefficients[0] += g_value
        return coefficients

    @staticmethod
    def _query(points: np.ndarray):
        time, strike = points[0]
        if time < 0:
            raise ValueError(f"Time must be non-negative, got {time}")
        return time, strike

    # ── implied volatility ───────────────────────────────────────────────

    def local_volatility_from_implied_volatility(
        self,
        implied_volatility_surface: Surface,
        spot: float,
        interest_rate: Union[RateFunction, float],
        dividend_rate: Union[RateFunction, float],
    ) -> DeformedSurface:
        """
        Local volatility surface from an implied volatility surface.

        Parameters
        ----------
        implied_volatility_surface : surface of Black-Scholes vols keyed
            by (time to expiry, strike)
        spot : spot level, positive and finite
        interest_rate : t -> continuously compounded rate, or a flat number
        dividend_rate : t -> continuous dividend yield, or a flat number

        Returns
        -------
        DeformedSurface over (time, strike). Its sensitivity is with
        respect to the implied vol surface's parameters.

        Raises
        ------
        ValueError : if spot is not positive and finite (here), or if a
            query time is negative (at evaluation)
        """
        spot = check_spot(spot)
        r_func = rate_function(interest_rate)
        q_func = rate_function(dividend_rate)

        def terms(points, samples):
            time, strike = self._query(points)
            vol, vol_t, vol_k, vol_kk = self._stencil_estimates(points, samples[0])
            drift = r_func(time) - q_func(time)

            d1_rt = d1_root_t(spot, max(strike, self.small_strike), time,
                              drift, vol)
            d2_rt = d1_rt - vol * time
            k2 = strike * strike

            den = (1.0 + 2.0 * strike * vol_k * d1_rt
                   + k2 * (vol_k * vol_k * d1_rt * d2_rt + time * vol * vol_kk))
            num = vol * vol + 2.0 * vol * time * (vol_t + drift * strike * vol_k)
            var = num / den
            return dict(time=time, strike=strike, vol=vol, vol_t=vol_t, vol_k=vol_k,
                        vol_kk=vol_kk, drift=drift, d1_rt=d1_rt, d2_rt=d2_rt,
                        k2=k2, den=den, var=var, local_vol=np.sqrt(var))

        def value(points, samples):
            return terms(points, samples)["local_vol"]

        def sensitivity(points, samples):
            t = terms(points, samples)
            time, strike, vol = t["time"], t["strike"], t["vol"]
            vol_t, vol_k, vol_kk = t["vol_t"], t["vol_k"], t["vol_kk"]
            drift, d1_rt, d2_rt, k2 = t["drift"], t["d1_rt"], t["d2_rt"], t["k2"]
            den, var = t["den"], t["var"]

            # d(d1 sqrt T)/d sigma; d2 sqrt T differs by -T
            dd1 = -(d1_rt - 0.5 * vol * time) / vol + 0.5 * time
            dd2 = dd1 - time

            dden_dvol = (2.0 * strike * vol_k * dd1
                         + k2 * (vol_k * vol_k * (dd1 * d2_rt + d1_rt * dd2) + time * vol_kk))
            dden_dvol_k = 2.0 * strike * d1_rt + 2.0 * k2 * vol_k * d1_rt * d2_rt
            dden_dvol_kk = k2 * time * vol

            dnum_dvol = 2.0 * vol + 2.0 * time * (vol_t + drift * strike * vol_k)
            dnum_dvol_t = 2.0 * vol * time
            dnum_dvol_k = 2.0 * vol * time * drift * strike

            g_vol = (dnum_dvol - var * dden_dvol) / den
            g_t = dnum_dvol_t / den
            g_k = (dnum_dvol_k - var * dden_dvol_k) / den
            g_kk = -var * dden_dvol_kk / den

            # d sqrt(var) = d var / (2 sqrt(var))
            coefficients = self._chain(points, g_vol, g_t, g_k, g_kk) / (2.0 * t["local_vol"])
            return coefficients[np.newaxis, :]

        metadata = SurfaceMetadata(
            f"LocalVol({implied_volatility_surface.name})",
            z_value_type="LocalVolatility",
        )
        return DeformedSurface(metadata, implied_volatility_surface, self.stencil,
                               value, sensitivity)

    # ── price ────────────────────────────────────────────────────────────

    def local_volatility_from_price(
        self,
        price_surface: Surface,
        spot: float,
        interest_rate: Union[RateFunction, float],
        dividend_rate: Union[RateFunction, float],
    ) -> DeformedSurface:
        """
        Local volatility surface from a present-value call price surface.

        Same stencil and sensitivity treatment as the implied vol variant.
        Deep out-of-the-money strikes, where prices and their second
        strike derivative are tiny, are noisy: the result is only as good
        as P_KK there.

        Raises
        ------
        ValueError : if spot is not positive and finite (here), or if a
            query strike is not positive or a query time negative (at
            evaluation)
        """
        check_spot(spot)
        r_func = rate_function(interest_rate)
        q_func = rate_function(dividend_rate)

        def terms(points, samples):
            time, strike = self._query(points)
            if not strike > 0:
                raise ValueError(f"Strike must be positive, got {strike}")
            price, price_t, price_k, price_kk = self._stencil_estimates(points, samples[0])
            r, q = r_func(time), q_func(time)
            num = 2.0 * (price_t + (r - q) * strike * price_k + q * price)
            den = strike * strike * price_kk
            var = num / den
            return dict(strike=strike, r=r, q=q, den=den, var=var, local_vol=np.sqrt(var))

        def value(points, samples):
            return terms(points, samples)["local_vol"]

        def sensitivity(points, samples):
            t = terms(points, samples)
            strike, r, q, den, var = t["strike"], t["r"], t["q"], t["den"], t["var"]
            g_price = 2.0 * q / den
            g_t = 2.0 / den
            g_k = 2.0 * (r - q) * strike / den
            g_kk = -var * strike * strike / den
            coefficients = self._chain(points, g_price, g_t, g_k, g_kk) / (2.0 * t["local_vol"])
            return coefficients[np.newaxis, :]

        metadata = SurfaceMetadata(
            f"LocalVol({price_surface.name})",
            z_value_type="LocalVolatility",
        )
        return DeformedSurface(metadata, price_surface, self.stencil, value, sensitivity)
