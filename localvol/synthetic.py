"""
Synthetic input surfaces.

Two sources, both offline and deterministic:

    1. The reference grid: 3 strikes x 4 expiries of implied vols and
       present-value call prices (see config.REFERENCE_*). Small enough to
       check by hand, used throughout the tests.
    2. A reduced-form SVI smile on a full (T, K) grid, tuned to look like
       an equity index: negative skew, steeper at short maturities, wings
       lifting at all maturities, term structure flattening.

No noise is added to the SVI grid. Dupire takes a second strike
derivative of whatever it is given, and micro-noise on the nodes turns
straight into garbage (or negative variance) in the local vol.

References:
    Gatheral, J. (2004). A parsimonious arbitrage-free implied volatility
    parameterization with application to the valuation of volatility derivatives.
"""

from typing import Optional, Tuple

import numpy as np
import pandas as pd

from . import config
from .surface import InterpolatedNodalSurface
from .surface_builder import nodal_surface_from_frame


def reference_frame() -> pd.DataFrame:
    """
    The reference nodes as a DataFrame [T, strike, iv, price].

    Node order is strike-major: all expiries for the first strike, then
    the next strike.
    """
    times = np.tile(config.REFERENCE_TIMES, len(config.REFERENCE_STRIKES))
    strikes = np.repeat(config.REFERENCE_STRIKES, len(config.REFERENCE_TIMES))
    return pd.DataFrame({
        "T": times,
        "strike": strikes,
        "iv": config.REFERENCE_VOLS,
        "price": config.REFERENCE_PRICES,
    })


def reference_surfaces(interpolator=None) -> Tuple[InterpolatedNodalSurface, InterpolatedNodalSurface]:
    """
    Implied vol and call price surfaces on the reference nodes.

    Returns
    -------
    (vol_surface, price_surface), named "TestVol" and "TestPrice", sharing
    one interpolator (default: natural spline both ways)
    """
    df = reference_frame()
    vol_surface = nodal_surface_from_frame(df, "iv", name="TestVol", interpolator=interpolator)
    price_surface = nodal_surface_from_frame(df, "price", name="TestPrice", interpolator=interpolator)
    return vol_surface, price_surface


def generate_svi_grid(
    S: Optional[float] = None,
    maturities: Optional[np.ndarray] = None,
    strikes: Optional[np.ndarray] = None,
) -> Tuple[pd.DataFrame, float]:
    """
    Implied vols from a reduced-form SVI smile on a full (T, K) grid.

    Each maturity gets:

        1. ATM level:    decays with maturity (term structure)
        2. Skew:         steeper at short maturities
        3. Curvature:    wings lift at all maturities

    and iv = atm + skew * m + smile * m^2 with m = ln(K/S). Every strike
    appears at every maturity, which is what a nodal surface needs.

    Parameters
    ----------
    S : spot price (default: config.SPOT)
    maturities : T values in years (default: config.SVI_MATURITIES)
    strikes : absolute strikes (default: config.SVI_N_STRIKES points across
              +/- config.MONEYNESS_BOUND in log-moneyness)

    Returns
    -------
    df : DataFrame with columns [strike, T, iv, moneyness, log_moneyness]
    S  : spot price used
    """
    if S is None:
        S = config.SPOT
    if maturities is None:
        maturities = np.array(config.SVI_MATURITIES)
    if strikes is None:
        strikes = S * np.exp(np.linspace(-config.MONEYNESS_BOUND, config.MONEYNESS_BOUND,
                                         config.SVI_N_STRIKES))

    rows = []
    for T in maturities:
        atm_vol = config.SVI_ATM_BASE + config.SVI_ATM_DECAY * np.exp(-config.SVI_ATM_LAMBDA * T)
        skew_coeff = config.SVI_SKEW_SHORT * np.exp(-config.SVI_SKEW_LAMBDA * T) + config.SVI_SKEW_BASE
        smile_coeff = config.SVI_SMILE_SHORT * np.exp(-config.SVI_SMILE_LAMBDA * T) + config.SVI_SMILE_BASE

        for K in strikes:
            m = np.log(K / S)
            iv = np.clip(atm_vol + skew_coeff * m + smile_coeff * m**2,
                         config.MIN_IV, config.MAX_IV)
            rows.append({
                "strike": K,
                "T": T,
                "iv": iv,
                "moneyness": K / S,
                "log_moneyness": m,
            })

    return pd.DataFrame(rows), S


def svi_surface(S: Optional[float] = None, interpolator=None) -> Tuple[InterpolatedNodalSurface, float]:
    """generate_svi_grid, interpolated."""
    df, S = generate_svi_grid(S)
    return nodal_surface_from_frame(df, "iv", name="SVI", interpolator=interpolator), S
