"""
Black-Scholes-Merton closed forms used around the local vol calculator.

Two jobs here:
    1. Turn implied vols into present-value call prices (and back), so
       the price-based Dupire formula can be fed and checked.
    2. Provide the strike/time derivatives of the call price in closed
       form. Plugging those into Dupire's price formula must give back
       the flat vol exactly, which makes them a good yardstick for the
       finite-difference version.

d1 and d2 are also exposed pre-multiplied by sqrt(T). In that form they
stay finite at T = 0, which is what the local vol formula needs.

References:
    Black, F. & Scholes, M. (1973). The Pricing of Options and Corporate Liabilities.
    Dupire, B. (1994). Pricing with a Smile. Risk 7(1).
"""

import numpy as np
from scipy.stats import norm
from scipy.optimize import brentq


# ════════════════════════════════════════════════════════════════════════
#  d1 / d2
# ════════════════════════════════════════════════════════════════════════

def d1_root_t(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """
    d1 * sqrt(T) = (ln(S/K) + (r - q) T) / sigma + sigma T / 2.

    Well defined at T = 0 as long as sigma > 0 and K > 0.
    """
    return (np.log(S / K) + (r - q) * T) / sigma + 0.5 * sigma * T


def d2_root_t(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """d2 * sqrt(T) = d1 * sqrt(T) - sigma T."""
    return d1_root_t(S, K, T, r, sigma, q) - sigma * T


def d1(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """
    Compute d1 in the Black-Scholes formula.

    Parameters
    ----------
    S : spot price
    K : strike price
    T : time to expiry in years
    r : risk-free rate (annualized, continuous compounding)
    sigma : volatility (annualized)
    q : continuous dividend yield (default 0)

    Returns
    -------
    float : d1, or 0 when T or sigma is not positive
    """
    if T <= 0 or sigma <= 0:
        return 0.0
    return d1_root_t(S, K, T, r, sigma, q) / np.sqrt(T)


def d2(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """Compute d2 = d1 - sigma * sqrt(T)."""
    return d1(S, K, T, r, sigma, q) - sigma * np.sqrt(max(T, 0.0))


# ════════════════════════════════════════════════════════════════════════
#  PRICES
# ════════════════════════════════════════════════════════════════════════

def call_price(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """
    Present-value European call under Black-Scholes-Merton.

    C = S e^{-qT} N(d1) - K e^{-rT} N(d2)

    This is the price convention the price-based Dupire formula expects.
    """
    if T <= 0:
        return max(S - K, 0.0)
    if sigma <= 0:
        return max(S * np.exp(-q * T) - K * np.exp(-r * T), 0.0)

    _d1 = d1(S, K, T, r, sigma, q)
    _d2 = _d1 - sigma * np.sqrt(T)
    return S * np.exp(-q * T) * norm.cdf(_d1) - K * np.exp(-r * T) * norm.cdf(_d2)


def put_price(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """Present-value European put, K e^{-rT} N(-d2) - S e^{-qT} N(-d1)."""
    if T <= 0:
        return max(K - S, 0.0)
    if sigma <= 0:
        return max(K * np.exp(-r * T) - S * np.exp(-q * T), 0.0)

    _d1 = d1(S, K, T, r, sigma, q)
    _d2 = _d1 - sigma * np.sqrt(T)
    return K * np.exp(-r * T) * norm.cdf(-_d2) - S * np.exp(-q * T) * norm.cdf(-_d1)


def bs_price(S: float, K: float, T: float, r: float, sigma: float,
             option_type: str = "call", q: float = 0.0) -> float:
    """Dispatch to call_price or put_price based on option_type."""
    if option_type.lower() in ("c", "call"):
        return call_price(S, K, T, r, sigma, q)
    elif option_type.lower() in ("p", "put"):
        return put_price(S, K, T, r, sigma, q)
    else:
        raise ValueError(f"Unknown option_type: {option_type}. Use 'call' or 'put'.")


# ════════════════════════════════════════════════════════════════════════
#  CALL DERIVATIVES
# ════════════════════════════════════════════════════════════════════════

def vega(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """
    dC/dsigma, per unit (100%) of vol. Same for calls and puts.

    Used as the chain-rule factor when a price surface is derived
    from an implied vol surface.
    """
    if T <= 0 or sigma <= 0 or S <= 0:
        return 0.0
    _d1 = d1(S, K, T, r, sigma, q)
    return S * np.exp(-q * T) * norm.pdf(_d1) * np.sqrt(T)


def call_dual_delta(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """dC/dK = -e^{-rT} N(d2)."""
    return -np.exp(-r * T) * norm.cdf(d2(S, K, T, r, sigma, q))


def call_dual_gamma(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """d2C/dK2 = e^{-rT} phi(d2) / (K sigma sqrt(T))."""
    _d2 = d2(S, K, T, r, sigma, q)
    return np.exp(-r * T) * norm.pdf(_d2) / (K * sigma * np.sqrt(T))


def call_time_derivative(S: float, K: float, T: float, r: float, sigma: float, q: float = 0.0) -> float:
    """
    dC/dT at fixed strike (the negative of the usual theta).

    Satisfies the forward equation
        dC/dT = sigma^2 K^2 / 2 * d2C/dK2 - (r - q) K dC/dK - q C
    which is exactly what Dupire's price formula inverts.
    """
    _d1 = d1(S, K, T, r, sigma, q)
    _d2 = _d1 - sigma * np.sqrt(T)
    return (S * np.exp(-q * T) * norm.pdf(_d1) * sigma / (2.0 * np.sqrt(T))
            - q * S * np.exp(-q * T) * norm.cdf(_d1)
            + r * K * np.exp(-r * T) * norm.cdf(_d2))


# ════════════════════════════════════════════════════════════════════════
#  IMPLIED VOLATILITY
# ════════════════════════════════════════════════════════════════════════

def implied_vol(
    market_price: float,
    S: float,
    K: float,
    T: float,
    r: float,
    option_type: str = "call",
    q: float = 0.0,
    vol_lower: float = 1e-4,
    vol_upper: float = 5.0,
    tol: float = 1e-12,
) -> float:
    """
    Invert Black-Scholes with Brent's method.

    Parameters
    ----------
    market_price : present-value option price
    S, K, T, r, q : as in call_price
    option_type : "call" or "put"
    vol_lower, vol_upper : search bracket
    tol : solver tolerance on sigma

    Returns
    -------
    float : implied volatility, or NaN if the price is outside the
            Black-Scholes range or the inputs are degenerate
    """
    if market_price <= 0 or T <= 0 or S <= 0 or K <= 0:
        return np.nan

    if option_type.lower() in ("c", "call"):
        intrinsic = max(S * np.exp(-q * T) - K * np.exp(-r * T), 0.0)
    else:
        intrinsic = max(K * np.exp(-r * T) - S * np.exp(-q * T), 0.0)

    if market_price < intrinsic:
        return np.nan

    def objective(sigma):
        return bs_price(S, K, T, r, sigma, option_type, q) - market_price

    try:
        return brentq(objective, vol_lower, vol_upper, xtol=tol)
    except ValueError:
        # no sign change on the bracket
        return np.nan
