"""
Surface construction helpers around the core surface types.

    - nodal_surface_from_frame: tabular (T, strike, value) nodes to an
      InterpolatedNodalSurface
    - call_price_surface: implied vols to present-value call prices, as a
      DeformedSurface (no new grid)
    - implied_vol_frame: the reverse, node by node
    - evaluate_on_grid / compare_local_to_implied / compute_surface_statistics:
      regular grids and summaries for the CLI and the charts
"""

from typing import Optional, Tuple

import numpy as np
import pandas as pd

from . import config
from .black_scholes import call_price, implied_vol, vega
from .deformed_surface import DeformedSurface, Stencil
from .interpolation import GridInterpolator2D
from .local_volatility import check_spot, rate_function
from .surface import InterpolatedNodalSurface, Surface, SurfaceMetadata


def nodal_surface_from_frame(
    df: pd.DataFrame,
    value_column: str = "iv",
    name: Optional[str] = None,
    interpolator: Optional[GridInterpolator2D] = None,
    time_column: str = "T",
    strike_column: str = "strike",
) -> InterpolatedNodalSurface:
    """
    Build an interpolated (time, strike) surface from a DataFrame.

    Parameters
    ----------
    df : DataFrame with one row per node
    value_column : column holding the z-values (default "iv")
    name : surface name (default: value_column)
    interpolator : GridInterpolator2D (default: from config)
    time_column, strike_column : coordinate columns

    Raises
    ------
    ValueError : if a column is missing or the nodes do not form a grid
    """
    missing = [c for c in (time_column, strike_column, value_column) if c not in df.columns]
    if missing:
        raise ValueError(f"Missing columns: {missing}")
    if name is None:
        name = value_column
    return InterpolatedNodalSurface(
        SurfaceMetadata(name),
        df[time_column].to_numpy(dtype=float),
        df[strike_column].to_numpy(dtype=float),
        df[value_column].to_numpy(dtype=float),
        interpolator,
    )


def call_price_surface(
    implied_volatility_surface: Surface,
    spot: float,
    interest_rate,
    dividend_rate,
) -> DeformedSurface:
    """
    Present-value call prices C(T, K) implied by a vol surface.

    The price at (T, K) is the Black-Scholes call with the vol read off
    the input surface at the same point; its sensitivity is vega times
    the vol's node sensitivity.
    """
    spot = check_spot(spot)
    r_func = rate_function(interest_rate)
    q_func = rate_function(dividend_rate)

    def value(points, samples):
        time, strike = points[0]
        return call_price(spot, strike, time, r_func(time), samples[0, 0], q_func(time))

    def sensitivity(points, samples):
        time, strike = points[0]
        return [[vega(spot, strike, time, r_func(time), samples[0, 0], q_func(time))]]

    metadata = SurfaceMetadata(
        f"CallPrice({implied_volatility_surface.name})",
        z_value_type="Price",
    )
    return DeformedSurface(metadata, implied_volatility_surface, Stencil.centre(),
                           value, sensitivity)


def implied_vol_frame(
    df: pd.DataFrame,
    spot: float,
    interest_rate,
    dividend_rate,
    price_column: str = "price",
) -> pd.DataFrame:
    """
    Add an "iv" column by inverting present-value call prices node by node.

    Nodes whose price cannot be inverted get NaN.
    """
    spot = check_spot(spot)
    r_func = rate_function(interest_rate)
    q_func = rate_function(dividend_rate)
    out = df.copy()
    out["iv"] = [
        implied_vol(p, spot, K, T, r_func(T), "call", q_func(T))
        for T, K, p in zip(df["T"], df["strike"], df[price_column])
    ]
    return out


def evaluate_on_grid(
    surface: Surface,
    K_grid: np.ndarray,
    T_grid: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Evaluate a (time, strike) surface on a regular grid.

    Returns
    -------
    K_mesh, T_mesh : 2D meshgrids (len(T_grid) x len(K_grid))
    Z_mesh : surface values on the same mesh
    """
    K_mesh, T_mesh = np.meshgrid(K_grid, T_grid)
    Z_mesh = surface.evaluate_grid(T_grid, K_grid).T
    return K_mesh, T_mesh, Z_mesh


def default_grid(surface, n_k: Optional[int] = None, n_t: Optional[int] = None):
    """
    Regular (K, T) axes covering a nodal surface's node envelope.

    Times start at the first node rather than zero; the short end of a
    local vol surface extrapolated from sparse expiries is not worth
    plotting.
    """
    if n_k is None:
        n_k = config.GRID_K_POINTS
    if n_t is None:
        n_t = config.GRID_T_POINTS
    K_grid = np.linspace(surface.y_values.min(), surface.y_values.max(), n_k)
    T_grid = np.linspace(surface.x_values.min(), surface.x_values.max(), n_t)
    return K_grid, T_grid


def compare_local_to_implied(
    implied_volatility_surface: Surface,
    local_volatility_surface: Surface,
    strikes: np.ndarray,
    T: float,
) -> pd.DataFrame:
    """Implied vs local vol along one expiry."""
    iv = np.array([implied_volatility_surface.evaluate(T, K) for K in strikes])
    lv = np.array([local_volatility_surface.evaluate(T, K) for K in strikes])
    return pd.DataFrame({
        "strike": strikes,
        "T": T,
        "implied_vol": iv,
        "local_vol": lv,
        "ratio": lv / iv,
    })


def compute_surface_statistics(
    K_grid: np.ndarray,
    T_grid: np.ndarray,
    Z_mesh: np.ndarray,
) -> dict:
    """
    Summary statistics for a surface sampled on a grid.

    Returns
    -------
    dict with keys:
        n_points     : number of grid points
        strike_range : (min, max)
        T_range      : (min, max)
        z_range      : (min, max) over finite values
        z_mean       : mean over finite values
        n_invalid    : count of NaN/inf (negative local variance)
    """
    finite = np.isfinite(Z_mesh)
    stats = {
        "n_points": Z_mesh.size,
        "strike_range": (float(np.min(K_grid)), float(np.max(K_grid))),
        "T_range": (float(np.min(T_grid)), float(np.max(T_grid))),
        "n_invalid": int((~finite).sum()),
    }
    if finite.any():
        stats["z_range"] = (float(Z_mesh[finite].min()), float(Z_mesh[finite].max()))
        stats["z_mean"] = float(Z_mesh[finite].mean())
    else:
        stats["z_range"] = (np.nan, np.nan)
        stats["z_mean"] = np.nan
    return stats
