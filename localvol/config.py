"""
Global configuration for the local volatility pipeline.

Keeps all magic numbers in one place. Override via CLI args in main.py
or by editing this file directly for persistent changes.
"""

from pathlib import Path


# ── paths ────────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "output"

# create output dir if missing (first run)
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)


# ── numerics ─────────────────────────────────────────────────────────────
FD_EPS = 1.0e-5                 # Dupire stencil step, same for T and K
SMALL_STRIKE = 1.0e-14          # strike floor inside ln(S/K)
TIME_FLOOR = 0.0                # stencil never samples before this time


# ── interpolation ────────────────────────────────────────────────────────
DEFAULT_INTERPOLATOR = "natural_spline"   # "natural_spline" or "linear"
DEFAULT_EXTRAPOLATOR = "interpolator"     # "interpolator", "linear" or "flat"


# ── market parameters (CLI defaults) ────────────────────────────────────
SPOT = 1.40
RISK_FREE_RATE = 0.05           # flat, continuous compounding
DIVIDEND_YIELD = 0.01           # flat continuous yield


# ── reference grid ───────────────────────────────────────────────────────
# 3 strikes x 4 expiries, node order is strike-major
REFERENCE_TIMES = (0.25, 0.50, 0.75, 1.00)
REFERENCE_STRIKES = (0.8, 1.4, 2.0)
REFERENCE_VOLS = (
    0.21, 0.17, 0.15, 0.14,      # K = 0.8
    0.17, 0.15, 0.14, 0.13,      # K = 1.4
    0.185, 0.16, 0.14, 0.13,     # K = 2.0
)
# call prices on the same nodes; the price-based checks pair them with r=3%, q=2%
REFERENCE_PRICES = (
    0.59600, 0.59201, 0.58812, 0.58413,
    0.04868, 0.06138, 0.07063, 0.07626,
    2.3012e-6, 4.7919e-5, 1.1365e-4, 2.4524e-4,
)


# ── synthetic smile (reduced-form SVI) ──────────────────────────────────
SVI_ATM_BASE = 0.18             # base ATM vol level
SVI_ATM_DECAY = 0.03            # how much ATM vol drops with maturity
SVI_ATM_LAMBDA = 1.5            # decay rate parameter
SVI_SKEW_BASE = -0.04           # long-run skew coefficient
SVI_SKEW_SHORT = -0.12          # additional skew at short maturities
SVI_SKEW_LAMBDA = 0.8           # skew decay rate
SVI_SMILE_BASE = 0.10           # long-run smile/curvature coefficient
SVI_SMILE_SHORT = 0.25          # additional curvature at short maturities
SVI_SMILE_LAMBDA = 1.0          # curvature decay rate
SVI_MATURITIES = (0.08, 0.17, 0.25, 0.50, 0.75, 1.0, 1.5, 2.0)
MONEYNESS_BOUND = 0.25          # |log(K/S)| grid half-width
SVI_N_STRIKES = 11              # strikes per expiry
MIN_IV = 0.01                   # floor IV at 1%
MAX_IV = 2.0                    # cap IV at 200%


# ── output grid ──────────────────────────────────────────────────────────
GRID_K_POINTS = 60              # resolution along strike axis
GRID_T_POINTS = 40              # resolution along maturity axis
PROBE_TIME = 0.6                # sensitivity report point
PROBE_STRIKE_MONEYNESS = 1.0    # probe strike = spot * this


# ── visualization ────────────────────────────────────────────────────────
DARK_BG = "#0c0c16"
GRID_COLOR_ALPHA = 0.12
DPI = 200                       # matplotlib export resolution
FIG_WIDTH_3D = 14
FIG_HEIGHT_3D = 9
FIG_WIDTH_2D = 12
FIG_HEIGHT_2D = 6
COLORMAP = "viridis"

# camera angles for 3D surface (matplotlib)
ELEV = 25
AZIM = -55

# plotly camera
PLOTLY_CAMERA = dict(eye=dict(x=1.85, y=-1.55, z=0.85))

# smile line colors, one per maturity
SMILE_COLORS = ["#ff6b6b", "#ffd93d", "#6bcb77", "#4d96ff", "#b388ff"]

# which maturities to show on the 2D implied-vs-local chart
SMILE_TARGET_MATURITIES = [0.25, 0.50, 1.0, 1.5]
