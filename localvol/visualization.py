"""
Visualization: local vol surfaces and implied-vs-local smiles.

Two backends:
    - matplotlib: static PNGs
    - plotly: interactive HTML with rotation, zoom, hover tooltips

Same dark theme as the rest of the output (see config).
"""

from typing import List, Optional

import numpy as np
import pandas as pd

import matplotlib
matplotlib.use("Agg")  # non-interactive backend for server/CI environments
import matplotlib.pyplot as plt
from mpl_toolkits.mplot3d import Axes3D  # noqa: F401 (needed for 3d projection)

import plotly.graph_objects as go

from . import config


def _style_2d(fig, ax):
    fig.patch.set_facecolor(config.DARK_BG)
    ax.set_facecolor(config.DARK_BG)
    ax.tick_params(colors="white", labelsize=10)
    ax.grid(True, alpha=config.GRID_COLOR_ALPHA, color="white")
    for spine in ax.spines.values():
        spine.set_color("#333355")


# ════════════════════════════════════════════════════════════════════════
#  MATPLOTLIB: 3D SURFACE (static PNG)
# ════════════════════════════════════════════════════════════════════════

def plot_surface_matplotlib(
    K_mesh: np.ndarray,
    T_mesh: np.ndarray,
    Z_mesh: np.ndarray,
    title: str = "Local Volatility Surface",
    z_label: str = "Local Volatility (σ) %",
    output_path: Optional[str] = None,
) -> None:
    """
    Render a (K, T) volatility surface as a PNG.

    Parameters
    ----------
    K_mesh, T_mesh, Z_mesh : 2D arrays from surface_builder.evaluate_on_grid
    title : chart title
    z_label : z-axis label
    output_path : where to save (default: config.OUTPUT_DIR / "local_vol_3d.png")
    """
    if output_path is None:
        output_path = str(config.OUTPUT_DIR / "local_vol_3d.png")

    fig = plt.figure(figsize=(config.FIG_WIDTH_3D, config.FIG_HEIGHT_3D))
    ax = fig.add_subplot(111, projection="3d")

    # NaN (negative local variance) cells are left as holes
    surf = ax.plot_surface(
        K_mesh, T_mesh, Z_mesh * 100,
        cmap=matplotlib.colormaps[config.COLORMAP],
        edgecolor="none",
        alpha=0.95,
        rstride=1,
        cstride=1,
        antialiased=True,
    )

    ax.set_xlabel("Strike (K)", fontsize=13, labelpad=12, color="white")
    ax.set_ylabel("Time to Maturity (T)", fontsize=13, labelpad=12, color="white")
    ax.set_zlabel(z_label, fontsize=13, labelpad=12, color="white")
    ax.set_title(title, fontsize=18, fontweight="bold", color="white", pad=20)

    ax.set_facecolor(config.DARK_BG)
    fig.patch.set_facecolor(config.DARK_BG)
    for axis in ["x", "y", "z"]:
        ax.tick_params(axis=axis, colors="white", labelsize=9)
    for pane in (ax.xaxis.pane, ax.yaxis.pane, ax.zaxis.pane):
        pane.fill = False
        pane.set_edgecolor("#333355")
    ax.grid(True, alpha=0.15, color="white")

    ax.view_init(elev=config.ELEV, azim=config.AZIM)

    cbar = fig.colorbar(surf, ax=ax, shrink=0.55, aspect=15, pad=0.08)
    cbar.set_label("Vol (%)", fontsize=11, color="white")
    cbar.ax.tick_params(colors="white", labelsize=9)

    plt.tight_layout()
    plt.savefig(output_path, dpi=config.DPI, bbox_inches="tight",
                facecolor=config.DARK_BG, edgecolor="none")
    plt.close()


# ════════════════════════════════════════════════════════════════════════
#  MATPLOTLIB: IMPLIED VS LOCAL (static PNG)
# ════════════════════════════════════════════════════════════════════════

def plot_smile_matplotlib(
    slices: List[pd.DataFrame],
    S: float,
    title: str = "Implied vs Local Volatility",
    output_path: Optional[str] = None,
) -> None:
    """
    One color per maturity: implied vol solid, local vol dashed.

    Parameters
    ----------
    slices : DataFrames from surface_builder.compare_local_to_implied
    S : spot price (ATM marker)
    title : chart title
    output_path : PNG save path (default: config.OUTPUT_DIR / "local_vs_implied.png")
    """
    if output_path is None:
        output_path = str(config.OUTPUT_DIR / "local_vs_implied.png")

    fig, ax = plt.subplots(figsize=(config.FIG_WIDTH_2D, config.FIG_HEIGHT_2D))
    _style_2d(fig, ax)

    for i, df in enumerate(slices):
        color = config.SMILE_COLORS[i % len(config.SMILE_COLORS)]
        T_val = df["T"].iloc[0]
        ax.plot(df["strike"], df["implied_vol"] * 100, color=color,
                linewidth=2.2, label=f"implied T={T_val:.2f}y")
        ax.plot(df["strike"], df["local_vol"] * 100, color=color,
                linewidth=1.6, linestyle="--", label=f"local T={T_val:.2f}y")

    ax.axvline(S, color="white", alpha=0.35, linestyle="--", linewidth=1)

    ax.set_xlabel("Strike (K)", fontsize=13, color="white")
    ax.set_ylabel("Volatility (σ) %", fontsize=13, color="white")
    ax.set_title(title, fontsize=17, fontweight="bold", color="white")

    leg = ax.legend(loc="upper right", fontsize=9, facecolor="#191930",
                    edgecolor="#ffffff30", labelcolor="white", ncol=2)
    leg.get_frame().set_alpha(0.9)

    plt.tight_layout()
    plt.savefig(output_path, dpi=config.DPI, bbox_inches="tight",
                facecolor=config.DARK_BG, edgecolor="none")
    plt.close()


# ════════════════════════════════════════════════════════════════════════
#  PLOTLY: 3D SURFACE (interactive HTML)
# ════════════════════════════════════════════════════════════════════════

def plot_surface_plotly(
    K_grid: np.ndarray,
    T_grid: np.ndarray,
    Z_mesh: np.ndarray,
    title: str = "Local Volatility Surface",
    output_path: Optional[str] = None,
) -> None:
    """Interactive 3D surface as HTML (default: config.OUTPUT_DIR / "local_vol_3d.html")."""
    if output_path is None:
        output_path = str(config.OUTPUT_DIR / "local_vol_3d.html")

    axis_style = dict(
        tickfont=dict(size=10, color="#ccc"),
        gridcolor=f"rgba(200,200,200,{config.GRID_COLOR_ALPHA})",
        backgroundcolor=config.DARK_BG,
    )

    fig = go.Figure(data=[go.Surface(
        x=K_grid, y=T_grid, z=Z_mesh,
        colorscale="Viridis",
        showscale=True,
        colorbar=dict(
            title=dict(text="σ", font=dict(size=13, color="white")),
            thickness=18, len=0.55, tickformat=".0%",
            tickfont=dict(color="white", size=11),
        ),
        opacity=0.97,
        hovertemplate="Strike: %{x:.3f}<br>T: %{y:.3f}y<br>σ: %{z:.2%}<extra></extra>",
    )])

    fig.update_layout(
        title=dict(text=f"<b>{title}</b>", font=dict(size=22, color="white"), x=0.5),
        scene=dict(
            xaxis=dict(title=dict(text="Strike (K)", font=dict(size=14, color="#ddd")), **axis_style),
            yaxis=dict(title=dict(text="Time to Maturity (T)", font=dict(size=14, color="#ddd")), **axis_style),
            zaxis=dict(title=dict(text="Volatility (σ)", font=dict(size=14, color="#ddd")),
                       tickformat=".0%", **axis_style),
            camera=config.PLOTLY_CAMERA,
            bgcolor=config.DARK_BG,
        ),
        paper_bgcolor=config.DARK_BG,
        font=dict(color="white"),
        width=1100, height=750,
        margin=dict(l=10, r=10, t=60, b=10),
    )

    fig.write_html(output_path)


# ════════════════════════════════════════════════════════════════════════
#  PLOTLY: IMPLIED VS LOCAL (interactive HTML)
# ════════════════════════════════════════════════════════════════════════

def plot_smile_plotly(
    slices: List[pd.DataFrame],
    S: float,
    title: str = "Implied vs Local Volatility",
    output_path: Optional[str] = None,
) -> None:
    """Interactive version of plot_smile_matplotlib."""
    if output_path is None:
        output_path = str(config.OUTPUT_DIR / "local_vs_implied.html")

    fig = go.Figure()
    for i, df in enumerate(slices):
        color = config.SMILE_COLORS[i % len(config.SMILE_COLORS)]
        T_val = df["T"].iloc[0]
        fig.add_trace(go.Scatter(
            x=df["strike"], y=df["implied_vol"], mode="lines",
            name=f"implied T={T_val:.2f}y", line=dict(color=color, width=2.5),
            hovertemplate="K=%{x:.3f}  IV=%{y:.2%}<extra></extra>",
        ))
        fig.add_trace(go.Scatter(
            x=df["strike"], y=df["local_vol"], mode="lines",
            name=f"local T={T_val:.2f}y", line=dict(color=color, width=1.8, dash="dash"),
            hovertemplate="K=%{x:.3f}  LV=%{y:.2%}<extra></extra>",
        ))

    fig.add_vline(x=S, line_dash="dash", line_color="rgba(255,255,255,0.4)")

    fig.update_layout(
        title=dict(text=f"<b>{title}</b>", font=dict(size=20, color="white"), x=0.5),
        xaxis=dict(title=dict(text="Strike (K)", font=dict(size=14, color="#ddd")),
                   gridcolor="rgba(200,200,200,0.1)"),
        yaxis=dict(title=dict(text="Volatility (σ)", font=dict(size=14, color="#ddd")),
                   tickformat=".0%", gridcolor="rgba(200,200,200,0.1)"),
        plot_bgcolor=config.DARK_BG,
        paper_bgcolor=config.DARK_BG,
        font=dict(color="white"),
        width=1000, height=550,
        margin=dict(l=60, r=30, t=60, b=50),
    )

    fig.write_html(output_path)
