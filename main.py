#!/usr/bin/env python3
"""
main.py: Run the local volatility pipeline.

Usage:
    python main.py                                # SVI smile, from implied vol
    python main.py --source reference --from-price --rate 0.03 --div 0.02
"""

import argparse
import sys
import time
import numpy as np
import pandas as pd

from localvol import config
from localvol.local_volatility import DupireLocalVolatilityCalculator
from localvol.surface_builder import (
    call_price_surface, compare_local_to_implied, compute_surface_statistics,
    default_grid, evaluate_on_grid,
)
from localvol.synthetic import reference_surfaces, svi_surface
from localvol.visualization import (
    plot_surface_matplotlib, plot_smile_matplotlib,
    plot_surface_plotly, plot_smile_plotly,
)


def parse_args():
    p = argparse.ArgumentParser(description="Build Dupire local volatility surfaces.")
    p.add_argument("--source", choices=["svi", "reference"], default="svi")
    p.add_argument("--spot", type=float, default=config.SPOT)
    p.add_argument("--rate", type=float, default=config.RISK_FREE_RATE)
    p.add_argument("--div", type=float, default=config.DIVIDEND_YIELD)
    p.add_argument("--eps", type=float, default=config.FD_EPS)
    p.add_argument("--from-price", action="store_true",
                   help="derive local vol from call prices instead of implied vols")
    p.add_argument("--no-html", action="store_true")
    return p.parse_args()


def main():
    args = parse_args()

    print(f"\n{'='*60}")
    print(f"  Dupire Local Volatility")
    print(f"  Source: {args.source}  |  Input: {'price' if args.from_price else 'implied vol'}")
    print(f"{'='*60}\n")

    t0 = time.time()
    try:
        # step 1: input surface
        print("[1/5] Building input surface...")
        if args.source == "svi":
            iv_surface, S = svi_surface(args.spot)
        else:
            iv_surface, _ = reference_surfaces()
            S = args.spot
        print(f"       Spot: {S:.4f}  r={args.rate:.2%}  q={args.div:.2%}")
        print(f"       Nodes: {iv_surface.parameter_count}")
        print(f"       IV range: {iv_surface.z_values.min():.1%} - {iv_surface.z_values.max():.1%}")

        # step 2: local vol
        print("\n[2/5] Deriving local volatility...")
        calc = DupireLocalVolatilityCalculator(fd_eps=args.eps)
        if args.from_price:
            prices = call_price_surface(iv_surface, S, args.rate, args.div)
            lv_surface = calc.local_volatility_from_price(prices, S, args.rate, args.div)
        else:
            lv_surface = calc.local_volatility_from_implied_volatility(
                iv_surface, S, args.rate, args.div)
        print(f"       {lv_surface!r}")

        K_grid, T_grid = default_grid(iv_surface)
        K_mesh, T_mesh, LV_mesh = evaluate_on_grid(lv_surface, K_grid, T_grid)
        stats = compute_surface_statistics(K_grid, T_grid, LV_mesh)
        print(f"       Grid: {len(K_grid)} x {len(T_grid)}")
        print(f"       Local vol range: {stats['z_range'][0]:.1%} - {stats['z_range'][1]:.1%}")
        print(f"       Local vol mean: {stats['z_mean']:.1%}")
        if stats["n_invalid"]:
            print(f"       WARNING: {stats['n_invalid']} grid points with negative local variance")

        # step 3: risk at the probe point
        probe_T = config.PROBE_TIME
        probe_K = S * config.PROBE_STRIKE_MONEYNESS
        print(f"\n[3/5] Node sensitivity at T={probe_T}, K={probe_K:.4f}...")
        sensi = lv_surface.sensitivity(probe_T, probe_K).to_series()
        top = sensi.reindex(sensi.abs().sort_values(ascending=False).index).head(5)
        for label, value in top.items():
            print(f"       {label:>20s}  {value:+.6f}")
        print(f"       Total (parallel shift): {sensi.sum():+.6f}")
    except ValueError as e:
        print(f"\n  ERROR: {e}")
        sys.exit(1)

    # step 4: static charts (matplotlib)
    print("\n[4/5] Generating static charts...")
    targets = [T for T in config.SMILE_TARGET_MATURITIES
               if T_grid.min() <= T <= T_grid.max()]
    slices = [compare_local_to_implied(iv_surface, lv_surface, K_grid, T) for T in targets]
    plot_surface_matplotlib(K_mesh, T_mesh, LV_mesh)
    print(f"       -> output/local_vol_3d.png")
    plot_smile_matplotlib(slices, S)
    print(f"       -> output/local_vs_implied.png")

    # step 5: interactive HTML (plotly)
    if not args.no_html:
        print("\n[5/5] Generating interactive HTML...")
        plot_surface_plotly(K_grid, T_grid, LV_mesh)
        print(f"       -> output/local_vol_3d.html")
        plot_smile_plotly(slices, S)
        print(f"       -> output/local_vs_implied.html")
    else:
        print("\n[5/5] Skipping HTML (--no-html flag)")

    # save the grid
    csv_path = config.DATA_DIR / "local_vol_grid.csv"
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    grid_df = pd.DataFrame(LV_mesh, index=pd.Index(T_grid, name="T"), columns=np.round(K_grid, 6))
    grid_df.to_csv(csv_path)
    print(f"\n       Local vol grid saved to data/local_vol_grid.csv")

    elapsed = time.time() - t0
    print(f"\n  Done in {elapsed:.1f}s. Charts are in output/\n")


if __name__ == "__main__":
    main()
