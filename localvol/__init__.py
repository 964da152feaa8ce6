"""
localvol
========
Dupire local volatility surfaces with node-level risk.

Modules:
    interpolation      - 1-D interpolators/extrapolators, 2-D grid rule
    surface            - Surface contract, nodal and constant surfaces
    deformed_surface   - Surfaces derived on demand from other surfaces
    local_volatility   - Dupire calculator (from implied vol or price)
    black_scholes      - Closed forms and implied vol inversion
    surface_builder    - DataFrame <-> surface, price surfaces, grids
    synthetic          - Reference grid and SVI-style inputs
    visualization      - 2D/3D charting (matplotlib + plotly)
    config             - Global constants and defaults
"""

__version__ = "0.1.0"
__author__ = "Leo"
