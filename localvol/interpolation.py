"""
Interpolation strategies for nodal surfaces.

Every strategy here is linear in the node values: the interpolated value
at x is sum_i w_i(x) * y_i, where the weights depend only on the node
coordinates. So each strategy is written in terms of its weights, and the
same weights double as the unit parameter sensitivity of the surface.

1-D pieces:
    - interpolators: linear, natural cubic spline
    - extrapolators: flat, linear, "interpolator" (reuse the interpolant's
      own edge formula outside the nodes)
    - CombinedInterpolatorExtrapolator glues the two together

2-D:
    GridInterpolator2D combines two 1-D strategies as a tensor product.
    Nodes are grouped by distinct x. For a query (x, y) we first
    interpolate along y inside each x-group, then interpolate the
    resulting cross-section along x.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple

import numpy as np
from scipy.interpolate import CubicSpline

from . import config


# ════════════════════════════════════════════════════════════════════════
#  1-D INTERPOLATORS
# ════════════════════════════════════════════════════════════════════════

def _segment_index(x_nodes: np.ndarray, x: float) -> int:
    """Index i of the segment [x_i, x_{i+1}] used at x (edge segments outside)."""
    i = np.searchsorted(x_nodes, x, side="right") - 1
    return int(np.clip(i, 0, len(x_nodes) - 2))


@dataclass(frozen=True)
class LinearInterpolator1D:
    """Piecewise linear; outside the nodes the edge segment is continued."""

    name: str = field(default="linear", init=False)

    def node_weights(self, x_nodes: np.ndarray, x: float) -> np.ndarray:
        n = len(x_nodes)
        weights = np.zeros(n)
        if n == 1:
            weights[0] = 1.0
            return weights
        i = _segment_index(x_nodes, x)
        t = (x - x_nodes[i]) / (x_nodes[i + 1] - x_nodes[i])
        weights[i] = 1.0 - t
        weights[i + 1] = t
        return weights

    def node_weight_derivatives(self, x_nodes: np.ndarray, x: float) -> np.ndarray:
        n = len(x_nodes)
        derivatives = np.zeros(n)
        if n == 1:
            return derivatives
        i = _segment_index(x_nodes, x)
        width = x_nodes[i + 1] - x_nodes[i]
        derivatives[i] = -1.0 / width
        derivatives[i + 1] = 1.0 / width
        return derivatives

    def interpolate(self, x_nodes: np.ndarray, y_nodes: np.ndarray, x: float) -> float:
        return float(self.node_weights(x_nodes, x) @ y_nodes)


@lru_cache(maxsize=512)
def _unit_spline(x_nodes: Tuple[float, ...]) -> CubicSpline:
    """
    Natural spline through the identity matrix.

    Column i is the cardinal spline of node i, so evaluating the whole
    thing at x gives the weight vector directly. Cached per node set:
    a surface queries the same abscissae over and over.
    """
    x = np.asarray(x_nodes, dtype=float)
    return CubicSpline(x, np.eye(len(x)), bc_type="natural", extrapolate=True)


@dataclass(frozen=True)
class NaturalSplineInterpolator1D:
    """
    Natural cubic spline (zero second derivative at both ends).

    Outside the nodes the edge cubic is evaluated as is. With fewer than
    three nodes there is no curvature to fit, so this falls back to linear.
    """

    name: str = field(default="natural_spline", init=False)

    def node_weights(self, x_nodes: np.ndarray, x: float) -> np.ndarray:
        if len(x_nodes) < 3:
            return LinearInterpolator1D().node_weights(x_nodes, x)
        return _unit_spline(tuple(x_nodes))(x)

    def node_weight_derivatives(self, x_nodes: np.ndarray, x: float) -> np.ndarray:
        if len(x_nodes) < 3:
            return LinearInterpolator1D().node_weight_derivatives(x_nodes, x)
        return _unit_spline(tuple(x_nodes))(x, 1)

    def interpolate(self, x_nodes: np.ndarray, y_nodes: np.ndarray, x: float) -> float:
        return float(self.node_weights(x_nodes, x) @ y_nodes)


# ════════════════════════════════════════════════════════════════════════
#  1-D EXTRAPOLATORS
# ════════════════════════════════════════════════════════════════════════

def _edge(x_nodes: np.ndarray, x: float) -> float:
    return x_nodes[0] if x < x_nodes[0] else x_nodes[-1]


@dataclass(frozen=True)
class FlatExtrapolator:
    """Hold the edge value constant."""

    name: str = field(default="flat", init=False)

    def node_weights(self, interpolator, x_nodes: np.ndarray, x: float) -> np.ndarray:
        return interpolator.node_weights(x_nodes, _edge(x_nodes, x))

    def node_weight_derivatives(self, interpolator, x_nodes: np.ndarray, x: float) -> np.ndarray:
        return np.zeros(len(x_nodes))


@dataclass(frozen=True)
class LinearExtrapolator:
    """Edge value plus the interpolant's slope at the edge."""

    name: str = field(default="linear", init=False)

    def node_weights(self, interpolator, x_nodes: np.ndarray, x: float) -> np.ndarray:
        edge = _edge(x_nodes, x)
        return (interpolator.node_weights(x_nodes, edge)
                + (x - edge) * interpolator.node_weight_derivatives(x_nodes, edge))

    def node_weight_derivatives(self, interpolator, x_nodes: np.ndarray, x: float) -> np.ndarray:
        return interpolator.node_weight_derivatives(x_nodes, _edge(x_nodes, x))


@dataclass(frozen=True)
class InterpolatorExtrapolator:
    """Evaluate the interpolant's edge formula beyond the nodes."""

    name: str = field(default="interpolator", init=False)

    def node_weights(self, interpolator, x_nodes: np.ndarray, x: float) -> np.ndarray:
        return interpolator.node_weights(x_nodes, x)

    def node_weight_derivatives(self, interpolator, x_nodes: np.ndarray, x: float) -> np.ndarray:
        return interpolator.node_weight_derivatives(x_nodes, x)


# ════════════════════════════════════════════════════════════════════════
#  COMBINED 1-D
# ════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CombinedInterpolatorExtrapolator:
    """
    An interpolator with its left and right extrapolators.

    x_nodes must be sorted and distinct; GridInterpolator2D guarantees
    that for the arrays it passes in. A single node is a constant.
    """

    interpolator: object
    left_extrapolator: Optional[object] = None
    right_extrapolator: Optional[object] = None

    def __post_init__(self):
        # default both sides to the interpolant's own formula
        if self.left_extrapolator is None:
            object.__setattr__(self, "left_extrapolator", InterpolatorExtrapolator())
        if self.right_extrapolator is None:
            object.__setattr__(self, "right_extrapolator", InterpolatorExtrapolator())

    def node_weights(self, x_nodes: np.ndarray, x: float) -> np.ndarray:
        if len(x_nodes) == 1:
            return np.ones(1)
        if x < x_nodes[0]:
            return self.left_extrapolator.node_weights(self.interpolator, x_nodes, x)
        if x > x_nodes[-1]:
            return self.right_extrapolator.node_weights(self.interpolator, x_nodes, x)
        return self.interpolator.node_weights(x_nodes, x)

    def node_weight_derivatives(self, x_nodes: np.ndarray, x: float) -> np.ndarray:
        if len(x_nodes) == 1:
            return np.zeros(1)
        if x < x_nodes[0]:
            return self.left_extrapolator.node_weight_derivatives(self.interpolator, x_nodes, x)
        if x > x_nodes[-1]:
            return self.right_extrapolator.node_weight_derivatives(self.interpolator, x_nodes, x)
        return self.interpolator.node_weight_derivatives(x_nodes, x)

    def interpolate(self, x_nodes: np.ndarray, y_nodes: np.ndarray, x: float) -> float:
        return float(self.node_weights(x_nodes, x) @ y_nodes)


# ════════════════════════════════════════════════════════════════════════
#  2-D GRID
# ════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class GridLayout:
    """
    Scattered nodes regrouped for tensor-product interpolation.

    x_nodes : distinct x values, ascending
    groups  : one (node_indices, y_nodes) pair per x value; node_indices
              point back into the original parallel arrays, y_nodes is
              ascending
    """

    size: int
    x_nodes: np.ndarray
    groups: tuple


@dataclass(frozen=True)
class GridInterpolator2D:
    """Tensor-product interpolation: along y within each x column, then along x."""

    x_interpolator: CombinedInterpolatorExtrapolator
    y_interpolator: CombinedInterpolatorExtrapolator

    def layout(self, x_values: np.ndarray, y_values: np.ndarray) -> GridLayout:
        """
        Group nodes by distinct x and sort each group by y.

        Raises
        ------
        ValueError : if two nodes share the same (x, y)
        """
        x_values = np.asarray(x_values, dtype=float)
        y_values = np.asarray(y_values, dtype=float)
        x_nodes = np.unique(x_values)

        groups = []
        for x in x_nodes:
            indices = np.flatnonzero(x_values == x)
            indices = indices[np.argsort(y_values[indices], kind="stable")]
            y_nodes = y_values[indices]
            if np.any(np.diff(y_nodes) == 0):
                raise ValueError(f"Duplicate node in grid at x={x}: y values {y_nodes.tolist()}")
            indices.setflags(write=False)
            y_nodes.setflags(write=False)
            groups.append((indices, y_nodes))

        x_nodes.setflags(write=False)
        return GridLayout(size=len(x_values), x_nodes=x_nodes, groups=tuple(groups))

    def node_weights(self, layout: GridLayout, x: float, y: float) -> np.ndarray:
        """Weight of every node (original order) in the value at (x, y)."""
        x_weights = self.x_interpolator.node_weights(layout.x_nodes, x)
        weights = np.zeros(layout.size)
        for x_weight, (indices, y_nodes) in zip(x_weights, layout.groups):
            weights[indices] += x_weight * self.y_interpolator.node_weights(y_nodes, y)
        return weights

    def interpolate(self, layout: GridLayout, z_values: np.ndarray, x: float, y: float) -> float:
        return float(self.node_weights(layout, x, y) @ z_values)


# ════════════════════════════════════════════════════════════════════════
#  LOOKUP BY NAME
# ════════════════════════════════════════════════════════════════════════

INTERPOLATORS = {
    "linear": LinearInterpolator1D(),
    "natural_spline": NaturalSplineInterpolator1D(),
}

EXTRAPOLATORS = {
    "flat": FlatExtrapolator(),
    "linear": LinearExtrapolator(),
    "interpolator": InterpolatorExtrapolator(),
}


def interpolator(name: str):
    """Return the 1-D interpolator registered under name."""
    try:
        return INTERPOLATORS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown interpolator: {name}. Use one of {sorted(INTERPOLATORS)}."
        ) from None


def extrapolator(name: str):
    """Return the 1-D extrapolator registered under name."""
    try:
        return EXTRAPOLATORS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown extrapolator: {name}. Use one of {sorted(EXTRAPOLATORS)}."
        ) from None


def combined(
    interpolator_name: Optional[str] = None,
    extrapolator_name: Optional[str] = None,
) -> CombinedInterpolatorExtrapolator:
    """Interpolator with the same extrapolator on both sides."""
    if interpolator_name is None:
        interpolator_name = config.DEFAULT_INTERPOLATOR
    if extrapolator_name is None:
        extrapolator_name = config.DEFAULT_EXTRAPOLATOR
    extrap = extrapolator(extrapolator_name)
    return CombinedInterpolatorExtrapolator(interpolator(interpolator_name), extrap, extrap)


def grid_interpolator(
    x_name: Optional[str] = None,
    y_name: Optional[str] = None,
    extrapolator_name: Optional[str] = None,
) -> GridInterpolator2D:
    """
    Build a GridInterpolator2D from names.

    Defaults come from config (natural spline, interpolator extrapolation
    on both axes).
    """
    return GridInterpolator2D(
        combined(x_name, extrapolator_name),
        combined(y_name, extrapolator_name),
    )
