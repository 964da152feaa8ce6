"""
Surface abstraction: a scalar function z(x, y) with node sensitivities.

For volatility work x is time to expiry and y is strike, but nothing
here depends on that.

Three flavours live in the package:
    InterpolatedNodalSurface - nodes plus a GridInterpolator2D
    ConstantNodalSurface     - one node, same value everywhere
    DeformedSurface          - computed from other surfaces on demand
                               (see deformed_surface.py)

Every surface is immutable. "Changing" a node value means building a
sibling via with_z_values / with_parameter, which is how bump-and-reprice
risk is done.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .interpolation import GridInterpolator2D, grid_interpolator


def _frozen_array(values) -> np.ndarray:
    """Float copy of values with the write flag off."""
    array = np.array(values, dtype=float).ravel()
    array.setflags(write=False)
    return array


# ════════════════════════════════════════════════════════════════════════
#  METADATA & SENSITIVITY
# ════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SurfaceMetadata:
    """Name and axis labels. Only used to label sensitivity output."""

    name: str
    x_value_type: str = "YearFraction"
    y_value_type: str = "Strike"
    z_value_type: str = "Volatility"


def _as_metadata(metadata: Union[SurfaceMetadata, str]) -> SurfaceMetadata:
    if isinstance(metadata, SurfaceMetadata):
        return metadata
    return SurfaceMetadata(str(metadata))


class SurfaceUnitParameterSensitivity:
    """
    Partial derivatives of one output with respect to a surface's parameters.

    Index i lines up with parameter i of the surface named in metadata
    (for a nodal surface: node i in construction order).
    """

    __slots__ = ("_metadata", "_sensitivity", "_parameter_labels")

    def __init__(self, metadata, sensitivity, parameter_labels: Optional[Sequence[str]] = None):
        values = _frozen_array(sensitivity)
        if parameter_labels is None:
            parameter_labels = tuple(str(i) for i in range(len(values)))
        parameter_labels = tuple(parameter_labels)
        if len(parameter_labels) != len(values):
            raise ValueError(
                f"Got {len(parameter_labels)} parameter labels for {len(values)} sensitivities"
            )
        self._metadata = _as_metadata(metadata)
        self._sensitivity = values
        self._parameter_labels = parameter_labels

    @property
    def metadata(self) -> SurfaceMetadata:
        return self._metadata

    @property
    def surface_name(self) -> str:
        return self._metadata.name

    @property
    def sensitivity(self) -> np.ndarray:
        return self._sensitivity

    @property
    def parameter_labels(self) -> Tuple[str, ...]:
        return self._parameter_labels

    @property
    def size(self) -> int:
        return len(self._sensitivity)

    def total(self) -> float:
        """Sum of all partials (response to a parallel shift of every node)."""
        return float(self._sensitivity.sum())

    def multiplied_by(self, factor: float) -> "SurfaceUnitParameterSensitivity":
        return SurfaceUnitParameterSensitivity(
            self._metadata, self._sensitivity * factor, self._parameter_labels)

    def plus(self, other: "SurfaceUnitParameterSensitivity") -> "SurfaceUnitParameterSensitivity":
        """Add two sensitivities to the same surface."""
        if other.metadata != self._metadata or other.size != self.size:
            raise ValueError(
                f"Cannot add sensitivity to '{other.surface_name}' ({other.size} params) "
                f"to sensitivity to '{self.surface_name}' ({self.size} params)"
            )
        return SurfaceUnitParameterSensitivity(
            self._metadata, self._sensitivity + other.sensitivity, self._parameter_labels)

    def to_series(self) -> pd.Series:
        """Sensitivities as a Series indexed by parameter label."""
        return pd.Series(self._sensitivity, index=list(self._parameter_labels),
                         name=self.surface_name)

    def __eq__(self, other):
        if not isinstance(other, SurfaceUnitParameterSensitivity):
            return NotImplemented
        return (self._metadata == other.metadata
                and self._parameter_labels == other.parameter_labels
                and np.array_equal(self._sensitivity, other.sensitivity))

    __hash__ = None

    def __repr__(self):
        return (f"SurfaceUnitParameterSensitivity(name={self.surface_name!r}, "
                f"sensitivity={self._sensitivity.tolist()})")


# ════════════════════════════════════════════════════════════════════════
#  ABSTRACT SURFACES
# ════════════════════════════════════════════════════════════════════════

class Surface(ABC):
    """A function z(x, y) whose value depends on a vector of parameters."""

    __slots__ = ()

    @property
    @abstractmethod
    def metadata(self) -> SurfaceMetadata:
        ...

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def parameter_metadata(self) -> SurfaceMetadata:
        """Metadata of the surface that owns the parameters (self, for nodal surfaces)."""
        return self.metadata

    @property
    @abstractmethod
    def parameter_count(self) -> int:
        ...

    @abstractmethod
    def parameter_labels(self) -> Tuple[str, ...]:
        ...

    @abstractmethod
    def evaluate(self, x: float, y: float) -> float:
        """z-value at (x, y)."""

    @abstractmethod
    def sensitivity(self, x: float, y: float) -> SurfaceUnitParameterSensitivity:
        """dz/dp_i at (x, y) for every parameter p_i."""

    def evaluate_grid(self, x_grid: np.ndarray, y_grid: np.ndarray) -> np.ndarray:
        """
        Evaluate on the outer product of two axes.

        Returns
        -------
        np.ndarray of shape (len(y_grid), len(x_grid)), matching
        np.meshgrid(x_grid, y_grid)
        """
        return np.array([[self.evaluate(x, y) for x in x_grid] for y in y_grid])


class NodalSurface(Surface):
    """A surface whose parameters are the z-values at a set of nodes."""

    __slots__ = ()

    @property
    @abstractmethod
    def x_values(self) -> np.ndarray:
        ...

    @property
    @abstractmethod
    def y_values(self) -> np.ndarray:
        ...

    @property
    @abstractmethod
    def z_values(self) -> np.ndarray:
        ...

    @abstractmethod
    def with_z_values(self, z_values) -> "NodalSurface":
        """Same nodes and interpolation, different values."""

    @property
    def parameter_count(self) -> int:
        return len(self.z_values)

    def parameter_labels(self) -> Tuple[str, ...]:
        return tuple(f"({x:g}, {y:g})" for x, y in zip(self.x_values, self.y_values))

    def parameter(self, index: int) -> float:
        self._check_index(index)
        return float(self.z_values[index])

    def with_parameter(self, index: int, value: float) -> "NodalSurface":
        """Sibling surface with node `index` set to value."""
        self._check_index(index)
        z_values = np.array(self.z_values)
        z_values[index] = value
        return self.with_z_values(z_values)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.parameter_count:
            raise ValueError(
                f"Parameter index {index} out of range for {self.parameter_count} nodes"
            )

    def _check_size(self, z_values: np.ndarray) -> None:
        if len(z_values) != self.parameter_count:
            raise ValueError(
                f"Expected {self.parameter_count} z-values for surface '{self.name}', "
                f"got {len(z_values)}"
            )


# ════════════════════════════════════════════════════════════════════════
#  CONCRETE NODAL SURFACES
# ════════════════════════════════════════════════════════════════════════

class InterpolatedNodalSurface(NodalSurface):
    """
    Nodes (x_i, y_i, z_i) interpolated by a GridInterpolator2D.

    The nodes are parallel arrays in any order, but they must form a grid
    the interpolator can read: every distinct x carries its own set of
    distinct y values (the sets may differ between columns).

    Parameters
    ----------
    metadata : SurfaceMetadata or plain name
    x_values, y_values, z_values : same-length sequences
    interpolator : GridInterpolator2D (default: natural spline both ways,
                   see config)

    Raises
    ------
    ValueError : on length mismatch, no nodes, or duplicate nodes
    """

    __slots__ = ("_metadata", "_x", "_y", "_z", "_interpolator", "_layout")

    def __init__(self, metadata, x_values, y_values, z_values,
                 interpolator: Optional[GridInterpolator2D] = None):
        x = _frozen_array(x_values)
        y = _frozen_array(y_values)
        z = _frozen_array(z_values)
        if not len(x) == len(y) == len(z):
            raise ValueError(
                f"Node arrays must have equal length: x={len(x)}, y={len(y)}, z={len(z)}"
            )
        if len(x) == 0:
            raise ValueError("A nodal surface needs at least one node")
        if interpolator is None:
            interpolator = grid_interpolator()

        self._metadata = _as_metadata(metadata)
        self._x = x
        self._y = y
        self._z = z
        self._interpolator = interpolator
        self._layout = interpolator.layout(x, y)

    @property
    def metadata(self) -> SurfaceMetadata:
        return self._metadata

    @property
    def x_values(self) -> np.ndarray:
        return self._x

    @property
    def y_values(self) -> np.ndarray:
        return self._y

    @property
    def z_values(self) -> np.ndarray:
        return self._z

    @property
    def interpolator(self) -> GridInterpolator2D:
        return self._interpolator

    def evaluate(self, x: float, y: float) -> float:
        return self._interpolator.interpolate(self._layout, self._z, x, y)

    def sensitivity(self, x: float, y: float) -> SurfaceUnitParameterSensitivity:
        weights = self._interpolator.node_weights(self._layout, x, y)
        return SurfaceUnitParameterSensitivity(self._metadata, weights, self.parameter_labels())

    def with_z_values(self, z_values) -> "InterpolatedNodalSurface":
        z = _frozen_array(z_values)
        self._check_size(z)
        sibling = object.__new__(InterpolatedNodalSurface)
        sibling._metadata = self._metadata
        sibling._x = self._x
        sibling._y = self._y
        sibling._z = z
        sibling._interpolator = self._interpolator
        # nodes are unchanged so the layout can be shared
        sibling._layout = self._layout
        return sibling

    def __eq__(self, other):
        if not isinstance(other, InterpolatedNodalSurface):
            return NotImplemented
        return (self._metadata == other.metadata
                and self._interpolator == other.interpolator
                and np.array_equal(self._x, other.x_values)
                and np.array_equal(self._y, other.y_values)
                and np.array_equal(self._z, other.z_values))

    __hash__ = None

    def __repr__(self):
        return (f"InterpolatedNodalSurface(name={self.name!r}, "
                f"nodes={self.parameter_count})")


class ConstantNodalSurface(NodalSurface):
    """One node, one value, everywhere. Sensitivity is always [1.0]."""

    __slots__ = ("_metadata", "_z")

    _NODE = _frozen_array([0.0])

    def __init__(self, metadata, z_value: float):
        self._metadata = _as_metadata(metadata)
        self._z = _frozen_array([z_value])

    @property
    def metadata(self) -> SurfaceMetadata:
        return self._metadata

    @property
    def x_values(self) -> np.ndarray:
        return self._NODE

    @property
    def y_values(self) -> np.ndarray:
        return self._NODE

    @property
    def z_values(self) -> np.ndarray:
        return self._z

    @property
    def z_value(self) -> float:
        return float(self._z[0])

    def evaluate(self, x: float, y: float) -> float:
        return float(self._z[0])

    def sensitivity(self, x: float, y: float) -> SurfaceUnitParameterSensitivity:
        return SurfaceUnitParameterSensitivity(self._metadata, [1.0], self.parameter_labels())

    def with_z_values(self, z_values) -> "ConstantNodalSurface":
        z = _frozen_array(z_values)
        self._check_size(z)
        return ConstantNodalSurface(self._metadata, z[0])

    def __eq__(self, other):
        if not isinstance(other, ConstantNodalSurface):
            return NotImplemented
        return self._metadata == other.metadata and self.z_value == other.z_value

    __hash__ = None

    def __repr__(self):
        return f"ConstantNodalSurface(name={self.name!r}, z_value={self.z_value})"
