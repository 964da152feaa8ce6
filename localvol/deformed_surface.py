"""
Surfaces computed on demand from other surfaces.

A DeformedSurface never builds a grid of its own. At each query it
samples its base surface(s) on a small fixed stencil around (x, y) and
feeds the samples to a value function. Sensitivities follow by the chain
rule: a second function returns dz/d(sample) for every sample, and those
coefficients are applied to the base surfaces' own node sensitivities at
the stencil points.

    dz/dp = sum_p  dz/ds_p * ds_p/dp

Nothing is differenced twice: the only finite differences are the ones
the value function itself takes across the stencil.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from .surface import Surface, SurfaceMetadata, SurfaceUnitParameterSensitivity, _as_metadata


# (points, samples) -> z, where points is (n_points, 2) and samples is (n_bases, n_points)
ValueFunction = Callable[[np.ndarray, np.ndarray], float]
# (points, samples) -> dz/dsamples, shape (n_bases, n_points)
SensitivityFunction = Callable[[np.ndarray, np.ndarray], np.ndarray]


@dataclass(frozen=True)
class Stencil:
    """
    Fixed offsets around a query point.

    offsets : ((dx, dy), ...); the first entry should be (0, 0) so that
              row 0 of points() is the query point itself
    x_min   : if set, the x-coordinates of the surrounding points (not
              the query point itself) are clipped from below, e.g. no
              sampling before time zero
    """

    offsets: Tuple[Tuple[float, float], ...]
    x_min: Optional[float] = None

    def points(self, x: float, y: float) -> np.ndarray:
        points = np.array(self.offsets, dtype=float) + (x, y)
        if self.x_min is not None:
            points[1:, 0] = np.maximum(points[1:, 0], self.x_min)
        return points

    @property
    def size(self) -> int:
        return len(self.offsets)

    @classmethod
    def centre(cls) -> "Stencil":
        """Just the query point."""
        return cls(((0.0, 0.0),))

    @classmethod
    def five_point(cls, eps: float, x_min: Optional[float] = None) -> "Stencil":
        """Centre, x+eps, x-eps, y+eps, y-eps, in that order."""
        if not eps > 0:
            raise ValueError(f"Stencil step must be positive, got {eps}")
        return cls(
            ((0.0, 0.0), (eps, 0.0), (-eps, 0.0), (0.0, eps), (0.0, -eps)),
            x_min,
        )


class DeformedSurface(Surface):
    """
    A surface defined as a function of one or more base surfaces.

    Base surfaces are shared, not copied; several deformations can sit
    on top of the same base. The parameters of a DeformedSurface are the
    parameters of its bases, concatenated in base order.

    Parameters
    ----------
    metadata : SurfaceMetadata or plain name
    base_surfaces : a Surface or a sequence of them
    stencil : where to sample the bases relative to the query point
    value_function : (points, samples) -> z
    sensitivity_function : (points, samples) -> dz/dsamples, one row per base
    """

    __slots__ = ("_metadata", "_bases", "_stencil", "_value_function", "_sensitivity_function")

    def __init__(
        self,
        metadata,
        base_surfaces,
        stencil: Stencil,
        value_function: ValueFunction,
        sensitivity_function: SensitivityFunction,
    ):
        if isinstance(base_surfaces, Surface):
            base_surfaces = (base_surfaces,)
        base_surfaces = tuple(base_surfaces)
        if not base_surfaces:
            raise ValueError("A deformed surface needs at least one base surface")
        self._metadata = _as_metadata(metadata)
        self._bases = base_surfaces
        self._stencil = stencil
        self._value_function = value_function
        self._sensitivity_function = sensitivity_function

    @property
    def metadata(self) -> SurfaceMetadata:
        return self._metadata

    @property
    def base_surfaces(self) -> Tuple[Surface, ...]:
        return self._bases

    @property
    def stencil(self) -> Stencil:
        return self._stencil

    @property
    def parameter_metadata(self) -> SurfaceMetadata:
        # a single base passes its parameters straight through
        if len(self._bases) == 1:
            return self._bases[0].parameter_metadata
        return self._metadata

    @property
    def parameter_count(self) -> int:
        return sum(base.parameter_count for base in self._bases)

    def parameter_labels(self) -> Tuple[str, ...]:
        if len(self._bases) == 1:
            return self._bases[0].parameter_labels()
        return tuple(f"{base.name}:{label}"
                     for base in self._bases for label in base.parameter_labels())

    def _sample(self, points: np.ndarray) -> np.ndarray:
        return np.array([[base.evaluate(px, py) for px, py in points]
                         for base in self._bases])

    def evaluate(self, x: float, y: float) -> float:
        points = self._stencil.points(x, y)
        return float(self._value_function(points, self._sample(points)))

    def sensitivity(self, x: float, y: float) -> SurfaceUnitParameterSensitivity:
        points = self._stencil.points(x, y)
        samples = self._sample(points)
        coefficients = np.asarray(self._sensitivity_function(points, samples), dtype=float)
        coefficients = coefficients.reshape(len(self._bases), len(points))

        parts = []
        for base, base_coefficients in zip(self._bases, coefficients):
            total = np.zeros(base.parameter_count)
            for (px, py), coefficient in zip(points, base_coefficients):
                if coefficient != 0.0:
                    total += coefficient * base.sensitivity(px, py).sensitivity
            parts.append(total)

        return SurfaceUnitParameterSensitivity(
            self.parameter_metadata, np.concatenate(parts), self.parameter_labels())

    def __repr__(self):
        bases = ", ".join(base.name for base in self._bases)
        return f"DeformedSurface(name={self.name!r}, bases=[{bases}], stencil={self._stencil.size} pts)"
