"""
Tests for stencils and surfaces derived from other surfaces.
"""

import pytest
import numpy as np

from localvol.deformed_surface import DeformedSurface, Stencil
from localvol.surface import ConstantNodalSurface, SurfaceMetadata


def squared(base):
    """z = base(x, y)^2 on the centre point."""
    return DeformedSurface(
        "squared", base, Stencil.centre(),
        lambda points, samples: samples[0, 0] ** 2,
        lambda points, samples: [[2.0 * samples[0, 0]]],
    )


def difference(first, second):
    """z = first - second, both sampled at the query point."""
    return DeformedSurface(
        SurfaceMetadata("diff"), [first, second], Stencil.centre(),
        lambda points, samples: samples[0, 0] - samples[1, 0],
        lambda points, samples: [[1.0], [-1.0]],
    )


def strike_slope(base, eps=1e-3):
    """Central difference in y."""
    stencil = Stencil.five_point(eps)
    return DeformedSurface(
        "slope", base, stencil,
        lambda points, samples: (samples[0, 3] - samples[0, 4]) / (2 * eps),
        lambda points, samples: np.array([[0.0, 0.0, 0.0, 1.0, -1.0]]) / (2 * eps),
    )


class TestStencil:

    def test_five_point_order(self):
        points = Stencil.five_point(0.1).points(1.0, 2.0)
        np.testing.assert_allclose(points, [[1.0, 2.0], [1.1, 2.0], [0.9, 2.0], [1.0, 2.1], [1.0, 1.9]])

    def test_clip_spares_query_point(self):
        stencil = Stencil.five_point(0.1, x_min=0.0)
        points = stencil.points(0.05, 2.0)
        assert points[0, 0] == 0.05
        assert points[2, 0] == 0.0
        assert points[1, 0] == pytest.approx(0.15)
        # a negative query is left alone for the caller to reject
        assert stencil.points(-1.0, 2.0)[0, 0] == -1.0

    def test_centre(self):
        assert Stencil.centre().size == 1
        assert Stencil.centre().points(3.0, 4.0).tolist() == [[3.0, 4.0]]

    def test_bad_step(self):
        with pytest.raises(ValueError):
            Stencil.five_point(0.0)
        with pytest.raises(ValueError):
            Stencil.five_point(-1e-5)


class TestDeformedSurface:

    def test_value(self, vol_surface):
        surface = squared(vol_surface)
        assert surface.evaluate(0.6, 1.1) == pytest.approx(vol_surface.evaluate(0.6, 1.1) ** 2)

    def test_chain_rule(self, vol_surface):
        surface = squared(vol_surface)
        base = vol_surface.sensitivity(0.6, 1.1).sensitivity
        expected = 2.0 * vol_surface.evaluate(0.6, 1.1) * base
        np.testing.assert_allclose(surface.sensitivity(0.6, 1.1).sensitivity, expected, rtol=1e-14)

    def test_sensitivity_owned_by_base(self, vol_surface):
        sensi = squared(vol_surface).sensitivity(0.6, 1.1)
        assert sensi.metadata == vol_surface.metadata
        assert sensi.parameter_labels == vol_surface.parameter_labels()

    def test_stencil_chain_rule(self, vol_surface):
        """A linear deformation's sensitivity equals bump-and-reprice exactly."""
        slope = strike_slope(vol_surface)
        sensi = slope.sensitivity(0.6, 1.1).sensitivity
        bump = 1e-4
        for i in range(vol_surface.parameter_count):
            bumped = strike_slope(vol_surface.with_parameter(i, vol_surface.parameter(i) + bump))
            diff = (bumped.evaluate(0.6, 1.1) - slope.evaluate(0.6, 1.1)) / bump
            assert diff == pytest.approx(sensi[i], abs=1e-6)

    def test_nested(self, vol_surface):
        """Deforming a deformation still reports risk to the nodes."""
        twice = squared(squared(vol_surface))
        v = vol_surface.evaluate(0.6, 1.1)
        assert twice.evaluate(0.6, 1.1) == pytest.approx(v ** 4)
        expected = 4.0 * v ** 3 * vol_surface.sensitivity(0.6, 1.1).sensitivity
        sensi = twice.sensitivity(0.6, 1.1)
        np.testing.assert_allclose(sensi.sensitivity, expected, rtol=1e-12)
        assert sensi.surface_name == "TestVol"

    def test_multiple_bases(self, vol_surface):
        flat = ConstantNodalSurface("flat", 0.1)
        surface = difference(vol_surface, flat)
        assert surface.parameter_count == 13
        assert surface.evaluate(0.6, 1.1) == pytest.approx(vol_surface.evaluate(0.6, 1.1) - 0.1)

        sensi = surface.sensitivity(0.6, 1.1)
        assert sensi.size == 13
        assert sensi.surface_name == "diff"
        np.testing.assert_allclose(sensi.sensitivity[:12], vol_surface.sensitivity(0.6, 1.1).sensitivity)
        assert sensi.sensitivity[12] == -1.0
        assert sensi.parameter_labels[0] == "TestVol:(0.25, 0.8)"
        assert sensi.parameter_labels[12] == "flat:(0, 0)"

    def test_no_bases(self):
        with pytest.raises(ValueError):
            DeformedSurface("empty", [], Stencil.centre(), lambda p, s: 0.0, lambda p, s: [[]])

    def test_bases_shared_not_copied(self, vol_surface):
        surface = squared(vol_surface)
        assert surface.base_surfaces[0] is vol_surface

    def test_errors_propagate(self, vol_surface):
        def value(points, samples):
            raise ValueError("boom")

        surface = DeformedSurface("bad", vol_surface, Stencil.centre(), value, lambda p, s: [[1.0]])
        with pytest.raises(ValueError, match="boom"):
            surface.evaluate(0.5, 1.0)

    def test_repr(self, vol_surface):
        assert "squared" in repr(squared(vol_surface))
