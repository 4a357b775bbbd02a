"""Tests for the voxelizer and the exact cell/disk area."""

import math
from fractions import Fraction

import numpy as np
import pytest

from voxircle.errors import ConfigurationError
from voxircle.raster import candidate_bounds, cell_disk_area, voxelize, voxelize_layer_params
from voxircle.shapes import (
    Heuristic, LayerParams, circle, diamond, ellipse, line, square, squircle,
)
from voxircle.voxels import GridBounds, VoxelSet

CENTERPOINT = Heuristic.centerpoint()
CONSERVATIVE = Heuristic.conservative()
CONTAINED = Heuristic.contained()

SHAPES = [
    circle(2.5),
    circle(3.7, center=(0.3, -0.7)),
    ellipse(6.0, 2.5, tilt=0.6, center=(0.5, 0.5)),
    diamond(4.0, 2.0, tilt=0.3),
    square(3.0, 1.5, tilt=math.pi / 6, center=(-0.2, 0.1)),
    squircle(5.0, 3.0, p=4.0, tilt=1.1),
    squircle(4.0, 4.0, p=0.6, tilt=0.25, center=(0.5, 0.0)),
    squircle(3.5, 2.0, p=1.5),
]

CIRCLES = [
    circle(0.3, center=(0.5, 0.5)),
    circle(1.0),
    circle(2.5),
    circle(3.7, center=(0.3, -0.7)),
    circle(6.5, center=(0.5, 0.5)),
    circle(10.0, center=(-2.25, 1.75)),
]

# circle of radius 2.5 centred on a block corner, conservative
CONSERVATIVE_R25 = frozenset(
    (sx * x + (sx < 0) * -1, sy * y + (sy < 0) * -1)
    for x, y in [(0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (1, 2), (2, 0), (2, 1)]
    for sx in (1, -1) for sy in (1, -1)
)


def _cell_samples(ix, iy, n=41):
    t = np.linspace(0.0, 1.0, n)
    X, Y = np.meshgrid(ix + t, iy + t)
    return X, Y


def _window_cells(bounds):
    return [(x, y) for x in range(bounds.min_x, bounds.max_x + 1)
            for y in range(bounds.min_y, bounds.max_y + 1)]


class TestCenterpoint:
    @pytest.mark.parametrize("shape", SHAPES + CIRCLES)
    def test_agrees_with_implicit_value(self, shape):
        voxels = voxelize(shape, CENTERPOINT)
        for x, y in _window_cells(candidate_bounds(shape)):
            expected = shape.implicit_value(x + 0.5, y + 0.5) <= 1.0
            assert ((x, y) in voxels) == expected

    @pytest.mark.parametrize("shape", [
        circle(13.0, center=(0.5, 0.5)),
        circle(5.0),
        circle(2.5),
        circle(6.5, center=(0.5, 0.5)),
        circle(10.0, center=(-2.25, 1.75)),
        ellipse(6.5, 2.5, center=(0.25, 0.5)),
        ellipse(5.0, 3.0, center=(0.5, 0.0)),
    ])
    def test_matches_exact_rational_arithmetic(self, shape):
        # every centre, radius and cell centre here is an exact binary fraction
        cx, cy = (Fraction(c) for c in shape.center)
        a, b = Fraction(shape.radius_a), Fraction(shape.radius_b)
        voxels = voxelize(shape, CENTERPOINT)
        for x, y in _window_cells(candidate_bounds(shape)):
            dx = x + Fraction(1, 2) - cx
            dy = y + Fraction(1, 2) - cy
            expected = dx * dx / (a * a) + dy * dy / (b * b) <= 1
            assert ((x, y) in voxels) == expected, (x, y)

    def test_pythagorean_centres_on_the_circle(self):
        # cell centre offsets (5, 12) and (0, 13) lie exactly at radius 13
        voxels = voxelize(circle(13.0, center=(0.5, 0.5)), CENTERPOINT)
        for cell in [(5, 12), (12, 5), (-5, -12), (-12, 5), (0, 13), (13, 0), (0, -13)]:
            assert cell in voxels
        for cell in [(5, 13), (13, 1), (0, 14)]:
            assert cell not in voxels

    def test_small_odd_circle(self):
        assert voxelize(circle(0.5, center=(0.5, 0.5)), CENTERPOINT) == {(0, 0)}

    def test_default_heuristic(self):
        shape = circle(4.0)
        assert voxelize(shape) == voxelize(shape, CENTERPOINT)


class TestConservative:
    def test_regression_fixture(self):
        voxels = voxelize(circle(2.5), CONSERVATIVE)
        assert len(CONSERVATIVE_R25) == 32
        assert voxels == CONSERVATIVE_R25

    @pytest.mark.parametrize("radius", [1.0, 2.5, 3.0, 4.2, 7.0])
    def test_quarter_turn_invariance(self, radius):
        voxels = voxelize(circle(radius), CONSERVATIVE)
        assert voxels.transform("rot90") == voxels

    def test_diamond_touching_cells(self):
        # cells meeting |x| + |y| <= 1, tangent ones included
        expected = {
            (-1, -1), (0, -1), (-1, 0), (0, 0),
            (1, 0), (1, -1), (-2, 0), (-2, -1),
            (0, 1), (-1, 1), (0, -2), (-1, -2),
        }
        assert voxelize(diamond(1.0), CONSERVATIVE) == expected

    def test_square(self):
        assert len(voxelize(square(1.0), CONSERVATIVE)) == 16

    @pytest.mark.parametrize("shape", SHAPES)
    def test_excluded_cells_do_not_meet_shape(self, shape):
        voxels = voxelize(shape, CONSERVATIVE)
        for x, y in _window_cells(candidate_bounds(shape)):
            if (x, y) in voxels:
                continue
            X, Y = _cell_samples(x, y)
            assert shape.implicit_value(X, Y).min() > 1.0

    @pytest.mark.parametrize("shape", SHAPES)
    def test_cells_with_inside_samples_are_included(self, shape):
        voxels = voxelize(shape, CONSERVATIVE)
        for x, y in _window_cells(candidate_bounds(shape)):
            X, Y = _cell_samples(x, y)
            if shape.implicit_value(X, Y).min() < 1.0:
                assert (x, y) in voxels


class TestContained:
    def test_square(self):
        assert voxelize(square(1.0), CONTAINED) == {(-1, -1), (0, -1), (-1, 0), (0, 0)}

    def test_circle_too_small(self):
        assert not voxelize(circle(0.7), CONTAINED)

    @pytest.mark.parametrize("shape", SHAPES)
    def test_included_cells_lie_inside(self, shape):
        voxels = voxelize(shape, CONTAINED)
        for x, y in voxels:
            X, Y = _cell_samples(x, y)
            assert shape.implicit_value(X, Y).max() <= 1.0 + 1e-9

    def test_concave_edges_checked(self):
        # p < 1: all four corners of cell (0, 0) are inside, the top edge bulges out
        shape = squircle(5.9 / math.sqrt(2), 5.9 / math.sqrt(2), p=0.5,
                         tilt=math.pi / 4, center=(0.5, -0.5))
        corners = [(0, 0), (1, 0), (0, 1), (1, 1)]
        assert all(shape.contains_point(c) for c in corners)
        assert not shape.contains_point((0.5, 1.0))
        assert (0, 0) not in voxelize(shape, CONTAINED)


class TestMonotonicity:
    @pytest.mark.parametrize("shape", SHAPES + CIRCLES)
    def test_contained_centerpoint_conservative(self, shape):
        contained = voxelize(shape, CONTAINED)
        centerpoint = voxelize(shape, CENTERPOINT)
        conservative = voxelize(shape, CONSERVATIVE)
        assert contained <= centerpoint
        assert centerpoint <= conservative

    @pytest.mark.parametrize("shape", CIRCLES)
    def test_percentage_between_contained_and_conservative(self, shape):
        contained = voxelize(shape, CONTAINED)
        conservative = voxelize(shape, CONSERVATIVE)
        previous = None
        for threshold in [1.0, 0.75, 0.5, 0.25, 1e-6]:
            current = voxelize(shape, Heuristic.percentage(threshold))
            assert contained <= current
            assert current <= conservative
            if previous is not None:
                assert previous <= current
            previous = current


class TestPercentage:
    def test_requires_circle(self):
        with pytest.raises(ConfigurationError):
            voxelize(ellipse(3.0, 2.0), Heuristic.percentage(0.5))
        with pytest.raises(ConfigurationError):
            voxelize(squircle(3.0, 3.0, p=3.0), Heuristic.percentage(0.5))

    def test_full_threshold_equals_contained(self):
        shape = circle(5.3, center=(0.2, 0.1))
        assert voxelize(shape, Heuristic.percentage(1.0)) == voxelize(shape, CONTAINED)

    def test_half_threshold_odd_circle(self):
        # radius 0.5 in cell (0, 0): covers pi/4 of it
        shape = circle(0.5, center=(0.5, 0.5))
        assert voxelize(shape, Heuristic.percentage(0.75)) == {(0, 0)}
        assert not voxelize(shape, Heuristic.percentage(0.8))


class TestCellDiskArea:
    def test_cell_inside(self):
        assert cell_disk_area((0.0, 0.0), 10.0, 0, 0) == pytest.approx(1.0)

    def test_cell_outside(self):
        assert cell_disk_area((0.0, 0.0), 1.0, 5, 5) == 0.0

    def test_quarter_disk(self):
        assert cell_disk_area((0.0, 0.0), 1.0, 0, 0) == pytest.approx(math.pi / 4)
        assert cell_disk_area((0.0, 0.0), 1.0, -1, -1) == pytest.approx(math.pi / 4)

    def test_disk_inside_cell(self):
        assert cell_disk_area((0.5, 0.5), 0.5, 0, 0) == pytest.approx(math.pi / 4)

    def test_half_cell(self):
        # cell crossed by the circle near its rightmost point
        area = cell_disk_area((0.0, 0.5), 100.0, 99, 0)
        assert 0.0 < area < 1.0

    def test_arrays(self):
        out = cell_disk_area((0.0, 0.0), 1.0, np.array([0, 5]), np.array([0, 5]))
        np.testing.assert_allclose(out, [math.pi / 4, 0.0])

    @pytest.mark.parametrize("shape", CIRCLES)
    def test_areas_sum_to_disk_area(self, shape):
        bounds = candidate_bounds(shape)
        X, Y = np.meshgrid(np.arange(bounds.min_x, bounds.max_x + 1),
                           np.arange(bounds.min_y, bounds.max_y + 1))
        total = cell_disk_area(shape.center, shape.radius_a, X, Y).sum()
        assert total == pytest.approx(math.pi * shape.radius_a ** 2, rel=1e-6)

    def test_areas_within_unit_interval(self):
        shape = circle(4.3, center=(0.1, 0.7))
        bounds = candidate_bounds(shape)
        X, Y = np.meshgrid(np.arange(bounds.min_x, bounds.max_x + 1),
                           np.arange(bounds.min_y, bounds.max_y + 1))
        area = cell_disk_area(shape.center, shape.radius_a, X, Y)
        assert area.min() >= -1e-12
        assert area.max() <= 1.0 + 1e-12


class TestLine:
    def test_diagonal_centerpoint(self):
        voxels = voxelize(line(rise=1.0, run=1.0, thickness=1.0, length=8.0), CENTERPOINT)
        assert voxels == {(i, i) for i in range(-3, 3)}

    def test_horizontal_contained(self):
        shape = line(rise=0.0, run=1.0, thickness=1.0, length=10.0, center=(0.0, 0.5))
        assert voxelize(shape, CONTAINED) == {(x, 0) for x in range(-5, 5)}

    def test_conservative_covers_centerpoint(self):
        shape = line(rise=2.0, run=7.0, thickness=1.5, length=12.0, center=(0.5, 0.25))
        assert voxelize(shape, CENTERPOINT) <= voxelize(shape, CONSERVATIVE)


class TestBoundsHint:
    def test_clips_to_window(self):
        shape = circle(5.0)
        hint = GridBounds(0, 0, 2, 2)
        clipped = voxelize(shape, CONSERVATIVE, bounds_hint=hint)
        full = voxelize(shape, CONSERVATIVE)
        assert clipped == full & VoxelSet.from_cells(
            [(x, y) for x in range(3) for y in range(3)]
        )

    def test_disjoint_window(self):
        assert voxelize(circle(2.0), CONSERVATIVE, bounds_hint=GridBounds(50, 50, 60, 60)) == set()


class TestLayerParams:
    def test_voxelize_layer_params(self):
        params = LayerParams(radius_a=2.5, radius_b=2.5)
        params.heuristic = CONSERVATIVE
        assert voxelize_layer_params(params) == CONSERVATIVE_R25

    def test_deterministic(self):
        shape = squircle(6.0, 3.0, p=0.7, tilt=0.9)
        assert voxelize(shape, CONSERVATIVE) == voxelize(shape, CONSERVATIVE)
