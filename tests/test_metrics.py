"""Tests for statistics: formatting, diameters, symmetry, hulls, components."""

import pytest

from voxircle.metrics import (
    SymmetryType, block_diameters, boundary_components, center_blocks, center_coord,
    convex_hull, convex_hull_area, format_block_count, format_block_diameter,
    layer_statistics, outer_corners, stack_statistics, symmetry_type,
)
from voxircle.raster import voxelize
from voxircle.shapes import Heuristic, circle, ellipse
from voxircle.stack import LayerStack
from voxircle.voxels import VoxelSet


def block(x0, y0, x1, y1):
    return VoxelSet.from_cells((x, y) for x in range(x0, x1 + 1) for y in range(y0, y1 + 1))


def pinwheel():
    hook = VoxelSet.from_cells([(0, 0), (1, 0), (2, 0), (2, 1)])
    out = hook
    for _ in range(3):
        hook = hook.transform("rot90")
        out = out | hook
    return out


class TestFormatting:
    @pytest.mark.parametrize("n, text", [
        (0, "0"),
        (17, "17"),
        (64, "64"),
        (65, "65 = 1s1"),
        (80, "80 = 1s16"),
        (128, "128 = 2s0"),
    ])
    def test_block_count(self, n, text):
        assert format_block_count(n) == text

    def test_block_diameter(self):
        assert format_block_diameter((7, 7)) == "block diameter: 7"
        assert format_block_diameter((7, 3)) == "block diameters: 7x by 3y"


class TestBoundingBox:
    def test_diameters(self):
        assert block_diameters(block(-2, 0, 4, 2)) == (7, 3)
        assert block_diameters(VoxelSet.empty()) == (0, 0)

    def test_center_coord(self):
        assert center_coord(block(0, 0, 2, 2)) == (1.5, 1.5)
        assert center_coord(block(-2, -2, 1, 1)) == (0.0, 0.0)
        assert center_coord(VoxelSet.empty()) is None

    def test_center_blocks(self):
        assert center_blocks(block(0, 0, 2, 2)) == {(1, 1)}
        assert center_blocks(block(0, 0, 3, 2)) == {(1, 1), (2, 1)}
        assert center_blocks(block(-2, -2, 1, 1)) == {(-1, -1), (0, -1), (-1, 0), (0, 0)}


class TestSymmetry:
    def test_circle(self):
        voxels = voxelize(circle(4.5), Heuristic.conservative())
        assert symmetry_type(voxels) is SymmetryType.REFLECTIONS_ALL

    def test_ellipse(self):
        voxels = voxelize(ellipse(6.0, 3.0), Heuristic.centerpoint())
        assert symmetry_type(voxels) is SymmetryType.REFLECTIONS_CARDINALS

    def test_single_cell(self):
        assert symmetry_type(VoxelSet.from_cells([(3, 3)])) is SymmetryType.REFLECTIONS_ALL

    def test_diagonal(self):
        corner = VoxelSet.from_cells([(0, 0), (1, 0), (0, 1)])
        assert symmetry_type(corner) is SymmetryType.REFLECTION_DIAGONAL_UP
        flipped = corner.transform("flip_x")
        assert symmetry_type(flipped) is SymmetryType.REFLECTION_DIAGONAL_DOWN

    def test_horizontal_line_mirror(self):
        tee = VoxelSet.from_cells([(0, 0), (0, 1), (0, 2), (1, 1)])
        assert symmetry_type(tee) is SymmetryType.REFLECTION_HORIZONTAL

    def test_vertical_line_mirror(self):
        tee = VoxelSet.from_cells([(0, 0), (1, 0), (2, 0), (1, 1)])
        assert symmetry_type(tee) is SymmetryType.REFLECTION_VERTICAL

    def test_half_turn(self):
        s = VoxelSet.from_cells([(0, 0), (1, 0), (1, 1), (2, 1)])
        assert symmetry_type(s) is SymmetryType.ROTATION_HALF

    def test_quarter_turn(self):
        assert symmetry_type(pinwheel()) is SymmetryType.ROTATION_QUARTER

    def test_none(self):
        s = VoxelSet.from_cells([(0, 0), (1, 0), (2, 0), (0, 1)])
        assert symmetry_type(s) is SymmetryType.NONE

    def test_display(self):
        assert str(SymmetryType.ROTATION_QUARTER) == "Rotation by 90°"


class TestHull:
    def test_outer_corners_single_cell(self):
        assert outer_corners(VoxelSet.from_cells([(0, 0)])) == [(0, 0), (0, 1), (1, 0), (1, 1)]

    def test_outer_corners_domino(self):
        domino = VoxelSet.from_cells([(0, 0), (1, 0)])
        assert outer_corners(domino) == [(0, 0), (0, 1), (2, 0), (2, 1)]

    def test_outer_corners_offset(self):
        assert outer_corners(VoxelSet.from_cells([(-3, 5)])) == [(-3, 5), (-3, 6), (-2, 5), (-2, 6)]

    def test_convex_hull_square(self):
        hull = convex_hull(block(0, 0, 2, 2))
        assert sorted(hull) == [(0, 0), (0, 3), (3, 0), (3, 3)]
        assert convex_hull_area(block(0, 0, 2, 2)) == pytest.approx(9.0)

    def test_convex_hull_triangle_of_cells(self):
        corner = VoxelSet.from_cells([(0, 0), (1, 0), (0, 1)])
        # hull of the L-tromino cuts the inner corner: area 4 - 0.5
        assert convex_hull_area(corner) == pytest.approx(3.5)

    def test_empty(self):
        assert convex_hull(VoxelSet.empty()) == []
        assert convex_hull_area(VoxelSet.empty()) == 0.0


class TestBoundaryComponents:
    def test_solid(self):
        parts = boundary_components(block(0, 0, 4, 4))
        assert len(parts) == 1
        assert len(parts[0]) == 16

    def test_ring_with_hole(self):
        ring = block(0, 0, 8, 8) - block(3, 3, 5, 5)
        parts = boundary_components(ring)
        assert [len(p) for p in parts] == [32, 12]

    def test_empty(self):
        assert boundary_components(VoxelSet.empty()) == []


class TestAggregates:
    def test_layer_statistics(self):
        stats = layer_statistics(block(0, 0, 2, 2))
        assert stats.count == 9
        assert stats.boundary_count == 8
        assert stats.interior_count == 1
        assert stats.diameters == (3, 3)
        assert stats.center == (1.5, 1.5)
        assert stats.symmetry is SymmetryType.REFLECTIONS_ALL
        assert "nr. blocks: 9" in stats.summary()

    def test_stack_statistics(self):
        stack = LayerStack(0, 2)
        for i in stack.indices():
            stack.set_param(i, "radius_a", 2.0 + i)
            stack.set_param(i, "radius_b", 2.0 + i)
            stack.set_heuristic(i, Heuristic.conservative())
        stack.regenerate_all()
        stats = stack_statistics(stack)
        counts = [len(stack.layers[i].voxels) for i in range(3)]
        assert sorted(stats.layers) == [0, 1, 2]
        assert stats.total_count == sum(counts)
        assert stats.max_diameters == block_diameters(stack.layers[2].voxels)
        assert 0 < stats.boundary_3d_count <= stats.total_count
        assert stats.interior_3d_count == stats.total_count - stats.boundary_3d_count
        assert stats.summary()[1].startswith("total blocks: ")

    def test_stack_statistics_skip_out_of_range(self):
        stack = LayerStack(0, 3)
        stack.regenerate_all()
        stack.expand_bounds(0, 1)
        assert sorted(stack.statistics().layers) == [0, 1]
