"""Tests for 2D and 3D boundary extraction."""

import logging

import pytest

from voxircle.boundary import (
    boundary_2d, boundary_3d, boundary_3d_cells, complement_2d, interior_2d, interior_3d,
)
from voxircle.raster import voxelize
from voxircle.shapes import Heuristic, circle
from voxircle.stack import LayerStack
from voxircle.voxels import GridBounds, VoxelSet


def block(x0, y0, x1, y1):
    return VoxelSet.from_cells((x, y) for x in range(x0, x1 + 1) for y in range(y0, y1 + 1))


@pytest.fixture
def square3():
    return block(0, 0, 2, 2)


class TestBoundary2D:
    def test_square(self, square3):
        edge = boundary_2d(square3)
        assert len(edge) == 8
        assert (1, 1) not in edge
        assert interior_2d(square3) == {(1, 1)}

    def test_isolated_cell(self):
        cell = VoxelSet.from_cells([(7, -3)])
        assert boundary_2d(cell) == cell
        assert not interior_2d(cell)

    def test_empty(self):
        assert not boundary_2d(VoxelSet.empty())

    def test_diagonal_neighbours_do_not_count(self):
        plus = VoxelSet.from_cells([(0, 0), (1, 0), (-1, 0), (0, 1), (0, -1)])
        # the centre cell has all four edge neighbours
        assert boundary_2d(plus) == plus - VoxelSet.from_cells([(0, 0)])

    @pytest.mark.parametrize("radius", [1.0, 2.5, 4.0, 6.3])
    def test_subset_of_voxels(self, radius):
        voxels = voxelize(circle(radius), Heuristic.conservative())
        edge = boundary_2d(voxels)
        assert edge <= voxels
        assert interior_2d(voxels) | edge == voxels

    def test_matches_neighbour_definition(self):
        voxels = voxelize(circle(5.5, center=(0.5, 0.5)), Heuristic.centerpoint())
        expected = {
            (x, y) for x, y in voxels
            if any((x + dx, y + dy) not in voxels
                   for dx, dy in ((1, 0), (-1, 0), (0, 1), (0, -1)))
        }
        assert boundary_2d(voxels) == expected

    def test_complement(self, square3):
        window = GridBounds(-1, -1, 3, 3)
        outside = complement_2d(square3, window)
        assert len(outside) == 25 - 9
        assert not (outside & square3)


class TestBoundary3D:
    def test_single_layer_is_fully_exposed(self):
        voxels = voxelize(circle(3.5), Heuristic.conservative())
        out = boundary_3d({4: voxels})
        assert out == {4: boundary_2d(voxels) | voxels}
        assert out[4] == voxels

    def test_cube(self, square3):
        stack = {0: square3, 1: square3, 2: square3}
        exposed = boundary_3d_cells(stack)
        assert len(exposed) == 26
        assert (1, (1, 1)) not in exposed
        assert interior_3d(stack) == {0: set(), 1: {(1, 1)}, 2: set()}

    def test_cells_exposed_by_smaller_layer_above(self):
        stack = {0: block(0, 0, 4, 4), 1: VoxelSet.from_cells([(2, 2)])}
        exposed = boundary_3d(stack)
        # bottom layer: everything is open below; nothing is hidden
        assert exposed[0] == stack[0]
        assert exposed[1] == {(2, 2)}

    def test_grounded_bottom(self):
        stack = {0: block(0, 0, 2, 2), 1: block(0, 0, 2, 2)}
        floating = boundary_3d(stack)
        grounded = boundary_3d(stack, floating_bottom=False)
        assert (1, 1) in floating[0]
        assert (1, 1) not in grounded[0]
        assert (1, 1) in grounded[1]
        assert interior_3d(stack, floating_bottom=False)[0] == {(1, 1)}

    def test_layer_stack_input(self):
        stack = LayerStack(0, 2)
        for i in stack.indices():
            stack.set_param(i, "radius_a", 3.0)
            stack.set_param(i, "radius_b", 3.0)
        stack.regenerate_all()
        exposed = boundary_3d(stack)
        assert sorted(exposed) == [0, 1, 2]
        assert exposed[0] == stack.layers[0].voxels
        assert exposed[1] == boundary_2d(stack.layers[1].voxels)

    def test_out_of_range_layers_ignored(self):
        stack = LayerStack(0, 2)
        stack.regenerate_all()
        stack.expand_bounds(0, 0)
        assert sorted(boundary_3d(stack)) == [0]
        assert boundary_3d(stack)[0] == stack.layers[0].voxels

    def test_ungenerated_layer_counts_as_empty(self, caplog):
        stack = LayerStack(0, 1)
        stack.regenerate(0)
        with caplog.at_level(logging.WARNING, logger="voxircle"):
            exposed = boundary_3d(stack)
        assert "not generated" in caplog.text
        assert exposed[0] == stack.layers[0].voxels
        assert not exposed[1]
