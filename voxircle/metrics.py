"""
Statistics over voxel sets and layer stacks.

Counts are reported in blocks and, past one stack, in stacks of 64
(``format_block_count(80) == "80 = 1s16"``).  Symmetry detection works on
the trimmed mask, so every reflection is taken about the centre of the
bounding box.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np

from voxircle.boundary import boundary_2d, boundary_3d
from voxircle.config import STACK_SIZE
from voxircle.voxels import VoxelSet

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def format_block_count(n: int) -> str:
    if n <= STACK_SIZE:
        return f"{n}"
    return f"{n} = {n // STACK_SIZE}s{n % STACK_SIZE}"


def format_block_diameter(diameters) -> str:
    dx, dy = diameters
    if dx == dy:
        return f"block diameter: {dx}"
    return f"block diameters: {dx}x by {dy}y"


# ---------------------------------------------------------------------------
# Bounding box measures
# ---------------------------------------------------------------------------

def block_diameters(voxels: VoxelSet) -> Tuple[int, int]:
    bounds = voxels.bounds()
    if bounds is None:
        return 0, 0
    return bounds.width, bounds.height


def center_blocks(voxels: VoxelSet) -> VoxelSet:
    """The central 1, 2 or 4 cells of the bounding box (in the set or not)."""
    bounds = voxels.bounds()
    if bounds is None:
        return VoxelSet.empty()

    def middle(lo, size):
        half = lo + size // 2
        return [half - 1, half] if size % 2 == 0 else [half]

    xs = middle(bounds.min_x, bounds.width)
    ys = middle(bounds.min_y, bounds.height)
    return VoxelSet.from_cells((x, y) for x in xs for y in ys)


def center_coord(voxels: VoxelSet) -> Optional[Tuple[float, float]]:
    """Centre of the bounding box, or None for an empty set."""
    bounds = voxels.bounds()
    if bounds is None:
        return None
    return ((bounds.min_x + bounds.max_x + 1) / 2.0,
            (bounds.min_y + bounds.max_y + 1) / 2.0)


# ---------------------------------------------------------------------------
# Symmetry
# ---------------------------------------------------------------------------

class SymmetryType(Enum):
    REFLECTION_HORIZONTAL = "Reflection along horizontal line"
    REFLECTION_VERTICAL = "Reflection along vertical line"
    REFLECTION_DIAGONAL_UP = "Reflection along up 45° diagonal"
    REFLECTION_DIAGONAL_DOWN = "Reflection along down 45° diagonal"
    REFLECTIONS_CARDINALS = "Reflection along horizontal and vertical lines"
    REFLECTIONS_DIAGONALS = "Reflection along both 45° diagonals"
    REFLECTIONS_ALL = "Reflections along horizontal, vertical, and 45° diagonal lines"
    ROTATION_HALF = "Rotation by 180°, or mirroring in a point"
    ROTATION_QUARTER = "Rotation by 90°"
    NONE = "No symmetry"

    def __str__(self):
        return self.value


def symmetry_type(voxels: VoxelSet) -> SymmetryType:
    m = voxels.mask
    square = m.shape[0] == m.shape[1]

    horizontal = np.array_equal(m, m[::-1, :])
    vertical = np.array_equal(m, m[:, ::-1])
    # diagonal mirrors map the bounding box to itself only when it is square
    up = square and np.array_equal(m, m.T)
    down = square and np.array_equal(m, m[::-1, ::-1].T)

    if (horizontal or vertical) and (up or down):
        return SymmetryType.REFLECTIONS_ALL
    if horizontal and vertical:
        return SymmetryType.REFLECTIONS_CARDINALS
    if up and down:
        return SymmetryType.REFLECTIONS_DIAGONALS
    if horizontal:
        return SymmetryType.REFLECTION_HORIZONTAL
    if vertical:
        return SymmetryType.REFLECTION_VERTICAL
    if up:
        return SymmetryType.REFLECTION_DIAGONAL_UP
    if down:
        return SymmetryType.REFLECTION_DIAGONAL_DOWN
    if square and np.array_equal(m, np.rot90(m)):
        return SymmetryType.ROTATION_QUARTER
    if np.array_equal(m, m[::-1, ::-1]):
        return SymmetryType.ROTATION_HALF
    return SymmetryType.NONE


# ---------------------------------------------------------------------------
# Geometry of the cell union
# ---------------------------------------------------------------------------

def outer_corners(voxels: VoxelSet) -> List[Tuple[int, int]]:
    """Lattice points that are a corner of exactly one cell of the set.

    The convex hull of the cell union only depends on these points.
    """
    if not voxels:
        return []
    padded = np.pad(voxels.mask, 1).astype(np.uint8)
    counts = padded[:-1, :-1] + padded[:-1, 1:] + padded[1:, :-1] + padded[1:, 1:]
    rows, cols = np.nonzero(counts == 1)
    ox, oy = voxels.origin
    return sorted(zip((cols + ox).tolist(), (rows + oy).tolist()))


def convex_hull(voxels: VoxelSet) -> List[Tuple[int, int]]:
    """Vertices of the convex hull of the cell union, in hull order."""
    corners = outer_corners(voxels)
    if not corners:
        return []
    points = np.array(corners, dtype=np.int32).reshape(-1, 1, 2)
    hull = cv2.convexHull(points)
    return [tuple(int(c) for c in pt) for pt in hull.reshape(-1, 2)]


def convex_hull_area(voxels: VoxelSet) -> float:
    hull = convex_hull(voxels)
    if len(hull) < 3:
        return 0.0
    return float(cv2.contourArea(np.array(hull, dtype=np.float32).reshape(-1, 1, 2)))


def boundary_components(voxels: VoxelSet) -> List[VoxelSet]:
    """8-connected components of the 2D boundary, largest first.

    A thin outline steps diagonally wherever the shape curves.
    """
    edge = boundary_2d(voxels)
    if not edge:
        return []
    n, labels = cv2.connectedComponents(edge.mask.astype(np.uint8), connectivity=8)
    components = [VoxelSet(labels == k, edge.origin) for k in range(1, n)]
    components.sort(key=len, reverse=True)
    return components


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

@dataclass
class LayerStatistics:
    count: int
    boundary_count: int
    interior_count: int
    diameters: Tuple[int, int]
    center: Optional[Tuple[float, float]]
    symmetry: SymmetryType

    def summary(self) -> List[str]:
        lines = [
            f"nr. blocks: {format_block_count(self.count)}",
            f"nr. boundary blocks: {format_block_count(self.boundary_count)}",
            f"nr. interior blocks: {format_block_count(self.interior_count)}",
            format_block_diameter(self.diameters),
        ]
        if self.center is not None:
            lines.append(f"center: ({self.center[0]:g}, {self.center[1]:g})")
        lines.append(f"symmetry type: {self.symmetry}")
        return lines


def layer_statistics(voxels: VoxelSet) -> LayerStatistics:
    boundary = boundary_2d(voxels)
    return LayerStatistics(
        count=len(voxels),
        boundary_count=len(boundary),
        interior_count=len(voxels) - len(boundary),
        diameters=block_diameters(voxels),
        center=center_coord(voxels),
        symmetry=symmetry_type(voxels),
    )


@dataclass
class StackStatistics:
    layers: Dict[int, LayerStatistics] = field(default_factory=dict)
    total_count: int = 0
    boundary_3d_count: int = 0
    max_diameters: Tuple[int, int] = (0, 0)

    @property
    def interior_3d_count(self) -> int:
        return self.total_count - self.boundary_3d_count

    def summary(self) -> List[str]:
        return [
            f"layers: {len(self.layers)}",
            f"total blocks: {format_block_count(self.total_count)}",
            f"3D boundary blocks: {format_block_count(self.boundary_3d_count)}",
            f"3D interior blocks: {format_block_count(self.interior_3d_count)}",
            format_block_diameter(self.max_diameters),
        ]


def stack_statistics(stack) -> StackStatistics:
    """Statistics over the generated layers of the active range."""
    by_layer = stack.voxels_by_layer()
    stats = StackStatistics()
    for i, voxels in by_layer.items():
        stats.layers[i] = layer_statistics(voxels)
    stats.total_count = sum(s.count for s in stats.layers.values())
    stats.boundary_3d_count = sum(len(v) for v in boundary_3d(by_layer).values())
    if stats.layers:
        stats.max_diameters = (
            max(s.diameters[0] for s in stats.layers.values()),
            max(s.diameters[1] for s in stats.layers.values()),
        )
    logger.debug("stack statistics: %d layers, %d blocks", len(stats.layers), stats.total_count)
    return stats
