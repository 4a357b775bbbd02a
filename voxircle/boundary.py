"""
Boundary extraction for single layers and layer stacks.

The 2D boundary is the thin boundary: cells of the set with at least one
4-neighbour outside the set.  It is computed with an OpenCV erosion by a
cross-shaped kernel on a zero-padded mask.

The 3D boundary of a stack adds the layer neighbours above and below, so a
cell is exposed when any of its six neighbours is absent.
"""

import logging
from collections.abc import Mapping

import cv2
import numpy as np

from voxircle.voxels import VoxelSet

logger = logging.getLogger(__name__)

_CROSS = cv2.getStructuringElement(cv2.MORPH_CROSS, (3, 3))


# ---------------------------------------------------------------------------
# 2D
# ---------------------------------------------------------------------------

def boundary_2d(voxels: VoxelSet) -> VoxelSet:
    if not voxels:
        return VoxelSet.empty()
    mask = np.pad(voxels.mask, 1).astype(np.uint8)
    eroded = cv2.erode(mask, _CROSS, borderType=cv2.BORDER_CONSTANT, borderValue=0)
    ox, oy = voxels.origin
    return VoxelSet((mask > 0) & (eroded == 0), (ox - 1, oy - 1))


def interior_2d(voxels: VoxelSet) -> VoxelSet:
    """Cells whose four neighbours are all in the set."""
    return voxels - boundary_2d(voxels)


def complement_2d(voxels: VoxelSet, bounds) -> VoxelSet:
    """Empty cells of the window *bounds*."""
    return VoxelSet.from_window(~voxels.window(bounds), bounds)


# ---------------------------------------------------------------------------
# 3D
# ---------------------------------------------------------------------------

def _layer_voxels(stack):
    """{index: VoxelSet or None} over the active range of *stack*.

    *stack* is a ``LayerStack`` or a plain mapping of index to VoxelSet.
    """
    if isinstance(stack, Mapping):
        if not stack:
            return {}
        lo, hi = min(stack), max(stack)
        return {i: stack.get(i, VoxelSet.empty()) for i in range(lo, hi + 1)}
    return {i: stack.layers[i].voxels for i in range(stack.min_index, stack.max_index + 1)}


def _resolved(stack):
    by_layer = _layer_voxels(stack)
    missing = [i for i, v in by_layer.items() if v is None]
    if missing:
        logger.warning("3D boundary: layers %s not generated; treated as empty", missing)
    return {i: (v if v is not None else VoxelSet.empty()) for i, v in by_layer.items()}


def boundary_3d(stack, floating_bottom=True, floating_top=True) -> dict:
    """{layer index: boundary cells} over the active range.

    Layers outside the range, and layers never generated, count as empty.
    With ``floating_bottom=False`` the bottom layer rests on solid ground and
    its downward faces are not exposed; ``floating_top`` likewise for the top.
    """
    by_layer = _resolved(stack)
    if not by_layer:
        return {}
    lo, hi = min(by_layer), max(by_layer)
    empty = VoxelSet.empty()
    out = {}
    for i, voxels in by_layer.items():
        below = by_layer.get(i - 1, empty if floating_bottom or i != lo else voxels)
        above = by_layer.get(i + 1, empty if floating_top or i != hi else voxels)
        out[i] = boundary_2d(voxels) | (voxels - below) | (voxels - above)
    return out


def boundary_3d_cells(stack, floating_bottom=True, floating_top=True) -> frozenset:
    """Flat form of ``boundary_3d``: ``frozenset`` of ``(layer, (ix, iy))``."""
    return frozenset(
        (i, cell)
        for i, voxels in boundary_3d(stack, floating_bottom, floating_top).items()
        for cell in voxels
    )


def interior_3d(stack, floating_bottom=True, floating_top=True) -> dict:
    by_layer = _resolved(stack)
    exposed = boundary_3d(by_layer, floating_bottom, floating_top)
    return {i: by_layer[i] - exposed[i] for i in by_layer}
