"""
Build sequence: the outline of a layer as pieces placed one after another.

The 2D boundary splits into pieces, its 4-connected components.  Pieces
only ever touch diagonally, and walking from piece to touching piece goes
round the outline.  Consecutive pieces of the same form (equal up to
translation, rotation and reflection) are grouped, so one eighth of a
circle reads like ``5, 3, 2x 2, 1x1 ...``: a run of five, a run of three,
two runs of two, and so on.

Usage::

    from voxircle.build import build_sequence
    for step in build_sequence(voxelize(circle(9.5))):
        print(step.count, step.label)
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

import cv2
import numpy as np

from voxircle.boundary import boundary_2d
from voxircle.metrics import center_coord
from voxircle.voxels import VoxelSet

logger = logging.getLogger(__name__)

_SQUARE = np.ones((3, 3), dtype=np.uint8)

SYMMETRIES = (
    (),
    ("rot90",),
    ("rot180",),
    ("rot180", "rot90"),
    ("flip_x",),
    ("flip_y",),
    ("transpose",),
    ("rot180", "transpose"),
)


def outline_pieces(voxels: VoxelSet) -> List[VoxelSet]:
    """4-connected components of the 2D boundary, in no particular order."""
    edge = boundary_2d(voxels)
    if not edge:
        return []
    n, labels = cv2.connectedComponents(edge.mask.astype(np.uint8), connectivity=4)
    return [VoxelSet(labels == k, edge.origin) for k in range(1, n)]


def normal_form(piece: VoxelSet) -> VoxelSet:
    """Canonical representative of *piece* under the grid symmetries.

    The result has its lower-left bounding corner at (0, 0) and is the image
    with the smallest sorted cell list among all rotations and reflections.
    """
    if not piece:
        return piece
    best, best_key = None, None
    for kinds in SYMMETRIES:
        image = piece
        for kind in kinds:
            image = image.transform(kind)
        moved = VoxelSet(image.mask, (0, 0))
        key = (moved.mask.shape, tuple(moved))
        if best_key is None or key < best_key:
            best, best_key = moved, key
    return best


def weak_connections(pieces: List[VoxelSet]) -> List[Tuple[int, int]]:
    """Pairs ``(i, j)``, ``i < j``, of pieces sharing at least a corner."""
    grown = []
    for piece in pieces:
        mask = np.pad(piece.mask, 1).astype(np.uint8)
        ox, oy = piece.origin
        grown.append(VoxelSet(cv2.dilate(mask, _SQUARE) > 0, (ox - 1, oy - 1)))
    return [(i, j) for i in range(len(pieces)) for j in range(i + 1, len(pieces))
            if grown[i] & pieces[j]]


def _centroid(piece):
    cells = np.array(list(piece), dtype=np.float64)
    return tuple(cells.mean(axis=0) + 0.5)


def build_order(pieces: List[VoxelSet], center) -> List[int]:
    """Indices of *pieces* walked counter-clockwise round *center*.

    The walk starts at the piece closest to the +x axis and steps to the
    touching piece that advances least counter-clockwise; when no touching
    piece is left it jumps to the next piece by angle.
    """
    if not pieces:
        return []
    cx, cy = center
    angles = []
    for piece in pieces:
        px, py = _centroid(piece)
        angles.append(math.atan2(py - cy, px - cx) % (2.0 * math.pi))

    neighbours = {i: set() for i in range(len(pieces))}
    for i, j in weak_connections(pieces):
        neighbours[i].add(j)
        neighbours[j].add(i)

    def advance(i, j):
        return (angles[j] - angles[i]) % (2.0 * math.pi)

    current = min(range(len(pieces)), key=lambda i: (angles[i], i))
    order, left = [current], set(range(len(pieces))) - {current}
    while left:
        candidates = (neighbours[current] & left) or left
        current = min(candidates, key=lambda j: (advance(current, j), j))
        order.append(current)
        left.discard(current)
    return order


@dataclass
class BuildStep:
    piece: VoxelSet     # normal form
    count: int          # consecutive placements of this piece

    @property
    def label(self) -> str:
        """Run length for a straight 1-wide piece, else its size."""
        rows, cols = self.piece.mask.shape
        if min(rows, cols) == 1:
            return str(max(rows, cols))
        return f"{cols}x{rows} ({len(self.piece)} blocks)"

    def __str__(self):
        return f"{self.count}x {self.label}" if self.count > 1 else self.label


def build_sequence(voxels: VoxelSet) -> List[BuildStep]:
    """Outline pieces of *voxels* in walking order, equal neighbours grouped."""
    pieces = outline_pieces(voxels)
    if not pieces:
        return []
    steps: List[BuildStep] = []
    for i in build_order(pieces, center_coord(voxels)):
        form = normal_form(pieces[i])
        if steps and steps[-1].piece == form:
            steps[-1].count += 1
        else:
            steps.append(BuildStep(form, 1))
    logger.debug("build sequence: %d pieces in %d steps", len(pieces), len(steps))
    return steps
