"""
Voxel containers.

A ``VoxelSet`` is a set of integer cells ``(ix, iy)`` (cell ``(ix, iy)`` is
the unit square ``[ix, ix+1) x [iy, iy+1)``) stored as a boolean numpy mask
trimmed to its bounding box:

    mask[row, col]  <=>  cell (origin_x + col, origin_y + row)

Trimming makes the representation canonical, so two VoxelSets are equal iff
their origins and masks are equal.  A VoxelSet also compares equal to the
set or frozenset of its cells, and hashes like that frozenset.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np

Cell = Tuple[int, int]


@dataclass(frozen=True)
class GridBounds:
    """Inclusive cell range ``[min_x, max_x] x [min_y, max_y]``."""
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def shape(self) -> Tuple[int, int]:
        """(rows, cols) of a mask covering these bounds."""
        return self.height, self.width

    @classmethod
    def covering(cls, box, margin: int = 1) -> "GridBounds":
        """Cells touching the float box ``((x0, y0), (x1, y1))`` plus *margin*."""
        (x0, y0), (x1, y1) = box
        return cls(
            int(np.floor(x0)) - margin, int(np.floor(y0)) - margin,
            int(np.floor(x1)) + margin, int(np.floor(y1)) + margin,
        )

    def contains(self, cell: Cell) -> bool:
        return self.min_x <= cell[0] <= self.max_x and self.min_y <= cell[1] <= self.max_y

    def union(self, other: "GridBounds") -> "GridBounds":
        return GridBounds(min(self.min_x, other.min_x), min(self.min_y, other.min_y),
                          max(self.max_x, other.max_x), max(self.max_y, other.max_y))

    def intersection(self, other: "GridBounds") -> Optional["GridBounds"]:
        out = GridBounds(max(self.min_x, other.min_x), max(self.min_y, other.min_y),
                         min(self.max_x, other.max_x), min(self.max_y, other.max_y))
        if out.min_x > out.max_x or out.min_y > out.max_y:
            return None
        return out

    def pad(self, n: int = 1) -> "GridBounds":
        return GridBounds(self.min_x - n, self.min_y - n, self.max_x + n, self.max_y + n)


class VoxelSet:
    """Immutable set of grid cells backed by a trimmed boolean mask."""

    __slots__ = ("_mask", "_origin")

    def __init__(self, mask=None, origin: Cell = (0, 0)):
        mask = np.zeros((0, 0), dtype=bool) if mask is None else np.array(mask, dtype=bool)
        if mask.ndim != 2:
            raise ValueError(f"mask must be 2-D, got shape {mask.shape}")
        ox, oy = int(origin[0]), int(origin[1])

        rows = np.flatnonzero(mask.any(axis=1))
        cols = np.flatnonzero(mask.any(axis=0))
        if rows.size == 0:
            mask = np.zeros((0, 0), dtype=bool)
            ox, oy = 0, 0
        else:
            mask = mask[rows[0]:rows[-1] + 1, cols[0]:cols[-1] + 1].copy()
            ox, oy = ox + int(cols[0]), oy + int(rows[0])
        mask.setflags(write=False)
        self._mask = mask
        self._origin = (ox, oy)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls) -> "VoxelSet":
        return cls()

    @classmethod
    def from_cells(cls, cells: Iterable[Cell]) -> "VoxelSet":
        cells = np.array(list(cells), dtype=np.int64).reshape(-1, 2)
        if len(cells) == 0:
            return cls()
        ox, oy = cells.min(axis=0)
        mx, my = cells.max(axis=0)
        mask = np.zeros((my - oy + 1, mx - ox + 1), dtype=bool)
        mask[cells[:, 1] - oy, cells[:, 0] - ox] = True
        return cls(mask, (ox, oy))

    @classmethod
    def from_window(cls, mask, bounds: GridBounds) -> "VoxelSet":
        return cls(mask, (bounds.min_x, bounds.min_y))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def mask(self) -> np.ndarray:
        return self._mask

    @property
    def origin(self) -> Cell:
        return self._origin

    def bounds(self) -> Optional[GridBounds]:
        if not self._mask.size:
            return None
        ox, oy = self._origin
        rows, cols = self._mask.shape
        return GridBounds(ox, oy, ox + cols - 1, oy + rows - 1)

    def window(self, bounds: GridBounds) -> np.ndarray:
        """Writable copy of the mask re-expressed on *bounds*."""
        out = np.zeros(bounds.shape, dtype=bool)
        own = self.bounds()
        if own is None:
            return out
        common = own.intersection(bounds)
        if common is None:
            return out
        ox, oy = self._origin
        out[common.min_y - bounds.min_y:common.max_y - bounds.min_y + 1,
            common.min_x - bounds.min_x:common.max_x - bounds.min_x + 1] = \
            self._mask[common.min_y - oy:common.max_y - oy + 1,
                       common.min_x - ox:common.max_x - ox + 1]
        return out

    def cells(self) -> frozenset:
        return frozenset(self)

    # ------------------------------------------------------------------
    # Set protocol
    # ------------------------------------------------------------------

    def __len__(self):
        return int(np.count_nonzero(self._mask))

    def __bool__(self):
        return bool(self._mask.any())

    def __iter__(self):
        rows, cols = np.nonzero(self._mask)
        ox, oy = self._origin
        return iter(sorted(zip((cols + ox).tolist(), (rows + oy).tolist())))

    def __contains__(self, cell):
        ox, oy = self._origin
        col, row = cell[0] - ox, cell[1] - oy
        rows, cols = self._mask.shape
        return 0 <= row < rows and 0 <= col < cols and bool(self._mask[row, col])

    def __eq__(self, other):
        if isinstance(other, VoxelSet):
            return self._origin == other._origin and np.array_equal(self._mask, other._mask)
        if isinstance(other, (set, frozenset)):
            return self.cells() == other
        return NotImplemented

    def __hash__(self):
        # same value as the hash of the equal frozenset of cells
        return hash(self.cells())

    def __repr__(self):
        return f"VoxelSet({len(self)} cells, bounds={self.bounds()})"

    def _combined(self, other: "VoxelSet", op) -> "VoxelSet":
        own, theirs = self.bounds(), other.bounds()
        if own is None and theirs is None:
            return VoxelSet()
        bounds = own.union(theirs) if own and theirs else (own or theirs)
        return VoxelSet.from_window(op(self.window(bounds), other.window(bounds)), bounds)

    def union(self, other: "VoxelSet") -> "VoxelSet":
        return self._combined(other, np.logical_or)

    def intersection(self, other: "VoxelSet") -> "VoxelSet":
        return self._combined(other, np.logical_and)

    def difference(self, other: "VoxelSet") -> "VoxelSet":
        return self._combined(other, lambda a, b: a & ~b)

    def issubset(self, other: "VoxelSet") -> bool:
        return not self.difference(other)

    # ------------------------------------------------------------------
    # Grid symmetries about the corner (0, 0)
    # ------------------------------------------------------------------

    def transform(self, kind: str) -> "VoxelSet":
        """Apply a grid symmetry fixing the lattice point (0, 0).

        ``flip_x``: (ix, iy) -> (-ix-1, iy); ``flip_y``: (ix, iy) -> (ix, -iy-1);
        ``transpose``: (ix, iy) -> (iy, ix); ``rot90`` (counter-clockwise):
        (ix, iy) -> (-iy-1, ix); ``rot180``: (ix, iy) -> (-ix-1, -iy-1).
        """
        if not self:
            return self
        ox, oy = self._origin
        rows, cols = self._mask.shape
        if kind == "flip_x":
            return VoxelSet(self._mask[:, ::-1], (-ox - cols, oy))
        if kind == "flip_y":
            return VoxelSet(self._mask[::-1, :], (ox, -oy - rows))
        if kind == "transpose":
            return VoxelSet(self._mask.T, (oy, ox))
        if kind == "rot90":
            return self.transform("transpose").transform("flip_x")
        if kind == "rot180":
            return self.transform("flip_x").transform("flip_y")
        raise ValueError(f"unknown transform {kind!r}")

    __or__ = union
    __and__ = intersection
    __sub__ = difference
    __le__ = issubset
