"""
Voxelizer: classify unit grid cells against a Shape.

All work is vectorized with numpy over a candidate window of cells (the
shape's bounding box in whole cells plus a one-cell margin).  Cell
``(ix, iy)`` is the unit square with lower-left corner ``(ix, iy)``; the
window is laid out as ``mask[row, col]`` with ``row = iy - min_y`` and
``col = ix - min_x``.

Heuristics:

    centerpoint   cell centre inside the shape
    conservative  closed cell and closed shape intersect
    contained     closed cell entirely inside the shape
    percentage    exact overlap area with a circle >= threshold

Conservative and contained are decided per cell edge.  A superellipse is
star-shaped about its centre, so a cell meets it iff the centre lies in the
cell or one of the four edges meets it.  Along an edge the normalized local
coordinates ``(u, v)`` are affine in the edge parameter ``t``, so the
implicit value is convex in ``t`` for ``p >= 1`` and concave between the
zero crossings of ``u`` and ``v`` for ``p < 1``.
"""

import logging
import math

import numpy as np

from voxircle.config import AREA_TOLERANCE, CONSERVATIVE_TOLERANCE, SEARCH_ITERATIONS
from voxircle.errors import ConfigurationError
from voxircle.shapes import Heuristic, HeuristicKind
from voxircle.shapes.superellipse import pnorm, to_local
from voxircle.voxels import GridBounds, VoxelSet

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Grids
# ---------------------------------------------------------------------------

def candidate_bounds(shape, bounds_hint=None):
    """Cells that may be classified as inside, clipped to *bounds_hint*."""
    bounds = GridBounds.covering(shape.bounding_box(), margin=1)
    if bounds_hint is not None:
        bounds = bounds.intersection(bounds_hint)
    return bounds


def _cell_grid(bounds):
    """Lower-left corners of every cell, as (X, Y) arrays of mask shape."""
    xs = np.arange(bounds.min_x, bounds.max_x + 1, dtype=np.float64)
    ys = np.arange(bounds.min_y, bounds.max_y + 1, dtype=np.float64)
    return np.meshgrid(xs, ys)


def _corner_grid(shape, bounds):
    """Normalized local coordinates and implicit values at every cell corner.

    Arrays have shape ``(rows + 1, cols + 1)``.
    """
    xs = np.arange(bounds.min_x, bounds.max_x + 2, dtype=np.float64)
    ys = np.arange(bounds.min_y, bounds.max_y + 2, dtype=np.float64)
    X, Y = np.meshgrid(xs, ys)
    lx, ly = to_local(X, Y, shape.center, shape.tilt)
    U, V = lx / shape.radius_a, ly / shape.radius_b
    return U, V, pnorm(U, V, shape.squircle_param)


def _edge_steps(shape):
    """Change of (u, v) along a unit step in +x and in +y."""
    c, s = math.cos(shape.tilt), math.sin(shape.tilt)
    a, b = shape.radius_a, shape.radius_b
    return (c / a, -s / b), (s / a, c / b)


# ---------------------------------------------------------------------------
# Extremes of the implicit value along an edge
# ---------------------------------------------------------------------------

def _ternary_search(f, lo, hi, maximize=False):
    """Fixed-iteration ternary search of a unimodal f on [lo, hi] (arrays)."""
    sign = -1.0 if maximize else 1.0
    for _ in range(SEARCH_ITERATIONS):
        third = (hi - lo) / 3.0
        m1, m2 = lo + third, hi - third
        right = sign * f(m1) > sign * f(m2)
        lo = np.where(right, m1, lo)
        hi = np.where(right, hi, m2)
    return f(0.5 * (lo + hi))


def _zero_crossings(u0, v0, du, dv):
    """Edge parameters where u and v change sign, clipped to [0, 1]."""
    out = []
    for w0, dw in ((u0, du), (v0, dv)):
        if dw == 0.0:
            out.append(np.zeros_like(w0))
        else:
            out.append(np.clip(-w0 / dw, 0.0, 1.0))
    return out


def _edge_min(u0, v0, du, dv, p):
    def f(t):
        return pnorm(u0 + t * du, v0 + t * dv, p)

    zeros, ones = np.zeros_like(u0), np.ones_like(u0)
    if p >= 1.0:
        return np.minimum(_ternary_search(f, zeros, ones), np.minimum(f(zeros), f(ones)))
    # concave pieces: the minimum sits on a piece endpoint
    candidates = [zeros, ones] + _zero_crossings(u0, v0, du, dv)
    return np.min([f(t) for t in candidates], axis=0)


def _edge_max(u0, v0, du, dv, p):
    """Maximum along edges for p < 1 (concave between zero crossings)."""
    def f(t):
        return pnorm(u0 + t * du, v0 + t * dv, p)

    zeros, ones = np.zeros_like(u0), np.ones_like(u0)
    tu, tv = _zero_crossings(u0, v0, du, dv)
    b1, b2 = np.minimum(tu, tv), np.maximum(tu, tv)
    best = np.maximum(f(zeros), f(ones))
    for lo, hi in ((zeros, b1), (b1, b2), (b2, ones)):
        best = np.maximum(best, _ternary_search(f, lo, hi, maximize=True))
    return best


def _edges_touch(u0, v0, f_start, f_end, step, p, limit):
    """Boolean array: the edge meets the (closed) shape."""
    du, dv = step
    touch = (f_start <= limit) | (f_end <= limit)
    todo = ~touch
    if p >= 1.0:
        # triangle inequality: f never drops more than |step| along the edge
        reach = pnorm(du, dv, p)
        todo &= np.minimum(f_start, f_end) - reach <= limit
    if todo.any():
        touch[todo] = _edge_min(u0[todo], v0[todo], du, dv, p) <= limit
    return touch


def _edges_inside(u0, v0, f_start, f_end, step, p):
    """Boolean array: the whole edge lies in the shape."""
    du, dv = step
    inside = (f_start <= 1.0) & (f_end <= 1.0)
    if p < 1.0 and inside.any():
        inside[inside] = _edge_max(u0[inside], v0[inside], du, dv, p) <= 1.0
    return inside


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------

def _centerpoint(shape, bounds):
    X, Y = _cell_grid(bounds)
    if shape.squircle_param == 2.0 and shape.tilt == 0.0:
        # cleared of divisions, so centres exactly on the ellipse stay inside
        a, b = shape.radius_a, shape.radius_b
        dx, dy = X + 0.5 - shape.center[0], Y + 0.5 - shape.center[1]
        return (dx * b) ** 2 + (dy * a) ** 2 <= (a * b) ** 2
    return shape.implicit_value(X + 0.5, Y + 0.5) <= 1.0


def _conservative(shape, bounds):
    p = shape.squircle_param
    U, V, F = _corner_grid(shape, bounds)
    step_x, step_y = _edge_steps(shape)
    limit = 1.0 + CONSERVATIVE_TOLERANCE

    # horizontal edges: (rows + 1, cols); vertical edges: (rows, cols + 1)
    h = _edges_touch(U[:, :-1], V[:, :-1], F[:, :-1], F[:, 1:], step_x, p, limit)
    v = _edges_touch(U[:-1, :], V[:-1, :], F[:-1, :], F[1:, :], step_y, p, limit)

    X, Y = _cell_grid(bounds)
    cx, cy = shape.center
    holds_center = (X <= cx) & (cx <= X + 1.0) & (Y <= cy) & (cy <= Y + 1.0)
    return holds_center | h[:-1, :] | h[1:, :] | v[:, :-1] | v[:, 1:]


def _contained(shape, bounds):
    p = shape.squircle_param
    U, V, F = _corner_grid(shape, bounds)
    inside = F <= 1.0
    cells = inside[:-1, :-1] & inside[:-1, 1:] & inside[1:, :-1] & inside[1:, 1:]
    if p >= 1.0:
        return cells

    step_x, step_y = _edge_steps(shape)
    h = _edges_inside(U[:, :-1], V[:, :-1], F[:, :-1], F[:, 1:], step_x, p)
    v = _edges_inside(U[:-1, :], V[:-1, :], F[:-1, :], F[1:, :], step_y, p)
    return cells & h[:-1, :] & h[1:, :] & v[:, :-1] & v[:, 1:]


def _percentage(shape, bounds, threshold):
    X, Y = _cell_grid(bounds)
    area = cell_disk_area(shape.center, shape.radius_a, X, Y)
    return area >= threshold - AREA_TOLERANCE


_CLASSIFIERS = {
    HeuristicKind.CENTERPOINT: _centerpoint,
    HeuristicKind.CONSERVATIVE: _conservative,
    HeuristicKind.CONTAINED: _contained,
}


# ---------------------------------------------------------------------------
# Exact cell / disk intersection area
# ---------------------------------------------------------------------------

def _segment_primitive(x, h, r):
    """Antiderivative of ``sqrt(r^2 - x^2) - h``."""
    root = np.sqrt(np.maximum(r * r - x * x, 0.0))
    return 0.5 * (x * root + r * r * np.arcsin(np.clip(x / r, -1.0, 1.0))) - h * x


def _cap_area(x0, x1, h, r):
    """Area of the disk (centred at 0) inside ``x0 <= x <= x1, y >= h``, h >= 0."""
    half_chord = np.sqrt(np.maximum(r * r - h * h, 0.0))
    a = np.clip(x0, -half_chord, half_chord)
    b = np.clip(x1, -half_chord, half_chord)
    return _segment_primitive(b, h, r) - _segment_primitive(a, h, r)


def _band_area(x0, x1, h0, h1, r):
    """Area of the disk inside ``[x0, x1] x [h0, h1]`` with 0 <= h0 <= h1."""
    return _cap_area(x0, x1, h0, r) - _cap_area(x0, x1, h1, r)


def cell_disk_area(center, radius, ix, iy):
    """Exact area of cell(s) ``(ix, iy)`` covered by a disk.

    Scalars or numpy arrays; returns a float for scalar cells.  The cell is
    split at the disk's horizontal diameter and the lower half mirrored up,
    so only strips above the centre line are ever integrated.
    """
    x0 = np.asarray(ix, dtype=np.float64) - center[0]
    y0 = np.asarray(iy, dtype=np.float64) - center[1]
    x1, y1 = x0 + 1.0, y0 + 1.0
    r = float(radius)
    upper = _band_area(x0, x1, np.maximum(y0, 0.0), np.maximum(y1, 0.0), r)
    lower = _band_area(x0, x1, np.maximum(-y1, 0.0), np.maximum(-y0, 0.0), r)
    area = upper + lower
    if np.ndim(ix) == 0 and np.ndim(iy) == 0:
        return float(area)
    return area


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def voxelize(shape, heuristic=None, bounds_hint=None) -> VoxelSet:
    """Classify every candidate cell and return the included ones.

    Args:
        shape: the ``Shape`` to approximate.
        heuristic: a ``Heuristic``; centerpoint when omitted.
        bounds_hint: optional ``GridBounds`` restricting the cells examined.

    Raises:
        ConfigurationError: percentage heuristic on a non-circle.
    """
    heuristic = heuristic or Heuristic.centerpoint()
    if heuristic.kind is HeuristicKind.PERCENTAGE and not shape.is_circle:
        raise ConfigurationError(
            "percentage heuristic requires a circle (equal radii, no tilt, p = 2)"
        )

    bounds = candidate_bounds(shape, bounds_hint)
    if bounds is None:
        return VoxelSet.empty()

    if heuristic.kind is HeuristicKind.PERCENTAGE:
        mask = _percentage(shape, bounds, heuristic.threshold)
    else:
        mask = _CLASSIFIERS[heuristic.kind](shape, bounds)

    voxels = VoxelSet.from_window(mask, bounds)
    logger.debug("voxelized %s with %s: %d cells in %dx%d window",
                 shape, heuristic, len(voxels), bounds.width, bounds.height)
    return voxels


def voxelize_layer_params(params, bounds_hint=None) -> VoxelSet:
    return voxelize(params.to_shape(), params.heuristic, bounds_hint)
