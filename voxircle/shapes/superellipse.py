"""
Implicit-function helpers for offset, tilted superellipses.

A superellipse with radii ``(a, b)``, tilt ``theta`` and exponent ``p`` is

    { q : || M (q - c) ||_p <= 1 },    M = diag(1/a, 1/b) . R(-theta)

All helpers accept scalars or numpy arrays.  The p-"norm" is evaluated after
scaling by the larger coordinate so that huge exponents (p -> infinity) never
overflow; ``p == inf`` is handled explicitly as the max norm.
"""

import math

import numpy as np


def _as_result(out, *inputs):
    """Return a Python float when every input was a scalar."""
    if all(np.ndim(x) == 0 for x in inputs):
        return float(out)
    return out


def pnorm(u, v, p):
    """``(|u|^p + |v|^p)^(1/p)`` for any p > 0, ``max(|u|, |v|)`` for p = inf."""
    au = np.abs(np.asarray(u, dtype=np.float64))
    av = np.abs(np.asarray(v, dtype=np.float64))
    m = np.maximum(au, av)
    if math.isinf(p):
        return _as_result(m, u, v)
    with np.errstate(divide="ignore", invalid="ignore", under="ignore"):
        su = np.where(m > 0, au / np.where(m > 0, m, 1.0), 0.0)
        sv = np.where(m > 0, av / np.where(m > 0, m, 1.0), 0.0)
        out = m * (su ** p + sv ** p) ** (1.0 / p)
    return _as_result(out, u, v)


def dual_norm(u, v, p):
    """Norm dual to the p-norm, i.e. the support function of the unit p-ball.

    For p < 1 the unit ball is not convex; its convex hull is the diamond,
    whose support function is the max norm.
    """
    if p <= 1.0:
        return pnorm(u, v, math.inf)
    if math.isinf(p):
        return pnorm(u, v, 1.0)
    return pnorm(u, v, p / (p - 1.0))


def to_local(x, y, center, tilt):
    """Translate by -center and rotate by -tilt into shape-local axes."""
    c, s = math.cos(tilt), math.sin(tilt)
    dx = np.asarray(x, dtype=np.float64) - center[0]
    dy = np.asarray(y, dtype=np.float64) - center[1]
    return c * dx + s * dy, -s * dx + c * dy


def implicit_value(x, y, center, radius_a, radius_b, tilt, p):
    """Value of the implicit function at (x, y); the shape is ``<= 1``."""
    lx, ly = to_local(x, y, center, tilt)
    return _as_result(pnorm(lx / radius_a, ly / radius_b, p), x, y)


def half_extents(radius_a, radius_b, tilt, p):
    """Exact half width and half height of the axis-aligned bounding box."""
    c, s = abs(math.cos(tilt)), abs(math.sin(tilt))
    half_x = dual_norm(radius_a * c, radius_b * s, p)
    half_y = dual_norm(radius_a * s, radius_b * c, p)
    return half_x, half_y
