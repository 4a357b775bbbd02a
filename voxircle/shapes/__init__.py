"""
Shape model for voxircle.

Every preset constructor returns a ``Shape``: an immutable offset, tilted
superellipse.  The named presets cover the common cases; ``squircle`` takes
an arbitrary exponent.

Usage::

    from voxircle.shapes import circle, squircle
    disc = circle(2.5)
    blob = squircle(4.0, 2.0, p=0.7, tilt=0.3, center=(0.5, 0.5))
"""

import math

from voxircle.config import CENTER_OFFSETS, SHAPE_PRESETS
from voxircle.errors import ConfigurationError
from voxircle.shapes._types import Heuristic, HeuristicKind, LayerParams, Shape  # noqa: F401


def circle(radius, center=(0.0, 0.0)) -> Shape:
    return Shape(center=center, radius_a=radius, radius_b=radius)


def ellipse(radius_a, radius_b, tilt=0.0, center=(0.0, 0.0)) -> Shape:
    return Shape(center=center, radius_a=radius_a, radius_b=radius_b, tilt=tilt)


def diamond(radius_a, radius_b=None, tilt=0.0, center=(0.0, 0.0)) -> Shape:
    radius_b = radius_a if radius_b is None else radius_b
    return Shape(center=center, radius_a=radius_a, radius_b=radius_b, tilt=tilt,
                 squircle_param=1.0)


def square(radius_a, radius_b=None, tilt=0.0, center=(0.0, 0.0)) -> Shape:
    radius_b = radius_a if radius_b is None else radius_b
    return Shape(center=center, radius_a=radius_a, radius_b=radius_b, tilt=tilt,
                 squircle_param=math.inf)


def squircle(radius_a, radius_b, p, tilt=0.0, center=(0.0, 0.0)) -> Shape:
    return Shape(center=center, radius_a=radius_a, radius_b=radius_b, tilt=tilt,
                 squircle_param=p)


def line(rise=1.0, run=2.0, thickness=1.0, length=10.0, center=(0.0, 0.0)) -> Shape:
    """Thick segment of slope rise/run, centred on *center*.

    The segment is the rectangle reaching ``length / 2`` along the direction
    ``(run, rise)`` and ``thickness / 2`` across it, i.e. a square-limit
    superellipse tilted onto the line.
    """
    if rise == 0 and run == 0:
        raise ConfigurationError("line needs a direction: rise and run are both 0")
    return Shape(center=center, radius_a=length / 2.0, radius_b=thickness / 2.0,
                 tilt=math.atan2(rise, run), squircle_param=math.inf)


def from_preset(name, radius_a, radius_b=None, tilt=0.0, parity="even") -> Shape:
    """Build a preset shape centred on a block corner (even) or centre (odd)."""
    try:
        preset = SHAPE_PRESETS[name]
        offset = CENTER_OFFSETS[parity]
    except KeyError as e:
        raise ConfigurationError(f"unknown preset or parity: {e.args[0]!r}") from None
    if preset.equal_radii or radius_b is None:
        radius_b = radius_a
    return Shape(center=(offset, offset), radius_a=radius_a, radius_b=radius_b,
                 tilt=tilt, squircle_param=preset.squircle_param)
