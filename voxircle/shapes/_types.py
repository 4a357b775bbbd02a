"""Shared dataclasses for the shapes package (avoids circular imports)."""

import dataclasses
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from voxircle.config import HEURISTIC_MAP, HEURISTICS, PARAMETERS
from voxircle.errors import ConfigurationError
from voxircle.shapes import superellipse


class HeuristicKind(Enum):
    CENTERPOINT = HEURISTICS[0]
    CONSERVATIVE = HEURISTICS[1]
    CONTAINED = HEURISTICS[2]
    PERCENTAGE = HEURISTICS[3]


@dataclass(frozen=True)
class Heuristic:
    """Inclusion rule for a cell; only PERCENTAGE carries a threshold."""
    kind: HeuristicKind = HeuristicKind.CENTERPOINT
    threshold: Optional[float] = None

    def __post_init__(self):
        if self.kind is HeuristicKind.PERCENTAGE:
            error = PARAMETERS["threshold"].check(self.threshold)
            if error:
                raise ConfigurationError(error)
        elif self.threshold is not None:
            raise ConfigurationError(f"{self.kind.value} heuristic takes no threshold")

    @classmethod
    def centerpoint(cls):
        return cls(HeuristicKind.CENTERPOINT)

    @classmethod
    def conservative(cls):
        return cls(HeuristicKind.CONSERVATIVE)

    @classmethod
    def contained(cls):
        return cls(HeuristicKind.CONTAINED)

    @classmethod
    def percentage(cls, threshold: float):
        return cls(HeuristicKind.PERCENTAGE, threshold)

    @classmethod
    def parse(cls, text: str) -> "Heuristic":
        """Parse ``"conservative"`` or ``"percentage:0.5"`` style strings."""
        name, _, arg = text.strip().lower().partition(":")
        if name not in HEURISTIC_MAP:
            raise ConfigurationError(
                f"unknown heuristic {name!r}; expected one of {', '.join(HEURISTICS)}"
            )
        kind = HeuristicKind(name)
        if kind is HeuristicKind.PERCENTAGE:
            try:
                threshold = float(arg) if arg else PARAMETERS["threshold"].default
            except ValueError:
                raise ConfigurationError(f"invalid percentage threshold {arg!r}") from None
            return cls(kind, threshold)
        if arg:
            raise ConfigurationError(f"{name} heuristic takes no argument")
        return cls(kind)

    def __str__(self):
        if self.kind is HeuristicKind.PERCENTAGE:
            return f"{self.kind.value}:{self.threshold:g}"
        return self.kind.value


@dataclass(frozen=True)
class Shape:
    """Offset, tilted superellipse.  Immutable; replace it to change parameters."""
    center: Tuple[float, float] = (0.0, 0.0)
    radius_a: float = 5.0
    radius_b: float = 5.0
    tilt: float = 0.0                # radians
    squircle_param: float = 2.0      # p; math.inf is the square limit

    def __post_init__(self):
        object.__setattr__(self, "center", (float(self.center[0]), float(self.center[1])))
        checks = (
            ("center_x", self.center[0]),
            ("center_y", self.center[1]),
            ("radius_a", self.radius_a),
            ("radius_b", self.radius_b),
            ("tilt", self.tilt),
            ("squircle_param", self.squircle_param),
        )
        for name, value in checks:
            error = PARAMETERS[name].check(value)
            if error:
                raise ConfigurationError(error)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def implicit_value(self, x, y):
        return superellipse.implicit_value(
            x, y, self.center, self.radius_a, self.radius_b, self.tilt, self.squircle_param,
        )

    def contains_point(self, point) -> bool:
        return bool(self.implicit_value(point[0], point[1]) <= 1.0)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_square(self) -> bool:
        return math.isinf(self.squircle_param)

    @property
    def is_circle(self) -> bool:
        return (self.radius_a == self.radius_b
                and self.tilt == 0.0
                and self.squircle_param == 2.0)

    def extent(self):
        """Half width and half height of the axis-aligned bounding box."""
        return superellipse.half_extents(
            self.radius_a, self.radius_b, self.tilt, self.squircle_param,
        )

    def bounding_box(self, pad: float = 1.0):
        """((min_x, min_y), (max_x, max_y)), scaled about the centre by *pad*."""
        hx, hy = self.extent()
        cx, cy = self.center
        return (cx - pad * hx, cy - pad * hy), (cx + pad * hx, cy + pad * hy)


@dataclass
class LayerParams:
    """Editable parameter set of one layer."""
    center_x: float = PARAMETERS["center_x"].default
    center_y: float = PARAMETERS["center_y"].default
    radius_a: float = PARAMETERS["radius_a"].default
    radius_b: float = PARAMETERS["radius_b"].default
    tilt: float = PARAMETERS["tilt"].default
    squircle_param: float = PARAMETERS["squircle_param"].default
    threshold: float = PARAMETERS["threshold"].default
    heuristic_kind: HeuristicKind = field(default=HeuristicKind.CENTERPOINT)

    @property
    def heuristic(self) -> Heuristic:
        if self.heuristic_kind is HeuristicKind.PERCENTAGE:
            return Heuristic(self.heuristic_kind, self.threshold)
        return Heuristic(self.heuristic_kind)

    @heuristic.setter
    def heuristic(self, value: Heuristic):
        self.heuristic_kind = value.kind
        if value.threshold is not None:
            self.threshold = value.threshold

    def get(self, name: str) -> float:
        if name not in PARAMETERS:
            raise ConfigurationError(f"unknown parameter {name!r}")
        return getattr(self, name)

    def set(self, name: str, value: float) -> None:
        """Validate and assign one named parameter."""
        if name not in PARAMETERS:
            raise ConfigurationError(f"unknown parameter {name!r}")
        error = PARAMETERS[name].check(value)
        if error:
            raise ConfigurationError(error)
        setattr(self, name, float(value))

    def copy(self) -> "LayerParams":
        return dataclasses.replace(self)

    def to_shape(self) -> Shape:
        return Shape(
            center=(self.center_x, self.center_y),
            radius_a=self.radius_a,
            radius_b=self.radius_b,
            tilt=self.tilt,
            squircle_param=self.squircle_param,
        )
