"""
Global configuration: heuristic registry, parameter registry, shape presets.

Parameters are addressed by name everywhere (layer editing, code fields, the
CLI), so the registry below is the single place that knows which names exist
and what values each one accepts.
"""

import math
import numbers
from dataclasses import dataclass
from typing import Optional

# ---------------------------------------------------------------------------
# Heuristic registry
# ---------------------------------------------------------------------------

HEURISTICS = [
    "centerpoint",   # 0  cell centre inside the shape
    "conservative",  # 1  any overlap between cell and shape
    "contained",     # 2  cell entirely inside the shape
    "percentage",    # 3  overlap area >= threshold (circles only)
]

HEURISTIC_MAP = {name: i for i, name in enumerate(HEURISTICS)}

# ---------------------------------------------------------------------------
# Units & tolerances
# ---------------------------------------------------------------------------

STACK_SIZE = 64             # one "stack" of blocks

AREA_TOLERANCE = 1e-9       # slack on the percentage threshold comparison
CONSERVATIVE_TOLERANCE = 1e-9   # slack on the implicit value for overlap tests
SEARCH_ITERATIONS = 100     # ternary search steps along a cell edge

MAX_FORMULA_LENGTH = 1000   # characters in one code field

# Center offsets for the even/odd convention: an even shape is centred on a
# block corner, an odd one on a block centre.
CENTER_OFFSETS = {"even": 0.0, "odd": 0.5}

# ---------------------------------------------------------------------------
# Parameter registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParamSpec:
    name: str
    default: float
    require_finite: bool = True
    require_positive: bool = False
    upper: Optional[float] = None   # inclusive upper limit, if any

    def check(self, value):
        """Return an error message for *value*, or None if it is acceptable."""
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            return f"{self.name} must be a number, got {value!r}"
        value = float(value)
        if math.isnan(value):
            return f"{self.name} must not be NaN"
        if self.require_finite and not math.isfinite(value):
            return f"{self.name} must be finite, got {value}"
        if self.require_positive and value <= 0.0:
            return f"{self.name} must be positive, got {value}"
        if self.upper is not None and value > self.upper:
            return f"{self.name} must be at most {self.upper}, got {value}"
        return None


PARAMETERS = {
    spec.name: spec for spec in (
        ParamSpec("center_x", 0.0),
        ParamSpec("center_y", 0.0),
        ParamSpec("radius_a", 5.0, require_positive=True),
        ParamSpec("radius_b", 5.0, require_positive=True),
        ParamSpec("tilt", 0.0),
        # infinity is the square limit, so it is the one non-finite value allowed
        ParamSpec("squircle_param", 2.0, require_finite=False, require_positive=True),
        ParamSpec("threshold", 0.5, require_positive=True, upper=1.0),
    )
}

PARAM_NAMES = list(PARAMETERS)

# ---------------------------------------------------------------------------
# Shape presets
# ---------------------------------------------------------------------------

@dataclass
class ShapePreset:
    name: str
    squircle_param: float
    equal_radii: bool


PRESET_CIRCLE = ShapePreset(name="circle", squircle_param=2.0, equal_radii=True)
PRESET_ELLIPSE = ShapePreset(name="ellipse", squircle_param=2.0, equal_radii=False)
PRESET_DIAMOND = ShapePreset(name="diamond", squircle_param=1.0, equal_radii=False)
PRESET_SQUARE = ShapePreset(name="square", squircle_param=math.inf, equal_radii=False)
PRESET_SQUIRCLE = ShapePreset(name="squircle", squircle_param=4.0, equal_radii=False)

SHAPE_PRESETS = {
    p.name: p for p in (
        PRESET_CIRCLE, PRESET_ELLIPSE, PRESET_DIAMOND, PRESET_SQUARE, PRESET_SQUIRCLE,
    )
}
