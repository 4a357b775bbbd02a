"""
Layer-indexed formulas for shape parameters.

A code field holds a formula in the layer index, e.g. ``5 + 0.5 * layer`` or
``sqrt(100 - l**2)``.  Formulas use Python expression syntax restricted by
an AST whitelist: numeric constants, the names ``layer`` / ``l`` and the
constants ``pi``, ``e``, ``tau``, arithmetic, comparisons, conditional
expressions and a fixed table of math functions.  All arithmetic is done in
floats, so huge powers overflow instead of building giant integers.

Validity of a code field moves through ``ValidityState``::

    EMPTY --set text--> RUNNABLE --run--> EVALUATED_OK / EVALUATED_FAILED
      \\--bad text--> PARSE_ERROR
"""

import ast
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from voxircle.config import MAX_FORMULA_LENGTH, PARAMETERS
from voxircle.errors import ConfigurationError, EvaluationError, ParseError

logger = logging.getLogger(__name__)


class ValidityState(Enum):
    EMPTY = "empty"
    PARSE_ERROR = "parse_error"
    RUNNABLE = "runnable"
    EVALUATED_OK = "evaluated_ok"
    EVALUATED_FAILED = "evaluated_failed"

    @property
    def feedback(self) -> str:
        """Colour key shown next to the field."""
        return _FEEDBACK[self]


_FEEDBACK = {
    ValidityState.EMPTY: "unset",
    ValidityState.PARSE_ERROR: "error",
    ValidityState.RUNNABLE: "pending",
    ValidityState.EVALUATED_OK: "success",
    ValidityState.EVALUATED_FAILED: "partial",
}


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------

LAYER_NAMES = ("layer", "l")

CONSTANTS = {"pi": math.pi, "e": math.e, "tau": math.tau}

FUNCTIONS = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "atan2": math.atan2,
    "exp": math.exp,
    "log": math.log,
    "log10": math.log10,
    "abs": abs,
    "min": min,
    "max": max,
    "floor": math.floor,
    "ceil": math.ceil,
    "round": round,
    "hypot": math.hypot,
    "radians": math.radians,
    "degrees": math.degrees,
}

ALLOWED_NODES = (
    ast.Expression, ast.BinOp, ast.UnaryOp, ast.BoolOp, ast.Compare, ast.IfExp,
    ast.Call, ast.Name, ast.Load, ast.Constant,
    ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod, ast.Pow,
    ast.UAdd, ast.USub, ast.Not, ast.And, ast.Or,
    ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE,
)


class _FloatConstants(ast.NodeTransformer):
    def visit_Constant(self, node):
        if isinstance(node.value, int) and not isinstance(node.value, bool):
            return ast.copy_location(ast.Constant(float(node.value)), node)
        return node


def _check_tree(tree, text):
    for node in ast.walk(tree):
        offset = getattr(node, "col_offset", None)
        if not isinstance(node, ALLOWED_NODES):
            raise ParseError(f"unsupported syntax: {type(node).__name__}", text, offset)
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise ParseError(f"unsupported constant {node.value!r}", text, offset)
        elif isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
                name = getattr(node.func, "id", type(node.func).__name__)
                raise ParseError(f"unknown function {name!r}", text, offset)
            if node.keywords:
                raise ParseError("keyword arguments are not supported", text, offset)
        elif isinstance(node, ast.Name):
            if node.id not in LAYER_NAMES and node.id not in CONSTANTS \
                    and node.id not in FUNCTIONS:
                raise ParseError(f"unknown name {node.id!r}", text, offset)


# ---------------------------------------------------------------------------
# Expression
# ---------------------------------------------------------------------------

@dataclass
class Expression:
    text: str = ""
    state: ValidityState = ValidityState.EMPTY
    error: Optional[str] = None
    code: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def from_text(cls, text: str) -> "Expression":
        """Like ``compile_expression`` but records a parse failure instead of raising."""
        try:
            return compile_expression(text)
        except ParseError as e:
            return cls(text=text, state=ValidityState.PARSE_ERROR, error=e.format())

    @property
    def is_empty(self) -> bool:
        return self.state is ValidityState.EMPTY

    def evaluate(self, layer: float) -> float:
        """Value of the formula at *layer* (an index or a sample height).

        Raises:
            ParseError: the text did not compile.
            EvaluationError: empty formula, arithmetic error, or a result
                that is not a finite number.
        """
        if self.state is ValidityState.PARSE_ERROR:
            raise ParseError(self.error or "invalid expression", self.text)
        if self.code is None:
            raise EvaluationError("expression is empty", layer)

        env = dict(CONSTANTS)
        env.update(FUNCTIONS)
        env.update({name: float(layer) for name in LAYER_NAMES})
        try:
            out = eval(self.code, {"__builtins__": {}}, env)
        except (ArithmeticError, ValueError, TypeError) as e:
            raise EvaluationError(f"layer {layer:g}: {e}", layer) from e

        if not isinstance(out, (int, float)):
            raise EvaluationError(f"layer {layer:g}: result {out!r} is not a number", layer)
        value = float(out)
        if not math.isfinite(value):
            raise EvaluationError(f"layer {layer:g}: result {value} is not finite", layer)
        return value


def compile_expression(text: str) -> Expression:
    """Compile formula *text*; blank text gives the EMPTY expression.

    Raises:
        ParseError: malformed, overlong or too deeply nested text, unknown
            names or functions.
    """
    text = "" if text is None else str(text)
    source = text.strip()
    if not source:
        return Expression(text=text)
    if len(source) > MAX_FORMULA_LENGTH:
        raise ParseError(
            f"formula is {len(source)} characters long, limit is {MAX_FORMULA_LENGTH}", source[:40]
        )
    try:
        tree = ast.parse(source, mode="eval")
        _check_tree(tree, source)
        tree = ast.fix_missing_locations(_FloatConstants().visit(tree))
        code = compile(tree, "<formula>", "eval")
    except SyntaxError as e:
        offset = e.offset - 1 if e.offset else None
        raise ParseError(f"syntax error: {e.msg}", source, offset) from None
    except OverflowError:
        raise ParseError("integer literal too large for a float", source) from None
    except ValueError as e:
        # null bytes and similar source the parser refuses
        raise ParseError(f"invalid formula: {e}", source) from None
    except (RecursionError, MemoryError):
        raise ParseError("formula is nested too deeply", source) from None
    return Expression(text=text, state=ValidityState.RUNNABLE, code=code)


# ---------------------------------------------------------------------------
# Applying to a stack
# ---------------------------------------------------------------------------

@dataclass
class ApplyResult:
    param: str
    written: Dict[int, float] = field(default_factory=dict)
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def apply_to_stack(expr: Expression, param: str, stack) -> ApplyResult:
    """Evaluate *expr* for every active layer and write *param* where it succeeds.

    Layers where evaluation fails, or where the value violates the
    parameter's constraints, keep their old value and are listed in
    ``ApplyResult.failed``.  An empty expression changes nothing.

    When the stack samples each layer more than once, the formula is also
    evaluated at every sample height of the layer and those values are
    stored with it; a failure at any height fails the whole layer.
    """
    if param not in PARAMETERS:
        raise ConfigurationError(f"unknown parameter {param!r}")
    result = ApplyResult(param)
    if expr.is_empty:
        return result
    if expr.state is ValidityState.PARSE_ERROR:
        raise ParseError(expr.error or "invalid expression", expr.text)

    for i in range(stack.min_index, stack.max_index + 1):
        points = stack.sample_points.get(i, [i])
        try:
            value = expr.evaluate(i)
            samples = [expr.evaluate(t) for t in points] if len(points) > 1 else None
            stack.set_param(i, param, value, source=expr, samples=samples)
        except (EvaluationError, ConfigurationError) as e:
            result.failed[i] = str(e)
        else:
            result.written[i] = value

    expr.state = ValidityState.EVALUATED_OK if result.ok else ValidityState.EVALUATED_FAILED
    if result.failed:
        logger.warning("%s = %s failed on layers %s", param, expr.text.strip(),
                       sorted(result.failed))
    else:
        logger.info("%s = %s applied to %d layers", param, expr.text.strip(),
                    len(result.written))
    return result


class CodeField:
    """Formula text bound to one parameter."""

    def __init__(self, param: str, text: str = ""):
        if param not in PARAMETERS:
            raise ConfigurationError(f"unknown parameter {param!r}")
        self.param = param
        self.expression = Expression.from_text(text)

    @property
    def text(self) -> str:
        return self.expression.text

    @property
    def state(self) -> ValidityState:
        return self.expression.state

    def set_text(self, text: str) -> ValidityState:
        self.expression = Expression.from_text(text)
        return self.state

    def run(self, stack) -> Optional[ApplyResult]:
        """Apply the formula to *stack*; None when the text does not compile."""
        if self.state is ValidityState.PARSE_ERROR:
            logger.warning("code field %s not run: %s", self.param, self.expression.error)
            return None
        return apply_to_stack(self.expression, self.param, stack)

    def __repr__(self):
        return f"CodeField({self.param!r}, {self.text!r}, {self.state.name})"
