"""
Exception hierarchy.

- ConfigurationError: invalid shape/heuristic parameters; blocks generation
  of the affected layer only.
- ParseError: malformed formula text in a code field.
- EvaluationError: a formula failed for one specific layer index.
"""

from typing import Optional


class VoxircleError(Exception):
    """Base class for every error raised by voxircle."""


class ConfigurationError(VoxircleError, ValueError):
    """Invalid radius, threshold or heuristic/shape combination."""


class ExpressionError(VoxircleError):
    """Base class for code-field errors."""


class ParseError(ExpressionError):
    """Formula text that does not compile."""

    def __init__(self, message: str, text: str = "", offset: Optional[int] = None):
        super().__init__(message)
        self.text = text
        self.offset = offset

    def format(self) -> str:
        """Message plus a caret under the offending column, when known."""
        if self.offset is None or not self.text:
            return str(self)
        return f"{self}\n  {self.text}\n  {' ' * self.offset}^"


class EvaluationError(ExpressionError):
    """Formula evaluated to an error or non-finite value at one layer."""

    def __init__(self, message: str, layer: Optional[int] = None):
        super().__init__(message)
        self.layer = layer
