"""
Exception classes for the formtree engine.

This module defines the exception types raised inside the expression layer.
They never cross the public boundary of the engine: validators, logic
triggers and calculated values catch them at their evaluation boundary, log
them and carry on as if the expression had no effect.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorLevel(Enum):
    """Error message detail level for form authors vs developers."""

    USER = "user"  # Component and origin only
    DEVELOPER = "developer"  # Adds the offending expression text


class ExpressionOrigin(Enum):
    """Where a user-authored expression came from."""

    CUSTOM_VALIDATION = "custom validation"
    JSON_VALIDATION = "json validation"
    CONDITIONAL = "conditional"
    LOGIC_TRIGGER = "logic trigger"
    CALCULATED_VALUE = "calculated value"


@dataclass
class ExpressionContext:
    """
    Context information for expression error messages.

    Params:
        component_key: Key of the component that owns the expression
        origin: Which schema property held the expression
        expression: Source text (or rendered rule) of the expression
    """

    component_key: str | None = None
    origin: ExpressionOrigin | None = None
    expression: str | None = None

    def format_location(self, error_level: ErrorLevel) -> str:
        """
        Format location information based on error level.

        Params:
            error_level: Whether to show USER or DEVELOPER level details

        Returns:
            Formatted location string with appropriate detail level
        """
        lines = []

        if self.origin is not None:
            lines.append(f"  in {self.origin.value}")

        if self.component_key:
            lines.append(f"  of component '{self.component_key}'")

        if error_level == ErrorLevel.DEVELOPER and self.expression:
            lines.append(f"  expression: {self.expression}")

        return "\n".join(lines)


class FormTreeError(Exception):
    """Base exception for all formtree errors."""

    pass


class ExpressionError(FormTreeError):
    """Raised when a user-authored expression is malformed or fails to evaluate."""

    def __init__(
        self,
        reason: str,
        context: ExpressionContext | None = None,
        error_level: ErrorLevel = ErrorLevel.DEVELOPER,
    ):
        """
        Initialize the exception.

        Params:
            reason: Why evaluation failed
            context: ExpressionContext with the owning component and origin
            error_level: Level of detail to show in the error message
        """
        self.reason = reason
        self.context = context
        self.error_level = error_level

        message = f"Expression failed: {reason}"
        if context:
            location_info = context.format_location(error_level)
            if location_info:
                message = f"{message}\n{location_info}"

        super().__init__(message)

    def with_context(self, context: ExpressionContext) -> "ExpressionError":
        """
        Return a copy of this error carrying `context`.

        Params:
            context: Context describing the owning component and origin

        Returns:
            New exception of the same class with the context attached
        """
        clone = type(self).__new__(type(self))
        ExpressionError.__init__(clone, self.reason, context, self.error_level)
        return clone


class UnsafeExpressionError(ExpressionError):
    """Raised when an expression uses syntax outside the sandbox grammar."""

    pass


class ExpressionBudgetError(ExpressionError):
    """Raised when an expression exceeds its evaluation budget."""

    pass


class JsonLogicError(ExpressionError):
    """Raised when a JSON Logic rule cannot be evaluated."""

    pass
