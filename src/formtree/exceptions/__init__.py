"""
formtree exception classes.

This package provides the exception types used by the expression layer and
the context objects used to format their messages.
"""

from formtree.exceptions.core import (
    ErrorLevel,
    ExpressionBudgetError,
    ExpressionContext,
    ExpressionError,
    ExpressionOrigin,
    FormTreeError,
    JsonLogicError,
    UnsafeExpressionError,
)

__all__ = [
    "ErrorLevel",
    "ExpressionBudgetError",
    "ExpressionContext",
    "ExpressionError",
    "ExpressionOrigin",
    "FormTreeError",
    "JsonLogicError",
    "UnsafeExpressionError",
]
