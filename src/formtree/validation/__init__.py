"""
formtree field validation.

This package provides the parsed validation rule model, the error records it
produces and the validator that applies rules to fields and whole trees.
"""

from formtree.validation.rules import ErrorKind, ValidationError, ValidationRule
from formtree.validation.validator import (
    EMAIL_PATTERN,
    URL_PATTERN,
    is_empty_value,
    validate_field,
    validate_nodes,
)

__all__ = [
    "EMAIL_PATTERN",
    "ErrorKind",
    "URL_PATTERN",
    "ValidationError",
    "ValidationRule",
    "is_empty_value",
    "validate_field",
    "validate_nodes",
]
