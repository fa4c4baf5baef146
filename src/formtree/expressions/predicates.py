"""
Predicate-tree (JSON Logic) evaluation.

Predicate trees are plain data: `{"operator": [argument, ...]}` where every
argument is either a literal or another predicate tree. Evaluating them never
executes author-supplied code, which makes them the safe trigger kind for
untrusted form definitions. Evaluation is done by the `json_logic` package
(panzi-json-logic); this module adds the strict-equality and logging
operators forms rely on and turns the package's runtime errors into
`JsonLogicError`.

The value helpers (`to_number`, `strict_equals`) are shared with the script
sandbox so both evaluators agree on JavaScript comparison rules.
"""

import logging
import math
from typing import Any

from json_logic import jsonLogic
from json_logic.builtins import BUILTINS, to_bool

from formtree.exceptions import JsonLogicError

logger = logging.getLogger(__name__)


def is_number(value: Any) -> bool:
    """Check for int/float values, excluding booleans."""
    return isinstance(value, int | float) and not isinstance(value, bool)


def to_number(value: Any) -> float | int:
    """
    Convert a value to a number using JavaScript `Number()` rules.

    Params:
        value: Any JSON-like value

    Returns:
        The numeric value, or NaN when no conversion exists
    """
    if is_number(value):
        return value
    if isinstance(value, bool):
        return int(value)
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def truthy(value: Any) -> bool:
    """Truthiness as defined for predicate trees (empty lists are falsy)."""
    return to_bool(value)


def strict_equals(left: Any, right: Any) -> bool:
    """
    Compare like JavaScript `===`.

    Booleans never equal numbers, `None` only equals `None`, ints and floats
    compare by value, and other values must share a type.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if left is None or right is None:
        return left is None and right is None
    if type(left) is not type(right):
        return False
    return left == right


def _op_log(data: Any = None, value: Any = None, *_ignored: Any) -> Any:
    logger.debug("json logic log: %r", value)
    return value


OPERATIONS = {
    **BUILTINS,
    "===": lambda data=None, left=None, right=None, *_ignored: strict_equals(left, right),
    "!==": lambda data=None, left=None, right=None, *_ignored: not strict_equals(left, right),
    "log": _op_log,
}

_EVALUATION_ERRORS = (
    ReferenceError,
    TypeError,
    ValueError,
    ArithmeticError,
    LookupError,
    RecursionError,
)


def apply(rule: Any, data: Any = None) -> Any:
    """
    Evaluate a predicate tree against `data`.

    Params:
        rule: Predicate tree or literal
        data: Context the `var` operator resolves against

    Returns:
        The evaluated value

    Raises:
        JsonLogicError: On unknown operators or invalid operand types
    """
    try:
        return jsonLogic(rule, data if data is not None else {}, OPERATIONS)
    except _EVALUATION_ERRORS as e:
        raise JsonLogicError(f"{type(e).__name__}: {e}") from e
