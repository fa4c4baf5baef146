"""
Sandboxed interpreter for user-authored form expressions.

Custom validators, scripted logic triggers and calculated values are short
scripts written by form authors, who may be untrusted. They are never handed
to `eval`/`exec`. Instead the source is parsed with `ast`, checked against a
whitelist of node types, and walked by a small interpreter that:

- only sees the variables it is given (`data`, `row`, `component`, ...),
- can call a fixed table of pure functions plus a few non-mutating
  string/list methods,
- cannot assign anything but plain names, so the data bag stays untouched,
- has no loops, and counts every evaluated node against a step budget,
- caps the size of the integers and sequences it builds.

Authors coming from JavaScript can keep writing `===`, `!==`, `&&`, `||`, `!`,
`true`/`false`/`null`/`undefined` and `let`/`var`/`const`; these are rewritten
to the Python-style grammar before parsing. String literals are left alone.
"""

import ast
import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from formtree.config import SandboxOptions
from formtree.exceptions import (
    ExpressionBudgetError,
    ExpressionError,
    UnsafeExpressionError,
)
from formtree.expressions.predicates import strict_equals, to_number

ALLOWED_NODES = (
    ast.Module,
    ast.Expr,
    ast.Assign,
    ast.AugAssign,
    ast.If,
    ast.Pass,
    ast.Return,
    ast.BoolOp,
    ast.BinOp,
    ast.UnaryOp,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.Name,
    ast.Attribute,
    ast.Subscript,
    ast.Slice,
    ast.Constant,
    ast.List,
    ast.Tuple,
    ast.Dict,
    ast.Load,
    ast.Store,
    ast.And,
    ast.Or,
    ast.Not,
    ast.USub,
    ast.UAdd,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.FloorDiv,
    ast.Mod,
    ast.Pow,
    ast.Eq,
    ast.NotEq,
    ast.Lt,
    ast.LtE,
    ast.Gt,
    ast.GtE,
    ast.In,
    ast.NotIn,
    ast.Is,
    ast.IsNot,
)

CONSTANTS: dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
}

_STRING_LITERAL = re.compile(r"(\"(?:\\.|[^\"\\])*\"|'(?:\\.|[^'\\])*')")

_JS_REWRITES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(?:let|var|const)\s+"), ""),
    (re.compile(r"==="), "=="),
    (re.compile(r"!=="), "!="),
    (re.compile(r"&&"), " and "),
    (re.compile(r"\|\|"), " or "),
    (re.compile(r"!(?!=)"), " not "),
)


def _js_round(value: Any) -> int:
    return math.floor(to_number(value) + 0.5)


def _js_string(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _numeric_operands(left: Any, right: Any) -> tuple[Any, Any]:
    """Convert both operands with `Number()` when either is a string, boolean or null."""
    if any(isinstance(operand, str | bool) or operand is None for operand in (left, right)):
        return to_number(left), to_number(right)
    return left, right


def _parse_int(value: Any) -> int | float:
    match = re.match(r"\s*([+-]?\d+)", _js_string(value))
    return int(match.group(1)) if match else math.nan


class Namespace:
    """Read-only bag of functions exposed under one name (e.g. `Math`)."""

    def __init__(self, name: str, functions: Mapping[str, Callable[..., Any]]):
        self.name = name
        self._functions = dict(functions)

    def lookup(self, attribute: str) -> Callable[..., Any]:
        if attribute not in self._functions:
            raise ExpressionError(f"'{self.name}.{attribute}' is not available")
        return self._functions[attribute]

    def __repr__(self) -> str:
        return f"<namespace {self.name}>"


MATH = Namespace(
    "Math",
    {
        "abs": abs,
        "ceil": math.ceil,
        "floor": math.floor,
        "round": _js_round,
        "max": max,
        "min": min,
        "sqrt": math.sqrt,
        "pow": pow,
    },
)

DEFAULT_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "abs": abs,
    "all": all,
    "any": any,
    "bool": bool,
    "float": float,
    "int": int,
    "len": len,
    "max": max,
    "min": min,
    "pow": pow,
    "round": round,
    "sorted": sorted,
    "str": str,
    "sum": sum,
    "Number": to_number,
    "String": _js_string,
    "parseInt": _parse_int,
    "parseFloat": lambda value: float(to_number(value)),
    "isNaN": lambda value: math.isnan(to_number(value)),
}

_STRING_METHODS: dict[str, Callable[..., Any]] = {
    "lower": str.lower,
    "upper": str.upper,
    "strip": str.strip,
    "lstrip": str.lstrip,
    "rstrip": str.rstrip,
    "startswith": str.startswith,
    "endswith": str.endswith,
    "split": str.split,
    "replace": str.replace,
    "find": str.find,
    "count": str.count,
    "join": lambda sep, items: sep.join(_js_string(item) for item in items),
    "toLowerCase": str.lower,
    "toUpperCase": str.upper,
    "trim": str.strip,
    "startsWith": str.startswith,
    "endsWith": str.endswith,
    "includes": lambda text, part: part in text,
    "indexOf": str.find,
}

_LIST_METHODS: dict[str, Callable[..., Any]] = {
    "count": lambda items, value: sum(1 for item in items if strict_equals(item, value)),
    "includes": lambda items, value: any(strict_equals(item, value) for item in items),
    "indexOf": lambda items, value: next(
        (i for i, item in enumerate(items) if strict_equals(item, value)), -1
    ),
    "join": lambda items, sep=",": sep.join(_js_string(item) for item in items),
}

_WRAPPED_ERRORS = (
    TypeError,
    ValueError,
    ZeroDivisionError,
    KeyError,
    IndexError,
    OverflowError,
    RecursionError,
)


def normalize_source(source: str) -> str:
    """
    Rewrite JavaScript operator spellings to the sandbox grammar.

    Params:
        source: Expression or script as written by the form author

    Returns:
        Equivalent source using Python-style operators
    """
    parts = _STRING_LITERAL.split(source)
    for index in range(0, len(parts), 2):
        segment = parts[index]
        for pattern, replacement in _JS_REWRITES:
            segment = pattern.sub(replacement, segment)
        parts[index] = segment
    return "".join(parts).strip()


@dataclass(frozen=True)
class CompiledScript:
    """Validated syntax tree of a script, reusable across evaluations."""

    source: str
    tree: ast.Module
    assigned_names: frozenset[str]
    ends_with_expression: bool

    def assigns(self, name: str) -> bool:
        return name in self.assigned_names


def _validate_tree(tree: ast.AST) -> None:
    for node in ast.walk(tree):
        if not isinstance(node, ALLOWED_NODES):
            raise UnsafeExpressionError(
                f"Unsupported syntax: {type(node).__name__}"
            )
        if isinstance(node, ast.Name) and node.id.startswith("_"):
            raise UnsafeExpressionError(f"Access to '{node.id}' is not allowed")
        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            raise UnsafeExpressionError(f"Access to '{node.attr}' is not allowed")
        if isinstance(node, ast.Assign):
            for target in node.targets:
                if not isinstance(target, ast.Name):
                    raise UnsafeExpressionError("Only plain names can be assigned")
        if isinstance(node, ast.AugAssign) and not isinstance(node.target, ast.Name):
            raise UnsafeExpressionError("Only plain names can be assigned")
        if isinstance(node, ast.Call) and node.keywords:
            raise UnsafeExpressionError("Keyword arguments are not supported")


@lru_cache(maxsize=512)
def compile_script(source: str) -> CompiledScript:
    """
    Normalize, parse and validate a script.

    Params:
        source: Expression or script text

    Returns:
        CompiledScript ready for evaluation

    Raises:
        ExpressionError: If the source does not parse
        UnsafeExpressionError: If it uses syntax outside the whitelist
    """
    normalized = normalize_source(source)
    try:
        tree = ast.parse(normalized, mode="exec")
    except (SyntaxError, ValueError, RecursionError) as e:
        raise ExpressionError(f"Invalid syntax: {e}") from e

    _validate_tree(tree)

    assigned = frozenset(
        target.id
        for node in ast.walk(tree)
        for target in (
            node.targets
            if isinstance(node, ast.Assign)
            else [node.target]
            if isinstance(node, ast.AugAssign)
            else []
        )
        if isinstance(target, ast.Name)
    )
    ends_with_expression = bool(tree.body) and isinstance(tree.body[-1], ast.Expr)
    return CompiledScript(source, tree, assigned, ends_with_expression)


class _Return(Exception):
    def __init__(self, value: Any):
        self.value = value


class _Interpreter:
    """Tree-walking evaluator for one script run."""

    def __init__(
        self,
        variables: dict[str, Any],
        functions: Mapping[str, Callable[..., Any]],
        options: SandboxOptions,
    ):
        self.variables = variables
        self.functions = functions
        self.options = options
        self.steps = 0
        self.last_value: Any = None

    def _tick(self) -> None:
        self.steps += 1
        if self.steps > self.options.max_steps:
            raise ExpressionBudgetError(
                f"Step budget of {self.options.max_steps} exceeded"
            )

    # Statements

    def execute(self, statements: list[ast.stmt]) -> None:
        for statement in statements:
            self._tick()
            if isinstance(statement, ast.Expr):
                self.last_value = self.evaluate(statement.value)
            elif isinstance(statement, ast.Assign):
                value = self.evaluate(statement.value)
                for target in statement.targets:
                    self.variables[target.id] = value  # type: ignore[attr-defined]
            elif isinstance(statement, ast.AugAssign):
                name = statement.target.id  # type: ignore[attr-defined]
                current = self._load_name(name)
                self.variables[name] = self._binary(
                    statement.op, current, self.evaluate(statement.value)
                )
            elif isinstance(statement, ast.If):
                branch = statement.body if self._truthy(self.evaluate(statement.test)) else statement.orelse
                self.execute(branch)
            elif isinstance(statement, ast.Return):
                value = self.evaluate(statement.value) if statement.value else None
                raise _Return(value)
            elif isinstance(statement, ast.Pass):
                continue
            else:
                raise UnsafeExpressionError(
                    f"Unsupported statement: {type(statement).__name__}"
                )

    # Expressions

    def evaluate(self, node: ast.expr) -> Any:
        self._tick()

        if isinstance(node, ast.Constant):
            return node.value
        if isinstance(node, ast.Name):
            return self._load_name(node.id)
        if isinstance(node, ast.BoolOp):
            return self._bool_op(node)
        if isinstance(node, ast.UnaryOp):
            operand = self.evaluate(node.operand)
            if isinstance(node.op, ast.Not):
                return not self._truthy(operand)
            if isinstance(node.op, ast.USub):
                return -operand
            return +operand
        if isinstance(node, ast.BinOp):
            return self._binary(node.op, self.evaluate(node.left), self.evaluate(node.right))
        if isinstance(node, ast.Compare):
            return self._compare(node)
        if isinstance(node, ast.IfExp):
            if self._truthy(self.evaluate(node.test)):
                return self.evaluate(node.body)
            return self.evaluate(node.orelse)
        if isinstance(node, ast.Attribute):
            return self._get_attribute(self.evaluate(node.value), node.attr)
        if isinstance(node, ast.Subscript):
            return self._subscript(node)
        if isinstance(node, ast.List | ast.Tuple):
            items = [self.evaluate(item) for item in node.elts]
            return items if isinstance(node, ast.List) else tuple(items)
        if isinstance(node, ast.Dict):
            return {
                self.evaluate(key): self.evaluate(value)
                for key, value in zip(node.keys, node.values, strict=True)
                if key is not None
            }
        if isinstance(node, ast.Call):
            return self._call(node)

        raise UnsafeExpressionError(f"Unsupported syntax: {type(node).__name__}")

    def _load_name(self, name: str) -> Any:
        if name in self.variables:
            return self.variables[name]
        if name in CONSTANTS:
            return CONSTANTS[name]
        if name == MATH.name:
            return MATH
        raise ExpressionError(f"'{name}' is not defined")

    @staticmethod
    def _truthy(value: Any) -> bool:
        if isinstance(value, float) and math.isnan(value):
            return False
        if isinstance(value, dict | list):
            return True
        return bool(value)

    def _bool_op(self, node: ast.BoolOp) -> Any:
        value: Any = None
        for operand in node.values:
            value = self.evaluate(operand)
            truthy = self._truthy(value)
            if isinstance(node.op, ast.And) and not truthy:
                return value
            if isinstance(node.op, ast.Or) and truthy:
                return value
        return value

    def _check_size(self, value: Any) -> Any:
        if isinstance(value, str | list | tuple) and len(value) > self.options.max_sequence_length:
            raise ExpressionBudgetError(
                f"Result longer than {self.options.max_sequence_length} items"
            )
        return value

    def _check_bits(self, bits: int) -> None:
        if bits > self.options.max_integer_bits:
            raise ExpressionBudgetError(
                f"Integer result larger than {self.options.max_integer_bits} bits"
            )

    def _power(self, base: Any, exponent: Any) -> Any:
        base, exponent = _numeric_operands(base, exponent)
        if isinstance(exponent, int | float) and abs(exponent) > self.options.max_exponent:
            raise ExpressionBudgetError(
                f"Exponent larger than {self.options.max_exponent}"
            )
        if isinstance(base, int) and isinstance(exponent, int) and exponent > 0:
            self._check_bits(abs(base).bit_length() * exponent)
        return base**exponent

    def _binary(self, op: ast.operator, left: Any, right: Any) -> Any:
        if isinstance(op, ast.Add):
            if isinstance(left, str) != isinstance(right, str):
                return self._check_size(_js_string(left) + _js_string(right))
            return self._check_size(left + right)
        if isinstance(op, ast.Pow):
            return self._power(left, right)

        left, right = _numeric_operands(left, right)
        if isinstance(op, ast.Sub):
            return left - right
        if isinstance(op, ast.Mult):
            if isinstance(left, int) and isinstance(right, int):
                self._check_bits(left.bit_length() + right.bit_length())
            for sequence, count in ((left, right), (right, left)):
                if isinstance(sequence, list | tuple) and isinstance(count, int):
                    if len(sequence) * count > self.options.max_sequence_length:
                        raise ExpressionBudgetError("Repeated sequence is too long")
            return left * right
        if isinstance(op, ast.Div):
            return left / right
        if isinstance(op, ast.FloorDiv):
            return left // right
        if isinstance(op, ast.Mod):
            return left % right
        raise UnsafeExpressionError(f"Unsupported operator: {type(op).__name__}")

    def _compare(self, node: ast.Compare) -> bool:
        left = self.evaluate(node.left)
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = self.evaluate(comparator)
            if isinstance(op, ast.Eq):
                result = strict_equals(left, right)
            elif isinstance(op, ast.NotEq):
                result = not strict_equals(left, right)
            elif isinstance(op, ast.Lt):
                result = left < right
            elif isinstance(op, ast.LtE):
                result = left <= right
            elif isinstance(op, ast.Gt):
                result = left > right
            elif isinstance(op, ast.GtE):
                result = left >= right
            elif isinstance(op, ast.In):
                result = left in right
            elif isinstance(op, ast.NotIn):
                result = left not in right
            elif isinstance(op, ast.Is):
                result = left is right
            else:
                result = left is not right
            if not result:
                return False
            left = right
        return True

    def _get_attribute(self, obj: Any, name: str) -> Any:
        if isinstance(obj, Namespace):
            return obj.lookup(name)
        if isinstance(obj, dict):
            return obj.get(name)
        if name == "length" and isinstance(obj, str | list | tuple):
            return len(obj)
        if obj is None:
            raise ExpressionError(f"Cannot read property '{name}' of null")
        raise ExpressionError(
            f"Property '{name}' is not available on {type(obj).__name__}"
        )

    def _subscript(self, node: ast.Subscript) -> Any:
        container = self.evaluate(node.value)
        if isinstance(node.slice, ast.Slice):
            lower = self.evaluate(node.slice.lower) if node.slice.lower else None
            upper = self.evaluate(node.slice.upper) if node.slice.upper else None
            step = self.evaluate(node.slice.step) if node.slice.step else None
            return container[lower:upper:step]
        index = self.evaluate(node.slice)
        if isinstance(container, dict):
            return container.get(index)
        if container is None:
            raise ExpressionError(f"Cannot read property {index!r} of null")
        return container[index]

    def _call(self, node: ast.Call) -> Any:
        args = [self.evaluate(arg) for arg in node.args]
        func = node.func

        if isinstance(func, ast.Name):
            if func.id not in self.functions:
                raise UnsafeExpressionError(f"Function '{func.id}' is not available")
            return self._apply_function(self.functions[func.id], args)

        if isinstance(func, ast.Attribute):
            target = self.evaluate(func.value)
            if isinstance(target, Namespace):
                return self._apply_function(target.lookup(func.attr), args)
            methods = (
                _STRING_METHODS
                if isinstance(target, str)
                else _LIST_METHODS
                if isinstance(target, list | tuple)
                else {}
            )
            if func.attr not in methods:
                raise UnsafeExpressionError(
                    f"Method '{func.attr}' is not available on {type(target).__name__}"
                )
            return self._check_size(methods[func.attr](target, *args))

        raise UnsafeExpressionError("Only named functions can be called")

    def _apply_function(self, function: Callable[..., Any], args: list[Any]) -> Any:
        # pow goes through the same limits as the ** operator
        if function is pow:
            return self._power(*args)
        return self._check_size(function(*args))


class ExpressionSandbox:
    """Evaluator for user-authored expressions with a restricted grammar.

    One sandbox is shared by a form instance; it holds no per-run state, so the
    same instance can evaluate any number of scripts.

    Notes:
      - Every failure surfaces as an `ExpressionError` (or subclass); callers
        decide how to fail open.
      - Compiled scripts are cached by source text.
    """

    def __init__(
        self,
        options: SandboxOptions | None = None,
        functions: Mapping[str, Callable[..., Any]] | None = None,
    ):
        self.options = options or SandboxOptions()
        self.functions: dict[str, Callable[..., Any]] = {
            **DEFAULT_FUNCTIONS,
            **(functions or {}),
        }

    def run(
        self,
        source: str,
        scope: Mapping[str, Any],
        result_name: str | None = None,
    ) -> Any:
        """
        Execute a script and return its result.

        The result is, in order of precedence: the value of a `return`
        statement; the variable `result_name` when the script assigns it; the
        value of the final bare expression; the initial value of
        `result_name` in `scope`.

        Params:
            source: Script text
            scope: Variables visible to the script (copied, never modified)
            result_name: Variable holding the script's result

        Returns:
            The script result

        Raises:
            ExpressionError: On syntax errors, unsafe syntax, runtime errors
                or an exhausted budget
        """
        compiled = compile_script(source)
        interpreter = _Interpreter(dict(scope), self.functions, self.options)

        try:
            interpreter.execute(compiled.tree.body)
        except _Return as returned:
            return returned.value
        except ExpressionError:
            raise
        except _WRAPPED_ERRORS as e:
            raise ExpressionError(f"{type(e).__name__}: {e}") from e

        if result_name is not None and compiled.assigns(result_name):
            return interpreter.variables.get(result_name)
        if compiled.ends_with_expression:
            return interpreter.last_value
        if result_name is not None:
            return interpreter.variables.get(result_name)
        return None

    def evaluate(self, expression: str, scope: Mapping[str, Any]) -> Any:
        """Evaluate a single expression (or script) and return its value."""
        return self.run(expression, scope)
