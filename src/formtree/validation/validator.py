"""
Field validation.

`validate_field` checks one value against one node's rules and returns the
list of failures; it never raises. Rules run in a fixed order, and once a
value is known to be empty nothing but `required` is checked, so rules such
as `pattern` never report on a field the user has not filled in.

`validate_nodes` applies `validate_field` across a tree, skipping nodes that
are not shown, not editable or not inputs.
"""

import logging
import re
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from formtree.core.types import ComponentNode, DataBag, NodeList
from formtree.exceptions import ExpressionContext, ExpressionError, ExpressionOrigin
from formtree.expressions import predicates
from formtree.expressions.sandbox import ExpressionSandbox
from formtree.structure.traversal import is_input_node, iter_nodes
from formtree.validation.rules import ErrorKind, ValidationError, ValidationRule

if TYPE_CHECKING:
    from formtree.structure.registry import ComponentRegistry

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
URL_PATTERN = re.compile(
    r"^https?://(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b"
    r"([-a-zA-Z0-9()@:%_+.~#?&/=]*)$"
)

_default_sandbox: ExpressionSandbox | None = None


def _sandbox_or_default(sandbox: ExpressionSandbox | None) -> ExpressionSandbox:
    global _default_sandbox
    if sandbox is not None:
        return sandbox
    if _default_sandbox is None:
        _default_sandbox = ExpressionSandbox()
    return _default_sandbox


def is_empty_value(value: Any) -> bool:
    """Check for the values `required` rejects: None, "", [] and {}."""
    return value is None or value == "" or (isinstance(value, list | dict) and not value)


def _is_number(value: Any) -> bool:
    return predicates.is_number(value)


def _word_count(text: str) -> int:
    return len(text.split())


def _selected_count(value: Any) -> int | None:
    if isinstance(value, dict):
        return sum(1 for item in value.values() if item is True)
    if isinstance(value, list):
        return sum(1 for item in value if item)
    return None


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class _Collector:
    """Accumulates errors for one field."""

    def __init__(self, node: ComponentNode, rule: ValidationRule):
        self.key = str(node.get("key", ""))
        self.label = node.get("label") or self.key
        self.rule = rule
        self.errors: list[ValidationError] = []

    def add(self, kind: ErrorKind, message: str, *, customizable: bool = False) -> None:
        if customizable and self.rule.custom_message:
            message = self.rule.custom_message
        self.errors.append(ValidationError(key=self.key, type=kind, message=message))


def _check_required(node: ComponentNode, value: Any) -> bool:
    node_type = node.get("type")
    if node_type == "checkbox":
        return value is True
    if node_type == "selectboxes" and isinstance(value, dict):
        return any(item is True for item in value.values())
    return not is_empty_value(value)


def _run_custom(
    node: ComponentNode,
    rule: ValidationRule,
    value: Any,
    data: DataBag,
    sandbox: ExpressionSandbox,
) -> str | bool:
    """Return True when valid, False or a message when invalid."""
    scope = {
        "input": value,
        "value": value,
        "data": data,
        "row": data,
        "component": node,
        "valid": True,
    }
    try:
        result = sandbox.run(rule.custom or "", scope, result_name="valid")
    except ExpressionError as e:
        context = ExpressionContext(
            component_key=node.get("key"),
            origin=ExpressionOrigin.CUSTOM_VALIDATION,
            expression=rule.custom,
        )
        logger.warning("%s", e.with_context(context))
        return True
    if isinstance(result, str):
        return result
    return result is not False


def _run_json_rule(
    node: ComponentNode, rule: ValidationRule, value: Any, data: DataBag
) -> bool:
    context = {**data, "value": value, "input": value, "data": data}
    try:
        return predicates.truthy(predicates.apply(rule.json_logic, context))
    except ExpressionError as e:
        expression_context = ExpressionContext(
            component_key=node.get("key"),
            origin=ExpressionOrigin.JSON_VALIDATION,
            expression=str(rule.json_logic),
        )
        logger.warning("%s", e.with_context(expression_context))
        return True


def validate_field(
    node: ComponentNode,
    value: Any,
    data: DataBag | None = None,
    sandbox: ExpressionSandbox | None = None,
) -> list[ValidationError]:
    """
    Validate one value against a node's rules.

    Params:
        node: Schema node (normally the effective, overridden view)
        value: Current value of the field
        data: Whole data bag, visible to custom and JSON rules
        sandbox: Expression sandbox for custom rules

    Returns:
        One ValidationError per failing rule, in rule order
    """
    rule = ValidationRule.from_node(node)
    errors = _Collector(node, rule)
    label = errors.label
    data = data if data is not None else {}

    if rule.required and not _check_required(node, value):
        errors.add(ErrorKind.REQUIRED, f"{label} is required")
        return errors.errors

    if is_empty_value(value):
        return errors.errors

    node_type = node.get("type")

    if (rule.email or node_type == "email") and isinstance(value, str):
        if not EMAIL_PATTERN.match(value):
            errors.add(
                ErrorKind.EMAIL,
                f"{label} must be a valid email address",
                customizable=True,
            )

    if (rule.url or node_type == "url") and isinstance(value, str):
        if not URL_PATTERN.match(value):
            errors.add(ErrorKind.URL, f"{label} must be a valid URL", customizable=True)

    if rule.integer and _is_number(value) and value % 1 != 0:
        errors.add(ErrorKind.INTEGER, f"{label} must be a whole number", customizable=True)

    if isinstance(value, str):
        if rule.min_length is not None and len(value) < rule.min_length:
            errors.add(
                ErrorKind.MIN_LENGTH,
                f"{label} must be at least {rule.min_length} characters",
            )
        if rule.max_length is not None and len(value) > rule.max_length:
            errors.add(
                ErrorKind.MAX_LENGTH,
                f"{label} must be no more than {rule.max_length} characters",
            )
        if rule.min_words is not None and _word_count(value) < rule.min_words:
            errors.add(
                ErrorKind.MIN_WORDS, f"{label} must have at least {rule.min_words} words"
            )
        if rule.max_words is not None and _word_count(value) > rule.max_words:
            errors.add(
                ErrorKind.MAX_WORDS,
                f"{label} must have no more than {rule.max_words} words",
            )

    if _is_number(value):
        if rule.min is not None and value < rule.min:
            errors.add(ErrorKind.MIN, f"{label} must be at least {_format_number(rule.min)}")
        if rule.max is not None and value > rule.max:
            errors.add(
                ErrorKind.MAX, f"{label} must be no more than {_format_number(rule.max)}"
            )

    selected = _selected_count(value)
    if selected is not None:
        if rule.min_selected_count is not None and selected < rule.min_selected_count:
            errors.add(
                ErrorKind.MIN_SELECTED_COUNT,
                f"{label} requires at least {rule.min_selected_count} selections",
            )
        if rule.max_selected_count is not None and selected > rule.max_selected_count:
            errors.add(
                ErrorKind.MAX_SELECTED_COUNT,
                f"{label} allows at most {rule.max_selected_count} selections",
            )

    if rule.pattern:
        try:
            matched = re.search(rule.pattern, str(value)) is not None
        except re.error as e:
            logger.warning(
                "Ignoring invalid pattern %r on component '%s': %s",
                rule.pattern,
                errors.key,
                e,
            )
            matched = True
        if not matched:
            errors.add(
                ErrorKind.PATTERN,
                f"{label} does not match the required pattern",
                customizable=True,
            )

    if rule.custom:
        outcome = _run_custom(node, rule, value, data, _sandbox_or_default(sandbox))
        if outcome is not True:
            message = outcome if isinstance(outcome, str) else None
            errors.add(ErrorKind.CUSTOM, message or rule.custom_message or f"{label} is invalid")

    if rule.json_logic and not _run_json_rule(node, rule, value, data):
        errors.add(
            ErrorKind.CUSTOM,
            f"{label} does not satisfy the validation rule",
            customizable=True,
        )

    return errors.errors


def validate_nodes(
    nodes: NodeList | None,
    data: DataBag,
    *,
    is_visible: Callable[[ComponentNode], bool] | None = None,
    get_effective: Callable[[ComponentNode], ComponentNode] | None = None,
    registry: "ComponentRegistry | None" = None,
    sandbox: ExpressionSandbox | None = None,
) -> dict[str, list[ValidationError]]:
    """
    Validate every input node in a tree.

    Invisible nodes prune their whole subtree; non-input nodes are skipped;
    nodes whose effective view is hidden or disabled are skipped.

    Params:
        nodes: Root list of schema nodes
        data: Data bag holding the values
        is_visible: Visibility predicate (defaults to always visible)
        get_effective: Maps a stored node to its effective view
        registry: Type registry deciding which nodes are inputs
        sandbox: Expression sandbox for custom rules

    Returns:
        Failing fields only, keyed by node key, in traversal order
    """
    visible = is_visible or (lambda node: True)
    effective_of = get_effective or (lambda node: node)

    results: dict[str, list[ValidationError]] = {}
    for node in iter_nodes(nodes, prune=lambda node: not visible(node)):
        if not visible(node) or not is_input_node(node, registry):
            continue
        effective = effective_of(node)
        if effective.get("hidden") or effective.get("disabled"):
            continue
        key = node.get("key")
        if not key:
            continue
        field_errors = validate_field(effective, data.get(key), data, sandbox)
        if field_errors:
            results.setdefault(key, []).extend(field_errors)
    return results
