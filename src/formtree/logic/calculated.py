"""
Calculated field values.

A node with a `calculateValue` script derives its value from the rest of the
data bag. Scripts either assign `value` (`value = data.price * data.qty`) or
end in a bare expression whose value is the result.
"""

import logging
from collections.abc import Callable
from typing import Any

from formtree.core.types import ComponentNode, DataBag, NodeList
from formtree.exceptions import ExpressionContext, ExpressionError, ExpressionOrigin
from formtree.expressions.predicates import is_number
from formtree.expressions.sandbox import ExpressionSandbox
from formtree.structure.traversal import iter_nodes

logger = logging.getLogger(__name__)

NO_RESULT = object()
_UNSET = object()


def values_differ(old: Any, new: Any) -> bool:
    """
    Type-aware deep inequality.

    Numbers compare by value (`1 == 1.0`), but booleans never equal numbers
    and strings never equal numbers.
    """
    if isinstance(old, bool) or isinstance(new, bool):
        return not (isinstance(old, bool) and isinstance(new, bool) and old == new)
    if is_number(old) and is_number(new):
        return old != new
    if type(old) is not type(new):
        return True
    if isinstance(old, dict):
        if old.keys() != new.keys():
            return True
        return any(values_differ(old[name], new[name]) for name in old)
    if isinstance(old, list):
        if len(old) != len(new):
            return True
        return any(values_differ(left, right) for left, right in zip(old, new))
    return old != new


def is_calculated(node: ComponentNode) -> bool:
    script = node.get("calculateValue")
    return bool(node.get("key")) and isinstance(script, str) and bool(script.strip())


class CalculatedValueEngine:
    """Evaluates `calculateValue` scripts and writes back changed results."""

    def __init__(self, sandbox: ExpressionSandbox | None = None):
        self.sandbox = sandbox or ExpressionSandbox()

    def calculate(self, node: ComponentNode, data: DataBag) -> Any:
        """
        Evaluate one node's script.

        Params:
            node: Schema node with a `calculateValue` script
            data: Data bag

        Returns:
            The computed value, which may be None, or `NO_RESULT` when the
            script is missing or failed
        """
        script = node.get("calculateValue")
        if not isinstance(script, str) or not script.strip():
            return NO_RESULT

        key = node.get("key")
        scope = {
            "value": data.get(key),
            "data": data,
            "row": data,
            "component": node,
        }
        try:
            return self.sandbox.run(script, scope, result_name="value")
        except ExpressionError as e:
            context = ExpressionContext(
                component_key=key,
                origin=ExpressionOrigin.CALCULATED_VALUE,
                expression=script,
            )
            logger.warning("%s", e.with_context(context))
            return NO_RESULT

    def run_pass(
        self,
        nodes: NodeList | None,
        data: DataBag,
        write: Callable[[str, Any], None],
    ) -> dict[str, Any]:
        """
        Evaluate every calculated node once, in traversal order.

        `write` is called only for results that differ from the stored value.
        A script that yields None clears the field; a failing script leaves it
        untouched.
        Each script sees the writes made earlier in the same pass when `write`
        updates `data`.

        Params:
            nodes: Root list of schema nodes
            data: Data bag read by the scripts
            write: Callback storing a new value for a key

        Returns:
            The writes performed, keyed by node key
        """
        writes: dict[str, Any] = {}
        for node in iter_nodes(nodes):
            if not is_calculated(node):
                continue
            result = self.calculate(node, data)
            if result is NO_RESULT:
                continue
            key = node["key"]
            if values_differ(data.get(key, _UNSET), result):
                write(key, result)
                writes[key] = result
        return writes
