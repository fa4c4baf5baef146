"""
Conditional visibility and property overrides.

Visibility is decided per node from its `conditional` mapping. Property
overrides come from `logic` rules: while a rule's trigger holds, its
`property` actions patch the node's effective view. Overrides live in a
separate map keyed by node key; the stored schema is never modified.
"""

import logging
from typing import Any

from formtree.core.types import ComponentNode, DataBag, NodeList, OverrideMap, OverridePatch
from formtree.exceptions import ExpressionContext, ExpressionError, ExpressionOrigin
from formtree.expressions import predicates
from formtree.expressions.predicates import strict_equals
from formtree.expressions.sandbox import ExpressionSandbox
from formtree.logic.models import (
    LogicAction,
    LogicRule,
    LogicTrigger,
    SimpleCondition,
    parse_conditional,
    parse_logic_rules,
)
from formtree.structure.traversal import iter_nodes

logger = logging.getLogger(__name__)


def simple_condition_matches(condition: SimpleCondition, data: DataBag) -> bool | None:
    """
    Evaluate a `{when, eq, show}` condition.

    The comparison result is flipped when `show` is explicitly False.

    Params:
        condition: Parsed simple condition
        data: Data bag

    Returns:
        Whether the condition holds, or None when it names no field
    """
    if not condition.when:
        return None
    matched = strict_equals(data.get(condition.when), condition.eq)
    return matched != (condition.show is False)


def evaluate_visible(node: ComponentNode, data: DataBag) -> bool:
    """
    Decide whether a node is shown under the current data.

    Params:
        node: Schema node
        data: Data bag

    Returns:
        True when the node is visible
    """
    condition = parse_conditional(node)
    if condition is None:
        return True

    if condition.json_logic:
        try:
            result = predicates.apply(condition.json_logic, {"data": data, "row": data})
        except ExpressionError as e:
            context = ExpressionContext(
                component_key=node.get("key"),
                origin=ExpressionOrigin.CONDITIONAL,
                expression=str(condition.json_logic),
            )
            logger.warning("%s", e.with_context(context))
            return True
        return predicates.truthy(result)

    matched = simple_condition_matches(condition, data)
    if matched is not None:
        return matched
    return condition.show is not False


def _coerce_state(action: LogicAction) -> Any:
    state = action.state
    if state is True or state == "true":
        state = True
    elif state is False or state == "false":
        state = False
    if action.text is not None and not isinstance(state, bool):
        state = action.text
    return state


def get_overridden_node(node: ComponentNode, overrides: OverrideMap) -> ComponentNode:
    """
    Merge a node's override patch into a shallow copy of the node.

    Params:
        node: Stored schema node
        overrides: Override map from `LogicEvaluator.recompute`

    Returns:
        The node itself when it has no patch, otherwise a new merged dict
    """
    patch = overrides.get(node.get("key")) if node.get("key") else None
    if not patch:
        return node
    return {**node, **patch}


class LogicEvaluator:
    """Computes the override map for a tree from its `logic` rules."""

    def __init__(self, sandbox: ExpressionSandbox | None = None):
        self.sandbox = sandbox or ExpressionSandbox()

    def evaluate_trigger(
        self, trigger: LogicTrigger, node: ComponentNode, data: DataBag
    ) -> bool:
        """
        Check whether a trigger currently fires.

        Expression failures are logged and count as not firing.

        Params:
            trigger: Parsed trigger
            node: Node owning the rule
            data: Data bag

        Returns:
            True when the trigger fires
        """
        if trigger.type == "simple":
            if trigger.simple is None:
                return False
            return bool(simple_condition_matches(trigger.simple, data))

        if trigger.type == "json":
            if not trigger.json_logic:
                return False
            context = {"data": data, "row": data, "component": node}
            try:
                return predicates.truthy(predicates.apply(trigger.json_logic, context))
            except ExpressionError as e:
                self._log_failure(e, node, str(trigger.json_logic))
                return False

        if trigger.type == "javascript":
            if not trigger.javascript:
                return False
            scope = {"data": data, "row": data, "component": node, "result": False}
            try:
                result = self.sandbox.run(trigger.javascript, scope, result_name="result")
            except ExpressionError as e:
                self._log_failure(e, node, trigger.javascript)
                return False
            return predicates.truthy(result)

        logger.debug(
            "Ignoring unknown trigger type '%s' on component '%s'",
            trigger.type,
            node.get("key"),
        )
        return False

    def apply_rules(
        self, rules: list[LogicRule], node: ComponentNode, data: DataBag
    ) -> OverridePatch:
        """Collect the patch contributed by the fired rules of one node."""
        patch: OverridePatch = {}
        for rule in rules:
            if not self.evaluate_trigger(rule.trigger, node, data):
                continue
            for action in rule.actions:
                if action.type != "property":
                    logger.debug(
                        "Ignoring '%s' action on component '%s'",
                        action.type,
                        node.get("key"),
                    )
                    continue
                if action.property is None or not action.property.value:
                    continue
                patch[action.property.value] = _coerce_state(action)
        return patch

    def recompute(self, nodes: NodeList | None, data: DataBag) -> OverrideMap:
        """
        Build a fresh override map for every node with logic rules.

        Params:
            nodes: Root list of schema nodes
            data: Data bag

        Returns:
            Map of node key to property patch; nodes whose rules did not fire
            are absent
        """
        overrides: OverrideMap = {}
        for node in iter_nodes(nodes):
            key = node.get("key")
            if not key:
                continue
            rules = parse_logic_rules(node)
            if not rules:
                continue
            patch = self.apply_rules(rules, node, data)
            if patch:
                overrides[key] = patch
        return overrides

    @staticmethod
    def _log_failure(error: ExpressionError, node: ComponentNode, expression: str) -> None:
        context = ExpressionContext(
            component_key=node.get("key"),
            origin=ExpressionOrigin.LOGIC_TRIGGER,
            expression=expression,
        )
        logger.warning("%s", error.with_context(context))
