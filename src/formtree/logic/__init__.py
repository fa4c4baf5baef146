"""
formtree dynamic form logic.

This package provides conditional visibility, logic-rule property overrides
and calculated field values.
"""

from formtree.logic.calculated import NO_RESULT, CalculatedValueEngine, is_calculated, values_differ
from formtree.logic.conditional import (
    LogicEvaluator,
    evaluate_visible,
    get_overridden_node,
    simple_condition_matches,
)
from formtree.logic.models import (
    ConditionalRule,
    LogicAction,
    LogicRule,
    LogicTrigger,
    PropertyRef,
    SimpleCondition,
    parse_conditional,
    parse_logic_rules,
)

__all__ = [
    "CalculatedValueEngine",
    "ConditionalRule",
    "LogicAction",
    "LogicEvaluator",
    "LogicRule",
    "LogicTrigger",
    "NO_RESULT",
    "PropertyRef",
    "SimpleCondition",
    "evaluate_visible",
    "get_overridden_node",
    "is_calculated",
    "parse_conditional",
    "parse_logic_rules",
    "simple_condition_matches",
    "values_differ",
]
