"""
Evaluation of user-authored expressions.

Two evaluators live here: the script sandbox used by custom validators,
scripted triggers and calculated values, and the predicate-tree (JSON Logic)
evaluator used by `json` triggers, conditionals and validation rules.
"""

from formtree.expressions import predicates
from formtree.expressions.predicates import strict_equals, truthy
from formtree.expressions.sandbox import (
    CompiledScript,
    ExpressionSandbox,
    compile_script,
    normalize_source,
)

__all__ = [
    "CompiledScript",
    "ExpressionSandbox",
    "compile_script",
    "normalize_source",
    "predicates",
    "strict_equals",
    "truthy",
]
