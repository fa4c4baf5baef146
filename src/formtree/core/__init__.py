"""
Core building blocks shared by every formtree package.
"""

from formtree.core.cloning import safe_deep_clone
from formtree.core.tree_node import FormModel
from formtree.core.types import (
    ComponentNode,
    DataBag,
    FieldValue,
    FormSchema,
    NodeList,
    OverrideMap,
    OverridePatch,
)

__all__ = [
    "ComponentNode",
    "DataBag",
    "FieldValue",
    "FormModel",
    "FormSchema",
    "NodeList",
    "OverrideMap",
    "OverridePatch",
    "safe_deep_clone",
]
