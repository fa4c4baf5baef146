"""
formtree schema structure components.

This package provides tree traversal across every container shape, schema
normalization with default values, and the component type registry.
"""

from formtree.structure.registry import ComponentRegistry, ComponentType
from formtree.structure.schema import (
    create_empty_submission,
    default_for_type,
    extract_default_values,
    generate_component_key,
    normalize_component,
    parse_form_schema,
)
from formtree.structure.traversal import (
    NON_INPUT_TYPES,
    collect_keys,
    find_by_key,
    find_with_parent_list,
    flatten_components,
    flatten_inputs,
    is_input_node,
    iter_child_lists,
    iter_children,
    iter_nodes,
    owns_list,
    traverse,
)

__all__ = [
    "ComponentRegistry",
    "ComponentType",
    "NON_INPUT_TYPES",
    "collect_keys",
    "create_empty_submission",
    "default_for_type",
    "extract_default_values",
    "find_by_key",
    "find_with_parent_list",
    "flatten_components",
    "flatten_inputs",
    "generate_component_key",
    "is_input_node",
    "iter_child_lists",
    "iter_children",
    "iter_nodes",
    "normalize_component",
    "owns_list",
    "parse_form_schema",
    "traverse",
]
