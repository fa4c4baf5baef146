"""
Form schema parsing, normalization and default values.

Form documents arrive from builders, files and remote stores in varying
completeness. `parse_form_schema` turns any of them into a predictable
document: every node carries the common properties with their defaults,
every node has a key, and unknown properties are preserved.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from formtree.core.cloning import safe_deep_clone
from formtree.core.types import ComponentNode, DataBag, FormSchema, NodeList
from formtree.structure.traversal import (
    collect_keys,
    is_input_node,
    iter_child_lists,
    iter_nodes,
)

if TYPE_CHECKING:
    from formtree.structure.registry import ComponentRegistry

logger = logging.getLogger(__name__)

_NODE_DEFAULTS: dict[str, Any] = {
    "label": "",
    "placeholder": "",
    "description": "",
    "tooltip": "",
    "hidden": False,
    "disabled": False,
    "multiple": False,
    "tableView": False,
    "customClass": "",
}

_COLUMN_DEFAULTS: dict[str, Any] = {
    "width": 6,
    "offset": 0,
    "push": 0,
    "pull": 0,
    "size": "md",
}

_EMPTY_STRING_TYPES = frozenset(
    {
        "textfield",
        "textarea",
        "email",
        "password",
        "phoneNumber",
        "url",
        "radio",
        "datetime",
        "time",
        "day",
    }
)


def _list_or_empty(group: dict[str, Any]) -> list:
    components = group.get("components")
    return components if isinstance(components, list) else []


def parse_form_schema(raw: Any) -> FormSchema:
    """
    Parse and normalize a form document.

    Anything that is not a mapping yields an empty form. The input is never
    modified; the result is an independent, cycle-free copy.

    Params:
        raw: Form document (`{"components": [...], ...}`)

    Returns:
        Normalized form schema
    """
    if not isinstance(raw, dict):
        return {"display": "form", "components": []}

    document = safe_deep_clone(raw)
    components = document.get("components")
    schema: FormSchema = {
        **document,
        "display": document.get("display") or "form",
        "title": document.get("title") or "",
        "name": document.get("name") or "",
        "path": document.get("path") or "",
        "components": [
            normalize_component(node)
            for node in (components if isinstance(components, list) else [])
        ],
        "settings": document.get("settings") or {},
        "properties": document.get("properties") or {},
    }
    assign_missing_keys(schema["components"])
    return schema


def normalize_component(raw: Any) -> ComponentNode:
    """
    Normalize one node and, recursively, its children.

    Params:
        raw: Node dict; anything else becomes an inert `unknown` node

    Returns:
        Node with the common properties filled in and unknown keys kept
    """
    if not isinstance(raw, dict):
        return {"type": "unknown", "key": "", "input": False}

    node: ComponentNode = dict(raw)
    node["type"] = node.get("type") or "unknown"
    node.setdefault("key", "")
    node.setdefault("input", True)
    for name, default in _NODE_DEFAULTS.items():
        node.setdefault(name, default)
    if not isinstance(node.get("validate"), dict):
        node["validate"] = {}

    if isinstance(node.get("columns"), list):
        node["columns"] = [
            {**_COLUMN_DEFAULTS, **column, "components": _list_or_empty(column)}
            for column in node["columns"]
            if isinstance(column, dict)
        ]

    for child_list in iter_child_lists(node):
        child_list[:] = [normalize_component(child) for child in child_list]

    return node


def assign_missing_keys(nodes: NodeList) -> None:
    """Give every keyless node a key unique across the tree."""
    existing = collect_keys(nodes)
    for node in iter_nodes(nodes):
        if not node.get("key"):
            node["key"] = generate_component_key(node.get("type", "field"), existing)
            existing.add(node["key"])
            logger.debug("Assigned key '%s' to keyless node", node["key"])


def generate_component_key(type_name: str, existing_keys: set[str] | list[str]) -> str:
    """
    Generate a key unique among `existing_keys`.

    The type itself is used first, then `type1`, `type2`, ... in order.

    Params:
        type_name: Component type the key is derived from
        existing_keys: Keys already in use anywhere in the tree

    Returns:
        First free key in the sequence
    """
    taken = set(existing_keys)
    key = type_name
    counter = 1
    while key in taken:
        key = f"{type_name}{counter}"
        counter += 1
    return key


def default_for_type(node: ComponentNode) -> Any:
    """Get the initial data-bag value for a node."""
    if "defaultValue" in node:
        return safe_deep_clone(node["defaultValue"])

    node_type = node.get("type")
    if node_type in _EMPTY_STRING_TYPES:
        return ""
    if node_type in ("number", "currency"):
        return None
    if node_type == "checkbox":
        return False
    if node_type == "select":
        return [] if node.get("multiple") else ""
    if node_type in ("selectboxes", "container"):
        return {}
    if node_type == "file":
        return [] if node.get("multiple") else None
    return ""


def extract_default_values(
    nodes: NodeList | None, registry: "ComponentRegistry | None" = None
) -> DataBag:
    """
    Extract the initial data bag from a tree.

    Params:
        nodes: Root list of schema nodes
        registry: Optional type registry deciding which types bind values

    Returns:
        Flat mapping of every input node's key to its default value
    """
    return {
        node["key"]: default_for_type(node)
        for node in iter_nodes(nodes)
        if node.get("key") and is_input_node(node, registry)
    }


def local_timezone_name() -> str:
    """Name of the host's local timezone, falling back to UTC."""
    tzinfo = datetime.now().astimezone().tzinfo
    name = tzinfo.tzname(None) if tzinfo is not None else None
    return name or "UTC"


def create_empty_submission(
    schema: FormSchema, timezone: str | None = None
) -> dict[str, Any]:
    """
    Create a submission payload holding the schema's default values.

    Params:
        schema: Parsed form schema
        timezone: Timezone to record in the metadata, defaults to local

    Returns:
        `{"data": ..., "metadata": {"timezone": ...}, "state": "submitted"}`
    """
    return {
        "data": extract_default_values(schema.get("components")),
        "metadata": {"timezone": timezone or local_timezone_name()},
        "state": "submitted",
    }
