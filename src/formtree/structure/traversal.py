"""
Schema tree traversal utilities.

Layout containers nest their children in several shapes. Every validator,
evaluator and structural edit goes through this module, so it is the single
place that knows about those shapes:

- `components`: flat list of child nodes
- `columns`: column groups, each with its own `components` list
- `tabs`: named page/tab groups, each with its own `components` list
- `rows`: a grid of rows of cells, each cell with its own `components` list
- `tree`: recursive entries `{data, components, children: [entry, ...]}`

Groups, cells and tree entries are not nodes; only the dicts inside their
child lists are. Missing or malformed containers count as zero children.
"""

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from formtree.core.types import ComponentNode, NodeList, NodePredicate, NodeVisitor

if TYPE_CHECKING:
    from formtree.structure.registry import ComponentRegistry

# Types that never hold a value of their own when no registry is supplied
NON_INPUT_TYPES = frozenset(
    {
        "button",
        "content",
        "htmlelement",
        "panel",
        "columns",
        "fieldset",
        "well",
        "tabs",
        "table",
        "tree",
    }
)

GROUP_CONTAINER_KEYS = ("columns", "tabs")


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _iter_tree_entry_lists(entries: Any) -> Iterator[NodeList]:
    for entry in _as_list(entries):
        if not isinstance(entry, dict):
            continue
        components = entry.get("components")
        if isinstance(components, list):
            yield components
        yield from _iter_tree_entry_lists(entry.get("children"))


def iter_child_lists(node: ComponentNode) -> Iterator[NodeList]:
    """
    Yield every list that directly owns children of `node`.

    Lists are produced in document order: the flat `components` list first,
    then column groups, tab groups, grid cells (row-major) and tree entries
    (depth-first). Yielded lists are the live lists stored in the node, so
    callers can splice them.

    Params:
        node: Schema node to inspect

    Returns:
        Iterator over the node's child lists
    """
    if not isinstance(node, dict):
        return

    components = node.get("components")
    if isinstance(components, list):
        yield components

    for group_key in GROUP_CONTAINER_KEYS:
        for group in _as_list(node.get(group_key)):
            if isinstance(group, dict) and isinstance(group.get("components"), list):
                yield group["components"]

    for row in _as_list(node.get("rows")):
        for cell in _as_list(row):
            if isinstance(cell, dict) and isinstance(cell.get("components"), list):
                yield cell["components"]

    yield from _iter_tree_entry_lists(node.get("tree"))


def iter_children(node: ComponentNode) -> Iterator[ComponentNode]:
    """Yield the direct child nodes of `node` across all nesting shapes."""
    for child_list in iter_child_lists(node):
        for child in child_list:
            if isinstance(child, dict):
                yield child


def iter_nodes(
    nodes: NodeList | None, prune: NodePredicate | None = None
) -> Iterator[ComponentNode]:
    """
    Walk a node list depth-first, parents before children.

    Each node object is yielded at most once, which also makes the walk
    terminate on self-referential trees.

    Params:
        nodes: Root list of schema nodes (None counts as empty)
        prune: Optional predicate; when it returns True for a node, that
            node is still yielded but its descendants are skipped

    Returns:
        Iterator over every reachable node
    """
    seen: set[int] = set()
    stack: list[Iterator[ComponentNode]] = [
        iter(n for n in _as_list(nodes) if isinstance(n, dict))
    ]

    while stack:
        node = next(stack[-1], None)
        if node is None:
            stack.pop()
            continue
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node
        if prune is None or not prune(node):
            stack.append(iter_children(node))


def traverse(nodes: NodeList | None, visitor: NodeVisitor) -> None:
    """Call `visitor(node)` for every node reachable from `nodes`."""
    for node in iter_nodes(nodes):
        visitor(node)


def find_by_key(nodes: NodeList | None, key: str) -> ComponentNode | None:
    """
    Find the first node with the given key.

    Params:
        nodes: Root list of schema nodes
        key: Data-binding key to look for

    Returns:
        The matching node, or None if no node carries that key
    """
    for node in iter_nodes(nodes):
        if node.get("key") == key:
            return node
    return None


def iter_node_lists(nodes: NodeList | None) -> Iterator[NodeList]:
    """Yield the root list followed by every child list in the tree."""
    if not isinstance(nodes, list):
        return
    yield nodes
    for node in iter_nodes(nodes):
        yield from iter_child_lists(node)


def find_with_parent_list(
    nodes: NodeList | None, key: str
) -> tuple[NodeList, int] | None:
    """
    Locate a node together with the list that owns it.

    Params:
        nodes: Root list of schema nodes
        key: Data-binding key to look for

    Returns:
        `(owning_list, index)` for the first match so callers can splice,
        or None if no node carries that key
    """
    for node_list in iter_node_lists(nodes):
        for index, node in enumerate(node_list):
            if isinstance(node, dict) and node.get("key") == key:
                return node_list, index
    return None


def owns_list(nodes: NodeList | None, candidate: Any) -> bool:
    """Check whether `candidate` is the root list or a child list of the tree."""
    return any(node_list is candidate for node_list in iter_node_lists(nodes))


def collect_keys(nodes: NodeList | None) -> set[str]:
    """Collect every key used anywhere in the tree."""
    return {
        node["key"]
        for node in iter_nodes(nodes)
        if isinstance(node.get("key"), str) and node["key"]
    }


def is_input_node(
    node: ComponentNode, registry: "ComponentRegistry | None" = None
) -> bool:
    """
    Decide whether a node binds a value in the data bag.

    Params:
        node: Schema node to inspect
        registry: Optional type registry; without one the built-in
            `NON_INPUT_TYPES` set is used

    Returns:
        False for nodes flagged `input: false` and for non-input types
    """
    if node.get("input") is False:
        return False
    node_type = node.get("type", "")
    if registry is not None:
        return registry.is_input_type(node_type)
    return node_type not in NON_INPUT_TYPES


def flatten_components(
    nodes: NodeList | None, registry: "ComponentRegistry | None" = None
) -> list[ComponentNode]:
    """Return every input-capable node in traversal order."""
    return [node for node in iter_nodes(nodes) if is_input_node(node, registry)]


def flatten_inputs(
    nodes: NodeList | None, registry: "ComponentRegistry | None" = None
) -> list[ComponentNode]:
    """Return input-capable nodes, excluding buttons, in traversal order."""
    return [
        node
        for node in flatten_components(nodes, registry)
        if node.get("type") != "button"
    ]
