"""
Structural editor for form schemas.

`FormBuilder` owns one schema tree and applies the edits a drag-and-drop
builder issues: adding, removing, duplicating, updating and moving nodes in
any container list of the tree. Every successful edit records the previous
tree in the undo history, bumps the revision counter and notifies
subscribers.

Invalid requests (unknown keys or types, lists that are not part of the live
tree, out-of-range indexes) are logged and ignored; the builder never raises
on them.
"""

import logging
from collections.abc import Callable
from typing import Any

from formtree.builder.history import History, HistorySnapshot
from formtree.config import BuilderOptions
from formtree.core.cloning import safe_deep_clone
from formtree.core.types import ComponentNode, FormSchema, NodeList
from formtree.structure.registry import ComponentRegistry, ComponentType
from formtree.structure.schema import generate_component_key, parse_form_schema
from formtree.structure.traversal import (
    collect_keys,
    find_by_key,
    find_with_parent_list,
    iter_nodes,
    owns_list,
)

logger = logging.getLogger(__name__)

BuilderListener = Callable[[str], None]


def _clamp(index: int | None, upper: int) -> int:
    if index is None:
        return upper
    return max(0, min(index, upper))


class FormBuilder:
    """Schema tree under construction, with undo/redo.

    Responsibilities:
      - Apply structural edits to any container list in the tree.
      - Keep keys unique across the whole tree for new and duplicated nodes.
      - Record pre-edit snapshots and swap them back on undo/redo.

    Notes:
      - Target lists are identified by identity and must belong to the live
        tree; lists obtained before an undo, redo or import are stale.
      - `revision` increases on every change so that cached traversals can be
        invalidated.
    """

    def __init__(
        self,
        schema: FormSchema | None = None,
        registry: ComponentRegistry | None = None,
        options: BuilderOptions | None = None,
    ):
        self.options = options or BuilderOptions()
        self.registry = registry or ComponentRegistry.with_defaults()
        self.schema: FormSchema = parse_form_schema(schema or {})
        self.history = History(self.options.history_limit)
        self.selected_key: str | None = None
        self.is_preview_mode = False
        self.revision = 0
        self._listeners: list[BuilderListener] = []

    # ---- state -------------------------------------------------------------

    @property
    def components(self) -> NodeList:
        """Root node list of the live tree."""
        return self.schema["components"]

    @property
    def selected_node(self) -> ComponentNode | None:
        if self.selected_key is None:
            return None
        return find_by_key(self.components, self.selected_key)

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def builder_groups(self) -> dict[str, list[ComponentType]]:
        """Palette groups of the registry this builder adds nodes from."""
        return self.registry.builder_groups()

    def subscribe(self, listener: BuilderListener) -> Callable[[], None]:
        """
        Register a change listener.

        Listeners receive the name of each applied change (`"add"`,
        `"undo"`, ...).

        Params:
            listener: Callable invoked after every change

        Returns:
            Callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- node operations -----------------------------------------------------

    def add_node(
        self,
        type_name: str,
        target_list: NodeList | None = None,
        index: int | None = None,
    ) -> ComponentNode | None:
        """
        Add a new node of a registered type.

        Params:
            type_name: Registered component type
            target_list: Container list to insert into, defaults to the root
            index: Insert position, defaults to the end (clamped)

        Returns:
            The inserted node, or None when the request was ignored
        """
        node = self.registry.resolve_default_schema(type_name)
        if node is None:
            logger.warning("Cannot add unknown component type '%s'", type_name)
            return None
        node_list = self._resolve_list(target_list)
        if node_list is None:
            return None

        node["key"] = generate_component_key(type_name, collect_keys(self.components))
        if not node.get("label"):
            component_type = self.registry.resolve(type_name)
            node["label"] = component_type.title if component_type else type_name

        self._record("add")
        node_list.insert(_clamp(index, len(node_list)), node)
        self.selected_key = node["key"]
        self._changed("add")
        return node

    def remove_node(self, key: str, target_list: NodeList | None = None) -> ComponentNode | None:
        """
        Remove a node (and its subtree).

        Params:
            key: Key of the node to remove
            target_list: List to search; None searches the whole tree

        Returns:
            The removed node, or None when nothing matched
        """
        location = self._locate(key, target_list)
        if location is None:
            return None
        node_list, index = location

        self._record("remove")
        removed = node_list.pop(index)
        if self.selected_key is not None and self.selected_key in collect_keys([removed]):
            self.selected_key = None
        self._changed("remove")
        return removed

    def duplicate_node(
        self, key: str, target_list: NodeList | None = None
    ) -> ComponentNode | None:
        """
        Insert a deep copy of a node right after the original.

        The copy gets a fresh key. Descendant keys are kept unless
        `BuilderOptions.regenerate_descendant_keys` is set.

        Params:
            key: Key of the node to copy
            target_list: List to search; None searches the whole tree

        Returns:
            The inserted copy, or None when nothing matched
        """
        location = self._locate(key, target_list)
        if location is None:
            return None
        node_list, index = location
        original = node_list[index]

        clone = safe_deep_clone(original)
        taken = collect_keys(self.components)
        clone["key"] = generate_component_key(original.get("type") or "field", taken)
        taken.add(clone["key"])
        if self.options.regenerate_descendant_keys:
            for descendant in iter_nodes([clone]):
                if descendant is clone or not descendant.get("key"):
                    continue
                descendant["key"] = generate_component_key(
                    descendant.get("type") or "field", taken
                )
                taken.add(descendant["key"])

        self._record("duplicate")
        node_list.insert(index + 1, clone)
        self.selected_key = clone["key"]
        self._changed("duplicate")
        return clone

    def update_node(self, key: str, patch: dict[str, Any]) -> ComponentNode | None:
        """
        Merge properties into a stored node.

        Params:
            key: Key of the node to update
            patch: Properties to set

        Returns:
            The updated node, or None when no node has that key
        """
        node = find_by_key(self.components, key)
        if node is None:
            logger.warning("Cannot update unknown component '%s'", key)
            return None
        if not patch:
            logger.debug("Empty update for component '%s' ignored", key)
            return node

        self._record("update")
        node.update(patch)
        if self.selected_key == key and "key" in patch:
            self.selected_key = node.get("key")
        self._changed("update")
        return node

    def move_node(self, node_list: NodeList, from_index: int, to_index: int) -> bool:
        """
        Reorder a node within one list.

        `to_index` is a drop position in the list as it was before the move
        (`0..len`), so dropping at or right after the source is a no-op.

        Params:
            node_list: Container list holding the node
            from_index: Current index of the node
            to_index: Drop position

        Returns:
            True when the list changed
        """
        if self._resolve_list(node_list) is None:
            return False
        if not 0 <= from_index < len(node_list) or not 0 <= to_index <= len(node_list):
            logger.warning(
                "Ignoring move %d -> %d in a list of %d nodes",
                from_index,
                to_index,
                len(node_list),
            )
            return False
        if to_index in (from_index, from_index + 1):
            logger.debug("Move %d -> %d is a no-op", from_index, to_index)
            return False

        self._record("move")
        node = node_list.pop(from_index)
        node_list.insert(to_index - 1 if to_index > from_index else to_index, node)
        self._changed("move")
        return True

    def move_node_between_lists(
        self,
        source: NodeList,
        source_index: int,
        target: NodeList,
        target_index: int | None = None,
    ) -> bool:
        """
        Move a node from one container list to another.

        Params:
            source: List currently holding the node
            source_index: Index of the node in `source`
            target: List to move the node into
            target_index: Insert position in `target`, defaults to the end

        Returns:
            True when the tree changed
        """
        if source is target:
            return self.move_node(
                source, source_index, len(source) if target_index is None else target_index
            )
        if self._resolve_list(source) is None or self._resolve_list(target) is None:
            return False
        if not 0 <= source_index < len(source):
            logger.warning(
                "Ignoring move of index %d from a list of %d nodes",
                source_index,
                len(source),
            )
            return False

        node = source[source_index]
        if owns_list([node], target):
            logger.warning(
                "Cannot move component '%s' into its own subtree", node.get("key")
            )
            return False

        self._record("move")
        source.pop(source_index)
        target.insert(_clamp(target_index, len(target)), node)
        self._changed("move")
        return True

    def select_node(self, key: str | None) -> ComponentNode | None:
        """Select a node for editing (None clears the selection)."""
        if key is None:
            self.selected_key = None
            return None
        node = find_by_key(self.components, key)
        if node is None:
            logger.debug("Cannot select unknown component '%s'", key)
            return None
        self.selected_key = key
        return node

    # ---- form operations -----------------------------------------------------

    def clear_form(self) -> None:
        """Remove every node from the form."""
        self._record("clear")
        self.schema["components"] = []
        self.selected_key = None
        self._changed("clear")

    def import_schema(self, schema: FormSchema) -> None:
        """Replace the whole schema with a normalized copy of `schema`."""
        self._record("import")
        self.schema = parse_form_schema(schema)
        self.selected_key = None
        self._changed("import")

    def export_schema(self) -> FormSchema:
        """Return an independent, cycle-free copy of the schema."""
        return safe_deep_clone(self.schema)

    def toggle_preview(self) -> bool:
        """Switch between editing and preview; returns the new preview state."""
        self.is_preview_mode = not self.is_preview_mode
        self.selected_key = None
        return self.is_preview_mode

    # ---- history -------------------------------------------------------------

    def undo(self) -> bool:
        """Restore the schema as it was before the last change."""
        snapshot = self.history.undo(self.schema)
        return self._restore(snapshot, "undo")

    def redo(self) -> bool:
        """Re-apply the last undone change."""
        snapshot = self.history.redo(self.schema)
        return self._restore(snapshot, "redo")

    def _restore(self, snapshot: HistorySnapshot | None, action: str) -> bool:
        if snapshot is None:
            logger.debug("Nothing to %s", action)
            return False
        self.schema = safe_deep_clone(snapshot.schema)
        self.selected_key = None
        self._changed(action)
        return True

    # ---- internals -----------------------------------------------------------

    def _resolve_list(self, node_list: NodeList | None) -> NodeList | None:
        if node_list is None:
            return self.components
        if not owns_list(self.components, node_list):
            logger.warning("Ignoring a node list that is not part of this form")
            return None
        return node_list

    def _locate(self, key: str, target_list: NodeList | None) -> tuple[NodeList, int] | None:
        if target_list is None:
            location = find_with_parent_list(self.components, key)
        elif self._resolve_list(target_list) is None:
            return None
        else:
            location = next(
                (
                    (target_list, index)
                    for index, node in enumerate(target_list)
                    if isinstance(node, dict) and node.get("key") == key
                ),
                None,
            )
        if location is None:
            logger.warning("No component with key '%s'", key)
        return location

    def _record(self, action: str) -> None:
        # Snapshot the whole schema before it changes
        self.history.push(self.schema, action)

    def _changed(self, action: str) -> None:
        self.revision += 1
        for listener in list(self._listeners):
            listener(action)
