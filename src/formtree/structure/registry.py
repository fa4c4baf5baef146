"""
Component type registry.

The registry maps a node `type` tag to its behaviour: the default schema used
when the builder creates a node, whether the type binds a value, and the
palette metadata the builder UI groups components by. It is an ordinary
object constructed by the host application and passed by reference to the
builder, renderer and wizard; nothing here is module-level state.
"""

import copy
from dataclasses import dataclass, field
from typing import Any

from formtree.core.types import ComponentNode


@dataclass
class ComponentType:
    """Registration record for one component type."""

    type: str
    title: str
    group: str = "basic"
    icon: str = ""
    weight: int = 0
    input: bool = True
    default_schema: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.type} ({self.group})"


# (type, title, group, weight, input, extra default schema)
_BUILTIN_TYPES: tuple[tuple[str, str, str, int, bool, dict[str, Any]], ...] = (
    ("textfield", "Text Field", "basic", 0, True, {}),
    ("textarea", "Text Area", "basic", 10, True, {"rows": 3}),
    ("number", "Number", "basic", 20, True, {}),
    ("password", "Password", "basic", 30, True, {}),
    ("checkbox", "Checkbox", "basic", 40, True, {}),
    ("selectboxes", "Select Boxes", "basic", 50, True, {"values": []}),
    ("select", "Select", "basic", 60, True, {"data": {"values": []}}),
    ("radio", "Radio", "basic", 70, True, {"values": []}),
    ("button", "Button", "basic", 80, False, {"action": "submit"}),
    ("email", "Email", "advanced", 0, True, {}),
    ("url", "Url", "advanced", 10, True, {}),
    ("phoneNumber", "Phone Number", "advanced", 20, True, {}),
    ("datetime", "Date / Time", "advanced", 30, True, {}),
    ("currency", "Currency", "advanced", 40, True, {}),
    ("container", "Container", "data", 0, True, {"components": []}),
    ("panel", "Panel", "layout", 0, False, {"title": "Panel", "components": []}),
    ("fieldset", "Field Set", "layout", 10, False, {"components": []}),
    ("well", "Well", "layout", 20, False, {"components": []}),
    (
        "columns",
        "Columns",
        "layout",
        30,
        False,
        {"columns": [{"components": [], "width": 6}, {"components": [], "width": 6}]},
    ),
    (
        "tabs",
        "Tabs",
        "layout",
        40,
        False,
        {"tabs": [{"key": "tab1", "label": "Tab 1", "components": []}]},
    ),
    ("table", "Table", "layout", 50, False, {"rows": [[{"components": []}]]}),
    ("tree", "Tree", "layout", 60, False, {"tree": []}),
    ("content", "Content", "layout", 70, False, {"html": ""}),
    ("htmlelement", "HTML Element", "layout", 80, False, {"tag": "p"}),
)


class ComponentRegistry:
    """Registry of component types keyed by their `type` tag.

    Responsibilities:
      - Produce default schemas for new nodes (`resolve_default_schema`).
      - Answer whether a type binds a value (`is_input_type`).
      - Provide palette groups for the builder UI (`builder_groups`).

    Unknown types are treated as input types so that forms authored against a
    richer registry still validate their fields.
    """

    def __init__(self, types: list[ComponentType] | None = None):
        self._types: dict[str, ComponentType] = {}
        for component_type in types or []:
            self.register_type(component_type)

    @classmethod
    def with_defaults(cls) -> "ComponentRegistry":
        """Create a registry pre-populated with the built-in component types."""
        registry = cls()
        for type_name, title, group, weight, is_input, schema in _BUILTIN_TYPES:
            registry.register(
                type_name,
                title=title,
                group=group,
                weight=weight,
                input=is_input,
                default_schema=schema,
            )
        return registry

    def register(
        self,
        type_name: str,
        title: str | None = None,
        group: str = "basic",
        icon: str = "",
        weight: int = 0,
        input: bool = True,
        default_schema: dict[str, Any] | None = None,
    ) -> ComponentType:
        """
        Register (or replace) a component type.

        Params:
            type_name: The `type` tag nodes of this kind carry
            title: Human readable name, defaults to the capitalised tag
            group: Builder palette group
            icon: Builder palette icon name
            weight: Sort order within the palette group
            input: Whether nodes of this type bind a value
            default_schema: Extra properties copied into every new node

        Returns:
            The stored ComponentType record
        """
        component_type = ComponentType(
            type=type_name,
            title=title or type_name[:1].upper() + type_name[1:],
            group=group,
            icon=icon,
            weight=weight,
            input=input,
            default_schema=copy.deepcopy(default_schema or {}),
        )
        return self.register_type(component_type)

    def register_type(self, component_type: ComponentType) -> ComponentType:
        """Store a pre-built ComponentType record."""
        self._types[component_type.type] = component_type
        return component_type

    def unregister(self, type_name: str) -> bool:
        """Remove a type; returns False if it was not registered."""
        return self._types.pop(type_name, None) is not None

    def resolve(self, type_name: str) -> ComponentType | None:
        """Get the registration record for a type, or None."""
        return self._types.get(type_name)

    def has(self, type_name: str) -> bool:
        """Check if a type is registered."""
        return type_name in self._types

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def types(self) -> list[str]:
        """Get all registered type tags in registration order."""
        return list(self._types)

    def is_input_type(self, type_name: str) -> bool:
        """Check whether nodes of `type_name` bind a value (unknown types do)."""
        component_type = self._types.get(type_name)
        return component_type.input if component_type else True

    def resolve_default_schema(self, type_name: str) -> ComponentNode | None:
        """
        Build a fresh default node for a type.

        The result is an independent deep copy; callers are free to mutate it.

        Params:
            type_name: Registered type tag

        Returns:
            New node dict with `type`, `key`, `label` and `input` set, or None
            if the type is not registered
        """
        component_type = self._types.get(type_name)
        if component_type is None:
            return None

        node: ComponentNode = {
            "type": type_name,
            "key": type_name,
            "label": component_type.title,
            "input": component_type.input,
        }
        node.update(copy.deepcopy(component_type.default_schema))
        return node

    def builder_groups(self) -> dict[str, list[ComponentType]]:
        """Group registered types by palette group, each sorted by weight."""
        groups: dict[str, list[ComponentType]] = {}
        for component_type in self._types.values():
            groups.setdefault(component_type.group, []).append(component_type)
        for members in groups.values():
            members.sort(key=lambda item: item.weight)
        return groups
