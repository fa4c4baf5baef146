"""
Core type definitions for the formtree engine.

This module contains the fundamental type aliases shared by the traversal,
validation, logic, builder and renderer packages. Schema nodes are kept as
plain JSON-like dictionaries so that unknown properties survive round trips.
"""

from collections.abc import Callable
from typing import Any

FieldValue = str | int | float | bool | list | dict | None

ComponentNode = dict[str, Any]

NodeList = list[ComponentNode]

DataBag = dict[str, Any]

OverridePatch = dict[str, Any]

OverrideMap = dict[str, OverridePatch]

FormSchema = dict[str, Any]

NodeVisitor = Callable[[ComponentNode], Any]

NodePredicate = Callable[[ComponentNode], bool]
