"""
Shared test fixtures and utilities for the formtree test suite.
"""

import pytest

from formtree.config import SandboxOptions
from formtree.expressions import ExpressionSandbox
from formtree.structure import ComponentRegistry


@pytest.fixture
def registry():
    """Registry pre-populated with the built-in component types."""
    return ComponentRegistry.with_defaults()


@pytest.fixture
def sandbox():
    """Expression sandbox with a small step budget so runaway scripts fail fast."""
    return ExpressionSandbox(SandboxOptions(max_steps=2_000))


@pytest.fixture
def nested_components():
    """One input in each of the five nesting shapes, plus a root field.

    Traversal order: root, panel, in_panel, cols, in_column, tabs, in_tab,
    grid, in_cell, tree, in_entry, in_child_entry.
    """
    return [
        {"type": "textfield", "key": "root", "label": "Root"},
        {
            "type": "panel",
            "key": "panel",
            "components": [{"type": "textfield", "key": "in_panel", "label": "In panel"}],
        },
        {
            "type": "columns",
            "key": "cols",
            "columns": [
                {"width": 6, "components": [{"type": "number", "key": "in_column"}]},
                {"width": 6, "components": []},
            ],
        },
        {
            "type": "tabs",
            "key": "tabs",
            "tabs": [
                {
                    "key": "tab1",
                    "label": "Tab 1",
                    "components": [{"type": "email", "key": "in_tab"}],
                }
            ],
        },
        {
            "type": "table",
            "key": "grid",
            "rows": [[{"components": [{"type": "checkbox", "key": "in_cell"}]}, {}]],
        },
        {
            "type": "tree",
            "key": "tree",
            "tree": [
                {
                    "data": {},
                    "components": [{"type": "textfield", "key": "in_entry"}],
                    "children": [
                        {
                            "data": {},
                            "components": [
                                {"type": "textfield", "key": "in_child_entry"}
                            ],
                            "children": [],
                        }
                    ],
                }
            ],
        },
    ]


@pytest.fixture
def wizard_schema():
    """Three panel pages; the first has a required field."""
    return {
        "display": "wizard",
        "components": [
            {
                "type": "panel",
                "key": "page1",
                "title": "Personal",
                "components": [
                    {
                        "type": "textfield",
                        "key": "name",
                        "label": "Name",
                        "validate": {"required": True},
                    }
                ],
            },
            {
                "type": "panel",
                "key": "page2",
                "label": "Contact",
                "components": [{"type": "email", "key": "email", "label": "Email"}],
            },
            {
                "type": "panel",
                "key": "page3",
                "components": [{"type": "textarea", "key": "notes"}],
            },
        ],
    }
