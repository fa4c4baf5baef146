"""
Rule models for conditional visibility and advanced logic.

Nodes carry two kinds of dynamic behaviour: a `conditional` mapping that
decides whether the node is shown, and a `logic` list of rules that patch
node properties while a trigger holds. Both are parsed into the models below
before evaluation.
"""

import logging
from typing import Any

from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from formtree.core.tree_node import FormModel
from formtree.core.types import ComponentNode

logger = logging.getLogger(__name__)

# Accepted spellings of each trigger kind
TRIGGER_ALIASES = {
    "simple": "simple",
    "json": "json",
    "jsonlogic": "json",
    "javascript": "javascript",
    "script": "javascript",
}


class SimpleCondition(FormModel):
    """`{when, eq, show}`: compare one field against a constant."""

    show: bool | None = None
    when: str | None = None
    eq: Any = None

    @field_validator("show", mode="before")
    @classmethod
    def coerce_show(cls, value: Any) -> Any:
        if value in ("", None):
            return None
        if value == "true":
            return True
        if value == "false":
            return False
        return value

    @field_validator("when", mode="before")
    @classmethod
    def blank_when(cls, value: Any) -> Any:
        return value or None


class ConditionalRule(SimpleCondition):
    """A node's `conditional` mapping, optionally with a JSON Logic rule."""

    json_logic: Any = Field(None, alias="json")


class LogicTrigger(FormModel):
    """Condition under which a logic rule's actions apply."""

    type: str = "simple"
    simple: SimpleCondition | None = None
    json_logic: Any = Field(None, alias="json")
    javascript: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: Any) -> str:
        text = str(value or "simple").strip().lower()
        return TRIGGER_ALIASES.get(text, text)


class PropertyRef(FormModel):
    """Node property a `property` action writes."""

    value: str
    label: str | None = None
    type: str | None = None


class LogicAction(FormModel):
    """Effect applied while a trigger holds."""

    name: str | None = None
    type: str = "property"
    property: PropertyRef | None = None
    state: Any = None
    text: str | None = None

    @field_validator("property", mode="before")
    @classmethod
    def property_from_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"value": value} if value else None
        return value


class LogicRule(FormModel):
    """One entry of a node's `logic` list."""

    name: str | None = None
    trigger: LogicTrigger = Field(default_factory=LogicTrigger)
    actions: list[LogicAction] = Field(default_factory=list)


def parse_conditional(node: ComponentNode) -> ConditionalRule | None:
    """
    Parse a node's `conditional` mapping.

    Params:
        node: Schema node

    Returns:
        Parsed rule, or None when the node has no usable conditional
    """
    raw = node.get("conditional")
    if not isinstance(raw, dict) or not raw:
        return None
    try:
        return ConditionalRule.model_validate(raw)
    except PydanticValidationError as e:
        logger.warning(
            "Ignoring invalid conditional on component '%s': %s", node.get("key"), e
        )
        return None


def parse_logic_rules(node: ComponentNode) -> list[LogicRule]:
    """
    Parse a node's `logic` list, skipping (and logging) malformed entries.

    Params:
        node: Schema node

    Returns:
        Parsed rules in document order
    """
    raw = node.get("logic")
    if not isinstance(raw, list):
        return []

    rules = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            continue
        try:
            rules.append(LogicRule.model_validate(entry))
        except PydanticValidationError as e:
            logger.warning(
                "Ignoring invalid logic rule %d on component '%s': %s",
                index,
                node.get("key"),
                e,
            )
    return rules
