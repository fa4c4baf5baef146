"""
Validation rule model and error records.

A node's `validate` mapping is parsed into a `ValidationRule`. Failing rules
produce `ValidationError` records tagged with an `ErrorKind`, which is the
closed set of rule names the validator knows about.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import Field
from pydantic import ValidationError as PydanticValidationError

from formtree.core.tree_node import FormModel
from formtree.core.types import ComponentNode

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Rule that produced a validation error."""

    REQUIRED = "required"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    MIN = "min"
    MAX = "max"
    PATTERN = "pattern"
    INTEGER = "integer"
    MIN_WORDS = "minWords"
    MAX_WORDS = "maxWords"
    MIN_SELECTED_COUNT = "minSelectedCount"
    MAX_SELECTED_COUNT = "maxSelectedCount"
    CUSTOM = "custom"
    EMAIL = "email"
    URL = "url"


@dataclass(frozen=True)
class ValidationError:
    """One failed rule on one field. Not an exception: errors are data."""

    key: str
    type: ErrorKind
    message: str
    level: str = "error"

    def to_dict(self) -> dict[str, str]:
        return {
            "key": self.key,
            "type": self.type.value,
            "message": self.message,
            "level": self.level,
        }


class ValidationRule(FormModel):
    """Parsed form of a node's `validate` mapping."""

    required: bool = False
    min_length: int | None = Field(None, alias="minLength")
    max_length: int | None = Field(None, alias="maxLength")
    min: float | None = None
    max: float | None = None
    pattern: str | None = None
    integer: bool = False
    email: bool = False
    url: bool = False
    min_words: int | None = Field(None, alias="minWords")
    max_words: int | None = Field(None, alias="maxWords")
    min_selected_count: int | None = Field(None, alias="minSelectedCount")
    max_selected_count: int | None = Field(None, alias="maxSelectedCount")
    custom: str | None = None
    custom_message: str | None = Field(None, alias="customMessage")
    json_logic: dict[str, Any] | None = Field(None, alias="json")

    @classmethod
    def from_node(cls, node: ComponentNode) -> "ValidationRule":
        """
        Parse the rules of a node.

        A missing `validate` mapping yields an empty rule set. Entries that do
        not parse are logged and dropped one by one; the remaining rules still
        apply.

        Params:
            node: Schema node carrying an optional `validate` mapping

        Returns:
            Parsed ValidationRule
        """
        raw = node.get("validate")
        if not isinstance(raw, dict) or not raw:
            return cls()
        cleaned = {name: value for name, value in raw.items() if value not in (None, "")}
        while True:
            try:
                return cls.model_validate(cleaned)
            except PydanticValidationError as e:
                rejected = cls._rejected_keys(e, cleaned)
                logger.warning(
                    "Ignoring invalid validation rules %s on component '%s': %s",
                    sorted(rejected),
                    node.get("key"),
                    e,
                )
                if not rejected:
                    return cls()
                cleaned = {
                    name: value for name, value in cleaned.items() if name not in rejected
                }

    @classmethod
    def _rejected_keys(
        cls, error: PydanticValidationError, raw: dict[str, Any]
    ) -> set[str]:
        failed = {str(detail["loc"][0]) for detail in error.errors() if detail["loc"]}
        rejected = failed & raw.keys()
        for name, field in cls.model_fields.items():
            spellings = {name, field.alias} - {None}
            if spellings & failed:
                rejected |= spellings & raw.keys()
        return rejected
