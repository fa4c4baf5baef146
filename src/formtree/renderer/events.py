"""
Event and result records emitted by a form instance.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from formtree.validation.rules import ValidationError


class FormEventType(Enum):
    CHANGE = "change"
    BLUR = "blur"
    RESET = "reset"
    SCHEMA = "schema"
    SUBMIT = "submit"


class ChangeSource(str, Enum):
    """Who wrote a value into the data bag."""

    USER = "user"
    CALCULATED = "calculated"


@dataclass(frozen=True)
class FormEvent:
    """Notification delivered to form subscribers."""

    type: FormEventType
    key: str | None = None
    value: Any = None
    old_value: Any = None
    source: ChangeSource = ChangeSource.USER


@dataclass
class SubmitResult:
    """Outcome of `FormRenderer.submit`."""

    success: bool
    submission: dict[str, Any] | None = None
    errors: list[ValidationError] = field(default_factory=list)
