"""
Option models for the formtree engine.

Hosts configure each subsystem with one of these pydantic models. They accept
the camelCase spellings used in form documents (`showErrors`,
`breadcrumbClickable`) as well as the Python attribute names, and invalid
values are rejected with a pydantic `ValidationError` at construction time.
"""

from enum import Enum

from pydantic import ConfigDict, Field

from formtree.core.tree_node import FormModel


class ValidateTrigger(str, Enum):
    """When field validation runs on its own (submit always validates)."""

    SUBMIT = "submit"
    CHANGE = "change"
    BLUR = "blur"


class _Options(FormModel):
    model_config = ConfigDict(extra="forbid")


class SandboxOptions(_Options):
    """Limits applied to every user-authored expression."""

    max_steps: int = Field(10_000, alias="maxSteps", gt=0)
    max_sequence_length: int = Field(100_000, alias="maxSequenceLength", gt=0)
    max_exponent: int = Field(1_000, alias="maxExponent", gt=0)
    max_integer_bits: int = Field(4_096, alias="maxIntegerBits", gt=0)


class RendererOptions(_Options):
    """Options for a live form instance."""

    validate_trigger: ValidateTrigger = Field(
        ValidateTrigger.SUBMIT, alias="showErrors"
    )
    read_only: bool = Field(False, alias="readOnly")
    disabled: bool = False
    no_defaults: bool = Field(False, alias="noDefaults")
    max_settle_iterations: int = Field(10, alias="maxSettleIterations", ge=1)
    timezone: str | None = None
    sandbox: SandboxOptions = Field(default_factory=SandboxOptions)


class BuilderOptions(_Options):
    """Options for the structural editor."""

    history_limit: int = Field(50, alias="historyLimit", ge=1)
    regenerate_descendant_keys: bool = Field(
        False, alias="regenerateDescendantKeys"
    )


class WizardOptions(_Options):
    """Options for multi-page navigation."""

    linear: bool = True
    breadcrumb_clickable: bool = Field(False, alias="breadcrumbClickable")
    page_type: str = Field("panel", alias="pageType")
