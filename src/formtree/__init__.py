"""
formtree - A schema-driven form engine

formtree keeps a form's data bag in step with its schema: visibility rules,
property overrides, calculated values and validation, plus structural editing
with undo/redo and multi-page wizard navigation.
"""

from importlib.metadata import version

from formtree.builder import FormBuilder
from formtree.config import (
    BuilderOptions,
    RendererOptions,
    SandboxOptions,
    ValidateTrigger,
    WizardOptions,
)
from formtree.expressions import ExpressionSandbox
from formtree.renderer import FormEvent, FormRenderer, SubmitResult
from formtree.structure import ComponentRegistry, parse_form_schema
from formtree.validation import ValidationError, validate_field
from formtree.wizard import WizardController

__version__ = version("formtree")

__all__ = [
    "__version__",
    "BuilderOptions",
    "ComponentRegistry",
    "ExpressionSandbox",
    "FormBuilder",
    "FormEvent",
    "FormRenderer",
    "RendererOptions",
    "SandboxOptions",
    "SubmitResult",
    "ValidateTrigger",
    "ValidationError",
    "WizardController",
    "WizardOptions",
    "parse_form_schema",
    "validate_field",
]
