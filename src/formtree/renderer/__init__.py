"""
formtree form instances.

This package provides the live form instance that binds a data bag to a
schema, together with the events and results it produces.
"""

from formtree.renderer.events import ChangeSource, FormEvent, FormEventType, SubmitResult
from formtree.renderer.form_renderer import FormRenderer

__all__ = [
    "ChangeSource",
    "FormEvent",
    "FormEventType",
    "FormRenderer",
    "SubmitResult",
]
