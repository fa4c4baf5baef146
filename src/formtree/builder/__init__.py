"""
formtree structural editing.

This package provides the schema editor used by form builders and its
bounded undo/redo history.
"""

from formtree.builder.form_builder import FormBuilder
from formtree.builder.history import DEFAULT_HISTORY_LIMIT, History, HistorySnapshot

__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "FormBuilder",
    "History",
    "HistorySnapshot",
]
