"""
formtree multi-page wizards.

This package provides page derivation and the navigation controller for
forms displayed one page at a time.
"""

from formtree.wizard.controller import WizardController, WizardPage, derive_pages

__all__ = [
    "WizardController",
    "WizardPage",
    "derive_pages",
]
