"""
Multi-page wizard navigation.

A wizard splits a form into pages, one per top-level node of the page type
(panels by default). The controller tracks the current page, which pages
have been visited and which failed validation, and gates forward navigation
on the current page being valid.
"""

import logging
from typing import TYPE_CHECKING

from attrs import frozen

from formtree.config import WizardOptions
from formtree.core.types import ComponentNode, NodeList
from formtree.structure.traversal import flatten_inputs
from formtree.validation.rules import ValidationError

if TYPE_CHECKING:
    from formtree.renderer.form_renderer import FormRenderer
    from formtree.structure.registry import ComponentRegistry

logger = logging.getLogger(__name__)


@frozen(eq=False)
class WizardPage:
    index: int
    title: str
    key: str
    node: ComponentNode
    input_nodes: list[ComponentNode]


def derive_pages(
    nodes: NodeList | None,
    page_type: str = "panel",
    registry: "ComponentRegistry | None" = None,
) -> list[WizardPage]:
    """
    Build the wizard pages of a form.

    Params:
        nodes: Root list of schema nodes
        page_type: Type of the top-level nodes that become pages
        registry: Type registry deciding which nodes are inputs

    Returns:
        Pages in document order, numbered from 0
    """
    page_nodes = [
        node
        for node in (nodes if isinstance(nodes, list) else [])
        if isinstance(node, dict) and node.get("type") == page_type
    ]
    return [
        WizardPage(
            index=index,
            title=node.get("title") or node.get("label") or f"Page {index + 1}",
            key=node.get("key", ""),
            node=node,
            input_nodes=[
                child for child in flatten_inputs([node], registry) if child is not node
            ],
        )
        for index, node in enumerate(page_nodes)
    ]


class WizardController:
    """Page navigation over a FormRenderer.

    Notes:
      - Pages are re-derived whenever the form's schema revision changes;
        the current index is clamped into the new page range.
      - Page validation respects the form's visibility and overrides.
    """

    def __init__(self, form: "FormRenderer", options: WizardOptions | None = None):
        self.form = form
        self.options = options or WizardOptions()
        self.current_page_index = 0
        self.visited_pages: set[int] = {0}
        self.page_errors: dict[int, list[ValidationError]] = {}
        self._pages: list[WizardPage] = []
        self._pages_revision: int | None = None

    @property
    def pages(self) -> list[WizardPage]:
        if self._pages_revision != self.form.revision:
            self._pages = derive_pages(
                self.form.components, self.options.page_type, self.form.registry
            )
            self._pages_revision = self.form.revision
            if self._pages:
                self.current_page_index = min(self.current_page_index, len(self._pages) - 1)
            else:
                self.current_page_index = 0
        return self._pages

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    @property
    def current_page(self) -> WizardPage | None:
        pages = self.pages
        if 0 <= self.current_page_index < len(pages):
            return pages[self.current_page_index]
        return None

    @property
    def is_first_page(self) -> bool:
        return self.current_page_index == 0

    @property
    def is_last_page(self) -> bool:
        return self.current_page_index == self.total_pages - 1

    @property
    def can_next(self) -> bool:
        return self.current_page_index < self.total_pages - 1

    @property
    def can_prev(self) -> bool:
        return self.current_page_index > 0

    @property
    def progress(self) -> int:
        """Percentage of the way through the wizard, rounded."""
        total = self.total_pages
        if total <= 1:
            return 100
        return round(self.current_page_index / (total - 1) * 100)

    def validate_current_page(self) -> list[ValidationError]:
        """
        Validate the inputs on the current page.

        The result is recorded in `page_errors` and in the form's errors.

        Returns:
            Errors of the current page, fields in page order
        """
        page = self.current_page
        if page is None:
            return []

        field_errors = self.form.collect_errors([page.node])
        for node in page.input_nodes:
            self.form.errors.pop(node.get("key"), None)
        self.form.errors.update(field_errors)
        self.form.is_valid = not self.form.errors
        self.form.show_errors = True

        errors = [error for errors in field_errors.values() for error in errors]
        if errors:
            self.page_errors[page.index] = errors
        else:
            self.page_errors.pop(page.index, None)
        return errors

    def go_next(self) -> bool:
        """Advance one page; in linear mode only when the current page is valid."""
        if not self.can_next:
            return False
        if self.options.linear and self.validate_current_page():
            logger.debug("Page %d has errors, not advancing", self.current_page_index)
            return False
        self.current_page_index += 1
        self.visited_pages.add(self.current_page_index)
        return True

    def go_prev(self) -> bool:
        """Go back one page without validating."""
        if not self.can_prev:
            return False
        self.current_page_index -= 1
        return True

    def go_to_page(self, index: int) -> bool:
        """
        Jump to a page.

        Params:
            index: Target page index

        Returns:
            True when the current page changed or already was `index`
        """
        if not 0 <= index < self.total_pages:
            return False
        if not self.options.breadcrumb_clickable and index not in self.visited_pages:
            return False
        if (
            self.options.linear
            and index > self.current_page_index
            and self.validate_current_page()
        ):
            return False
        self.current_page_index = index
        self.visited_pages.add(index)
        return True

    def reset(self) -> None:
        self.current_page_index = 0
        self.visited_pages = {0}
        self.page_errors = {}

    def is_page_valid(self, index: int) -> bool:
        return index not in self.page_errors

    def is_page_visited(self, index: int) -> bool:
        return index in self.visited_pages

    def is_page_current(self, index: int) -> bool:
        return self.current_page_index == index
