"""
Live form instance.

`FormRenderer` owns the data bag of one filled-in form and keeps everything
derived from it current: logic-rule overrides, calculated values and
validation errors. A rendering layer reads its views (`effective_view`,
`get_field_errors`, `submission`) and feeds user input back through
`set_field_value` and `handle_field_blur`.

Every data change runs the settle loop: overrides are recomputed and
calculated values re-evaluated until a pass writes nothing, bounded by
`RendererOptions.max_settle_iterations`.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from formtree.config import RendererOptions, ValidateTrigger
from formtree.core.cloning import safe_deep_clone
from formtree.core.types import ComponentNode, DataBag, FormSchema, NodeList, OverrideMap
from formtree.expressions.sandbox import ExpressionSandbox
from formtree.logic.calculated import CalculatedValueEngine
from formtree.logic.conditional import LogicEvaluator, evaluate_visible, get_overridden_node
from formtree.renderer.events import ChangeSource, FormEvent, FormEventType, SubmitResult
from formtree.structure.registry import ComponentRegistry
from formtree.structure.schema import (
    extract_default_values,
    local_timezone_name,
    parse_form_schema,
)
from formtree.structure.traversal import flatten_components, iter_nodes
from formtree.validation.rules import ValidationError
from formtree.validation.validator import validate_field, validate_nodes

logger = logging.getLogger(__name__)

FormListener = Callable[[FormEvent], None]


class FormRenderer:
    """Data bag, derived state and validation policy of one form.

    Responsibilities:
      - Hold the normalized schema and the data bag bound to it.
      - Recompute overrides and calculated values after every change.
      - Validate fields according to `RendererOptions.validate_trigger`.
      - Produce the views and the submission payload read by the UI.

    Notes:
      - Not thread-safe; a host serving several threads must serialize
        access to one instance.
      - Changes made while the settle loop runs (for instance from a
        listener) are applied immediately and picked up by the running loop.
    """

    def __init__(
        self,
        schema: FormSchema | None = None,
        options: RendererOptions | None = None,
        registry: ComponentRegistry | None = None,
        sandbox: ExpressionSandbox | None = None,
    ):
        self.options = options or RendererOptions()
        self.registry = registry or ComponentRegistry.with_defaults()
        self.sandbox = sandbox or ExpressionSandbox(self.options.sandbox)
        self.logic = LogicEvaluator(self.sandbox)
        self.calculator = CalculatedValueEngine(self.sandbox)

        self.schema: FormSchema = parse_form_schema(schema or {})
        self.data: DataBag = {}
        self.errors: dict[str, list[ValidationError]] = {}
        self.overrides: OverrideMap = {}
        self.is_dirty = False
        self.is_valid = True
        self.show_errors = False
        self.revision = 0

        self._listeners: list[FormListener] = []
        self._input_cache: tuple[int, list[ComponentNode]] | None = None
        self._settling = False
        self._pending = False
        self._batch_depth = 0

        self.reset_data()

    # ---- schema and data ---------------------------------------------------

    @property
    def components(self) -> NodeList:
        return self.schema["components"]

    @property
    def input_nodes(self) -> list[ComponentNode]:
        """Input nodes of the schema in traversal order, cached per revision."""
        if self._input_cache is None or self._input_cache[0] != self.revision:
            self._input_cache = (
                self.revision,
                flatten_components(self.components, self.registry),
            )
        return self._input_cache[1]

    def find_input(self, key: str) -> ComponentNode | None:
        return next((node for node in self.input_nodes if node.get("key") == key), None)

    def set_schema(self, schema: FormSchema) -> None:
        """Replace the schema and reset the data bag to its defaults."""
        self.schema = parse_form_schema(schema)
        self.revision += 1
        self._input_cache = None
        self._emit(FormEvent(FormEventType.SCHEMA))
        self.reset_data()

    def default_values(self) -> DataBag:
        if self.options.no_defaults:
            return {}
        return extract_default_values(self.components, self.registry)

    def reset_data(self) -> None:
        """Reset the data bag to the schema defaults and clear all errors."""
        self.data = self.default_values()
        self.errors = {}
        self.is_dirty = False
        self.is_valid = True
        self.show_errors = False
        self._emit(FormEvent(FormEventType.RESET))
        self._settle()

    def set_submission(self, submission: dict[str, Any]) -> None:
        """
        Load a stored submission.

        Submitted values win over defaults; keys without a submitted value
        keep their default.

        Params:
            submission: `{"data": {...}, ...}` payload
        """
        submitted = submission.get("data") if isinstance(submission, dict) else None
        self.data = {
            **self.default_values(),
            **safe_deep_clone(submitted if isinstance(submitted, dict) else {}),
        }
        self.is_dirty = False
        self._emit(FormEvent(FormEventType.RESET))
        self._settle()

    def get_field_value(self, key: str) -> Any:
        return self.data.get(key)

    def set_field_value(self, key: str, value: Any) -> None:
        """
        Write a user edit into the data bag.

        Params:
            key: Field key
            value: New value
        """
        self._write(key, value, ChangeSource.USER)
        self.is_dirty = True
        self._settle()
        # Validated against the settled overrides
        if self.options.validate_trigger == ValidateTrigger.CHANGE:
            self.validate_field_by_key(key)

    @contextmanager
    def batch(self) -> Iterator["FormRenderer"]:
        """Apply several edits with a single settle at the end."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
        if self._batch_depth == 0 and self._pending:
            self._settle()

    def handle_field_blur(self, key: str) -> list[ValidationError]:
        """Validate a field on blur when the trigger policy asks for it."""
        self._emit(FormEvent(FormEventType.BLUR, key=key, value=self.data.get(key)))
        if self.options.validate_trigger not in (ValidateTrigger.BLUR, ValidateTrigger.CHANGE):
            return self.get_field_errors(key)
        self.show_errors = True
        return self.validate_field_by_key(key)

    # ---- derived state ---------------------------------------------------------

    def get_overridden_node(self, node: ComponentNode) -> ComponentNode:
        """Node with the current logic overrides merged in."""
        return get_overridden_node(node, self.overrides)

    def is_node_visible(self, node: ComponentNode) -> bool:
        """Whether a node is shown, taking overrides and conditionals into account."""
        effective = self.get_overridden_node(node)
        if effective.get("hidden"):
            return False
        return evaluate_visible(effective, self.data)

    def _is_shown_in_tree(self, node: ComponentNode) -> bool:
        # Hidden containers prune their subtree, as in validate_nodes
        for candidate in iter_nodes(self.components, prune=lambda n: not self.is_node_visible(n)):
            if candidate is node:
                return self.is_node_visible(node)
        return False

    def effective_view(self, node: ComponentNode) -> ComponentNode:
        """
        Build the view of a node a rendering layer draws.

        Params:
            node: Stored schema node

        Returns:
            Node with overrides applied, a `visible` flag, and `disabled`
            forced on for read-only or disabled forms
        """
        view = {**self.get_overridden_node(node), "visible": self.is_node_visible(node)}
        if self.options.disabled or self.options.read_only:
            view["disabled"] = True
        return view

    # ---- validation ------------------------------------------------------------

    def collect_errors(self, nodes: NodeList | None) -> dict[str, list[ValidationError]]:
        """Validate a subtree under the current visibility and overrides."""
        return validate_nodes(
            nodes,
            self.data,
            is_visible=self.is_node_visible,
            get_effective=self.get_overridden_node,
            registry=self.registry,
            sandbox=self.sandbox,
        )

    def validate_field_by_key(self, key: str) -> list[ValidationError]:
        """
        Validate one field and store its errors.

        Hidden, disabled and unknown fields have their errors cleared. A field
        counts as hidden when any of its ancestors is hidden.

        Params:
            key: Field key

        Returns:
            The field's current errors
        """
        node = self.find_input(key)
        field_errors: list[ValidationError] = []
        if node is not None and self._is_shown_in_tree(node):
            effective = self.get_overridden_node(node)
            if not effective.get("disabled"):
                field_errors = validate_field(
                    effective, self.data.get(key), self.data, self.sandbox
                )

        if field_errors:
            self.errors[key] = field_errors
        else:
            self.errors.pop(key, None)
        self.is_valid = not self.errors
        return field_errors

    def validate_all(self) -> list[ValidationError]:
        """Validate every visible input and replace the stored errors."""
        self.errors = self.collect_errors(self.components)
        self.show_errors = True
        self.is_valid = not self.errors
        return self.all_errors

    def get_field_errors(self, key: str) -> list[ValidationError]:
        return list(self.errors.get(key, []))

    @property
    def all_errors(self) -> list[ValidationError]:
        """Every stored error, fields in traversal order."""
        ordered: list[ValidationError] = []
        seen: set[str] = set()
        for node in self.input_nodes:
            key = node.get("key")
            if key in self.errors and key not in seen:
                ordered.extend(self.errors[key])
                seen.add(key)
        for key, field_errors in self.errors.items():
            if key not in seen:
                ordered.extend(field_errors)
        return ordered

    @property
    def error_count(self) -> int:
        return len(self.all_errors)

    # ---- submission --------------------------------------------------------------

    @property
    def submission(self) -> dict[str, Any]:
        """Submission payload for the current data."""
        return {
            "data": safe_deep_clone(self.data),
            "metadata": {"timezone": self.options.timezone or local_timezone_name()},
            "state": "submitted",
        }

    def submit(self) -> SubmitResult:
        """
        Validate everything and produce the submission payload.

        Returns:
            SubmitResult carrying the payload on success, the errors otherwise
        """
        errors = self.validate_all()
        if errors:
            result = SubmitResult(success=False, errors=errors)
        else:
            result = SubmitResult(success=True, submission=self.submission)
        self._emit(FormEvent(FormEventType.SUBMIT, value=result.success))
        return result

    # ---- events ------------------------------------------------------------------

    def subscribe(self, listener: FormListener) -> Callable[[], None]:
        """
        Register an event listener.

        Params:
            listener: Callable receiving every FormEvent

        Returns:
            Callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: FormEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    # ---- settle loop -------------------------------------------------------------

    def _write(self, key: str, value: Any, source: ChangeSource) -> None:
        old_value = self.data.get(key)
        self.data[key] = value
        self._emit(
            FormEvent(
                FormEventType.CHANGE,
                key=key,
                value=value,
                old_value=old_value,
                source=source,
            )
        )

    def _write_calculated(self, key: str, value: Any) -> None:
        self._write(key, value, ChangeSource.CALCULATED)

    def _settle(self) -> None:
        self._pending = True
        if self._settling or self._batch_depth:
            return

        self._settling = True
        try:
            limit = self.options.max_settle_iterations
            for _ in range(limit):
                self._pending = False
                self.overrides = self.logic.recompute(self.components, self.data)
                writes = self.calculator.run_pass(
                    self.components, self.data, self._write_calculated
                )
                if not writes and not self._pending:
                    break
            else:
                logger.warning(
                    "Calculated values did not settle after %d iterations", limit
                )
            self._pending = False
            self.overrides = self.logic.recompute(self.components, self.data)
        finally:
            self._settling = False
