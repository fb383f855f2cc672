"""
Per-form conditional logic state and its entry points.

A FormLogicState bundles everything one live form needs: the field
registry, the source value store, the applier holding presentation
state, and visibility listeners. The functions below take the state
explicitly, so independent forms never share anything.

Lifecycle:
    state = FormLogicState("contact")
    register_field(state, "country", widget="select", value="US")
    register_field(state, "state", {"rules": [...]}, required=True)
    start(state)                                  # first evaluation
    on_source_value_change(state, "country", "CA")  # re-evaluates
    is_visible(state, "state")
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from formlogic.core.applier import Applier, VisibilityChange
from formlogic.core.evaluator import compute_visibility
from formlogic.core.registry import FieldRegistry
from formlogic.core.schema import ConditionalField, VisibilityMap, WidgetKind
from formlogic.core.values import ValueStore

logger = logging.getLogger(__name__)

VisibilityListener = Callable[[VisibilityChange], None]


class FormLogicStateError(Exception):
    """Raised when the entry points are called out of lifecycle order."""


class FormLogicState:
    """All conditional-visibility state of one form instance.

    Args:
        form_id: Identifier of the form definition (for logging).
    """

    def __init__(self, form_id: str = "form"):
        self.form_id = form_id
        self.registry = FieldRegistry()
        self.values = ValueStore()
        self.applier = Applier()
        self.listeners: list[VisibilityListener] = []
        self.started = False


# -----------------------------------------------------------------
# Initialization
# -----------------------------------------------------------------


def register_field(
    state: FormLogicState,
    field_id: str,
    config: Any = None,
    widget: WidgetKind | str = WidgetKind.TEXT,
    required: bool = False,
    value: Any = None,
) -> ConditionalField:
    """Register one form field during form initialization.

    Args:
        state: The form's state.
        field_id: Unique field identifier.
        config: The field's conditional declaration, if any.
        widget: Widget kind used to normalize the field's values.
        required: Whether the field is required while visible.
        value: Initial raw value, used by the first evaluation.

    Returns:
        The registered field.

    Raises:
        FormLogicStateError: If the form has already started.
    """
    if state.started:
        raise FormLogicStateError(
            f"Cannot register field '{field_id}': form '{state.form_id}' already started"
        )

    field = state.registry.register(field_id, config)
    state.values.declare(field_id, widget)
    state.applier.track(field_id, required=required)
    if value is not None:
        state.values.update(field_id, value)
    return field


def start(state: FormLogicState) -> VisibilityChange:
    """Seal the registry and apply the first evaluation.

    Fields whose rules do not hold for the initial values start hidden.

    Raises:
        FormLogicStateError: If the form has already started.
    """
    if state.started:
        raise FormLogicStateError(f"Form '{state.form_id}' already started")

    state.registry.seal()
    state.values.tracked = set(state.registry.get_source_field_ids())
    state.started = True

    cycles = state.registry.detect_circular_dependencies()
    if cycles:
        logger.warning(
            "Form '%s' has circular visibility rules: %s",
            state.form_id,
            "; ".join(cycles),
        )

    logger.info(
        "Form '%s' started: %d field(s), %d conditional",
        state.form_id,
        len(state.registry),
        len(state.registry.get_conditional_fields()),
    )
    return _evaluate_and_apply(state)


# -----------------------------------------------------------------
# Events and queries
# -----------------------------------------------------------------


def on_source_value_change(
    state: FormLogicState,
    field_id: str,
    raw_value: Any,
    widget: WidgetKind | str | None = None,
) -> VisibilityChange:
    """Record a field's new value and re-evaluate visibility.

    Values of fields no rule reads are ignored and trigger nothing.

    Args:
        state: The form's state.
        field_id: The field whose input or change event fired.
        raw_value: The widget's current state.
        widget: Overrides the declared widget kind.

    Returns:
        The visibility change (empty diff if nothing changed).

    Raises:
        FormLogicStateError: If the form has not started.
    """
    if not state.started:
        raise FormLogicStateError(
            f"Form '{state.form_id}' received a value for '{field_id}' before start()"
        )

    if not state.values.update(field_id, raw_value, widget):
        return VisibilityChange(visibility=current_visibility(state))
    return _evaluate_and_apply(state)


def evaluate(state: FormLogicState) -> VisibilityMap:
    """Recompute the visibility map without applying it."""
    return compute_visibility(state.registry, state.values)


def current_visibility(state: FormLogicState) -> VisibilityMap:
    """The last applied visibility of every conditional field."""
    return {
        field.field_id: state.applier.is_visible(field.field_id)
        for field in state.registry.get_conditional_fields()
    }


def is_visible(state: FormLogicState, field_id: str) -> bool:
    """Whether the widget should treat a field as visible right now."""
    return state.applier.is_visible(field_id)


def visible_values(state: FormLogicState, data: Mapping[str, Any]) -> dict[str, Any]:
    """Drop submitted values that belong to hidden fields."""
    return {
        field_id: value
        for field_id, value in data.items()
        if state.applier.is_visible(field_id)
    }


def subscribe(state: FormLogicState, listener: VisibilityListener) -> VisibilityListener:
    """Register a callback run after every applied evaluation."""
    state.listeners.append(listener)
    return listener


def _evaluate_and_apply(state: FormLogicState) -> VisibilityChange:
    change = state.applier.apply(evaluate(state))
    for listener in list(state.listeners):
        listener(change)
    return change
