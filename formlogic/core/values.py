"""
Value store for rule source fields.

Keeps the latest value of every field a rule reads, normalized from raw
widget state into one of two comparison-ready shapes: a scalar string,
or a list of strings for multi-value widgets (checkbox groups and
multi-selects). A field that was never set reads as an empty string.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from formlogic.core.schema import FieldValue, WidgetKind, coerce_widget_kind

logger = logging.getLogger(__name__)


def normalize_value(raw_value: Any, widget: WidgetKind) -> FieldValue:
    """Canonicalize raw widget state for rule comparison.

    Args:
        raw_value: What the widget reports. Checkbox and radio groups may
            report a ``{value: checked}`` mapping instead of the values.
        widget: The kind of widget the value came from.
            Date inputs are stored as entered, like text.

    Returns:
        A string, or a list of strings for checkbox groups and multi-selects.
    """
    match widget:
        case WidgetKind.CHECKBOX:
            return _checked_values(raw_value)
        case WidgetKind.RADIO:
            return _checked_option(raw_value)

    return _scalar_text(raw_value)


def _checked_values(raw_value: Any) -> list[str]:
    """Checkbox group: the checked option values, empty list if none."""
    if raw_value is None or raw_value == "":
        return []
    if isinstance(raw_value, Mapping):
        return [str(value) for value, checked in raw_value.items() if checked]
    if isinstance(raw_value, str):
        return [raw_value]
    if isinstance(raw_value, Iterable):
        return [str(value) for value in raw_value if value is not None]
    return [str(raw_value)]


def _checked_option(raw_value: Any) -> str:
    """Radio group: the checked option value, empty string if none."""
    if raw_value is None:
        return ""
    if isinstance(raw_value, Mapping):
        for value, checked in raw_value.items():
            if checked:
                return str(value)
        return ""
    return str(raw_value)


def _scalar_text(raw_value: Any) -> FieldValue:
    """Select/text/textarea: the current value, or "" when empty or absent."""
    if raw_value is None:
        return ""
    if isinstance(raw_value, (list, tuple, set, frozenset)):
        # multi-select
        return [str(value) for value in raw_value if value is not None]
    return str(raw_value)


class ValueStore:
    """Latest normalized value per source field.

    Args:
        tracked: If given, only these field IDs are stored; updates to
            any other field are ignored.
    """

    def __init__(self, tracked: Iterable[str] | None = None):
        self._values: dict[str, FieldValue] = {}
        self._widgets: dict[str, WidgetKind] = {}
        self.tracked: set[str] | None = set(tracked) if tracked is not None else None

    def declare(self, field_id: str, widget: WidgetKind | str) -> None:
        """Record which kind of widget a field uses."""
        self._widgets[field_id] = coerce_widget_kind(widget)

    def widget_for(self, field_id: str) -> WidgetKind:
        return self._widgets.get(field_id, WidgetKind.TEXT)

    def update(
        self,
        field_id: str,
        raw_value: Any,
        widget: WidgetKind | str | None = None,
    ) -> bool:
        """Normalize and store a field's raw value.

        Args:
            field_id: The field that changed.
            raw_value: The widget's current state.
            widget: Overrides the declared widget kind.

        Returns:
            True if the value was stored, False if the field is not tracked.
        """
        if self.tracked is not None and field_id not in self.tracked:
            logger.debug("Ignoring value for untracked field '%s'", field_id)
            return False

        kind = coerce_widget_kind(widget) if widget is not None else self.widget_for(field_id)
        self._values[field_id] = normalize_value(raw_value, kind)
        return True

    def get(self, field_id: str) -> FieldValue:
        """Return the stored value, or "" if the field was never set."""
        return self._values.get(field_id, "")

    def snapshot(self) -> dict[str, FieldValue]:
        """Return a copy of all stored values."""
        return {
            field_id: list(value) if isinstance(value, list) else value
            for field_id, value in self._values.items()
        }

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._values
