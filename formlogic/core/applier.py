"""
Applier: materializes a visibility map as field presentation state.

Each tracked field moves between VISIBLE and HIDDEN only through
``Applier.apply``. Hiding a field disables its inputs (so they drop out
of validation and submission), parks its required flag and clears any
validation error; showing it reverses that.
"""

import logging

from pydantic import BaseModel, Field

from formlogic.core.schema import VisibilityMap

logger = logging.getLogger(__name__)


class UnknownFieldError(Exception):
    """Raised when a visibility map names a field the applier never tracked."""

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Field '{field_id}' is not tracked by the applier")


class FieldPresentation(BaseModel):
    """Materialized state of one field as the widget should render it."""

    field_id: str
    visible: bool = True
    inputs_enabled: bool = True
    required: bool = False
    required_saved: bool = Field(
        default=False,
        description="Required flag parked while the field is hidden",
    )
    error: str | None = None


class VisibilityChange(BaseModel):
    """Payload of a visibility-changed notification."""

    visibility: VisibilityMap = Field(default_factory=dict)
    shown: list[str] = Field(default_factory=list)
    hidden: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> list[str]:
        return self.shown + self.hidden


class Applier:
    """Owns the show/hide state of every field of one form."""

    def __init__(self):
        self._fields: dict[str, FieldPresentation] = {}

    def track(self, field_id: str, required: bool = False) -> FieldPresentation:
        """Start tracking a field, initially visible."""
        presentation = FieldPresentation(field_id=field_id, required=required)
        self._fields[field_id] = presentation
        return presentation

    def apply(self, visibility: VisibilityMap) -> VisibilityChange:
        """Bring presentation state in line with a visibility map.

        Fields whose visibility did not change are left untouched.

        Args:
            visibility: field_id -> visible, from the evaluator.

        Returns:
            The full map and the IDs that were shown and hidden.

        Raises:
            UnknownFieldError: If the map names an untracked field.
        """
        for field_id in visibility:
            if field_id not in self._fields:
                raise UnknownFieldError(field_id)

        change = VisibilityChange(visibility=dict(visibility))
        for field_id, visible in visibility.items():
            presentation = self._fields[field_id]
            if presentation.visible == visible:
                continue

            if visible:
                self._show(presentation)
                change.shown.append(field_id)
            else:
                self._hide(presentation)
                change.hidden.append(field_id)

        if change.changed:
            logger.debug("Visibility applied: shown=%s hidden=%s", change.shown, change.hidden)
        return change

    def is_visible(self, field_id: str) -> bool:
        """Untracked fields are not conditional and therefore visible."""
        presentation = self._fields.get(field_id)
        return presentation is None or presentation.visible

    def presentation(self, field_id: str) -> FieldPresentation | None:
        """Return a copy of a field's presentation state."""
        presentation = self._fields.get(field_id)
        return presentation.model_copy() if presentation is not None else None

    def visible_field_ids(self) -> list[str]:
        return [field_id for field_id, p in self._fields.items() if p.visible]

    def set_error(self, field_id: str, message: str | None) -> bool:
        """Attach a validation error to a visible field.

        Returns:
            False if the field is hidden or untracked (the error is dropped).
        """
        presentation = self._fields.get(field_id)
        if presentation is None or not presentation.visible:
            return False
        presentation.error = message
        return True

    @staticmethod
    def _show(presentation: FieldPresentation) -> None:
        presentation.visible = True
        presentation.inputs_enabled = True
        if presentation.required_saved:
            presentation.required = True
            presentation.required_saved = False

    @staticmethod
    def _hide(presentation: FieldPresentation) -> None:
        presentation.visible = False
        presentation.inputs_enabled = False
        if presentation.required:
            presentation.required_saved = True
            presentation.required = False
        presentation.error = None
