"""
YAML form definition loader.

Reads a form definition (plain YAML, or YAML frontmatter at the top of a
markdown document) and builds a started FormLogicState from it.

Format:
    ---
    form_id: contact
    fields:
      - id: country
        type: select
        value: US
      - id: state
        type: select
        required: true
        conditional:
          action: show
          logic: all
          rules:
            - field_id: country
              operator: equals
              value: US
    ---

Field entries that cannot be understood are skipped with a warning; a
broken ``conditional`` block only disables that field's logic.
"""

import logging
from collections.abc import Iterable
from typing import Any

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from formlogic.core.form_logic import FormLogicState, register_field, start
from formlogic.core.schema import WidgetKind, coerce_widget_kind

logger = logging.getLogger(__name__)


class FormDefinitionError(Exception):
    """Raised when a form definition has no usable structure at all."""


class FieldDeclaration(BaseModel):
    """One field entry of a form definition."""

    id: str = Field(..., min_length=1)
    type: WidgetKind = WidgetKind.TEXT
    required: bool = False
    value: Any = Field(
        default=None,
        validation_alias=AliasChoices("value", "default_value"),
    )
    # Validated by the registry so a malformed block only disables logic
    conditional: Any = None

    @field_validator("id", mode="before")
    @classmethod
    def strip_id(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, value: Any) -> WidgetKind:
        return coerce_widget_kind(value)

    @field_validator("required", mode="before")
    @classmethod
    def coerce_required(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)


class FormDefinition(BaseModel):
    """A parsed form definition."""

    form_id: str = "form"
    title: str = ""
    fields: list[FieldDeclaration] = Field(default_factory=list)


def split_frontmatter(content: str) -> str:
    """Return the YAML block of a frontmatter document, or the content as-is."""
    lines = content.strip().splitlines()
    if not lines or lines[0].strip() != "---":
        return content

    for end_index in range(1, len(lines)):
        if lines[end_index].strip() == "---":
            return "\n".join(lines[1:end_index])
    return content


def parse_form_definition(content: str) -> FormDefinition:
    """Parse a YAML form definition.

    Args:
        content: YAML text, optionally wrapped in ``---`` delimiters.

    Returns:
        The parsed definition.

    Raises:
        FormDefinitionError: If the text is not YAML, not a mapping, or
            has no field list.
    """
    try:
        raw = yaml.safe_load(split_frontmatter(content))
    except yaml.YAMLError as e:
        raise FormDefinitionError(f"Form definition is not valid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise FormDefinitionError("Form definition must be a mapping")

    return form_definition_from_fields(
        raw.get("fields"),
        form_id=str(raw.get("form_id") or "form"),
        title=str(raw.get("title") or ""),
    )


def form_definition_from_fields(
    fields: Any,
    form_id: str = "form",
    title: str = "",
) -> FormDefinition:
    """Build a definition from a list of field dicts.

    Raises:
        FormDefinitionError: If ``fields`` is not a list.
    """
    if not isinstance(fields, list):
        raise FormDefinitionError("Form definition must contain a 'fields' list")

    return FormDefinition(
        form_id=form_id,
        title=title,
        fields=list(_declarations(fields)),
    )


def _declarations(entries: Iterable[Any]) -> Iterable[FieldDeclaration]:
    seen: set[str] = set()
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            logger.warning("Skipping field entry %d: not a mapping", index)
            continue
        try:
            declaration = FieldDeclaration.model_validate(entry)
        except ValidationError as e:
            logger.warning("Skipping field entry %d: %s", index, e.errors(include_url=False))
            continue

        if declaration.id in seen:
            logger.warning("Skipping field entry %d: duplicate field ID '%s'", index, declaration.id)
            continue
        seen.add(declaration.id)
        yield declaration


def build_form_state(definition: FormDefinition) -> FormLogicState:
    """Register every declared field and run the first evaluation."""
    state = FormLogicState(definition.form_id)
    for declaration in definition.fields:
        register_field(
            state,
            declaration.id,
            declaration.conditional,
            widget=declaration.type,
            required=declaration.required,
            value=declaration.value,
        )
    start(state)
    return state


def load_form_state(content: str) -> FormLogicState:
    """Parse a YAML form definition and build its started state."""
    return build_form_state(parse_form_definition(content))
