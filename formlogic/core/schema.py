"""
Conditional visibility declaration models.

These Pydantic models describe which form fields carry conditional
logic and how that logic is shaped: a flat list of rules combined with
ALL/ANY logic, and a SHOW/HIDE action applied when the rules match.
Declarations arrive loosely typed (form metadata, JSON data attributes,
YAML); the models accept the common key spellings and normalize case.
"""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# --- Enums ---


class LogicMode(str, Enum):
    """How the results of a field's rules are combined."""

    ALL = "all"
    ANY = "any"


class VisibilityAction(str, Enum):
    """Effect applied to a field when its rule set evaluates to true."""

    SHOW = "show"
    HIDE = "hide"


class RuleOperator(str, Enum):
    """Closed set of comparison operators.

    A rule naming anything else still parses, but always evaluates
    to False.
    """

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


class WidgetKind(str, Enum):
    """Input widget kinds the value store knows how to normalize."""

    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"
    HIDDEN = "hidden"


# Operators that compare against a value (the rest only inspect emptiness)
VALUE_OPERATORS = frozenset({
    RuleOperator.EQUALS,
    RuleOperator.NOT_EQUALS,
    RuleOperator.CONTAINS,
    RuleOperator.NOT_CONTAINS,
    RuleOperator.GREATER_THAN,
    RuleOperator.LESS_THAN,
    RuleOperator.STARTS_WITH,
    RuleOperator.ENDS_WITH,
})

# Field value as held by the value store: scalar text or checked values
FieldValue = str | list[str]

# field_id -> visible, one entry per conditional field
VisibilityMap = dict[str, bool]


def normalize_choice(value: Any) -> Any:
    """Lower-case and strip a string enum value, leave anything else alone."""
    if isinstance(value, str):
        return value.strip().lower()
    return value


def coerce_widget_kind(value: Any) -> WidgetKind:
    """Map a declared field type onto a widget kind.

    Input types without special normalization (email, phone, number, ...)
    behave like plain text inputs.
    """
    if isinstance(value, WidgetKind):
        return value
    try:
        return WidgetKind(normalize_choice(value))
    except ValueError:
        return WidgetKind.TEXT


# --- Rule Models ---


class Rule(BaseModel):
    """One atomic comparison against another field's value."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_field_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("source_field_id", "sourceFieldId", "field_id"),
        description="The field whose value is read",
    )
    operator: str = Field(
        default=RuleOperator.EQUALS.value,
        description="Comparison operator (unknown operators evaluate to False)",
    )
    compare_value: str = Field(
        default="",
        validation_alias=AliasChoices("compare_value", "compareValue", "value"),
        description="Value to compare against; numeric operators parse it as a float",
    )

    @field_validator("source_field_id", mode="before")
    @classmethod
    def strip_source(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("operator", mode="before")
    @classmethod
    def normalize_operator(cls, value: Any) -> Any:
        if value is None:
            return RuleOperator.EQUALS.value
        if isinstance(value, RuleOperator):
            return value.value
        # YAML may hand over 7 or True; those parse as text and evaluate to False
        return str(value).strip().lower()

    @field_validator("compare_value", mode="before")
    @classmethod
    def stringify_compare_value(cls, value: Any) -> Any:
        """Numbers and booleans in a declaration compare as their text."""
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @property
    def known_operator(self) -> RuleOperator | None:
        """The operator as an enum member, or None if it is not supported."""
        try:
            return RuleOperator(self.operator)
        except ValueError:
            return None


class ConditionalConfig(BaseModel):
    """Raw conditional-logic declaration attached to a field.

    Mirrors the shape form builders emit:
    ``{"enabled": true, "action": "show", "logic": "all", "rules": [...]}``.
    """

    model_config = ConfigDict(extra="ignore")

    enabled: bool = Field(
        default=True,
        description="Disabled declarations carry no conditional logic",
    )
    action: VisibilityAction = Field(
        default=VisibilityAction.SHOW,
        description="Effect applied when the rules match",
    )
    logic: LogicMode = Field(
        default=LogicMode.ALL,
        description="How rule results are combined",
    )
    rules: list[Rule] = Field(
        default_factory=list,
        description="Ordered rules; empty means the field is always visible",
    )

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, value: Any) -> Any:
        if value is None:
            return VisibilityAction.SHOW
        return normalize_choice(value)

    @field_validator("logic", mode="before")
    @classmethod
    def normalize_logic(cls, value: Any) -> Any:
        if value is None:
            return LogicMode.ALL
        return normalize_choice(value)


# --- Conditional Field ---


class ConditionalField(BaseModel):
    """A registered field and the rule set controlling its visibility.

    A field with no rules is unconditionally visible, whatever its action.
    """

    model_config = ConfigDict(frozen=True)

    field_id: str = Field(..., min_length=1)
    rules: tuple[Rule, ...] = ()
    logic: LogicMode = LogicMode.ALL
    action: VisibilityAction = VisibilityAction.SHOW

    @property
    def is_conditional(self) -> bool:
        return len(self.rules) > 0

    @property
    def source_field_ids(self) -> list[str]:
        """Distinct source field IDs in rule order."""
        return list(dict.fromkeys(rule.source_field_id for rule in self.rules))

    @classmethod
    def from_config(cls, field_id: str, config: ConditionalConfig | None) -> "ConditionalField":
        """Build a field from a parsed declaration (None or disabled means no rules)."""
        if config is None or not config.enabled:
            return cls(field_id=field_id)
        return cls(
            field_id=field_id,
            rules=tuple(config.rules),
            logic=config.logic,
            action=config.action,
        )
