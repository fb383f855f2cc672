"""
Registry of fields carrying conditional visibility logic.

Built once while a form initializes, by registering every field with
its (possibly missing or malformed) conditional declaration. A broken
declaration never fails the form: the field is simply registered as
always visible. Once sealed, the registry is immutable.
"""

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from formlogic.core.schema import (
    VALUE_OPERATORS,
    ConditionalConfig,
    ConditionalField,
    LogicMode,
    RuleOperator,
    VisibilityAction,
    normalize_choice,
)

logger = logging.getLogger(__name__)


class RegistrySealedError(Exception):
    """Raised when a field is registered after the registry was sealed."""

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Cannot register field '{field_id}': registry is sealed")


def parse_conditional_config(field_id: str, config: Any) -> ConditionalConfig | None:
    """Parse a loosely-typed conditional declaration, failing closed.

    Args:
        field_id: The owning field (used for log messages only).
        config: None, a mapping, a JSON string, or a ConditionalConfig.

    Returns:
        The parsed config, or None if there is no usable declaration.
    """
    if config is None:
        return None
    if isinstance(config, ConditionalConfig):
        return config

    if isinstance(config, (str, bytes)):
        if not config.strip():
            return None
        try:
            config = json.loads(config)
        except ValueError as e:
            logger.warning("Field '%s': conditional config is not valid JSON (%s)", field_id, e)
            return None

    if not isinstance(config, Mapping):
        logger.warning(
            "Field '%s': conditional config must be an object, got %s",
            field_id,
            type(config).__name__,
        )
        return None

    try:
        return ConditionalConfig.model_validate(dict(config))
    except ValidationError as e:
        logger.warning(
            "Field '%s': malformed conditional config, field will always be visible: %s",
            field_id,
            e.errors(include_url=False),
        )
        return None


class FieldRegistry:
    """Holds the conditional declarations of one form, in registration order."""

    def __init__(self):
        self._fields: dict[str, ConditionalField] = {}
        self._sealed = False

    # -----------------------------------------------------------------
    # Registration
    # -----------------------------------------------------------------

    def register(self, field_id: str, config: Any = None) -> ConditionalField:
        """Register a field and its conditional declaration.

        Re-registering an ID replaces its declaration but keeps its
        original position in the iteration order.

        Args:
            field_id: Unique field identifier.
            config: The field's conditional declaration (see
                ``parse_conditional_config``). Malformed data registers
                the field without rules.

        Returns:
            The registered field.

        Raises:
            RegistrySealedError: If the registry has been sealed.
            ValueError: If field_id is empty.
        """
        if self._sealed:
            raise RegistrySealedError(field_id)
        if not isinstance(field_id, str) or not field_id.strip():
            raise ValueError("field_id must be a non-empty string")

        parsed = parse_conditional_config(field_id, config)
        field = ConditionalField.from_config(field_id, parsed)
        self._fields[field_id] = field

        if field.is_conditional:
            logger.debug(
                "Registered conditional field '%s' (%s, %s, %d rule(s))",
                field_id,
                field.action.value,
                field.logic.value,
                len(field.rules),
            )
        return field

    def seal(self) -> None:
        """Freeze the registry; further registrations raise."""
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def get(self, field_id: str) -> ConditionalField | None:
        return self._fields.get(field_id)

    def field_ids(self) -> list[str]:
        return list(self._fields)

    def is_conditional(self, field_id: str) -> bool:
        field = self._fields.get(field_id)
        return field is not None and field.is_conditional

    def get_conditional_fields(self) -> list[ConditionalField]:
        """Return all fields with at least one rule, in registration order."""
        return [field for field in self._fields.values() if field.is_conditional]

    def get_source_field_ids(self) -> list[str]:
        """Return every field ID referenced by a rule, deduplicated, first-seen order."""
        sources: dict[str, None] = {}
        for field in self.get_conditional_fields():
            for source_id in field.source_field_ids:
                sources.setdefault(source_id, None)
        return list(sources)

    def dependency_graph(self) -> dict[str, list[str]]:
        """Map each conditional field to the distinct fields its rules read."""
        return {
            field.field_id: field.source_field_ids
            for field in self.get_conditional_fields()
        }

    def detect_circular_dependencies(self) -> list[str]:
        """Find rule reference cycles.

        Returns:
            Sorted unique cycle paths, e.g. ``["a -> b -> a"]``.
        """
        graph = self.dependency_graph()
        cycles: set[str] = set()
        for start in graph:
            _collect_cycles(graph, start, set(), [], cycles)
        return sorted(cycles)

    def frontend_config(self) -> dict[str, dict[str, Any]]:
        """Simplified declarations for widgets that evaluate client-side."""
        return {
            field.field_id: {
                "action": field.action.value,
                "logic": field.logic.value,
                "rules": [
                    {
                        "field_id": rule.source_field_id,
                        "operator": rule.operator,
                        "value": rule.compare_value,
                    }
                    for rule in field.rules
                ],
            }
            for field in self.get_conditional_fields()
        }

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._fields

    def __len__(self) -> int:
        return len(self._fields)


def _collect_cycles(
    graph: dict[str, list[str]],
    node: str,
    visited: set[str],
    path: list[str],
    cycles: set[str],
) -> None:
    """Depth-first walk recording every path that returns to a node on it."""
    if node in path:
        cycle = path[path.index(node):] + [node]
        cycles.add(" -> ".join(cycle))
        return
    if node in visited:
        return

    visited.add(node)
    path.append(node)
    for dependency in graph.get(node, []):
        _collect_cycles(graph, dependency, visited, path, cycles)
    path.pop()


# -----------------------------------------------------------------
# Declaration validation (form builder feedback)
# -----------------------------------------------------------------


def validate_conditional_config(
    config: Any,
    known_field_ids: Iterable[str] | None = None,
) -> list[str]:
    """Check a conditional declaration and describe every problem found.

    Registration tolerates all of these; this is for builders that want
    to tell an author why a field will not behave as configured.

    Args:
        config: The raw declaration (mapping or JSON string).
        known_field_ids: If given, rule sources must be among these.

    Returns:
        Human-readable error messages; empty if the declaration is valid.
    """
    if isinstance(config, (str, bytes)):
        try:
            config = json.loads(config)
        except ValueError:
            return ["Conditional config is not valid JSON."]
    if isinstance(config, ConditionalConfig):
        config = config.model_dump(mode="json")
    if not isinstance(config, Mapping):
        return ["Conditional config must be an object."]

    errors: list[str] = []
    known = set(known_field_ids) if known_field_ids is not None else None
    rules = config.get("rules") or []

    if config.get("enabled", True) and not rules:
        errors.append("Conditional logic is enabled but no rules are defined.")

    if not isinstance(rules, list):
        errors.append("Rules must be a list.")
        rules = []

    valid_operators = {op.value for op in RuleOperator}
    value_operators = {op.value for op in VALUE_OPERATORS}

    for index, rule in enumerate(rules, start=1):
        if not isinstance(rule, Mapping):
            errors.append(f"Rule {index}: Rule must be an object.")
            continue

        source = rule.get("field_id") or rule.get("source_field_id") or rule.get("sourceFieldId")
        if not isinstance(source, str) or not source.strip():
            errors.append(f"Rule {index}: No source field selected.")
        elif known is not None and source.strip() not in known:
            errors.append(f"Rule {index}: Source field does not exist.")

        operator = normalize_choice(rule.get("operator"))
        if not isinstance(operator, str) or operator not in valid_operators:
            errors.append(f"Rule {index}: Invalid operator.")
            continue

        value = rule.get("value", rule.get("compare_value", rule.get("compareValue")))
        if operator in value_operators and (value is None or value == ""):
            errors.append(f"Rule {index}: Value is required for this operator.")

    action = config.get("action")
    if action and not _is_choice(action, {a.value for a in VisibilityAction}):
        errors.append("Invalid conditional action.")

    logic = config.get("logic")
    if logic and not _is_choice(logic, {m.value for m in LogicMode}):
        errors.append("Invalid logic operator.")

    return errors


def _is_choice(value: Any, choices: set[str]) -> bool:
    """True if ``value`` is a string naming one of ``choices``."""
    return isinstance(value, str) and normalize_choice(value) in choices
