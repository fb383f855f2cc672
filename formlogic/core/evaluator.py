"""
Deterministic visibility evaluator for conditional fields.

Computes a complete visibility map in one call. Fields whose rules read
other conditional fields are evaluated after those fields, so a hidden
source can be treated as empty. Dependencies are resolved in bounded
rounds rather than by a strict topological sort: cyclic or unresolvable
rule graphs are evaluated best-effort instead of failing.

Evaluation never raises for data problems. A broken rule can only show
or hide a field incorrectly.
"""

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from formlogic.core.registry import FieldRegistry
from formlogic.core.schema import (
    ConditionalField,
    FieldValue,
    LogicMode,
    RuleOperator,
    VisibilityAction,
    VisibilityMap,
)
from formlogic.core.utils import parse_number

logger = logging.getLogger(__name__)


class ValueSource(Protocol):
    """Anything that can look up a field's value (ValueStore or a plain dict)."""

    def get(self, field_id: str) -> Any: ...


# -----------------------------------------------------------------
# Rule operators
# -----------------------------------------------------------------


def evaluate_rule(value: Any, operator: str, compare_value: Any) -> bool:
    """Apply one comparison operator to a field value.

    String comparisons are case-insensitive. List values (checkbox
    groups) support only membership and emptiness checks.

    Args:
        value: The source field's value: a string, a list of strings,
            or None (treated as "").
        operator: Operator name; unknown operators evaluate to False.
        compare_value: The rule's comparison value.

    Returns:
        True if the rule matches, False otherwise.
    """
    compare = "" if compare_value is None else str(compare_value)

    if isinstance(value, (list, tuple)):
        return _evaluate_list_rule([str(item) for item in value], operator, compare)

    text = "" if value is None else str(value)
    folded = text.casefold()
    needle = compare.casefold()

    match operator:
        case RuleOperator.EQUALS:
            return folded == needle

        case RuleOperator.NOT_EQUALS:
            return folded != needle

        case RuleOperator.CONTAINS:
            return needle in folded

        case RuleOperator.NOT_CONTAINS:
            return needle not in folded

        case RuleOperator.IS_EMPTY:
            return text == ""

        case RuleOperator.IS_NOT_EMPTY:
            return text != ""

        case RuleOperator.GREATER_THAN:
            return _compare_numbers(text, compare, lambda a, b: a > b)

        case RuleOperator.LESS_THAN:
            return _compare_numbers(text, compare, lambda a, b: a < b)

        case RuleOperator.STARTS_WITH:
            return folded.startswith(needle)

        case RuleOperator.ENDS_WITH:
            return folded.endswith(needle)

    return False


def _evaluate_list_rule(values: list[str], operator: str, compare: str) -> bool:
    """Operators against a multi-value (checkbox) field."""
    needle = compare.casefold()
    selected = any(item.casefold() == needle for item in values)

    match operator:
        case RuleOperator.EQUALS | RuleOperator.CONTAINS:
            return selected

        case RuleOperator.NOT_EQUALS | RuleOperator.NOT_CONTAINS:
            return not selected

        case RuleOperator.IS_EMPTY:
            return len(values) == 0

        case RuleOperator.IS_NOT_EMPTY:
            return len(values) > 0

    # Numeric and prefix/suffix operators are not defined for lists
    return False


def _compare_numbers(value: str, compare: str, comparator) -> bool:
    """Compare two values numerically; False if either does not parse."""
    left = parse_number(value)
    right = parse_number(compare)
    if left is None or right is None:
        return False
    return comparator(left, right)


# -----------------------------------------------------------------
# Field evaluation
# -----------------------------------------------------------------


def evaluate_field(
    field: ConditionalField,
    values: ValueSource | Mapping[str, FieldValue],
    visibility: Mapping[str, bool],
    conditional_ids: set[str] | frozenset[str],
) -> bool:
    """Decide whether a single field is visible.

    A source that is itself a conditional field already computed as
    hidden reads as empty, whatever its stored value.

    Args:
        field: The field to evaluate.
        values: Current source values.
        visibility: Visibility computed so far in this pass.
        conditional_ids: IDs of all conditional fields.

    Returns:
        True if the field should be visible.
    """
    if not field.rules:
        return True

    results = [
        evaluate_rule(
            _source_value(rule.source_field_id, values, visibility, conditional_ids),
            rule.operator,
            rule.compare_value,
        )
        for rule in field.rules
    ]

    if field.logic == LogicMode.ANY:
        matched = any(results)
    else:
        matched = all(results)

    if field.action == VisibilityAction.HIDE:
        return not matched
    return matched


def _source_value(
    source_id: str,
    values: ValueSource | Mapping[str, FieldValue],
    visibility: Mapping[str, bool],
    conditional_ids: set[str] | frozenset[str],
) -> FieldValue:
    value = values.get(source_id)
    if value is None:
        value = ""

    if source_id in conditional_ids and visibility.get(source_id) is False:
        return [] if isinstance(value, list) else ""
    return value


# -----------------------------------------------------------------
# Fixed-point pass
# -----------------------------------------------------------------


def compute_visibility(
    registry: FieldRegistry,
    values: ValueSource | Mapping[str, FieldValue],
) -> VisibilityMap:
    """Compute visibility for every conditional field.

    Fields are resolved in rounds, in registration order. A field is
    evaluated once every conditional field its rules read has been
    resolved (earlier in the same round counts). The loop stops after a
    round that resolves nothing, or after twice as many rounds as there
    are conditional fields. Whatever is left (reference cycles, self
    references) is then evaluated in registration order against the
    partial map, so a stale source in a cycle reads its stored value.

    Args:
        registry: The form's field declarations.
        values: Current source values.

    Returns:
        One entry per conditional field, in registration order.
    """
    fields = registry.get_conditional_fields()
    conditional_ids = frozenset(field.field_id for field in fields)
    visibility: VisibilityMap = {}
    resolved: set[str] = set()

    max_rounds = 2 * len(fields)
    rounds = 0
    while len(resolved) < len(fields) and rounds < max_rounds:
        rounds += 1
        progress = 0

        for field in fields:
            if field.field_id in resolved:
                continue
            if not _dependencies_resolved(field, conditional_ids, resolved):
                continue

            visibility[field.field_id] = evaluate_field(field, values, visibility, conditional_ids)
            resolved.add(field.field_id)
            progress += 1

        if progress == 0:
            break

    pending = [field for field in fields if field.field_id not in resolved]
    if pending:
        logger.warning(
            "Visibility dependencies unresolved after %d round(s), evaluating best effort: %s",
            rounds,
            ", ".join(field.field_id for field in pending),
        )
        for field in pending:
            visibility[field.field_id] = evaluate_field(field, values, visibility, conditional_ids)

    return {field.field_id: visibility[field.field_id] for field in fields}


def _dependencies_resolved(
    field: ConditionalField,
    conditional_ids: frozenset[str],
    resolved: set[str],
) -> bool:
    return all(
        source_id not in conditional_ids or source_id in resolved
        for source_id in field.source_field_ids
    )
