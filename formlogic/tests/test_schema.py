"""
Unit tests for the declaration models.

Tests cover:
- Rule key spellings (field_id/value, sourceFieldId/compareValue)
- Operator normalization and unknown operators
- Compare value coercion
- ConditionalConfig defaults and case-insensitive action/logic
- Invalid action/logic/rule shapes are rejected
- ConditionalField construction from a config
- Widget kind coercion
"""

import pytest
from pydantic import ValidationError

from formlogic.core.schema import (
    ConditionalConfig,
    ConditionalField,
    LogicMode,
    Rule,
    RuleOperator,
    VisibilityAction,
    WidgetKind,
    coerce_widget_kind,
)


# =============================================================
# Test: Rule
# =============================================================


class TestRule:
    """Parsing of a single rule."""

    def test_form_builder_keys(self):
        r = Rule.model_validate({"field_id": "country", "operator": "equals", "value": "US"})
        assert r.source_field_id == "country"
        assert r.operator == "equals"
        assert r.compare_value == "US"

    def test_camel_case_keys(self):
        r = Rule.model_validate({"sourceFieldId": "age", "operator": "greater_than", "compareValue": "18"})
        assert r.source_field_id == "age"
        assert r.compare_value == "18"

    def test_python_names(self):
        r = Rule(source_field_id="a", operator=RuleOperator.IS_EMPTY)
        assert r.operator == "is_empty"
        assert r.compare_value == ""

    def test_operator_is_lowercased(self):
        r = Rule.model_validate({"field_id": "a", "operator": "  Not_Equals "})
        assert r.operator == "not_equals"
        assert r.known_operator is RuleOperator.NOT_EQUALS

    def test_missing_operator_defaults_to_equals(self):
        r = Rule.model_validate({"field_id": "a", "value": "x"})
        assert r.operator == "equals"

    def test_unknown_operator_is_kept(self):
        r = Rule.model_validate({"field_id": "a", "operator": "regex"})
        assert r.operator == "regex"
        assert r.known_operator is None

    @pytest.mark.parametrize("operator, expected", [(7, "7"), (True, "true"), (["equals"], "['equals']")])
    def test_non_string_operator_is_kept_as_text(self, operator, expected):
        r = Rule.model_validate({"field_id": "a", "operator": operator, "value": "y"})
        assert r.operator == expected
        assert r.known_operator is None

    def test_numeric_compare_value_becomes_text(self):
        r = Rule.model_validate({"field_id": "age", "operator": "less_than", "value": 18})
        assert r.compare_value == "18"

    def test_bool_compare_value_becomes_text(self):
        r = Rule.model_validate({"field_id": "agree", "value": True})
        assert r.compare_value == "true"

    def test_missing_source_rejected(self):
        with pytest.raises(ValidationError):
            Rule.model_validate({"operator": "equals", "value": "x"})

    def test_blank_source_rejected(self):
        with pytest.raises(ValidationError):
            Rule.model_validate({"field_id": "   "})

    def test_list_compare_value_rejected(self):
        with pytest.raises(ValidationError):
            Rule.model_validate({"field_id": "a", "value": ["x", "y"]})

    def test_rule_is_frozen(self):
        r = Rule(source_field_id="a")
        with pytest.raises(ValidationError):
            r.operator = "contains"


# =============================================================
# Test: ConditionalConfig
# =============================================================


class TestConditionalConfig:
    """Parsing of a field's conditional block."""

    def test_defaults(self):
        config = ConditionalConfig.model_validate({"rules": [{"field_id": "a"}]})
        assert config.enabled is True
        assert config.action == VisibilityAction.SHOW
        assert config.logic == LogicMode.ALL

    def test_case_insensitive_action_and_logic(self):
        config = ConditionalConfig.model_validate({"action": "HIDE", "logic": "Any", "rules": []})
        assert config.action == VisibilityAction.HIDE
        assert config.logic == LogicMode.ANY

    def test_null_action_and_logic_use_defaults(self):
        config = ConditionalConfig.model_validate({"action": None, "logic": None})
        assert config.action == VisibilityAction.SHOW
        assert config.logic == LogicMode.ALL

    def test_invalid_action_rejected(self):
        with pytest.raises(ValidationError):
            ConditionalConfig.model_validate({"action": "toggle"})

    def test_invalid_logic_rejected(self):
        with pytest.raises(ValidationError):
            ConditionalConfig.model_validate({"logic": "xor"})

    def test_rules_must_be_list(self):
        with pytest.raises(ValidationError):
            ConditionalConfig.model_validate({"rules": "country equals US"})

    def test_extra_keys_ignored(self):
        config = ConditionalConfig.model_validate({"rules": [], "label": "whatever"})
        assert config.rules == []


# =============================================================
# Test: ConditionalField
# =============================================================


class TestConditionalField:
    """Construction of registered fields."""

    def test_from_config(self):
        config = ConditionalConfig.model_validate({
            "action": "hide",
            "logic": "any",
            "rules": [{"field_id": "a"}, {"field_id": "b"}, {"field_id": "a"}],
        })
        field = ConditionalField.from_config("target", config)
        assert field.is_conditional is True
        assert field.action == VisibilityAction.HIDE
        assert field.logic == LogicMode.ANY
        assert len(field.rules) == 3
        assert field.source_field_ids == ["a", "b"]

    def test_from_none(self):
        field = ConditionalField.from_config("plain", None)
        assert field.is_conditional is False
        assert field.rules == ()

    def test_disabled_config_has_no_rules(self):
        config = ConditionalConfig.model_validate({"enabled": False, "rules": [{"field_id": "a"}]})
        field = ConditionalField.from_config("target", config)
        assert field.is_conditional is False


# =============================================================
# Test: widget kinds
# =============================================================


class TestWidgetKind:
    """Mapping declared field types onto widget kinds."""

    @pytest.mark.parametrize("declared,expected", [
        ("checkbox", WidgetKind.CHECKBOX),
        ("RADIO", WidgetKind.RADIO),
        ("select", WidgetKind.SELECT),
        ("date", WidgetKind.DATE),
        ("email", WidgetKind.TEXT),
        ("number", WidgetKind.TEXT),
        (None, WidgetKind.TEXT),
        (WidgetKind.TEXTAREA, WidgetKind.TEXTAREA),
    ])
    def test_coerce(self, declared, expected):
        assert coerce_widget_kind(declared) is expected
