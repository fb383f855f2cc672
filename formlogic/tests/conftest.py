"""
Shared test fixtures and helpers for the formlogic test suite.
"""

import pytest

from formlogic.core.form_logic import FormLogicState, register_field, start

CONTACT_FORM_YAML = """
---
form_id: contact
title: Contact Us
fields:
  - id: country
    type: select
    value: US
  - id: state
    type: select
    required: true
    conditional:
      enabled: true
      action: show
      logic: all
      rules:
        - field_id: country
          operator: equals
          value: US
  - id: interests
    type: checkbox
  - id: music_genre
    type: text
    required: true
    conditional:
      rules:
        - field_id: interests
          operator: contains
          value: music
  - id: age
    type: number
  - id: guardian_name
    type: text
    required: true
    conditional:
      action: hide
      rules:
        - field_id: age
          operator: greater_than
          value: 17
---
# Contact Us

Anything below the frontmatter is ignored by the loader.
"""


def rule(source: str, operator: str = "equals", value: str = "") -> dict:
    """Build a rule declaration in the form-builder key spelling."""
    return {"field_id": source, "operator": operator, "value": value}


def conditional(*rules: dict, action: str = "show", logic: str = "all") -> dict:
    """Build an enabled conditional declaration."""
    return {"enabled": True, "action": action, "logic": logic, "rules": list(rules)}


@pytest.fixture
def contact_form_yaml() -> str:
    return CONTACT_FORM_YAML


@pytest.fixture
def country_state() -> FormLogicState:
    """A started form: `state` is shown only when `country` equals US."""
    state = FormLogicState("address")
    register_field(state, "country", widget="select", value="US")
    register_field(
        state,
        "state",
        conditional(rule("country", "equals", "US")),
        widget="select",
        required=True,
    )
    start(state)
    return state
