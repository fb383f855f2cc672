"""
FastAPI routes for the formlogic service.

Endpoints:
- POST   /forms                              — open a form instance from a definition
- POST   /forms/{form_instance_id}/values    — report a source field change
- GET    /forms/{form_instance_id}/visibility — current visibility map
- GET    /forms/{form_instance_id}/fields/{field_id} — presentation state of one field
- DELETE /forms/{form_instance_id}           — close a form instance
- POST   /validate-config                    — check conditional declarations
- GET    /health                             — health check
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from formlogic.core.form_logic import current_visibility, on_source_value_change
from formlogic.core.loader import (
    FormDefinitionError,
    build_form_state,
    form_definition_from_fields,
    parse_form_definition,
)
from formlogic.core.registry import FieldRegistry, validate_conditional_config
from formlogic.core.session import Session

logger = logging.getLogger(__name__)

router = APIRouter()

# Injected by the app factory
_session_store = None


def configure_routes(session_store):
    """Inject the session store into the routes module.

    Called by the app factory during startup.
    """
    global _session_store
    _session_store = session_store


# --- Request / Response Models ---


class CreateFormRequest(BaseModel):
    """Request body for POST /forms.

    Exactly one of ``form_definition`` (YAML text) or ``fields`` is given.
    """

    form_definition: str | None = None
    fields: list[dict[str, Any]] | None = None
    form_id: str = "form"
    form_instance_id: str | None = None


class VisibilityResponse(BaseModel):
    """Visibility of every conditional field, plus what just changed."""

    form_instance_id: str
    visibility: dict[str, bool]
    shown: list[str] = []
    hidden: list[str] = []


class ValueChangeRequest(BaseModel):
    """Request body for POST /forms/{id}/values."""

    field_id: str
    value: Any = None


class ValidateConfigRequest(BaseModel):
    """Request body for POST /validate-config."""

    fields: list[dict[str, Any]]


class ValidateConfigResponse(BaseModel):
    valid: bool
    errors: dict[str, list[str]]
    circular_dependencies: list[str]


# --- Helpers ---


def _require_store():
    if _session_store is None:
        raise HTTPException(status_code=500, detail="Server not properly configured")
    return _session_store


def _get_session(form_instance_id: str) -> Session:
    session = _require_store().get_session(form_instance_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Form instance '{form_instance_id}' not found")
    return session


def _declared_id(field: dict[str, Any]) -> str:
    """The stripped id of a field entry, or an empty string if it has none."""
    field_id = field.get("id")
    return field_id.strip() if isinstance(field_id, str) else ""


# --- Endpoints ---


@router.post("/forms", response_model=VisibilityResponse)
async def create_form(request: CreateFormRequest):
    """Open a form instance and run its first evaluation."""
    store = _require_store()

    if (request.form_definition is None) == (request.fields is None):
        raise HTTPException(
            status_code=400,
            detail="Provide exactly one of 'form_definition' or 'fields'",
        )

    try:
        if request.form_definition is not None:
            definition = parse_form_definition(request.form_definition)
        else:
            definition = form_definition_from_fields(request.fields, form_id=request.form_id)
    except FormDefinitionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    state = build_form_state(definition)
    form_instance_id, _ = store.create_session(state, request.form_instance_id)
    logger.info("Opened form instance %s (%s)", form_instance_id, definition.form_id)

    visibility = current_visibility(state)
    return VisibilityResponse(
        form_instance_id=form_instance_id,
        visibility=visibility,
        hidden=[field_id for field_id, visible in visibility.items() if not visible],
    )


@router.post("/forms/{form_instance_id}/values", response_model=VisibilityResponse)
async def change_value(form_instance_id: str, request: ValueChangeRequest):
    """Record a source field change and return the re-evaluated visibility."""
    session = _get_session(form_instance_id)
    change = on_source_value_change(session.state, request.field_id, request.value)
    return VisibilityResponse(
        form_instance_id=form_instance_id,
        visibility=change.visibility,
        shown=change.shown,
        hidden=change.hidden,
    )


@router.get("/forms/{form_instance_id}/visibility", response_model=VisibilityResponse)
async def get_visibility(form_instance_id: str):
    """Return the current visibility map of a form instance."""
    session = _get_session(form_instance_id)
    return VisibilityResponse(
        form_instance_id=form_instance_id,
        visibility=current_visibility(session.state),
    )


@router.get("/forms/{form_instance_id}/fields/{field_id}")
async def get_field(form_instance_id: str, field_id: str):
    """Return the presentation state of one field."""
    session = _get_session(form_instance_id)
    presentation = session.state.applier.presentation(field_id)
    if presentation is None:
        raise HTTPException(status_code=404, detail=f"Field '{field_id}' not found")
    return presentation.model_dump()


@router.delete("/forms/{form_instance_id}")
async def close_form(form_instance_id: str):
    """Drop a form instance."""
    deleted = _require_store().delete_session(form_instance_id)
    return {
        "success": deleted,
        "message": "Form instance closed" if deleted else "Form instance not found",
    }


@router.post("/validate-config", response_model=ValidateConfigResponse)
async def validate_config(request: ValidateConfigRequest):
    """Report declaration problems and reference cycles for a field list."""
    field_ids = [_declared_id(f) for f in request.fields]
    known_ids = [field_id for field_id in field_ids if field_id]
    errors: dict[str, list[str]] = {}
    registry = FieldRegistry()

    for field, field_id in zip(request.fields, field_ids):
        if not field_id:
            continue
        conditional = field.get("conditional")
        registry.register(field_id, conditional)
        if conditional is None:
            continue
        field_errors = validate_conditional_config(conditional, known_ids)
        if field_errors:
            errors[field_id] = field_errors

    cycles = registry.detect_circular_dependencies()
    return ValidateConfigResponse(
        valid=not errors and not cycles,
        errors=errors,
        circular_dependencies=cycles,
    )


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    session_count = _session_store.count() if _session_store else 0
    return {
        "status": "healthy",
        "active_forms": session_count,
    }
