"""JSON Schemas for task input coming from the CLI and MCP tools.

New tasks must explain themselves (non-empty intent, at least one
objective). Tasks in a full target list, as produced by ``jjplan show``,
only need to be encodable.
"""

from __future__ import annotations

from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from jjplan.codec import SCOPE_PATTERN
from jjplan.models import MAX_TITLE_LENGTH, VALID_TASK_TYPES

_LINE: dict[str, Any] = {"type": "string", "minLength": 1, "pattern": r"^[^\n]*$"}

_TASK_PROPERTIES: dict[str, Any] = {
    "task_key": {"type": ["string", "null"]},
    "tag": {"type": ["string", "null"]},
    "type": {"enum": sorted(VALID_TASK_TYPES)},
    "scope": {"type": ["string", "null"], "pattern": f"^({SCOPE_PATTERN})?$"},
    "title": {
        "type": "string",
        "minLength": 1,
        "maxLength": MAX_TITLE_LENGTH,
        "pattern": r"^[a-z0-9](.*\S)?$",
    },
    "intent": {"type": "string", "minLength": 1},
    "objectives": {
        "type": "array",
        "items": _LINE,
        "minItems": 1,
    },
    "constraints": {"type": "array", "items": _LINE},
    "completed": {"type": "boolean"},
}

TASK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": _TASK_PROPERTIES,
    "required": ["type", "title", "intent", "objectives"],
    "additionalProperties": False,
}

TASK_UPDATE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {k: v for k, v in _TASK_PROPERTIES.items() if k not in ("task_key", "tag")},
    "additionalProperties": False,
}

STORED_TASK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        **_TASK_PROPERTIES,
        "intent": {"type": "string"},
        "objectives": {"type": "array", "items": _LINE},
    },
    "required": ["type", "title"],
    "additionalProperties": False,
}

PLAN_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "tag": {"type": "string", "pattern": "^[a-z0-9]{4}$"},
        "tasks": {"type": "array", "items": STORED_TASK_SCHEMA},
    },
    "required": ["tasks"],
    "additionalProperties": False,
}


def _check(instance: Any, schema: dict[str, Any]) -> None:
    error = best_match(Draft202012Validator(schema).iter_errors(instance))
    if error is None:
        return
    location = ".".join(str(p) for p in error.absolute_path)
    raise ValueError(f"{location}: {error.message}" if location else error.message)


def validate_task_input(data: Any, *, partial: bool = False) -> None:
    """Validate a new task (or, with ``partial``, a set of changes). Raises ValueError."""
    _check(data, TASK_UPDATE_SCHEMA if partial else TASK_SCHEMA)


def validate_plan_input(data: Any) -> None:
    """Validate a full target list ``{"tasks": [...]}``. Raises ValueError."""
    _check(data, PLAN_SCHEMA)
