"""JSON Schemas for the GitHub REST payloads issuetodo consumes.

Schemas are intentionally shallow: only the keys the client reads are
required, everything else GitHub sends is allowed through. Validation failures
surface as :class:`~issuetodo.errors.DecodeError`.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from jsonschema import Draft7Validator

from .errors import DecodeError

SCHEMA_KEY = "$schema"
SCHEMA_URL = "http://json-schema.org/draft-07/schema#"

_NULLABLE_STRING = {"type": ["string", "null"]}

USER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "login"],
    "properties": {
        "id": {"type": "integer"},
        "login": {"type": "string"},
        "avatar_url": _NULLABLE_STRING,
    },
}

LABEL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "name"],
    "properties": {
        "id": {"type": "integer"},
        "name": {"type": "string"},
        "color": _NULLABLE_STRING,
    },
}

MILESTONE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "number", "title"],
    "properties": {
        "id": {"type": "integer"},
        "number": {"type": "integer"},
        "title": {"type": "string"},
        "state": {"type": "string"},
    },
}

REPO_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "name", "full_name", "owner"],
    "properties": {
        "id": {"type": "integer"},
        "name": {"type": "string"},
        "full_name": {"type": "string"},
        "owner": USER_SCHEMA,
        "private": {"type": "boolean"},
        "description": _NULLABLE_STRING,
    },
}

ISSUE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "number", "title", "state"],
    "properties": {
        "id": {"type": "integer"},
        "number": {"type": "integer"},
        "title": {"type": "string"},
        "body": _NULLABLE_STRING,
        "state": {"type": "string", "enum": ["open", "closed"]},
        "assignees": {"type": ["array", "null"], "items": USER_SCHEMA},
        "labels": {"type": ["array", "null"], "items": LABEL_SCHEMA},
        "milestone": {"anyOf": [MILESTONE_SCHEMA, {"type": "null"}]},
        "user": {"anyOf": [USER_SCHEMA, {"type": "null"}]},
        "pull_request": {"type": ["object", "null"]},
    },
}

ISSUE_SUMMARY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "number", "title"],
    "properties": {
        "id": {"type": "integer"},
        "number": {"type": "integer"},
        "title": {"type": "string"},
        "html_url": _NULLABLE_STRING,
    },
}

_ITEM_SCHEMAS: dict[str, dict[str, Any]] = {
    "user": USER_SCHEMA,
    "repo": REPO_SCHEMA,
    "label": LABEL_SCHEMA,
    "milestone": MILESTONE_SCHEMA,
    "issue": ISSUE_SCHEMA,
    "issue_summary": ISSUE_SUMMARY_SCHEMA,
}


def get_schemas() -> dict[str, Any]:
    """Return a mapping of schema name -> JSON Schema dictionary.

    Each item schema also has a ``<name>_list`` array variant.
    """
    schemas: dict[str, Any] = {}
    for name, item in _ITEM_SCHEMAS.items():
        schemas[name] = {SCHEMA_KEY: SCHEMA_URL, "title": name, **item}
        schemas[f"{name}_list"] = {
            SCHEMA_KEY: SCHEMA_URL,
            "title": f"{name}_list",
            "type": "array",
            "items": item,
        }
    return schemas


@lru_cache(maxsize=None)
def _validator(name: str) -> Draft7Validator:
    schemas = get_schemas()
    if name not in schemas:
        raise KeyError(f"Unknown schema: {name}")
    return Draft7Validator(schemas[name])


def validate_payload(name: str, payload: Any) -> Any:
    """Validate ``payload`` against schema ``name``; return it unchanged."""
    validator = _validator(name)
    errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.absolute_path))
    if errors:
        first = errors[0]
        location = "/".join(str(p) for p in first.absolute_path) or "<root>"
        raise DecodeError(f"Malformed {name} payload at {location}: {first.message}")
    return payload


__all__ = ["get_schemas", "validate_payload"]
