"""JSON contracts for the two request bodies.

`validate_*` return human-readable errors for logs (empty means valid);
`*_error` return the single client-facing message, or None.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator


TRIGGER_TYPES = ("new_feed", "full_refresh", "scheduled", "cleanup_only")

FEED_CHECK_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["url"],
    "properties": {
        "url": {"type": "string", "minLength": 1},
    },
    "additionalProperties": True,
}

DISPATCH_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["trigger_type"],
    "properties": {
        "trigger_type": {"type": "string", "minLength": 1, "enum": list(TRIGGER_TYPES)},
        "feed_id": {"type": ["string", "integer", "null"]},
    },
    "additionalProperties": True,
}

_FEED_CHECK_VALIDATOR = Draft202012Validator(FEED_CHECK_SCHEMA)
_DISPATCH_VALIDATOR = Draft202012Validator(DISPATCH_SCHEMA)

URL_REQUIRED_MESSAGE = "Valid URL is required"
TRIGGER_REQUIRED_MESSAGE = "trigger_type is required and must be a string"
TRIGGER_ENUM_MESSAGE = "trigger_type must be one of: " + ", ".join(TRIGGER_TYPES)
FEED_ID_MESSAGE = "feed_id must be a string"


def _errors(validator: Draft202012Validator, payload: Any) -> List[str]:
    out = []
    for e in sorted(validator.iter_errors(payload), key=lambda x: list(x.path)):
        path = ".".join(str(p) for p in e.path) or "$"
        out.append(f"{path}: {e.message}")
    return out


def validate_feed_check_request(payload: Any) -> List[str]:
    return _errors(_FEED_CHECK_VALIDATOR, payload)


def validate_dispatch_request(payload: Any) -> List[str]:
    return _errors(_DISPATCH_VALIDATOR, payload)


def feed_check_error(payload: Any) -> Optional[str]:
    if _FEED_CHECK_VALIDATOR.is_valid(payload):
        return None
    return URL_REQUIRED_MESSAGE


def dispatch_error(payload: Any) -> Optional[str]:
    errors = list(_DISPATCH_VALIDATOR.iter_errors(payload))
    if not errors:
        return None
    trigger_errors = [e for e in errors if list(e.path)[:1] == ["trigger_type"]]
    # A well-typed but unknown trigger gets the list of valid values
    if trigger_errors and all(e.validator == "enum" for e in trigger_errors):
        return TRIGGER_ENUM_MESSAGE
    if trigger_errors or any(e.validator in ("type", "required") and not e.path for e in errors):
        return TRIGGER_REQUIRED_MESSAGE
    return FEED_ID_MESSAGE
