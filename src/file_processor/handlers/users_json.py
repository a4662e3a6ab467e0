"""User/session JSON handler."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from file_processor.handlers.base import HandlerError, Metrics, read_text
from file_processor.models import ErrorKind

_USER_KEYS = ("usuarios", "users")
_SESSION_KEYS = ("sesiones", "sessions")
_ACTIVE_KEYS = ("activo", "active")


def handle(path: Path) -> Metrics:
    """Count users, active users and sessions."""

    text = read_text(path)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as error:
        raise HandlerError(
            ErrorKind.PARSE_ERROR,
            f"Invalid JSON format: {error.msg} (line {error.lineno}, column {error.colno})",
        ) from error
    if not isinstance(data, dict):
        raise HandlerError(
            ErrorKind.MALFORMED_INPUT,
            f"Expected a JSON object at top level, got {type(data).__name__}",
        )

    users = _list_field(data, _USER_KEYS)
    sessions = _list_field(data, _SESSION_KEYS)
    if any(not isinstance(user, dict) for user in users):
        raise HandlerError(ErrorKind.MALFORMED_INPUT, "Every user entry must be a JSON object")

    return {
        "total_users": len(users),
        "active_users": sum(1 for user in users if _is_active(user)),
        "total_sessions": len(sessions),
    }


def _list_field(data: dict[str, Any], keys: tuple[str, ...]) -> list[Any]:
    for key in keys:
        if key not in data:
            continue
        value = data[key]
        if not isinstance(value, list):
            raise HandlerError(
                ErrorKind.MALFORMED_INPUT,
                f"Field {key!r} must be a list, got {type(value).__name__}",
            )
        return value
    return []


def _is_active(user: dict[str, Any]) -> bool:
    return any(bool(user.get(key)) for key in _ACTIVE_KEYS)
