"""Format-specific file handlers and extension dispatch."""

from __future__ import annotations

from pathlib import Path

from file_processor.handlers import sales_csv, system_log, users_json
from file_processor.handlers.base import Handler, HandlerError, Metrics
from file_processor.models import ErrorKind, HandlerKind

EXTENSION_KINDS: dict[str, HandlerKind] = {
    ".csv": HandlerKind.CSV,
    ".json": HandlerKind.JSON,
    ".log": HandlerKind.LOG,
}

HANDLERS: dict[HandlerKind, Handler] = {
    HandlerKind.CSV: sales_csv.handle,
    HandlerKind.JSON: users_json.handle,
    HandlerKind.LOG: system_log.handle,
}


def resolve_handler_kind(path: str | Path) -> HandlerKind:
    return EXTENSION_KINDS.get(Path(path).suffix.lower(), HandlerKind.UNKNOWN)


def dispatch(path: str | Path, kind: HandlerKind | None = None) -> Metrics:
    """Run the handler registered for ``kind`` (resolved from the extension by default)."""

    file_path = Path(path)
    resolved = kind or resolve_handler_kind(file_path)
    handler = HANDLERS.get(resolved)
    if handler is None:
        raise HandlerError(
            ErrorKind.UNSUPPORTED_TYPE,
            f"Unsupported file type: {file_path.suffix or '<none>'}",
        )
    return handler(file_path)


__all__ = [
    "EXTENSION_KINDS",
    "HANDLERS",
    "Handler",
    "HandlerError",
    "Metrics",
    "dispatch",
    "resolve_handler_kind",
]
