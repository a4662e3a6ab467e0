"""Handler interface shared by the format-specific file handlers."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from file_processor.models import ErrorKind

Metrics = dict[str, Any]
Handler = Callable[[Path], Metrics]


class HandlerError(RuntimeError):
    """Handler failure with a normalized error kind."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


def read_text(path: Path) -> str:
    """Read a whole input file, mapping I/O problems to handler errors."""

    if not path.is_file():
        raise HandlerError(ErrorKind.FILE_NOT_FOUND, f"File not found: {path}")
    try:
        return path.read_text("utf-8")
    except UnicodeDecodeError as error:
        raise HandlerError(
            ErrorKind.PARSE_ERROR,
            f"File is not valid UTF-8 text: {path.name} ({error.reason})",
        ) from error
    except FileNotFoundError as error:
        raise HandlerError(ErrorKind.FILE_NOT_FOUND, f"File not found: {path}") from error
