"""System log handler.

Line format: ``YYYY-MM-DD HH:MM:SS [LEVEL] [COMPONENT] message``.
"""

from __future__ import annotations

import re
from pathlib import Path

from file_processor.handlers.base import Metrics, read_text
from file_processor.models import LineError

LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARN", "ERROR", "FATAL")

_LINE_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2}) (?P<time>\d{2}:\d{2}:\d{2}) "
    r"\[(?P<level>\w+)\] \[(?P<component>[^\]]+)\] (?P<message>.*)$",
)


def handle(path: Path) -> Metrics:
    """Build a log-level histogram, reporting lines that do not match the format."""

    histogram = dict.fromkeys(LOG_LEVELS, 0)
    errors: list[LineError] = []
    total_lines = 0
    for line_no, raw_line in enumerate(read_text(path).splitlines(), start=1):
        line = raw_line.strip()
        if not line:
            continue
        total_lines += 1
        match = _LINE_PATTERN.match(line)
        if match is None:
            errors.append(LineError(line=line_no, message="line does not match log format"))
            continue
        level = match.group("level").upper()
        if level not in histogram:
            errors.append(LineError(line=line_no, message=f"unknown log level {level!r}"))
            continue
        histogram[level] += 1

    metrics: Metrics = {"total_lines": total_lines}
    metrics.update({level.lower(): count for level, count in histogram.items()})
    metrics["malformed_lines"] = len(errors)
    metrics["errors"] = [error.to_dict() for error in errors]
    return metrics
