"""Domain models for batch file processing."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class HandlerKind(str, Enum):
    """File kinds with a dedicated handler, selected by extension."""

    CSV = "csv"
    JSON = "json"
    LOG = "log"
    UNKNOWN = "unknown"


class EnvelopeStatus(str, Enum):
    """Terminal outcome of one file."""

    SUCCESS = "success"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Normalized failure kinds carried by error envelopes."""

    FILE_NOT_FOUND = "file_not_found"
    UNSUPPORTED_TYPE = "unsupported_type"
    PARSE_ERROR = "parse_error"
    MALFORMED_INPUT = "malformed_input"
    HANDLER_CRASHED = "handler_crashed"
    ATTEMPT_TIMEOUT = "attempt_timeout"
    TIMEOUT = "timeout"
    WORKER_TIMEOUT = "worker_timeout"
    WORKER_CRASHED = "worker_crashed"
    RETRY_EXHAUSTED = "retry_exhausted"
    BATCH_CANCELLED = "batch_cancelled"


class WorkerState(str, Enum):
    """Worker lifecycle: spawned -> executing -> result_sent -> ack outcome -> terminated."""

    SPAWNED = "spawned"
    EXECUTING = "executing"
    RESULT_SENT = "result_sent"
    ACKNOWLEDGED = "acknowledged"
    ACK_TIMED_OUT = "ack_timed_out"
    TERMINATED = "terminated"


@dataclass(frozen=True, slots=True)
class Task:
    """One input file scheduled for processing."""

    index: int
    task_id: str
    file_path: str
    handler_kind: HandlerKind

    @property
    def file_name(self) -> str:
        return Path(self.file_path).name


@dataclass(slots=True)
class ResultEnvelope:
    """Single terminal outcome record produced per task."""

    file_path: str
    status: EnvelopeStatus
    handler_kind: HandlerKind
    metrics: dict[str, Any] | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None
    attempts: int = 1
    worker_id: str | None = None
    elapsed_ms: int | None = None
    cause_kind: ErrorKind | None = None

    @property
    def file_name(self) -> str:
        return Path(self.file_path).name

    @property
    def ok(self) -> bool:
        return self.status == EnvelopeStatus.SUCCESS

    @property
    def line_errors(self) -> list[dict[str, Any]]:
        if not self.metrics:
            return []
        return list(self.metrics.get("errors", []))

    @classmethod
    def success(
        cls,
        task: Task,
        metrics: dict[str, Any],
        *,
        attempts: int = 1,
        worker_id: str | None = None,
        elapsed_ms: int | None = None,
    ) -> ResultEnvelope:
        return cls(
            file_path=task.file_path,
            status=EnvelopeStatus.SUCCESS,
            handler_kind=task.handler_kind,
            metrics=metrics,
            attempts=attempts,
            worker_id=worker_id,
            elapsed_ms=elapsed_ms,
        )

    @classmethod
    def failure(  # noqa: PLR0913
        cls,
        task: Task,
        error_kind: ErrorKind,
        message: str,
        *,
        attempts: int = 1,
        worker_id: str | None = None,
        elapsed_ms: int | None = None,
        cause_kind: ErrorKind | None = None,
    ) -> ResultEnvelope:
        return cls(
            file_path=task.file_path,
            status=EnvelopeStatus.ERROR,
            handler_kind=task.handler_kind,
            error_kind=error_kind,
            message=message,
            attempts=attempts,
            worker_id=worker_id,
            elapsed_ms=elapsed_ms,
            cause_kind=cause_kind,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize envelope for JSON output."""

        return {
            "file_path": self.file_path,
            "file_name": self.file_name,
            "status": self.status.value,
            "handler_kind": self.handler_kind.value,
            "metrics": self.metrics,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "message": self.message,
            "attempts": self.attempts,
            "worker_id": self.worker_id,
            "elapsed_ms": self.elapsed_ms,
            "cause_kind": self.cause_kind.value if self.cause_kind else None,
        }


@dataclass(slots=True)
class LineError:
    """Per-line validation problem inside an otherwise processed file."""

    line: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"line": self.line, "message": self.message}


@dataclass(slots=True)
class BenchmarkResult:
    """Sequential vs parallel timing comparison."""

    sequential_ms: int
    parallel_ms: int
    improvement: float
    percent_faster: float
    files_count: int
    sequential_results: list[ResultEnvelope] = field(default_factory=list)
    parallel_results: list[ResultEnvelope] = field(default_factory=list)
