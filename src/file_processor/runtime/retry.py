"""Bounded retry around a single handler invocation."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import NamedTuple

from file_processor.handlers import HandlerError, Metrics, dispatch
from file_processor.models import ErrorKind, ResultEnvelope, Task

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RetryConfig:
    """Retry tunables.

    ``retries`` counts additional attempts, so a task is tried at most
    ``retries + 1`` times.
    """

    retries: int = 3
    per_attempt_timeout: float | None = 5.0
    retry_delay: float = 1.0

    @property
    def max_attempts(self) -> int:
        return self.retries + 1


class AttemptOutcome(NamedTuple):
    metrics: Metrics | None
    error_kind: ErrorKind | None
    message: str | None

    @property
    def ok(self) -> bool:
        return self.error_kind is None


def run_handler(task: Task) -> AttemptOutcome:
    """Invoke the task's handler once, converting every failure into an outcome."""

    try:
        metrics = dispatch(task.file_path, task.handler_kind)
    except HandlerError as error:
        return AttemptOutcome(metrics=None, error_kind=error.kind, message=str(error))
    except Exception as error:  # noqa: BLE001
        logger.warning("Handler crashed for %s", task.file_path, exc_info=True)
        return AttemptOutcome(
            metrics=None,
            error_kind=ErrorKind.HANDLER_CRASHED,
            message=f"Handler crashed: {type(error).__name__}: {error}",
        )
    return AttemptOutcome(metrics=metrics, error_kind=None, message=None)


def run_attempt(task: Task, timeout: float | None) -> AttemptOutcome:
    """Run one attempt in a daemon thread; an overrunning attempt is abandoned."""

    if timeout is None:
        return run_handler(task)

    box: queue.Queue[AttemptOutcome] = queue.Queue(maxsize=1)
    thread = threading.Thread(
        target=lambda: box.put(run_handler(task)),
        name=f"attempt-{task.task_id[:8]}",
        daemon=True,
    )
    thread.start()
    try:
        return box.get(timeout=timeout)
    except queue.Empty:
        return AttemptOutcome(
            metrics=None,
            error_kind=ErrorKind.ATTEMPT_TIMEOUT,
            message=f"Attempt exceeded {timeout:g}s",
        )


def invoke_handler(task: Task, *, worker_id: str | None = None) -> ResultEnvelope:
    """Single invocation without retry; the handler's own error kind is kept."""

    started = time.monotonic()
    outcome = run_handler(task)
    elapsed_ms = _elapsed_ms(started)
    if outcome.ok:
        return ResultEnvelope.success(
            task,
            outcome.metrics or {},
            worker_id=worker_id,
            elapsed_ms=elapsed_ms,
        )
    return ResultEnvelope.failure(
        task,
        outcome.error_kind or ErrorKind.HANDLER_CRASHED,
        outcome.message or "Unknown handler failure",
        worker_id=worker_id,
        elapsed_ms=elapsed_ms,
    )


class RetryPolicy:
    """Retries failed attempts with a fixed delay until attempts run out."""

    def __init__(
        self,
        config: RetryConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self._sleep = sleep

    def invoke(self, task: Task, *, worker_id: str | None = None) -> ResultEnvelope:
        started = time.monotonic()
        failures: list[AttemptOutcome] = []
        for attempt in range(1, self.config.max_attempts + 1):
            outcome = run_attempt(task, self.config.per_attempt_timeout)
            if outcome.ok:
                if attempt > 1:
                    logger.info("%s succeeded on attempt %s", task.file_name, attempt)
                return ResultEnvelope.success(
                    task,
                    outcome.metrics or {},
                    attempts=attempt,
                    worker_id=worker_id,
                    elapsed_ms=_elapsed_ms(started),
                )

            failures.append(outcome)
            logger.info(
                "Attempt %s/%s failed for %s: %s",
                attempt,
                self.config.max_attempts,
                task.file_name,
                outcome.message,
            )
            if attempt < self.config.max_attempts and self.config.retry_delay > 0:
                self._sleep(self.config.retry_delay)

        return self._exhausted(task, failures, worker_id=worker_id, started=started)

    def _exhausted(
        self,
        task: Task,
        failures: list[AttemptOutcome],
        *,
        worker_id: str | None,
        started: float,
    ) -> ResultEnvelope:
        last = failures[-1]
        all_timed_out = all(
            failure.error_kind == ErrorKind.ATTEMPT_TIMEOUT for failure in failures
        )
        error_kind = ErrorKind.TIMEOUT if all_timed_out else ErrorKind.RETRY_EXHAUSTED
        logger.warning(
            "Giving up on %s after %s attempt(s): %s",
            task.file_name,
            len(failures),
            last.message,
        )
        return ResultEnvelope.failure(
            task,
            error_kind,
            f"Failed after {len(failures)} attempt(s): {last.message}",
            attempts=len(failures),
            worker_id=worker_id,
            elapsed_ms=_elapsed_ms(started),
            cause_kind=last.error_kind,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
