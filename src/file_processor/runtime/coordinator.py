"""Batch coordinator: spawns per-file workers and collects their envelopes.

Every task carries its own deadline. A worker whose deadline passes is
terminated and its task gets a synthetic error envelope, so each task ends
with exactly one envelope regardless of the order results arrive in.
"""

from __future__ import annotations

import logging
import multiprocessing
import time
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from multiprocessing.connection import Connection, wait
from multiprocessing.context import BaseContext
from multiprocessing.process import BaseProcess
from pathlib import Path
from uuid import uuid4

from file_processor.handlers import resolve_handler_kind
from file_processor.models import ErrorKind, ResultEnvelope, Task
from file_processor.runtime.retry import RetryConfig
from file_processor.runtime.worker import ACK_MESSAGE, RESULT_MESSAGE, run_worker_process

logger = logging.getLogger(__name__)

_REAP_TIMEOUT_SECONDS = 1.0
_TERMINATE_GRACE_SECONDS = 2.0


@dataclass(slots=True)
class CoordinatorOptions:
    """Collection and dispatch tunables."""

    per_result_timeout: float = 15.0
    concurrency_limit: int | None = None
    ack_timeout: float = 5.0
    retry: RetryConfig | None = None
    timeout_kind: ErrorKind = ErrorKind.WORKER_TIMEOUT
    emit: Callable[[str], None] | None = None
    shutdown_requested: Callable[[], bool] | None = None
    start_method: str | None = None
    poll_interval: float = 0.1


@dataclass(slots=True)
class WorkerHandle:
    """Coordinator-side ownership token for one running worker."""

    task: Task
    process: BaseProcess
    connection: Connection
    worker_id: str
    spawned_at: float
    deadline: float


@dataclass(slots=True)
class CoordinatorState:
    """Batch bookkeeping owned exclusively by the collection loop."""

    expected_count: int
    waiting: deque[Task]
    pending: dict[str, WorkerHandle] = field(default_factory=dict)
    collected: dict[int, ResultEnvelope] = field(default_factory=dict)

    @property
    def done(self) -> bool:
        return len(self.collected) == self.expected_count


def build_tasks(file_paths: Iterable[str | Path]) -> list[Task]:
    return [
        Task(
            index=index,
            task_id=uuid4().hex,
            file_path=str(path),
            handler_kind=resolve_handler_kind(path),
        )
        for index, path in enumerate(file_paths)
    ]


class Coordinator:
    """Dispatches one worker process per task and assembles the outcome set."""

    def __init__(self, options: CoordinatorOptions | None = None) -> None:
        self.options = options or CoordinatorOptions()
        if self.options.concurrency_limit is not None and self.options.concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1 when set.")
        if self.options.per_result_timeout <= 0:
            raise ValueError("per_result_timeout must be > 0.")

    def start(self, file_paths: Sequence[str | Path]) -> dict[str, ResultEnvelope]:
        """Process files and return envelopes keyed by file path."""

        envelopes = self.run(build_tasks(file_paths))
        return {envelope.file_path: envelope for envelope in envelopes}

    def run(self, tasks: Sequence[Task]) -> list[ResultEnvelope]:
        """Process tasks and return their envelopes in task order."""

        state = CoordinatorState(expected_count=len(tasks), waiting=deque(tasks))
        context = multiprocessing.get_context(self.options.start_method)
        self._emit(
            f"Starting {len(tasks)} worker(s), "
            f"concurrency limit: {self.options.concurrency_limit or 'none'}",
        )
        try:
            while not state.done:
                if self._shutdown_requested():
                    self._cancel_all(state)
                    break
                self._spawn_ready(state, context)
                self._collect_once(state)
                self._expire_overdue(state)
        finally:
            for handle in list(state.pending.values()):
                self._release(state, handle, kill=True)
        return [state.collected[task.index] for task in tasks]

    def _spawn_ready(self, state: CoordinatorState, context: BaseContext) -> None:
        limit = self.options.concurrency_limit
        while state.waiting and (limit is None or len(state.pending) < limit):
            self._spawn(state, state.waiting.popleft(), context)

    def _spawn(self, state: CoordinatorState, task: Task, context: BaseContext) -> None:
        parent_conn, child_conn = context.Pipe(duplex=True)
        process = context.Process(
            target=run_worker_process,
            args=(task, child_conn, self.options.retry, self.options.ack_timeout),
            name=f"file-worker-{task.index}",
            daemon=True,
        )
        try:
            process.start()
        except OSError as error:
            parent_conn.close()
            child_conn.close()
            logger.error("Could not start worker for %s: %s", task.file_path, error)
            self._record(
                state,
                task,
                ResultEnvelope.failure(
                    task,
                    ErrorKind.WORKER_CRASHED,
                    f"Could not start worker: {error}",
                    attempts=0,
                ),
            )
            return
        child_conn.close()

        now = time.monotonic()
        handle = WorkerHandle(
            task=task,
            process=process,
            connection=parent_conn,
            worker_id=f"worker-{process.pid}",
            spawned_at=now,
            deadline=now + self.options.per_result_timeout,
        )
        state.pending[task.task_id] = handle
        logger.debug("Spawned %s for %s", handle.worker_id, task.file_path)

    def _collect_once(self, state: CoordinatorState) -> None:
        if not state.pending:
            return
        now = time.monotonic()
        nearest_deadline = min(handle.deadline for handle in state.pending.values())
        timeout = max(0.0, min(nearest_deadline - now, self.options.poll_interval))

        waitables: dict[object, WorkerHandle] = {}
        for handle in state.pending.values():
            waitables[handle.connection] = handle
            waitables[handle.process.sentinel] = handle

        for ready in wait(list(waitables), timeout=timeout):
            handle = waitables[ready]
            if handle.task.task_id not in state.pending:
                continue
            if ready is handle.connection or handle.connection.poll():
                self._receive(state, handle)
            else:
                self._handle_exit(state, handle)

    def _receive(self, state: CoordinatorState, handle: WorkerHandle) -> None:
        try:
            message = handle.connection.recv()
        except (EOFError, OSError):
            self._handle_exit(state, handle)
            return

        try:
            kind, task_id, envelope = message
        except (TypeError, ValueError):
            kind, task_id, envelope = None, None, None
        if kind != RESULT_MESSAGE or task_id != handle.task.task_id:
            logger.warning("Ignoring unexpected message from %s: %r", handle.worker_id, kind)
            return
        try:
            handle.connection.send((ACK_MESSAGE, task_id))
        except OSError as error:
            logger.warning("Could not acknowledge %s: %s", handle.worker_id, error)
        self._release(state, handle)
        self._record(state, handle.task, envelope)

    def _handle_exit(self, state: CoordinatorState, handle: WorkerHandle) -> None:
        handle.process.join(timeout=_REAP_TIMEOUT_SECONDS)
        exit_code = handle.process.exitcode
        logger.warning(
            "%s exited without a result for %s (exit code %s)",
            handle.worker_id,
            handle.task.file_path,
            exit_code,
        )
        self._release(state, handle)
        self._record(
            state,
            handle.task,
            ResultEnvelope.failure(
                handle.task,
                ErrorKind.WORKER_CRASHED,
                f"Worker exited without a result (exit code {exit_code})",
                attempts=0,
                worker_id=handle.worker_id,
                elapsed_ms=_elapsed_ms(handle.spawned_at),
            ),
        )

    def _expire_overdue(self, state: CoordinatorState) -> None:
        now = time.monotonic()
        overdue = [handle for handle in state.pending.values() if handle.deadline <= now]
        for handle in overdue:
            if handle.connection.poll():
                self._receive(state, handle)
                if handle.task.task_id not in state.pending:
                    continue
            logger.warning(
                "%s exceeded %ss for %s; terminating",
                handle.worker_id,
                self.options.per_result_timeout,
                handle.task.file_path,
            )
            self._release(state, handle, kill=True)
            self._record(
                state,
                handle.task,
                ResultEnvelope.failure(
                    handle.task,
                    self.options.timeout_kind,
                    f"No result within {self.options.per_result_timeout:g}s; worker terminated",
                    attempts=0,
                    worker_id=handle.worker_id,
                    elapsed_ms=_elapsed_ms(handle.spawned_at),
                ),
            )

    def _cancel_all(self, state: CoordinatorState) -> None:
        logger.warning(
            "Batch cancelled: %s running, %s not started",
            len(state.pending),
            len(state.waiting),
        )
        for handle in list(state.pending.values()):
            self._release(state, handle, kill=True)
            self._record(
                state,
                handle.task,
                ResultEnvelope.failure(
                    handle.task,
                    ErrorKind.BATCH_CANCELLED,
                    "Batch cancelled while the file was being processed",
                    attempts=0,
                    worker_id=handle.worker_id,
                    elapsed_ms=_elapsed_ms(handle.spawned_at),
                ),
            )
        while state.waiting:
            task = state.waiting.popleft()
            self._record(
                state,
                task,
                ResultEnvelope.failure(
                    task,
                    ErrorKind.BATCH_CANCELLED,
                    "Batch cancelled before the file was dispatched",
                    attempts=0,
                ),
            )

    def _release(self, state: CoordinatorState, handle: WorkerHandle, *, kill: bool = False) -> None:
        state.pending.pop(handle.task.task_id, None)
        if not kill:
            handle.process.join(timeout=_REAP_TIMEOUT_SECONDS)
        _terminate_process(handle.process)
        handle.connection.close()

    def _record(self, state: CoordinatorState, task: Task, envelope: ResultEnvelope) -> None:
        if task.index in state.collected:
            logger.warning("Dropping second envelope for %s", task.file_path)
            return
        state.collected[task.index] = envelope
        self._emit(_progress_line(len(state.collected), state.expected_count, envelope))

    def _shutdown_requested(self) -> bool:
        return self.options.shutdown_requested is not None and self.options.shutdown_requested()

    def _emit(self, message: str) -> None:
        if self.options.emit is not None:
            self.options.emit(message)


def _progress_line(done: int, total: int, envelope: ResultEnvelope) -> str:
    prefix = f"[{done}/{total}] {envelope.file_name}"
    by = f" by {envelope.worker_id}" if envelope.worker_id else ""
    if envelope.ok:
        return f"{prefix} processed{by}"
    kind = envelope.error_kind.value if envelope.error_kind else "error"
    return f"{prefix} failed ({kind}){by}"


def _terminate_process(process: BaseProcess) -> None:
    if process.is_alive():
        process.terminate()
        process.join(timeout=_TERMINATE_GRACE_SECONDS)
        if process.is_alive():
            process.kill()
            process.join(timeout=_TERMINATE_GRACE_SECONDS)
    if not process.is_alive():
        process.close()


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
