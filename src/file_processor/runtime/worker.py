"""Per-file worker executed in its own process.

A worker owns exactly one task: it runs the handler (optionally through
:class:`RetryPolicy`), sends the result to the coordinator and waits a bounded
time for the acknowledgment. It terminates either way.
"""

from __future__ import annotations

import logging
import os
import signal
import time
from multiprocessing.connection import Connection

from file_processor.models import ErrorKind, ResultEnvelope, Task, WorkerState
from file_processor.runtime.retry import RetryConfig, RetryPolicy, invoke_handler

logger = logging.getLogger(__name__)

RESULT_MESSAGE = "result"
ACK_MESSAGE = "ack"


class FileWorker:
    """Runs one task and performs the result/ack handshake."""

    def __init__(
        self,
        task: Task,
        *,
        retry_config: RetryConfig | None,
        ack_timeout: float,
        worker_id: str | None = None,
    ) -> None:
        self.task = task
        self.retry_config = retry_config
        self.ack_timeout = ack_timeout
        self.worker_id = worker_id or f"worker-{os.getpid()}"
        self.state = WorkerState.SPAWNED
        self.history: list[WorkerState] = [WorkerState.SPAWNED]

    def execute(self) -> ResultEnvelope:
        """Produce the task's envelope; never raises for handler faults."""

        self._transition(WorkerState.EXECUTING)
        try:
            if self.retry_config is None:
                return invoke_handler(self.task, worker_id=self.worker_id)
            return RetryPolicy(self.retry_config).invoke(self.task, worker_id=self.worker_id)
        except Exception as error:  # noqa: BLE001
            logger.exception("Worker %s failed on %s", self.worker_id, self.task.file_path)
            return ResultEnvelope.failure(
                self.task,
                ErrorKind.HANDLER_CRASHED,
                f"Worker fault: {type(error).__name__}: {error}",
                worker_id=self.worker_id,
            )

    def run(self, connection: Connection) -> WorkerState:
        envelope = self.execute()
        try:
            connection.send((RESULT_MESSAGE, self.task.task_id, envelope))
        except OSError as error:
            logger.warning(
                "Worker %s could not deliver result for %s: %s",
                self.worker_id,
                self.task.file_name,
                error,
            )
            self._transition(WorkerState.TERMINATED)
            return self.state

        self._transition(WorkerState.RESULT_SENT)
        if self._wait_for_ack(connection):
            self._transition(WorkerState.ACKNOWLEDGED)
        else:
            logger.warning(
                "Worker %s got no acknowledgment for %s within %ss",
                self.worker_id,
                self.task.file_name,
                self.ack_timeout,
            )
            self._transition(WorkerState.ACK_TIMED_OUT)
        self._transition(WorkerState.TERMINATED)
        return self.state

    def _wait_for_ack(self, connection: Connection) -> bool:
        deadline = time.monotonic() + self.ack_timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            try:
                if not connection.poll(remaining):
                    return False
                message = connection.recv()
            except (EOFError, OSError):
                return False
            if message == (ACK_MESSAGE, self.task.task_id):
                return True
            logger.debug("Worker %s ignored unexpected message %r", self.worker_id, message)

    def _transition(self, state: WorkerState) -> None:
        logger.debug(
            "Worker %s [%s]: %s -> %s",
            self.worker_id,
            self.task.file_name,
            self.state.value,
            state.value,
        )
        self.state = state
        self.history.append(state)


def run_worker_process(
    task: Task,
    connection: Connection,
    retry_config: RetryConfig | None,
    ack_timeout: float,
) -> None:
    """Process entry point used by the coordinator."""

    _reset_signal_handlers()
    worker = FileWorker(task, retry_config=retry_config, ack_timeout=ack_timeout)
    try:
        worker.run(connection)
    finally:
        connection.close()


def _reset_signal_handlers() -> None:
    # Forked workers inherit the parent's handlers; terminate() must stop them
    # and Ctrl+C is left to the coordinator.
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, signal.SIG_DFL)
    if hasattr(signal, "SIGINT"):
        signal.signal(signal.SIGINT, signal.SIG_IGN)
