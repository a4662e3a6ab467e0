"""Concurrent dispatch-and-collect runtime."""

from file_processor.runtime.coordinator import (
    Coordinator,
    CoordinatorOptions,
    CoordinatorState,
    WorkerHandle,
    build_tasks,
)
from file_processor.runtime.retry import RetryConfig, RetryPolicy, invoke_handler
from file_processor.runtime.worker import FileWorker, run_worker_process

__all__ = [
    "Coordinator",
    "CoordinatorOptions",
    "CoordinatorState",
    "FileWorker",
    "RetryConfig",
    "RetryPolicy",
    "WorkerHandle",
    "build_tasks",
    "invoke_handler",
    "run_worker_process",
]
