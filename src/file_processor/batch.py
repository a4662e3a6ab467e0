"""Public batch entry points used by the CLI and report layer."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from file_processor.config import BatchConfig, default_start_method
from file_processor.models import BenchmarkResult, ErrorKind, ResultEnvelope
from file_processor.runtime import Coordinator, CoordinatorOptions, RetryPolicy, build_tasks

logger = logging.getLogger(__name__)

Emit = Callable[[str], None]


class BatchInputError(RuntimeError):
    """Input folder cannot be enumerated; raised before any dispatch."""


def list_input_files(folder: str | Path) -> list[Path]:
    """Return the regular files of ``folder`` sorted by name."""

    directory = Path(folder)
    if not directory.is_dir():
        raise BatchInputError(f"Folder not found: {directory}")
    try:
        return sorted(path for path in directory.iterdir() if path.is_file())
    except OSError as error:
        raise BatchInputError(f"Cannot read folder {directory}: {error}") from error


def start_unbounded_batch(
    file_paths: Sequence[str | Path],
    *,
    per_result_timeout: float = 15.0,
    ack_timeout: float = 5.0,
    emit: Emit | None = None,
    shutdown_requested: Callable[[], bool] | None = None,
    start_method: str | None = None,
) -> dict[str, ResultEnvelope]:
    """Simple mode: one worker per file, no retry, envelopes keyed by path."""

    coordinator = Coordinator(
        CoordinatorOptions(
            per_result_timeout=per_result_timeout,
            concurrency_limit=None,
            ack_timeout=ack_timeout,
            retry=None,
            timeout_kind=ErrorKind.WORKER_TIMEOUT,
            emit=emit,
            shutdown_requested=shutdown_requested,
            start_method=start_method or default_start_method(),
        ),
    )
    return coordinator.start(file_paths)


def start_configured_batch(
    file_paths: Sequence[str | Path],
    config: BatchConfig | None = None,
    *,
    emit: Emit | None = None,
    shutdown_requested: Callable[[], bool] | None = None,
) -> list[ResultEnvelope]:
    """Configured mode: retries, bounded workers, envelopes in input order."""

    config = config or BatchConfig()
    config.validate()
    coordinator = Coordinator(
        CoordinatorOptions(
            per_result_timeout=config.batch_timeout,
            concurrency_limit=config.max_workers,
            ack_timeout=config.ack_timeout_ms / 1000,
            retry=config.retry_config(),
            timeout_kind=ErrorKind.TIMEOUT,
            emit=emit,
            shutdown_requested=shutdown_requested,
            start_method=config.start_method,
        ),
    )
    return coordinator.run(build_tasks(file_paths))


def run_sequential_batch(
    file_paths: Sequence[str | Path],
    config: BatchConfig | None = None,
    *,
    emit: Emit | None = None,
    shutdown_requested: Callable[[], bool] | None = None,
) -> list[ResultEnvelope]:
    """Process files one after another in this process, with the same retry policy.

    A shutdown request is checked between files; files not started by then
    get ``batch_cancelled`` envelopes.
    """

    config = config or BatchConfig()
    config.validate()
    policy = RetryPolicy(config.retry_config())
    tasks = build_tasks(file_paths)
    results: list[ResultEnvelope] = []
    cancelled = False
    for task in tasks:
        if not cancelled and shutdown_requested is not None and shutdown_requested():
            logger.warning(
                "Sequential batch cancelled: %s file(s) not started",
                len(tasks) - len(results),
            )
            cancelled = True
        if cancelled:
            envelope = ResultEnvelope.failure(
                task,
                ErrorKind.BATCH_CANCELLED,
                "Batch cancelled before the file was dispatched",
                attempts=0,
            )
        else:
            envelope = policy.invoke(task, worker_id="sequential")
        results.append(envelope)
        if emit is not None:
            status = "processed" if envelope.ok else f"failed ({envelope.error_kind.value})"
            emit(f"[{len(results)}/{len(tasks)}] {envelope.file_name} {status}")
    return results


def run_benchmark(
    file_paths: Sequence[str | Path],
    config: BatchConfig | None = None,
    *,
    shutdown_requested: Callable[[], bool] | None = None,
) -> BenchmarkResult:
    """Time sequential against parallel processing of the same files."""

    config = config or BatchConfig()

    started = time.perf_counter()
    sequential = run_sequential_batch(file_paths, config, shutdown_requested=shutdown_requested)
    sequential_ms = int((time.perf_counter() - started) * 1000)

    started = time.perf_counter()
    parallel = start_configured_batch(file_paths, config, shutdown_requested=shutdown_requested)
    parallel_ms = int((time.perf_counter() - started) * 1000)

    improvement = round(sequential_ms / parallel_ms, 2) if parallel_ms > 0 else 0.0
    percent_faster = (
        round((1 - parallel_ms / sequential_ms) * 100, 1) if sequential_ms > 0 else 0.0
    )
    logger.info(
        "Benchmark over %s file(s): sequential=%sms parallel=%sms",
        len(file_paths),
        sequential_ms,
        parallel_ms,
    )
    return BenchmarkResult(
        sequential_ms=sequential_ms,
        parallel_ms=parallel_ms,
        improvement=improvement,
        percent_faster=percent_faster,
        files_count=len(file_paths),
        sequential_results=sequential,
        parallel_results=parallel,
    )
