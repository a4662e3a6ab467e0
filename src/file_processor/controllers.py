"""Controllers for file-processor CLI commands."""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path

from file_processor.aggregator import summarize
from file_processor.batch import (
    list_input_files,
    run_benchmark,
    run_sequential_batch,
    start_configured_batch,
    start_unbounded_batch,
)
from file_processor.config import Settings
from file_processor.models import BenchmarkResult, ResultEnvelope
from file_processor.report import (
    ReportContext,
    render_file_line,
    render_line_errors,
    render_metrics,
    render_report,
    write_report,
)
from file_processor.runtime import RetryPolicy, build_tasks

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunBatchCommand:
    """CLI input for a batch run."""

    paths: tuple[Path, ...]
    mode: str | None = None
    timeout_ms: int | None = None
    retries: int | None = None
    max_workers: int | None = None
    output_dir: Path | None = None
    write_report: bool | None = None
    emit: Callable[[str], None] | None = None


@dataclass(slots=True)
class InspectFileCommand:
    """CLI input for single-file inspection."""

    path: Path
    timeout_ms: int | None = None
    retries: int | None = None


@dataclass(slots=True)
class CommandResult:
    """Lines to render plus overall outcome."""

    lines: list[str]
    success: bool
    envelopes: list[ResultEnvelope]
    report_path: Path | None = None


class FileProcessorCliController:
    """Resolves settings, runs batches and renders their outcome."""

    def run(self, command: RunBatchCommand) -> CommandResult:
        settings = _settings_for(command)
        settings.validate()
        files, source = _resolve_inputs(command.paths)
        batch = settings.batch
        emit = command.emit
        if emit is not None:
            emit(
                f"Processing {len(files)} file(s) from {source} "
                f"[mode={settings.mode} timeout={batch.timeout_ms}ms retries={batch.retries} "
                f"max_workers={batch.max_workers}]",
            )

        benchmark: BenchmarkResult | None = None
        stop_requested = threading.Event()
        started = time.perf_counter()
        with _stop_on_signals(stop_requested):
            if settings.mode == "unbounded":
                by_path = start_unbounded_batch(
                    files,
                    per_result_timeout=batch.result_timeout_ms / 1000,
                    ack_timeout=batch.ack_timeout_ms / 1000,
                    emit=emit,
                    shutdown_requested=stop_requested.is_set,
                    start_method=batch.start_method,
                )
                envelopes = [by_path[path] for path in dict.fromkeys(str(file) for file in files)]
            elif settings.mode == "sequential":
                envelopes = run_sequential_batch(
                    files,
                    batch,
                    emit=emit,
                    shutdown_requested=stop_requested.is_set,
                )
            elif settings.mode == "benchmark":
                benchmark = run_benchmark(files, batch, shutdown_requested=stop_requested.is_set)
                envelopes = benchmark.parallel_results
            else:
                envelopes = start_configured_batch(
                    files,
                    batch,
                    emit=emit,
                    shutdown_requested=stop_requested.is_set,
                )
        total_time_ms = int((time.perf_counter() - started) * 1000)

        summary = summarize(envelopes)
        lines = [render_file_line(envelope) for envelope in envelopes]
        lines.append(
            f"Files: {summary.total} succeeded={summary.succeeded} failed={summary.failed} "
            f"success_rate={summary.success_rate}% time={total_time_ms}ms",
        )
        if benchmark is not None:
            lines.extend(_benchmark_lines(benchmark))

        report_path: Path | None = None
        if settings.report.write_report:
            report_lines = render_report(
                envelopes=envelopes,
                summary=summary,
                context=ReportContext(
                    mode=settings.mode,
                    source=source,
                    total_time_ms=total_time_ms,
                    timeout_ms=batch.timeout_ms,
                    retries=batch.retries,
                    max_workers=None if settings.mode == "unbounded" else batch.max_workers,
                ),
            )
            report_path = write_report(
                report_lines,
                output_dir=settings.report.output_dir,
                mode=settings.mode,
            )
            lines.append(f"Report saved to: {report_path}")

        return CommandResult(
            lines=lines,
            success=summary.failed == 0,
            envelopes=envelopes,
            report_path=report_path,
        )

    def inspect(self, command: InspectFileCommand) -> CommandResult:
        """Process one file with retries and show metrics and line errors."""

        settings = Settings.from_env()
        batch = replace(
            settings.batch,
            timeout_ms=command.timeout_ms or settings.batch.timeout_ms,
            retries=settings.batch.retries if command.retries is None else command.retries,
        )
        batch.validate()
        (task,) = build_tasks([command.path])
        envelope = RetryPolicy(batch.retry_config()).invoke(task, worker_id="inspect")

        lines = [f"File: {envelope.file_path}", f"Status: {envelope.status.value}"]
        lines.append(f"Attempts: {envelope.attempts}")
        if envelope.ok and envelope.metrics is not None:
            lines.extend(render_metrics(envelope.handler_kind, envelope.metrics))
            if envelope.line_errors:
                lines.append(f"Line errors: {len(envelope.line_errors)}")
                lines.extend(render_line_errors(envelope))
        else:
            lines.append(f"Error: [{envelope.error_kind.value}] {envelope.message}")
        return CommandResult(lines=lines, success=envelope.ok, envelopes=[envelope])


def _settings_for(command: RunBatchCommand) -> Settings:
    settings = Settings.from_env()
    batch = replace(
        settings.batch,
        timeout_ms=command.timeout_ms or settings.batch.timeout_ms,
        retries=settings.batch.retries if command.retries is None else command.retries,
        max_workers=command.max_workers or settings.batch.max_workers,
    )
    report = replace(
        settings.report,
        output_dir=command.output_dir or settings.report.output_dir,
        write_report=(
            settings.report.write_report if command.write_report is None else command.write_report
        ),
    )
    return replace(
        settings,
        mode=(command.mode or settings.mode).lower(),
        batch=batch,
        report=report,
    )


def _resolve_inputs(paths: tuple[Path, ...]) -> tuple[list[Path], str]:
    """Expand directories into their files; other paths are taken as files."""

    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(list_input_files(path))
        else:
            files.append(path)
    if len(paths) == 1:
        return files, str(paths[0])
    return files, f"{len(paths)} input path(s)"


def _benchmark_lines(result: BenchmarkResult) -> list[str]:
    return [
        "Benchmark:",
        f"  Sequential: {result.sequential_ms} ms",
        f"  Parallel:   {result.parallel_ms} ms",
        f"  Speedup:    {result.improvement}x ({result.percent_faster}% faster)",
    ]


@contextmanager
def _stop_on_signals(stop_requested: threading.Event) -> Iterator[None]:
    if not hasattr(signal, "SIGINT"):
        yield
        return

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _handler(signum: int, _: object | None) -> None:
        logger.warning("Received %s, cancelling batch", signal.Signals(signum).name)
        stop_requested.set()

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except ValueError:
        # Signal handlers can only be installed in main thread.
        yield
        return
    try:
        yield
    finally:
        try:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)
        except ValueError:
            pass
