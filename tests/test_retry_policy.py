from __future__ import annotations

import threading
import time
from pathlib import Path

import allure
import pytest

from file_processor.handlers import HANDLERS, HandlerError
from file_processor.models import EnvelopeStatus, ErrorKind, HandlerKind
from file_processor.runtime import RetryConfig, RetryPolicy, build_tasks, invoke_handler

pytestmark = [
    allure.epic("Batch Runtime"),
    allure.feature("Retry Policy"),
]


def _csv_task(tmp_path: Path):
    path = tmp_path / "sales.csv"
    path.write_text("fecha,producto,categoria,precio_unitario,cantidad,descuento\n", "utf-8")
    (task,) = build_tasks([path])
    return task


def test_always_failing_handler_exhausts_retries(tmp_path: Path, monkeypatch) -> None:
    calls: list[Path] = []

    def _broken(path: Path):
        calls.append(path)
        raise HandlerError(ErrorKind.PARSE_ERROR, "bad bytes")

    monkeypatch.setitem(HANDLERS, HandlerKind.CSV, _broken)
    sleeps: list[float] = []
    policy = RetryPolicy(
        RetryConfig(retries=2, per_attempt_timeout=1.0, retry_delay=0.5),
        sleep=sleeps.append,
    )

    envelope = policy.invoke(_csv_task(tmp_path), worker_id="w-1")

    assert envelope.status == EnvelopeStatus.ERROR
    assert envelope.error_kind == ErrorKind.RETRY_EXHAUSTED
    assert envelope.cause_kind == ErrorKind.PARSE_ERROR
    assert envelope.attempts == 3
    assert len(calls) == 3
    assert sleeps == [0.5, 0.5]
    assert "bad bytes" in (envelope.message or "")
    assert envelope.worker_id == "w-1"


def test_unexpected_exception_is_retried_as_handler_crash(tmp_path: Path, monkeypatch) -> None:
    def _crash(_: Path):
        raise ZeroDivisionError("division by zero")

    monkeypatch.setitem(HANDLERS, HandlerKind.CSV, _crash)
    policy = RetryPolicy(RetryConfig(retries=1, retry_delay=0), sleep=lambda _: None)

    envelope = policy.invoke(_csv_task(tmp_path))

    assert envelope.error_kind == ErrorKind.RETRY_EXHAUSTED
    assert envelope.cause_kind == ErrorKind.HANDLER_CRASHED
    assert envelope.attempts == 2
    assert "ZeroDivisionError" in (envelope.message or "")


def test_success_on_later_attempt_reports_attempt_count(tmp_path: Path, monkeypatch) -> None:
    lock = threading.Lock()
    calls = {"count": 0}

    def _flaky(_: Path):
        with lock:
            calls["count"] += 1
            attempt = calls["count"]
        if attempt < 3:
            raise HandlerError(ErrorKind.MALFORMED_INPUT, "not yet")
        return {"valid_records": 7, "errors": []}

    monkeypatch.setitem(HANDLERS, HandlerKind.CSV, _flaky)
    policy = RetryPolicy(RetryConfig(retries=3, retry_delay=0), sleep=lambda _: None)

    envelope = policy.invoke(_csv_task(tmp_path))

    assert envelope.ok
    assert envelope.attempts == 3
    assert envelope.metrics == {"valid_records": 7, "errors": []}
    assert envelope.error_kind is None


def test_attempts_that_all_time_out_end_as_timeout(tmp_path: Path, monkeypatch) -> None:
    release = threading.Event()

    def _slow(_: Path):
        release.wait(5)
        return {}

    monkeypatch.setitem(HANDLERS, HandlerKind.CSV, _slow)
    policy = RetryPolicy(
        RetryConfig(retries=1, per_attempt_timeout=0.05, retry_delay=0),
        sleep=lambda _: None,
    )

    started = time.monotonic()
    try:
        envelope = policy.invoke(_csv_task(tmp_path))
    finally:
        release.set()

    assert time.monotonic() - started < 2
    assert envelope.error_kind == ErrorKind.TIMEOUT
    assert envelope.cause_kind == ErrorKind.ATTEMPT_TIMEOUT
    assert envelope.attempts == 2


def test_zero_retries_means_single_attempt(tmp_path: Path, monkeypatch) -> None:
    calls: list[Path] = []

    def _broken(path: Path):
        calls.append(path)
        raise HandlerError(ErrorKind.MALFORMED_INPUT, "broken")

    monkeypatch.setitem(HANDLERS, HandlerKind.CSV, _broken)
    policy = RetryPolicy(RetryConfig(retries=0, retry_delay=1.0), sleep=pytest.fail)

    envelope = policy.invoke(_csv_task(tmp_path))

    assert len(calls) == 1
    assert envelope.attempts == 1
    assert envelope.error_kind == ErrorKind.RETRY_EXHAUSTED


def test_invoke_handler_keeps_handler_error_kind(tmp_path: Path) -> None:
    (task,) = build_tasks([tmp_path / "missing.json"])

    envelope = invoke_handler(task, worker_id="solo")

    assert envelope.error_kind == ErrorKind.FILE_NOT_FOUND
    assert envelope.attempts == 1
    assert envelope.cause_kind is None


def test_retry_config_counts_retries_as_additional_attempts() -> None:
    assert RetryConfig(retries=3).max_attempts == 4
    assert RetryConfig(retries=0).max_attempts == 1
