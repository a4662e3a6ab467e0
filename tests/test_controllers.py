from __future__ import annotations

import os
import signal
import time
from pathlib import Path

import allure
import pytest

from file_processor.controllers import FileProcessorCliController, RunBatchCommand
from file_processor.handlers import HANDLERS, sales_csv
from file_processor.models import ErrorKind, HandlerKind

pytestmark = [
    allure.epic("Command Line"),
    allure.feature("Batch Cancellation"),
]


@pytest.mark.skipif(not hasattr(signal, "SIGINT"), reason="needs POSIX signals")
@pytest.mark.parametrize("mode", ["sequential", "benchmark"])
def test_sigint_cancels_remaining_files(sample_dir: Path, monkeypatch, mode: str) -> None:
    def _interrupting_handler(path: Path):
        os.kill(os.getpid(), signal.SIGINT)
        time.sleep(0.2)
        return sales_csv.handle(path)

    monkeypatch.setitem(HANDLERS, HandlerKind.CSV, _interrupting_handler)
    monkeypatch.setenv("FILE_PROCESSOR_RETRY_DELAY_MS", "0")
    original_handler = signal.getsignal(signal.SIGINT)

    result = FileProcessorCliController().run(
        RunBatchCommand(
            paths=(sample_dir,),
            mode=mode,
            timeout_ms=2_000,
            retries=0,
            write_report=False,
        ),
    )

    assert signal.getsignal(signal.SIGINT) is original_handler
    assert not result.success
    kinds = [envelope.error_kind for envelope in result.envelopes]
    assert kinds.count(ErrorKind.BATCH_CANCELLED) >= 2
    assert result.envelopes[-1].error_kind == ErrorKind.BATCH_CANCELLED
