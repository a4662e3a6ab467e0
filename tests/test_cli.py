from __future__ import annotations

from pathlib import Path

import allure
from click.testing import CliRunner

from file_processor import __version__
from file_processor.main import file_processor, run

pytestmark = [
    allure.epic("Command Line"),
    allure.feature("Batch Commands"),
]

_FAST = ["--timeout-ms", "2000", "--retries", "0"]


def test_run_directory_writes_report(sample_dir: Path, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("FILE_PROCESSOR_RETRY_DELAY_MS", "0")
    output_dir = tmp_path / "reports"
    runner = CliRunner()

    result = runner.invoke(
        file_processor,
        ["run", str(sample_dir), *_FAST, "--output", str(output_dir)],
    )

    assert result.exit_code == 0, result.output
    assert f"Processing 3 file(s) from {sample_dir}" in result.output
    assert "ok sales.csv: processed in 1 attempt(s)" in result.output
    assert "Files: 3 succeeded=3 failed=0 success_rate=100.0%" in result.output
    reports = list(output_dir.glob("report_parallel_*.txt"))
    assert len(reports) == 1
    content = reports[0].read_text("utf-8")
    assert "FILE PROCESSING REPORT" in content
    assert "Success rate: 100.0%" in content
    assert f"Report saved to: {reports[0]}" in result.output


def test_run_quiet_sequential_without_report(sample_dir: Path, tmp_path: Path) -> None:
    output_dir = tmp_path / "reports"
    runner = CliRunner()

    result = runner.invoke(
        file_processor,
        [
            "run",
            str(sample_dir / "sales.csv"),
            str(sample_dir / "broken.json"),
            "--mode",
            "sequential",
            *_FAST,
            "--no-report",
            "--quiet",
            "--output",
            str(output_dir),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "[1/2]" not in result.output
    assert "x broken.json: ERROR (retry_exhausted)" in result.output
    assert "Files: 2 succeeded=1 failed=1" in result.output
    assert not output_dir.exists()


def test_run_strict_fails_when_any_file_fails(sample_dir: Path, tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        file_processor,
        [
            "run",
            str(sample_dir / "missing.log"),
            "--mode",
            "unbounded",
            "--no-report",
            "--strict",
        ],
    )

    assert result.exit_code == 1
    assert "x missing.log: ERROR (file_not_found)" in result.output
    assert "Some files failed to process." in result.output


def test_run_benchmark_prints_timings(sample_dir: Path, monkeypatch) -> None:
    monkeypatch.setenv("FILE_PROCESSOR_RETRY_DELAY_MS", "0")
    runner = CliRunner()

    result = runner.invoke(
        file_processor,
        ["run", str(sample_dir), "--mode", "benchmark", *_FAST, "--no-report", "-q"],
    )

    assert result.exit_code == 0, result.output
    assert "Benchmark:" in result.output
    assert "Sequential:" in result.output
    assert "Speedup:" in result.output


def test_run_rejects_invalid_env_configuration(sample_dir: Path, monkeypatch) -> None:
    monkeypatch.setenv("FILE_PROCESSOR_ACK_TIMEOUT_MS", "0")
    runner = CliRunner()

    result = runner.invoke(file_processor, ["run", str(sample_dir), "--no-report"])

    assert result.exit_code == 1
    assert "FILE_PROCESSOR_ACK_TIMEOUT_MS must be > 0." in result.output


def test_inspect_shows_metrics_and_line_errors(sample_dir: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(file_processor, ["inspect", str(sample_dir / "system.log"), "-r", "0"])

    assert result.exit_code == 0, result.output
    assert "Status: success" in result.output
    assert "  Total lines: 3" in result.output
    assert "Line errors: 1" in result.output
    assert "  line 3: line does not match log format" in result.output


def test_inspect_reports_failure(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(file_processor, ["inspect", str(tmp_path / "nope.csv"), "-r", "0"])

    assert result.exit_code == 1
    assert "Error: [retry_exhausted]" in result.output
    assert "File not found" in result.output


def test_version_option() -> None:
    result = CliRunner().invoke(file_processor, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_unbounded_mode_merges_repeated_paths(sample_dir: Path) -> None:
    sales = str(sample_dir / "sales.csv")
    runner = CliRunner()

    result = runner.invoke(
        file_processor,
        ["run", sales, sales, "--mode", "unbounded", "--no-report", "-q"],
    )

    assert result.exit_code == 0, result.output
    assert result.output.count("ok sales.csv:") == 1
    assert "Files: 1 succeeded=1 failed=0" in result.output
    mode_option = next(param for param in run.params if param.name == "mode")
    assert "repeated inputs are merged" in (mode_option.help or "")
