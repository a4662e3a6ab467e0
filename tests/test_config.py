from __future__ import annotations

from pathlib import Path

import allure
import pytest

from file_processor.config import BatchConfig, Settings, default_max_workers

pytestmark = [
    allure.epic("Batch Runtime"),
    allure.feature("Configuration"),
]


def test_from_env_defaults() -> None:
    settings = Settings.from_env()

    assert settings.mode == "parallel"
    assert settings.log_level == "WARNING"
    assert settings.batch.timeout_ms == 5_000
    assert settings.batch.retries == 3
    assert settings.batch.max_workers == default_max_workers()
    assert settings.report.output_dir == Path("output")
    assert settings.report.write_report is True
    settings.validate()


def test_from_env_reads_overrides(monkeypatch) -> None:
    monkeypatch.setenv("FILE_PROCESSOR_MODE", "Sequential")
    monkeypatch.setenv("FILE_PROCESSOR_TIMEOUT_MS", "250")
    monkeypatch.setenv("FILE_PROCESSOR_RETRIES", "0")
    monkeypatch.setenv("FILE_PROCESSOR_MAX_WORKERS", "3")
    monkeypatch.setenv("FILE_PROCESSOR_RETRY_DELAY_MS", "10")
    monkeypatch.setenv("FILE_PROCESSOR_OUTPUT_DIR", "/tmp/reports")
    monkeypatch.setenv("FILE_PROCESSOR_WRITE_REPORT", "no")

    settings = Settings.from_env()

    assert settings.mode == "sequential"
    assert settings.batch.timeout_ms == 250
    assert settings.batch.retries == 0
    assert settings.batch.max_workers == 3
    assert settings.batch.retry_delay_ms == 10
    assert settings.report.output_dir == Path("/tmp/reports")
    assert settings.report.write_report is False


def test_from_env_rejects_non_integer(monkeypatch) -> None:
    monkeypatch.setenv("FILE_PROCESSOR_RETRIES", "many")

    with pytest.raises(ValueError, match="Invalid integer value for FILE_PROCESSOR_RETRIES"):
        Settings.from_env()


def test_from_env_rejects_invalid_boolean(monkeypatch) -> None:
    monkeypatch.setenv("FILE_PROCESSOR_WRITE_REPORT", "maybe")

    with pytest.raises(ValueError, match="Invalid boolean value"):
        Settings.from_env()


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"timeout_ms": 0}, "FILE_PROCESSOR_TIMEOUT_MS must be > 0"),
        ({"retries": -1}, "FILE_PROCESSOR_RETRIES must be >= 0"),
        ({"max_workers": 0}, "FILE_PROCESSOR_MAX_WORKERS must be > 0"),
        ({"retry_delay_ms": -5}, "FILE_PROCESSOR_RETRY_DELAY_MS must be >= 0"),
        ({"start_method": "teleport"}, "Unsupported FILE_PROCESSOR_START_METHOD"),
    ],
)
def test_batch_config_validate_rejects_out_of_range(overrides: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        BatchConfig(**overrides).validate()


def test_settings_validate_rejects_unknown_mode() -> None:
    with pytest.raises(ValueError, match="Unsupported FILE_PROCESSOR_MODE"):
        Settings(mode="turbo").validate()


def test_batch_config_derives_retry_settings() -> None:
    config = BatchConfig(timeout_ms=1500, retries=2, retry_delay_ms=250)

    retry = config.retry_config()

    assert retry.retries == 2
    assert retry.per_attempt_timeout == pytest.approx(1.5)
    assert retry.retry_delay == pytest.approx(0.25)
    assert config.batch_timeout == pytest.approx(5.0)


def test_batch_timeout_leaves_room_for_retry_delays() -> None:
    config = BatchConfig(timeout_ms=200, retries=3, retry_delay_ms=1_000)

    assert config.batch_timeout == pytest.approx(0.2 * 4 + 1.0 * 3)
    assert BatchConfig(timeout_ms=200, retries=0, retry_delay_ms=1_000).batch_timeout == (
        pytest.approx(0.2)
    )
