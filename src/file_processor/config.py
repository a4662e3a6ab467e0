"""Runtime configuration for batch file processing."""

from __future__ import annotations

import multiprocessing
import os
from dataclasses import dataclass, field
from pathlib import Path

from file_processor.runtime.retry import RetryConfig

SUPPORTED_MODES: tuple[str, ...] = ("parallel", "unbounded", "sequential", "benchmark")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def default_max_workers() -> int:
    return (os.cpu_count() or 1) * 2


def default_start_method() -> str | None:
    """Prefer ``fork`` where the platform offers it, else the platform default."""

    if "fork" in multiprocessing.get_all_start_methods():
        return "fork"
    return None


@dataclass(slots=True)
class BatchConfig:
    """Configured-mode settings: per-attempt timeout, retries and worker bound."""

    timeout_ms: int = 5_000
    retries: int = 3
    max_workers: int = field(default_factory=default_max_workers)
    retry_delay_ms: int = 1_000
    ack_timeout_ms: int = 5_000
    result_timeout_ms: int = 15_000
    start_method: str | None = field(default_factory=default_start_method)

    @property
    def per_attempt_timeout(self) -> float:
        return self.timeout_ms / 1000

    @property
    def batch_timeout(self) -> float:
        """Hard per-file budget covering every attempt and retry delay."""

        attempts = self.per_attempt_timeout * (self.retries + 1)
        return attempts + self.retry_delay_ms / 1000 * self.retries

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            retries=self.retries,
            per_attempt_timeout=self.per_attempt_timeout,
            retry_delay=self.retry_delay_ms / 1000,
        )

    def validate(self) -> None:
        """Raise configuration error for out-of-range values."""

        if self.timeout_ms <= 0:
            raise ValueError("FILE_PROCESSOR_TIMEOUT_MS must be > 0.")
        if self.retries < 0:
            raise ValueError("FILE_PROCESSOR_RETRIES must be >= 0.")
        if self.max_workers <= 0:
            raise ValueError("FILE_PROCESSOR_MAX_WORKERS must be > 0.")
        if self.retry_delay_ms < 0:
            raise ValueError("FILE_PROCESSOR_RETRY_DELAY_MS must be >= 0.")
        if self.ack_timeout_ms <= 0:
            raise ValueError("FILE_PROCESSOR_ACK_TIMEOUT_MS must be > 0.")
        if self.result_timeout_ms <= 0:
            raise ValueError("FILE_PROCESSOR_RESULT_TIMEOUT_MS must be > 0.")
        if (
            self.start_method is not None
            and self.start_method not in multiprocessing.get_all_start_methods()
        ):
            raise ValueError(
                f"Unsupported FILE_PROCESSOR_START_METHOD: {self.start_method!r}. "
                f"Available: {', '.join(multiprocessing.get_all_start_methods())}",
            )


@dataclass(slots=True)
class ReportSettings:
    """Report output settings."""

    output_dir: Path = Path("output")
    write_report: bool = True


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    mode: str = "parallel"
    log_level: str = "WARNING"
    batch: BatchConfig = field(default_factory=BatchConfig)
    report: ReportSettings = field(default_factory=ReportSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults for local runs."""

        start_method = os.getenv("FILE_PROCESSOR_START_METHOD", "").strip()
        return cls(
            mode=os.getenv("FILE_PROCESSOR_MODE", "parallel").strip().lower(),
            log_level=os.getenv("FILE_PROCESSOR_LOG_LEVEL", "WARNING").strip().upper(),
            batch=BatchConfig(
                timeout_ms=_env_int("FILE_PROCESSOR_TIMEOUT_MS", 5_000),
                retries=_env_int("FILE_PROCESSOR_RETRIES", 3),
                max_workers=_env_int("FILE_PROCESSOR_MAX_WORKERS", default_max_workers()),
                retry_delay_ms=_env_int("FILE_PROCESSOR_RETRY_DELAY_MS", 1_000),
                ack_timeout_ms=_env_int("FILE_PROCESSOR_ACK_TIMEOUT_MS", 5_000),
                result_timeout_ms=_env_int("FILE_PROCESSOR_RESULT_TIMEOUT_MS", 15_000),
                start_method=start_method or default_start_method(),
            ),
            report=ReportSettings(
                output_dir=Path(os.getenv("FILE_PROCESSOR_OUTPUT_DIR", "output")),
                write_report=_env_bool("FILE_PROCESSOR_WRITE_REPORT", default=True),
            ),
        )

    def validate(self) -> None:
        if self.mode not in SUPPORTED_MODES:
            raise ValueError(
                f"Unsupported FILE_PROCESSOR_MODE: {self.mode!r}. "
                f"Expected one of: {', '.join(SUPPORTED_MODES)}",
            )
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"Invalid FILE_PROCESSOR_LOG_LEVEL: {self.log_level!r}")
        self.batch.validate()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {raw!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
