"""Shared test fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from file_processor.config import BatchConfig

SALES_CSV = (
    "fecha,producto,categoria,precio_unitario,cantidad,descuento\n"
    "2024-01-15,Laptop,Electronics,1000.00,2,10\n"
    "2024-01-16,Mouse,Electronics,25.50,4,0\n"
)

USERS_JSON = """{
  "usuarios": [
    {"id": 1, "nombre": "Ana", "activo": true},
    {"id": 2, "nombre": "Luis", "activo": false},
    {"id": 3, "nombre": "Eva", "activo": true}
  ],
  "sesiones": [
    {"usuario_id": 1, "duracion": 120},
    {"usuario_id": 3, "duracion": 45}
  ]
}
"""

SYSTEM_LOG = (
    "2024-01-15 10:00:00 [INFO] [api] Service started\n"
    "2024-01-15 10:00:05 [ERROR] [db] Connection refused\n"
    "this line is not a log entry\n"
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    """Keep FILE_PROCESSOR_* variables of the developer shell out of tests."""
    for name in list(os.environ):
        if name.startswith("FILE_PROCESSOR_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def sample_dir(tmp_path: Path) -> Path:
    """Directory with one valid file of each supported kind."""
    folder = tmp_path / "input"
    folder.mkdir()
    (folder / "sales.csv").write_text(SALES_CSV, "utf-8")
    (folder / "users.json").write_text(USERS_JSON, "utf-8")
    (folder / "system.log").write_text(SYSTEM_LOG, "utf-8")
    return folder


@pytest.fixture()
def fast_config() -> BatchConfig:
    return BatchConfig(
        timeout_ms=2_000,
        retries=0,
        max_workers=4,
        retry_delay_ms=0,
        ack_timeout_ms=1_000,
    )
