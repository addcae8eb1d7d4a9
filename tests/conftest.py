# Shared pytest fixtures
from __future__ import annotations

import csv
import tempfile
from collections.abc import Callable
from pathlib import Path

import pytest

from asset_import.db.store import InMemoryStore
from asset_import.logging.error_log import ErrorLogBuffer
from asset_import.models.config_models import ImportConfig
from asset_import.models.raw_row import HEADER_FIELDS, RawRow


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_file: ./data/assets.csv
auto_create_entities: true
matching:
  fuzzy_threshold: 0.8
  max_fuzzy_candidates: 3
workers: 1
logs_directory: ./logs
max_reported_failures: 10
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def write_csv(temp_workdir: Path) -> Callable[..., Path]:
    """Factory: write rows (dicts keyed by header) to data/<name> using the header contract."""
    def _write(rows: list[dict[str, str]], name: str = "assets.csv", headers: list[str] | None = None) -> Path:
        path = temp_workdir / "data" / name
        fieldnames = headers or list(HEADER_FIELDS.keys())
        with path.open("w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
            writer.writeheader()
            for row in rows:
                writer.writerow(row)
        return path
    return _write


@pytest.fixture()
def empty_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def seeded_store() -> InMemoryStore:
    return InMemoryStore(
        seed={
            "category": [{"id": 1, "name": "Appliances"}, {"id": 2, "name": "Electronics"}],
            "location": [{"id": 10, "name": "Kitchen"}, {"id": 11, "name": "Garage"}],
            "vendor": [{"id": 20, "name": "Acme Co"}, {"id": 21, "name": "Best Buy"}],
            "asset": [
                {"id": 100, "name": "Old Fridge", "serialNumber": "SN-EXIST", "categoryId": 1},
            ],
        }
    )


@pytest.fixture()
def error_log(tmp_path: Path) -> ErrorLogBuffer:
    return ErrorLogBuffer(tmp_path / "logs")


@pytest.fixture()
def config() -> ImportConfig:
    return ImportConfig()


def make_row(row_number: int = 1, **fields: str | None) -> RawRow:
    """RawRow from header-contract keys (name=..., serialNumber=...)."""
    return RawRow.parse(fields, row_number=row_number)


@pytest.fixture()
def row_factory() -> Callable[..., RawRow]:
    return make_row
