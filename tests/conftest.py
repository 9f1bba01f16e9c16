# Shared pytest fixtures
from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from sheetload.logging.init import reset_logging


class FakeSession:
    """Records what a strategy does inside one SqlClient.session()."""

    def __init__(self, client: FakeClient) -> None:
        self.client = client
        self.statements: list[tuple[str, Any]] = []
        self.bulk_loads: list[dict[str, Any]] = []
        self.timeout_disabled = False

    def execute(self, sql: str, params=None) -> None:
        if self.client.fail_on and self.client.fail_on in sql:
            from sheetload.db.client import SqlExecutionError

            raise SqlExecutionError(f"simulated failure on: {sql[:40]}")
        self.statements.append((sql, params))

    def unlimited_timeout(self) -> None:
        self.timeout_disabled = True

    def bulk_insert(self, table, columns, rows, batch_size, identity_insert=False, metrics_callback=None):
        rows = [tuple(r) for r in rows]
        self.bulk_loads.append(
            {
                "table": table,
                "columns": list(columns),
                "rows": rows,
                "batch_size": batch_size,
                "identity_insert": identity_insert,
            }
        )
        return len(rows)


class FakeClient:
    """SqlClient stand-in: no database, every call is recorded."""

    settings = None

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.sessions: list[FakeSession] = []
        self.non_queries: list[str] = []
        self.bulk_copies: list[dict[str, Any]] = []

    @contextmanager
    def session(self) -> Iterator[FakeSession]:
        s = FakeSession(self)
        yield s
        # only committed sessions are kept, like a real transaction
        self.sessions.append(s)

    def execute_non_query(self, sql: str) -> None:
        with self.session() as s:
            s.execute(sql)
        self.non_queries.append(sql)

    def bulk_copy(self, table, columns, rows, batch_size, identity_insert=False, metrics_callback=None) -> int:
        if self.fail_on and self.fail_on == table:
            from sheetload.db.client import SqlExecutionError

            raise SqlExecutionError(f"simulated bulk failure for {table}")
        rows = [tuple(r) for r in rows]
        self.bulk_copies.append(
            {
                "table": table,
                "columns": list(columns),
                "rows": rows,
                "batch_size": batch_size,
                "identity_insert": identity_insert,
            }
        )
        return len(rows)

    def rows_for(self, table: str) -> list[tuple]:
        return [r for b in self.bulk_copies if b["table"] == table for r in b["rows"]]


def write_xlsx(path: Path, records: list[dict[str, Any]], sheet_name: str = "Sheet1") -> Path:
    """Create a real workbook whose first row is the header."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(records).to_excel(writer, sheet_name=sheet_name, index=False)
    return path


@pytest.fixture(autouse=True)
def _clean_logging() -> Iterator[None]:
    yield
    reset_logging()


@pytest.fixture()
def temp_root(tmp_path: Path, monkeypatch) -> Path:
    root = tmp_path / "root"
    (root / "databases").mkdir(parents=True)
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SHEETLOAD_ROOT", raising=False)
    return root


@pytest.fixture()
def sample_config() -> dict[str, Any]:
    return {
        "Server": "localhost",
        "Port": 5432,
        "Database": "inventory",
        "Auth": {"IntegratedSecurity": False, "User": "loader", "Password": "secret"},
        "Defaults": {"FilePattern": ["*.xlsx"], "Mode": "bulk", "BatchSize": 100},
        "Tables": [
            {
                "Name": "products",
                "Folder": "products",
                "Columns": [
                    {"Db": "SKU", "Type": "string", "Excel": "Sku"},
                    {"Db": "Price", "Type": "decimal", "Excel": "Price"},
                    {"Db": "Keyword", "Type": "string", "Excel": "Keyword"},
                ],
            }
        ],
    }


@pytest.fixture()
def write_db_config(temp_root: Path):
    """Factory: write config.json for a database folder and return the folder."""

    def _write(name: str, config: dict[str, Any]) -> Path:
        folder = temp_root / "databases" / name
        folder.mkdir(parents=True, exist_ok=True)
        (folder / "config.json").write_text(json.dumps(config, indent=2), encoding="utf-8")
        return folder

    return _write


@pytest.fixture()
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture()
def make_xlsx():
    return write_xlsx
