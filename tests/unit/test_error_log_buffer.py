from __future__ import annotations

import json
from pathlib import Path

from sheetload.errors import InvalidMode, error_type_name
from sheetload.excel.reader import ReadError
from sheetload.logging.error_log import UNEXPECTED_ERROR, ErrorLogBuffer
from sheetload.services.schema import InvalidSchema


def test_flush_nothing_writes_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_flush_writes_json_lines(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.record_failure("inventory", InvalidSchema("missing Db"), table="products")
    buf.record_failure("inventory", ReadError("corrupt"), table="orders", file="o.xlsx")
    path = buf.flush()
    assert path is not None
    assert path.parent == tmp_path / "logs"
    assert path.name.startswith("errors-") and path.suffix == ".log"

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert set(first) == {"timestamp", "database", "table", "file", "error_type", "message"}
    assert first["timestamp"].endswith("Z")
    assert json.loads(lines[1])["file"] == "o.xlsx"
    assert len(buf) == 0


def test_record_failure_classifies_by_level_and_type(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    db_level = buf.record_failure("inventory", InvalidMode("unknown skip mode: 'changed'"))
    table_level = buf.record_failure("inventory", InvalidSchema("no columns"), table="products")
    unexpected = buf.record_failure("inventory", KeyError("SKU"), table="orders")

    assert (db_level.table, db_level.file, db_level.error_type) == ("", "", "INVALID_MODE")
    assert table_level.error_type == "INVALID_SCHEMA"
    assert table_level.message == "no columns"
    assert unexpected.error_type == UNEXPECTED_ERROR
    assert buf.records() == [db_level, table_level, unexpected]


def test_file_path_is_stable_within_a_run(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    assert buf.file_path == buf.file_path


def test_error_type_names():
    assert error_type_name(InvalidSchema("x")) == "INVALID_SCHEMA"
    assert error_type_name(ValueError("x")) == "VALUE_ERROR"
