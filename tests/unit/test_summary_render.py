from __future__ import annotations

from datetime import UTC, datetime

from sheetload.models.processing_result import (
    DatabaseResult,
    FileOutcome,
    FileStat,
    ProcessingResult,
    TableResult,
    TableStatus,
)
from sheetload.services.summary import _format_number, render_summary_line


def _result() -> ProcessingResult:
    ok = TableResult(
        database="inventory",
        table="products",
        files=[
            FileStat("a.xlsx", FileOutcome.LOADED, rows=120),
            FileStat("b.xlsx", FileOutcome.SKIPPED),
            FileStat("c.xlsx", FileOutcome.FAILED, error="corrupt"),
        ],
    )
    bad = TableResult(database="inventory", table="orders", status=TableStatus.FAILED, error="missing Db")
    t = datetime(2024, 1, 1, tzinfo=UTC)
    return ProcessingResult(
        databases=[DatabaseResult("inventory", [ok, bad]), DatabaseResult("broken", error="no config")],
        start_time=t,
        end_time=t,
        elapsed_seconds=2.0,
    )


def test_render_summary_line():
    assert render_summary_line(_result()) == (
        "SUMMARY databases=2 failed_databases=1 tables=1/2 failed_tables=1 "
        "files_loaded=1 files_skipped=1 files_failed=1 rows=120 "
        "elapsed_sec=2 throughput_rps=60"
    )


def test_format_number():
    assert _format_number(0) == "0"
    assert _format_number(3.0) == "3"
    assert _format_number(1.23456) == "1.235"
    assert _format_number(0.0012) == "0.0012"
