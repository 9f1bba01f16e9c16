from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

"""Processing result models.

Results are collected bottom-up: FileStat per source file, TableResult per
configured table, DatabaseResult per database folder and one ProcessingResult
for the whole run (rendered as the SUMMARY line).
"""


class FileOutcome(Enum):
    LOADED = "loaded"
    SKIPPED = "skipped"  # unchanged / already seen per skip policy
    FAILED = "failed"  # ReadError: file skipped, table continued


class TableStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class FileStat:
    """Per-file processing statistics."""
    file_name: str
    outcome: FileOutcome
    rows: int = 0
    elapsed_seconds: float = 0.0
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0
    stopped_early: bool = False  # stop field went blank before the last row
    error: str | None = None


@dataclass
class TableResult:
    database: str
    table: str
    status: TableStatus = TableStatus.SUCCESS
    mode: str | None = None
    files: list[FileStat] = field(default_factory=list)
    error: str | None = None

    @property
    def rows(self) -> int:
        return sum(f.rows for f in self.files if f.outcome is FileOutcome.LOADED)

    def count(self, outcome: FileOutcome) -> int:
        return sum(1 for f in self.files if f.outcome is outcome)


@dataclass
class DatabaseResult:
    name: str
    tables: list[TableResult] = field(default_factory=list)
    error: str | None = None  # set when the whole folder was skipped

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class ProcessingResult:
    """Aggregated results for one run."""
    databases: list[DatabaseResult]
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float

    @property
    def tables(self) -> list[TableResult]:
        return [t for db in self.databases for t in db.tables]

    @property
    def failed_databases(self) -> int:
        return sum(1 for db in self.databases if db.failed)

    @property
    def success_tables(self) -> int:
        return sum(1 for t in self.tables if t.status is TableStatus.SUCCESS)

    @property
    def failed_tables(self) -> int:
        return sum(1 for t in self.tables if t.status is TableStatus.FAILED)

    def files(self, outcome: FileOutcome) -> int:
        return sum(t.count(outcome) for t in self.tables)

    @property
    def total_rows(self) -> int:
        return sum(t.rows for t in self.tables)

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.total_rows / self.elapsed_seconds


class BatchStatsAccumulator:
    """Collects batch timings for one file's load and summarises them."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def __call__(self, metrics) -> None:
        # usable directly as a batch_insert metrics_callback
        self.add_batch_time(metrics.elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 95th percentile

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
