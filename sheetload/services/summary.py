from __future__ import annotations

from ..models.processing_result import FileOutcome, ProcessingResult

"""SUMMARY line rendering."""


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        # avoid scientific notation for tiny values
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ProcessingResult) -> str:
    """Render the run summary.

    Format::

        SUMMARY databases={n} failed_databases={n} tables={ok}/{total} failed_tables={n}
        files_loaded={n} files_skipped={n} files_failed={n} rows={n}
        elapsed_sec={s} throughput_rps={r}

    (single line)

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> render_summary_line(ProcessingResult([], t, t, 0.0))  # doctest: +ELLIPSIS
        'SUMMARY databases=0 failed_databases=0 tables=0/0 failed_tables=0 files_loaded=0 ...'
    """
    total_tables = len(result.tables)
    return (
        f"SUMMARY databases={len(result.databases)} "
        f"failed_databases={result.failed_databases} "
        f"tables={result.success_tables}/{total_tables} "
        f"failed_tables={result.failed_tables} "
        f"files_loaded={result.files(FileOutcome.LOADED)} "
        f"files_skipped={result.files(FileOutcome.SKIPPED)} "
        f"files_failed={result.files(FileOutcome.FAILED)} "
        f"rows={result.total_rows} "
        f"elapsed_sec={_format_number(result.elapsed_seconds)} "
        f"throughput_rps={_format_number(result.throughput_rows_per_sec)}"
    )
