from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..errors import SheetloadError, error_type_name
from ..models.error_record import ErrorRecord

"""Run-wide error log.

Failures are recorded against the database folder / table / file they
abandoned, classified by exception type, and written once at the end of the
run as JSON Lines to ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC). No file is
created for a clean run.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "UNEXPECTED_ERROR",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"
UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class ErrorLogBuffer:
    """Collects failures for one run. Single-threaded use only."""

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def record_failure(
        self, database: str, exc: BaseException, table: str = "", file: str = ""
    ) -> ErrorRecord:
        """Record ``exc`` as the reason a database folder, table or file was abandoned.

        Own errors are classified by type (``InvalidMode`` -> ``INVALID_MODE``);
        anything else is ``UNEXPECTED_ERROR``.
        """
        if isinstance(exc, SheetloadError):
            error_type = error_type_name(exc)
        else:
            error_type = UNEXPECTED_ERROR
        record = ErrorRecord.create(
            database=database,
            table=table,
            file=file,
            error_type=error_type,
            message=str(exc),
        )
        self._records.append(record)
        return record

    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, or None if nothing was written."""
        if not self._records:
            return None
        fp = self.file_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
