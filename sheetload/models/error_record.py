from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record per failure that an operator may need to act on: a skipped database
folder, an abandoned table, an unreadable file. ``table`` and ``file`` are empty
strings when the failure happened above that level.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        database: database folder name
        table: destination table ('' for database-level errors)
        file: source file name ('' for table / database-level errors)
        error_type: error classification in UPPER_SNAKE_CASE
        message: error description
    """
    timestamp: str
    database: str
    table: str
    file: str
    error_type: str
    message: str

    @staticmethod
    def create(
        database: str, table: str, file: str, error_type: str, message: str
    ) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            database=database,
            table=table,
            file=file,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
