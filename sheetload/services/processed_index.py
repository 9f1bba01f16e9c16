from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path

import pandas as pd

from ..errors import InvalidMode

"""Processed-file index: which source files were already imported.

One index per database, persisted as a CSV file with the columns

    FullName, Length, LastWriteTimeUtc, Database, TableName,
    FirstProcessedUtc, LastProcessedUtc

The index is loaded when a database starts, mutated in memory while a table's
files are imported and written back (full rewrite, sorted by path) after each
table. Keys are absolute paths compared case-insensitively.

Timestamps are ISO 8601 strings in UTC with microsecond precision. The stored
LastWriteTimeUtc is compared as text, so it must be read back exactly as
written: the CSV is always loaded with every column as str.
"""

__all__ = [
    "CSV_COLUMNS",
    "SKIP_MODES",
    "ProcessedFileIndex",
    "ProcessedFileRecord",
    "file_signature",
    "parse_skip_mode",
]

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "FullName",
    "Length",
    "LastWriteTimeUtc",
    "Database",
    "TableName",
    "FirstProcessedUtc",
    "LastProcessedUtc",
]
SKIP_MODES = ("seen", "unchanged")


def _utc_iso(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


def _now_iso() -> str:
    return _utc_iso(datetime.now(UTC))


def parse_skip_mode(value: str | None) -> str:
    """Normalise a SkipMode setting.

    Raises:
        InvalidMode: the value is not one of SKIP_MODES.
    """
    mode = (value or "").strip().lower()
    if mode not in SKIP_MODES:
        raise InvalidMode(f"unknown skip mode: {value!r} (expected one of {SKIP_MODES})")
    return mode


def file_signature(path: Path) -> tuple[int, str]:
    """Current (size in bytes, UTC last-write timestamp) of a file."""
    st = path.stat()
    return st.st_size, _utc_iso(datetime.fromtimestamp(st.st_mtime, UTC))


def _key(path: Path | str) -> str:
    return str(Path(path).resolve()).casefold()


@dataclass(frozen=True)
class ProcessedFileRecord:
    full_name: str
    length: int
    last_write_time_utc: str
    database: str
    table_name: str
    first_processed_utc: str
    last_processed_utc: str

    def to_row(self) -> dict[str, object]:
        return {
            "FullName": self.full_name,
            "Length": self.length,
            "LastWriteTimeUtc": self.last_write_time_utc,
            "Database": self.database,
            "TableName": self.table_name,
            "FirstProcessedUtc": self.first_processed_utc,
            "LastProcessedUtc": self.last_processed_utc,
        }


class ProcessedFileIndex:
    """In-memory map of path -> ProcessedFileRecord.

    Owned by the orchestrator for one database; single-threaded, no locking.
    """

    def __init__(self, records: dict[str, ProcessedFileRecord] | None = None) -> None:
        self._records: dict[str, ProcessedFileRecord] = dict(records or {})

    @classmethod
    def load(cls, path: Path) -> ProcessedFileIndex:
        """Read a persisted index; any problem yields an empty index."""
        if not path.exists():
            logger.debug("processed-file log not found (first run?): %s", path)
            return cls()
        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8")
            missing = [c for c in CSV_COLUMNS if c not in df.columns]
            if missing:
                raise ValueError(f"missing columns {missing}")
            records: dict[str, ProcessedFileRecord] = {}
            for row in df.to_dict("records"):
                full_name = row["FullName"].strip()
                if not full_name:
                    continue
                records[_key(full_name)] = ProcessedFileRecord(
                    full_name=full_name,
                    length=int(row["Length"]),
                    last_write_time_utc=row["LastWriteTimeUtc"],
                    database=row["Database"],
                    table_name=row["TableName"],
                    first_processed_utc=row["FirstProcessedUtc"],
                    last_processed_utc=row["LastProcessedUtc"],
                )
        except Exception as e:  # corrupted log is not fatal: reprocess everything
            logger.warning("could not read processed-file log %s (%s); starting empty", path, e)
            return cls()
        logger.debug("processed-file log loaded: %s (%d records)", path, len(records))
        return cls(records)

    def get(self, path: Path | str) -> ProcessedFileRecord | None:
        return self._records.get(_key(path))

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return _key(path) in self._records

    def __len__(self) -> int:
        return len(self._records)

    def records(self) -> list[ProcessedFileRecord]:
        return sorted(self._records.values(), key=lambda r: r.full_name.casefold())

    def should_skip(self, path: Path, mode: str) -> bool:
        """Decide whether ``path`` can be skipped.

        ``seen``: skip whenever the path is recorded.
        ``unchanged``: skip only if recorded size and last-write time both equal
        the file's current values.

        Raises:
            InvalidMode: unknown skip mode.
        """
        mode = parse_skip_mode(mode)
        record = self.get(path)
        if record is None:
            return False
        if mode == "seen":
            return True
        length, mtime = file_signature(path)
        return record.length == length and record.last_write_time_utc == mtime

    def upsert(self, path: Path, database: str, table: str) -> ProcessedFileRecord:
        """Record a successful import of ``path`` with its current size / mtime."""
        length, mtime = file_signature(path)
        now = _now_iso()
        key = _key(path)
        existing = self._records.get(key)
        if existing is None:
            record = ProcessedFileRecord(
                full_name=str(Path(path).resolve()),
                length=length,
                last_write_time_utc=mtime,
                database=database,
                table_name=table,
                first_processed_utc=now,
                last_processed_utc=now,
            )
        else:
            record = replace(
                existing,
                length=length,
                last_write_time_utc=mtime,
                database=database,
                table_name=table,
                last_processed_utc=now,
            )
        self._records[key] = record
        return record

    def save(self, path: Path) -> Path:
        """Write every record to ``path`` (full rewrite, sorted by path)."""
        path.parent.mkdir(parents=True, exist_ok=True)
        df = pd.DataFrame([r.to_row() for r in self.records()], columns=CSV_COLUMNS)
        df.to_csv(path, index=False, encoding="utf-8")
        logger.debug("processed-file log saved: %s (%d records)", path, len(self))
        return path
