from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

"""Config dataclasses for the spreadsheet -> PostgreSQL importer.

One DatabaseConfig is built per managed database folder. Table settings follow a
three-level precedence resolved by TableConfig.effective():

    table override > database Defaults > hardcoded fallback

The loader (sheetload.config.loader) fills these from the validated document;
everything here is immutable for the run.
"""

DEFAULT_FILE_PATTERNS: tuple[str, ...] = ("*.xlsx",)
DEFAULT_MODE = "bulk"
DEFAULT_SKIP_MODE = "unchanged"
DEFAULT_BATCH_SIZE = 5000
DEFAULT_STOP_FIELD = "Keyword"
DEFAULT_PORT = 5432
PROCESSED_LOG_FILENAME = "processed_files.csv"


@dataclass(frozen=True)
class AuthConfig:
    """Authentication settings (Auth section).

    integrated_security=True connects without user/password and lets libpq pick
    peer / GSSAPI / Kerberos authentication.
    """
    integrated_security: bool = False
    user: str | None = None
    password: str | None = None


@dataclass(frozen=True)
class ColumnMapping:
    """One spreadsheet field -> database column mapping (Db / Type / Excel)."""
    db: str
    type: str
    excel: str


@dataclass(frozen=True)
class TableDefaults:
    """Database-wide defaults (Defaults section). None means "not configured"."""
    file_pattern: tuple[str, ...] | None = None
    mode: str | None = None
    recurse: bool | None = None
    skip_processed: bool | None = None
    skip_mode: str | None = None
    truncate_before_import: bool | None = None
    date_format: str | None = None
    identity_insert: bool | None = None
    batch_size: int | None = None
    stop_field: str | None = None


@dataclass(frozen=True)
class EffectiveTableSettings:
    """Fully resolved settings for one table."""
    file_pattern: tuple[str, ...]
    mode: str
    recurse: bool
    skip_processed: bool
    skip_mode: str
    truncate_before_import: bool
    date_format: str | None
    identity_insert: bool
    batch_size: int
    stop_field: str


def _first(*values):
    for v in values:
        if v is not None:
            return v
    return None


@dataclass(frozen=True)
class TableConfig:
    """Configuration for one destination table (Tables[] entry).

    ``overrides`` holds the per-table values of any Defaults key; unset keys fall
    through to the database defaults.
    """
    name: str
    folder: str
    columns: tuple[ColumnMapping, ...]
    sheet_name: str | None = None
    key_columns: tuple[str, ...] = ()
    pre_sql: tuple[str, ...] = ()
    post_sql: tuple[str, ...] = ()
    overrides: TableDefaults = field(default_factory=TableDefaults)

    def effective(self, defaults: TableDefaults) -> EffectiveTableSettings:
        o = self.overrides
        patterns = _first(o.file_pattern, defaults.file_pattern) or DEFAULT_FILE_PATTERNS
        return EffectiveTableSettings(
            file_pattern=tuple(patterns),
            mode=str(_first(o.mode, defaults.mode, DEFAULT_MODE)).strip().lower(),
            recurse=bool(_first(o.recurse, defaults.recurse, False)),
            skip_processed=bool(_first(o.skip_processed, defaults.skip_processed, True)),
            skip_mode=str(_first(o.skip_mode, defaults.skip_mode, DEFAULT_SKIP_MODE)).strip().lower(),
            truncate_before_import=bool(
                _first(o.truncate_before_import, defaults.truncate_before_import, False)
            ),
            date_format=_first(o.date_format, defaults.date_format) or None,
            identity_insert=bool(_first(o.identity_insert, defaults.identity_insert, False)),
            batch_size=int(_first(o.batch_size, defaults.batch_size, DEFAULT_BATCH_SIZE)),
            stop_field=str(_first(o.stop_field, defaults.stop_field, DEFAULT_STOP_FIELD)),
        )


@dataclass(frozen=True)
class DatabaseConfig:
    """Root configuration for one managed database folder."""
    server: str | None
    port: int | None
    database: str
    auth: AuthConfig
    defaults: TableDefaults
    tables: tuple[TableConfig, ...]
    folder: Path  # the database folder the document was read from
    processed_log_path: str | None = None  # Defaults.ProcessedLogPath

    @property
    def processed_log_file(self) -> Path:
        """Where the processed-file index lives for this database."""
        if not self.processed_log_path:
            return self.folder / PROCESSED_LOG_FILENAME
        p = Path(self.processed_log_path)
        return p if p.is_absolute() else self.folder / p

    def table_directory(self, table: TableConfig) -> Path:
        p = Path(table.folder)
        return p if p.is_absolute() else self.folder / p
