"""Domain models for the spreadsheet -> PostgreSQL importer.

Configuration documents, typed row containers, logical types, structured error
records and run results.
"""

from .config_models import (
    AuthConfig,
    ColumnMapping,
    DatabaseConfig,
    EffectiveTableSettings,
    TableConfig,
    TableDefaults,
)
from .error_record import ErrorRecord
from .processing_result import DatabaseResult, FileStat, ProcessingResult, TableResult
from .row_container import TypedRowContainer
from .types import LogicalType, ResolvedType, resolve_type

__all__ = [
    # Configuration models
    "AuthConfig",
    "ColumnMapping",
    "DatabaseConfig",
    "EffectiveTableSettings",
    "TableConfig",
    "TableDefaults",
    # Row models
    "LogicalType",
    "ResolvedType",
    "TypedRowContainer",
    "resolve_type",
    # Run models
    "DatabaseResult",
    "ErrorRecord",
    "FileStat",
    "ProcessingResult",
    "TableResult",
]
