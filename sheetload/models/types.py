from __future__ import annotations

import builtins
import datetime as _dt
import importlib
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from functools import lru_cache

from ..errors import SheetloadError

"""Logical column types and their Python / storage representations.

A table's column mapping names each column type with a short logical name
(``string``, ``int``, ``decimal`` ...). This module turns that name into a
ResolvedType: the tag used by the cell converter, the Python value type used by
the row container, and the storage type used for staging-table DDL.

A dotted Python path (``uuid.UUID``, ``datetime.date``) is accepted as an
escape hatch for types outside the fixed vocabulary.
"""

__all__ = [
    "LogicalType",
    "ResolvedType",
    "UnknownType",
    "resolve_type",
    "storage_type",
]


class UnknownType(SheetloadError):
    """Raised when a configured type name cannot be resolved."""


class LogicalType(Enum):
    STRING = "string"
    INT32 = "int32"
    INT64 = "int64"
    DECIMAL = "decimal"
    DOUBLE = "double"
    BOOL = "bool"
    DATETIME = "datetime"
    NATIVE = "native"


_ALIASES: dict[str, LogicalType] = {
    "string": LogicalType.STRING,
    "int": LogicalType.INT32,
    "int32": LogicalType.INT32,
    "bigint": LogicalType.INT64,
    "int64": LogicalType.INT64,
    "decimal": LogicalType.DECIMAL,
    "numeric": LogicalType.DECIMAL,
    "money": LogicalType.DECIMAL,
    "float": LogicalType.DOUBLE,
    "double": LogicalType.DOUBLE,
    "bool": LogicalType.BOOL,
    "boolean": LogicalType.BOOL,
    "datetime": LogicalType.DATETIME,
    "date": LogicalType.DATETIME,
}

_VALUE_TYPES: dict[LogicalType, type] = {
    LogicalType.STRING: str,
    LogicalType.INT32: int,
    LogicalType.INT64: int,
    LogicalType.DECIMAL: Decimal,
    LogicalType.DOUBLE: float,
    LogicalType.BOOL: bool,
    LogicalType.DATETIME: _dt.datetime,
}

# PostgreSQL renditions of BIGINT / DECIMAL(38,10) / FLOAT / BIT / DATETIME2(7) / NVARCHAR(MAX)
_STORAGE_TYPES: dict[LogicalType, str] = {
    LogicalType.STRING: "TEXT",
    LogicalType.INT32: "BIGINT",
    LogicalType.INT64: "BIGINT",
    LogicalType.DECIMAL: "DECIMAL(38,10)",
    LogicalType.DOUBLE: "FLOAT",
    LogicalType.BOOL: "BOOLEAN",
    LogicalType.DATETIME: "TIMESTAMP(6)",
}

DEFAULT_STORAGE_TYPE = "TEXT"


@dataclass(frozen=True)
class ResolvedType:
    """Concrete type for one mapped column."""
    tag: LogicalType
    python_type: type
    name: str  # normalized configured name (lower-case, trimmed)

    @property
    def storage(self) -> str:
        return storage_type(self)


def _import_native(name: str) -> type | None:
    if "." not in name:
        candidate = getattr(builtins, name, None)
        return candidate if isinstance(candidate, type) else None
    module_name, _, attr = name.rpartition(".")
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        return None
    candidate = getattr(module, attr, None)
    return candidate if isinstance(candidate, type) else None


@lru_cache(maxsize=256)
def resolve_type(name: str) -> ResolvedType:
    """Resolve a configured logical type name.

    Lookup is case-insensitive and ignores surrounding whitespace. Names outside
    the vocabulary are tried as fully-qualified Python class names.

    Raises:
        UnknownType: if the name is empty or does not resolve to a class.
    """
    if name is None or not str(name).strip():
        raise UnknownType("empty type name")
    raw = str(name).strip()
    key = raw.lower()
    tag = _ALIASES.get(key)
    if tag is not None:
        return ResolvedType(tag=tag, python_type=_VALUE_TYPES[tag], name=key)

    native = _import_native(raw)
    if native is None:
        raise UnknownType(f"unknown column type: {raw!r}")
    return ResolvedType(tag=LogicalType.NATIVE, python_type=native, name=raw)


def storage_type(resolved: ResolvedType) -> str:
    """Column definition type used for the upsert staging table."""
    if resolved.tag is not LogicalType.NATIVE:
        return _STORAGE_TYPES[resolved.tag]
    py = resolved.python_type
    # bool before int: bool is an int subclass
    if issubclass(py, bool):
        return _STORAGE_TYPES[LogicalType.BOOL]
    if issubclass(py, int):
        return _STORAGE_TYPES[LogicalType.INT64]
    if issubclass(py, Decimal):
        return _STORAGE_TYPES[LogicalType.DECIMAL]
    if issubclass(py, float):
        return _STORAGE_TYPES[LogicalType.DOUBLE]
    if issubclass(py, (_dt.datetime, _dt.date)):
        return _STORAGE_TYPES[LogicalType.DATETIME]
    return DEFAULT_STORAGE_TYPE
