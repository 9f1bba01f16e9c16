from __future__ import annotations

import logging

from ..errors import SheetloadError
from ..models.config_models import TableConfig
from ..models.row_container import TypedRowContainer
from ..models.types import resolve_type

"""Table configuration validation and row-container construction."""

__all__ = [
    "InvalidSchema",
    "MappingError",
    "validate_table",
    "build_container",
    "check_key_columns",
]

logger = logging.getLogger(__name__)


class InvalidSchema(SheetloadError):
    """Column configuration of a table is malformed."""


class MappingError(SheetloadError):
    """A mapping cannot be applied to the row container (blank / unknown column, bad keys)."""


def validate_table(table: TableConfig) -> None:
    """Check a table's column mappings.

    Raises:
        InvalidSchema: no mappings, a mapping with blank Db / Type / Excel, or
            a destination column used twice.
    """
    if not table.columns:
        raise InvalidSchema(f"table '{table.name}' has no column mappings")
    seen: set[str] = set()
    for i, col in enumerate(table.columns, start=1):
        label = col.db or col.excel or f"#{i}"
        if not col.db:
            raise InvalidSchema(f"table '{table.name}' column {label}: missing Db")
        if not col.type:
            raise InvalidSchema(f"table '{table.name}' column {label}: missing Type")
        if not col.excel:
            raise InvalidSchema(f"table '{table.name}' column {label}: missing Excel")
        key = col.db.casefold()
        if key in seen:
            raise InvalidSchema(f"table '{table.name}' column {col.db}: duplicate Db column")
        seen.add(key)


def build_container(table: TableConfig) -> TypedRowContainer:
    """Validate ``table`` and build its empty row container.

    Raises:
        InvalidSchema: see validate_table.
        UnknownType: a mapping names a type that cannot be resolved.
    """
    validate_table(table)
    columns = {col.db: resolve_type(col.type) for col in table.columns}
    logger.debug(
        "table=%s container columns=%s",
        table.name,
        {name: t.name for name, t in columns.items()},
    )
    return TypedRowContainer(table_name=table.name, columns=columns)


def check_key_columns(table: TableConfig, container: TypedRowContainer) -> list[str]:
    """Return the table's key columns, verifying each exists in the container.

    Raises:
        MappingError: no key columns configured, or a key is not a mapped column.
    """
    if not table.key_columns:
        raise MappingError(f"table '{table.name}': upsert requires KeyColumns")
    by_fold = {name.casefold(): name for name in container.columns}
    keys: list[str] = []
    for key in table.key_columns:
        actual = by_fold.get(key.casefold())
        if actual is None:
            raise MappingError(f"table '{table.name}': key column '{key}' is not a mapped Db column")
        keys.append(actual)
    return keys
