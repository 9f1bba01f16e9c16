"""
SQL statement synthesis for PostgreSQL.

Identifiers are always double-quoted with embedded quotes doubled. Table names
may be schema-qualified with a dot (``sales.orders`` -> ``"sales"."orders"``).
Values never appear in the generated text; they travel as psycopg2 parameters.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping, Sequence

__all__ = [
    "quote_identifier",
    "quote_table",
    "build_insert",
    "build_values_insert",
    "build_truncate",
    "build_create_staging",
    "build_merge",
    "staging_table_name",
]

OVERRIDING_SYSTEM_VALUE = "OVERRIDING SYSTEM VALUE"


def quote_identifier(name: str) -> str:
    """
    Quote a column / table identifier.

    Examples:
        >>> quote_identifier("SKU")
        '"SKU"'
        >>> quote_identifier('odd"name')
        '"odd""name"'
    """
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def quote_table(name: str) -> str:
    """
    Quote a possibly schema-qualified table name.

    Examples:
        >>> quote_table("orders")
        '"orders"'
        >>> quote_table("sales.orders")
        '"sales"."orders"'
    """
    if '"' in name:
        # already quoted by the configuration author
        return name
    return ".".join(quote_identifier(part.strip()) for part in name.split("."))


def _column_list(columns: Sequence[str]) -> str:
    return ", ".join(quote_identifier(c) for c in columns)


def build_insert(table: str, columns: Sequence[str], identity_insert: bool = False) -> str:
    """Single-row parameterised INSERT."""
    overriding = f" {OVERRIDING_SYSTEM_VALUE}" if identity_insert else ""
    placeholders = ", ".join(["%s"] * len(columns))
    return (
        f"INSERT INTO {quote_table(table)} ({_column_list(columns)}){overriding} "
        f"VALUES ({placeholders})"
    )


def build_values_insert(table: str, columns: Sequence[str], identity_insert: bool = False) -> str:
    """Multi-row INSERT for psycopg2.extras.execute_values (single ``VALUES %s``)."""
    overriding = f" {OVERRIDING_SYSTEM_VALUE}" if identity_insert else ""
    return f"INSERT INTO {quote_table(table)} ({_column_list(columns)}){overriding} VALUES %s"


def build_truncate(table: str) -> str:
    return f"TRUNCATE TABLE {quote_table(table)}"


def staging_table_name(table: str) -> str:
    """Unique session-local staging table name for ``table``."""
    base = re.sub(r"\W+", "_", table.split(".")[-1]).strip("_").lower() or "table"
    return f"stg_{base[:40]}_{uuid.uuid4().hex[:8]}"


def build_create_staging(stage: str, columns: Mapping[str, str]) -> str:
    """
    CREATE TEMP TABLE for the upsert path.

    Args:
        stage: staging table name (unqualified; temp tables live in pg_temp)
        columns: column name -> storage type, in container order
    """
    defs = ", ".join(f"{quote_identifier(name)} {storage}" for name, storage in columns.items())
    return f"CREATE TEMP TABLE {quote_identifier(stage)} ({defs}) ON COMMIT DROP"


def build_merge(
    target: str,
    stage: str,
    columns: Sequence[str],
    keys: Sequence[str],
    identity_insert: bool = False,
) -> str:
    """
    MERGE staging rows into the destination.

    Matched rows get every non-key column updated; unmatched rows are inserted
    with the full column set. With no non-key columns the WHEN MATCHED branch is
    left out.
    """
    if not keys:
        raise ValueError("MERGE requires at least one key column")
    key_set = set(keys)
    on_clause = " AND ".join(f"t.{quote_identifier(k)} = s.{quote_identifier(k)}" for k in keys)
    updates = [c for c in columns if c not in key_set]
    insert_cols = _column_list(columns)
    insert_vals = ", ".join(f"s.{quote_identifier(c)}" for c in columns)

    parts = [
        f"MERGE INTO {quote_table(target)} AS t",
        f"USING {quote_identifier(stage)} AS s",
        f"ON {on_clause}",
    ]
    if updates:
        set_clause = ", ".join(f"{quote_identifier(c)} = s.{quote_identifier(c)}" for c in updates)
        parts.append(f"WHEN MATCHED THEN UPDATE SET {set_clause}")
    overriding = f" {OVERRIDING_SYSTEM_VALUE}" if identity_insert else ""
    parts.append(f"WHEN NOT MATCHED THEN INSERT ({insert_cols}){overriding} VALUES ({insert_vals})")
    return "\n".join(parts)
