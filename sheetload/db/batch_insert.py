from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

from ..errors import SheetloadError
from .statements import build_values_insert

"""Batched multi-row INSERT via psycopg2.extras.execute_values.

Used by the bulk load strategy and for filling the upsert staging table. Rows
are sent in chunks of ``batch_size``; each chunk is one execute_values call and
produces one BatchMetrics record. Transaction control is the caller's job: a
failure in any chunk propagates and the surrounding session rolls back.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
]


class BatchInsertError(SheetloadError):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Metrics data for a single batch insert chunk."""
    batch_size: int  # Number of rows in this batch
    elapsed_seconds: float  # Time spent on execute_values call
    start_time: float  # Start timestamp (time.time())
    end_time: float  # End timestamp (time.time())


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    batches: int = 0


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    batch_size: int = 5000,
    identity_insert: bool = False,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Insert ``rows`` into ``table`` in chunks.

    Parameters
    ----------
    cursor: psycopg2 cursor (inside an open transaction)
    table: destination table, optionally schema-qualified
    columns: destination columns, same order as each row
    rows: row value sequences
    batch_size: rows per execute_values call
    identity_insert: add OVERRIDING SYSTEM VALUE so identity columns keep the
        supplied values
    metrics_callback: receives one BatchMetrics per chunk. Not invoked when
        ``rows`` is empty.
    """
    if batch_size < 1:
        raise BatchInsertError(f"batch_size must be positive, got {batch_size}")
    rows_list = [tuple(r) for r in rows]
    if not rows_list:
        return InsertResult(inserted_rows=0)

    sql = build_values_insert(table, columns, identity_insert=identity_insert)
    batches = 0
    for offset in range(0, len(rows_list), batch_size):
        chunk = rows_list[offset:offset + batch_size]
        start_time = time.time()
        try:
            execute_values(cursor, sql, chunk, page_size=batch_size)
        except Exception as e:
            raise BatchInsertError(f"{table}: rows {offset + 1}-{offset + len(chunk)}: {e}") from e
        finally:
            end_time = time.time()
            if metrics_callback is not None:
                metrics_callback(
                    BatchMetrics(
                        batch_size=len(chunk),
                        elapsed_seconds=end_time - start_time,
                        start_time=start_time,
                        end_time=end_time,
                    )
                )
        batches += 1

    return InsertResult(inserted_rows=len(rows_list), batches=batches)
