from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

from ..db.batch_insert import BatchMetrics
from ..db.statements import build_create_staging, build_insert, build_merge, staging_table_name
from ..errors import InvalidMode
from ..models.config_models import EffectiveTableSettings, TableConfig
from ..models.row_container import TypedRowContainer
from ..models.types import storage_type
from .schema import check_key_columns

"""Load strategies: bulk, insert and upsert.

Each strategy persists one TypedRowContainer into its destination table through
an SqlClient and returns the number of rows sent.

- bulk:   one transaction, multi-row INSERT pages (execute_values)
- insert: one parameterised INSERT per row, populated columns only, each
          committed on its own
- upsert: temp staging table -> bulk load -> MERGE on the key columns, all in
          one session so the staging table lives exactly as long as the load
"""

__all__ = [
    "InvalidMode",
    "LoadMode",
    "LoadStrategy",
    "BulkStrategy",
    "InsertStrategy",
    "UpsertStrategy",
    "parse_mode",
    "get_strategy",
    "dedupe_by_key",
]

logger = logging.getLogger(__name__)


class LoadMode(Enum):
    BULK = "bulk"
    INSERT = "insert"
    UPSERT = "upsert"


def parse_mode(value: str | None) -> LoadMode:
    """Parse a configured Mode value.

    Raises:
        InvalidMode: anything other than bulk / insert / upsert.
    """
    text = (value or "").strip().lower()
    try:
        return LoadMode(text)
    except ValueError:
        raise InvalidMode(
            f"unknown load mode: {value!r} (expected one of {[m.value for m in LoadMode]})"
        ) from None


class LoadStrategy(Protocol):
    mode: LoadMode

    def load(
        self,
        client: Any,
        table: TableConfig,
        settings: EffectiveTableSettings,
        container: TypedRowContainer,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> int: ...


class BulkStrategy:
    mode = LoadMode.BULK

    def load(self, client, table, settings, container, metrics_callback=None) -> int:
        if not len(container):
            return 0
        columns = container.column_names
        sent = client.bulk_copy(
            table.name,
            columns,
            container.as_tuples(columns),
            batch_size=settings.batch_size,
            identity_insert=settings.identity_insert,
            metrics_callback=metrics_callback,
        )
        logger.debug("bulk table=%s rows=%d", table.name, sent)
        return sent


class InsertStrategy:
    mode = LoadMode.INSERT

    def load(self, client, table, settings, container, metrics_callback=None) -> int:
        inserted = 0
        for row in container:
            populated = [c for c, v in row.items() if v is not None]
            if not populated:
                logger.debug("insert table=%s: skipping row with no populated columns", table.name)
                continue
            sql = build_insert(table.name, populated, identity_insert=settings.identity_insert)
            with client.session() as s:
                s.execute(sql, [row[c] for c in populated])
            inserted += 1
        logger.debug("insert table=%s rows=%d", table.name, inserted)
        return inserted


def dedupe_by_key(container: TypedRowContainer, keys: list[str]) -> list[dict[str, Any]]:
    """Collapse rows sharing a key; the last occurrence wins, first position kept.

    Rows with a NULL key component are kept as they are (they can never match).
    """
    by_key: dict[tuple[Any, ...], int] = {}
    out: list[dict[str, Any]] = []
    for row in container:
        key = tuple(row[k] for k in keys)
        if any(v is None for v in key):
            out.append(row)
            continue
        pos = by_key.get(key)
        if pos is None:
            by_key[key] = len(out)
            out.append(row)
        else:
            out[pos] = row
    return out


class UpsertStrategy:
    mode = LoadMode.UPSERT

    def load(self, client, table, settings, container, metrics_callback=None) -> int:
        keys = check_key_columns(table, container)
        if not len(container):
            return 0
        rows = dedupe_by_key(container, keys)
        if len(rows) != len(container):
            logger.warning(
                "upsert table=%s: %d row(s) shared a key with a later row and were collapsed",
                table.name,
                len(container) - len(rows),
            )
        columns = container.column_names
        stage = staging_table_name(table.name)
        definitions = {name: storage_type(t) for name, t in container.columns.items()}
        with client.session() as s:
            s.unlimited_timeout()
            s.execute(build_create_staging(stage, definitions))
            s.bulk_insert(
                stage,
                columns,
                [tuple(r[c] for c in columns) for r in rows],
                batch_size=settings.batch_size,
                metrics_callback=metrics_callback,
            )
            s.execute(
                build_merge(table.name, stage, columns, keys, identity_insert=settings.identity_insert)
            )
        logger.debug("upsert table=%s rows=%d keys=%s stage=%s", table.name, len(rows), keys, stage)
        return len(rows)


_STRATEGIES: dict[LoadMode, LoadStrategy] = {
    LoadMode.BULK: BulkStrategy(),
    LoadMode.INSERT: InsertStrategy(),
    LoadMode.UPSERT: UpsertStrategy(),
}


def get_strategy(mode: LoadMode | str) -> LoadStrategy:
    if not isinstance(mode, LoadMode):
        mode = parse_mode(mode)
    return _STRATEGIES[mode]
