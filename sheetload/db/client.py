from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import psycopg2

from ..errors import SheetloadError
from ..models.config_models import DEFAULT_PORT, DatabaseConfig
from .batch_insert import BatchInsertError, BatchMetrics, InsertResult, batch_insert

"""PostgreSQL connectivity.

Every discrete operation (one non-query statement, one bulk load, one upsert
sequence) opens its own connection through SqlClient.session() and closes it
afterwards. Nothing spans pre-SQL, load and post-SQL: a failure between them
leaves whatever already committed in place.

Connection parameter precedence:
    1. values from the database configuration document
    2. libpq environment variables (PGHOST / PGPORT / PGUSER / PGPASSWORD),
       typically loaded from .env by the CLI, for anything the document omits
    3. libpq defaults
With Auth.IntegratedSecurity no user / password is passed at all.
"""

__all__ = [
    "ConnectionSettings",
    "SqlClient",
    "SqlExecutionError",
    "SqlSession",
]

logger = logging.getLogger(__name__)


class SqlExecutionError(SheetloadError):
    """Any failure reported by the database or the driver."""


@dataclass(frozen=True)
class ConnectionSettings:
    host: str | None
    port: int
    dbname: str
    user: str | None = None
    password: str | None = None
    integrated_security: bool = False
    application_name: str = "sheetload"

    @classmethod
    def from_config(cls, cfg: DatabaseConfig) -> ConnectionSettings:
        integrated = cfg.auth.integrated_security
        port_env = os.getenv("PGPORT")
        return cls(
            host=cfg.server or os.getenv("PGHOST"),
            port=int(cfg.port or (port_env if port_env else DEFAULT_PORT)),
            dbname=cfg.database,
            user=None if integrated else (cfg.auth.user or os.getenv("PGUSER")),
            password=None if integrated else (cfg.auth.password or os.getenv("PGPASSWORD")),
            integrated_security=integrated,
        )

    def connect_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "dbname": self.dbname,
            "port": self.port,
            "application_name": self.application_name,
        }
        if self.host:
            kwargs["host"] = self.host
        if not self.integrated_security:
            if self.user:
                kwargs["user"] = self.user
            if self.password:
                kwargs["password"] = self.password
        return kwargs

    def describe(self) -> str:
        auth = "integrated" if self.integrated_security else f"user={self.user or '<default>'}"
        return f"{self.host or '<local>'}:{self.port}/{self.dbname} ({auth})"


class SqlSession:
    """One open connection + cursor. Statements run inside a single transaction."""

    def __init__(self, cursor: Any) -> None:
        self.cursor = cursor

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> None:
        logger.debug("sql: %s", sql if len(sql) < 500 else sql[:500] + "...")
        self.cursor.execute(sql, params)

    def unlimited_timeout(self) -> None:
        self.cursor.execute("SET LOCAL statement_timeout = 0")

    def bulk_insert(
        self,
        table: str,
        columns: Sequence[str],
        rows: Iterable[Sequence[Any]],
        batch_size: int,
        identity_insert: bool = False,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> InsertResult:
        return batch_insert(
            self.cursor,
            table,
            columns,
            rows,
            batch_size=batch_size,
            identity_insert=identity_insert,
            metrics_callback=metrics_callback,
        )


class SqlClient:
    """Per-operation connection factory around psycopg2."""

    def __init__(
        self,
        settings: ConnectionSettings,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self.settings = settings
        self._connect = connect or psycopg2.connect

    @contextmanager
    def session(self) -> Iterator[SqlSession]:
        """Open a connection, yield a session, commit on success.

        Raises:
            SqlExecutionError: on connection failure or any statement error
                (the transaction is rolled back first).
        """
        try:
            conn = self._connect(**self.settings.connect_kwargs())
        except psycopg2.Error as e:
            raise SqlExecutionError(f"connect {self.settings.describe()}: {e}") from e
        try:
            cur = conn.cursor()
            try:
                yield SqlSession(cur)
                conn.commit()
            except (psycopg2.Error, BatchInsertError) as e:
                conn.rollback()
                raise SqlExecutionError(str(e).strip()) from e
            except BaseException:
                conn.rollback()
                raise
            finally:
                cur.close()
        finally:
            conn.close()

    def execute_non_query(self, sql: str) -> None:
        """Run one parameterless DDL / DML statement in its own connection."""
        with self.session() as s:
            s.execute(sql)

    def bulk_copy(
        self,
        table: str,
        columns: Sequence[str],
        rows: Iterable[Sequence[Any]],
        batch_size: int,
        identity_insert: bool = False,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> int:
        """Load a whole row batch in one transaction with no statement timeout."""
        with self.session() as s:
            s.unlimited_timeout()
            result = s.bulk_insert(
                table,
                columns,
                rows,
                batch_size=batch_size,
                identity_insert=identity_insert,
                metrics_callback=metrics_callback,
            )
        return result.inserted_rows
