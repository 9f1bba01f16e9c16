from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..config.loader import ConfigError, load_database_config
from ..db.client import ConnectionSettings, SqlClient
from ..db.statements import build_truncate
from ..errors import SheetloadError, error_type_name
from ..excel.reader import ReadError, read_file_rows
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import DatabaseConfig, EffectiveTableSettings, TableConfig
from ..models.processing_result import (
    BatchStatsAccumulator,
    DatabaseResult,
    FileOutcome,
    FileStat,
    ProcessingResult,
    TableResult,
    TableStatus,
)
from ..models.row_container import TypedRowContainer
from .processed_index import ProcessedFileIndex, parse_skip_mode
from .progress import TableProgress
from .row_loader import find_stop_field, load_rows
from .scanner import scan_files
from .schema import build_container, check_key_columns
from .strategies import LoadMode, get_strategy, parse_mode

"""Run orchestration: databases -> tables -> files.

Per database folder:
    ConfigLoaded -> ConnectionResolved -> IndexLoaded -> tables -> IndexSaved
Per table:
    Validated -> FilesDiscovered -> PreSql -> Truncate? -> files -> PostSql -> IndexFlushed

Failure isolation:
- a configuration problem skips its database folder
- validation / mapping / type / mode / SQL errors abandon the table; the next
  table runs. Statements that already committed stay committed.
- an unreadable file is skipped; the table continues
The processed-file index is saved after every table attempt, successful or not.
A file is recorded in the index only after its rows were loaded.
"""

logger = logging.getLogger(__name__)

DATABASES_DIRNAME = "databases"

ClientFactory = Callable[[DatabaseConfig], Any]
RowReader = Callable[[Path, "str | None"], list[dict[str, Any]]]


class ProcessingError(SheetloadError):
    """Fatal run-level error (e.g. the databases directory does not exist)."""


def default_client_factory(cfg: DatabaseConfig) -> SqlClient:
    return SqlClient(ConnectionSettings.from_config(cfg))


def _run_statements(client: Any, statements: tuple[str, ...], label: str, table: str) -> None:
    for i, sql in enumerate(statements, start=1):
        logger.debug("table=%s %s %d/%d", table, label, i, len(statements))
        client.execute_non_query(sql)


def _load_file(
    path: Path,
    table: TableConfig,
    settings: EffectiveTableSettings,
    container_template: TypedRowContainer,
    strategy,
    stop_field: str | None,
    client: Any,
    reader: RowReader,
) -> FileStat:
    started = time.perf_counter()
    rows = reader(path, table.sheet_name)
    batch = container_template.empty_copy()
    accepted = load_rows(
        rows,
        batch,
        table.columns,
        stop_field=stop_field,
        date_format=settings.date_format,
        source=path.name,
    )
    stats = BatchStatsAccumulator()
    sent = strategy.load(client, table, settings, batch, metrics_callback=stats)
    total_batches, avg_batch, p95_batch = stats.get_stats()
    return FileStat(
        file_name=path.name,
        outcome=FileOutcome.LOADED,
        rows=sent,
        elapsed_seconds=time.perf_counter() - started,
        total_batches=total_batches,
        avg_batch_seconds=avg_batch,
        p95_batch_seconds=p95_batch,
        stopped_early=stop_field is not None and accepted < len(rows),
    )


def process_table(
    cfg: DatabaseConfig,
    table: TableConfig,
    client: Any,
    index: ProcessedFileIndex,
    reader: RowReader = read_file_rows,
    error_log: ErrorLogBuffer | None = None,
) -> TableResult:
    """Import every pending file of one table.

    Never raises for table-scoped failures; they are reported in the returned
    TableResult (status FAILED) and in ``error_log``. The index is mutated in
    memory only; saving is the caller's job.

    Every setting is validated before PreSql or TRUNCATE can run, so a bad
    Mode or SkipMode fails the table without touching the destination.
    """
    if error_log is None:
        error_log = ErrorLogBuffer()
    result = TableResult(database=cfg.database, table=table.name)
    try:
        settings = table.effective(cfg.defaults)
        mode = parse_mode(settings.mode)
        skip_mode = parse_skip_mode(settings.skip_mode)
        result.mode = mode.value
        strategy = get_strategy(mode)
        container = build_container(table)
        if mode is LoadMode.UPSERT:
            check_key_columns(table, container)

        directory = cfg.table_directory(table)
        files = scan_files(directory, settings.file_pattern, settings.recurse)
        if not files:
            logger.info(
                "table=%s no files matching %s in %s",
                table.name,
                list(settings.file_pattern),
                directory,
            )
            return result
        logger.info("table=%s mode=%s files=%d", table.name, mode.value, len(files))

        _run_statements(client, table.pre_sql, "PreSql", table.name)

        if settings.truncate_before_import:
            if mode is LoadMode.UPSERT:
                logger.info("table=%s TruncateBeforeImport ignored in upsert mode", table.name)
            else:
                logger.info("table=%s truncating before import", table.name)
                client.execute_non_query(build_truncate(table.name))

        stop_field = find_stop_field(table.columns, settings.stop_field)
        for path in files:
            if settings.skip_processed and index.should_skip(path, skip_mode):
                logger.debug("table=%s skip %s (%s)", table.name, path.name, skip_mode)
                result.files.append(FileStat(file_name=path.name, outcome=FileOutcome.SKIPPED))
                continue
            try:
                stat = _load_file(
                    path, table, settings, container, strategy, stop_field, client, reader
                )
            except ReadError as e:
                logger.warning("table=%s file=%s skipped: %s", table.name, path.name, e)
                error_log.record_failure(cfg.database, e, table=table.name, file=path.name)
                result.files.append(
                    FileStat(file_name=path.name, outcome=FileOutcome.FAILED, error=str(e))
                )
                continue
            index.upsert(path, cfg.database, table.name)
            result.files.append(stat)
            logger.info(
                "table=%s file=%s rows=%d%s",
                table.name,
                path.name,
                stat.rows,
                " (stopped at blank stop field)" if stat.stopped_early else "",
            )

        _run_statements(client, table.post_sql, "PostSql", table.name)
    except SheetloadError as e:
        result.status = TableStatus.FAILED
        result.error = str(e)
        logger.error("table=%s failed (%s): %s", table.name, error_type_name(e), e)
        error_log.record_failure(cfg.database, e, table=table.name)
    except Exception as e:
        result.status = TableStatus.FAILED
        result.error = str(e)
        logger.exception("table=%s failed unexpectedly: %s", table.name, e)
        error_log.record_failure(cfg.database, e, table=table.name)
    return result


def process_database(
    folder: Path,
    client_factory: ClientFactory = default_client_factory,
    reader: RowReader = read_file_rows,
    error_log: ErrorLogBuffer | None = None,
) -> DatabaseResult:
    """Run every configured table of one database folder."""
    if error_log is None:
        error_log = ErrorLogBuffer()
    result = DatabaseResult(name=folder.name)
    try:
        cfg = load_database_config(folder)
    except ConfigError as e:
        result.error = str(e)
        logger.error("database folder %s skipped: %s", folder.name, e)
        error_log.record_failure(folder.name, e)
        return result
    result.name = cfg.database

    try:
        client = client_factory(cfg)
    except Exception as e:
        result.error = str(e)
        logger.error("database=%s connection settings invalid: %s", cfg.database, e)
        error_log.record_failure(cfg.database, e)
        return result
    settings = getattr(client, "settings", None)
    logger.info(
        "database=%s tables=%d target=%s",
        cfg.database,
        len(cfg.tables),
        settings.describe() if settings is not None else "<custom client>",
    )

    log_path = cfg.processed_log_file
    index = ProcessedFileIndex.load(log_path)

    with TableProgress(len(cfg.tables), cfg.database) as progress:
        for table in cfg.tables:
            progress.start_table(table.name)
            try:
                table_result = process_table(cfg, table, client, index, reader, error_log)
            finally:
                try:
                    index.save(log_path)
                except OSError as e:
                    logger.error("database=%s could not save processed-file log %s: %s", cfg.database, log_path, e)
                    error_log.record_failure(cfg.database, e, table=table.name, file=log_path.name)
            result.tables.append(table_result)
            progress.finish_table(
                rows=table_result.rows, failed=sum(1 for t in result.tables if t.status is TableStatus.FAILED)
            )
    return result


def discover_database_folders(root: Path) -> list[Path]:
    databases_dir = root / DATABASES_DIRNAME
    if not databases_dir.is_dir():
        raise ProcessingError(f"databases directory not found: {databases_dir}")
    return sorted((p for p in databases_dir.iterdir() if p.is_dir()), key=lambda p: p.name.casefold())


def process_all(
    root: Path,
    client_factory: ClientFactory = default_client_factory,
    reader: RowReader = read_file_rows,
    error_log: ErrorLogBuffer | None = None,
) -> ProcessingResult:
    """Process every database folder under ``root/databases``.

    Raises:
        ProcessingError: when the databases directory is missing.
    """
    start_time = datetime.now(UTC)
    own_log = error_log is None
    if own_log:
        error_log = ErrorLogBuffer(root / "logs")

    folders = discover_database_folders(root)
    if not folders:
        logger.info("no database folders under %s", root / DATABASES_DIRNAME)

    databases: list[DatabaseResult] = []
    for folder in folders:
        databases.append(process_database(folder, client_factory, reader, error_log))

    if own_log:
        try:
            written = error_log.flush()
            if written is not None:
                logger.info("error log written: %s", written)
        except OSError as e:
            logger.warning("could not write error log: %s", e)

    end_time = datetime.now(UTC)
    return ProcessingResult(
        databases=databases,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
    )
