from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from ..models.config_models import ColumnMapping
from ..models.row_container import TypedRowContainer
from .converter import ConversionStatus, try_convert
from .schema import MappingError

"""Spreadsheet rows -> typed container rows.

A table may name a stop field (by default the mapping whose Db or Excel name is
``Keyword``). Rows are accepted in file order until the first row whose stop
field is absent or blank; that row and every later row of the same file are
ignored, so a blank separator row ends the file. The next file starts fresh.
Without a stop field, rows whose mapped fields are all blank are skipped.

Field lookup is exact-name first, then case-insensitive.
"""

__all__ = [
    "find_stop_field",
    "lookup_field",
    "load_rows",
]

logger = logging.getLogger(__name__)

_MISSING = object()


def find_stop_field(mappings: Sequence[ColumnMapping], sentinel: str = "Keyword") -> str | None:
    """Source field name of the stop-field mapping, or None if there is none."""
    target = (sentinel or "").strip().casefold()
    if not target:
        return None
    for m in mappings:
        if m.db.strip().casefold() == target or m.excel.strip().casefold() == target:
            return m.excel or None
    return None


def lookup_field(row: Mapping[str, Any], name: str) -> tuple[bool, Any]:
    """Return (found, value) for ``name`` in ``row``."""
    value = row.get(name, _MISSING)
    if value is not _MISSING:
        return True, value
    folded = name.casefold()
    for key, value in row.items():
        if str(key).casefold() == folded:
            return True, value
    return False, None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and value != value:  # NaN
        return True
    return isinstance(value, str) and not value.strip()


def load_rows(
    rows: Iterable[Mapping[str, Any]],
    container: TypedRowContainer,
    mappings: Sequence[ColumnMapping],
    stop_field: str | None = None,
    date_format: str | None = None,
    *,
    source: str = "",
) -> int:
    """Convert ``rows`` into typed rows appended to ``container``.

    Returns:
        Number of rows appended.

    Raises:
        MappingError: a mapping has a blank destination column or one that is
            not part of the container. This aborts the whole table.
    """
    for m in mappings:
        if not m.db:
            raise MappingError(f"table '{container.table_name}': mapping for '{m.excel}' has blank Db")
        if not container.has_column(m.db):
            raise MappingError(
                f"table '{container.table_name}': column '{m.db}' missing from row container"
            )

    added = 0
    invalid_cells = 0
    for index, row in enumerate(rows, start=1):
        if stop_field:
            found, marker = lookup_field(row, stop_field)
            if not found or _is_blank(marker):
                logger.debug(
                    "%s: stop field '%s' blank at data row %d; ignoring remaining rows",
                    source or container.table_name,
                    stop_field,
                    index,
                )
                break
        elif all(_is_blank(lookup_field(row, m.excel)[1]) for m in mappings):
            continue
        typed = container.new_row()
        for m in mappings:
            _, raw = lookup_field(row, m.excel)
            result = try_convert(raw, container.columns[m.db], date_format)
            if result.status is ConversionStatus.INVALID:
                invalid_cells += 1
            typed[m.db] = result.value
        container.add_row(typed)
        added += 1

    if invalid_cells:
        logger.warning(
            "%s: %d cell(s) could not be converted and were loaded as NULL",
            source or container.table_name,
            invalid_cells,
        )
    return added
