from __future__ import annotations

import logging
import re
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pandas as pd

from ..errors import SheetloadError

"""Spreadsheet reading (pandas / openpyxl).

The first row of a sheet is the header; every following row becomes an ordered
dict of header -> raw cell value, empty cells as None. Cell text is never
turned into a missing value here: "NA", "null" or "#N/A" stay strings, and
deciding what counts as null is left to the cell converter.

Empty rows inside the data are kept so a blank separator row reaches the row
loader; empty rows after the last populated one are dropped (openpyxl reports
formatted-but-empty trailing rows).

File names containing glob metacharacters are read through a temporary copy with
a sanitised name; the copy is removed afterwards.
"""

__all__ = [
    "ReadError",
    "GLOB_METACHARACTERS",
    "read_file_rows",
    "staged_copy",
]

logger = logging.getLogger(__name__)

GLOB_METACHARACTERS = re.compile(r"[\[\]*?]")


class ReadError(SheetloadError):
    """Source file could not be read (missing, corrupt, empty or no such sheet)."""


@contextmanager
def staged_copy(path: Path) -> Iterator[Path]:
    """Yield a path safe to hand to the reader.

    Names without glob metacharacters are yielded unchanged. Otherwise the file
    is copied to a temporary directory under a sanitised name which is deleted
    on exit.
    """
    if not GLOB_METACHARACTERS.search(path.name):
        yield path
        return
    safe_name = GLOB_METACHARACTERS.sub("_", path.name)
    tmp_dir = Path(tempfile.mkdtemp(prefix="sheetload-"))
    staged = tmp_dir / safe_name
    try:
        shutil.copy2(path, staged)
        logger.debug("staged %s as %s", path.name, staged)
        yield staged
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)


def _plain(value: Any) -> Any:
    if value is None or (isinstance(value, str) and value == ""):
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        return value
    # numpy scalars -> Python scalars
    item = getattr(value, "item", None)
    if callable(item) and type(value).__module__ == "numpy":
        return item()
    return value


def _frame_to_rows(df: pd.DataFrame) -> list[dict[str, Any]]:
    columns = [str(c).strip() for c in df.columns]
    rows: list[dict[str, Any]] = []
    last_populated = 0
    for raw in df.itertuples(index=False, name=None):
        values = [_plain(v) for v in raw]
        rows.append(dict(zip(columns, values, strict=False)))
        if any(v is not None for v in values):
            last_populated = len(rows)
    return rows[:last_populated]


def read_file_rows(path: Path, sheet_name: str | None = None) -> list[dict[str, Any]]:
    """Read one sheet of a workbook as a list of ordered field -> value dicts.

    Parameters
    ----------
    path: workbook path
    sheet_name: sheet to read; None reads the first sheet

    Raises
    ------
    ReadError: the file is missing / unreadable, or the sheet does not exist.
    """
    if not path.is_file():
        raise ReadError(f"file not found: {path}")
    if path.stat().st_size == 0:
        raise ReadError(f"file is empty: {path}")
    with staged_copy(path) as readable:
        try:
            with pd.ExcelFile(readable) as xls:
                if sheet_name is None:
                    target: str | int = 0
                else:
                    names = [str(n) for n in xls.sheet_names]
                    if sheet_name not in names:
                        folded = {n.casefold(): n for n in names}
                        if sheet_name.casefold() not in folded:
                            raise ReadError(f"sheet '{sheet_name}' not found in {path.name}")
                        target = folded[sheet_name.casefold()]
                    else:
                        target = sheet_name
                # keep_default_na=False: only truly empty cells are missing
                df = xls.parse(target, header=0, dtype=object, keep_default_na=False, na_values=[])
        except ReadError:
            raise
        except Exception as e:
            raise ReadError(f"cannot read {path.name}: {e}") from e
    rows = _frame_to_rows(df)
    logger.debug("read %s sheet=%s rows=%d", path.name, sheet_name or "<first>", len(rows))
    return rows
