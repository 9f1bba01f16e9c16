from __future__ import annotations

import datetime as _dt
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

import pandas as pd

from ..models.types import LogicalType, ResolvedType

"""Cell value conversion (best-effort import policy).

Every spreadsheet cell passes through try_convert() before it reaches a typed
row. Malformed data never aborts an import: failed conversions come back as a
Conversion with status INVALID and a None value, which the row loader stores as
SQL NULL. Keeping the status explicit lets callers tell "cell was blank" apart
from "cell could not be parsed" without an exception path.
"""

__all__ = [
    "Conversion",
    "ConversionStatus",
    "NULL_MARKERS",
    "TRUE_WORDS",
    "FALSE_WORDS",
    "convert_cell",
    "try_convert",
]

logger = logging.getLogger(__name__)

# Text that means "no data" in the source sheets
NULL_MARKERS = frozenset({"", "-", "N/A"})
TRUE_WORDS = frozenset({"1", "true", "yes", "y", "on"})
FALSE_WORDS = frozenset({"0", "false", "no", "n", "off"})

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class ConversionStatus(Enum):
    VALUE = "value"
    NULL = "null"  # input was empty / a null marker
    INVALID = "invalid"  # input present but not convertible


@dataclass(frozen=True)
class Conversion:
    status: ConversionStatus
    value: Any = None


_NULL = Conversion(ConversionStatus.NULL)
_INVALID = Conversion(ConversionStatus.INVALID)


class _Unparseable(ValueError):
    pass


class _Blank(_Unparseable):
    pass


def _is_missing(raw: Any) -> bool:
    if raw is None or raw is pd.NaT:
        return True
    if isinstance(raw, float) and math.isnan(raw):
        return True
    try:
        return bool(pd.isna(raw)) if not isinstance(raw, (str, bytes)) else False
    except (TypeError, ValueError):
        # array-likes have no single truth value
        return False


def _numeric_text(raw: Any) -> str:
    # thousands separators out, invariant "." decimal point
    text = str(raw).strip().replace(",", "")
    if not text:
        raise _Blank("empty numeric text")
    return text


def _to_decimal(raw: Any, _fmt: str | None) -> Decimal:
    if isinstance(raw, bool):
        return Decimal(int(raw))
    if isinstance(raw, Decimal):
        return raw
    if isinstance(raw, (int, float)):
        value = Decimal(str(raw))
    else:
        value = Decimal(_numeric_text(raw))
    if not value.is_finite():
        raise _Unparseable(f"non-finite decimal: {raw!r}")
    return value


def _to_float(raw: Any, _fmt: str | None) -> float:
    if isinstance(raw, (int, float, Decimal)):
        value = float(raw)
    else:
        value = float(_numeric_text(raw))
    if math.isnan(value) or math.isinf(value):
        raise _Unparseable(f"non-finite float: {raw!r}")
    return value


def _to_int(raw: Any, _fmt: str | None) -> int:
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if math.isnan(raw) or math.isinf(raw):
            raise _Unparseable(f"non-finite float: {raw!r}")
        return round(raw)
    value = Decimal(_numeric_text(raw))
    if value != value.to_integral_value():
        raise _Unparseable(f"not an integer: {raw!r}")
    return int(value)


def _to_int32(raw: Any, fmt: str | None) -> int:
    value = _to_int(raw, fmt)
    if not INT32_MIN <= value <= INT32_MAX:
        raise _Unparseable(f"out of int32 range: {value}")
    return value


def _to_bool(raw: Any, _fmt: str | None) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)) and raw in (0, 1):
        return bool(raw)
    word = str(raw).strip().lower()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    raise _Unparseable(f"not a boolean: {raw!r}")


def _to_datetime(raw: Any, fmt: str | None) -> _dt.datetime:
    if isinstance(raw, pd.Timestamp):
        return raw.to_pydatetime()
    if isinstance(raw, _dt.datetime):
        return raw
    if isinstance(raw, _dt.date):
        return _dt.datetime(raw.year, raw.month, raw.day)
    text = str(raw).strip()
    if not text:
        raise _Blank("empty date text")
    if fmt:
        return _dt.datetime.strptime(text, fmt)
    parsed = pd.to_datetime(text)
    if parsed is pd.NaT:
        raise _Unparseable(f"not a date: {raw!r}")
    return parsed.to_pydatetime()


def _to_string(raw: Any, _fmt: str | None) -> str:
    # numeric cells come back from pandas as floats; 12.0 should read "12"
    if isinstance(raw, float) and raw.is_integer():
        text = str(int(raw))
    else:
        text = str(raw)
    if not text.strip():
        raise _Blank("blank string")
    return text


_CONVERTERS: dict[LogicalType, Callable[[Any, str | None], Any]] = {
    LogicalType.STRING: _to_string,
    LogicalType.INT32: _to_int32,
    LogicalType.INT64: _to_int,
    LogicalType.DECIMAL: _to_decimal,
    LogicalType.DOUBLE: _to_float,
    LogicalType.BOOL: _to_bool,
    LogicalType.DATETIME: _to_datetime,
}


def _to_native(raw: Any, target: type) -> Any:
    if isinstance(raw, target):
        return raw
    return target(str(raw).strip())


def try_convert(raw: Any, target: ResolvedType, date_format: str | None = None) -> Conversion:
    """Convert one raw cell to the target type.

    Never raises. Blank input and the ``-`` / ``N/A`` markers yield status NULL;
    input that fails the type's parse rules yields status INVALID. Both carry
    value None.
    """
    if _is_missing(raw):
        return _NULL
    if isinstance(raw, str) and raw.strip() in NULL_MARKERS:
        return _NULL
    try:
        if target.tag is LogicalType.NATIVE:
            value = _to_native(raw, target.python_type)
        else:
            value = _CONVERTERS[target.tag](raw, date_format)
    except _Blank:
        return _NULL
    except Exception as e:  # best-effort import: any parse failure is NULL
        logger.debug("convert %r -> %s failed: %s", raw, target.name, e)
        return _INVALID
    return Conversion(ConversionStatus.VALUE, value)


def convert_cell(raw: Any, target: ResolvedType, date_format: str | None = None) -> Any:
    """Shortcut returning just the converted value (None for null / invalid)."""
    return try_convert(raw, target, date_format).value
