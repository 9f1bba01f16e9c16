from __future__ import annotations

"""Common exception base for sheetload.

Concrete errors live next to the code that raises them (config loader, type
resolver, schema builder, db client, excel reader). They all derive from
SheetloadError so orchestration boundaries can catch them as a group.
"""

__all__ = [
    "InvalidMode",
    "SheetloadError",
    "error_type_name",
]


class SheetloadError(Exception):
    """Base class for every error raised by the import pipeline."""


def error_type_name(exc: BaseException) -> str:
    """Return the UPPER_SNAKE error type used in the JSON error log.

    >>> error_type_name(SheetloadError("x"))
    'SHEETLOAD_ERROR'
    """
    name = type(exc).__name__
    out: list[str] = []
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0 and not name[i - 1].isupper():
            out.append("_")
        out.append(ch.upper())
    return "".join(out)


class InvalidMode(SheetloadError):
    """A load mode or skip mode outside the supported set."""
