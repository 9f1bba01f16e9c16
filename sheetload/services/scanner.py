from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

"""File discovery for a table's source folder.

Patterns are glob-style filename patterns (``*.xlsx``) applied with
Path.glob, or Path.rglob when recursion is on. Excel lock files (``~$name``)
are never returned.
"""

__all__ = [
    "LOCK_FILE_PREFIX",
    "scan_files",
]

logger = logging.getLogger(__name__)

LOCK_FILE_PREFIX = "~$"


def scan_files(directory: Path, patterns: Iterable[str], recurse: bool = False) -> list[Path]:
    """Resolve the file set for one table.

    Args:
        directory: base folder.
        patterns: one or more filename patterns; matches are unioned.
        recurse: include subdirectories.

    Returns:
        Absolute paths, deduplicated (case-insensitively) and sorted. A missing
        directory or no matches gives an empty list.
    """
    if not directory.exists():
        logger.warning("source folder not found: %s", directory)
        return []
    if not directory.is_dir():
        logger.warning("source path is not a directory: %s", directory)
        return []

    found: dict[str, Path] = {}
    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern:
            continue
        matches = directory.rglob(pattern) if recurse else directory.glob(pattern)
        for p in matches:
            if not p.is_file() or p.name.startswith(LOCK_FILE_PREFIX):
                continue
            absolute = p.resolve()
            found.setdefault(str(absolute).casefold(), absolute)
    return sorted(found.values(), key=str)
