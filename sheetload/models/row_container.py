from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from .types import ResolvedType

"""TypedRowContainer: the in-memory row batch for one table load.

Columns are fixed at construction (mapping order) and carry their ResolvedType.
Rows are plain dicts keyed by destination column name; every row holds every
column, with None standing for SQL NULL.
"""

__all__ = [
    "TypedRowContainer",
]


@dataclass
class TypedRowContainer:
    table_name: str
    columns: dict[str, ResolvedType]  # destination column -> type, mapping order
    rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def column_names(self) -> list[str]:
        return list(self.columns)

    def has_column(self, name: str) -> bool:
        return name in self.columns

    def new_row(self) -> dict[str, Any]:
        return {name: None for name in self.columns}

    def add_row(self, row: dict[str, Any]) -> None:
        unknown = set(row) - set(self.columns)
        if unknown:
            raise KeyError(f"columns not in container {self.table_name}: {sorted(unknown)}")
        full = self.new_row()
        full.update(row)
        self.rows.append(full)

    def as_tuples(self, columns: Sequence[str] | None = None) -> list[tuple[Any, ...]]:
        cols = list(columns) if columns is not None else self.column_names
        return [tuple(r[c] for c in cols) for r in self.rows]

    def empty_copy(self) -> TypedRowContainer:
        return TypedRowContainer(table_name=self.table_name, columns=dict(self.columns))

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.rows)
