from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm

"""Progress display with tqdm (TTY only).

One bar per database, advancing per table. In non-TTY environments (CI, cron,
redirected output) no bar is created so logs stay free of control sequences.
"""

__all__ = [
    "TableProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class TableProgress:
    """Progress over the tables of one database."""

    def __init__(self, total_tables: int, database: str) -> None:
        self.total_tables = total_tables
        self.description = database
        self.enabled = is_tty_enabled()
        self.pbar: Any | None = None
        if self.enabled:
            self.pbar = tqdm(
                total=total_tables,
                desc=database,
                unit="table",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def start_table(self, table: str) -> None:
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({table})")

    def finish_table(self, **postfix: Any) -> None:
        if self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_description(self.description)
            if postfix:
                self.pbar.set_postfix(**postfix)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> TableProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
