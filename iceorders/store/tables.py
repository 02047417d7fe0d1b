# iceorders/store/tables.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence

from ..errors import StoreUnavailable

Row = List[Any]


class Table:
    """
    One named sheet. Row 1 is the header and never comes back from
    read_rows(); data-row indices are 0-based and count from row 2.
    """

    title: str = ""

    def read_rows(self) -> List[Row]:
        raise NotImplementedError

    def append_rows(self, rows: Iterable[Sequence[Any]]) -> None:
        raise NotImplementedError

    def update_row(self, index: int, values: Sequence[Any]) -> None:
        raise NotImplementedError

    def clear_rows(self) -> None:
        raise NotImplementedError

    def ensure_header(self, header: Sequence[Any]) -> None:
        raise NotImplementedError


def cell(row: Sequence[Any], i: int, default: Any = "") -> Any:
    # Sheets drops trailing empty cells, so short rows are normal
    if i < len(row) and row[i] is not None:
        return row[i]
    return default


def to_number(raw: Any, default: float = 0) -> float:
    try:
        v = float(raw)
    except (TypeError, ValueError):
        return default
    return int(v) if v.is_integer() else v


# -------------------
# In-process backend (local runs + tests)
# -------------------
class MemoryTable(Table):
    def __init__(self, title: str, header: Sequence[Any] | None = None) -> None:
        self.title = title
        self.header: Row = list(header or [])
        self.rows: List[Row] = []
        # operation names ("read", "append", "update", "clear") forced to fail
        self.fail_on: set[str] = set()

    def _check(self, op: str) -> None:
        if op in self.fail_on or "*" in self.fail_on:
            raise StoreUnavailable(f"{self.title}: {op} failed")

    def read_rows(self) -> List[Row]:
        self._check("read")
        return [list(r) for r in self.rows]

    def append_rows(self, rows: Iterable[Sequence[Any]]) -> None:
        self._check("append")
        self.rows.extend(list(r) for r in rows)

    def update_row(self, index: int, values: Sequence[Any]) -> None:
        self._check("update")
        if index < 0 or index >= len(self.rows):
            raise StoreUnavailable(f"{self.title}: row {index + 2} does not exist")
        self.rows[index] = list(values)

    def clear_rows(self) -> None:
        self._check("clear")
        self.rows = []

    def ensure_header(self, header: Sequence[Any]) -> None:
        self._check("update")
        self.header = list(header)


class MemoryBackend:
    def __init__(self) -> None:
        self._tables: Dict[str, MemoryTable] = {}

    def table(self, title: str) -> MemoryTable:
        if title not in self._tables:
            self._tables[title] = MemoryTable(title)
        return self._tables[title]

    def ensure_tables(self, headers: Dict[str, Sequence[Any]]) -> None:
        for title, header in headers.items():
            self.table(title).ensure_header(header)
