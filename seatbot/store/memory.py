from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from seatbot.store.base import RowRef, StoreError, Table, TableStore


class MemoryTableStore(TableStore):
    """Process-local tables. Rows are never deleted, so list positions are stable keys."""

    def __init__(self, tables: Mapping[str, Sequence[str]] | None = None) -> None:
        self._headers: dict[str, list[str]] = {}
        self._rows: dict[str, list[list[Any]]] = {}
        for name, headers in (tables or {}).items():
            self._headers[name] = list(headers)
            self._rows[name] = []

    def _require(self, name: str) -> list[str]:
        headers = self._headers.get(name)
        if headers is None:
            raise StoreError(f"Unknown table {name}")
        return headers

    async def ensure_table(self, name: str, headers: Sequence[str]) -> None:
        if name not in self._headers:
            self._headers[name] = list(headers)
            self._rows[name] = []

    async def get_table(self, name: str) -> Table:
        headers = self._require(name)
        rows = [list(r) for r in self._rows[name]]
        refs = [RowRef(name, i) for i in range(len(rows))]
        return Table(name=name, headers=list(headers), rows=rows, refs=refs)

    async def append_row(self, name: str, headers: Sequence[str], values: Mapping[str, Any]) -> RowRef:
        own = self._require(name)
        self._rows[name].append([values.get(h, "") for h in own])
        return RowRef(name, len(self._rows[name]) - 1)

    async def update_row(
        self,
        name: str,
        ref: RowRef,
        headers: Sequence[str],
        updates: Mapping[str, Any],
    ) -> None:
        own = self._require(name)
        if ref.table != name or not isinstance(ref.key, int) or not (0 <= ref.key < len(self._rows[name])):
            raise StoreError(f"Stale row handle {ref!r} for {name}")
        row = self._rows[name][ref.key]
        for i, h in enumerate(own):
            if h in updates:
                row[i] = updates[h]

    def seed(self, name: str, records: Iterable[Mapping[str, Any]]) -> None:
        """Load fixture rows synchronously (dev bootstrap, tests)."""
        own = self._require(name)
        for rec in records:
            self._rows[name].append([rec.get(h, "") for h in own])
