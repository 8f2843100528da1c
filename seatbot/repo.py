from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Sequence

from seatbot.store.base import RowRef, TableStore

log = logging.getLogger(__name__)


@dataclass
class Record:
    """One data row keyed by header. `position` is the 0-based table row order."""

    ref: RowRef
    position: int
    values: dict[str, Any]
    headers: list[str] = field(default_factory=list, repr=False)

    def get(self, key: str, default: Any = "") -> Any:
        v = self.values.get(key)
        if v is None:
            return default
        return v

    def text(self, key: str) -> str:
        return str(self.get(key, "")).strip()


@dataclass
class TableView:
    name: str
    headers: list[str]
    records: list[Record] = field(default_factory=list)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def has(self, header: str) -> bool:
        return header in self.headers

    def find(self, key: str, value: Any) -> Record | None:
        want = str(value).strip()
        for rec in self.records:
            if rec.text(key) == want:
                return rec
        return None

    def where(self, pred: Callable[[Record], bool]) -> list[Record]:
        return [r for r in self.records if pred(r)]


class SheetRepo:
    """Header-keyed access to a TableStore. Unknown headers are dropped on write."""

    def __init__(self, store: TableStore) -> None:
        self.store = store

    async def read(self, name: str) -> TableView:
        table = await self.store.get_table(name)
        headers = [str(h).strip() for h in table.headers]
        records: list[Record] = []
        for pos, (row, ref) in enumerate(zip(table.rows, table.refs)):
            values = {h: (row[i] if i < len(row) else "") for i, h in enumerate(headers) if h}
            records.append(Record(ref=ref, position=pos, values=values, headers=headers))
        return TableView(name=name, headers=headers, records=records)

    async def headers(self, name: str) -> list[str]:
        return (await self.read(name)).headers

    async def append(
        self,
        name: str,
        values: Mapping[str, Any],
        headers: Sequence[str] | None = None,
    ) -> Record:
        if headers is None:
            headers = await self.headers(name)
        row = {h: values.get(h, "") for h in headers}
        ref = await self.store.append_row(name, list(headers), row)
        log.debug("table_append table=%s ref=%s", name, ref.key)
        return Record(ref=ref, position=-1, values=row, headers=list(headers))

    async def update(
        self,
        name: str,
        target: Record | RowRef,
        updates: Mapping[str, Any],
        headers: Sequence[str] | None = None,
    ) -> None:
        ref = target.ref if isinstance(target, Record) else target
        if headers is None and isinstance(target, Record) and target.headers:
            headers = target.headers
        if headers is None:
            headers = await self.headers(name)
        known = {k: v for k, v in updates.items() if k in headers}
        if not known:
            return
        await self.store.update_row(name, ref, list(headers), known)
        if isinstance(target, Record):
            target.values.update(known)
        log.debug("table_update table=%s ref=%s keys=%s", name, ref.key, ",".join(known))
