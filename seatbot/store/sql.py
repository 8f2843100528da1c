from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seatbot.db.models import SheetRow, SheetTable
from seatbot.db.session import get_sessionmaker
from seatbot.store.base import RowRef, StoreError, Table, TableStore

log = logging.getLogger(__name__)


class SqlTableStore(TableStore):
    """Tables kept as JSON rows in `sheet_rows`, ordered by primary key."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._sm = sessionmaker

    def _sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        return self._sm or get_sessionmaker()

    async def ensure_table(self, name: str, headers: Sequence[str]) -> None:
        sm = self._sessionmaker()
        async with sm() as session:
            table = await session.get(SheetTable, name)
            if table is None:
                session.add(SheetTable(name=name, headers=list(headers)))
                log.info("sql_table_created name=%s", name)
            else:
                missing = [h for h in headers if h not in table.headers]
                if missing:
                    # JSON columns only notice reassignment
                    table.headers = list(table.headers) + missing
                    log.info("sql_table_headers_extended name=%s added=%s", name, ",".join(missing))
            await session.commit()

    async def _headers(self, session: AsyncSession, name: str) -> list[str]:
        table = await session.get(SheetTable, name)
        if table is None:
            raise StoreError(f"Unknown table {name}")
        return list(table.headers)

    async def get_table(self, name: str) -> Table:
        sm = self._sessionmaker()
        async with sm() as session:
            headers = await self._headers(session, name)
            res = await session.execute(
                select(SheetRow).where(SheetRow.table_name == name).order_by(SheetRow.id.asc())
            )
            db_rows = list(res.scalars().all())

        rows = [[(r.values or {}).get(h, "") for h in headers] for r in db_rows]
        refs = [RowRef(name, r.id) for r in db_rows]
        return Table(name=name, headers=headers, rows=rows, refs=refs)

    async def append_row(self, name: str, headers: Sequence[str], values: Mapping[str, Any]) -> RowRef:
        sm = self._sessionmaker()
        async with sm() as session:
            own = await self._headers(session, name)
            row = SheetRow(table_name=name, values={h: values.get(h, "") for h in own})
            session.add(row)
            await session.commit()
            return RowRef(name, row.id)

    async def update_row(
        self,
        name: str,
        ref: RowRef,
        headers: Sequence[str],
        updates: Mapping[str, Any],
    ) -> None:
        if ref.table != name:
            raise StoreError(f"Row handle {ref!r} does not belong to {name}")
        sm = self._sessionmaker()
        async with sm() as session:
            own = await self._headers(session, name)
            row = await session.get(SheetRow, ref.key)
            if row is None or row.table_name != name:
                raise StoreError(f"Stale row handle {ref!r} for {name}")
            merged = dict(row.values or {})
            for h in own:
                if h in updates:
                    merged[h] = updates[h]
            row.values = merged
            await session.commit()
