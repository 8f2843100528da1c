from __future__ import annotations

import logging

from seatbot.core.config import Settings
from seatbot.store.base import RowRef, StoreError, Table, TableStore
from seatbot.store.memory import MemoryTableStore

log = logging.getLogger(__name__)


def build_store(settings: Settings) -> TableStore:
    backend = settings.store_backend
    if backend == "memory":
        store: TableStore = MemoryTableStore()
    elif backend == "sql":
        from seatbot.db.session import init_engine
        from seatbot.store.sql import SqlTableStore

        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is missing")
        init_engine(settings.database_url)
        store = SqlTableStore()
    elif backend == "sheets":
        from seatbot.store.sheets import GoogleSheetsTableStore

        if not (settings.sheets_spreadsheet_id and settings.sheets_credentials_path):
            raise RuntimeError("SHEETS_SPREADSHEET_ID and SHEETS_CREDENTIALS_PATH are required for sheets backend")
        store = GoogleSheetsTableStore(
            spreadsheet_id=settings.sheets_spreadsheet_id,
            credentials_path=settings.sheets_credentials_path,
        )
    else:
        raise RuntimeError(f"Unsupported STORE_BACKEND: {backend}")

    log.info("table_store_ready backend=%s", backend)
    return store


__all__ = [
    "MemoryTableStore",
    "RowRef",
    "StoreError",
    "Table",
    "TableStore",
    "build_store",
]
