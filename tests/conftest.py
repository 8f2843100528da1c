from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Sequence

import pytest

from seatbot.domain import (ACCOUNTS, ADMIN_USERS, DEFAULT_HEADERS, LOGS, ORDERS, PRODUCTS, SEATS)
from seatbot.services.container import Services, build_services
from seatbot.store.base import RowRef
from seatbot.store.memory import MemoryTableStore

FIXED_NOW = datetime(2026, 10, 19, 5, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


class CountingStore(MemoryTableStore):
    """Memory store that remembers every write."""

    def __init__(self, tables: Mapping[str, Sequence[str]] | None = None) -> None:
        super().__init__(tables)
        self.writes: list[tuple[str, str]] = []

    async def append_row(self, name: str, headers: Sequence[str], values: Mapping[str, Any]) -> RowRef:
        self.writes.append(("append", name))
        return await super().append_row(name, headers, values)

    async def update_row(self, name: str, ref: RowRef, headers: Sequence[str], updates: Mapping[str, Any]) -> None:
        self.writes.append(("update", name))
        await super().update_row(name, ref, headers, updates)

    def rows(self, name: str) -> list[dict[str, Any]]:
        headers = self._headers[name]
        return [dict(zip(headers, r)) for r in self._rows[name]]


class Seeder:
    def __init__(self, store: CountingStore) -> None:
        self.store = store

    def product(self, product_id: str = "NF-SH-30", **kw: Any) -> None:
        row = {
            "product_id": product_id,
            "product_name": kw.pop("product_name", product_id),
            "platform": "Netflix",
            "seat_mode": "SHARING",
            "duration_days": "30",
            "sharing_max_slot": "2",
            "fallback_policy": "STRICT",
            "active": "TRUE",
        }
        row.update(kw)
        self.store.seed(PRODUCTS, [row])

    def account(self, account_id: str, **kw: Any) -> None:
        row = {
            "account_id": account_id,
            "platform": "Netflix",
            "mode": "SHARING",
            "email": f"{account_id.lower()}@mail.test",
            "max_slot": "",
            "status": "active",
        }
        row.update(kw)
        self.store.seed(ACCOUNTS, [row])

    def order(self, order_id: str, product_id: str = "NF-SH-30", **kw: Any) -> None:
        row = {
            "order_id": order_id,
            "product_id": product_id,
            "platform": "Netflix",
            "channel": "Shopee",
            "buyer_id": f"buyer-{order_id}",
            "buyer_email": f"{order_id}@unknown",
            "status": "PENDING_SEND",
            "assigned_admin": "alice",
            "created_at": "2026-10-19T01:00:00.000Z",
        }
        row.update(kw)
        self.store.seed(ORDERS, [row])

    def seat(self, seat_id: str, account_id: str, order_id: str, **kw: Any) -> None:
        row = {
            "seat_id": seat_id,
            "account_id": account_id,
            "order_id": order_id,
            "product_id": "NF-SH-30",
            "buyer_id": f"buyer-{order_id}",
            "buyer_email": f"{order_id}@unknown",
            "start_date": "2026-09-19T05:00:00.000Z",
            "end_date": "2026-10-19T05:00:00.000Z",
            "status": "ACTIVE",
            "released_at": "",
            "seat_mode": "SHARING",
        }
        row.update(kw)
        self.store.seed(SEATS, [row])

    def admin(self, username: str, role: str = "ADMIN", status: str = "active") -> None:
        self.store.seed(ADMIN_USERS, [{"telegram_username": username, "role": role, "status": status}])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(FIXED_NOW)


@pytest.fixture
def store() -> CountingStore:
    return CountingStore(DEFAULT_HEADERS)


@pytest.fixture
def seed(store: CountingStore) -> Seeder:
    return Seeder(store)


@pytest.fixture
def services(store: CountingStore, clock: FakeClock) -> Services:
    return build_services(store, owner_username="boss", clock=clock)


def log_actions(store: CountingStore) -> list[str]:
    return [r["action"] for r in store.rows(LOGS)]
