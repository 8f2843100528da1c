import asyncio

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from conftest import FakeClock, FIXED_NOW
from seatbot.db.base import Base
from seatbot.db.session import dispose_engine, get_sessionmaker, init_engine
from seatbot.domain import ORDERS, PRODUCTS, SEATS
from seatbot.services.container import build_services, ensure_tables
from seatbot.store.base import RowRef, StoreError
from seatbot.store.sql import SqlTableStore


async def _with_store(tmp_path, body):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'seatbot.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        store = SqlTableStore(async_sessionmaker(engine, expire_on_commit=False))
        return await body(store)
    finally:
        await engine.dispose()


def test_rows_round_trip_in_insert_order(tmp_path):
    async def body(store):
        await store.ensure_table("T", ["id", "name"])
        r1 = await store.append_row("T", ["id", "name"], {"id": "1", "name": "a", "junk": "x"})
        await store.append_row("T", ["id", "name"], {"id": "2"})
        await store.update_row("T", r1, ["id", "name"], {"name": "z"})
        return await store.get_table("T")

    table = asyncio.run(_with_store(tmp_path, body))

    assert table.headers == ["id", "name"]
    assert table.rows == [["1", "z"], ["2", ""]]
    assert [ref.table for ref in table.refs] == ["T", "T"]


def test_ensure_table_extends_headers(tmp_path):
    async def body(store):
        await store.ensure_table("T", ["id"])
        await store.append_row("T", ["id"], {"id": "1"})
        await store.ensure_table("T", ["id", "extra"])
        return await store.get_table("T")

    table = asyncio.run(_with_store(tmp_path, body))

    assert table.headers == ["id", "extra"]
    assert table.rows == [["1", ""]]


def test_stale_or_foreign_handles_raise(tmp_path):
    async def body(store):
        await store.ensure_table("A", ["k"])
        await store.ensure_table("B", ["k"])
        ref = await store.append_row("A", ["k"], {"k": "v"})
        with pytest.raises(StoreError):
            await store.update_row("B", ref, ["k"], {"k": "w"})
        with pytest.raises(StoreError):
            await store.update_row("A", RowRef("A", 999), ["k"], {"k": "w"})
        with pytest.raises(StoreError):
            await store.get_table("MISSING")

    asyncio.run(_with_store(tmp_path, body))


def test_order_flow_end_to_end(tmp_path):
    async def body(store):
        await ensure_tables(store)
        services = build_services(store, owner_username="boss", clock=FakeClock(FIXED_NOW))
        await services.repo.append(PRODUCTS, {
            "product_id": "NF-SH-30", "product_name": "Netflix Sharing", "platform": "Netflix",
            "seat_mode": "SHARING", "duration_days": "30", "sharing_max_slot": "2", "active": "TRUE",
        })
        await services.repo.append("ACCOUNTS", {
            "account_id": "A1", "platform": "Netflix", "mode": "SHARING", "email": "a1@mail.test",
            "max_slot": "2", "status": "active",
        })
        order, res = await services.orders.create_and_assign(
            product_id="NF-SH-30", channel="Shopee", buyer_id="b1",
            buyer_email="b1@mail.test", actor="alice",
        )
        await services.lifecycle.mark_order_sent(order.order_id, actor="alice")
        seats = await services.repo.read(SEATS)
        orders = await services.repo.read(ORDERS)
        return res, seats, orders

    res, seats, orders = asyncio.run(_with_store(tmp_path, body))

    assert res.account.account_id == "A1"
    assert len(seats) == 1
    assert seats.records[0].text("status") == "ACTIVE"
    assert orders.records[0].text("status") == "ACTIVE"


def test_process_engine_lifecycle(tmp_path):
    async def flow():
        init_engine(f"sqlite+aiosqlite:///{tmp_path / 'seatbot.db'}")
        first = get_sessionmaker()
        init_engine("sqlite+aiosqlite:///ignored.db")
        assert get_sessionmaker() is first
        await dispose_engine()

    asyncio.run(flow())

    with pytest.raises(RuntimeError):
        get_sessionmaker()
