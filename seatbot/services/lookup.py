from __future__ import annotations

from seatbot.core.errors import NotFound
from seatbot.domain import ACCOUNTS, ORDERS, SEATS, Account, Order, Seat
from seatbot.repo import Record, SheetRepo
from seatbot.store.base import StoreError


async def load_seats(repo: SheetRepo) -> list[Seat]:
    return [Seat.from_record(r) for r in await repo.read(SEATS) if r.text("seat_id")]


async def load_accounts(repo: SheetRepo) -> list[Account]:
    return [Account.from_record(r) for r in await repo.read(ACCOUNTS) if r.text("account_id")]


async def load_orders(repo: SheetRepo) -> list[Order]:
    return [Order.from_record(r) for r in await repo.read(ORDERS) if r.text("order_id")]


async def find_order(repo: SheetRepo, order_id: str) -> Order:
    rec = (await repo.read(ORDERS)).find("order_id", order_id)
    if rec is None:
        raise NotFound(f"Order {order_id} tidak ditemukan")
    return Order.from_record(rec)


async def find_seat(repo: SheetRepo, seat_id: str) -> Seat:
    rec = (await repo.read(SEATS)).find("seat_id", seat_id)
    if rec is None:
        raise NotFound(f"Seat {seat_id} tidak ditemukan")
    return Seat.from_record(rec)


def live_seat_for(seats: list[Seat], order_id: str) -> Seat | None:
    for s in seats:
        if s.order_id == order_id and s.is_holding:
            return s
    return None


def row_of(item: Account | Order | Seat) -> Record:
    """The table row an entity was parsed from. Entities built by hand have none."""
    if item.record is None:
        raise StoreError(f"{type(item).__name__} has no backing table row")
    return item.record
