from __future__ import annotations

from collections import Counter
from typing import Iterable

from seatbot.domain import Account, Product, Seat, SeatMode, SeatStatus


def count_used_slots(seats: Iterable[Seat]) -> dict[str, int]:
    """account_id -> number of seats currently holding a slot on it."""
    used: Counter[str] = Counter()
    for s in seats:
        if s.status in SeatStatus.HOLDING and s.account_id:
            used[s.account_id] += 1
    return dict(used)


def effective_max_slot(account: Account, product: Product | None = None) -> int:
    if account.mode in (SeatMode.PRIVATE, SeatMode.HEAD):
        return 1
    if product is not None and product.sharing_max_slot:
        return int(product.sharing_max_slot)
    if account.max_slot and account.max_slot > 0:
        return int(account.max_slot)
    return 1


def free_slots(account: Account, used: dict[str, int], product: Product | None = None) -> int:
    return max(0, effective_max_slot(account, product) - used.get(account.account_id, 0))
