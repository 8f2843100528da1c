from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from seatbot.core.time import Clock, utcnow
from seatbot.domain import OrderStatus, SeatStatus
from seatbot.repo import SheetRepo
from seatbot.services.capacity import count_used_slots, effective_max_slot
from seatbot.services.lookup import load_accounts, load_orders, load_seats

PERIODS = ("day", "week", "month", "all")


@dataclass
class StockLine:
    platform: str
    mode: str
    accounts: int = 0
    used_slots: int = 0
    free_slots: int = 0
    full_accounts: int = 0
    released_seats: int = 0


@dataclass
class SalesSummary:
    period: str
    since: datetime | None
    total: int = 0
    active: int = 0
    pending: int = 0
    cancelled: int = 0
    replaced: int = 0
    by_product: list[tuple[str, int]] = field(default_factory=list)
    by_channel: list[tuple[str, int]] = field(default_factory=list)


def period_start(period: str, now: datetime) -> datetime | None:
    if period == "day":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now - timedelta(days=30)
    if period == "all":
        return None
    raise ValueError(f"Unknown report period: {period}")


class ReportService:
    def __init__(self, repo: SheetRepo, *, clock: Clock = utcnow) -> None:
        self._repo = repo
        self._clock = clock

    async def stock_summary(self) -> list[StockLine]:
        accounts = [a for a in await load_accounts(self._repo) if a.active]
        seats = await load_seats(self._repo)
        used = count_used_slots(seats)
        by_acc = {a.account_id: a for a in accounts}

        lines: dict[tuple[str, str], StockLine] = {}

        def line_for(platform: str, mode: str) -> StockLine:
            key = (platform or "-", mode or "-")
            if key not in lines:
                lines[key] = StockLine(platform=key[0], mode=key[1])
            return lines[key]

        for acc in accounts:
            line = line_for(acc.platform, acc.mode)
            cap = effective_max_slot(acc)
            n = used.get(acc.account_id, 0)
            line.accounts += 1
            line.used_slots += n
            if n >= cap:
                line.full_accounts += 1
            else:
                line.free_slots += cap - n

        for s in seats:
            if s.status != SeatStatus.RELEASED:
                continue
            acc = by_acc.get(s.account_id)
            if acc is not None:
                line_for(acc.platform, acc.mode).released_seats += 1

        return sorted(lines.values(), key=lambda x: (x.platform.lower(), x.mode))

    async def sales_summary(self, period: str = "day") -> SalesSummary:
        since = period_start(period, self._clock())
        orders = [
            o for o in await load_orders(self._repo)
            if since is None or (o.created_at is not None and o.created_at >= since)
        ]
        summary = SalesSummary(period=period, since=since, total=len(orders))
        status = Counter(o.status for o in orders)
        summary.active = status.get(OrderStatus.ACTIVE, 0)
        summary.pending = status.get(OrderStatus.PENDING_SEND, 0)
        summary.cancelled = status.get(OrderStatus.CANCELLED, 0)

        in_window = {o.order_id for o in orders}
        summary.replaced = sum(
            1 for s in await load_seats(self._repo)
            if s.status == SeatStatus.PROBLEM and s.order_id in in_window
        )
        summary.by_product = Counter(o.product_id or "UNKNOWN" for o in orders).most_common()
        summary.by_channel = Counter(o.channel or "UNKNOWN" for o in orders).most_common()
        return summary
