from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from seatbot.core.time import EPOCH, Clock, to_iso, utcnow
from seatbot.domain import ORDERS, Order, OrderStatus, Seat
from seatbot.repo import SheetRepo
from seatbot.services.audit import AuditLog
from seatbot.services.catalog import CatalogService
from seatbot.services.lookup import find_order, live_seat_for, load_orders, load_seats
from seatbot.services.seats.allocator import AssignResult, SeatAllocator

log = logging.getLogger(__name__)

CHANNELS = ("Shopee", "Website", "Telegram")


@dataclass
class OrderSummary:
    order: Order
    seat: Seat | None


class OrderService:
    def __init__(
        self,
        repo: SheetRepo,
        catalog: CatalogService,
        allocator: SeatAllocator,
        audit: AuditLog,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._repo = repo
        self._catalog = catalog
        self._allocator = allocator
        self._audit = audit
        self._clock = clock

    async def get_order(self, order_id: str) -> Order:
        return await find_order(self._repo, order_id)

    async def create_order(
        self,
        *,
        product_id: str,
        channel: str,
        buyer_id: str,
        buyer_email: str,
        actor: str,
    ) -> Order:
        product = await self._catalog.find_product_by_id(product_id)
        order_id = f"ORD-{uuid.uuid4()}"
        rec = await self._repo.append(
            ORDERS,
            {
                "order_id": order_id,
                "product_id": product.product_id,
                "platform": product.platform,
                "channel": channel,
                "buyer_id": buyer_id,
                "buyer_email": buyer_email,
                "status": OrderStatus.PENDING_SEND,
                "assigned_admin": actor,
                "created_at": to_iso(self._clock()),
            },
        )
        log.info("order_created order_id=%s product_id=%s channel=%s", order_id, product.product_id, channel)
        await self._audit.record("ORDER_CREATED", actor, order_id, f"product {product.product_id}")
        return Order.from_record(rec)

    async def create_and_assign(
        self,
        *,
        product_id: str,
        channel: str,
        buyer_id: str,
        buyer_email: str,
        actor: str,
        duration_days: int | None = None,
        invite_email: str | None = None,
    ) -> tuple[Order, AssignResult]:
        """Create the order, then allocate. A failed allocation leaves the order PENDING_SEND."""
        order = await self.create_order(
            product_id=product_id,
            channel=channel,
            buyer_id=buyer_id,
            buyer_email=buyer_email,
            actor=actor,
        )
        result = await self._allocator.assign_seat(
            order_id=order.order_id,
            product_id=product_id,
            buyer_id=buyer_id,
            buyer_email=buyer_email,
            duration_days=duration_days,
            invite_email=invite_email,
            actor=actor,
        )
        return order, result

    async def list_recent_active_orders(self, limit: int = 10) -> list[OrderSummary]:
        orders = [
            o for o in await load_orders(self._repo)
            if o.status in (OrderStatus.PENDING_SEND, OrderStatus.ACTIVE)
        ]
        orders.sort(key=lambda o: o.created_at or EPOCH, reverse=True)
        seats = await load_seats(self._repo)
        return [OrderSummary(order=o, seat=live_seat_for(seats, o.order_id)) for o in orders[:limit]]
