from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timezone
from typing import Iterable

from seatbot.core.errors import InvalidState
from seatbot.core.time import Clock, add_days, date_part, ensure_tz, to_iso, utcnow
from seatbot.domain import ORDERS, SEATS, Account, InviteStatus, OrderStatus, Seat, SeatMode, SeatStatus
from seatbot.repo import SheetRepo
from seatbot.services.audit import AuditLog
from seatbot.services.catalog import CatalogService
from seatbot.services.lookup import (find_order, find_seat, live_seat_for, load_accounts, load_orders,
                                     load_seats, row_of)
from seatbot.services.seats.allocator import SeatAllocator

log = logging.getLogger(__name__)


@dataclass
class SendResult:
    order_id: str
    updated_seats: list[str] = field(default_factory=list)
    already_sent: bool = False


@dataclass
class ReplaceResult:
    old_seat: Seat
    seat: Seat
    account: Account | None
    fallback_used: bool = False
    already_replaced: bool = False


@dataclass
class RenewResult:
    seat: Seat
    already_renewed: bool = False


@dataclass
class ReleaseResult:
    seat: Seat
    already_released: bool = False
    # skip tapped after the seat was renewed
    already_renewed: bool = False


@dataclass
class CancelResult:
    order_id: str
    released_seats: list[str] = field(default_factory=list)
    already_cancelled: bool = False


class SeatLifecycle:
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

    async def _order_duration(self, order_id: str, product_id: str = "") -> int:
        order = await find_order(self._repo, order_id)
        product = await self._catalog.find_product_by_id(product_id or order.product_id)
        return product.duration_days

    # ---- send ----------------------------------------------------------------

    async def mark_order_sent(self, order_id: str, *, actor: str) -> SendResult:
        order = await find_order(self._repo, order_id)
        if order.status == OrderStatus.CANCELLED:
            raise InvalidState(f"Order {order_id} sudah dibatalkan")

        seats = [s for s in await load_seats(self._repo) if s.order_id == order_id]
        pending = [
            s for s in seats
            if s.status == SeatStatus.RESERVED
            or (s.is_holding and s.invite_status == InviteStatus.PENDING_INVITE)
        ]
        if not pending:
            log.info("order_send_noop order_id=%s", order_id)
            return SendResult(order_id=order_id, already_sent=True)

        # looked up only when a seat still needs an end date
        product = None
        now = self._clock()
        result = SendResult(order_id=order_id)
        for s in pending:
            updates: dict[str, str] = {}
            if s.status == SeatStatus.RESERVED:
                updates["status"] = SeatStatus.ACTIVE
            if s.invite_status == InviteStatus.PENDING_INVITE:
                updates["invite_status"] = InviteStatus.INVITE_SENT
            if s.start_date is None:
                updates["start_date"] = to_iso(now)
            if s.end_date is None:
                if product is None:
                    product = await self._catalog.find_product_by_id(order.product_id)
                updates["end_date"] = to_iso(add_days(now, product.duration_days))
            await self._repo.update(SEATS, row_of(s), updates)
            result.updated_seats.append(s.seat_id)

        if order.status != OrderStatus.ACTIVE:
            await self._repo.update(ORDERS, row_of(order), {"status": OrderStatus.ACTIVE})

        log.info("order_sent order_id=%s seats=%s", order_id, len(result.updated_seats))
        await self._audit.record("ORDER_SENT", actor, order_id, ",".join(result.updated_seats))
        return result

    # ---- replace -------------------------------------------------------------

    async def replace_seat(self, seat_id: str, *, actor: str, reason: str = "problem") -> ReplaceResult:
        """Mark `seat_id` PROBLEM and allocate a successor for the same order.

        Every step is safe to repeat: a PROBLEM seat without a successor is
        picked up again by the next call, and a PROBLEM seat whose order
        already holds a live seat returns that seat with already_replaced.
        """
        old = await find_seat(self._repo, seat_id)
        order = await find_order(self._repo, old.order_id)
        if order.status == OrderStatus.CANCELLED:
            raise InvalidState(f"Order {order.order_id} sudah dibatalkan, seat tidak bisa diganti")

        if old.status == SeatStatus.PROBLEM:
            successor = live_seat_for(await load_seats(self._repo), order.order_id)
            if successor is not None:
                accounts = {a.account_id: a for a in await load_accounts(self._repo)}
                return ReplaceResult(
                    old_seat=old,
                    seat=successor,
                    account=accounts.get(successor.account_id),
                    already_replaced=True,
                )
        elif old.status == SeatStatus.RELEASED:
            raise InvalidState(f"Seat {seat_id} sudah released")
        else:
            await self._repo.update(SEATS, row_of(old), {"status": SeatStatus.PROBLEM})
            old.status = SeatStatus.PROBLEM
            log.info("seat_marked_problem seat_id=%s order_id=%s", seat_id, order.order_id)
            await self._audit.record("SEAT_MARK_PROBLEM", actor, seat_id, reason)

        product = await self._catalog.find_product_by_id(old.product_id or order.product_id)
        res = await self._allocator.allocate_for_order(
            order,
            product,
            buyer_id=old.buyer_id or order.buyer_id,
            buyer_email=old.buyer_email or order.buyer_email,
            invite_email=old.invite_email or None,
            actor=actor,
            exclude_accounts=frozenset({old.account_id}) if old.account_id else frozenset(),
        )
        seat = res.seat

        if (seat.seat_mode or product.seat_mode) != SeatMode.HEAD and seat.status == SeatStatus.RESERVED:
            now = self._clock()
            updates = {"status": SeatStatus.ACTIVE}
            if seat.start_date is None:
                updates["start_date"] = to_iso(now)
            if seat.end_date is None:
                updates["end_date"] = to_iso(add_days(now, product.duration_days))
            await self._repo.update(SEATS, row_of(seat), updates)
            seat = Seat.from_record(row_of(seat))

        log.info("seat_replaced old_seat_id=%s seat_id=%s order_id=%s", seat_id, seat.seat_id, order.order_id)
        await self._audit.record("SEAT_REPLACED", actor, order.order_id, f"old {seat_id} -> {seat.seat_id}")
        return ReplaceResult(old_seat=old, seat=seat, account=res.account, fallback_used=res.fallback_used)

    # ---- renew / skip / release ----------------------------------------------

    async def confirm_renew(self, seat_id: str, *, actor: str) -> RenewResult:
        seat = await find_seat(self._repo, seat_id)
        if seat.status == SeatStatus.ACTIVE:
            return RenewResult(seat=seat, already_renewed=True)
        if seat.status != SeatStatus.PENDING_CONFIRM:
            raise InvalidState(f"Seat {seat_id} berstatus {seat.status or '-'}, tidak bisa diperpanjang")

        duration = await self._order_duration(seat.order_id, seat.product_id)
        # extend from the current end, not from now
        base = seat.end_date or self._clock()
        new_end = add_days(base, duration)
        await self._repo.update(
            SEATS,
            row_of(seat),
            {"status": SeatStatus.ACTIVE, "end_date": to_iso(new_end), "released_at": ""},
        )
        seat = Seat.from_record(row_of(seat))

        log.info("seat_renewed seat_id=%s end_date=%s", seat_id, to_iso(new_end))
        await self._audit.record("SEAT_RENEWED", actor, seat_id, f"order {seat.order_id}")
        return RenewResult(seat=seat)

    async def skip_renew(self, seat_id: str, *, actor: str) -> ReleaseResult:
        """Release a PENDING_CONFIRM seat. Stale taps after a renew or a release write nothing."""
        seat = await find_seat(self._repo, seat_id)
        if seat.status == SeatStatus.RELEASED:
            return ReleaseResult(seat=seat, already_released=True)
        if seat.status == SeatStatus.ACTIVE:
            return ReleaseResult(seat=seat, already_renewed=True)
        if seat.status != SeatStatus.PENDING_CONFIRM:
            raise InvalidState(f"Seat {seat_id} berstatus {seat.status or '-'}, tidak bisa dilewati")
        return ReleaseResult(seat=await self._release(seat, reason="skip_renew", actor=actor))

    async def release_seat(self, seat_id: str, *, reason: str, actor: str) -> Seat:
        seat = await find_seat(self._repo, seat_id)
        return await self._release(seat, reason=reason, actor=actor)

    async def _release(self, seat: Seat, *, reason: str, actor: str) -> Seat:
        await self._repo.update(
            SEATS,
            row_of(seat),
            {"status": SeatStatus.RELEASED, "released_at": to_iso(self._clock())},
        )
        log.info("seat_released seat_id=%s reason=%s", seat.seat_id, reason)
        await self._audit.record("SEAT_RELEASE", actor, seat.seat_id, reason)
        return Seat.from_record(row_of(seat))

    # ---- expiry sweep --------------------------------------------------------

    def today(self) -> date:
        return ensure_tz(self._clock()).astimezone(timezone.utc).date()

    async def find_expiring(self, today: date | None = None) -> list[Seat]:
        """ACTIVE seats whose end_date falls on `today` (UTC). Read-only."""
        day = today or self.today()
        return [
            s for s in await load_seats(self._repo)
            if s.status == SeatStatus.ACTIVE and s.end_date is not None and date_part(s.end_date) == day
        ]

    async def mark_pending_confirm(self, seats: Iterable[Seat]) -> list[Seat]:
        out: list[Seat] = []
        for s in seats:
            if s.status != SeatStatus.ACTIVE:
                continue
            await self._repo.update(SEATS, row_of(s), {"status": SeatStatus.PENDING_CONFIRM})
            out.append(Seat.from_record(row_of(s)))
        if out:
            log.info("seats_pending_confirm count=%s", len(out))
        return out

    async def list_expiring_today(self, today: date | None = None) -> list[Seat]:
        """Sweep: flip today's expiring ACTIVE seats to PENDING_CONFIRM and return them.

        A second call on the same day returns nothing new; seats already
        flipped are no longer ACTIVE.
        """
        return await self.mark_pending_confirm(await self.find_expiring(today))

    async def list_pending_confirm(self) -> list[Seat]:
        return [s for s in await load_seats(self._repo) if s.status == SeatStatus.PENDING_CONFIRM]

    # ---- cancel --------------------------------------------------------------

    async def cancel_order(self, order_id: str, *, reason: str, actor: str) -> CancelResult:
        order = await find_order(self._repo, order_id)
        seats = [
            s for s in await load_seats(self._repo)
            if s.order_id == order_id and s.status != SeatStatus.RELEASED
        ]
        if order.status == OrderStatus.CANCELLED and not seats:
            return CancelResult(order_id=order_id, already_cancelled=True)

        if order.status != OrderStatus.CANCELLED:
            await self._repo.update(ORDERS, row_of(order), {"status": OrderStatus.CANCELLED})

        now = to_iso(self._clock())
        result = CancelResult(order_id=order_id)
        for s in seats:
            await self._repo.update(SEATS, row_of(s), {"status": SeatStatus.RELEASED, "released_at": now})
            result.released_seats.append(s.seat_id)

        log.info("order_cancelled order_id=%s released=%s", order_id, len(result.released_seats))
        await self._audit.record("ORDER_CANCELLED", actor, order_id, reason)
        return result

    # ---- anomalies -----------------------------------------------------------

    async def find_orphaned_problem_seats(self) -> list[Seat]:
        """PROBLEM seats whose live order has no successor seat."""
        seats = await load_seats(self._repo)
        orders = {o.order_id: o for o in await load_orders(self._repo)}
        out: list[Seat] = []
        for s in seats:
            if s.status != SeatStatus.PROBLEM:
                continue
            order = orders.get(s.order_id)
            if order is None or order.status == OrderStatus.CANCELLED:
                continue
            if live_seat_for(seats, s.order_id) is None:
                out.append(s)
        return out

    async def list_problem_candidates(self, limit: int = 20) -> list[Seat]:
        """Live seats an operator may flag as broken, newest first."""
        live = [s for s in await load_seats(self._repo) if s.is_holding]
        live.sort(key=lambda s: s.position, reverse=True)
        return live[:limit]
