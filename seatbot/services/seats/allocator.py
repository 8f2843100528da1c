from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from seatbot.core.errors import InvalidState, NeedNewAccount
from seatbot.core.time import EPOCH, Clock, add_days, to_iso, utcnow
from seatbot.domain import (ACCOUNTS, SEATS, Account, FallbackPolicy, Fulfillment, InviteStatus,
                            Order, OrderStatus, Product, Seat, SeatMode, SeatStatus)
from seatbot.repo import SheetRepo
from seatbot.services.audit import AuditLog
from seatbot.services.capacity import count_used_slots, effective_max_slot
from seatbot.services.catalog import CatalogService
from seatbot.services.lookup import find_order, live_seat_for, load_accounts, row_of

log = logging.getLogger(__name__)


@dataclass
class AssignResult:
    seat: Seat
    account: Account | None
    fallback_used: bool = False
    reused_released: bool = False
    # the order already held a seat; nothing was written
    existing: bool = False


def _pick_candidates(
    product: Product,
    accounts: list[Account],
    used: dict[str, int],
    exclude: frozenset[str] = frozenset(),
) -> list[Account]:
    out: list[Account] = []
    for acc in accounts:
        if not acc.active or not acc.matches_platform(product.platform) or acc.account_id in exclude:
            continue
        n = used.get(acc.account_id, 0)
        if product.fulfillment_type == Fulfillment.INVITE:
            ok = acc.account_kind == SeatMode.HEAD and acc.mode == SeatMode.HEAD and n == 0
        elif product.seat_mode == SeatMode.SHARING:
            ok = acc.mode == SeatMode.SHARING and n < effective_max_slot(acc, product)
        else:
            ok = acc.mode == product.seat_mode and n == 0
        if ok:
            out.append(acc)
    out.sort(key=lambda a: a.position)
    return out


class SeatAllocator:
    def __init__(
        self,
        repo: SheetRepo,
        catalog: CatalogService,
        audit: AuditLog,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._repo = repo
        self._catalog = catalog
        self._audit = audit
        self._clock = clock

    async def assign_seat(
        self,
        *,
        order_id: str,
        product_id: str,
        buyer_id: str,
        buyer_email: str,
        duration_days: int | None = None,
        invite_email: str | None = None,
        actor: str = "system",
    ) -> AssignResult:
        order = await find_order(self._repo, order_id)
        if order.status != OrderStatus.PENDING_SEND:
            raise InvalidState(
                f"Seat hanya bisa di-assign saat order {order_id} berstatus {OrderStatus.PENDING_SEND} "
                f"(sekarang {order.status or '-'})"
            )
        product = await self._catalog.find_product_by_id(product_id or order.product_id)
        return await self.allocate_for_order(
            order,
            product,
            buyer_id=buyer_id,
            buyer_email=buyer_email,
            duration_days=duration_days,
            invite_email=invite_email,
            actor=actor,
        )

    async def allocate_for_order(
        self,
        order: Order,
        product: Product,
        *,
        buyer_id: str,
        buyer_email: str,
        duration_days: int | None = None,
        invite_email: str | None = None,
        actor: str = "system",
        exclude_accounts: frozenset[str] = frozenset(),
    ) -> AssignResult:
        """Find or create the seat for `order`. No order-status precondition here.

        `exclude_accounts` keeps a replacement off the account it is replacing.
        """
        seats_view = await self._repo.read(SEATS)
        seats = [Seat.from_record(r) for r in seats_view if r.text("seat_id")]
        accounts = await load_accounts(self._repo)
        by_id = {a.account_id: a for a in accounts}

        held = live_seat_for(seats, order.order_id)
        if held is not None:
            log.info("seat_assign_existing order_id=%s seat_id=%s", order.order_id, held.seat_id)
            return AssignResult(seat=held, account=by_id.get(held.account_id), existing=True)

        duration = int(duration_days if duration_days is not None else product.duration_days)
        used = count_used_slots(seats)
        login_sharing = product.fulfillment_type == Fulfillment.LOGIN and product.seat_mode == SeatMode.SHARING

        if login_sharing:
            reused = await self._reuse_released(
                seats, by_id, used, order, product,
                buyer_id=buyer_id, buyer_email=buyer_email, duration=duration, actor=actor,
                exclude=exclude_accounts,
            )
            if reused is not None:
                return reused

        candidates = _pick_candidates(product, accounts, used, exclude_accounts)
        fallback_used = False
        if (
            not candidates
            and login_sharing
            and product.fallback_policy == FallbackPolicy.PRIVATE_UNUSED_TO_SHARING
        ):
            promoted = await self._promote_private(accounts, used, product, actor=actor, exclude=exclude_accounts)
            if promoted is not None:
                candidates = [promoted]
                fallback_used = True

        if not candidates:
            log.warning(
                "seat_assign_no_capacity order_id=%s product_id=%s platform=%s mode=%s",
                order.order_id, product.product_id, product.platform, product.seat_mode,
            )
            raise NeedNewAccount(product.product_id, product.platform, product.seat_mode)

        account = candidates[0]
        now = self._clock()
        invite = product.fulfillment_type == Fulfillment.INVITE
        seat_id = f"SEAT-{uuid.uuid4()}"
        rec = await self._repo.append(
            SEATS,
            {
                "seat_id": seat_id,
                "account_id": account.account_id,
                "order_id": order.order_id,
                "product_id": product.product_id,
                "buyer_id": buyer_id,
                "buyer_email": buyer_email,
                "start_date": to_iso(now),
                "end_date": to_iso(add_days(now, duration)),
                "status": SeatStatus.RESERVED,
                "released_at": "",
                "seat_mode": product.seat_mode,
                "invite_email": (invite_email or buyer_email) if invite else "",
                "invite_status": InviteStatus.PENDING_INVITE if invite else "",
            },
            headers=seats_view.headers,
        )
        seat = Seat.from_record(rec)

        log.info(
            "seat_assigned order_id=%s seat_id=%s account_id=%s fallback=%s",
            order.order_id, seat_id, account.account_id, fallback_used,
        )
        await self._audit.record(
            "SEAT_ASSIGNED", actor, order.order_id,
            f"seat {seat_id} acc {account.account_id}" + (" fallback" if fallback_used else ""),
        )
        return AssignResult(seat=seat, account=account, fallback_used=fallback_used)

    async def _reuse_released(
        self,
        seats: list[Seat],
        by_id: dict[str, Account],
        used: dict[str, int],
        order: Order,
        product: Product,
        *,
        buyer_id: str,
        buyer_email: str,
        duration: int,
        actor: str,
        exclude: frozenset[str] = frozenset(),
    ) -> AssignResult | None:
        released: list[Seat] = []
        for s in seats:
            if s.status != SeatStatus.RELEASED:
                continue
            acc = by_id.get(s.account_id)
            if acc is None or not acc.active or acc.mode != SeatMode.SHARING or acc.account_id in exclude:
                continue
            if not acc.matches_platform(product.platform):
                continue
            if used.get(acc.account_id, 0) >= effective_max_slot(acc, product):
                continue
            released.append(s)
        if not released:
            return None

        # oldest release first, ties broken by row order
        released.sort(key=lambda s: (s.released_at or EPOCH, s.position))
        pick = released[0]

        now = self._clock()
        updates = {
            "status": SeatStatus.RESERVED,
            "order_id": order.order_id,
            "product_id": product.product_id,
            "buyer_id": buyer_id,
            "buyer_email": buyer_email,
            "start_date": to_iso(now),
            "end_date": to_iso(add_days(now, duration)),
            "released_at": "",
            "seat_mode": product.seat_mode,
            "invite_email": "",
            "invite_status": "",
        }
        await self._repo.update(SEATS, row_of(pick), updates)
        seat = Seat.from_record(row_of(pick))

        log.info(
            "seat_reused order_id=%s seat_id=%s account_id=%s",
            order.order_id, seat.seat_id, seat.account_id,
        )
        await self._audit.record("SEAT_ASSIGNED", actor, order.order_id, f"reuse seat {seat.seat_id}")
        return AssignResult(seat=seat, account=by_id.get(seat.account_id), reused_released=True)

    async def _promote_private(
        self,
        accounts: list[Account],
        used: dict[str, int],
        product: Product,
        *,
        actor: str,
        exclude: frozenset[str] = frozenset(),
    ) -> Account | None:
        for acc in sorted(accounts, key=lambda a: a.position):
            if not acc.active or acc.mode != SeatMode.PRIVATE or acc.account_id in exclude:
                continue
            if not acc.matches_platform(product.platform) or used.get(acc.account_id, 0) > 0:
                continue

            max_slot = product.sharing_max_slot or acc.max_slot or 1
            await self._repo.update(ACCOUNTS, row_of(acc), {"mode": SeatMode.SHARING, "max_slot": max_slot})
            acc.mode = SeatMode.SHARING
            acc.max_slot = max_slot

            log.warning(
                "account_promoted_to_sharing account_id=%s product_id=%s max_slot=%s",
                acc.account_id, product.product_id, max_slot,
            )
            await self._audit.record(
                "ACCOUNT_PROMOTED", actor, acc.account_id,
                f"PRIVATE -> SHARING for {product.product_id} max_slot {max_slot}",
            )
            return acc
        return None
