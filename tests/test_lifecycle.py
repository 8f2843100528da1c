import asyncio
import dataclasses
from datetime import date

import pytest

from conftest import FIXED_NOW, log_actions
from seatbot.core.errors import InvalidState
from seatbot.core.time import to_iso
from seatbot.domain import ORDERS, SEATS
from seatbot.services.lookup import find_seat, row_of
from seatbot.store.base import StoreError


def _seat_row(store, seat_id):
    return next(r for r in store.rows(SEATS) if r["seat_id"] == seat_id)


def _order_row(store, order_id):
    return next(r for r in store.rows(ORDERS) if r["order_id"] == order_id)


def test_mark_order_sent_activates_reserved_seat(services, seed, store):
    seed.product()
    seed.account("A1")
    seed.order("O1")
    seed.seat("S1", "A1", "O1", status="RESERVED")

    res = asyncio.run(services.lifecycle.mark_order_sent("O1", actor="alice"))

    assert res.updated_seats == ["S1"]
    assert _seat_row(store, "S1")["status"] == "ACTIVE"
    assert _order_row(store, "O1")["status"] == "ACTIVE"
    assert log_actions(store) == ["ORDER_SENT"]

    again = asyncio.run(services.lifecycle.mark_order_sent("O1", actor="alice"))
    assert again.already_sent
    assert log_actions(store) == ["ORDER_SENT"]


def test_mark_order_sent_flips_pending_invite(services, seed, store):
    seed.product("YT-HEAD", platform="YouTube", seat_mode="HEAD", fulfillment_type="INVITE")
    seed.account("H1", platform="YouTube", mode="HEAD")
    seed.order("O1", product_id="YT-HEAD")
    seed.seat("S1", "H1", "O1", product_id="YT-HEAD", status="RESERVED", seat_mode="HEAD",
              invite_email="f@mail.test", invite_status="PENDING_INVITE")

    asyncio.run(services.lifecycle.mark_order_sent("O1", actor="alice"))

    row = _seat_row(store, "S1")
    assert row["status"] == "ACTIVE"
    assert row["invite_status"] == "INVITE_SENT"


def test_mark_cancelled_order_sent_is_rejected(services, seed):
    seed.product()
    seed.order("O1", status="CANCELLED")

    with pytest.raises(InvalidState):
        asyncio.run(services.lifecycle.mark_order_sent("O1", actor="alice"))


def test_replace_seat_moves_order_to_another_account(services, seed, store):
    seed.product(sharing_max_slot="2")
    seed.account("A1")
    seed.account("A2")
    seed.order("O1", status="ACTIVE")
    seed.seat("S1", "A1", "O1")

    res = asyncio.run(services.lifecycle.replace_seat("S1", actor="alice"))

    assert res.old_seat.status == "PROBLEM"
    assert res.account.account_id == "A2"
    assert res.seat.status == "ACTIVE"
    assert res.seat.order_id == "O1"
    assert _seat_row(store, "S1")["status"] == "PROBLEM"
    assert log_actions(store) == ["SEAT_MARK_PROBLEM", "SEAT_ASSIGNED", "SEAT_REPLACED"]

    again = asyncio.run(services.lifecycle.replace_seat("S1", actor="alice"))
    assert again.already_replaced
    assert again.seat.seat_id == res.seat.seat_id
    assert len(store.rows(SEATS)) == 2


def test_orphaned_problem_seat_is_resumed(services, seed, store):
    seed.product()
    seed.account("A1")
    seed.account("A2")
    seed.order("O1", status="ACTIVE")
    seed.order("O2", status="CANCELLED")
    seed.seat("S1", "A1", "O1", status="PROBLEM")
    seed.seat("S2", "A1", "O2", status="PROBLEM")

    orphans = asyncio.run(services.lifecycle.find_orphaned_problem_seats())
    assert [s.seat_id for s in orphans] == ["S1"]

    res = asyncio.run(services.lifecycle.replace_seat("S1", actor="alice"))

    assert not res.already_replaced
    assert res.account.account_id == "A2"
    assert "SEAT_MARK_PROBLEM" not in log_actions(store)
    assert asyncio.run(services.lifecycle.find_orphaned_problem_seats()) == []


def test_replace_rejects_released_seat_and_cancelled_order(services, seed):
    seed.product()
    seed.account("A1")
    seed.order("O1", status="ACTIVE")
    seed.order("O2", status="CANCELLED")
    seed.seat("S1", "A1", "O1", status="RELEASED")
    seed.seat("S2", "A1", "O2")

    with pytest.raises(InvalidState):
        asyncio.run(services.lifecycle.replace_seat("S1", actor="alice"))
    with pytest.raises(InvalidState):
        asyncio.run(services.lifecycle.replace_seat("S2", actor="alice"))


def test_confirm_renew_extends_from_current_end(services, seed, store):
    seed.product(duration_days="30")
    seed.account("A1")
    seed.order("O1", status="ACTIVE")
    seed.seat("S1", "A1", "O1", status="PENDING_CONFIRM", end_date="2026-10-19T05:00:00.000Z")

    res = asyncio.run(services.lifecycle.confirm_renew("S1", actor="alice"))

    assert not res.already_renewed
    row = _seat_row(store, "S1")
    assert row["status"] == "ACTIVE"
    assert row["end_date"] == "2026-11-18T05:00:00.000Z"
    assert log_actions(store) == ["SEAT_RENEWED"]

    again = asyncio.run(services.lifecycle.confirm_renew("S1", actor="alice"))
    assert again.already_renewed
    assert _seat_row(store, "S1")["end_date"] == "2026-11-18T05:00:00.000Z"


def test_confirm_renew_rejects_released_seat(services, seed):
    seed.product()
    seed.order("O1", status="ACTIVE")
    seed.seat("S1", "A1", "O1", status="RELEASED")

    with pytest.raises(InvalidState):
        asyncio.run(services.lifecycle.confirm_renew("S1", actor="alice"))


def test_expiry_sweep_flags_only_active_seats_ending_today(services, seed, store):
    seed.seat("S1", "A1", "O1", end_date="2026-10-19T23:30:00.000Z")
    seed.seat("S2", "A1", "O2", end_date="2026-10-20T05:00:00.000Z")
    seed.seat("S3", "A1", "O3", status="RESERVED", end_date="2026-10-19T05:00:00.000Z")
    seed.seat("S4", "A1", "O4", end_date="")

    assert [s.seat_id for s in asyncio.run(services.lifecycle.find_expiring())] == ["S1"]
    assert _seat_row(store, "S1")["status"] == "ACTIVE"

    flagged = asyncio.run(services.lifecycle.list_expiring_today())
    assert [s.seat_id for s in flagged] == ["S1"]
    assert flagged[0].status == "PENDING_CONFIRM"

    assert asyncio.run(services.lifecycle.list_expiring_today()) == []
    pending = asyncio.run(services.lifecycle.list_pending_confirm())
    assert [s.seat_id for s in pending] == ["S1"]


def test_expiry_sweep_accepts_explicit_day(services, seed):
    seed.seat("S2", "A1", "O2", end_date="2026-10-20T05:00:00.000Z")

    found = asyncio.run(services.lifecycle.find_expiring(date(2026, 10, 20)))
    assert [s.seat_id for s in found] == ["S2"]


def test_skip_renew_releases_once(services, seed, store, clock):
    seed.seat("S1", "A1", "O1", status="PENDING_CONFIRM")

    res = asyncio.run(services.lifecycle.skip_renew("S1", actor="alice"))
    assert res.seat.status == "RELEASED"
    assert _seat_row(store, "S1")["released_at"] == to_iso(FIXED_NOW)

    clock.advance(hours=1)
    again = asyncio.run(services.lifecycle.skip_renew("S1", actor="alice"))
    assert again.already_released
    assert _seat_row(store, "S1")["released_at"] == to_iso(FIXED_NOW)
    assert log_actions(store) == ["SEAT_RELEASE"]


def test_skip_after_renew_keeps_seat_active(services, seed, store):
    seed.product()
    seed.account("A1")
    seed.order("O1", status="ACTIVE")
    seed.seat("S1", "A1", "O1", status="PENDING_CONFIRM")

    asyncio.run(services.lifecycle.confirm_renew("S1", actor="alice"))
    res = asyncio.run(services.lifecycle.skip_renew("S1", actor="bob"))

    assert res.already_renewed
    assert not res.already_released
    row = _seat_row(store, "S1")
    assert row["status"] == "ACTIVE"
    assert row["end_date"] == "2026-11-18T05:00:00.000Z"
    assert row["released_at"] == ""
    assert log_actions(store) == ["SEAT_RENEWED"]


def test_skip_on_active_seat_writes_nothing(services, seed, store):
    seed.seat("S1", "A1", "O1", status="ACTIVE")

    res = asyncio.run(services.lifecycle.skip_renew("S1", actor="alice"))

    assert res.already_renewed
    assert store.writes == []
    assert _seat_row(store, "S1")["status"] == "ACTIVE"


@pytest.mark.parametrize("status", ["RESERVED", "PROBLEM"])
def test_skip_rejects_seat_not_waiting_for_confirmation(services, seed, store, status):
    seed.seat("S1", "A1", "O1", status=status)

    with pytest.raises(InvalidState):
        asyncio.run(services.lifecycle.skip_renew("S1", actor="alice"))

    assert _seat_row(store, "S1")["status"] == status
    assert store.writes == []


def test_mark_order_sent_with_retired_product_and_stamped_dates(services, seed, store):
    seed.product(active="FALSE")
    seed.account("A1")
    seed.order("O1")
    seed.seat("S1", "A1", "O1", status="RESERVED")

    res = asyncio.run(services.lifecycle.mark_order_sent("O1", actor="alice"))

    assert res.updated_seats == ["S1"]
    row = _seat_row(store, "S1")
    assert row["status"] == "ACTIVE"
    assert row["end_date"] == "2026-10-19T05:00:00.000Z"


def test_row_of_rejects_entity_without_table_row(services, seed):
    seed.seat("S1", "A1", "O1")
    seat = asyncio.run(find_seat(services.repo, "S1"))

    assert row_of(seat) is seat.record
    with pytest.raises(StoreError):
        row_of(dataclasses.replace(seat, record=None))


def test_cancelled_order_frees_seat_for_next_buyer(services, seed, store):
    seed.product(sharing_max_slot="1")
    seed.account("A1")
    seed.order("O1", status="ACTIVE")
    seed.seat("S1", "A1", "O1")
    seed.order("O2")

    res = asyncio.run(services.lifecycle.cancel_order("O1", reason="refund", actor="alice"))
    assert res.released_seats == ["S1"]
    assert _order_row(store, "O1")["status"] == "CANCELLED"
    assert _seat_row(store, "S1")["status"] == "RELEASED"

    again = asyncio.run(services.lifecycle.cancel_order("O1", reason="refund", actor="alice"))
    assert again.already_cancelled

    assigned = asyncio.run(services.allocator.assign_seat(
        order_id="O2", product_id="NF-SH-30", buyer_id="b2", buyer_email="b2@mail.test", actor="alice",
    ))
    assert assigned.reused_released
    assert assigned.seat.seat_id == "S1"
    assert _seat_row(store, "S1")["order_id"] == "O2"


def test_problem_candidates_newest_first(services, seed):
    seed.seat("S1", "A1", "O1")
    seed.seat("S2", "A1", "O2", status="RELEASED")
    seed.seat("S3", "A1", "O3", status="RESERVED")
    seed.seat("S4", "A1", "O4", status="PENDING_CONFIRM")

    got = asyncio.run(services.lifecycle.list_problem_candidates(limit=2))
    assert [s.seat_id for s in got] == ["S4", "S3"]
