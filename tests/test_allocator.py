import asyncio
from datetime import timedelta

import pytest

from conftest import FIXED_NOW, log_actions
from seatbot.core.errors import InvalidState, NeedNewAccount, NotFound
from seatbot.core.time import to_iso
from seatbot.domain import ACCOUNTS, SEATS


def _assign(services, order_id, product_id="NF-SH-30", **kw):
    return asyncio.run(services.allocator.assign_seat(
        order_id=order_id,
        product_id=product_id,
        buyer_id=f"buyer-{order_id}",
        buyer_email=f"{order_id}@mail.test",
        actor="alice",
        **kw,
    ))


def test_sharing_fills_accounts_in_row_order(services, seed, store):
    seed.product(sharing_max_slot="2")
    seed.account("A1")
    seed.account("A2")
    for oid in ("O1", "O2", "O3"):
        seed.order(oid)

    placed = [_assign(services, oid).account.account_id for oid in ("O1", "O2", "O3")]

    assert placed == ["A1", "A1", "A2"]
    seats = store.rows(SEATS)
    assert [s["status"] for s in seats] == ["RESERVED"] * 3
    assert all(s["seat_id"].startswith("SEAT-") for s in seats)
    assert seats[0]["start_date"] == to_iso(FIXED_NOW)
    assert seats[0]["end_date"] == to_iso(FIXED_NOW + timedelta(days=30))
    assert log_actions(store) == ["SEAT_ASSIGNED"] * 3


def test_assign_twice_returns_existing_seat_without_writes(services, seed, store):
    seed.product()
    seed.account("A1")
    seed.order("O1")

    first = _assign(services, "O1")
    writes = len(store.writes)
    second = _assign(services, "O1")

    assert second.existing
    assert second.seat.seat_id == first.seat.seat_id
    assert len(store.writes) == writes
    assert len(store.rows(SEATS)) == 1


def test_duration_override_sets_end_date(services, seed, store):
    seed.product()
    seed.account("A1")
    seed.order("O1")

    _assign(services, "O1", duration_days=7)

    assert store.rows(SEATS)[0]["end_date"] == to_iso(FIXED_NOW + timedelta(days=7))


def test_assign_requires_pending_send_order(services, seed):
    seed.product()
    seed.account("A1")
    seed.order("O1", status="ACTIVE")

    with pytest.raises(InvalidState):
        _assign(services, "O1")
    with pytest.raises(NotFound):
        _assign(services, "NOPE")


def test_strict_product_raises_need_new_account(services, seed, store):
    seed.product(sharing_max_slot="1")
    seed.account("A1")
    seed.account("P1", mode="PRIVATE")
    seed.order("O1")
    seed.order("O2")
    _assign(services, "O1")

    with pytest.raises(NeedNewAccount) as exc:
        _assign(services, "O2")

    assert exc.value.product_id == "NF-SH-30"
    assert exc.value.platform == "Netflix"
    assert store.rows(ACCOUNTS)[1]["mode"] == "PRIVATE"


def test_fallback_promotes_first_unused_private_account(services, seed, store):
    seed.product(sharing_max_slot="2", fallback_policy="FALLBACK_PRIVATE_UNUSED_TO_SHARING")
    seed.account("A1")
    seed.account("P1", mode="PRIVATE")
    seed.account("P2", mode="PRIVATE")
    seed.seat("S1", "A1", "X1")
    seed.seat("S2", "A1", "X2")
    seed.seat("S3", "P1", "X3", seat_mode="PRIVATE")
    seed.order("O1")

    res = _assign(services, "O1")

    assert res.fallback_used
    assert res.account.account_id == "P2"
    p2 = store.rows(ACCOUNTS)[2]
    assert p2["mode"] == "SHARING"
    assert p2["max_slot"] == 2
    assert log_actions(store) == ["ACCOUNT_PROMOTED", "SEAT_ASSIGNED"]


def test_released_seat_reused_oldest_first(services, seed, store):
    seed.product(sharing_max_slot="2")
    seed.account("A1")
    seed.account("A2")
    seed.seat("R1", "A1", "OLD1", status="RELEASED", released_at="2026-10-10T00:00:00.000Z")
    seed.seat("R2", "A2", "OLD2", status="RELEASED", released_at="2026-10-01T00:00:00.000Z")
    seed.order("O1")

    res = _assign(services, "O1")

    assert res.reused_released
    assert res.seat.seat_id == "R2"
    row = store.rows(SEATS)[1]
    assert row["order_id"] == "O1"
    assert row["status"] == "RESERVED"
    assert row["released_at"] == ""
    assert row["buyer_email"] == "O1@mail.test"
    assert len(store.rows(SEATS)) == 2


def test_released_seat_without_timestamp_goes_first(services, seed):
    seed.product(sharing_max_slot="2")
    seed.account("A1")
    seed.seat("R1", "A1", "OLD1", status="RELEASED", released_at="2026-10-01T00:00:00.000Z")
    seed.seat("R2", "A1", "OLD2", status="RELEASED", released_at="")
    seed.order("O1")

    assert _assign(services, "O1").seat.seat_id == "R2"


def test_released_seat_on_full_account_is_skipped(services, seed, store):
    seed.product(sharing_max_slot="1")
    seed.account("A1")
    seed.account("A2")
    seed.seat("LIVE", "A1", "X1")
    seed.seat("R1", "A1", "OLD1", status="RELEASED", released_at="2026-10-01T00:00:00.000Z")
    seed.order("O1")

    res = _assign(services, "O1")

    assert not res.reused_released
    assert res.account.account_id == "A2"
    assert len(store.rows(SEATS)) == 3


def test_private_product_needs_untouched_account(services, seed):
    seed.product("NF-PV-30", seat_mode="PRIVATE", sharing_max_slot="")
    seed.account("A1")
    seed.account("P1", mode="PRIVATE")
    seed.account("P2", mode="PRIVATE")
    seed.seat("S1", "P1", "X1", seat_mode="PRIVATE")
    seed.order("O1", product_id="NF-PV-30")

    res = _assign(services, "O1", product_id="NF-PV-30")

    assert res.account.account_id == "P2"
    assert res.seat.seat_mode == "PRIVATE"


def test_invite_product_sets_invite_fields(services, seed, store):
    seed.product("YT-HEAD", platform="YouTube", seat_mode="HEAD", fulfillment_type="INVITE", sharing_max_slot="")
    seed.account("H1", platform="YouTube", mode="HEAD")
    seed.order("O1", product_id="YT-HEAD", platform="YouTube")

    res = _assign(services, "O1", product_id="YT-HEAD", invite_email="family@mail.test")

    assert res.account.account_id == "H1"
    row = store.rows(SEATS)[0]
    assert row["invite_email"] == "family@mail.test"
    assert row["invite_status"] == "PENDING_INVITE"


def test_accounts_for_other_platforms_are_ignored(services, seed):
    seed.product()
    seed.account("SP1", platform="Spotify")
    seed.account("INACTIVE", status="disabled")
    seed.account("A1")
    seed.order("O1")

    assert _assign(services, "O1").account.account_id == "A1"
