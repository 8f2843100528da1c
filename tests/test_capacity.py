from seatbot.domain import Account, Product, Seat
from seatbot.services.capacity import count_used_slots, effective_max_slot, free_slots


def _account(mode: str, max_slot=None, account_id: str = "A1") -> Account:
    return Account(
        account_id=account_id, platform="Netflix", mode=mode, account_kind=mode,
        email="a@x", password="", profile="", pin="", max_slot=max_slot, active=True,
    )


def _product(sharing_max_slot=None) -> Product:
    return Product(
        product_id="P", product_name="P", platform="Netflix", seat_mode="SHARING",
        fulfillment_type="LOGIN", duration_days=30, sharing_max_slot=sharing_max_slot,
        fallback_policy="STRICT", active=True,
    )


def _seat(account_id: str, status: str) -> Seat:
    return Seat(
        seat_id=f"S-{account_id}-{status}", account_id=account_id, order_id="O", product_id="P",
        buyer_id="b", buyer_email="e", start_date=None, end_date=None, status=status,
        released_at=None, seat_mode="SHARING", invite_email="", invite_status="",
    )


def test_count_used_slots_only_counts_holding_statuses():
    seats = [
        _seat("A1", "ACTIVE"),
        _seat("A1", "RESERVED"),
        _seat("A1", "PENDING_CONFIRM"),
        _seat("A1", "RELEASED"),
        _seat("A1", "PROBLEM"),
        _seat("A2", "RELEASED"),
        _seat("", "ACTIVE"),
    ]
    assert count_used_slots(seats) == {"A1": 3}


def test_private_and_head_accounts_hold_one_seat():
    assert effective_max_slot(_account("PRIVATE", max_slot=5), _product(4)) == 1
    assert effective_max_slot(_account("HEAD", max_slot=5)) == 1


def test_sharing_capacity_prefers_product_then_account():
    acc = _account("SHARING", max_slot=3)
    assert effective_max_slot(acc, _product(5)) == 5
    assert effective_max_slot(acc, _product(None)) == 3
    assert effective_max_slot(acc) == 3
    assert effective_max_slot(_account("SHARING", max_slot=None)) == 1
    assert effective_max_slot(_account("SHARING", max_slot=0)) == 1


def test_free_slots_never_negative():
    acc = _account("SHARING", max_slot=2)
    assert free_slots(acc, {"A1": 1}) == 1
    assert free_slots(acc, {"A1": 4}) == 0
    assert free_slots(acc, {}) == 2
