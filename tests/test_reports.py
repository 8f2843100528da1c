import asyncio
from datetime import datetime, timezone

import pytest

from conftest import FIXED_NOW
from seatbot.services.reports import period_start


def test_period_start_windows():
    assert period_start("day", FIXED_NOW) == datetime(2026, 10, 19, tzinfo=timezone.utc)
    assert period_start("week", FIXED_NOW) == datetime(2026, 10, 12, 5, tzinfo=timezone.utc)
    assert period_start("month", FIXED_NOW) == datetime(2026, 9, 19, 5, tzinfo=timezone.utc)
    assert period_start("all", FIXED_NOW) is None
    with pytest.raises(ValueError):
        period_start("year", FIXED_NOW)


def test_stock_summary_groups_by_platform_and_mode(services, seed):
    seed.account("A1", max_slot="2")
    seed.account("A2", max_slot="2")
    seed.account("P1", mode="PRIVATE")
    seed.account("OFF", status="disabled")
    seed.account("S1", platform="Spotify", mode="PRIVATE")
    seed.seat("X1", "A1", "O1")
    seed.seat("X2", "A1", "O2", status="RESERVED")
    seed.seat("X3", "A2", "O3", status="RELEASED")
    seed.seat("X4", "P1", "O4")

    lines = asyncio.run(services.reports.stock_summary())
    by_key = {(line.platform, line.mode): line for line in lines}

    assert [(line.platform, line.mode) for line in lines] == [
        ("Netflix", "PRIVATE"), ("Netflix", "SHARING"), ("Spotify", "PRIVATE"),
    ]
    sharing = by_key[("Netflix", "SHARING")]
    assert (sharing.accounts, sharing.used_slots, sharing.free_slots, sharing.full_accounts) == (2, 2, 2, 1)
    assert sharing.released_seats == 1
    private = by_key[("Netflix", "PRIVATE")]
    assert (private.accounts, private.full_accounts, private.free_slots) == (1, 1, 0)
    assert by_key[("Spotify", "PRIVATE")].free_slots == 1


def test_sales_summary_counts_window(services, seed):
    seed.order("O1", status="ACTIVE", created_at="2026-10-19T02:00:00.000Z")
    seed.order("O2", status="PENDING_SEND", created_at="2026-10-19T04:00:00.000Z", channel="Website")
    seed.order("O3", status="CANCELLED", created_at="2026-10-15T04:00:00.000Z")
    seed.order("O4", status="ACTIVE", created_at="2026-08-01T04:00:00.000Z", product_id="NF-PV-30")
    seed.order("O5", status="ACTIVE", created_at="")
    seed.seat("S1", "A1", "O1", status="PROBLEM")
    seed.seat("S2", "A1", "O1")

    day = asyncio.run(services.reports.sales_summary("day"))
    assert (day.total, day.active, day.pending, day.cancelled, day.replaced) == (2, 1, 1, 0, 1)
    assert dict(day.by_channel) == {"Shopee": 1, "Website": 1}

    week = asyncio.run(services.reports.sales_summary("week"))
    assert (week.total, week.cancelled) == (3, 1)

    everything = asyncio.run(services.reports.sales_summary("all"))
    assert everything.total == 5
    assert everything.by_product[0] == ("NF-SH-30", 4)
