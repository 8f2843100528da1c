from __future__ import annotations

import logging
from dataclasses import dataclass

from seatbot.core.time import Clock, utcnow
from seatbot.domain import DEFAULT_HEADERS
from seatbot.repo import SheetRepo
from seatbot.services.admins import AdminService
from seatbot.services.audit import AuditLog
from seatbot.services.catalog import CatalogService
from seatbot.services.orders import OrderService
from seatbot.services.reports import ReportService
from seatbot.services.restock import RestockService
from seatbot.services.seats.allocator import SeatAllocator
from seatbot.services.seats.lifecycle import SeatLifecycle
from seatbot.store.base import TableStore

log = logging.getLogger(__name__)


@dataclass
class Services:
    store: TableStore
    repo: SheetRepo
    audit: AuditLog
    catalog: CatalogService
    allocator: SeatAllocator
    lifecycle: SeatLifecycle
    orders: OrderService
    restock: RestockService
    admins: AdminService
    reports: ReportService


def build_services(store: TableStore, *, owner_username: str = "", clock: Clock = utcnow) -> Services:
    repo = SheetRepo(store)
    audit = AuditLog(repo, clock=clock)
    catalog = CatalogService(repo)
    allocator = SeatAllocator(repo, catalog, audit, clock=clock)
    return Services(
        store=store,
        repo=repo,
        audit=audit,
        catalog=catalog,
        allocator=allocator,
        lifecycle=SeatLifecycle(repo, catalog, allocator, audit, clock=clock),
        orders=OrderService(repo, catalog, allocator, audit, clock=clock),
        restock=RestockService(repo, audit, clock=clock),
        admins=AdminService(repo, owner_username=owner_username),
        reports=ReportService(repo, clock=clock),
    )


async def ensure_tables(store: TableStore) -> None:
    """Create missing tables and header columns. Existing rows are untouched."""
    for name, headers in DEFAULT_HEADERS.items():
        await store.ensure_table(name, headers)
    log.info("tables_ensured count=%s", len(DEFAULT_HEADERS))
