from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from seatbot.core.time import Clock, to_iso, utcnow
from seatbot.domain import ACCOUNTS, Product, SeatMode
from seatbot.repo import SheetRepo
from seatbot.services.audit import AuditLog
from seatbot.services.lookup import load_accounts

log = logging.getLogger(__name__)

FINISH_WORDS = ("/selesai", "selesai")


@dataclass(frozen=True)
class RestockLine:
    email: str
    password: str = ""
    profile: str = ""
    pin: str = ""

    @property
    def identity(self) -> str:
        return self.email.strip().lower()


@dataclass
class NewAccount:
    platform: str
    mode: str
    email: str
    password: str = ""
    profile: str = ""
    pin: str = ""
    max_slot: int = 1
    status: str = "active"
    expired_at: str = ""


@dataclass
class RestockPlan:
    product: Product
    accepted: list[RestockLine] = field(default_factory=list)
    input_count: int = 0
    skipped_duplicates: int = 0


@dataclass
class RestockResult:
    created: list[str] = field(default_factory=list)
    # identities that showed up between preview and confirm
    skipped_race: int = 0


def parse_lines(text: str) -> list[RestockLine]:
    """One account per line: `email`, `email|password` or `email|password|profile|pin`."""
    out: list[RestockLine] = []
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line:
            continue
        parts = [p.strip() for p in line.split("|")]
        if not parts[0]:
            continue
        parts += [""] * (4 - len(parts))
        out.append(RestockLine(email=parts[0], password=parts[1], profile=parts[2], pin=parts[3]))
    return out


def is_finish_word(text: str) -> bool:
    return (text or "").strip().lower() in FINISH_WORDS


class RestockService:
    def __init__(self, repo: SheetRepo, audit: AuditLog, *, clock: Clock = utcnow) -> None:
        self._repo = repo
        self._audit = audit
        self._clock = clock

    async def list_account_identities(self, platform: str, seat_mode: str | None = None) -> set[str]:
        want_platform = (platform or "").strip().lower()
        want_mode = (seat_mode or "").strip().upper()
        out: set[str] = set()
        for acc in await load_accounts(self._repo):
            if acc.platform.lower() != want_platform or not acc.email:
                continue
            if want_mode and acc.mode != want_mode:
                continue
            out.add(acc.email.lower())
        return out

    async def prepare(self, product: Product, lines: list[RestockLine]) -> RestockPlan:
        existing = await self.list_account_identities(product.platform)
        plan = RestockPlan(product=product, input_count=len(lines))
        seen: set[str] = set()
        for line in lines:
            if line.identity in seen or line.identity in existing:
                plan.skipped_duplicates += 1
                continue
            seen.add(line.identity)
            plan.accepted.append(line)
        return plan

    async def restock_accounts(self, accounts: list[NewAccount], *, actor: str) -> list[str]:
        """Append one ACCOUNTS row per entry. Callers dedupe beforehand."""
        if not accounts:
            return []
        headers = (await self._repo.read(ACCOUNTS)).headers
        created: list[str] = []
        for acc in accounts:
            account_id = f"ACC-{uuid.uuid4()}"
            await self._repo.append(
                ACCOUNTS,
                {
                    "account_id": account_id,
                    "platform": acc.platform,
                    "mode": acc.mode,
                    "account_kind": acc.mode,
                    "email": acc.email,
                    "password": acc.password,
                    "profile": acc.profile,
                    "pin": acc.pin,
                    "max_slot": int(acc.max_slot or 1),
                    "status": acc.status or "active",
                    "expired_at": acc.expired_at,
                    "created_at": to_iso(self._clock()),
                },
                headers=headers,
            )
            await self._audit.record("ACCOUNT_RESTOCK", actor, account_id, f"{acc.platform} {acc.mode}")
            created.append(account_id)
        log.info("accounts_restocked count=%s", len(created))
        return created

    async def confirm(self, plan: RestockPlan, *, actor: str) -> RestockResult:
        product = plan.product
        # re-check right before writing; another operator may have restocked meanwhile
        existing = await self.list_account_identities(product.platform)
        fresh = [line for line in plan.accepted if line.identity not in existing]
        result = RestockResult(skipped_race=len(plan.accepted) - len(fresh))
        if result.skipped_race:
            log.warning(
                "restock_race_skipped product_id=%s skipped=%s",
                product.product_id, result.skipped_race,
            )

        max_slot = (product.sharing_max_slot or 1) if product.seat_mode == SeatMode.SHARING else 1
        accounts = [
            NewAccount(
                platform=product.platform,
                mode=product.seat_mode,
                email=line.email,
                password=line.password,
                profile=line.profile,
                pin=line.pin,
                max_slot=max_slot,
            )
            for line in fresh
        ]
        result.created = await self.restock_accounts(accounts, actor=actor)
        return result
