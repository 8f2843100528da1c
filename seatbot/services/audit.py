from __future__ import annotations

import logging

from seatbot.core.time import Clock, to_iso, utcnow
from seatbot.domain import LOGS
from seatbot.repo import SheetRepo

log = logging.getLogger(__name__)


class AuditLog:
    """Append-only action trail in LOGS. Never raises."""

    def __init__(self, repo: SheetRepo, *, clock: Clock = utcnow) -> None:
        self._repo = repo
        self._clock = clock

    async def record(self, action: str, actor: str, ref_id: str, note: str = "") -> None:
        try:
            await self._repo.append(
                LOGS,
                {
                    "timestamp": to_iso(self._clock()),
                    "action": action,
                    "actor": actor,
                    "ref_id": ref_id,
                    "note": note or "",
                },
            )
        except Exception:
            log.exception(
                "audit_write_failed action=%s ref_id=%s",
                action,
                ref_id,
                extra={"actor": actor, "ref_id": ref_id},
            )
