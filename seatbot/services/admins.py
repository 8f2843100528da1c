from __future__ import annotations

import logging

from seatbot.core.errors import AccessDenied, NotFound
from seatbot.domain import ADMIN_USERS, AdminRole, AdminUser, is_active_flag
from seatbot.repo import SheetRepo

log = logging.getLogger(__name__)


def _norm(username: str | None) -> str:
    return (username or "").strip().lstrip("@").lower()


class AdminService:
    def __init__(self, repo: SheetRepo, *, owner_username: str = "") -> None:
        self._repo = repo
        self._owner = _norm(owner_username)

    async def ensure_active(self, username: str | None) -> AdminUser:
        name = _norm(username)
        if not name:
            raise AccessDenied("Akun Telegram kamu belum punya username")

        try:
            table = await self._repo.read(ADMIN_USERS)
            rec = next((r for r in table if _norm(r.text("telegram_username")) == name), None)
            if rec is None:
                raise NotFound(f"Admin @{name} tidak terdaftar")
            if not is_active_flag(rec.get("status")):
                raise AccessDenied(f"Admin @{name} tidak aktif")
            role = rec.text("role").upper() or AdminRole.ADMIN
            if role not in (AdminRole.OWNER, AdminRole.ADMIN):
                role = AdminRole.ADMIN
            return AdminUser(username=name, role=role, status="ACTIVE")
        except Exception:
            # the configured owner gets in even if ADMIN_USERS is broken or missing them
            if self._owner and name == self._owner:
                log.warning("admin_owner_fallback username=%s", name)
                return AdminUser(username=name, role=AdminRole.OWNER, status="ACTIVE")
            raise

    @staticmethod
    def is_owner(admin: AdminUser) -> bool:
        return admin.role == AdminRole.OWNER
