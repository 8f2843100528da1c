from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject, Update

from seatbot.core.errors import SeatBotError

log = logging.getLogger(__name__)


class CorrelationIdMiddleware(BaseMiddleware):
    """Adds corr_id to logger records via extra in handler calls."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        update: Update | None = data.get("event_update")
        if update:
            data["corr_id"] = f"u{update.update_id}"
            data["update_id"] = update.update_id
        return await handler(event, data)


class RateLimitMiddleware(BaseMiddleware):
    """Drops repeated taps on the same button inside `min_interval_sec`."""

    def __init__(self, min_interval_sec: float = 0.4, *, clock: Callable[[], float] = time.monotonic):
        self.min_interval_sec = min_interval_sec
        self._clock = clock
        self._last: dict[tuple[int, str], float] = {}

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        # only for callback queries
        cb = getattr(event, "data", None)
        from_user = getattr(event, "from_user", None)
        if cb and from_user:
            key = (from_user.id, cb)
            now = self._clock()
            last = self._last.get(key)
            if last and (now - last) < self.min_interval_sec:
                return None
            self._last[key] = now
            if len(self._last) > 5000:
                cutoff = now - max(self.min_interval_sec, 1.0)
                self._last = {k: v for k, v in self._last.items() if v >= cutoff}
        return await handler(event, data)


class AdminAccessMiddleware(BaseMiddleware):
    """Resolves the caller to an active admin and injects it as `admin`."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        from_user = getattr(event, "from_user", None)
        services = data.get("services")
        if from_user is None or services is None:
            return None

        try:
            admin = await services.admins.ensure_active(from_user.username)
        except SeatBotError as e:
            log.info("admin_access_denied tg_id=%s username=%s reason=%s", from_user.id, from_user.username, e)
            await _deny(event, str(e))
            return None
        except Exception:
            log.exception("admin_lookup_failed tg_id=%s", from_user.id)
            await _deny(event, "Gagal cek akses admin, coba lagi nanti.")
            return None

        data["admin"] = admin
        return await handler(event, data)


async def _deny(event: TelegramObject, reason: str) -> None:
    try:
        if isinstance(event, CallbackQuery):
            await event.answer("⛔ Akses ditolak", show_alert=True)
        elif isinstance(event, Message):
            await event.answer(f"⛔ Akses ditolak\n{reason}")
    except Exception:
        log.exception("admin_deny_reply_failed")
