from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

from aiogram import Bot

from seatbot.bot.handlers.expiring import expiring_text
from seatbot.bot.keyboards import kb_renew
from seatbot.bot.storage import TtlMemoryStorage
from seatbot.core.config import Settings
from seatbot.services.container import Services

log = logging.getLogger(__name__)

# how often scheduler loops
SLEEP_SECONDS = 60


class DailyExpiryReminder:
    """Runs the expiring-today sweep once per local day at the configured hour
    and posts renew/skip buttons to the alert chat.

    The last-sent date lives in memory; a restart after the hour re-runs the
    sweep, which then finds no newly expiring ACTIVE seats.
    """

    def __init__(self, services: Services, settings: Settings) -> None:
        self._services = services
        self._settings = settings
        self._tz = ZoneInfo(settings.reminder_tz)
        self.last_run: date | None = None

    def local_now(self) -> datetime:
        return datetime.now(self._tz)

    def due(self, now_local: datetime) -> bool:
        if now_local.hour < self._settings.daily_reminder_hour:
            return False
        return self.last_run != now_local.date()

    async def run_once(self, bot: Bot) -> int:
        seats = await self._services.lifecycle.list_expiring_today()
        chat_id = self._settings.alert_chat_id
        if not seats:
            log.info("daily_expiry_none")
            return 0
        if chat_id is None:
            log.warning("daily_expiry_no_alert_chat count=%s", len(seats))
            return len(seats)

        sent = 0
        for s in seats:
            try:
                await bot.send_message(chat_id, expiring_text(s), reply_markup=kb_renew(s.seat_id), parse_mode="HTML")
                sent += 1
            except Exception:
                log.exception("daily_expiry_send_failed seat_id=%s", s.seat_id)
        log.info("daily_expiry_sent count=%s sent=%s", len(seats), sent)
        return len(seats)

    async def tick(self, bot: Bot) -> None:
        now_local = self.local_now()
        if not self.due(now_local):
            return
        await self.run_once(bot)
        self.last_run = now_local.date()


async def run_scheduler(
    bot: Bot,
    services: Services,
    settings: Settings,
    *,
    storage: TtlMemoryStorage | None = None,
) -> None:
    """Scheduler loop. Jobs:
    - daily expiring-today sweep + alert chat reminder
    - drop expired wizard conversations
    """
    reminder = DailyExpiryReminder(services, settings)
    log.info("scheduler_start hour=%s tz=%s", settings.daily_reminder_hour, settings.reminder_tz)

    while True:
        try:
            await reminder.tick(bot)
            if storage is not None:
                dropped = storage.sweep()
                if dropped:
                    log.info("fsm_sweep dropped=%s", dropped)
        except Exception:
            log.exception("scheduler_loop_error")

        await asyncio.sleep(SLEEP_SECONDS)
