import asyncio
import logging

from aiogram import Bot

from seatbot.bot.app import build_dispatcher, run_bot
from seatbot.core.config import get_settings
from seatbot.core.logging import setup_logging
from seatbot.scheduler.worker import run_scheduler
from seatbot.services.container import build_services, ensure_tables
from seatbot.store import build_store

log = logging.getLogger(__name__)


async def main() -> None:
    setup_logging()
    settings = get_settings()

    store = build_store(settings)
    await ensure_tables(store)
    services = build_services(store, owner_username=settings.owner_username)

    bot = Bot(token=settings.bot_token)
    dp = build_dispatcher(services, settings)

    scheduler_task: asyncio.Task | None = None
    if settings.scheduler_enabled:
        scheduler_task = asyncio.create_task(run_scheduler(bot, services, settings, storage=dp.storage))

    try:
        await run_bot(bot, dp)
    finally:
        if scheduler_task is not None:
            scheduler_task.cancel()
        await store.close()
        await bot.session.close()
        if settings.store_backend == "sql":
            from seatbot.db.session import dispose_engine

            await dispose_engine()
        log.info("shutdown_done")


if __name__ == "__main__":
    asyncio.run(main())
