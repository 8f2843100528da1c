import logging

from aiogram import Bot, Dispatcher

from seatbot.bot.handlers.expiring import router as expiring_router
from seatbot.bot.handlers.menu import fallback_router
from seatbot.bot.handlers.menu import router as menu_router
from seatbot.bot.handlers.orders import router as orders_router
from seatbot.bot.handlers.problems import router as problems_router
from seatbot.bot.handlers.reports import router as reports_router
from seatbot.bot.handlers.restock import router as restock_router
from seatbot.bot.middlewares import AdminAccessMiddleware, CorrelationIdMiddleware, RateLimitMiddleware
from seatbot.bot.storage import TtlMemoryStorage
from seatbot.core.config import Settings
from seatbot.services.container import Services

log = logging.getLogger(__name__)


def build_dispatcher(services: Services, settings: Settings) -> Dispatcher:
    storage = TtlMemoryStorage(ttl_seconds=settings.conversation_ttl_seconds)
    dp = Dispatcher(storage=storage)
    dp["services"] = services
    dp["settings"] = settings

    dp.message.middleware(CorrelationIdMiddleware())
    dp.callback_query.middleware(CorrelationIdMiddleware())
    dp.callback_query.middleware(RateLimitMiddleware(min_interval_sec=settings.callback_min_interval_sec))
    dp.message.middleware(AdminAccessMiddleware())
    dp.callback_query.middleware(AdminAccessMiddleware())

    dp.include_router(menu_router)
    dp.include_router(orders_router)
    dp.include_router(problems_router)
    dp.include_router(expiring_router)
    dp.include_router(restock_router)
    dp.include_router(reports_router)
    dp.include_router(fallback_router)
    return dp


async def run_bot(bot: Bot, dp: Dispatcher) -> None:
    log.info("bot_start")
    await dp.start_polling(bot)
