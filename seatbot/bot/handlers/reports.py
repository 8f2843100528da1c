from __future__ import annotations

import logging

from aiogram import F, Router
from aiogram.types import CallbackQuery

from seatbot.bot.callback import arg
from seatbot.bot.keyboards import kb_reports
from seatbot.bot.ui import safe_edit, sales_text, stock_text
from seatbot.services.container import Services
from seatbot.services.reports import PERIODS

log = logging.getLogger(__name__)

router = Router()


@router.callback_query(F.data == "rep:menu")
async def report_menu(cb: CallbackQuery) -> None:
    await safe_edit(cb, "📊 Pilih laporan", kb_reports())
    await cb.answer()


@router.callback_query(F.data == "rep:stock")
async def report_stock(cb: CallbackQuery, services: Services) -> None:
    try:
        lines = await services.reports.stock_summary()
    except Exception:
        log.exception("report_stock_failed")
        await cb.answer("Gagal ambil laporan stok", show_alert=True)
        return
    await safe_edit(cb, stock_text(lines), kb_reports())
    await cb.answer()


@router.callback_query(F.data.startswith("rep:"))
async def report_sales(cb: CallbackQuery, services: Services) -> None:
    period = arg(cb.data, "rep:")
    if period not in PERIODS:
        await cb.answer()
        return
    try:
        summary = await services.reports.sales_summary(period)
    except Exception:
        log.exception("report_sales_failed period=%s", period)
        await cb.answer("Gagal ambil laporan", show_alert=True)
        return
    await safe_edit(cb, sales_text(summary), kb_reports())
    await cb.answer()
