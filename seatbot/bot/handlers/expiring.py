from __future__ import annotations

import logging

from aiogram import F, Router
from aiogram.types import CallbackQuery

from seatbot.bot.callback import arg
from seatbot.bot.keyboards import kb_back_home, kb_renew
from seatbot.bot.ui import error_text, h, safe_edit, seat_line
from seatbot.core.errors import SeatBotError
from seatbot.core.time import fmt_date
from seatbot.domain import AdminUser, Seat
from seatbot.services.container import Services

log = logging.getLogger(__name__)

router = Router()


def expiring_text(seat: Seat) -> str:
    return (
        "⏰ <b>Seat habis hari ini</b>\n\n"
        f"Buyer: {h(seat.buyer_id or seat.buyer_email)}\n"
        f"Order: <code>{h(seat.order_id)}</code>\n"
        f"Akun: <code>{h(seat.account_id)}</code>\n"
        f"Berakhir: {fmt_date(seat.end_date)}\n\n"
        "Perpanjang?"
    )


@router.callback_query(F.data == "exp:today")
async def expiring_today(cb: CallbackQuery, services: Services) -> None:
    await services.lifecycle.list_expiring_today()
    pending = await services.lifecycle.list_pending_confirm()
    if not pending:
        await safe_edit(cb, "Tidak ada seat yang menunggu konfirmasi perpanjangan.", kb_back_home())
        await cb.answer()
        return

    await safe_edit(
        cb,
        f"⏰ <b>Menunggu konfirmasi: {len(pending)}</b>\n\n" + "\n".join(seat_line(s) for s in pending),
        kb_back_home(),
    )
    if cb.message is not None:
        for s in pending:
            await cb.message.answer(expiring_text(s), reply_markup=kb_renew(s.seat_id), parse_mode="HTML")
    await cb.answer()


@router.callback_query(F.data.startswith("seat:renew:"))
async def seat_renew(cb: CallbackQuery, services: Services, admin: AdminUser) -> None:
    seat_id = arg(cb.data, "seat:renew:")
    try:
        res = await services.lifecycle.confirm_renew(seat_id, actor=admin.username)
    except SeatBotError as e:
        await cb.answer(str(e), show_alert=True)
        return
    if res.already_renewed:
        await cb.answer("Seat ini sudah diperpanjang.", show_alert=True)
        return
    await safe_edit(
        cb,
        f"✅ Diperpanjang oleh @{h(admin.username)}\n"
        f"Buyer: {h(res.seat.buyer_id)}\nBerlaku sampai: {fmt_date(res.seat.end_date)}",
    )
    await cb.answer("Diperpanjang")


@router.callback_query(F.data.startswith("seat:skip:"))
async def seat_skip(cb: CallbackQuery, services: Services, admin: AdminUser) -> None:
    seat_id = arg(cb.data, "seat:skip:")
    try:
        res = await services.lifecycle.skip_renew(seat_id, actor=admin.username)
    except SeatBotError as e:
        if cb.message is not None:
            await cb.message.answer(error_text(e), parse_mode="HTML")
        await cb.answer()
        return
    if res.already_released:
        await cb.answer("Seat ini sudah dilewati.", show_alert=True)
        return
    if res.already_renewed:
        await cb.answer("Seat ini sudah diperpanjang.", show_alert=True)
        return
    await safe_edit(cb, f"⏭ Dilewati oleh @{h(admin.username)}\nBuyer: {h(res.seat.buyer_id)}\nSlot dilepas.")
    await cb.answer("Dilewati")
