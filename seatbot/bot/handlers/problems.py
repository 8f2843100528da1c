from __future__ import annotations

from aiogram import F, Router
from aiogram.types import CallbackQuery

from seatbot.bot.keyboards import kb_back_home, kb_seat_pick
from seatbot.bot.ui import safe_edit
from seatbot.services.container import Services

router = Router()


@router.callback_query(F.data == "prob:list")
async def problem_list(cb: CallbackQuery, services: Services) -> None:
    orphans = await services.lifecycle.find_orphaned_problem_seats()
    seats = await services.lifecycle.list_problem_candidates(limit=15)
    if not seats and not orphans:
        await safe_edit(cb, "Tidak ada seat aktif.", kb_back_home())
        await cb.answer()
        return

    text = "🔄 <b>Ganti Akun</b>\n\nPilih seat yang bermasalah:"
    if orphans:
        text += f"\n\n⚠️ {len(orphans)} seat PROBLEM belum punya pengganti."
    await safe_edit(cb, text, kb_seat_pick(seats, orphans=orphans))
    await cb.answer()
