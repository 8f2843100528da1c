from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from seatbot.bot.keyboards import kb_back_home, kb_home
from seatbot.bot.ui import HOME_TEXT, safe_edit
from seatbot.domain import AdminUser

router = Router()


@router.message(CommandStart())
@router.message(Command("menu"))
async def cmd_start(message: Message, state: FSMContext, admin: AdminUser) -> None:
    await state.clear()
    await message.answer(HOME_TEXT, reply_markup=kb_home(is_owner=admin.is_owner), parse_mode="HTML")


@router.message(Command("batal"))
async def cmd_cancel(message: Message, state: FSMContext, admin: AdminUser) -> None:
    await state.clear()
    await message.answer("Dibatalkan.\n\n" + HOME_TEXT, reply_markup=kb_home(is_owner=admin.is_owner), parse_mode="HTML")


@router.callback_query(F.data == "nav:home")
async def nav_home(cb: CallbackQuery, state: FSMContext, admin: AdminUser) -> None:
    await state.clear()
    await safe_edit(cb, HOME_TEXT, kb_home(is_owner=admin.is_owner))
    await cb.answer()


@router.callback_query(F.data == "nav:settings")
async def nav_settings(cb: CallbackQuery, admin: AdminUser) -> None:
    if not admin.is_owner:
        await cb.answer("Khusus owner", show_alert=True)
        return
    await safe_edit(
        cb,
        "⚙️ <b>Pengaturan</b>\n\n"
        "Produk, admin dan akun dikelola langsung di tabel "
        "PRODUCTS, ADMIN_USERS dan ACCOUNTS.",
        kb_back_home(),
    )
    await cb.answer()


# included last: catches buttons whose wizard state already expired
fallback_router = Router()


@fallback_router.callback_query()
async def stale_callback(cb: CallbackQuery) -> None:
    await cb.answer("Sesi sudah berakhir. Mulai lagi dari /menu.", show_alert=True)
