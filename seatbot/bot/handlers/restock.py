from __future__ import annotations

import logging

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message

from seatbot.bot.callback import arg
from seatbot.bot.keyboards import kb_back_home, kb_products, kb_restock_confirm
from seatbot.bot.ui import GENERIC_ERROR, error_text, h, safe_edit
from seatbot.core.errors import SeatBotError
from seatbot.domain import AdminUser
from seatbot.services.container import Services
from seatbot.services.restock import RestockLine, RestockPlan, is_finish_word, parse_lines

log = logging.getLogger(__name__)

router = Router()

RESTOCK_PROMPT = (
    "Masukkan daftar akun (1 baris = 1 akun)\n\n"
    "Bebas format:\n"
    "- email\n"
    "- email|password\n"
    "- email|password|profile|pin\n\n"
    "Contoh:\n"
    "<code>akun1@gmail.com|pass</code>\n"
    "<code>akun2@gmail.com</code>\n\n"
    "Ketik /selesai jika sudah selesai input."
)


class RestockFSM(StatesGroup):
    lines = State()
    confirm = State()


def _dump(lines: list[RestockLine]) -> list[list[str]]:
    return [[x.email, x.password, x.profile, x.pin] for x in lines]


def _load(raw: list[list[str]]) -> list[RestockLine]:
    return [RestockLine(*(list(r) + ["", "", "", ""])[:4]) for r in raw]


@router.callback_query(F.data == "rs:start")
async def restock_start(cb: CallbackQuery, state: FSMContext, services: Services) -> None:
    await state.clear()
    products = await services.catalog.list_active_products()
    if not products:
        await safe_edit(cb, "Tidak ada produk aktif. Tambahkan di tabel PRODUCTS.", kb_back_home())
        await cb.answer()
        return
    await safe_edit(cb, "📥 Restok akun untuk produk apa?", kb_products(products, prefix="rs"))
    await cb.answer()


@router.callback_query(F.data.startswith("rs:p:"))
async def restock_pick(cb: CallbackQuery, state: FSMContext, services: Services) -> None:
    try:
        product = await services.catalog.find_product_by_id(arg(cb.data, "rs:p:"))
    except SeatBotError as e:
        await cb.answer(str(e), show_alert=True)
        return
    await state.clear()
    await state.set_state(RestockFSM.lines)
    await state.update_data(product_id=product.product_id, lines=[])
    await safe_edit(cb, f"Produk: <b>{h(product.product_name)}</b>\n\n{RESTOCK_PROMPT}", kb_back_home())
    await cb.answer()


@router.message(RestockFSM.lines, F.text)
async def restock_lines(message: Message, state: FSMContext, services: Services) -> None:
    text = message.text or ""
    data = await state.get_data()

    if not is_finish_word(text):
        parsed = parse_lines(text)
        if not parsed:
            await message.answer("Tidak ada baris yang terbaca. Ketik /selesai jika sudah selesai input.")
            return
        buffered = list(data.get("lines") or []) + _dump(parsed)
        await state.update_data(lines=buffered)
        await message.answer(f"Ditambahkan {len(parsed)} baris. Ketik /selesai jika sudah selesai input.")
        return

    buffered = _load(data.get("lines") or [])
    if not buffered:
        await message.answer("Belum ada akun yang dimasukkan.")
        return
    try:
        product = await services.catalog.find_product_by_id(str(data.get("product_id") or ""))
        plan = await services.restock.prepare(product, buffered)
    except SeatBotError as e:
        await state.clear()
        await message.answer(error_text(e), reply_markup=kb_back_home(), parse_mode="HTML")
        return

    await state.update_data(lines=_dump(plan.accepted))
    await state.set_state(RestockFSM.confirm)
    await message.answer(
        "📥 <b>Ringkasan Restok</b>\n\n"
        f"Produk: {h(product.product_name)}\n"
        f"Total input: {plan.input_count}\n"
        f"Duplikat dilewati: {plan.skipped_duplicates}\n"
        f"Akan ditambahkan: {len(plan.accepted)}\n\n"
        "⚠️ Data tidak bisa dibatalkan",
        reply_markup=kb_restock_confirm(),
        parse_mode="HTML",
    )


@router.callback_query(RestockFSM.confirm, F.data == "rs:ok")
async def restock_confirm(cb: CallbackQuery, state: FSMContext, services: Services, admin: AdminUser) -> None:
    data = await state.get_data()
    await state.clear()
    accepted = _load(data.get("lines") or [])
    if not accepted:
        await cb.answer("Tidak ada data restok", show_alert=True)
        return
    try:
        product = await services.catalog.find_product_by_id(str(data.get("product_id") or ""))
        res = await services.restock.confirm(
            RestockPlan(product=product, accepted=accepted, input_count=len(accepted)),
            actor=admin.username,
        )
    except SeatBotError as e:
        await safe_edit(cb, error_text(e), kb_back_home())
        await cb.answer()
        return
    except Exception:
        log.exception("restock_confirm_failed actor=%s", admin.username)
        await cb.answer(GENERIC_ERROR, show_alert=True)
        return

    text = f"✅ Stok berhasil ditambahkan\nAkun dibuat: {len(res.created)}"
    if res.skipped_race:
        text += f"\nDilewati (sudah ditambahkan admin lain): {res.skipped_race}"
    await safe_edit(cb, text, kb_back_home())
    await cb.answer()


@router.callback_query(F.data == "rs:no")
async def restock_cancel(cb: CallbackQuery, state: FSMContext) -> None:
    await state.clear()
    await safe_edit(cb, "Restok dibatalkan.", kb_back_home())
    await cb.answer()
