from __future__ import annotations

import logging
import re

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message

from seatbot.bot.callback import arg
from seatbot.bot.keyboards import (kb_back_home, kb_channels, kb_durations, kb_order_actions, kb_products,
                                   kb_recent_orders)
from seatbot.bot.ui import GENERIC_ERROR, assignment_text, error_text, h, safe_edit
from seatbot.core.errors import SeatBotError
from seatbot.core.time import fmt_date
from seatbot.domain import AdminUser, Fulfillment
from seatbot.services.container import Services
from seatbot.services.orders import CHANNELS

log = logging.getLogger(__name__)

router = Router()

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class OrderFSM(StatesGroup):
    channel = State()
    product = State()
    duration = State()
    buyer = State()
    invite_email = State()


class CancelFSM(StatesGroup):
    reason = State()


def _buyer_email(buyer_id: str) -> str:
    if _EMAIL_RE.match(buyer_id):
        return buyer_id
    return f"{buyer_id.lstrip('@')}@unknown"


# ---- new order wizard --------------------------------------------------------

@router.callback_query(F.data == "ord:new")
async def order_new(cb: CallbackQuery, state: FSMContext) -> None:
    await state.clear()
    await state.set_state(OrderFSM.channel)
    await safe_edit(cb, "🛒 <b>Order Baru</b>\n\nOrder dari channel mana?", kb_channels())
    await cb.answer()


@router.callback_query(OrderFSM.channel, F.data.startswith("ord:ch:"))
async def order_channel(cb: CallbackQuery, state: FSMContext, services: Services) -> None:
    channel = arg(cb.data, "ord:ch:")
    if channel not in CHANNELS:
        await cb.answer("Channel tidak dikenal", show_alert=True)
        return
    products = await services.catalog.list_active_products()
    if not products:
        await state.clear()
        await safe_edit(cb, "Tidak ada produk aktif. Tambahkan di tabel PRODUCTS.", kb_back_home())
        await cb.answer()
        return
    await state.update_data(channel=channel)
    await state.set_state(OrderFSM.product)
    await safe_edit(cb, f"Channel: <b>{h(channel)}</b>\n\nPilih produk:", kb_products(products, prefix="ord"))
    await cb.answer()


@router.callback_query(OrderFSM.product, F.data.startswith("ord:p:"))
async def order_product(cb: CallbackQuery, state: FSMContext, services: Services) -> None:
    try:
        product = await services.catalog.find_product_by_id(arg(cb.data, "ord:p:"))
    except SeatBotError as e:
        await cb.answer(str(e), show_alert=True)
        return
    await state.update_data(product_id=product.product_id)
    await state.set_state(OrderFSM.duration)
    await safe_edit(
        cb,
        f"Produk: <b>{h(product.product_name)}</b>\nMode: {h(product.seat_mode)}\n\nPilih durasi:",
        kb_durations(product.duration_days),
    )
    await cb.answer()


@router.callback_query(OrderFSM.duration, F.data.startswith("ord:d:"))
async def order_duration(cb: CallbackQuery, state: FSMContext) -> None:
    raw = arg(cb.data, "ord:d:")
    if not raw.isdigit() or int(raw) <= 0:
        await cb.answer("Durasi tidak valid", show_alert=True)
        return
    await state.update_data(duration_days=int(raw))
    await state.set_state(OrderFSM.buyer)
    await safe_edit(cb, "Masukkan username / ID pembeli (contoh: <code>shopee_user123</code>)", kb_back_home())
    await cb.answer()


@router.message(OrderFSM.buyer, F.text)
async def order_buyer(message: Message, state: FSMContext, services: Services, admin: AdminUser) -> None:
    buyer_id = (message.text or "").strip()
    if not buyer_id or buyer_id.startswith("/"):
        await message.answer("Username pembeli kosong. Coba lagi atau /batal.")
        return
    await state.update_data(buyer_id=buyer_id)

    data = await state.get_data()
    try:
        product = await services.catalog.find_product_by_id(data.get("product_id", ""))
    except SeatBotError as e:
        await state.clear()
        await message.answer(error_text(e), reply_markup=kb_back_home(), parse_mode="HTML")
        return

    if product.fulfillment_type == Fulfillment.INVITE:
        await state.set_state(OrderFSM.invite_email)
        await message.answer("Produk ini via invite. Masukkan email tujuan invite:", reply_markup=kb_back_home())
        return

    await _create_order(message, state, services, admin, invite_email=None)


@router.message(OrderFSM.invite_email, F.text)
async def order_invite_email(message: Message, state: FSMContext, services: Services, admin: AdminUser) -> None:
    email = (message.text or "").strip()
    if not _EMAIL_RE.match(email):
        await message.answer("Format email tidak valid. Coba lagi atau /batal.")
        return
    await _create_order(message, state, services, admin, invite_email=email)


async def _create_order(
    message: Message,
    state: FSMContext,
    services: Services,
    admin: AdminUser,
    *,
    invite_email: str | None,
) -> None:
    data = await state.get_data()
    await state.clear()
    buyer_id = str(data.get("buyer_id") or "")
    try:
        order, res = await services.orders.create_and_assign(
            product_id=str(data.get("product_id") or ""),
            channel=str(data.get("channel") or "Telegram"),
            buyer_id=buyer_id,
            buyer_email=invite_email or _buyer_email(buyer_id),
            actor=admin.username,
            duration_days=data.get("duration_days"),
            invite_email=invite_email,
        )
        product = await services.catalog.find_product_by_id(order.product_id)
    except SeatBotError as e:
        await message.answer(
            "❌ Order gagal diproses.\n" + error_text(e), reply_markup=kb_back_home(), parse_mode="HTML"
        )
        return
    except Exception:
        log.exception("order_create_failed actor=%s", admin.username)
        await message.answer(GENERIC_ERROR, reply_markup=kb_back_home())
        return

    notes = []
    if res.fallback_used:
        notes.append("ℹ️ Akun private dipindah ke pool sharing (fallback).")
    if res.reused_released:
        notes.append("♻️ Memakai slot released.")
    await message.answer(
        assignment_text(
            title="✅ <b>Akun siap dikirim</b>",
            product=product,
            order=order,
            seat=res.seat,
            account=res.account,
            notes=notes,
        ),
        reply_markup=kb_order_actions(order.order_id, res.seat.seat_id),
        parse_mode="HTML",
    )


# ---- existing orders ---------------------------------------------------------

@router.callback_query(F.data == "ord:list")
async def order_list(cb: CallbackQuery, services: Services) -> None:
    items = await services.orders.list_recent_active_orders(limit=10)
    if not items:
        await safe_edit(cb, "Belum ada order aktif.", kb_back_home())
    else:
        await safe_edit(cb, "📋 <b>Order Aktif Terbaru</b>", kb_recent_orders(items))
    await cb.answer()


@router.callback_query(F.data.startswith("ord:v:"))
async def order_view(cb: CallbackQuery, services: Services) -> None:
    order_id = arg(cb.data, "ord:v:")
    items = await services.orders.list_recent_active_orders(limit=50)
    item = next((i for i in items if i.order.order_id == order_id), None)
    if item is None:
        await cb.answer("Order tidak ditemukan / sudah tidak aktif", show_alert=True)
        return
    o, seat = item.order, item.seat
    text = (
        f"🧾 <b>Order</b> <code>{h(o.order_id)}</code>\n\n"
        f"Produk: {h(o.product_id)}\n"
        f"Channel: {h(o.channel)}\n"
        f"Buyer: {h(o.buyer_id)}\n"
        f"Status: {h(o.status)}\n"
        f"Dibuat: {fmt_date(o.created_at)}\n"
    )
    if seat is not None:
        text += f"Seat: {h(seat.status)} · s/d {fmt_date(seat.end_date)}"
    await safe_edit(cb, text, kb_order_actions(o.order_id, seat.seat_id if seat else None))
    await cb.answer()


@router.callback_query(F.data.startswith("ord:sent:"))
async def order_sent(cb: CallbackQuery, services: Services, admin: AdminUser) -> None:
    order_id = arg(cb.data, "ord:sent:")
    try:
        res = await services.lifecycle.mark_order_sent(order_id, actor=admin.username)
    except SeatBotError as e:
        await cb.answer(str(e), show_alert=True)
        return
    if res.already_sent:
        await cb.answer("Order ini sudah ditandai terkirim.", show_alert=True)
        return
    await cb.answer("✅ Ditandai terkirim")
    if cb.message is not None:
        await cb.message.answer(f"✅ Order <code>{h(order_id)}</code> aktif.", parse_mode="HTML")


@router.callback_query(F.data.startswith("ord:rp:"))
async def order_replace(cb: CallbackQuery, services: Services, admin: AdminUser) -> None:
    seat_id = arg(cb.data, "ord:rp:")
    try:
        res = await services.lifecycle.replace_seat(seat_id, actor=admin.username, reason="problem")
        order = await services.orders.get_order(res.seat.order_id)
    except SeatBotError as e:
        if cb.message is not None:
            await cb.message.answer(error_text(e), reply_markup=kb_back_home(), parse_mode="HTML")
        await cb.answer()
        return
    except Exception:
        log.exception("seat_replace_failed seat_id=%s", seat_id)
        await cb.answer(GENERIC_ERROR, show_alert=True)
        return

    if res.already_replaced:
        await cb.answer("Seat ini sudah diganti sebelumnya.", show_alert=True)
    else:
        await cb.answer("🔄 Akun diganti")
    notes = ["ℹ️ Akun private dipindah ke pool sharing (fallback)."] if res.fallback_used else []
    if cb.message is not None:
        await cb.message.answer(
            assignment_text(
                title="🔄 <b>Akun pengganti</b>",
                product=None,
                order=order,
                seat=res.seat,
                account=res.account,
                notes=notes,
            ),
            reply_markup=kb_order_actions(order.order_id, res.seat.seat_id),
            parse_mode="HTML",
        )


@router.callback_query(F.data.startswith("ord:cx:"))
async def order_cancel_ask(cb: CallbackQuery, state: FSMContext) -> None:
    await state.clear()
    await state.set_state(CancelFSM.reason)
    await state.update_data(order_id=arg(cb.data, "ord:cx:"))
    await safe_edit(cb, "Tulis alasan pembatalan:", kb_back_home())
    await cb.answer()


@router.message(CancelFSM.reason, F.text)
async def order_cancel_reason(message: Message, state: FSMContext, services: Services, admin: AdminUser) -> None:
    data = await state.get_data()
    await state.clear()
    order_id = str(data.get("order_id") or "")
    reason = (message.text or "").strip() or "Tidak disebutkan"
    try:
        res = await services.lifecycle.cancel_order(order_id, reason=reason, actor=admin.username)
    except SeatBotError as e:
        await message.answer(error_text(e), reply_markup=kb_back_home(), parse_mode="HTML")
        return
    if res.already_cancelled:
        await message.answer("Order ini sudah dibatalkan sebelumnya.", reply_markup=kb_back_home())
        return
    await message.answer(
        f"Order <code>{h(order_id)}</code> dibatalkan.\nAlasan: {h(reason)}\n"
        f"Seat dilepas: {len(res.released_seats)}",
        reply_markup=kb_back_home(),
        parse_mode="HTML",
    )
