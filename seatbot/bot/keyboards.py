from __future__ import annotations

import logging

from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from seatbot.bot.callback import pack
from seatbot.domain import Product, Seat
from seatbot.services.orders import CHANNELS, OrderSummary

log = logging.getLogger(__name__)

DURATION_CHOICES = (7, 30, 90, 180, 365)


def kb_home(*, is_owner: bool = False) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="🛒 Order Baru", callback_data="ord:new")
    b.button(text="📋 Order Aktif", callback_data="ord:list")
    b.button(text="🔄 Ganti Akun (Problem)", callback_data="prob:list")
    b.button(text="⏰ Expiring Hari Ini", callback_data="exp:today")
    b.button(text="📥 Restok Akun", callback_data="rs:start")
    b.button(text="📊 Laporan", callback_data="rep:menu")
    if is_owner:
        b.button(text="⚙️ Pengaturan", callback_data="nav:settings")
    b.adjust(1)
    return b.as_markup()


def kb_back_home() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="⬅️ Kembali", callback_data="nav:home")
    b.adjust(1)
    return b.as_markup()


def kb_channels() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for ch in CHANNELS:
        b.button(text=ch, callback_data=pack("ord", "ch", ch))
    b.button(text="⬅️ Kembali", callback_data="nav:home")
    b.adjust(1)
    return b.as_markup()


def kb_products(products: list[Product], *, prefix: str) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for p in products:
        try:
            data = pack(prefix, "p", p.product_id)
        except ValueError:
            log.warning("product_id_too_long product_id=%s", p.product_id)
            continue
        b.button(text=p.label, callback_data=data)
    b.button(text="⬅️ Kembali", callback_data="nav:home")
    b.adjust(1)
    return b.as_markup()


def kb_durations(default_days: int) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for d in DURATION_CHOICES:
        mark = " ✅" if d == default_days else ""
        b.button(text=f"{d} hari{mark}", callback_data=pack("ord", "d", d))
    if default_days and default_days not in DURATION_CHOICES:
        b.button(text=f"{default_days} hari ✅", callback_data=pack("ord", "d", default_days))
    b.button(text="⬅️ Kembali", callback_data="nav:home")
    b.adjust(2)
    return b.as_markup()


def kb_order_actions(order_id: str, seat_id: str | None) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="✅ Tandai Sudah Dikirim", callback_data=pack("ord", "sent", order_id))
    if seat_id:
        b.button(text="🔄 Ganti Akun", callback_data=pack("ord", "rp", seat_id))
    b.button(text="❌ Batalkan Order", callback_data=pack("ord", "cx", order_id))
    b.button(text="⬅️ Kembali", callback_data="nav:home")
    b.adjust(2)
    return b.as_markup()


def kb_recent_orders(items: list[OrderSummary]) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for it in items:
        o = it.order
        b.button(text=f"{o.buyer_id or '-'} · {o.product_id} · {o.status}", callback_data=pack("ord", "v", o.order_id))
    b.button(text="⬅️ Kembali", callback_data="nav:home")
    b.adjust(1)
    return b.as_markup()


def kb_seat_pick(seats: list[Seat], *, orphans: list[Seat] | None = None) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for s in orphans or []:
        b.button(text=f"⚠️ Lanjutkan ganti: {s.buyer_id or s.seat_id[:13]}", callback_data=pack("ord", "rp", s.seat_id))
    for s in seats:
        b.button(text=f"{s.buyer_id or '-'} · {s.status}", callback_data=pack("ord", "rp", s.seat_id))
    b.button(text="⬅️ Kembali", callback_data="nav:home")
    b.adjust(1)
    return b.as_markup()


def kb_renew(seat_id: str) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="✅ Perpanjang", callback_data=pack("seat", "renew", seat_id))
    b.button(text="⏭ Lewati", callback_data=pack("seat", "skip", seat_id))
    b.adjust(2)
    return b.as_markup()


def kb_restock_confirm() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="✅ Konfirmasi", callback_data="rs:ok")
    b.button(text="❌ Batal", callback_data="rs:no")
    b.adjust(2)
    return b.as_markup()


def kb_reports() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="📆 Hari Ini", callback_data="rep:day")
    b.button(text="📅 Mingguan", callback_data="rep:week")
    b.button(text="📈 Bulanan", callback_data="rep:month")
    b.button(text="🗂 Semua", callback_data="rep:all")
    b.button(text="📦 Stok & Slot", callback_data="rep:stock")
    b.button(text="⬅️ Kembali", callback_data="nav:home")
    b.adjust(2)
    return b.as_markup()
