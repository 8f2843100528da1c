from __future__ import annotations

from html import escape

from aiogram.exceptions import TelegramBadRequest
from aiogram.types import CallbackQuery, InlineKeyboardMarkup

from seatbot.core.errors import NeedNewAccount, SeatBotError
from seatbot.core.time import fmt_date
from seatbot.domain import Account, Order, Product, Seat
from seatbot.services.reports import SalesSummary, StockLine

GENERIC_ERROR = "❌ Terjadi kesalahan. Silakan coba lagi."

HOME_TEXT = "🏠 <b>Menu Utama</b>\n\nPilih aksi:"

PERIOD_TITLES = {
    "day": "Hari Ini",
    "week": "7 Hari Terakhir",
    "month": "30 Hari Terakhir",
    "all": "Semua",
}


def h(value: object) -> str:
    return escape(str(value if value is not None else ""))


def error_text(e: SeatBotError) -> str:
    if isinstance(e, NeedNewAccount):
        return (
            "⚠️ <b>Stok akun habis</b>\n\n"
            f"Produk: <code>{h(e.product_id)}</code>\n"
            f"Platform: {h(e.platform or '-')} / {h(e.seat_mode or '-')}\n\n"
            "Restok akun dulu lewat menu 📥 Restok Akun."
        )
    return f"❌ {h(e)}"


async def safe_edit(cb: CallbackQuery, text: str, reply_markup: InlineKeyboardMarkup | None = None) -> None:
    """Edit the callback's message, falling back to a new message."""
    if cb.message is None:
        return
    try:
        await cb.message.edit_text(text, reply_markup=reply_markup, parse_mode="HTML")
    except TelegramBadRequest as e:
        # Telegram refuses edits that change nothing
        if "message is not modified" in str(e):
            return
        await cb.message.answer(text, reply_markup=reply_markup, parse_mode="HTML")


def account_block(account: Account | None) -> str:
    if account is None:
        return "Akun: -"
    lines = [f"Akun: <code>{h(account.email or account.account_id)}</code>"]
    if account.password:
        lines.append(f"Password: <code>{h(account.password)}</code>")
    if account.profile:
        lines.append(f"Profil: {h(account.profile)}")
    if account.pin:
        lines.append(f"PIN: <code>{h(account.pin)}</code>")
    return "\n".join(lines)


def seat_line(seat: Seat) -> str:
    who = seat.buyer_id or seat.buyer_email or "-"
    return f"{h(who)} · {h(seat.status)} · s/d {fmt_date(seat.end_date)}"


def assignment_text(
    *,
    title: str,
    product: Product | None,
    order: Order,
    seat: Seat,
    account: Account | None,
    notes: list[str] | None = None,
) -> str:
    lines = [title, ""]
    if product is not None:
        lines.append(f"Produk: {h(product.product_name)}")
        lines.append(f"Mode: {h(product.seat_mode)} / {h(product.fulfillment_type)}")
    lines.append(f"Order: <code>{h(order.order_id)}</code>")
    lines.append(f"Buyer: {h(order.buyer_id or seat.buyer_id)}")
    lines.append(account_block(account))
    if seat.invite_email:
        lines.append(f"Invite ke: {h(seat.invite_email)} ({h(seat.invite_status or '-')})")
    lines.append(f"Berlaku sampai: {fmt_date(seat.end_date)}")
    for n in notes or []:
        lines.append(n)
    return "\n".join(lines)


def stock_text(lines: list[StockLine]) -> str:
    if not lines:
        return "📦 <b>Stok &amp; Slot</b>\n\nBelum ada akun aktif."
    total_used = sum(x.used_slots for x in lines)
    total_free = sum(x.free_slots for x in lines)
    total_full = sum(x.full_accounts for x in lines)
    total_released = sum(x.released_seats for x in lines)
    out = [
        "📦 <b>Stok &amp; Slot</b>",
        "",
        f"Aktif: {total_used}",
        f"Released: {total_released}",
        f"Akun Penuh: {total_full}",
        f"Slot Tersedia: {total_free}",
        "",
    ]
    for x in lines:
        out.append(
            f"• {h(x.platform)} / {h(x.mode)}: {x.accounts} akun, "
            f"{x.used_slots} terpakai, {x.free_slots} kosong, {x.full_accounts} penuh"
        )
    return "\n".join(out)


def sales_text(s: SalesSummary) -> str:
    out = [
        f"📊 <b>Laporan {h(PERIOD_TITLES.get(s.period, s.period))}</b>",
        "",
        f"Total Order: {s.total}",
        f"Aktif: {s.active}",
        f"Pending: {s.pending}",
        f"Batal: {s.cancelled}",
        f"Diganti: {s.replaced}",
    ]
    if s.by_product:
        out += ["", "Per Produk:"] + [f"- {h(k)}: {n}" for k, n in s.by_product]
    if s.by_channel:
        out += ["", "Per Channel:"] + [f"- {h(k)}: {n}" for k, n in s.by_channel]
    return "\n".join(out)
