from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from seatbot.core.time import parse_dt
from seatbot.repo import Record

ACCOUNTS = "ACCOUNTS"
PRODUCTS = "PRODUCTS"
ORDERS = "ORDERS"
SEATS = "SEATS"
ADMIN_USERS = "ADMIN_USERS"
LOGS = "LOGS"

DEFAULT_HEADERS: dict[str, list[str]] = {
    PRODUCTS: [
        "product_id", "product_name", "platform", "mode", "seat_mode", "fulfillment_type",
        "duration_days", "sharing_max_slot", "fallback_policy", "active",
    ],
    ACCOUNTS: [
        "account_id", "platform", "mode", "account_kind", "email", "password", "profile", "pin",
        "max_slot", "status", "expired_at", "created_at",
    ],
    ORDERS: [
        "order_id", "product_id", "platform", "channel", "buyer_id", "buyer_email", "status",
        "assigned_admin", "created_at",
    ],
    SEATS: [
        "seat_id", "account_id", "order_id", "product_id", "buyer_id", "buyer_email", "start_date",
        "end_date", "status", "released_at", "seat_mode", "invite_email", "invite_status",
    ],
    ADMIN_USERS: ["telegram_username", "role", "status"],
    LOGS: ["timestamp", "action", "actor", "ref_id", "note"],
}

_ACTIVE_FLAGS = {"active", "aktif", "true", "1", "yes"}


class SeatMode:
    PRIVATE = "PRIVATE"
    SHARING = "SHARING"
    HEAD = "HEAD"

    ALL = (PRIVATE, SHARING, HEAD)


class Fulfillment:
    LOGIN = "LOGIN"
    INVITE = "INVITE"


class FallbackPolicy:
    STRICT = "STRICT"
    PRIVATE_UNUSED_TO_SHARING = "FALLBACK_PRIVATE_UNUSED_TO_SHARING"


class OrderStatus:
    PENDING_SEND = "PENDING_SEND"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


class SeatStatus:
    RESERVED = "RESERVED"
    ACTIVE = "ACTIVE"
    PENDING_CONFIRM = "PENDING_CONFIRM"
    RELEASED = "RELEASED"
    PROBLEM = "PROBLEM"

    # statuses that occupy an account slot
    HOLDING = (ACTIVE, PENDING_CONFIRM, RESERVED)


class InviteStatus:
    PENDING_INVITE = "PENDING_INVITE"
    INVITE_SENT = "INVITE_SENT"


class AdminRole:
    OWNER = "OWNER"
    ADMIN = "ADMIN"


def is_active_flag(value: Any) -> bool:
    return str(value if value is not None else "").strip().lower() in _ACTIVE_FLAGS


def _int(value: Any) -> int | None:
    s = str(value if value is not None else "").strip()
    if not s:
        return None
    try:
        return int(float(s))
    except ValueError:
        return None


def _upper(value: Any) -> str:
    return str(value if value is not None else "").strip().upper()


@dataclass
class Product:
    product_id: str
    product_name: str
    platform: str
    seat_mode: str
    fulfillment_type: str
    duration_days: int
    sharing_max_slot: int | None
    fallback_policy: str
    active: bool

    @classmethod
    def from_record(cls, rec: Record) -> "Product":
        # seat_mode is the newer column; legacy sheets only carry `mode`
        seat_mode = _upper(rec.get("seat_mode")) or _upper(rec.get("mode")) or SeatMode.SHARING
        if seat_mode not in SeatMode.ALL:
            seat_mode = SeatMode.SHARING

        fulfillment = _upper(rec.get("fulfillment_type"))
        if fulfillment not in (Fulfillment.LOGIN, Fulfillment.INVITE):
            fulfillment = Fulfillment.INVITE if seat_mode == SeatMode.HEAD else Fulfillment.LOGIN

        sharing_max = _int(rec.get("sharing_max_slot"))
        if sharing_max is not None and sharing_max <= 0:
            sharing_max = None
        if sharing_max is None and seat_mode == SeatMode.SHARING:
            sharing_max = 1

        policy = _upper(rec.get("fallback_policy"))
        if policy != FallbackPolicy.PRIVATE_UNUSED_TO_SHARING:
            policy = FallbackPolicy.STRICT

        return cls(
            product_id=rec.text("product_id"),
            product_name=rec.text("product_name") or rec.text("product_id"),
            platform=rec.text("platform"),
            seat_mode=seat_mode,
            fulfillment_type=fulfillment,
            duration_days=_int(rec.get("duration_days")) or 0,
            sharing_max_slot=sharing_max,
            fallback_policy=policy,
            active=is_active_flag(rec.get("active")),
        )

    @property
    def label(self) -> str:
        return f"{self.product_name} ({self.seat_mode.lower()}, {self.duration_days}d)"


@dataclass
class Account:
    account_id: str
    platform: str
    mode: str
    account_kind: str
    email: str
    password: str
    profile: str
    pin: str
    max_slot: int | None
    active: bool
    position: int = 0
    record: Record | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_record(cls, rec: Record) -> "Account":
        mode = _upper(rec.get("mode"))
        return cls(
            account_id=rec.text("account_id"),
            platform=rec.text("platform"),
            mode=mode,
            account_kind=_upper(rec.get("account_kind")) or mode,
            email=rec.text("email"),
            password=rec.text("password"),
            profile=rec.text("profile"),
            pin=rec.text("pin"),
            max_slot=_int(rec.get("max_slot")),
            active=is_active_flag(rec.get("status")),
            position=rec.position,
            record=rec,
        )

    def matches_platform(self, platform: str) -> bool:
        # rows without a platform are treated as wildcard inventory
        if not self.platform or not platform:
            return True
        return self.platform.lower() == platform.lower()


@dataclass
class Order:
    order_id: str
    product_id: str
    platform: str
    channel: str
    buyer_id: str
    buyer_email: str
    status: str
    assigned_admin: str
    created_at: datetime | None
    record: Record | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_record(cls, rec: Record) -> "Order":
        return cls(
            order_id=rec.text("order_id"),
            product_id=rec.text("product_id"),
            platform=rec.text("platform"),
            channel=rec.text("channel"),
            buyer_id=rec.text("buyer_id"),
            buyer_email=rec.text("buyer_email"),
            status=_upper(rec.get("status")),
            assigned_admin=rec.text("assigned_admin"),
            created_at=parse_dt(rec.get("created_at")),
            record=rec,
        )


@dataclass
class Seat:
    seat_id: str
    account_id: str
    order_id: str
    product_id: str
    buyer_id: str
    buyer_email: str
    start_date: datetime | None
    end_date: datetime | None
    status: str
    released_at: datetime | None
    seat_mode: str
    invite_email: str
    invite_status: str
    position: int = 0
    record: Record | None = field(default=None, repr=False, compare=False)

    @classmethod
    def from_record(cls, rec: Record) -> "Seat":
        return cls(
            seat_id=rec.text("seat_id"),
            account_id=rec.text("account_id"),
            order_id=rec.text("order_id"),
            product_id=rec.text("product_id"),
            buyer_id=rec.text("buyer_id"),
            buyer_email=rec.text("buyer_email"),
            start_date=parse_dt(rec.get("start_date")),
            end_date=parse_dt(rec.get("end_date")),
            status=_upper(rec.get("status")),
            released_at=parse_dt(rec.get("released_at")),
            seat_mode=_upper(rec.get("seat_mode")),
            invite_email=rec.text("invite_email"),
            invite_status=_upper(rec.get("invite_status")),
            position=rec.position,
            record=rec,
        )

    @property
    def is_holding(self) -> bool:
        return self.status in SeatStatus.HOLDING


@dataclass
class AdminUser:
    username: str
    role: str
    status: str

    @property
    def is_owner(self) -> bool:
        return self.role == AdminRole.OWNER
