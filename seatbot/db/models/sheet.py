from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from seatbot.core.time import utcnow
from seatbot.db.base import Base


class SheetTable(Base):
    """One named, header-driven table (ACCOUNTS, SEATS, ...)."""

    __tablename__ = "sheet_tables"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    headers: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class SheetRow(Base):
    __tablename__ = "sheet_rows"

    # insertion order == table row order
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(
        ForeignKey("sheet_tables.name", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    values: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
