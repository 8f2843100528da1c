from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Hashable, Mapping, Sequence


class StoreError(RuntimeError):
    pass


@dataclass(frozen=True)
class RowRef:
    """Opaque row handle. Only the backend that issued it interprets `key`."""

    table: str
    key: Hashable


@dataclass
class Table:
    name: str
    headers: list[str]
    rows: list[list[Any]] = field(default_factory=list)
    refs: list[RowRef] = field(default_factory=list)


class TableStore(ABC):
    """Header-driven row store: read everything, append, update one row."""

    @abstractmethod
    async def get_table(self, name: str) -> Table: ...

    @abstractmethod
    async def append_row(self, name: str, headers: Sequence[str], values: Mapping[str, Any]) -> RowRef: ...

    @abstractmethod
    async def update_row(
        self,
        name: str,
        ref: RowRef,
        headers: Sequence[str],
        updates: Mapping[str, Any],
    ) -> None: ...

    async def ensure_table(self, name: str, headers: Sequence[str]) -> None:
        """Create the table with `headers` if the backend supports it. No-op otherwise."""
        return None

    async def close(self) -> None:
        return None
