from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

from aiogram.fsm.storage.base import StorageKey
from aiogram.fsm.storage.memory import MemoryStorage

log = logging.getLogger(__name__)


class TtlMemoryStorage(MemoryStorage):
    """MemoryStorage that forgets a conversation after `ttl_seconds` without activity.

    Wizard state is UI state only; losing it means the operator starts the
    flow again from the menu.
    """

    def __init__(self, ttl_seconds: float = 900, *, clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__()
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._touched: dict[StorageKey, float] = {}

    def _stale(self, key: StorageKey, now: float) -> bool:
        ts = self._touched.get(key)
        return ts is not None and (now - ts) > self.ttl_seconds

    def _drop(self, key: StorageKey) -> None:
        self.storage.pop(key, None)
        self._touched.pop(key, None)
        log.info("fsm_conversation_expired chat_id=%s user_id=%s", key.chat_id, key.user_id)

    def _check(self, key: StorageKey) -> None:
        now = self._clock()
        if self._stale(key, now):
            self._drop(key)
        elif key in self._touched:
            self._touched[key] = now

    def _touch(self, key: StorageKey) -> None:
        self._touched[key] = self._clock()

    async def set_state(self, key: StorageKey, state: Optional[Any] = None) -> None:
        self._check(key)
        await super().set_state(key=key, state=state)
        self._touch(key)

    async def get_state(self, key: StorageKey) -> Optional[str]:
        self._check(key)
        return await super().get_state(key=key)

    async def set_data(self, key: StorageKey, data: Dict[str, Any]) -> None:
        self._check(key)
        await super().set_data(key=key, data=data)
        self._touch(key)

    async def get_data(self, key: StorageKey) -> Dict[str, Any]:
        self._check(key)
        return await super().get_data(key=key)

    def sweep(self) -> int:
        """Drop every stale conversation. Returns how many were dropped."""
        now = self._clock()
        stale = [k for k in self._touched if self._stale(k, now)]
        for k in stale:
            self._drop(k)
        return len(stale)

    def active_conversations(self) -> int:
        return len(self._touched)

