from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol


class ConversationStateStore(Protocol):
    """Per-chat key-value store whose entries expire on their own."""

    async def get(self, chat_id: str) -> str | None: ...

    async def set(self, chat_id: str, state: str, *, ttl_seconds: float) -> None: ...

    async def clear(self, chat_id: str) -> None: ...


class InMemoryStateStore:
    """Process-local state store; expired entries are dropped on read and on every write."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    async def get(self, chat_id: str) -> str | None:
        entry = self._entries.get(chat_id)
        if entry is None:
            return None
        state, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(chat_id, None)
            return None
        return state

    async def set(self, chat_id: str, state: str, *, ttl_seconds: float) -> None:
        now = self._clock()
        self._prune(now)
        self._entries[chat_id] = (state, now + ttl_seconds)

    async def clear(self, chat_id: str) -> None:
        self._entries.pop(chat_id, None)

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)
