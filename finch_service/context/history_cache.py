"""
history_cache.py - in-memory window over durable conversation history.

The cache keeps the most recent ``2 * max_history_turns`` entries per user.
Appends are write-through: an entry reaches the durable store first and only
then the cache, so the cached window is always a suffix of stored history.
"""

import asyncio
from collections import deque
from typing import Deque, Dict, List

from finch_service.core.interfaces import MemoryStore
from finch_service.core.logging import logger
from finch_service.core.types import ConversationEntry, Role


class HistoryCache:
    def __init__(self, store: MemoryStore, max_history_turns: int = 20):
        if max_history_turns < 1:
            raise ValueError("max_history_turns must be at least 1")
        self.store = store
        self.max_history_turns = max_history_turns
        self._entries: Dict[str, Deque[ConversationEntry]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def capacity(self) -> int:
        return 2 * self.max_history_turns

    def _lock(self, user_id: str) -> asyncio.Lock:
        # setdefault is atomic under the event loop; one lock per user
        return self._locks.setdefault(user_id, asyncio.Lock())

    def _window(self, entries: List[ConversationEntry]) -> Deque[ConversationEntry]:
        return deque(entries, maxlen=self.capacity)

    async def _ensure_loaded(self, user_id: str) -> Deque[ConversationEntry]:
        window = self._entries.get(user_id)
        if window is None:
            stored = await self.store.get_history(user_id)
            window = self._window(stored)
            self._entries[user_id] = window
            logger.debug(f"Loaded {len(window)}/{len(stored)} history entries for user_id={user_id}")
        return window

    async def get(self, user_id: str) -> List[ConversationEntry]:
        """Cached entries for a user, oldest first (possibly empty)."""
        async with self._lock(user_id):
            return list(await self._ensure_loaded(user_id))

    async def append(self, user_id: str, role: str, content: str) -> ConversationEntry:
        async with self._lock(user_id):
            window = await self._ensure_loaded(user_id)
            entry = await self.store.append_history(user_id, role, content)
            window.append(entry)
            return entry

    async def record_turn(self, user_id: str, user_message: str, reply: str) -> None:
        """Persist a resolved turn: the user message, then the assistant reply."""
        async with self._lock(user_id):
            window = await self._ensure_loaded(user_id)
            for role, content in ((Role.USER, user_message), (Role.ASSISTANT, reply)):
                entry = await self.store.append_history(user_id, role.value, content)
                window.append(entry)
        logger.info(f"Turn persisted for user_id={user_id} (cached={len(window)})")

    async def clear(self, user_id: str) -> None:
        async with self._lock(user_id):
            await self.store.clear_history(user_id)
            self._entries[user_id] = self._window([])
        logger.info(f"History cleared for user_id={user_id}")

    async def hydrate_all(self) -> int:
        """Load the window for every user the store knows about."""
        user_ids = await self.store.list_user_ids()
        for user_id in user_ids:
            async with self._lock(user_id):
                stored = await self.store.get_history(user_id)
                self._entries[user_id] = self._window(stored)
        logger.info(f"Hydrated history for {len(user_ids)} users")
        return len(user_ids)

    def is_loaded(self, user_id: str) -> bool:
        return user_id in self._entries
