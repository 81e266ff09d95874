import time
from collections import defaultdict
from typing import Any, Dict, List

from finch_service.core.interfaces import MemoryStore
from finch_service.core.types import ConversationEntry, UserPreferences


class InMemoryStore(MemoryStore):
    """Process-local store for tests and offline development. Nothing survives a restart."""

    def __init__(self):
        self._preferences: Dict[str, Dict[str, Any]] = defaultdict(dict)
        self._history: Dict[str, List[ConversationEntry]] = defaultdict(list)

    async def get_preferences(self, user_id: str) -> UserPreferences:
        return dict(self._preferences.get(user_id, {}))  # type: ignore[return-value]

    async def set_preference(self, user_id: str, key: str, value: Any) -> None:
        self._preferences[user_id][key] = value

    async def get_history(self, user_id: str) -> List[ConversationEntry]:
        return list(self._history.get(user_id, []))

    async def append_history(self, user_id: str, role: str, content: str) -> ConversationEntry:
        entries = self._history[user_id]
        ts = time.time()
        if entries and entries[-1].timestamp > ts:
            ts = entries[-1].timestamp
        entry = ConversationEntry(role=role, content=content, timestamp=ts)
        entries.append(entry)
        return entry

    async def clear_history(self, user_id: str) -> None:
        self._history.pop(user_id, None)

    async def list_user_ids(self) -> List[str]:
        return sorted(set(self._history) | set(self._preferences))
