from typing import AsyncIterator, List

from finch_service.core.interfaces import ModelProvider
from finch_service.core.types import Message, Role


class EchoProvider(ModelProvider):
    """Offline stand-in model: answers with the last user message."""

    def __init__(self, prefix: str = "Echo: ", chunk_size: int = 8):
        self.prefix = prefix
        self.chunk_size = max(1, chunk_size)

    def _answer(self, messages: List[Message]) -> str:
        last = next((m["content"] for m in reversed(messages) if m["role"] == Role.USER), "")
        return f"{self.prefix}{last}"

    async def complete(self, messages: List[Message]) -> str:
        return self._answer(messages)

    async def stream(self, messages: List[Message]) -> AsyncIterator[str]:
        text = self._answer(messages)
        for i in range(0, len(text), self.chunk_size):
            yield text[i : i + self.chunk_size]

    async def embed(self, text: str) -> List[float]:
        # character histogram over a small fixed dimension
        vec = [0.0] * 16
        for ch in text:
            vec[ord(ch) % 16] += 1.0
        return vec
