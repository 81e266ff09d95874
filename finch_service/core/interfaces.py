from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel

from finch_service.core.types import ConversationEntry, Message, UserPreferences


class ModelProvider(ABC):
    @abstractmethod
    async def complete(self, messages: List[Message]) -> str:
        """Return the full response for a message list (system prompt first)."""
        ...

    @abstractmethod
    def stream(self, messages: List[Message]) -> AsyncIterator[str]:
        """Stream raw text chunks for a message list."""
        ...

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embedding vector for a string."""
        ...

    async def ping(self) -> bool:
        """Cheap liveness probe used by the readiness endpoint."""
        return True

    async def close(self) -> None:
        """Release network clients or model handles."""
        return None


class MemoryStore(ABC):
    @abstractmethod
    async def get_preferences(self, user_id: str) -> UserPreferences:
        ...

    @abstractmethod
    async def set_preference(self, user_id: str, key: str, value: Any) -> None:
        """Add or overwrite a single preference key."""
        ...

    @abstractmethod
    async def get_history(self, user_id: str) -> List[ConversationEntry]:
        """Full conversation history for a user, oldest first."""
        ...

    @abstractmethod
    async def append_history(self, user_id: str, role: str, content: str) -> ConversationEntry:
        ...

    @abstractmethod
    async def clear_history(self, user_id: str) -> None:
        ...

    @abstractmethod
    async def list_user_ids(self) -> List[str]:
        ...

    async def close(self) -> None:
        return None


class Tool(ABC):
    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def schema(self) -> Dict[str, Any]:
        ...

    @property
    @abstractmethod
    def args_model(self) -> Type[BaseModel]:
        """Pydantic model the arguments are validated against."""
        ...

    @abstractmethod
    async def run(self, **kwargs: Any) -> Any:
        ...


class Channel(ABC):
    """Transport adapter delivering user messages and accepting replies."""

    @property
    @abstractmethod
    def id(self) -> str:
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start listening for messages."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def send(self, message: Any) -> None:
        """Send an OutgoingMessage."""
        ...

    async def send_typing(self, channel_id: str) -> None:
        """Show a typing indicator; transports without one ignore it."""
        return None

    @abstractmethod
    def on_message(self, handler: Callable[[Any], Awaitable[None]]) -> None:
        """Register the handler for IncomingMessage deliveries."""
        ...


ChunkCallback = Callable[[str], Optional[Awaitable[None]]]
ToolStartCallback = Callable[[str], Optional[Awaitable[None]]]
