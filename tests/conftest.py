from typing import Any, AsyncIterator, Dict, List, Optional

import pytest

from finch_service.context.history_cache import HistoryCache
from finch_service.context.memory_store import InMemoryStore
from finch_service.core.interfaces import ModelProvider
from finch_service.core.tool_registry import ToolRegistry
from finch_service.core.types import Message, ToolResult
from finch_service.protocol.orchestration.orchestrator import Agent
from finch_service.protocol.orchestration.tool_runner import ToolRunner
from finch_service.tools.base import BaseTool


class ScriptedProvider(ModelProvider):
    """Replays canned responses in order; the last one repeats when exhausted."""

    def __init__(self, responses: List[str], chunk_size: int = 5):
        self.responses = list(responses)
        self.chunk_size = chunk_size
        self.calls: List[List[Message]] = []

    def _next(self, messages: List[Message]) -> str:
        self.calls.append([dict(m) for m in messages])
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        return self.responses[index]

    async def complete(self, messages: List[Message]) -> str:
        return self._next(messages)

    async def stream(self, messages: List[Message]) -> AsyncIterator[str]:
        text = self._next(messages)
        for i in range(0, len(text), self.chunk_size):
            yield text[i : i + self.chunk_size]

    async def embed(self, text: str) -> List[float]:
        return [0.0]


class FailingProvider(ModelProvider):
    async def complete(self, messages: List[Message]) -> str:
        raise ConnectionError("model unreachable")

    async def stream(self, messages: List[Message]) -> AsyncIterator[str]:
        raise ConnectionError("model unreachable")
        yield ""  # pragma: no cover

    async def embed(self, text: str) -> List[float]:
        return []


class EchoArgsTool(BaseTool):
    """
    Echo a message back.
    Args:
        message: Text to echo
        times: How many times to repeat it
    """

    tool_name = "echo"

    def __init__(self):
        super().__init__()
        self.invocations: List[Dict[str, Any]] = []

    async def run(self, message: str, times: int = 1) -> ToolResult:
        self.invocations.append({"message": message, "times": times})
        return ToolResult(success=True, output=" ".join([message] * times))


class ListingTool(BaseTool):
    """
    List files and directories in a path.
    Args:
        path: Absolute path to the directory
    """

    tool_name = "list_directory"

    def __init__(self, listing: str = "f a.txt\nf b.log"):
        super().__init__()
        self.listing = listing
        self.paths: List[str] = []

    async def run(self, path: str) -> ToolResult:
        self.paths.append(path)
        return ToolResult(success=True, output=self.listing)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def make_agent(store):
    def _make(
        responses: List[str],
        tools: Optional[List[BaseTool]] = None,
        max_tool_calls: int = 10,
        max_history_turns: int = 20,
        provider: Optional[ModelProvider] = None,
        timeout: float = 30,
    ) -> Agent:
        registry = ToolRegistry(tools or [])
        return Agent(
            provider=provider or ScriptedProvider(responses),
            registry=registry,
            history=HistoryCache(store, max_history_turns=max_history_turns),
            store=store,
            max_tool_calls=max_tool_calls,
            tool_runner=ToolRunner(registry, timeout=timeout),
        )

    return _make


@pytest.fixture
def echo_tool():
    return EchoArgsTool()


@pytest.fixture
def listing_tool():
    return ListingTool()


@pytest.fixture
def scripted_provider():
    """Factory for providers that replay canned responses."""
    return ScriptedProvider


@pytest.fixture
def failing_provider():
    return FailingProvider()
