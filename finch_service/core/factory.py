from importlib import import_module
from typing import Any, Dict, Optional, cast
import inspect

from finch_service.core.config import get_limits, load_settings
from finch_service.core.errors import ConfigurationError
from finch_service.core.interfaces import MemoryStore, ModelProvider


def load(dotted: str, **kwargs: Any) -> Any:
    """Import a dotted path and instantiate the class if callable.
    Filters kwargs to match the constructor signature (unless **kwargs is accepted)."""
    if not dotted or "." not in dotted:
        raise ConfigurationError(f"Invalid implementation path: {dotted!r}")
    module, cls = dotted.rsplit(".", 1)
    try:
        mod = import_module(module)
        obj = getattr(mod, cls)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load {dotted}: {e}") from e

    if isinstance(obj, type):
        sig = inspect.signature(obj.__init__)
        params = list(sig.parameters.values())
        accepts_kwargs = any(p.kind == p.VAR_KEYWORD for p in params)
        if accepts_kwargs:
            return obj(**kwargs)
        # Filter only accepted params (skip 'self')
        allowed = {p.name for p in params if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY) and p.name != "self"}
        filtered = {k: v for k, v in kwargs.items() if k in allowed}
        return obj(**filtered)

    # callable or object (rare)
    return obj


class ServiceFactory:
    """Builds the process-scoped collaborators once and hands them out."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config if config is not None else load_settings()
        self._provider: ModelProvider | None = None
        self._store: MemoryStore | None = None
        self._registry = None
        self._history = None
        self._agent = None
        self._chat_service = None
        self._channel_router = None

    def _impl(self, section: str) -> tuple[str, Dict[str, Any]]:
        cfg = self.config.get("providers", {}).get(section, {}) or {}
        return cfg.get("impl", ""), cfg.get("args", {}) or {}

    def get_provider(self) -> ModelProvider:
        if not self._provider:
            impl, args = self._impl("model")
            self._provider = cast(ModelProvider, load(impl, **args))
        return self._provider

    def get_store(self) -> MemoryStore:
        if not self._store:
            impl, args = self._impl("memory_store")
            self._store = cast(MemoryStore, load(impl, **args))
        return self._store

    def get_registry(self):
        if self._registry is None:
            from finch_service.core.tool_registry import ToolRegistry

            tools_cfg = self.config.get("tools", {}) or {}
            self._registry = ToolRegistry.from_config(
                tools_cfg.get("registry", []) or [],
                tools_cfg.get("enabled", []) or [],
            )
        return self._registry

    def get_history_cache(self):
        if self._history is None:
            from finch_service.context.history_cache import HistoryCache

            limits = get_limits(self.config)
            self._history = HistoryCache(self.get_store(), max_history_turns=limits["max_history_turns"])
        return self._history

    def get_agent(self):
        if self._agent is None:
            from finch_service.protocol.orchestration.orchestrator import Agent
            from finch_service.protocol.orchestration.tool_runner import ToolRunner

            limits = get_limits(self.config)
            registry = self.get_registry()
            self._agent = Agent(
                provider=self.get_provider(),
                registry=registry,
                history=self.get_history_cache(),
                store=self.get_store(),
                system_prompt=self.config.get("system", {}).get("prompt", ""),
                max_tool_calls=limits["max_tool_calls"],
                tool_runner=ToolRunner(registry, timeout=limits["tool_timeout_sec"]),
            )
        return self._agent

    def get_chat_service(self):
        if self._chat_service is None:
            from finch_service.protocol.service.chat_service import ChatService

            self._chat_service = ChatService(agent=self.get_agent())
        return self._chat_service

    def get_channel_router(self):
        """Router over the transports listed under `channels` (impl + args each)."""
        if self._channel_router is None:
            from finch_service.channels.router import ChannelRouter

            channels = [
                load(entry.get("impl", ""), **(entry.get("args", {}) or {}))
                for entry in self.config.get("channels", []) or []
            ]
            self._channel_router = ChannelRouter(self.get_chat_service(), channels)
        return self._channel_router
