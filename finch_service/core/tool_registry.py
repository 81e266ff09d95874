import threading
from typing import Any, Dict, Iterable, List, Optional

from finch_service.core.factory import load
from finch_service.core.interfaces import Tool
from finch_service.core.logging import logger


class ToolRegistry:
    """Name -> Tool map shared by every conversation; last registration wins."""

    def __init__(self, tools: Optional[Iterable[Tool]] = None):
        self._tools: Dict[str, Tool] = {}
        self._lock = threading.RLock()
        for tool in tools or []:
            self.register(tool)

    @classmethod
    def from_config(cls, registry_cfg: List[Dict[str, Any]], enabled: List[str]) -> "ToolRegistry":
        """Instantiate the enabled tools listed in the `tools.registry` config."""
        registry = cls()
        for tcfg in registry_cfg:
            name = tcfg.get("name")
            if name not in enabled:
                continue
            impl = tcfg.get("impl", "")
            args = tcfg.get("args", {}) or {}
            try:
                tool = load(impl, **args)
            except Exception:
                logger.exception(f"Skipping tool '{name}': could not load {impl}")
                continue
            # Set the tool's name to match the registry name
            if hasattr(tool, "_registry_name"):
                tool._registry_name = name
            registry.register(tool)
        return registry

    def register(self, tool: Tool) -> None:
        with self._lock:
            if tool.name in self._tools:
                logger.info(f"Tool '{tool.name}' re-registered, replacing previous implementation")
            self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Optional[Tool]:
        with self._lock:
            return self._tools.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return list(self._tools.keys())

    def all(self) -> Dict[str, Tool]:
        with self._lock:
            return dict(self._tools)

    def schemas(self) -> List[Dict[str, Any]]:
        return [tool.schema for tool in self.all().values()]

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)
