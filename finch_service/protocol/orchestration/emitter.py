import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from finch_service.core.logging import logger
from finch_service.core.types import StreamEvent


class NdjsonEventEmitter:
    """
    Encodes chat stream events as NDJSON (one JSON object per line).
    Used by the streaming chat endpoint.
    """

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id

    def _emit_event(self, event: StreamEvent, data: Dict[str, Any]) -> bytes:
        """
        Format a single event as an NDJSON line.

        Args:
            event: The event type
            data: The event payload

        Returns:
            The encoded line, newline-terminated
        """
        payload: Dict[str, Any] = {
            "type": event.value,
            "data": data,
            "ts": datetime.now(timezone.utc).isoformat(),
        }
        if self.user_id is not None:
            payload["user_id"] = self.user_id
        try:
            return (json.dumps(payload) + "\n").encode("utf-8")
        except (TypeError, ValueError) as e:
            logger.error(f"Error serializing {event.value} event: {e}")
            fallback = {"type": StreamEvent.ERROR.value, "data": {"message": f"Failed to serialize {event.value} event: {e}"}}
            return (json.dumps(fallback) + "\n").encode("utf-8")

    def text(self, delta: str) -> bytes:
        return self._emit_event(StreamEvent.TEXT, {"delta": delta})

    def tool_started(self, tool_name: str) -> bytes:
        return self._emit_event(StreamEvent.TOOL_STARTED, {"tool_name": tool_name})

    def final(self, content: str) -> bytes:
        """The cleaned reply that resolved the turn."""
        return self._emit_event(StreamEvent.FINAL, {"content": content})

    def error(self, message: str, code: Optional[str] = None) -> bytes:
        data: Dict[str, Any] = {"message": message}
        if code is not None:
            data["code"] = code
        return self._emit_event(StreamEvent.ERROR, data)

    def done(self) -> bytes:
        return self._emit_event(StreamEvent.DONE, {})
