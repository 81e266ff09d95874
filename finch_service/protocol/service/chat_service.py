"""
Chat service: the facade the HTTP routers and channel router talk to.
"""
import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional

from finch_service.core.errors import FinchError, TurnCancelledError
from finch_service.core.logging import logger
from finch_service.core.types import UserPreferences
from finch_service.protocol.orchestration.emitter import NdjsonEventEmitter
from finch_service.protocol.orchestration.orchestrator import Agent

_END = object()


class ChatService:
    def __init__(self, agent: Agent):
        self.agent = agent

    async def reply(self, user_id: str, message: str, cancel_event: Optional[asyncio.Event] = None) -> str:
        """Run one turn and return the cleaned reply."""
        return await self.agent.chat(message, user_id, cancel_event=cancel_event)

    async def stream(
        self,
        user_id: str,
        message: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[bytes]:
        """
        Run one turn, yielding NDJSON events as it progresses.

        Yields text deltas while the model writes prose, a tool_started event
        per tool invocation, then final (or error) and always done last.
        Closing the iterator early cancels the turn.
        """
        emitter = NdjsonEventEmitter(user_id=user_id)
        queue: asyncio.Queue = asyncio.Queue()
        cancel_event = cancel_event or asyncio.Event()

        async def on_chunk(delta: str) -> None:
            await queue.put(emitter.text(delta))

        async def on_tool_start(tool_name: str) -> None:
            await queue.put(emitter.tool_started(tool_name))

        async def _run() -> None:
            try:
                reply = await self.agent.chat(
                    message,
                    user_id,
                    on_chunk=on_chunk,
                    on_tool_start=on_tool_start,
                    cancel_event=cancel_event,
                )
                await queue.put(emitter.final(reply))
            except TurnCancelledError:
                logger.info(f"Streaming turn cancelled for user_id={user_id}")
                await queue.put(emitter.error("Turn cancelled", code="cancelled"))
            except FinchError as e:
                logger.error(f"Streaming turn failed for user_id={user_id}: {e}")
                await queue.put(emitter.error(str(e), code=e.__class__.__name__))
            finally:
                await queue.put(emitter.done())
                await queue.put(_END)

        task = asyncio.create_task(_run())
        finished = False
        try:
            while True:
                item = await queue.get()
                if item is _END:
                    finished = True
                    break
                yield item
        finally:
            if not finished:
                cancel_event.set()
                await asyncio.gather(task, return_exceptions=True)
        # surfaces anything other than a FinchError raised by the turn
        await task

    async def get_history(self, user_id: str) -> List[Dict[str, Any]]:
        """Cached window of the user's conversation."""
        entries = await self.agent.history.get(user_id)
        return [e.to_dict() for e in entries]

    async def clear_history(self, user_id: str) -> None:
        await self.agent.clear_history(user_id)

    async def get_preferences(self, user_id: str) -> UserPreferences:
        return await self.agent.store.get_preferences(user_id)

    async def set_preference(self, user_id: str, key: str, value: Any) -> None:
        await self.agent.store.set_preference(user_id, key, value)
        logger.info(f"Preference {key!r} set for user_id={user_id}")

    def list_tools(self) -> List[Dict[str, Any]]:
        return self.agent.registry.schemas()
