import asyncio
import inspect
import json
from typing import List, Optional

from finch_service.context.history_cache import HistoryCache
from finch_service.core.errors import FinchError, ModelProviderError
from finch_service.core.execution import run_cancellable
from finch_service.core.interfaces import ChunkCallback, MemoryStore, ModelProvider, Tool, ToolStartCallback
from finch_service.core.logging import logger
from finch_service.core.tool_registry import ToolRegistry
from finch_service.core.types import Failure, FailureKind, Message, Role, ToolOutcome, Turn
from finch_service.protocol.orchestration.tool_runner import ToolRunner
from finch_service.protocol.parsers.boundary import StreamBoundaryDetector
from finch_service.protocol.parsers.tool_calls import clean_response, parse_tool_calls
from finch_service.protocol.prompts import build_system_prompt

RETRY_HINT = (
    "One or more tool calls failed. You may retry with corrected arguments, "
    "or explain the problem to the user."
)


def format_outcome(outcome: ToolOutcome) -> str:
    """Render one tool outcome as feedback text for the model."""
    if not isinstance(outcome, Failure):
        return f"[{outcome.tool_name}] {outcome.output}"

    header = f"[{outcome.tool_name}] Error ({outcome.kind}): {outcome.message}"
    if outcome.kind == FailureKind.UNKNOWN_TOOL:
        available = ", ".join(outcome.details or []) or "(none)"
        return f"{header}\nAvailable tools: {available}"
    if outcome.kind == FailureKind.INVALID_ARGUMENTS:
        lines = [f"  - {v['field']}: {v['message']}" for v in outcome.details or []]
        return "\n".join([header, *lines])
    if outcome.kind == FailureKind.EXECUTION_FAILED and isinstance(outcome.details, dict):
        output = outcome.details.get("output")
        if output:
            return f"{header}\nOutput:\n{output}"
    return header


def build_feedback_message(outcomes: List[ToolOutcome]) -> str:
    """One synthetic user turn summarising every outcome of a round."""
    body = "\n\n".join(format_outcome(o) for o in outcomes)
    text = f"Tool results:\n{body}\n\n"
    if any(isinstance(o, Failure) for o in outcomes):
        text += f"{RETRY_HINT}\n\n"
    return text + "Continue your response based on these results."


async def _notify(callback, value: str) -> None:
    result = callback(value)
    if inspect.isawaitable(result):
        await result


class Agent:
    """
    The tool-calling loop: draft with the model, run requested tools, feed the
    results back, and repeat until the model answers in plain text or the
    round budget is spent.
    """

    def __init__(
        self,
        provider: ModelProvider,
        registry: ToolRegistry,
        history: HistoryCache,
        store: MemoryStore,
        system_prompt: Optional[str] = None,
        max_tool_calls: int = 10,
        tool_runner: Optional[ToolRunner] = None,
    ):
        self.provider = provider
        self.registry = registry
        self.history = history
        self.store = store
        self.system_prompt = system_prompt
        self.max_tool_calls = max_tool_calls
        self.tool_runner = tool_runner or ToolRunner(registry)

    def add_tool(self, tool: Tool) -> None:
        self.registry.register(tool)

    async def load_history(self) -> int:
        """Hydrate the history cache for every known user."""
        return await self.history.hydrate_all()

    async def clear_history(self, user_id: str) -> None:
        await self.history.clear(user_id)

    async def build_messages(self, user_id: str, user_message: str) -> List[Message]:
        preferences = await self.store.get_preferences(user_id)
        system = build_system_prompt(self.registry.all(), self.system_prompt, preferences)
        prior = await self.history.get(user_id)
        return [
            {"role": Role.SYSTEM.value, "content": system},
            *(entry.to_message() for entry in prior),
            {"role": Role.USER.value, "content": user_message},
        ]

    async def _call_model(
        self,
        messages: List[Message],
        on_chunk: Optional[ChunkCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> str:
        snapshot = list(messages)

        async def _streamed() -> str:
            detector = StreamBoundaryDetector()
            async for chunk in self.provider.stream(snapshot):
                visible = detector.feed(chunk)
                if visible:
                    await _notify(on_chunk, visible)
            tail = detector.finalize()
            if tail:
                await _notify(on_chunk, tail)
            if detector.tool_call_detected:
                logger.debug(f"Withheld {len(detector.text) - detector.marker_position} chars of tool-call markup")
            return detector.text

        try:
            if on_chunk is not None:
                response = await run_cancellable(_streamed(), cancel_event)
            else:
                response = await run_cancellable(self.provider.complete(snapshot), cancel_event)
        except FinchError:
            raise
        except Exception as e:
            logger.exception(f"Model call failed: {e}")
            raise ModelProviderError(f"Model call failed: {e}") from e

        if response is None:
            raise ModelProviderError("Model returned no response")
        return response

    async def _finalize(self, turn: Turn, response: str) -> Turn:
        turn.reply = clean_response(response)
        await self.history.record_turn(turn.user_id, turn.user_message, turn.reply)
        logger.info(f"Turn complete: user_id={turn.user_id}, rounds={turn.rounds}, reply_length={len(turn.reply)}")
        return turn

    async def run_turn(
        self,
        user_message: str,
        user_id: str,
        on_chunk: Optional[ChunkCallback] = None,
        on_tool_start: Optional[ToolStartCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Turn:
        """Resolve one user message into a final reply, persisting the turn."""
        turn = Turn(user_id=user_id, user_message=user_message, reply="")
        messages = await self.build_messages(user_id, user_message)

        for round_num in range(self.max_tool_calls):
            logger.info(f"Tool loop {round_num + 1}/{self.max_tool_calls} for user_id={user_id}")
            response = await self._call_model(messages, on_chunk, cancel_event)

            calls = parse_tool_calls(response)
            if not calls:
                return await self._finalize(turn, response)

            turn.rounds += 1
            logger.info(f"Tool calls requested: {[c.name for c in calls]}")
            outcomes: List[ToolOutcome] = []
            for call in calls:
                outcome = await self.tool_runner.execute(call, on_tool_start=on_tool_start, cancel_event=cancel_event)
                logger.debug(f"Tool outcome: {json.dumps(outcome.__dict__, default=str)[:500]}")
                outcomes.append(outcome)
            turn.outcomes.extend(outcomes)

            messages.append({"role": Role.ASSISTANT.value, "content": response})
            messages.append({"role": Role.USER.value, "content": build_feedback_message(outcomes)})

        # Out of rounds: take whatever the model says next as the answer
        logger.info(f"Max tool rounds ({self.max_tool_calls}) reached for user_id={user_id}, forcing final answer")
        response = await self._call_model(messages, on_chunk, cancel_event)
        return await self._finalize(turn, response)

    async def chat(
        self,
        user_message: str,
        user_id: str,
        on_chunk: Optional[ChunkCallback] = None,
        on_tool_start: Optional[ToolStartCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        turn = await self.run_turn(
            user_message,
            user_id,
            on_chunk=on_chunk,
            on_tool_start=on_tool_start,
            cancel_event=cancel_event,
        )
        return turn.reply
