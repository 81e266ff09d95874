import asyncio
import inspect
import json
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from finch_service.core.errors import TurnCancelledError
from finch_service.core.execution import run_cancellable
from finch_service.core.interfaces import ToolStartCallback
from finch_service.core.logging import logger
from finch_service.core.tool_registry import ToolRegistry
from finch_service.core.types import (
    Failure,
    FailureKind,
    Success,
    ToolCallRequest,
    ToolOutcome,
    ToolResult,
)


def _violations(err: ValidationError) -> List[Dict[str, Any]]:
    return [
        {
            "field": ".".join(str(part) for part in e.get("loc", ())) or "(arguments)",
            "message": e.get("msg", ""),
            "type": e.get("type", ""),
        }
        for e in err.errors()
    ]


def _stringify(result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, indent=2, default=str)
    except (TypeError, ValueError):
        return str(result)


class _ToolTimeout(Exception):
    """The tool raised TimeoutError under its own limit, not the runner budget."""


async def _invoke(tool: Any, arguments: Dict[str, Any]) -> Any:
    try:
        return await tool.run(**arguments)
    except TimeoutError as e:
        raise _ToolTimeout(str(e)) from e


class ToolRunner:
    """Resolve, validate and execute tool calls; every outcome is captured."""

    def __init__(self, registry: ToolRegistry, timeout: float = 30):
        self.registry = registry
        self.timeout = timeout

    async def execute(
        self,
        request: ToolCallRequest,
        on_tool_start: Optional[ToolStartCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ToolOutcome:
        name = request.name
        if cancel_event is not None and cancel_event.is_set():
            return self._cancelled(name)

        tool = self.registry.get(name)
        if tool is None:
            available = self.registry.names()
            logger.warning(f"Unknown tool requested: {name} (available: {available})")
            return Failure(
                tool_name=name,
                kind=FailureKind.UNKNOWN_TOOL,
                message=f'Unknown tool "{name}"',
                details=available,
            )

        if on_tool_start is not None:
            # the indicator fires even if the tool goes on to fail
            try:
                notified = on_tool_start(name)
                if inspect.isawaitable(notified):
                    await notified
            except Exception:
                logger.exception(f"Tool start observer failed for {name}")

        try:
            validated = tool.args_model.model_validate(request.arguments).model_dump()
        except ValidationError as e:
            violations = _violations(e)
            logger.warning(f"Invalid arguments for tool {name}: {violations}")
            return Failure(
                tool_name=name,
                kind=FailureKind.INVALID_ARGUMENTS,
                message=f'Invalid arguments for tool "{name}"',
                details=violations,
            )

        # the observer may have awaited; no coroutine is built once cancelled
        if cancel_event is not None and cancel_event.is_set():
            return self._cancelled(name)

        logger.info(f"Executing tool {name} with args: {validated}")
        try:
            result = await run_cancellable(
                asyncio.wait_for(_invoke(tool, validated), timeout=self.timeout),
                cancel_event,
            )
        except TurnCancelledError:
            return self._cancelled(name)
        except _ToolTimeout as e:
            details: Dict[str, Any] = {"timeout_sec": self.timeout, "source": "tool"}
            if "timeout" in validated:
                details["tool_timeout"] = validated["timeout"]
            limit = f" (timeout={validated['timeout']})" if "timeout" in validated else ""
            logger.warning(f"Tool {name} hit its own timeout{limit}: {e}")
            return Failure(
                tool_name=name,
                kind=FailureKind.TIMEOUT,
                message=f'Tool "{name}" hit its own timeout{limit}',
                details=details,
            )
        except TimeoutError:
            logger.warning(f"Tool {name} timed out after {self.timeout}s")
            return Failure(
                tool_name=name,
                kind=FailureKind.TIMEOUT,
                message=f'Tool "{name}" timed out after {self.timeout:g}s',
                details={"timeout_sec": self.timeout},
            )
        except Exception as e:
            logger.exception(f"Error executing tool {name}: {e}")
            return Failure(
                tool_name=name,
                kind=FailureKind.EXECUTION_FAILED,
                message=str(e) or e.__class__.__name__,
            )

        return self._to_outcome(name, result)

    def _cancelled(self, name: str) -> Failure:
        logger.warning(f"Tool {name} cancelled before completion")
        return Failure(
            tool_name=name,
            kind=FailureKind.TIMEOUT,
            message=f'Tool "{name}" was cancelled before it finished',
            details={"timeout_sec": self.timeout, "cancelled": True},
        )

    @staticmethod
    def _to_outcome(name: str, result: Any) -> ToolOutcome:
        if isinstance(result, ToolResult):
            if result.success:
                return Success(tool_name=name, output=result.output)
            logger.warning(f"Tool {name} reported failure: {result.error}")
            return Failure(
                tool_name=name,
                kind=FailureKind.EXECUTION_FAILED,
                message=result.error or "Tool reported failure",
                details={"output": result.output} if result.output else None,
            )
        if isinstance(result, dict) and result.get("error"):
            return Failure(tool_name=name, kind=FailureKind.EXECUTION_FAILED, message=str(result["error"]))
        return Success(tool_name=name, output=_stringify(result))
