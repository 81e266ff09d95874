import asyncio
import gc
import warnings
from unittest.mock import AsyncMock, MagicMock

import pytest

from finch_service.core.tool_registry import ToolRegistry
from finch_service.core.types import Failure, FailureKind, Success, ToolCallRequest, ToolResult
from finch_service.protocol.orchestration.tool_runner import ToolRunner
from finch_service.tools.base import BaseTool
from finch_service.tools.shell import ShellTool


class SlowTool(BaseTool):
    """
    Sleep before answering.
    Args:
        seconds: How long to sleep
    """

    tool_name = "slow"

    async def run(self, seconds: float = 5.0) -> str:
        await asyncio.sleep(seconds)
        return "finished"


class BrokenTool(BaseTool):
    """Always crashes."""

    tool_name = "broken"

    async def run(self) -> str:
        raise RuntimeError("disk on fire")


class RefusingTool(BaseTool):
    """Reports a logical failure."""

    tool_name = "refuse"

    async def run(self) -> ToolResult:
        return ToolResult(success=False, output="partial", error="permission denied")


class DictTool(BaseTool):
    """Returns structured data."""

    tool_name = "stats"

    async def run(self, fail: bool = False) -> dict:
        if fail:
            return {"error": "no stats"}
        return {"count": 3}


@pytest.fixture
def runner(echo_tool):
    registry = ToolRegistry([echo_tool, SlowTool(), BrokenTool(), RefusingTool(), DictTool()])
    return ToolRunner(registry, timeout=0.2)


@pytest.mark.anyio
async def test_success(runner, echo_tool):
    outcome = await runner.execute(ToolCallRequest("echo", {"message": "hi", "times": 2}))
    assert outcome == Success(tool_name="echo", output="hi hi")
    assert outcome.ok
    assert echo_tool.invocations == [{"message": "hi", "times": 2}]


@pytest.mark.anyio
async def test_unknown_tool_lists_registered_names(runner):
    outcome = await runner.execute(ToolCallRequest("teleport", {}))
    assert isinstance(outcome, Failure)
    assert outcome.kind == FailureKind.UNKNOWN_TOOL
    assert "teleport" in outcome.message
    assert sorted(outcome.details) == sorted(["echo", "slow", "broken", "refuse", "stats"])
    assert "teleport" not in outcome.details


@pytest.mark.anyio
async def test_invalid_arguments(runner, echo_tool):
    outcome = await runner.execute(ToolCallRequest("echo", {"times": "many", "color": "red"}))
    assert outcome.kind == FailureKind.INVALID_ARGUMENTS
    fields = {v["field"] for v in outcome.details}
    assert {"message", "times", "color"} <= fields
    assert echo_tool.invocations == []


@pytest.mark.anyio
async def test_arguments_are_coerced(runner, echo_tool):
    outcome = await runner.execute(ToolCallRequest("echo", {"message": "x", "times": "3"}))
    assert outcome.ok
    assert echo_tool.invocations[-1]["times"] == 3


@pytest.mark.anyio
async def test_timeout(runner):
    outcome = await runner.execute(ToolCallRequest("slow", {"seconds": 5}))
    assert outcome.kind == FailureKind.TIMEOUT
    assert outcome.details["timeout_sec"] == 0.2


@pytest.mark.anyio
async def test_exception_becomes_execution_failed(runner):
    outcome = await runner.execute(ToolCallRequest("broken", {}))
    assert outcome.kind == FailureKind.EXECUTION_FAILED
    assert "disk on fire" in outcome.message


@pytest.mark.anyio
async def test_tool_reported_failure(runner):
    outcome = await runner.execute(ToolCallRequest("refuse", {}))
    assert outcome.kind == FailureKind.EXECUTION_FAILED
    assert outcome.message == "permission denied"
    assert outcome.details == {"output": "partial"}


@pytest.mark.anyio
async def test_dict_results(runner):
    ok = await runner.execute(ToolCallRequest("stats", {}))
    assert ok.ok and '"count": 3' in ok.output
    failed = await runner.execute(ToolCallRequest("stats", {"fail": True}))
    assert failed.kind == FailureKind.EXECUTION_FAILED
    assert failed.message == "no stats"


@pytest.mark.anyio
async def test_observer_fires_even_when_tool_fails(runner):
    seen = []
    await runner.execute(ToolCallRequest("broken", {}), on_tool_start=seen.append)
    assert seen == ["broken"]


@pytest.mark.anyio
async def test_async_observer_and_observer_errors(runner):
    observer = AsyncMock()
    await runner.execute(ToolCallRequest("echo", {"message": "a"}), on_tool_start=observer)
    observer.assert_awaited_once_with("echo")

    exploding = MagicMock(side_effect=ValueError("ui gone"))
    outcome = await runner.execute(ToolCallRequest("echo", {"message": "a"}), on_tool_start=exploding)
    assert outcome.ok


@pytest.mark.anyio
async def test_observer_not_called_for_unknown_tool(runner):
    seen = []
    await runner.execute(ToolCallRequest("nope", {}), on_tool_start=seen.append)
    assert seen == []


@pytest.mark.anyio
async def test_cancellation_is_timeout_shaped(runner):
    cancel = asyncio.Event()
    runner.timeout = 10

    async def _cancel_soon():
        await asyncio.sleep(0.05)
        cancel.set()

    canceller = asyncio.create_task(_cancel_soon())
    outcome = await runner.execute(ToolCallRequest("slow", {"seconds": 5}), cancel_event=cancel)
    await canceller
    assert outcome.kind == FailureKind.TIMEOUT
    assert outcome.details["cancelled"] is True


@pytest.mark.anyio
async def test_cancel_before_start_skips_observer_and_tool(runner, echo_tool):
    cancel = asyncio.Event()
    cancel.set()
    started = []

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        outcome = await runner.execute(
            ToolCallRequest("echo", {"message": "x"}),
            on_tool_start=started.append,
            cancel_event=cancel,
        )
        gc.collect()

    assert outcome.kind == FailureKind.TIMEOUT
    assert outcome.details["cancelled"] is True
    assert started == []
    assert echo_tool.invocations == []
    assert not [w for w in caught if issubclass(w.category, RuntimeWarning)]


@pytest.mark.anyio
async def test_tool_own_timeout_reports_tool_limit():
    runner = ToolRunner(ToolRegistry([ShellTool()]), timeout=30)
    outcome = await runner.execute(ToolCallRequest("shell", {"command": "sleep 5", "timeout": 200}))
    assert outcome.kind == FailureKind.TIMEOUT
    assert outcome.details == {"timeout_sec": 30, "source": "tool", "tool_timeout": 200}
    assert "own timeout" in outcome.message
    assert "30s" not in outcome.message


@pytest.mark.anyio
async def test_runner_budget_timeout_has_no_tool_source(runner):
    outcome = await runner.execute(ToolCallRequest("slow", {"seconds": 5}))
    assert "source" not in outcome.details
    assert "timed out after 0.2s" in outcome.message


@pytest.mark.anyio
async def test_unknown_tool_name_echoed_exactly(runner):
    outcome = await runner.execute(ToolCallRequest(" echo ", {}))
    assert outcome.kind == FailureKind.UNKNOWN_TOOL
    assert outcome.message == 'Unknown tool " echo "'
