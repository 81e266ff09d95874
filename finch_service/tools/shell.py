import asyncio
from typing import Optional

from finch_service.core.logging import logger
from finch_service.core.types import ToolResult
from finch_service.tools.base import BaseTool


class ShellTool(BaseTool):
    """
    Execute a shell command and return the output.
    Args:
        command: The shell command to execute
        cwd: Working directory for the command
        timeout: Timeout in milliseconds
    """

    tool_name = "shell"

    def __init__(self, max_output_bytes: int = 1024 * 1024):
        super().__init__()
        self.max_output_bytes = max_output_bytes

    def _decode(self, data: Optional[bytes]) -> str:
        data = data or b""
        if len(data) > self.max_output_bytes:
            return data[: self.max_output_bytes].decode("utf-8", errors="replace") + "\n[output truncated]"
        return data.decode("utf-8", errors="replace")

    async def run(self, command: str, cwd: Optional[str] = None, timeout: int = 30000) -> ToolResult:
        logger.info(f"Shell tool: running {command!r} (cwd={cwd}, timeout={timeout}ms)")
        proc = await asyncio.create_subprocess_shell(
            command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout / 1000)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            proc.kill()
            await proc.wait()
            raise

        out = self._decode(stdout)
        err = self._decode(stderr)
        if proc.returncode != 0:
            return ToolResult(
                success=False,
                output=out,
                error=err.strip() or f"Command exited with status {proc.returncode}",
            )
        output = out + (f"\nstderr: {err}" if err else "")
        return ToolResult(success=True, output=output)
