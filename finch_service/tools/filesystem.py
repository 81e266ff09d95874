"""Filesystem tools: read, write and list files."""
import asyncio
from pathlib import Path

from finch_service.core.types import ToolResult
from finch_service.tools.base import BaseTool


def _read(path: str) -> str:
    return Path(path).expanduser().read_text(encoding="utf-8")


def _write(path: str, content: str) -> int:
    p = Path(path).expanduser()
    p.parent.mkdir(parents=True, exist_ok=True)
    return p.write_text(content, encoding="utf-8")


def _list(path: str) -> str:
    entries = sorted(Path(path).expanduser().iterdir(), key=lambda e: e.name)
    return "\n".join(f"{'d' if e.is_dir() else 'f'} {e.name}" for e in entries)


class ReadFileTool(BaseTool):
    """
    Read the contents of a file.
    Args:
        path: Absolute path to the file
    """

    tool_name = "read_file"

    async def run(self, path: str) -> ToolResult:
        try:
            content = await asyncio.to_thread(_read, path)
        except (OSError, UnicodeDecodeError) as e:
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, output=content)


class WriteFileTool(BaseTool):
    """
    Write content to a file.
    Args:
        path: Absolute path to the file
        content: Content to write
    """

    tool_name = "write_file"

    async def run(self, path: str, content: str) -> ToolResult:
        try:
            await asyncio.to_thread(_write, path, content)
        except OSError as e:
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, output=f"Wrote {len(content)} bytes to {path}")


class ListDirectoryTool(BaseTool):
    """
    List files and directories in a path.
    Args:
        path: Absolute path to the directory
    """

    tool_name = "list_directory"

    async def run(self, path: str) -> ToolResult:
        try:
            listing = await asyncio.to_thread(_list, path)
        except OSError as e:
            return ToolResult(success=False, error=str(e))
        return ToolResult(success=True, output=listing)
