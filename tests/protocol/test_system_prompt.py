from finch_service.protocol.prompts import DEFAULT_INSTRUCTION, build_system_prompt
from finch_service.tools.filesystem import ReadFileTool
from finch_service.tools.shell import ShellTool


def test_no_tools_no_protocol_section():
    prompt = build_system_prompt({})
    assert prompt == DEFAULT_INSTRUCTION
    assert "<tool_call>" not in prompt


def test_tool_catalog_and_protocol():
    tools = {"read_file": ReadFileTool(), "shell": ShellTool()}
    prompt = build_system_prompt(tools, "You are a test bot.")
    assert prompt.startswith("You are a test bot.")
    assert "## Tools" in prompt
    assert "• read_file: Read the contents of a file." in prompt
    assert "  - path (string, required): Absolute path to the file" in prompt
    assert "  - timeout (integer, optional): Timeout in milliseconds" in prompt
    assert '<tool_call>{"name": "tool_name", "arguments": {"param": "value"}}</tool_call>' in prompt


def test_preferences_section():
    prompt = build_system_prompt({}, preferences={"tone": "casual", "topics": ["rust", "jazz"], "empty": ""})
    assert "## User preferences" in prompt
    assert "- tone: casual" in prompt
    assert "- topics: rust, jazz" in prompt
    assert "empty" not in prompt
