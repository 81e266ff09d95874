"""
System prompt construction with tool schema injection.

Provides utilities to build system prompts that instruct the model on:
1. How to emit tool calls (<tool_call> format)
2. What tools are available (names, descriptions, parameters)
3. What the user prefers (tone, topics, ...)
"""
import json
from typing import Any, Dict, List, Mapping, Optional

DEFAULT_INSTRUCTION = "You are Finch, a helpful AI assistant."


def _render_tool_catalog(tools: Mapping[str, Any]) -> str:
    """
    Render a readable list of tools from the tools registry.

    Format:
      • tool_name: Short description
        - param (type, required/optional): description
    """
    if not tools:
        return ""

    lines: List[str] = []
    for tool_name, tool_obj in tools.items():
        schema = tool_obj.schema
        fn = schema.get("function") or {}
        name = fn.get("name", tool_name)
        desc = (fn.get("description") or "No description provided.").strip()
        params = fn.get("parameters") or {}
        props = params.get("properties") or {}
        required = set(params.get("required") or [])

        lines.append(f"• {name}: {desc}")

        # Render parameters (sorted for stability)
        for pname in sorted(props.keys()):
            pinfo = props.get(pname) or {}
            ptype = pinfo.get("type", "string")
            pdesc = (pinfo.get("description") or "").strip()
            req = "required" if pname in required else "optional"
            if "enum" in pinfo:
                ptype = f"{ptype}, one of {', '.join(map(str, pinfo['enum']))}"
            if pdesc:
                lines.append(f"  - {pname} ({ptype}, {req}): {pdesc}")
            else:
                lines.append(f"  - {pname} ({ptype}, {req})")

    return "\n".join(lines)


def _render_preferences(preferences: Optional[Mapping[str, Any]]) -> str:
    if not preferences:
        return ""
    lines: List[str] = []
    for key in sorted(preferences.keys()):
        value = preferences[key]
        if value in (None, "", [], {}):
            continue
        if isinstance(value, (list, tuple)):
            rendered = ", ".join(str(v) for v in value)
        elif isinstance(value, dict):
            rendered = json.dumps(value, sort_keys=True)
        else:
            rendered = str(value)
        lines.append(f"- {key}: {rendered}")
    return "\n".join(lines)


def build_system_prompt(
    tools: Mapping[str, Any],
    base_instruction: Optional[str] = None,
    preferences: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Build a system prompt that includes:
    - Base instruction
    - Tool catalog and the exact tool-calling protocol (only when tools exist)
    - The user's stored preferences (only when present)
    """
    prompt = (base_instruction or DEFAULT_INSTRUCTION).strip()

    if tools:
        catalog = _render_tool_catalog(tools)
        prompt += f"""

## Tools

You have access to the following tools:

{catalog}

To use a tool, include a tool call in your response using this format:
<tool_call>{{"name": "tool_name", "arguments": {{"param": "value"}}}}</tool_call>

You can make multiple tool calls in one response. After tool results are provided, continue your response.

Only use tools when necessary to answer the user's question. If you can answer without tools, do so directly."""

    prefs = _render_preferences(preferences)
    if prefs:
        prompt += f"""

## User preferences

{prefs}"""

    return prompt
