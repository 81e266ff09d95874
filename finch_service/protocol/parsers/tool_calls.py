"""
Tool-call extraction from free-form model output.

The model requests tools in one of three textual forms, tried in order; the
first form that yields at least one valid call wins:

1. <tool_call>{"name": ..., "arguments": {...}}</tool_call>   (one per tag pair)
2. <tool_call>{"name": ..., "arguments": {...}}               (tag never closed)
3. ```json {"tool_calls": [{"name": ..., "arguments": {...}}, ...]} ```

Malformed payloads are skipped. Nothing here raises: text without a usable
call simply yields an empty list, which the loop treats as a final answer.
"""
import json
import re
from typing import Any, List, Optional

from finch_service.core.logging import logger
from finch_service.core.types import ToolCallRequest

TOOL_CALL_OPEN = "<tool_call>"
TOOL_CALL_CLOSE = "</tool_call>"

_CLOSED_TAG_RE = re.compile(r"<tool_call>\s*(\{(?:(?!</tool_call>)[\s\S])*?\})\s*</tool_call>")
_OPEN_TAG_RE = re.compile(r"<tool_call>\s*(\{[\s\S]*\})")
_JSON_BLOCK_RE = re.compile(r"```json\s*(\{[\s\S]*?\})\s*```")

_STRIP_CLOSED_RE = re.compile(r"<tool_call>[\s\S]*?</tool_call>")
_STRIP_UNCLOSED_RE = re.compile(r"<tool_call>[\s\S]*$")
_STRIP_JSON_BLOCK_RE = re.compile(r"```json\s*\{(?:(?!```)[\s\S])*?\"tool_calls\"(?:(?!```)[\s\S])*?\}\s*```")
_STRIP_STRAY_CLOSE_RE = re.compile(r"</tool_call>")


def _to_request(obj: Any) -> Optional[ToolCallRequest]:
    """A call needs a non-empty string name and an object of arguments."""
    if not isinstance(obj, dict):
        return None
    name = obj.get("name")
    arguments = obj.get("arguments")
    if not isinstance(name, str) or not name.strip():
        return None
    if not isinstance(arguments, dict):
        return None
    return ToolCallRequest(name=name, arguments=arguments)


def _loads(raw: str) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        return None


def balanced_json_prefix(text: str) -> Optional[str]:
    """
    Return the shortest prefix of `text` that is a brace-balanced JSON object,
    honouring braces inside strings and escaped quotes. None if unbalanced.
    """
    if not text.startswith("{"):
        return None
    depth = 0
    in_str = False
    esc = False
    for i, ch in enumerate(text):
        if in_str:
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[: i + 1]
    return None


def _parse_closed_tags(text: str) -> List[ToolCallRequest]:
    calls: List[ToolCallRequest] = []
    for match in _CLOSED_TAG_RE.finditer(text):
        req = _to_request(_loads(match.group(1)))
        if req:
            calls.append(req)
        else:
            logger.debug(f"Skipping malformed tagged tool call: {match.group(1)[:100]!r}")
    return calls


def _parse_unclosed_tags(text: str) -> List[ToolCallRequest]:
    calls: List[ToolCallRequest] = []
    for match in _OPEN_TAG_RE.finditer(text):
        raw = match.group(1)
        req = _to_request(_loads(raw))
        if req is None:
            # The greedy capture may have swallowed trailing prose
            prefix = balanced_json_prefix(raw)
            if prefix is not None:
                req = _to_request(_loads(prefix))
        if req:
            calls.append(req)
        else:
            logger.debug(f"Skipping malformed unclosed tool call: {raw[:100]!r}")
    return calls


def _parse_json_blocks(text: str) -> List[ToolCallRequest]:
    calls: List[ToolCallRequest] = []
    for match in _JSON_BLOCK_RE.finditer(text):
        parsed = _loads(match.group(1))
        if not isinstance(parsed, dict) or not isinstance(parsed.get("tool_calls"), list):
            continue
        for entry in parsed["tool_calls"]:
            req = _to_request(entry)
            if req:
                calls.append(req)
    return calls


def parse_tool_calls(text: str) -> List[ToolCallRequest]:
    """Extract tool calls in source order using the first format that yields any."""
    if not text:
        return []
    for strategy in (_parse_closed_tags, _parse_unclosed_tags, _parse_json_blocks):
        calls = strategy(text)
        if calls:
            logger.debug(f"Parsed {len(calls)} tool call(s) via {strategy.__name__}")
            return calls
    return []


def clean_response(text: str) -> str:
    """
    Remove tool-call markup from a reply. Text without markup comes back
    untouched; otherwise the remainder is trimmed. Idempotent.
    """
    if not text:
        return text
    cleaned = text
    while True:
        # removal can splice fragments into new markup, so repeat to a fixpoint
        previous = cleaned
        cleaned = _STRIP_CLOSED_RE.sub("", cleaned)
        cleaned = _STRIP_UNCLOSED_RE.sub("", cleaned)
        cleaned = _STRIP_JSON_BLOCK_RE.sub("", cleaned)
        cleaned = _STRIP_STRAY_CLOSE_RE.sub("", cleaned)
        if cleaned == previous:
            break
    if cleaned == text:
        return text
    return cleaned.strip()
