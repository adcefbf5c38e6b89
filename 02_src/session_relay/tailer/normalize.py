"""Parsing and normalization of session transcript lines."""

import json
import uuid
from datetime import datetime, timezone
from typing import Any

from ..errors import MalformedLineError
from ..models import LogEvent

PREVIEW_CHARS = 200


def parse_line(line: bytes | str) -> dict[str, Any]:
    """Decode one complete JSONL line into an object.

    Raises:
        MalformedLineError: the line is not JSON or not a JSON object.
    """
    try:
        entry = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedLineError("Invalid JSON line", context={"error": e}) from e

    if not isinstance(entry, dict):
        raise MalformedLineError(
            "Log line is not an object", context={"type": type(entry).__name__}
        )
    return entry


def extract_text(content: Any) -> str:
    """Text of a message content: a plain string or a list of typed segments."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            str(segment.get("text") or "")
            for segment in content
            if isinstance(segment, dict) and segment.get("type") == "text"
        )
    return json.dumps(content, default=str)


def _dump(value: Any) -> str:
    return json.dumps(value, default=str)


def _describe_message(msg: dict[str, Any]) -> tuple[str, str]:
    role = msg.get("role")
    content = msg.get("content")

    if role == "user":
        return f"User: {extract_text(content)}", "user"

    if role == "assistant":
        tool_calls = msg.get("toolCalls") or []
        if content:
            return f"Assistant: {extract_text(content)}", "assistant"
        if tool_calls:
            names = ", ".join(
                str(call.get("name", "?")) for call in tool_calls if isinstance(call, dict)
            )
            return f"Assistant calling tools: {names}", "assistant"
        return "Assistant: ", "assistant"

    if role == "toolResult":
        text = extract_text(content)[:PREVIEW_CHARS]
        return f"Tool {msg.get('toolName', 'unknown')} returned: {text}...", "tool"

    return f"[message] {_dump(msg)[:PREVIEW_CHARS]}", "info"


def normalize_entry(entry: dict[str, Any]) -> LogEvent:
    """Classify a raw transcript entry into a LogEvent."""
    entry_type = entry.get("type")

    if entry_type == "message" and isinstance(entry.get("message"), dict):
        message, level = _describe_message(entry["message"])
    elif entry_type == "log":
        message = entry.get("message") or _dump(entry.get("data") or entry)
        level = entry.get("level") or "info"
    elif entry_type == "error":
        message = entry.get("message") or entry.get("error") or "Unknown error"
        level = "error"
    else:
        message = f"[{entry_type}] {_dump(entry.get('data') or entry)[:PREVIEW_CHARS]}"
        level = "info"

    return LogEvent(
        id=str(entry.get("id") or uuid.uuid4().hex[:8]),
        timestamp=str(entry.get("timestamp") or datetime.now(timezone.utc).isoformat()),
        message=str(message),
        level=str(level),
        raw=entry,
    )
