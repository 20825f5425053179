"""Builders for ParsedMessage and Process test fixtures."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, Union

from claude_code_chunks.factories import extract_tool_calls, extract_tool_results
from claude_code_chunks.models import (
    ContentItem,
    MessageType,
    ParsedMessage,
    Process,
    TextContent,
    ThinkingContent,
    ToolResultContent,
    ToolUseContent,
    UsageInfo,
)
from claude_code_chunks.utils import calculate_metrics

BASE_TIME = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def ts(seconds: float) -> datetime:
    """A timestamp `seconds` after BASE_TIME."""
    return BASE_TIME + timedelta(seconds=seconds)


def iso(seconds: float) -> str:
    return ts(seconds).isoformat().replace("+00:00", "Z")


def text(value: str) -> TextContent:
    return TextContent(type="text", text=value)


def thinking(value: str) -> ThinkingContent:
    return ThinkingContent(type="thinking", thinking=value)


def tool_use(
    tool_id: str, name: str = "Bash", tool_input: Optional[dict[str, Any]] = None
) -> ToolUseContent:
    return ToolUseContent(
        type="tool_use", id=tool_id, name=name, input=tool_input or {}
    )


def tool_result(
    tool_id: str, content: str = "ok", is_error: bool = False
) -> ToolResultContent:
    return ToolResultContent(
        type="tool_result", tool_use_id=tool_id, content=content, is_error=is_error
    )


def _message(
    message_type: MessageType,
    uuid: str,
    seconds: float,
    content: Union[str, list[ContentItem]],
    **fields: Any,
) -> ParsedMessage:
    return ParsedMessage(
        uuid=uuid,
        type=message_type,
        timestamp=ts(seconds),
        content=content,
        tool_calls=extract_tool_calls(content),
        tool_results=extract_tool_results(content),
        **fields,
    )


def user(
    uuid: str,
    seconds: float,
    content: Union[str, list[ContentItem]] = "hello",
    **fields: Any,
) -> ParsedMessage:
    return _message(MessageType.USER, uuid, seconds, content, **fields)


def assistant(
    uuid: str,
    seconds: float,
    content: Union[str, list[ContentItem], None] = None,
    usage: Optional[UsageInfo] = None,
    **fields: Any,
) -> ParsedMessage:
    if content is None:
        content = [text("done")]
    return _message(
        MessageType.ASSISTANT, uuid, seconds, content, usage=usage, **fields
    )


def tool_result_message(
    uuid: str,
    seconds: float,
    tool_id: str,
    content: str = "ok",
    is_error: bool = False,
    **fields: Any,
) -> ParsedMessage:
    """An internal user message carrying one tool result."""
    fields.setdefault("is_meta", True)
    return user(
        uuid, seconds, [tool_result(tool_id, content, is_error)], **fields
    )


def usage(
    input_tokens: int = 0,
    output_tokens: int = 0,
    cache_read: int = 0,
    cache_creation: int = 0,
) -> UsageInfo:
    return UsageInfo(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_read_input_tokens=cache_read,
        cache_creation_input_tokens=cache_creation,
    )


def process(
    process_id: str,
    start: float,
    end: float,
    parent_task_id: Optional[str] = None,
    **fields: Any,
) -> Process:
    messages = fields.pop("messages", [])
    return Process(
        id=process_id,
        start_time=ts(start),
        end_time=ts(end),
        duration_ms=int((end - start) * 1000),
        parent_task_id=parent_task_id,
        messages=messages,
        metrics=calculate_metrics(messages),
        **fields,
    )


# -- Raw JSONL entries --------------------------------------------------------


def user_entry(
    uuid: str,
    seconds: float,
    content: Union[str, list[dict[str, Any]]],
    **extra: Any,
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "type": "user",
        "uuid": uuid,
        "parentUuid": None,
        "timestamp": iso(seconds),
        "sessionId": extra.pop("sessionId", "session-1"),
        "isSidechain": False,
        "message": {"role": "user", "content": content},
    }
    entry.update(extra)
    return entry


def assistant_entry(
    uuid: str,
    seconds: float,
    content: list[dict[str, Any]],
    usage_data: Optional[dict[str, int]] = None,
    **extra: Any,
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "type": "assistant",
        "uuid": uuid,
        "parentUuid": None,
        "timestamp": iso(seconds),
        "sessionId": extra.pop("sessionId", "session-1"),
        "isSidechain": False,
        "message": {
            "role": "assistant",
            "model": "claude-sonnet-4-20250514",
            "content": content,
            "usage": usage_data or {"input_tokens": 10, "output_tokens": 5},
        },
    }
    entry.update(extra)
    return entry


def write_jsonl(path: Path, entries: list[dict[str, Any]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        "\n".join(json.dumps(entry) for entry in entries) + "\n", encoding="utf-8"
    )
    return path
