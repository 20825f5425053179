#!/usr/bin/env python3
"""Utility functions for token estimation, metrics and tool summaries."""

import json
import math
import os
from typing import Any, Iterable, Optional, Union
from urllib.parse import urlparse

from pydantic import TypeAdapter

from .models import ParsedMessage, SessionMetrics
from .parser import milliseconds_between

_JSON_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


def to_jsonable(value: Any) -> Any:
    """Convert models, dataclasses and datetimes to plain JSON types."""
    return _JSON_ADAPTER.dump_python(value, mode="json")


# =============================================================================
# Token Estimation
# =============================================================================


def count_tokens(text: Optional[str]) -> int:
    """Estimate tokens in text as a quarter of its character length."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def count_content_tokens(content: Union[str, list[Any], None]) -> int:
    """Estimate tokens for string or list content.

    List content is serialized to compact JSON before counting.
    """
    if not content:
        return 0
    if isinstance(content, str):
        return count_tokens(content)
    return count_tokens(
        json.dumps(to_jsonable(content), separators=(",", ":"))
    )


# =============================================================================
# Metrics
# =============================================================================


def calculate_metrics(messages: Iterable[ParsedMessage]) -> SessionMetrics:
    """Sum token usage and measure the time span over a set of messages."""
    messages = list(messages)
    if not messages:
        return SessionMetrics()

    input_tokens = 0
    output_tokens = 0
    cache_read_tokens = 0
    cache_creation_tokens = 0
    for message in messages:
        if message.usage:
            input_tokens += message.usage.input_tokens or 0
            output_tokens += message.usage.output_tokens or 0
            cache_read_tokens += message.usage.cache_read_input_tokens or 0
            cache_creation_tokens += message.usage.cache_creation_input_tokens or 0

    timestamps = [message.timestamp for message in messages]
    return SessionMetrics(
        duration_ms=milliseconds_between(min(timestamps), max(timestamps)),
        total_tokens=input_tokens
        + cache_creation_tokens
        + cache_read_tokens
        + output_tokens,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_read_tokens=cache_read_tokens,
        cache_creation_tokens=cache_creation_tokens,
        message_count=len(messages),
    )


# =============================================================================
# Tool Summaries
# =============================================================================


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def get_tool_summary(tool_name: str, tool_input: dict[str, Any]) -> str:
    """Generate a short human-readable summary for a tool call."""
    if tool_name in ("Edit", "Read", "Write"):
        file_path = tool_input.get("file_path")
        if file_path:
            return os.path.basename(file_path) or file_path
        return tool_name

    if tool_name == "Bash":
        description = tool_input.get("description")
        command = tool_input.get("command")
        if description:
            return _truncate(description, 50)
        if command:
            return _truncate(command, 50)
        return "Bash"

    if tool_name in ("Grep", "Glob"):
        pattern = tool_input.get("pattern")
        if pattern:
            return f'"{_truncate(pattern, 30)}"'
        return tool_name

    if tool_name in ("Task", "Agent"):
        description = tool_input.get("description") or tool_input.get("prompt")
        subagent_type = tool_input.get("subagent_type")
        type_prefix = f"{subagent_type} - " if subagent_type else ""
        if description:
            return f"{type_prefix}{_truncate(description, 40)}"
        return subagent_type or tool_name

    if tool_name == "Skill":
        return tool_input.get("skill") or "Skill"

    if tool_name == "WebFetch":
        url = tool_input.get("url")
        if url:
            parsed = urlparse(url)
            if parsed.netloc:
                host = parsed.hostname or parsed.netloc
                return _truncate(host + (parsed.path or "/"), 50)
            return _truncate(url, 50)
        return "WebFetch"

    if tool_name == "WebSearch":
        query = tool_input.get("query")
        if query:
            return f'"{_truncate(query, 40)}"'
        return "WebSearch"

    # Fall back to common parameter names
    for key in ("name", "path", "file", "query", "command"):
        value = tool_input.get(key)
        if value is not None:
            if isinstance(value, str):
                return _truncate(value, 50)
            break
    return tool_name
