"""Factory for the four chunk variants.

Chunk ids are "<kind>-<source message uuid>" so that re-parsing a transcript
that has grown keeps the ids of every unchanged chunk.
"""

import re
from datetime import datetime, timezone

from ..models import (
    AIChunk,
    CompactChunk,
    ParsedMessage,
    Process,
    SystemChunk,
    TextContent,
    UserChunk,
)
from ..parser import epoch_millis, milliseconds_between
from ..process_linker import link_processes_to_ai_chunk
from ..semantic_steps import extract_semantic_steps
from ..step_grouper import build_semantic_step_groups
from ..timeline import calculate_step_context, fill_timeline_gaps
from ..tool_executions import build_tool_executions
from ..utils import calculate_metrics

COMMAND_STDOUT_PATTERN = re.compile(
    r"<local-command-stdout>(.*?)</local-command-stdout>", re.DOTALL
)
COMMAND_STDERR_PATTERN = re.compile(
    r"<local-command-stderr>(.*?)</local-command-stderr>", re.DOTALL
)


def stable_chunk_id(kind: str, message: ParsedMessage) -> str:
    return f"{kind}-{message.uuid}"


# =============================================================================
# Single-message Chunks
# =============================================================================


def create_user_chunk(message: ParsedMessage) -> UserChunk:
    return UserChunk(
        id=stable_chunk_id("user", message),
        start_time=message.timestamp,
        end_time=message.timestamp,
        duration_ms=0,
        metrics=calculate_metrics([message]),
        user_message=message,
        raw_messages=[message],
    )


def extract_command_output(message: ParsedMessage) -> str:
    """Extract the text inside a local command stdout/stderr wrapper.

    Returns the raw text when no wrapper is present.
    """
    if isinstance(message.content, str):
        content = message.content
    else:
        content = "\n".join(
            block.text for block in message.content if isinstance(block, TextContent)
        )
    match = COMMAND_STDOUT_PATTERN.search(content) or COMMAND_STDERR_PATTERN.search(
        content
    )
    if match:
        return match.group(1)
    return content


def create_system_chunk(message: ParsedMessage) -> SystemChunk:
    return SystemChunk(
        id=stable_chunk_id("system", message),
        start_time=message.timestamp,
        end_time=message.timestamp,
        duration_ms=0,
        metrics=calculate_metrics([message]),
        message=message,
        command_output=extract_command_output(message),
        raw_messages=[message],
    )


def create_compact_chunk(message: ParsedMessage) -> CompactChunk:
    return CompactChunk(
        id=stable_chunk_id("compact", message),
        start_time=message.timestamp,
        end_time=message.timestamp,
        duration_ms=0,
        metrics=calculate_metrics([message]),
        message=message,
        raw_messages=[message],
    )


# =============================================================================
# AI Chunks
# =============================================================================


def collect_sidechain_messages(
    messages: list[ParsedMessage], start_time: datetime, end_time: datetime
) -> list[ParsedMessage]:
    """Sidechain messages with start_time <= timestamp < end_time."""
    return [
        message
        for message in messages
        if message.is_sidechain and start_time <= message.timestamp < end_time
    ]


def create_ai_chunk(
    responses: list[ParsedMessage],
    subagents: list[Process],
    all_messages: list[ParsedMessage],
) -> AIChunk:
    """Create an AI chunk from a flushed buffer of responses.

    Runs tool correlation, process linking, step extraction, gap filling,
    step context calculation and step grouping, in that order.
    """
    if responses:
        chunk_id = stable_chunk_id("ai", responses[0])
        start_time = min(response.timestamp for response in responses)
        end_time = max(response.timestamp for response in responses)
    else:
        start_time = end_time = datetime.now(timezone.utc)
        chunk_id = f"ai-empty-{epoch_millis(start_time)}"

    chunk = AIChunk(
        id=chunk_id,
        start_time=start_time,
        end_time=end_time,
        duration_ms=milliseconds_between(start_time, end_time),
        metrics=calculate_metrics(responses),
        responses=responses,
        raw_messages=responses,
        sidechain_messages=collect_sidechain_messages(
            all_messages, start_time, end_time
        ),
        tool_executions=build_tool_executions(responses),
    )

    link_processes_to_ai_chunk(chunk, subagents)
    steps = extract_semantic_steps(chunk)
    chunk.semantic_steps = fill_timeline_gaps(steps, chunk.start_time, chunk.end_time)
    calculate_step_context(chunk.semantic_steps, chunk.raw_messages)
    chunk.semantic_step_groups = build_semantic_step_groups(chunk.semantic_steps)
    return chunk
