"""Decompose an AI chunk into ordered semantic steps.

Each thinking block, text output, tool call, tool result, interruption and
linked subagent becomes one SemanticStep. Step ids derive from the source
message uuid and block index, so re-parsing yields the same ids.
"""

import json
from typing import Any, Union

from .classifier import is_interruption_text
from .models import (
    AIChunk,
    ContentItem,
    MessageType,
    ParsedMessage,
    Process,
    SemanticStep,
    StepContent,
    StepTokens,
    TextContent,
    ThinkingContent,
    ToolExecution,
    ToolResultContent,
    ToolUseContent,
)
from .utils import count_content_tokens, count_tokens, to_jsonable


def _step_id(message: ParsedMessage, step_type: str, index: int) -> str:
    return f"{message.uuid}-{step_type}-{index}"


def _content_blocks(message: ParsedMessage) -> list[ContentItem]:
    if isinstance(message.content, str):
        return [TextContent(type="text", text=message.content)]
    return list(message.content)


def stringify_result_content(content: Union[str, list[Any]]) -> str:
    """Flatten tool result content to text.

    Text items are joined with newlines; anything else is serialized as JSON.
    """
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for item in content:
        if isinstance(item, dict) and item.get("type") == "text":
            parts.append(str(item.get("text", "")))
        else:
            parts.append(json.dumps(to_jsonable(item)))
    return "\n".join(parts)


# =============================================================================
# Per-message Extraction
# =============================================================================


def _assistant_steps(
    message: ParsedMessage,
    skipped_task_ids: set[str],
    executions: dict[str, ToolExecution],
) -> list[SemanticStep]:
    steps: list[SemanticStep] = []
    blocks = _content_blocks(message)
    tool_use_count = sum(1 for block in blocks if isinstance(block, ToolUseContent))

    for index, block in enumerate(blocks):
        if isinstance(block, ThinkingContent):
            steps.append(
                SemanticStep(
                    id=_step_id(message, "thinking", index),
                    type="thinking",
                    start_time=message.timestamp,
                    duration_ms=0,
                    content=StepContent(
                        thinking_text=block.thinking, source_model=message.model
                    ),
                    tokens=StepTokens(output=count_tokens(block.thinking)),
                    source_message_id=message.uuid,
                )
            )
        elif isinstance(block, TextContent):
            if not block.text.strip():
                continue
            steps.append(
                SemanticStep(
                    id=_step_id(message, "output", index),
                    type="output",
                    start_time=message.timestamp,
                    duration_ms=0,
                    content=StepContent(
                        output_text=block.text, source_model=message.model
                    ),
                    tokens=StepTokens(output=count_tokens(block.text)),
                    source_message_id=message.uuid,
                )
            )
        elif isinstance(block, ToolUseContent):
            # The subagent step stands in for a Task call whose process is linked
            if block.id in skipped_task_ids:
                continue
            execution = executions.get(block.id)
            end_time = execution.end_time if execution else None
            duration_ms = (execution.duration_ms or 0) if execution else 0
            steps.append(
                SemanticStep(
                    id=_step_id(message, "tool_call", index),
                    type="tool_call",
                    start_time=message.timestamp,
                    end_time=end_time,
                    duration_ms=duration_ms,
                    content=StepContent(
                        tool_name=block.name,
                        tool_input=block.input,
                        tool_use_id=block.id,
                        source_model=message.model,
                    ),
                    tokens=StepTokens(output=count_content_tokens([block.input])),
                    is_parallel=tool_use_count > 1,
                    source_message_id=message.uuid,
                )
            )
    return steps


def _user_steps(
    message: ParsedMessage, tool_names: dict[str, str]
) -> list[SemanticStep]:
    steps: list[SemanticStep] = []
    for index, block in enumerate(_content_blocks(message)):
        if isinstance(block, ToolResultContent):
            result_text = stringify_result_content(block.content or "")
            token_count = count_content_tokens(block.content)
            steps.append(
                SemanticStep(
                    id=_step_id(message, "tool_result", index),
                    type="tool_result",
                    start_time=message.timestamp,
                    duration_ms=0,
                    content=StepContent(
                        tool_name=tool_names.get(block.tool_use_id),
                        tool_use_id=block.tool_use_id,
                        tool_result_content=result_text,
                        is_error=bool(block.is_error),
                        tool_use_result=message.tool_use_result,
                        token_count=token_count,
                    ),
                    tokens=StepTokens(input=token_count),
                    source_message_id=message.uuid,
                )
            )
        elif isinstance(block, TextContent) and is_interruption_text(block.text):
            steps.append(
                SemanticStep(
                    id=_step_id(message, "interruption", index),
                    type="interruption",
                    start_time=message.timestamp,
                    duration_ms=0,
                    content=StepContent(interruption_text=block.text),
                    source_message_id=message.uuid,
                )
            )
    return steps


def _subagent_step(process: Process) -> SemanticStep:
    return SemanticStep(
        id=f"subagent-{process.id}",
        type="subagent",
        start_time=process.start_time,
        end_time=process.end_time,
        duration_ms=process.duration_ms,
        content=StepContent(
            subagent_id=process.id,
            subagent_description=process.description or process.subagent_type,
        ),
        tokens=StepTokens(
            input=process.metrics.input_tokens,
            output=process.metrics.output_tokens,
            cached=process.metrics.cache_read_tokens,
        ),
        is_parallel=process.is_parallel,
        context="subagent",
        agent_id=process.id,
    )


# =============================================================================
# Chunk Extraction
# =============================================================================


def extract_semantic_steps(chunk: AIChunk) -> list[SemanticStep]:
    """Extract the semantic steps of an AI chunk in observed order.

    Expects chunk.tool_executions and chunk.processes to be populated.
    Steps are stably sorted by start time, so steps sharing a timestamp
    keep the order they were found in.
    """
    linked_task_ids = {
        process.parent_task_id
        for process in chunk.processes
        if process.parent_task_id is not None
    }
    executions = {
        execution.tool_call.id: execution for execution in chunk.tool_executions
    }
    tool_names = {
        tool_call.id: tool_call.name
        for response in chunk.responses
        for tool_call in response.tool_calls
    }

    steps: list[SemanticStep] = []
    for message in chunk.responses:
        if message.type == MessageType.ASSISTANT:
            steps.extend(_assistant_steps(message, linked_task_ids, executions))
        elif message.type == MessageType.USER:
            steps.extend(_user_steps(message, tool_names))

    steps.extend(_subagent_step(process) for process in chunk.processes)

    steps.sort(key=lambda step: step.start_time)
    return steps
