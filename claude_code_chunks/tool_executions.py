"""Pair tool calls with their results.

Results are matched to calls in priority order:
1. A message's source_tool_use_id, which names the call it answers directly.
2. The message's tool_results, skipping any result already claimed.

Calls left without a result become orphaned executions.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .models import (
    MessageType,
    ParsedMessage,
    Process,
    TaskExecution,
    ToolCall,
    ToolExecution,
    ToolResult,
)
from .parser import milliseconds_between


@dataclass
class _CallInfo:
    call: ToolCall
    start_time: datetime


def _collect_tool_calls(
    messages: list[ParsedMessage], assistant_only: bool = False
) -> dict[str, _CallInfo]:
    calls: dict[str, _CallInfo] = {}
    for message in messages:
        if assistant_only and message.type != MessageType.ASSISTANT:
            continue
        for tool_call in message.tool_calls:
            calls[tool_call.id] = _CallInfo(tool_call, message.timestamp)
    return calls


def _completed_execution(
    info: _CallInfo, result: ToolResult, message: ParsedMessage
) -> ToolExecution:
    return ToolExecution(
        tool_call=info.call,
        result=result,
        start_time=info.start_time,
        end_time=message.timestamp,
        duration_ms=milliseconds_between(info.start_time, message.timestamp),
    )


def build_tool_executions(messages: list[ParsedMessage]) -> list[ToolExecution]:
    """Build one execution per tool call found in the messages.

    Each call id appears in exactly one execution and each result is claimed
    at most once. Output is stably sorted by call start time.
    """
    calls = _collect_tool_calls(messages)
    executions: list[ToolExecution] = []
    matched_call_ids: set[str] = set()
    claimed_result_ids: set[str] = set()

    def claim(info: _CallInfo, result: ToolResult, message: ParsedMessage) -> None:
        executions.append(_completed_execution(info, result, message))
        matched_call_ids.add(info.call.id)
        claimed_result_ids.add(result.tool_use_id)

    for message in messages:
        if message.source_tool_use_id and message.tool_results:
            info = calls.get(message.source_tool_use_id)
            if info is not None and info.call.id not in matched_call_ids:
                claim(info, message.tool_results[0], message)

        for result in message.tool_results:
            if result.tool_use_id in claimed_result_ids:
                continue
            info = calls.get(result.tool_use_id)
            if info is not None and info.call.id not in matched_call_ids:
                claim(info, result, message)

    for call_id, info in calls.items():
        if call_id not in matched_call_ids:
            executions.append(
                ToolExecution(tool_call=info.call, start_time=info.start_time)
            )

    executions.sort(key=lambda execution: execution.start_time)
    return executions


def separate_task_executions(
    responses: list[ParsedMessage], subagents: list[Process]
) -> tuple[list[TaskExecution], list[ToolExecution]]:
    """Split a group's tool calls into subagent task executions and regular ones.

    Only internal (meta) user messages naming their call via
    source_tool_use_id are matched. A Task call is promoted to a
    TaskExecution only when a process claims its id as parent_task_id;
    otherwise it stays a regular ToolExecution so it does not disappear.
    """
    task_to_subagent: dict[str, Process] = {}
    for subagent in subagents:
        if subagent.parent_task_id:
            task_to_subagent[subagent.parent_task_id] = subagent

    calls = _collect_tool_calls(responses, assistant_only=True)
    task_executions: list[TaskExecution] = []
    regular_executions: list[ToolExecution] = []

    for message in responses:
        if not (
            message.type == MessageType.USER
            and message.is_meta
            and message.source_tool_use_id
        ):
            continue
        info = calls.get(message.source_tool_use_id)
        if info is None:
            continue

        subagent: Optional[Process] = task_to_subagent.get(info.call.id)
        if info.call.is_task and subagent is not None:
            task_executions.append(
                TaskExecution(
                    task_call=info.call,
                    task_call_timestamp=info.start_time,
                    subagent=subagent,
                    tool_result=message,
                    result_timestamp=message.timestamp,
                    duration_ms=milliseconds_between(
                        info.start_time, message.timestamp
                    ),
                )
            )
        elif message.tool_results:
            regular_executions.append(
                _completed_execution(info, message.tool_results[0], message)
            )

    return task_executions, regular_executions
