"""Conversation groups: one genuine user message plus everything up to the next.

A simpler alternative to chunking that does not buffer. Boundaries are purely
timestamp based.
"""

from datetime import datetime, timedelta
from typing import Optional

from .classifier import is_user_chunk_message
from .models import ConversationGroup, MessageType, ParsedMessage, Process
from .parser import milliseconds_between
from .tool_executions import separate_task_executions
from .utils import calculate_metrics

# Upper bound of the process window for the last group
FAR_FUTURE = timedelta(hours=24)


def collect_ai_responses(
    messages: list[ParsedMessage],
    user_message: ParsedMessage,
    next_user_message: Optional[ParsedMessage],
) -> list[ParsedMessage]:
    """Assistant and internal user messages strictly between two user messages."""
    start = user_message.timestamp
    end = next_user_message.timestamp if next_user_message else None
    responses: list[ParsedMessage] = []
    for message in messages:
        if message.timestamp <= start:
            continue
        if end is not None and message.timestamp >= end:
            continue
        if message.type == MessageType.ASSISTANT or (
            message.type == MessageType.USER and message.is_meta
        ):
            responses.append(message)
    return responses


def link_subagents_to_group(
    user_message: ParsedMessage,
    next_user_message: Optional[ParsedMessage],
    subagents: list[Process],
) -> list[Process]:
    start: datetime = user_message.timestamp
    if next_user_message is not None:
        end = next_user_message.timestamp
    else:
        end = start + FAR_FUTURE
    return [
        subagent
        for subagent in subagents
        if subagent.parent_process_id is None
        and start <= subagent.start_time < end
    ]


def build_groups(
    messages: list[ParsedMessage], subagents: list[Process]
) -> list[ConversationGroup]:
    """Build one group per genuine main-thread user message."""
    main_messages = [message for message in messages if not message.is_sidechain]
    user_messages = [
        message for message in main_messages if is_user_chunk_message(message)
    ]

    groups: list[ConversationGroup] = []
    for index, user_message in enumerate(user_messages):
        next_user_message = (
            user_messages[index + 1] if index + 1 < len(user_messages) else None
        )
        responses = collect_ai_responses(
            main_messages, user_message, next_user_message
        )
        task_executions, tool_executions = separate_task_executions(
            responses, subagents
        )

        start_time = user_message.timestamp
        end_time = max([start_time] + [response.timestamp for response in responses])

        groups.append(
            ConversationGroup(
                id=f"group-{index + 1}",
                user_message=user_message,
                ai_responses=responses,
                processes=link_subagents_to_group(
                    user_message, next_user_message, subagents
                ),
                tool_executions=tool_executions,
                task_executions=task_executions,
                start_time=start_time,
                end_time=end_time,
                duration_ms=milliseconds_between(start_time, end_time),
                metrics=calculate_metrics([user_message, *responses]),
            )
        )
    return groups
