"""Factory for creating ParsedMessage and ContentItem instances from raw data.

This module creates typed model instances from JSONL transcript data:
- ParsedMessage for each conversational entry (user, assistant, system, ...)
- ContentItem subclasses (Text, ToolUse, ToolResult, Thinking, Image)

Also provides:
- Tool call and tool result extraction from content
- Usage info normalization
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence, Union, cast

from anthropic.types import Usage as AnthropicUsage
from pydantic import BaseModel, ValidationError

from ..models import (
    # Content types
    ContentItem,
    ImageContent,
    TextContent,
    ThinkingContent,
    ToolResultContent,
    ToolUseContent,
    # Message types
    MessageType,
    ParsedMessage,
    TaskInput,
    ToolCall,
    ToolResult,
    UsageInfo,
)
from ..parser import parse_timestamp


# =============================================================================
# Content Item Registry
# =============================================================================

# Maps content type strings to their model classes
CONTENT_ITEM_CREATORS: dict[str, type[BaseModel]] = {
    "text": TextContent,
    "tool_result": ToolResultContent,
    "image": ImageContent,
    "tool_use": ToolUseContent,
    "thinking": ThinkingContent,
}

# Content types allowed in each context
USER_CONTENT_TYPES: Sequence[str] = ("text", "tool_result", "image")
ASSISTANT_CONTENT_TYPES: Sequence[str] = ("text", "tool_use", "thinking")

# Tool names that spawn a subagent
TASK_TOOL_NAMES: Sequence[str] = ("Task", "Agent")


# =============================================================================
# Usage Info Normalization
# =============================================================================


def normalize_usage_info(
    usage_data: Union[dict[str, Any], AnthropicUsage, UsageInfo, None],
) -> Optional[UsageInfo]:
    """Normalize usage data from JSON or the Anthropic SDK to UsageInfo."""
    if usage_data is None:
        return None
    if isinstance(usage_data, UsageInfo):
        return usage_data
    if isinstance(usage_data, AnthropicUsage):
        return UsageInfo.from_anthropic_usage(usage_data)
    return UsageInfo.model_validate(usage_data)


# =============================================================================
# Content Item Creation
# =============================================================================


def create_content_item(
    item_data: dict[str, Any],
    type_filter: Sequence[str] | None = None,
) -> ContentItem:
    """Create a ContentItem from raw data using the registry.

    Args:
        item_data: The raw dictionary data
        type_filter: Sequence of content type strings to allow, or None to allow all
            (e.g., USER_CONTENT_TYPES, ASSISTANT_CONTENT_TYPES)

    Returns:
        ContentItem instance, with fallback to TextContent for unknown types
    """
    try:
        content_type = item_data.get("type", "")

        if type_filter is None or content_type in type_filter:
            model_class = CONTENT_ITEM_CREATORS.get(content_type)
            if model_class is not None:
                return cast(ContentItem, model_class.model_validate(item_data))

        # Fallback to text content for unknown/disallowed types
        return TextContent(type="text", text=str(item_data))
    except ValidationError:
        return TextContent(type="text", text=str(item_data))


def create_message_content(
    content_data: Any,
    type_filter: Sequence[str] | None = None,
) -> Union[str, list[ContentItem]]:
    """Create message content from raw data.

    String content stays a string (older sessions store plain text); list
    content becomes a list of ContentItems.

    Args:
        content_data: Raw content data (string or list of items)
        type_filter: Sequence of content type strings to allow, or None to allow all
    """
    if content_data is None:
        return ""
    if isinstance(content_data, str):
        return content_data
    if isinstance(content_data, list):
        result: list[ContentItem] = []
        for item in cast(list[Any], content_data):
            if isinstance(item, dict):
                result.append(
                    create_content_item(cast(dict[str, Any], item), type_filter)
                )
            else:
                # Non-dict items (e.g., raw strings) become TextContent
                result.append(TextContent(type="text", text=str(item)))
        return result
    return str(content_data)


# =============================================================================
# Tool Extraction
# =============================================================================


def _parse_task_input(data: dict[str, Any]) -> TaskInput:
    """Parse Task input, falling back to an empty model on malformed data."""
    try:
        return TaskInput.model_validate(data)
    except ValidationError:
        return TaskInput()


def extract_tool_calls(content: Union[str, list[ContentItem]]) -> list[ToolCall]:
    """Extract the tool calls made in an assistant message's content."""
    if isinstance(content, str):
        return []

    tool_calls: list[ToolCall] = []
    for block in content:
        if not isinstance(block, ToolUseContent) or not block.id or not block.name:
            continue
        tool_call = ToolCall(
            id=block.id,
            name=block.name,
            input=block.input,
            is_task=block.name in TASK_TOOL_NAMES,
        )
        if tool_call.is_task:
            task_input = _parse_task_input(block.input)
            tool_call.task_description = task_input.description
            tool_call.task_subagent_type = task_input.subagent_type
        tool_calls.append(tool_call)
    return tool_calls


def extract_tool_results(content: Union[str, list[ContentItem]]) -> list[ToolResult]:
    """Extract the tool results carried by a user message's content."""
    if isinstance(content, str):
        return []
    return [
        ToolResult(
            tool_use_id=block.tool_use_id,
            content=block.content or "",
            is_error=bool(block.is_error),
        )
        for block in content
        if isinstance(block, ToolResultContent) and block.tool_use_id
    ]


# =============================================================================
# Parsed Message Creation
# =============================================================================


def _base_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Fields shared by every conversational entry."""
    timestamp = parse_timestamp(data.get("timestamp", ""))
    return {
        "uuid": data["uuid"],
        "parent_uuid": data.get("parentUuid"),
        "type": MessageType(data["type"]),
        "timestamp": timestamp or datetime.now(timezone.utc),
        "cwd": data.get("cwd"),
        "git_branch": data.get("gitBranch"),
        "is_sidechain": data.get("isSidechain") is True,
        "user_type": data.get("userType"),
    }


def _message_body(data: dict[str, Any]) -> dict[str, Any]:
    message = data.get("message")
    if message is None:
        return {}
    if not isinstance(message, dict):
        raise ValueError(
            f"'message' must be an object, got {type(message).__name__}"
        )
    return message


def _with_tools(fields: dict[str, Any]) -> ParsedMessage:
    content = fields.get("content", "")
    fields["tool_calls"] = extract_tool_calls(content)
    fields["tool_results"] = extract_tool_results(content)
    return ParsedMessage(**fields)


def _create_user_message(data: dict[str, Any]) -> ParsedMessage:
    message = _message_body(data)
    fields = _base_fields(data)
    fields.update(
        content=create_message_content(message.get("content"), USER_CONTENT_TYPES),
        role=message.get("role"),
        agent_id=data.get("agentId"),
        is_meta=data.get("isMeta") is True,
        source_tool_use_id=data.get("sourceToolUseID"),
        source_tool_assistant_uuid=data.get("sourceToolAssistantUUID"),
        tool_use_result=data.get("toolUseResult"),
        is_compact_summary=data.get("isCompactSummary") is True,
    )
    return _with_tools(fields)


def _create_assistant_message(data: dict[str, Any]) -> ParsedMessage:
    message = _message_body(data)
    fields = _base_fields(data)
    fields.update(
        content=create_message_content(
            message.get("content"), ASSISTANT_CONTENT_TYPES
        ),
        role=message.get("role"),
        usage=normalize_usage_info(message.get("usage")),
        model=message.get("model"),
        agent_id=data.get("agentId"),
    )
    return _with_tools(fields)


def _create_system_message(data: dict[str, Any]) -> ParsedMessage:
    fields = _base_fields(data)
    fields["is_meta"] = data.get("isMeta") is True
    return _with_tools(fields)


# Registry mapping entry types to their creator functions
ENTRY_CREATORS: dict[str, Callable[[dict[str, Any]], ParsedMessage]] = {
    "user": _create_user_message,
    "assistant": _create_assistant_message,
    "system": _create_system_message,
    "summary": lambda data: _with_tools(_base_fields(data)),
    "file-history-snapshot": lambda data: _with_tools(_base_fields(data)),
    "queue-operation": lambda data: _with_tools(_base_fields(data)),
}


def create_parsed_message(data: dict[str, Any]) -> Optional[ParsedMessage]:
    """Create a ParsedMessage from a JSON dictionary.

    Uses a registry-based dispatch on the 'type' field.

    Args:
        data: Dictionary parsed from one JSONL line

    Returns:
        The ParsedMessage, or None for entries without a uuid or with an
        unknown type (these are metadata, not conversation)

    Raises:
        ValidationError: If a known entry carries malformed fields
    """
    if not data.get("uuid"):
        return None
    creator = ENTRY_CREATORS.get(data.get("type"))  # type: ignore[arg-type]
    if creator is None:
        return None
    return creator(data)
