"""Factory modules for creating typed objects from raw data."""

from .transcript_factory import (
    # Content type constants
    ASSISTANT_CONTENT_TYPES,
    TASK_TOOL_NAMES,
    USER_CONTENT_TYPES,
    # Usage normalization
    normalize_usage_info,
    # Content item creation
    create_content_item,
    create_message_content,
    # Tool extraction
    extract_tool_calls,
    extract_tool_results,
    # Message creation
    create_parsed_message,
    CONTENT_ITEM_CREATORS,
    ENTRY_CREATORS,
)
from .chunk_factory import (
    # Chunk creation
    create_ai_chunk,
    create_compact_chunk,
    create_system_chunk,
    create_user_chunk,
    # Helpers
    collect_sidechain_messages,
    extract_command_output,
    stable_chunk_id,
)

__all__ = [
    # Transcript factory
    "ASSISTANT_CONTENT_TYPES",
    "TASK_TOOL_NAMES",
    "USER_CONTENT_TYPES",
    "normalize_usage_info",
    "create_content_item",
    "create_message_content",
    "extract_tool_calls",
    "extract_tool_results",
    "create_parsed_message",
    "CONTENT_ITEM_CREATORS",
    "ENTRY_CREATORS",
    # Chunk factory
    "create_ai_chunk",
    "create_compact_chunk",
    "create_system_chunk",
    "create_user_chunk",
    "collect_sidechain_messages",
    "extract_command_output",
    "stable_chunk_id",
]
