"""Message classification for chunk building.

Every message gets exactly one category, checked in this order:
- hardNoise: structural metadata, caveats, reminders, empty command output
- compact: conversation compaction summaries
- system: local command output
- user: genuine user input
- ai: everything else (assistant responses, tool result carriers)
"""

import re

from .models import (
    ClassifiedMessage,
    ImageContent,
    MessageCategory,
    MessageType,
    ParsedMessage,
    TextContent,
)


# =============================================================================
# Message Tags
# =============================================================================

LOCAL_COMMAND_STDOUT_TAG = "<local-command-stdout>"
LOCAL_COMMAND_STDERR_TAG = "<local-command-stderr>"
LOCAL_COMMAND_CAVEAT_TAG = "<local-command-caveat>"
SYSTEM_REMINDER_TAG = "<system-reminder>"

EMPTY_STDOUT = "<local-command-stdout></local-command-stdout>"
EMPTY_STDERR = "<local-command-stderr></local-command-stderr>"

SYSTEM_OUTPUT_TAGS = (
    LOCAL_COMMAND_STDERR_TAG,
    LOCAL_COMMAND_STDOUT_TAG,
    LOCAL_COMMAND_CAVEAT_TAG,
    SYSTEM_REMINDER_TAG,
)
HARD_NOISE_TAGS = (LOCAL_COMMAND_CAVEAT_TAG, SYSTEM_REMINDER_TAG)

INTERRUPTION_PREFIX = "[Request interrupted by user"
SYNTHETIC_MODEL = "<synthetic>"

TEAMMATE_MESSAGE_PATTERN = re.compile(r'^<teammate-message\s+teammate_id="([^"]+)"')

HARD_NOISE_MESSAGE_TYPES = (
    MessageType.SYSTEM,
    MessageType.SUMMARY,
    MessageType.FILE_HISTORY_SNAPSHOT,
    MessageType.QUEUE_OPERATION,
)


# =============================================================================
# Predicates
# =============================================================================


def is_interruption_text(text: str) -> bool:
    return text.startswith(INTERRUPTION_PREFIX)


def _is_lone_interruption_block(message: ParsedMessage) -> bool:
    content = message.content
    return (
        isinstance(content, list)
        and len(content) == 1
        and isinstance(content[0], TextContent)
        and is_interruption_text(content[0].text)
    )


def is_hard_noise_message(message: ParsedMessage) -> bool:
    """Check if a message is structural metadata that is never displayed."""
    if message.type in HARD_NOISE_MESSAGE_TYPES:
        return True

    if message.type == MessageType.ASSISTANT and message.model == SYNTHETIC_MODEL:
        return True

    if message.type != MessageType.USER:
        return False

    if isinstance(message.content, str):
        trimmed = message.content.strip()
        for tag in HARD_NOISE_TAGS:
            close_tag = tag.replace("<", "</", 1)
            if trimmed.startswith(tag) and trimmed.endswith(close_tag):
                return True
        if trimmed in (EMPTY_STDOUT, EMPTY_STDERR):
            return True
        if is_interruption_text(trimmed):
            return True
        return False

    return _is_lone_interruption_block(message)


def is_compact_message(message: ParsedMessage) -> bool:
    return message.is_compact_summary


def is_system_chunk_message(message: ParsedMessage) -> bool:
    """Check if a message carries local command output."""
    if message.type != MessageType.USER:
        return False

    if isinstance(message.content, str):
        return message.content.startswith(
            (LOCAL_COMMAND_STDOUT_TAG, LOCAL_COMMAND_STDERR_TAG)
        )

    return any(
        isinstance(block, TextContent)
        and block.text.startswith(LOCAL_COMMAND_STDOUT_TAG)
        for block in message.content
    )


def is_teammate_message(message: ParsedMessage) -> bool:
    """Check if a message was relayed from another agent in a team session."""
    if message.type != MessageType.USER or message.is_meta:
        return False
    if isinstance(message.content, str):
        return bool(TEAMMATE_MESSAGE_PATTERN.match(message.content.strip()))
    return any(
        isinstance(block, TextContent)
        and TEAMMATE_MESSAGE_PATTERN.match(block.text.strip())
        for block in message.content
    )


def _has_user_content(message: ParsedMessage) -> bool:
    return any(
        isinstance(block, (TextContent, ImageContent)) for block in message.content
    )


def is_user_chunk_message(message: ParsedMessage) -> bool:
    """Check if a message is genuine user input that starts a user chunk.

    Slash commands (<command-name>) count as user input. Tool result
    carriers, interruptions and system output do not.
    """
    if message.type != MessageType.USER or message.is_meta:
        return False
    if is_teammate_message(message):
        return False

    if isinstance(message.content, str):
        trimmed = message.content.strip()
        if trimmed.startswith(SYSTEM_OUTPUT_TAGS):
            return False
        return len(trimmed) > 0

    if not _has_user_content(message):
        return False
    if _is_lone_interruption_block(message):
        return False
    for block in message.content:
        if isinstance(block, TextContent) and block.text.startswith(
            SYSTEM_OUTPUT_TAGS
        ):
            return False
    return True


def is_real_user_message(message: ParsedMessage) -> bool:
    """Looser check: any non-meta user message with text or image content."""
    if message.type != MessageType.USER or message.is_meta:
        return False
    if isinstance(message.content, str):
        return True
    return _has_user_content(message)


def is_internal_user_message(message: ParsedMessage) -> bool:
    return message.type == MessageType.USER and message.is_meta


# =============================================================================
# Classification
# =============================================================================


def categorize_message(message: ParsedMessage) -> MessageCategory:
    if is_hard_noise_message(message):
        return "hardNoise"
    # Compact summaries arrive as user messages, so check them first
    if is_compact_message(message):
        return "compact"
    if is_system_chunk_message(message):
        return "system"
    if is_user_chunk_message(message):
        return "user"
    return "ai"


def classify_messages(messages: list[ParsedMessage]) -> list[ClassifiedMessage]:
    """Label each message with its category."""
    return [
        ClassifiedMessage(message=message, category=categorize_message(message))
        for message in messages
    ]
