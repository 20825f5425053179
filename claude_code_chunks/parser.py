"""Parse and extract data from parsed transcript messages.

This module provides utility functions shared across the pipeline:
- extract_text_content: Extract text from string or block content
- parse_timestamp: Parse ISO timestamps
- milliseconds_between: Millisecond duration between two datetimes

For message and content item creation, see factories/.
"""

from datetime import datetime, timezone
from typing import Optional, Union

from .models import ContentItem, TextContent


def extract_text_content(content: Union[str, list[ContentItem], None]) -> str:
    """Extract text content from Claude message content structure."""
    if not content:
        return ""
    if isinstance(content, str):
        return content
    return "\n".join(item.text for item in content if isinstance(item, TextContent))


def parse_timestamp(timestamp_str: str) -> Optional[datetime]:
    """Parse ISO timestamp to a timezone-aware datetime object.

    Naive timestamps are assumed to be UTC.
    """
    try:
        parsed = datetime.fromisoformat(timestamp_str.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def milliseconds_between(start: datetime, end: datetime) -> int:
    return int(round((end - start).total_seconds() * 1000))


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)
