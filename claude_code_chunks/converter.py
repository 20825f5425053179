#!/usr/bin/env python3
"""Load Claude Code JSONL transcripts into parsed messages."""

import json
import logging
import re
from datetime import timezone
from pathlib import Path
from typing import Any, Optional

import dateparser
from pydantic import ValidationError

from .factories import create_parsed_message
from .models import ParsedMessage

logger = logging.getLogger(__name__)


def filter_messages_by_date(
    messages: list[ParsedMessage], from_date: Optional[str], to_date: Optional[str]
) -> list[ParsedMessage]:
    """Filter messages based on date range.

    Date parsing is done in UTC to match transcript timestamps which are stored in UTC.
    """
    if not from_date and not to_date:
        return messages

    # Parse dates in UTC to match transcript timestamps (which are stored in UTC)
    dateparser_settings: Any = {"TIMEZONE": "UTC", "RETURN_AS_TIMEZONE_AWARE": False}
    from_dt = None
    to_dt = None

    if from_date:
        from_dt = dateparser.parse(from_date, settings=dateparser_settings)
        if not from_dt:
            raise ValueError(f"Could not parse from-date: {from_date}")
        # If parsing relative dates like "today", start from beginning of day
        if from_date in ["today", "yesterday"] or "days ago" in from_date:
            from_dt = from_dt.replace(hour=0, minute=0, second=0, microsecond=0)

    if to_date:
        to_dt = dateparser.parse(to_date, settings=dateparser_settings)
        if not to_dt:
            raise ValueError(f"Could not parse to-date: {to_date}")
        # If parsing relative dates like "today", end at end of day
        if to_date in ["today", "yesterday"] or "days ago" in to_date:
            to_dt = to_dt.replace(hour=23, minute=59, second=59, microsecond=999999)

    filtered_messages: list[ParsedMessage] = []
    for message in messages:
        # Compare as naive UTC (dateparser returns naive datetimes)
        message_dt = message.timestamp.astimezone(timezone.utc).replace(tzinfo=None)

        if from_dt and message_dt < from_dt:
            continue
        if to_dt and message_dt > to_dt:
            continue

        filtered_messages.append(message)

    return filtered_messages


def load_transcript(jsonl_path: Path) -> list[ParsedMessage]:
    """Load and parse a JSONL transcript file.

    Blank lines, metadata entries without a uuid and unknown entry types are
    skipped silently. Lines that are not valid JSON or fail validation are
    logged with their line number and skipped.
    """
    messages: list[ParsedMessage] = []

    with open(jsonl_path, "r", encoding="utf-8", errors="replace") as f:
        for line_no, line in enumerate(f, 1):  # Start counting from 1
            line = line.strip()
            if not line:
                continue
            try:
                entry_dict: dict[str, Any] | str = json.loads(line)
                if not isinstance(entry_dict, dict):
                    logger.warning(
                        "Line %d of %s is not a JSON object", line_no, jsonl_path
                    )
                    continue

                message = create_parsed_message(entry_dict)
                if message is not None:
                    messages.append(message)
            except json.JSONDecodeError as e:
                logger.warning(
                    "Line %d of %s | JSON decode error: %s", line_no, jsonl_path, e
                )
            except ValidationError as e:
                err_no_url = re.sub(
                    r"    For further information visit https://errors.pydantic(.*)\n?",
                    "",
                    str(e),
                )
                logger.warning("Line %d of %s | %s", line_no, jsonl_path, err_no_url)
            except ValueError as e:
                logger.warning(
                    "Line %d of %s | ValueError: %s", line_no, jsonl_path, e
                )
            except (AttributeError, TypeError, KeyError) as e:
                logger.warning(
                    "Line %d of %s | Malformed entry (%s): %s",
                    line_no,
                    jsonl_path,
                    type(e).__name__,
                    e,
                )

    return messages


def read_session_id(jsonl_path: Path) -> Optional[str]:
    """Return the sessionId of the first entry in a transcript, if any."""
    try:
        with open(jsonl_path, "r", encoding="utf-8", errors="replace") as f:
            first_line = f.readline().strip()
        if not first_line:
            return None
        entry = json.loads(first_line)
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Could not read session id from %s: %s", jsonl_path, e)
        return None
    if not isinstance(entry, dict):
        return None
    session_id = entry.get("sessionId")
    return session_id if isinstance(session_id, str) else None
