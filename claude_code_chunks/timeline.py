"""Timeline post-processing for semantic steps.

- fill_timeline_gaps: give every step an effective end time so a timeline
  has no unexplained silent intervals
- calculate_step_context: attach context window size to each step
"""

from datetime import datetime

from .models import ParsedMessage, SemanticStep, TokenBreakdown
from .parser import milliseconds_between

# Steps starting within this window of each other are treated as parallel
GAP_FILL_PARALLEL_WINDOW_MS = 100


def fill_timeline_gaps(
    steps: list[SemanticStep],
    chunk_start_time: datetime,
    chunk_end_time: datetime,
) -> list[SemanticStep]:
    """Set effective end times on steps, anchored to the chunk boundaries.

    Steps are neither reordered nor removed. Subagent steps with real timing
    longer than the parallel window keep it. Every other step runs until the
    next step that starts at least GAP_FILL_PARALLEL_WINDOW_MS later, or until
    the chunk end for the last one, and never ends before it started.
    """
    for index, step in enumerate(steps):
        if (
            step.type == "subagent"
            and step.end_time is not None
            and step.duration_ms > GAP_FILL_PARALLEL_WINDOW_MS
        ):
            step.effective_end_time = step.end_time
            step.effective_duration_ms = step.duration_ms
            step.is_gap_filled = False
            continue

        next_start = None
        for candidate in steps[index + 1 :]:
            if (
                milliseconds_between(step.start_time, candidate.start_time)
                < GAP_FILL_PARALLEL_WINDOW_MS
            ):
                continue
            next_start = candidate.start_time
            break

        effective_end = next_start or chunk_end_time
        effective_end = max(effective_end, step.start_time, chunk_start_time)
        step.effective_end_time = effective_end
        step.effective_duration_ms = milliseconds_between(
            step.start_time, effective_end
        )
        step.is_gap_filled = True

    return list(steps)


def calculate_step_context(
    steps: list[SemanticStep], messages: list[ParsedMessage]
) -> None:
    """Record the context window each step was produced in.

    Context is measured per message (input plus both cache categories), so
    individual steps contribute no tokens of their own.
    """
    by_uuid: dict[str, ParsedMessage] = {}
    for message in messages:
        by_uuid.setdefault(message.uuid, message)
    for step in steps:
        message = by_uuid.get(step.source_message_id or "")
        if message is not None and message.usage is not None:
            step.accumulated_context = (
                (message.usage.input_tokens or 0)
                + (message.usage.cache_read_input_tokens or 0)
                + (message.usage.cache_creation_input_tokens or 0)
            )
        elif step.tokens is not None:
            step.accumulated_context = step.tokens.input + step.tokens.cached

        step.context_tokens = 0
        step.token_breakdown = TokenBreakdown()
