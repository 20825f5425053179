"""Compaction boundaries and the context phases they separate.

Each compact chunk ends one context phase and starts the next, so state that
accumulates across a conversation (context size, injected files) starts
empty again after it.
"""

from typing import Optional

from .models import (
    AIChunk,
    Chunk,
    CompactChunk,
    CompactionBoundary,
    MessageType,
    ParsedMessage,
    TokenDelta,
)


def _assistant_usage_totals(chunk: AIChunk) -> list[int]:
    return [
        message.usage.total
        for message in chunk.responses
        if message.type == MessageType.ASSISTANT and message.usage is not None
    ]


def _last_assistant_total(chunks: list[Chunk]) -> Optional[int]:
    for chunk in reversed(chunks):
        if isinstance(chunk, CompactChunk):
            return None
        if isinstance(chunk, AIChunk):
            totals = _assistant_usage_totals(chunk)
            if totals:
                return totals[-1]
    return None


def _first_assistant_total(chunks: list[Chunk]) -> Optional[int]:
    for chunk in chunks:
        if isinstance(chunk, CompactChunk):
            return None
        if isinstance(chunk, AIChunk):
            totals = _assistant_usage_totals(chunk)
            if totals:
                return totals[0]
    return None


def compute_token_delta(
    before: list[Chunk], after: list[Chunk]
) -> Optional[TokenDelta]:
    """Token delta across a compaction.

    Compares the last assistant usage before the boundary with the first
    assistant usage after it. The first one reflects the compacted context;
    later ones already include new growth.
    """
    pre = _last_assistant_total(before)
    post = _first_assistant_total(after)
    if pre is None or post is None:
        return None
    return TokenDelta(
        pre_compaction_tokens=pre,
        post_compaction_tokens=post,
        delta=post - pre,
    )


def find_compaction_boundaries(chunks: list[Chunk]) -> list[CompactionBoundary]:
    """One boundary per compact chunk, numbered by the phase it starts."""
    boundaries: list[CompactionBoundary] = []
    phase = 1
    for index, chunk in enumerate(chunks):
        if not isinstance(chunk, CompactChunk):
            continue
        phase += 1
        boundaries.append(
            CompactionBoundary(
                chunk_id=chunk.id,
                phase_number=phase,
                token_delta=compute_token_delta(
                    chunks[:index], chunks[index + 1 :]
                ),
            )
        )
    return boundaries


def phase_for_chunks(chunks: list[Chunk]) -> dict[str, int]:
    """Map each chunk id to its context phase, starting at 1.

    A compact chunk belongs to the phase it starts.
    """
    phases: dict[str, int] = {}
    phase = 1
    for chunk in chunks:
        if isinstance(chunk, CompactChunk):
            phase += 1
        phases[chunk.id] = phase
    return phases


def messages_since_last_compaction(
    messages: list[ParsedMessage],
) -> list[ParsedMessage]:
    """Messages after the most recent compaction summary (all of them if none)."""
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].is_compact_summary:
            return messages[index + 1 :]
    return list(messages)
