"""Build ordered chunks, waterfall data and drill-down views from a session.

The chunking state machine scans classified main-thread messages once:
- hardNoise messages are dropped
- ai messages are appended to a buffer
- any other category flushes the buffer into one AI chunk, then emits its own
  single-message chunk
The buffer is flushed once more at the end of the stream.
"""

import logging
import time
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .classifier import classify_messages
from .conversation_groups import build_groups as build_conversation_groups
from .converter import load_transcript
from .factories import (
    create_ai_chunk,
    create_compact_chunk,
    create_system_chunk,
    create_user_chunk,
    stable_chunk_id,
)
from .models import (
    AIChunk,
    Chunk,
    CompactChunk,
    ConversationGroup,
    MessageType,
    ParsedMessage,
    Process,
    SessionDetail,
    SessionMetrics,
    SubagentDetail,
    SystemChunk,
    ThinkingContent,
    TokenUsage,
    UserChunk,
    WaterfallData,
    WaterfallItem,
)
from .parser import milliseconds_between
from .step_grouper import build_semantic_step_groups
from .subagents import SubagentResolver
from .timings import ChunkTimings, log_timing
from .utils import calculate_metrics, count_tokens, get_tool_summary

logger = logging.getLogger(__name__)

SUBAGENT_DESCRIPTION_LENGTH = 100


def _token_usage(metrics: SessionMetrics) -> TokenUsage:
    return TokenUsage(
        input_tokens=metrics.input_tokens,
        output_tokens=metrics.output_tokens,
        cache_read_tokens=metrics.cache_read_tokens,
        cache_creation_tokens=metrics.cache_creation_tokens,
    )


def _chunk_label(chunk: Chunk) -> Optional[str]:
    if isinstance(chunk, UserChunk):
        return "User"
    if isinstance(chunk, AIChunk):
        return "Assistant"
    if isinstance(chunk, SystemChunk):
        return "System"
    if isinstance(chunk, CompactChunk):
        return "Compact"
    return None


def _subagent_item(
    process: Process, level: int, parent_id: Optional[str] = None
) -> WaterfallItem:
    return WaterfallItem(
        id=f"subagent-{process.id}",
        label=process.description or process.subagent_type or process.id,
        start_time=process.start_time,
        end_time=process.end_time,
        duration_ms=process.duration_ms,
        token_usage=_token_usage(process.metrics),
        level=level,
        type="subagent",
        is_parallel=process.is_parallel,
        parent_id=parent_id,
        metadata={
            "subagent_type": process.subagent_type,
            "message_count": len(process.messages),
        },
    )


def _nesting_depth(process: Process, by_id: dict[str, Process]) -> int:
    depth = 0
    seen = {process.id}
    parent_id = process.parent_process_id
    while parent_id and parent_id in by_id and parent_id not in seen:
        seen.add(parent_id)
        depth += 1
        parent_id = by_id[parent_id].parent_process_id
    return depth


class ChunkBuilder:
    """Turns parsed session messages into chunks and derived views."""

    # =========================================================================
    # Chunk Building
    # =========================================================================

    def build_chunks(
        self, messages: list[ParsedMessage], subagents: Optional[list[Process]] = None
    ) -> list[Chunk]:
        """Build the ordered chunk list for the main thread of a session.

        Sidechain messages are not chunked; they are attached to the AI chunk
        whose time window contains them.
        """
        subagents = subagents or []
        t_start = time.time()

        main_messages = [message for message in messages if not message.is_sidechain]
        logger.debug(
            "Total messages: %d, main thread: %d", len(messages), len(main_messages)
        )

        with log_timing("Classify messages", t_start):
            classified = classify_messages(main_messages)
        category_counts = Counter(item.category for item in classified)
        logger.debug("Message classification: %s", dict(category_counts))

        chunks: list[Chunk] = []
        chunk_timings = ChunkTimings("AI chunk building")

        def flush(buffer: list[ParsedMessage]) -> None:
            if not buffer:
                return
            with chunk_timings.measure(stable_chunk_id("ai", buffer[0])):
                chunks.append(create_ai_chunk(buffer, subagents, messages))

        with log_timing(lambda: f"Build chunks ({len(chunks)} chunks)", t_start):
            ai_buffer: list[ParsedMessage] = []
            for item in classified:
                if item.category == "hardNoise":
                    continue
                if item.category == "ai":
                    ai_buffer.append(item.message)
                    continue

                flush(ai_buffer)
                ai_buffer = []
                if item.category == "compact":
                    chunks.append(create_compact_chunk(item.message))
                elif item.category == "user":
                    chunks.append(create_user_chunk(item.message))
                elif item.category == "system":
                    chunks.append(create_system_chunk(item.message))

            flush(ai_buffer)

        chunk_timings.report()

        counts = Counter(type(chunk).__name__ for chunk in chunks)
        logger.debug(
            "Created %d chunks: %d user, %d AI, %d system, %d compact",
            len(chunks),
            counts["UserChunk"],
            counts["AIChunk"],
            counts["SystemChunk"],
            counts["CompactChunk"],
        )
        return chunks

    # =========================================================================
    # Alternate Views
    # =========================================================================

    def build_groups(
        self, messages: list[ParsedMessage], subagents: list[Process]
    ) -> list[ConversationGroup]:
        return build_conversation_groups(messages, subagents)

    def build_session_detail(
        self, messages: list[ParsedMessage], subagents: list[Process]
    ) -> SessionDetail:
        chunks = self.build_chunks(messages, subagents)
        with log_timing("Session metrics"):
            metrics = calculate_metrics(messages)
        return SessionDetail(
            messages=messages,
            chunks=chunks,
            processes=subagents,
            metrics=metrics,
        )

    def build_waterfall_data(
        self, chunks: list[Chunk], processes: list[Process]
    ) -> WaterfallData:
        """Flatten chunks, their tool executions and subagents into timeline items.

        Chunks are level 0 and their tools and subagents level 1. A nested
        subagent sits one level below its parent subagent's item. Other
        processes not attached to any AI chunk are appended at level 0.
        """
        items: list[WaterfallItem] = []

        for chunk in chunks:
            label = _chunk_label(chunk)
            if label is None:
                logger.warning(
                    "Skipping unknown chunk type %s in waterfall",
                    type(chunk).__name__,
                )
                continue

            items.append(
                WaterfallItem(
                    id=chunk.id,
                    label=label,
                    start_time=chunk.start_time,
                    end_time=chunk.end_time,
                    duration_ms=chunk.duration_ms,
                    token_usage=_token_usage(chunk.metrics),
                    level=0,
                    type="chunk",
                )
            )

            if not isinstance(chunk, AIChunk):
                continue

            for execution in chunk.tool_executions:
                end_time = execution.end_time or execution.start_time
                duration_ms = execution.duration_ms
                if duration_ms is None:
                    duration_ms = max(
                        milliseconds_between(execution.start_time, end_time), 0
                    )
                items.append(
                    WaterfallItem(
                        id=f"tool-{execution.tool_call.id}",
                        label=execution.tool_call.name,
                        start_time=execution.start_time,
                        end_time=end_time,
                        duration_ms=duration_ms,
                        token_usage=TokenUsage(),
                        level=1,
                        type="tool",
                        parent_id=chunk.id,
                        metadata={
                            "summary": get_tool_summary(
                                execution.tool_call.name, execution.tool_call.input
                            ),
                            "orphaned": execution.result is None,
                        },
                    )
                )

            for process in chunk.processes:
                items.append(_subagent_item(process, level=1, parent_id=chunk.id))

        subagent_levels = {
            item.id: item.level for item in items if item.type == "subagent"
        }
        by_id = {process.id: process for process in processes}
        for process in sorted(
            processes, key=lambda p: (_nesting_depth(p, by_id), p.start_time)
        ):
            item_id = f"subagent-{process.id}"
            if item_id in subagent_levels:
                continue
            parent_item_id = (
                f"subagent-{process.parent_process_id}"
                if process.parent_process_id
                else None
            )
            if parent_item_id in subagent_levels:
                item = _subagent_item(
                    process,
                    level=subagent_levels[parent_item_id] + 1,
                    parent_id=parent_item_id,
                )
            else:
                item = _subagent_item(process, level=0)
            items.append(item)
            subagent_levels[item_id] = item.level

        items.sort(key=lambda item: item.start_time)

        if not items:
            now = datetime.now(timezone.utc)
            return WaterfallData(items=[], min_time=now, max_time=now, total_duration_ms=0)

        min_time = min(item.start_time for item in items)
        max_time = max(item.end_time for item in items)
        return WaterfallData(
            items=items,
            min_time=min_time,
            max_time=max_time,
            total_duration_ms=max(milliseconds_between(min_time, max_time), 0),
        )

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def get_total_chunk_metrics(self, chunks: list[Chunk]) -> SessionMetrics:
        """Sum durations and token categories across chunks."""
        if not chunks:
            return SessionMetrics()

        totals = SessionMetrics()
        for chunk in chunks:
            totals.duration_ms += chunk.duration_ms
            totals.input_tokens += chunk.metrics.input_tokens
            totals.output_tokens += chunk.metrics.output_tokens
            totals.cache_read_tokens += chunk.metrics.cache_read_tokens
            totals.cache_creation_tokens += chunk.metrics.cache_creation_tokens
            totals.message_count += chunk.metrics.message_count
        totals.total_tokens = totals.input_tokens + totals.output_tokens
        return totals

    def find_chunk_by_message_id(
        self, chunks: list[Chunk], message_uuid: str
    ) -> Optional[Chunk]:
        for chunk in chunks:
            if isinstance(chunk, UserChunk) and chunk.user_message.uuid == message_uuid:
                return chunk
            if isinstance(chunk, AIChunk) and any(
                response.uuid == message_uuid for response in chunk.responses
            ):
                return chunk
        return None

    def find_chunk_by_subagent_id(
        self, chunks: list[Chunk], subagent_id: str
    ) -> Optional[Chunk]:
        for chunk in chunks:
            if isinstance(chunk, AIChunk) and any(
                process.id == subagent_id for process in chunk.processes
            ):
                return chunk
        return None

    # =========================================================================
    # Subagent Detail Building (for drill-down)
    # =========================================================================

    def build_subagent_detail(
        self,
        session_path: Path,
        subagent_id: str,
        resolver: Optional[SubagentResolver] = None,
    ) -> Optional[SubagentDetail]:
        """Build the drill-down view for one subagent of a session.

        Returns None when the subagent's transcript is missing or cannot be
        loaded.
        """
        resolver = resolver or SubagentResolver()
        subagent_path = resolver.find_subagent_file(session_path, subagent_id)
        if subagent_path is None:
            logger.warning(
                "Subagent file not found for %s in %s", subagent_id, session_path
            )
            return None

        try:
            messages = load_transcript(subagent_path)
        except OSError as e:
            logger.error("Error building subagent detail for %s: %s", subagent_id, e)
            return None
        if not messages:
            logger.warning("Subagent transcript %s is empty", subagent_path)
            return None

        nested_subagents = resolver.resolve_subagents(subagent_path, messages)
        # Every entry of a subagent transcript is a sidechain; here it is the main thread
        thread = [
            message.model_copy(update={"is_sidechain": False}) for message in messages
        ]
        chunks = self.build_chunks(thread, nested_subagents)

        description = "Subagent"
        for message in messages:
            if message.type == MessageType.USER and isinstance(message.content, str):
                description = message.content[:SUBAGENT_DESCRIPTION_LENGTH]
                if len(message.content) > SUBAGENT_DESCRIPTION_LENGTH:
                    description += "..."
                break

        timestamps = [message.timestamp for message in messages]
        start_time, end_time = min(timestamps), max(timestamps)

        thinking_tokens = 0
        for message in messages:
            if message.type != MessageType.ASSISTANT or isinstance(
                message.content, str
            ):
                continue
            for block in message.content:
                if isinstance(block, ThinkingContent) and block.thinking:
                    thinking_tokens += count_tokens(block.thinking)

        all_steps = [
            step
            for chunk in chunks
            if isinstance(chunk, AIChunk)
            for step in chunk.semantic_steps
        ]

        return SubagentDetail(
            id=subagent_id,
            description=description,
            chunks=chunks,
            semantic_step_groups=build_semantic_step_groups(all_steps)
            if all_steps
            else None,
            start_time=start_time,
            end_time=end_time,
            duration=milliseconds_between(start_time, end_time),
            metrics=calculate_metrics(messages),
            thinking_tokens=thinking_tokens,
        )
