#!/usr/bin/env python3
"""CLI interface for claude-code-chunks."""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click

from .chunk_builder import ChunkBuilder
from .compaction import find_compaction_boundaries
from .converter import filter_messages_by_date, load_transcript
from .models import (
    AIChunk,
    Chunk,
    CompactChunk,
    ConversationGroup,
    ParsedMessage,
    Process,
    SubagentDetail,
    SystemChunk,
    UserChunk,
    WaterfallData,
)
from .parser import extract_text_content
from .subagents import SubagentResolver
from .utils import get_tool_summary, to_jsonable

PREVIEW_LENGTH = 80


def _preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    text = " ".join(text.split())
    if len(text) > length:
        return text[: length - 3] + "..."
    return text


def _format_time(chunk_or_item: Any) -> str:
    return chunk_or_item.start_time.strftime("%Y-%m-%d %H:%M:%S")


def _message_preview(message: ParsedMessage) -> str:
    return _preview(extract_text_content(message.content))


# -- Text formatting ----------------------------------------------------------


def format_chunks_text(chunks: list[Chunk]) -> str:
    """Render chunks as one summary line each, with nested tool and subagent lines."""
    lines: list[str] = []
    for chunk in chunks:
        header = f"{_format_time(chunk)} {chunk.duration_ms:>8}ms"
        if isinstance(chunk, UserChunk):
            lines.append(f"{header} [user]    {_message_preview(chunk.user_message)}")
        elif isinstance(chunk, SystemChunk):
            lines.append(f"{header} [system]  {_preview(chunk.command_output)}")
        elif isinstance(chunk, CompactChunk):
            lines.append(f"{header} [compact] {_message_preview(chunk.message)}")
        elif isinstance(chunk, AIChunk):
            lines.append(
                f"{header} [ai]      {len(chunk.responses)} messages, "
                f"{len(chunk.semantic_steps)} steps, "
                f"{chunk.metrics.total_tokens} tokens"
            )
            for execution in chunk.tool_executions:
                status = "orphaned" if execution.result is None else "done"
                summary = get_tool_summary(
                    execution.tool_call.name, execution.tool_call.input
                )
                lines.append(
                    f"    - {execution.tool_call.name} ({status}) {summary}".rstrip()
                )
            for process in chunk.processes:
                parallel = " [parallel]" if process.is_parallel else ""
                lines.append(
                    f"    > subagent {process.id}: "
                    f"{process.description or process.subagent_type or ''}{parallel}"
                )
    return "\n".join(lines)


def format_groups_text(groups: list[ConversationGroup]) -> str:
    lines: list[str] = []
    for group in groups:
        lines.append(
            f"{group.id} {_format_time(group)} {group.duration_ms:>8}ms "
            f"{_message_preview(group.user_message)}"
        )
        lines.append(
            f"    {len(group.ai_responses)} responses, "
            f"{len(group.tool_executions)} tools, "
            f"{len(group.task_executions)} tasks, "
            f"{len(group.processes)} subagents"
        )
    return "\n".join(lines)


def format_waterfall_text(data: WaterfallData) -> str:
    lines = [f"Total duration: {data.total_duration_ms}ms"]
    for item in data.items:
        indent = "    " * item.level
        summary = ""
        if item.metadata and item.metadata.get("summary"):
            summary = f" {item.metadata['summary']}"
        parallel = " [parallel]" if item.is_parallel else ""
        lines.append(
            f"{indent}{item.type:<8} {item.label}{summary} "
            f"{item.duration_ms}ms{parallel}"
        )
    return "\n".join(lines)


def format_compaction_text(chunks: list[Chunk]) -> str:
    boundaries = find_compaction_boundaries(chunks)
    if not boundaries:
        return "No compactions"
    lines: list[str] = []
    for boundary in boundaries:
        line = f"Phase {boundary.phase_number} starts at {boundary.chunk_id}"
        if boundary.token_delta is not None:
            delta = boundary.token_delta
            line += (
                f" ({delta.pre_compaction_tokens} -> "
                f"{delta.post_compaction_tokens} tokens, {delta.delta:+d})"
            )
        lines.append(line)
    return "\n".join(lines)


def format_subagent_text(detail: SubagentDetail) -> str:
    lines = [
        f"Subagent {detail.id}: {detail.description}",
        f"Duration: {detail.duration}ms, tokens: {detail.metrics.total_tokens}, "
        f"thinking tokens: {detail.thinking_tokens}",
    ]
    for group in detail.semantic_step_groups or []:
        lines.append(f"    {group.label} ({group.total_duration}ms)")
    return "\n".join(lines)


def _to_json(value: Any) -> str:
    return json.dumps(to_jsonable(value), indent=2)


# -- Command ------------------------------------------------------------------


def _load_session(
    input_path: Path, resolve_subagents: bool, tree: bool
) -> tuple[list[ParsedMessage], list[Process]]:
    messages = load_transcript(input_path)
    if not resolve_subagents:
        return messages, []
    resolver = SubagentResolver()
    if tree:
        return messages, resolver.resolve_tree(input_path, messages)
    return messages, resolver.resolve_subagents(input_path, messages)


@click.command()
@click.argument("input_path", type=click.Path(path_type=Path))
@click.option(
    "-f",
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text).",
)
@click.option(
    "--view",
    type=click.Choice(["chunks", "groups", "waterfall", "compaction"]),
    default="chunks",
    help="Which view of the session to print (default: chunks).",
)
@click.option(
    "--no-subagents",
    is_flag=True,
    help="Do not resolve subagent transcripts next to the session file",
)
@click.option(
    "--subagent",
    "subagent_id",
    type=str,
    default=None,
    help="Print the drill-down detail for one subagent id instead of the session",
)
@click.option(
    "--from-date",
    type=str,
    help='Filter messages from this date/time (e.g., "2 hours ago", "yesterday", "2025-06-08")',
)
@click.option(
    "--to-date",
    type=str,
    help='Filter messages up to this date/time (e.g., "1 hour ago", "today", "2025-06-08 15:00")',
)
@click.option(
    "--verbose",
    is_flag=True,
    default=False,
    help="Show debug logging.",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Show full traceback on errors.",
)
def main(
    input_path: Path,
    output_format: str,
    view: str,
    no_subagents: bool,
    subagent_id: Optional[str],
    from_date: Optional[str],
    to_date: Optional[str],
    verbose: bool,
    debug: bool,
) -> None:
    """Split a Claude Code session transcript into chunks and timelines.

    INPUT_PATH: Path to a Claude Code session JSONL file.
    """
    # Configure logging to show warnings and above
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    builder = ChunkBuilder()
    as_json = output_format == "json"

    try:
        if not input_path.is_file():
            raise FileNotFoundError(f"Transcript not found: {input_path}")

        if subagent_id:
            detail = builder.build_subagent_detail(input_path, subagent_id)
            if detail is None:
                click.echo(f"Error: Could not load subagent {subagent_id}", err=True)
                sys.exit(1)
            click.echo(_to_json(detail) if as_json else format_subagent_text(detail))
            return

        messages, subagents = _load_session(
            input_path, not no_subagents, tree=view == "waterfall"
        )
        messages = filter_messages_by_date(messages, from_date, to_date)

        if view == "groups":
            groups = builder.build_groups(messages, subagents)
            click.echo(_to_json(groups) if as_json else format_groups_text(groups))
            return

        direct_subagents = [s for s in subagents if s.parent_process_id is None]
        chunks = builder.build_chunks(messages, direct_subagents)
        if view == "waterfall":
            data = builder.build_waterfall_data(chunks, subagents)
            click.echo(_to_json(data) if as_json else format_waterfall_text(data))
        elif view == "compaction":
            if as_json:
                click.echo(_to_json(find_compaction_boundaries(chunks)))
            else:
                click.echo(format_compaction_text(chunks))
        else:
            click.echo(_to_json(chunks) if as_json else format_chunks_text(chunks))

    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        if debug:
            import traceback

            traceback.print_exc()
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error processing transcript: {e}", err=True)
        if debug:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
