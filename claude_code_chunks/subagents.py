"""Locate, parse and link subagent transcripts for a session.

Subagent transcripts live next to the session file in one of two layouts:
- <session dir>/<session id>/subagents/agent-<id>.jsonl
- <session dir>/agent-<id>.jsonl (legacy, shared by every session in the
  project, so filtered by the sessionId of their first entry)

The session id is the session file's stem.
"""

import logging
import re
from collections import deque
from pathlib import Path
from typing import Any, Optional

from .classifier import is_interruption_text
from .converter import load_transcript, read_session_id
from .models import (
    MessageType,
    ParsedMessage,
    Process,
    TextContent,
    ThinkingContent,
    ToolCall,
    ToolResultContent,
    ToolUseContent,
)
from .parser import milliseconds_between
from .utils import calculate_metrics

logger = logging.getLogger(__name__)

# Subagents starting within this window of a group's first start run in parallel
PARALLEL_WINDOW_MS = 100

WARMUP_PROMPT = "Warmup"
COMPACTION_AGENT_PREFIX = "acompact"
USER_REJECTION_RESULT = "User rejected tool use"

TEAMMATE_SUMMARY_PATTERN = re.compile(r'<teammate-message[^>]*\bsummary="([^"]+)"')


def is_team_spawn(task_call: ToolCall) -> bool:
    """A Task call that adds a named member to a team."""
    return bool(task_call.input.get("team_name") and task_call.input.get("name"))


def _team_message_summary(messages: list[ParsedMessage]) -> Optional[str]:
    for message in messages:
        if message.type != MessageType.USER:
            continue
        if not isinstance(message.content, str):
            return None
        match = TEAMMATE_SUMMARY_PATTERN.search(message.content)
        return match.group(1) if match else None
    return None


# =============================================================================
# Ongoing Detection
# =============================================================================


def is_session_ongoing(messages: list[ParsedMessage]) -> bool:
    """Check whether a transcript is still mid-turn.

    A transcript is ongoing when AI activity (thinking, tool use, tool result)
    follows the last ending event (text output, interruption, ExitPlanMode, or
    a rejected tool use).
    """
    activities: list[str] = []
    for message in messages:
        if isinstance(message.content, str):
            continue
        if message.type == MessageType.ASSISTANT:
            for block in message.content:
                if isinstance(block, ThinkingContent) and block.thinking:
                    activities.append("thinking")
                elif isinstance(block, ToolUseContent):
                    if block.name == "ExitPlanMode":
                        activities.append("ending")
                    else:
                        activities.append("tool_use")
                elif isinstance(block, TextContent) and block.text.strip():
                    activities.append("ending")
        elif message.type == MessageType.USER:
            rejected = message.tool_use_result == USER_REJECTION_RESULT
            for block in message.content:
                if isinstance(block, ToolResultContent):
                    activities.append("ending" if rejected else "tool_result")
                elif isinstance(block, TextContent) and is_interruption_text(
                    block.text
                ):
                    activities.append("ending")

    if "ending" not in activities:
        return bool(activities)
    last_ending = len(activities) - 1 - activities[::-1].index("ending")
    return any(activity != "ending" for activity in activities[last_ending + 1 :])


# =============================================================================
# Subagent Resolver
# =============================================================================


class SubagentResolver:
    """Resolve the subagent processes spawned by a session."""

    # -------------------------------------------------------------------------
    # File discovery
    # -------------------------------------------------------------------------

    def subagents_dir(self, session_path: Path) -> Path:
        return session_path.parent / session_path.stem / "subagents"

    def list_subagent_files(self, session_path: Path) -> list[Path]:
        files: list[Path] = []

        subagents_dir = self.subagents_dir(session_path)
        if subagents_dir.is_dir():
            files.extend(sorted(subagents_dir.glob("agent-*.jsonl")))

        session_id = session_path.stem
        for candidate in sorted(session_path.parent.glob("agent-*.jsonl")):
            if candidate == session_path:
                continue
            if read_session_id(candidate) == session_id:
                files.append(candidate)

        return files

    def find_subagent_file(
        self, session_path: Path, subagent_id: str
    ) -> Optional[Path]:
        file_name = f"agent-{subagent_id}.jsonl"
        for candidate in (
            self.subagents_dir(session_path) / file_name,
            session_path.parent / file_name,
        ):
            if candidate.is_file():
                return candidate
        return None

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    def _is_warmup(self, messages: list[ParsedMessage]) -> bool:
        for message in messages:
            if message.type == MessageType.USER:
                return message.content == WARMUP_PROMPT
        return False

    def parse_subagent_file(self, file_path: Path) -> Optional[Process]:
        """Parse one subagent transcript into a Process.

        Returns None for empty files, warmup agents, compaction artifacts and
        files that cannot be read.
        """
        agent_id = file_path.stem.removeprefix("agent-")
        if agent_id.startswith(COMPACTION_AGENT_PREFIX):
            return None

        try:
            messages = load_transcript(file_path)
        except OSError as e:
            logger.error("Error parsing subagent file %s: %s", file_path, e)
            return None

        if not messages or self._is_warmup(messages):
            return None

        timestamps = [message.timestamp for message in messages]
        start_time, end_time = min(timestamps), max(timestamps)
        return Process(
            id=agent_id,
            file_path=str(file_path),
            messages=messages,
            start_time=start_time,
            end_time=end_time,
            duration_ms=milliseconds_between(start_time, end_time),
            metrics=calculate_metrics(messages),
            is_ongoing=is_session_ongoing(messages),
        )

    # -------------------------------------------------------------------------
    # Linking
    # -------------------------------------------------------------------------

    def _enrich_from_task(self, subagent: Process, task_call: ToolCall) -> None:
        subagent.parent_task_id = task_call.id
        subagent.description = task_call.task_description
        subagent.subagent_type = task_call.task_subagent_type

    def link_to_task_calls(
        self,
        subagents: list[Process],
        task_calls: list[ToolCall],
        messages: list[ParsedMessage],
    ) -> None:
        """Set parent_task_id, description and type on each subagent.

        Phase 1 maps the agentId reported in a Task tool result to the call
        it answers. Phase 2 matches team spawns by description. Phase 3
        pairs the remaining subagents and non-team Task calls in start order.
        """
        task_calls = [call for call in task_calls if call.is_task]
        if not task_calls or not subagents:
            return

        agent_to_task: dict[str, str] = {}
        for message in messages:
            result: Any = message.tool_use_result
            if not isinstance(result, dict):
                continue
            agent_id = result.get("agentId") or result.get("agent_id")
            if not agent_id:
                continue
            task_call_id = message.source_tool_use_id or (
                message.tool_results[0].tool_use_id if message.tool_results else None
            )
            if task_call_id:
                agent_to_task[agent_id] = task_call_id

        calls_by_id = {call.id: call for call in task_calls}
        matched_subagents: set[str] = set()
        matched_tasks: set[str] = set()

        def match(subagent: Process, task_call: ToolCall) -> None:
            self._enrich_from_task(subagent, task_call)
            matched_subagents.add(subagent.id)
            matched_tasks.add(task_call.id)

        for subagent in subagents:
            task_call = calls_by_id.get(agent_to_task.get(subagent.id, ""))
            if task_call is not None:
                match(subagent, task_call)

        # Team spawns report "name@team" instead of a file id, so match the
        # Task description against the summary of the first teammate message
        summaries = {
            subagent.id: _team_message_summary(subagent.messages)
            for subagent in subagents
            if subagent.id not in matched_subagents
        }
        for task_call in task_calls:
            if task_call.id in matched_tasks or not is_team_spawn(task_call):
                continue
            if not task_call.task_description:
                continue
            candidates = [
                s
                for s in subagents
                if s.id not in matched_subagents
                and summaries.get(s.id) == task_call.task_description
            ]
            if candidates:
                match(min(candidates, key=lambda s: s.start_time), task_call)

        unmatched_subagents = sorted(
            (s for s in subagents if s.id not in matched_subagents),
            key=lambda s: s.start_time,
        )
        unmatched_tasks = [
            call
            for call in task_calls
            if call.id not in matched_tasks and not is_team_spawn(call)
        ]
        for subagent, task_call in zip(unmatched_subagents, unmatched_tasks):
            self._enrich_from_task(subagent, task_call)

    def detect_parallel_execution(self, subagents: list[Process]) -> None:
        """Flag subagents that start within PARALLEL_WINDOW_MS of each other."""
        if len(subagents) < 2:
            return

        groups: list[list[Process]] = []
        for agent in sorted(subagents, key=lambda s: s.start_time):
            if (
                groups
                and milliseconds_between(groups[-1][0].start_time, agent.start_time)
                <= PARALLEL_WINDOW_MS
            ):
                groups[-1].append(agent)
            else:
                groups.append([agent])

        for group in groups:
            if len(group) > 1:
                for agent in group:
                    agent.is_parallel = True

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve_subagents(
        self, session_path: Path, messages: list[ParsedMessage]
    ) -> list[Process]:
        """Resolve the direct subagents of a session, sorted by start time."""
        subagents = [
            process
            for process in (
                self.parse_subagent_file(file_path)
                for file_path in self.list_subagent_files(session_path)
            )
            if process is not None
        ]
        if not subagents:
            return []

        task_calls = [
            call for message in messages for call in message.tool_calls if call.is_task
        ]
        self.link_to_task_calls(subagents, task_calls, messages)
        self.detect_parallel_execution(subagents)
        subagents.sort(key=lambda s: s.start_time)
        return subagents

    def resolve_tree(
        self, session_path: Path, messages: list[ParsedMessage]
    ) -> list[Process]:
        """Resolve subagents and, recursively, the subagents they spawned.

        Each subagent's own file is treated as the session path for its
        children, and the children get parent_process_id set to its id.
        A subagent id is resolved at most once, so a chain that refers back
        to an ancestor terminates.
        """
        resolved: list[Process] = []
        visited: set[str] = set()
        queue: deque[tuple[Path, list[ParsedMessage], Optional[str]]] = deque(
            [(session_path, messages, None)]
        )

        while queue:
            path, path_messages, parent_id = queue.popleft()
            for process in self.resolve_subagents(path, path_messages):
                if process.id in visited:
                    continue
                visited.add(process.id)
                process.parent_process_id = parent_id
                resolved.append(process)
                queue.append((Path(process.file_path), process.messages, process.id))

        resolved.sort(key=lambda s: s.start_time)
        return resolved
