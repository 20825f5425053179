#!/usr/bin/env python3
"""Tests for tool call / result correlation."""

from claude_code_chunks.tool_executions import (
    build_tool_executions,
    separate_task_executions,
)

from test.helpers import (
    assistant,
    process,
    tool_result,
    tool_result_message,
    tool_use,
    ts,
    user,
)


class TestBuildToolExecutions:
    """Pairing calls with results."""

    def test_call_with_result(self):
        messages = [
            assistant("a1", 0, [tool_use("t1", "Read", {"file_path": "/x.py"})]),
            tool_result_message("u1", 2.5, "t1", "file contents"),
        ]
        executions = build_tool_executions(messages)

        assert len(executions) == 1
        execution = executions[0]
        assert execution.tool_call.id == "t1"
        assert execution.result is not None
        assert execution.result.content == "file contents"
        assert execution.start_time == ts(0)
        assert execution.end_time == ts(2.5)
        assert execution.duration_ms == 2500

    def test_orphaned_call(self):
        """A call without a result is surfaced with no result."""
        executions = build_tool_executions([assistant("a1", 0, [tool_use("t1")])])

        assert len(executions) == 1
        assert executions[0].tool_call.id == "t1"
        assert executions[0].result is None
        assert executions[0].end_time is None
        assert executions[0].duration_ms is None

    def test_source_tool_use_id_takes_priority(self):
        """The result of a message naming its call wins over a later generic match."""
        messages = [
            assistant("a1", 0, [tool_use("t1")]),
            tool_result_message(
                "u1", 1, "t1", "via source id", source_tool_use_id="t1"
            ),
            tool_result_message("u2", 2, "t1", "duplicate"),
        ]
        executions = build_tool_executions(messages)

        assert len(executions) == 1
        assert executions[0].result is not None
        assert executions[0].result.content == "via source id"
        assert executions[0].end_time == ts(1)

    def test_each_call_id_appears_once(self):
        messages = [
            assistant("a1", 0, [tool_use("t1"), tool_use("t2")]),
            user("u1", 1, [tool_result("t1"), tool_result("t2")], is_meta=True),
            tool_result_message("u2", 2, "t2", "late"),
        ]
        executions = build_tool_executions(messages)

        assert sorted(execution.tool_call.id for execution in executions) == [
            "t1",
            "t2",
        ]
        t2 = next(e for e in executions if e.tool_call.id == "t2")
        assert t2.end_time == ts(1)

    def test_result_for_unknown_call_is_ignored(self):
        messages = [tool_result_message("u1", 1, "missing")]
        assert build_tool_executions(messages) == []

    def test_sorted_by_start_time(self):
        messages = [
            assistant("a2", 5, [tool_use("late")]),
            assistant("a1", 1, [tool_use("early")]),
        ]
        executions = build_tool_executions(messages)
        assert [e.tool_call.id for e in executions] == ["early", "late"]

    def test_empty_input(self):
        assert build_tool_executions([]) == []


class TestSeparateTaskExecutions:
    """Splitting subagent tasks from regular tool executions."""

    def test_task_with_subagent_becomes_task_execution(self):
        responses = [
            assistant(
                "a1",
                0,
                [tool_use("task-1", "Task", {"description": "explore", "prompt": "go"})],
            ),
            tool_result_message("u1", 30, "task-1", source_tool_use_id="task-1"),
        ]
        subagent = process("agent-1", 1, 29, parent_task_id="task-1")

        task_executions, regular = separate_task_executions(responses, [subagent])

        assert regular == []
        assert len(task_executions) == 1
        task_execution = task_executions[0]
        assert task_execution.task_call.id == "task-1"
        assert task_execution.subagent is subagent
        assert task_execution.tool_result.uuid == "u1"
        assert task_execution.duration_ms == 30000

    def test_task_without_subagent_stays_regular(self):
        """An unlinked Task call is kept as an ordinary execution."""
        responses = [
            assistant("a1", 0, [tool_use("task-1", "Task", {"prompt": "go"})]),
            tool_result_message("u1", 3, "task-1", source_tool_use_id="task-1"),
        ]
        task_executions, regular = separate_task_executions(responses, [])

        assert task_executions == []
        assert [e.tool_call.id for e in regular] == ["task-1"]

    def test_only_meta_results_with_source_id_count(self):
        responses = [
            assistant("a1", 0, [tool_use("t1")]),
            tool_result_message("u1", 1, "t1", is_meta=False, source_tool_use_id="t1"),
            tool_result_message("u2", 2, "t1"),
        ]
        task_executions, regular = separate_task_executions(responses, [])
        assert task_executions == []
        assert regular == []

    def test_regular_tool(self):
        responses = [
            assistant("a1", 0, [tool_use("t1", "Grep", {"pattern": "foo"})]),
            tool_result_message("u1", 1, "t1", "match", source_tool_use_id="t1"),
        ]
        task_executions, regular = separate_task_executions(responses, [])

        assert task_executions == []
        assert len(regular) == 1
        assert regular[0].duration_ms == 1000
