#!/usr/bin/env python3
"""Tests for the command line interface."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from claude_code_chunks.cli import main

from test.helpers import assistant_entry, user_entry, write_jsonl


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def sample_session(test_data_dir: Path) -> Path:
    """Session with one Task call whose subagent transcript sits beside it."""
    return test_data_dir / "session-with-task.jsonl"


class TestChunksView:
    """Default chunks view."""

    def test_text_output(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(main, [str(sample_session)])

        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert "[user]    Find where config is loaded" in lines[0]
        assert "[ai]      5 messages" in lines[1]
        assert "    - Task (done) Explore - Locate config loading" in lines
        assert "    - Read (done) settings.py" in lines
        assert "    > subagent a1b2c3d: Locate config loading" in lines
        assert "[system]  Total cost: $0.02" in lines[-1]

    def test_json_output(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(main, [str(sample_session), "--format", "json"])

        assert result.exit_code == 0, result.output
        chunks = json.loads(result.stdout)
        assert [c["chunk_type"] for c in chunks] == ["user", "ai", "system"]
        assert chunks[0]["id"] == "user-4c1d7c9e-0001"
        assert chunks[1]["id"] == "ai-4c1d7c9e-0002"
        assert [p["id"] for p in chunks[1]["processes"]] == ["a1b2c3d"]
        assert chunks[2]["command_output"] == "Total cost: $0.02"

    def test_no_subagents(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(
            main, [str(sample_session), "-f", "json", "--no-subagents"]
        )

        assert result.exit_code == 0, result.output
        chunks = json.loads(result.stdout)
        assert chunks[1]["processes"] == []


class TestOtherViews:
    """Groups, waterfall and compaction views."""

    def test_groups_json(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(
            main, [str(sample_session), "--view", "groups", "-f", "json"]
        )

        assert result.exit_code == 0, result.output
        groups = json.loads(result.stdout)
        assert [g["id"] for g in groups] == ["group-1"]
        assert [p["id"] for p in groups[0]["processes"]] == ["a1b2c3d"]

    def test_groups_text(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(main, [str(sample_session), "--view", "groups"])

        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("group-1 ")
        assert "1 subagents" in result.stdout

    def test_waterfall_text(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(main, [str(sample_session), "--view", "waterfall"])

        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert lines[0] == "Total duration: 60000ms"
        assert any(line.startswith("    subagent") for line in lines)
        assert any("Read settings.py" in line for line in lines)

    def test_waterfall_json(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(
            main, [str(sample_session), "--view", "waterfall", "-f", "json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["total_duration_ms"] == 60000
        item_ids = [item["id"] for item in data["items"]]
        assert "tool-toolu_task1" in item_ids
        assert "subagent-a1b2c3d" in item_ids

    def test_waterfall_nests_grandchild_under_its_subagent(
        self, runner: CliRunner, tmp_path: Path
    ):
        session = write_jsonl(
            tmp_path / "session-1.jsonl",
            [
                user_entry("u1", 0, "go"),
                assistant_entry(
                    "a1",
                    1,
                    [
                        {
                            "type": "tool_use",
                            "id": "t1",
                            "name": "Task",
                            "input": {"description": "dig", "prompt": "dig"},
                        }
                    ],
                ),
                user_entry(
                    "r1",
                    20,
                    [{"type": "tool_result", "tool_use_id": "t1", "content": "done"}],
                    isMeta=True,
                    sourceToolUseID="t1",
                    toolUseResult={"agentId": "c1"},
                ),
                assistant_entry("a2", 21, [{"type": "text", "text": "finished"}]),
            ],
        )
        child_file = write_jsonl(
            tmp_path / "session-1" / "subagents" / "agent-c1.jsonl",
            [
                user_entry("c-u1", 2, "dig", isSidechain=True),
                assistant_entry(
                    "c-a1", 15, [{"type": "text", "text": "ok"}], isSidechain=True
                ),
            ],
        )
        write_jsonl(
            child_file.parent / "agent-c1" / "subagents" / "agent-g1.jsonl",
            [
                user_entry("g-u1", 5, "look deeper", isSidechain=True),
                assistant_entry(
                    "g-a1", 8, [{"type": "text", "text": "ok"}], isSidechain=True
                ),
            ],
        )

        result = runner.invoke(main, [str(session), "--view", "waterfall", "-f", "json"])

        assert result.exit_code == 0, result.output
        by_id = {item["id"]: item for item in json.loads(result.stdout)["items"]}
        assert by_id["subagent-c1"]["parent_id"] == "ai-a1"
        assert by_id["subagent-c1"]["level"] == 1
        assert by_id["subagent-g1"]["parent_id"] == "subagent-c1"
        assert by_id["subagent-g1"]["level"] == 2

    def test_compaction_without_boundaries(
        self, runner: CliRunner, sample_session: Path
    ):
        result = runner.invoke(main, [str(sample_session), "--view", "compaction"])

        assert result.exit_code == 0, result.output
        assert result.stdout.strip() == "No compactions"

    def test_compaction_boundary(self, runner: CliRunner, tmp_path: Path):
        session = write_jsonl(
            tmp_path / "session-1.jsonl",
            [
                user_entry("u1", 0, "start"),
                assistant_entry(
                    "a1",
                    1,
                    [{"type": "text", "text": "ok"}],
                    usage_data={"input_tokens": 90000, "output_tokens": 10},
                ),
                user_entry("c1", 2, "Summary of the earlier conversation", isCompactSummary=True),
                assistant_entry(
                    "a2",
                    3,
                    [{"type": "text", "text": "continuing"}],
                    usage_data={"input_tokens": 8000, "output_tokens": 10},
                ),
            ],
        )

        result = runner.invoke(main, [str(session), "--view", "compaction"])

        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("Phase 2 starts at compact-c1")


class TestSubagentDetail:
    """--subagent drill-down."""

    def test_text(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(main, [str(sample_session), "--subagent", "a1b2c3d"])

        assert result.exit_code == 0, result.output
        assert result.stdout.startswith(
            "Subagent a1b2c3d: Locate config loading code in the repository"
        )
        assert "Duration: 35000ms" in result.stdout

    def test_json(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(
            main, [str(sample_session), "--subagent", "a1b2c3d", "-f", "json"]
        )

        assert result.exit_code == 0, result.output
        detail = json.loads(result.stdout)
        assert detail["id"] == "a1b2c3d"
        assert [c["chunk_type"] for c in detail["chunks"]] == ["user", "ai"]

    def test_unknown_subagent(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(main, [str(sample_session), "--subagent", "nope"])

        assert result.exit_code == 1
        assert "Could not load subagent nope" in result.output


class TestErrors:
    """Error exits."""

    def test_missing_file(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(main, [str(tmp_path / "missing.jsonl")])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_unparseable_from_date(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(
            main, [str(sample_session), "--from-date", "xyzzy plugh"]
        )

        assert result.exit_code == 1
        assert "Could not parse from-date" in result.output

    def test_date_filter(self, runner: CliRunner, sample_session: Path):
        result = runner.invoke(
            main,
            [str(sample_session), "-f", "json", "--from-date", "2025-06-01 10:00:50"],
        )

        assert result.exit_code == 0, result.output
        chunks = json.loads(result.stdout)
        assert [c["chunk_type"] for c in chunks] == ["system"]
