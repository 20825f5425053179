#!/usr/bin/env python3
"""Tests for pipeline timing utilities."""

import importlib
import json
from pathlib import Path

import pytest
from click.testing import CliRunner

import claude_code_chunks.timings as timings
from claude_code_chunks.chunk_builder import ChunkBuilder
from claude_code_chunks.cli import main

from test.helpers import assistant, user


@pytest.fixture(autouse=True)
def restore_timings(monkeypatch: pytest.MonkeyPatch):
    """Leave the timings module disabled after every test."""
    yield
    monkeypatch.delenv("CLAUDE_CODE_CHUNKS_DEBUG_TIMING", raising=False)
    importlib.reload(timings)


@pytest.fixture
def enabled_timings(monkeypatch: pytest.MonkeyPatch):
    """Reload the timings module with timing enabled."""
    monkeypatch.setenv("CLAUDE_CODE_CHUNKS_DEBUG_TIMING", "1")
    importlib.reload(timings)
    return timings


class TestDebugTimingFlag:
    """Tests for the DEBUG_TIMING environment variable."""

    @pytest.mark.parametrize("value", ["1", "true", "yes", "TRUE", "Yes"])
    def test_enabled_values(self, monkeypatch: pytest.MonkeyPatch, value: str):
        monkeypatch.setenv("CLAUDE_CODE_CHUNKS_DEBUG_TIMING", value)
        importlib.reload(timings)
        assert timings.DEBUG_TIMING is True

    @pytest.mark.parametrize("value", ["", "0", "false", "no"])
    def test_disabled_values(self, monkeypatch: pytest.MonkeyPatch, value: str):
        monkeypatch.setenv("CLAUDE_CODE_CHUNKS_DEBUG_TIMING", value)
        importlib.reload(timings)
        assert timings.DEBUG_TIMING is False


class TestLogTiming:
    """Tests for the log_timing context manager."""

    def test_prints_phase_to_stderr(self, enabled_timings, capsys):
        with enabled_timings.log_timing("Classify messages"):
            pass
        captured = capsys.readouterr()
        assert "[TIMING] Classify messages" in captured.err
        assert captured.out == ""

    def test_callable_phase_is_evaluated_at_end(self, enabled_timings, capsys):
        chunks: list[int] = []
        with enabled_timings.log_timing(
            lambda: f"Build chunks ({len(chunks)} chunks)", 0.0
        ):
            chunks.extend([1, 2, 3])
        err = capsys.readouterr().err
        assert "Build chunks (3 chunks)" in err
        assert "total:" in err

    def test_silent_when_disabled(self, capsys):
        with timings.log_timing("Phase"):
            pass
        captured = capsys.readouterr()
        assert captured.out == "" and captured.err == ""


class TestChunkTimings:
    """Per-chunk duration collection."""

    def test_records_by_chunk_id(self, enabled_timings):
        collector = enabled_timings.ChunkTimings("AI chunk building")
        with collector.measure("ai-a1"):
            pass
        with collector.measure("ai-a2"):
            pass
        assert set(collector.durations) == {"ai-a1", "ai-a2"}

    def test_collectors_are_independent(self, enabled_timings):
        first = enabled_timings.ChunkTimings("first")
        second = enabled_timings.ChunkTimings("second")
        with first.measure("ai-a1"):
            pass
        assert second.durations == {}

    def test_nothing_recorded_when_disabled(self):
        collector = timings.ChunkTimings("AI chunk building")
        with collector.measure("ai-a1"):
            pass
        assert collector.durations == {}

    def test_report_lists_slowest_first(self, enabled_timings, capsys):
        collector = enabled_timings.ChunkTimings("AI chunk building")
        collector.durations = {f"ai-{i}": i / 1000 for i in range(8)}

        collector.report()

        err = capsys.readouterr().err
        assert "AI chunk building: 8 chunks" in err
        assert err.index("ai-7") < err.index("ai-6")
        assert "ai-2" not in err

    def test_report_skips_empty(self, capsys):
        timings.ChunkTimings("Nothing").report()
        assert capsys.readouterr().err == ""


class TestChunkBuilderTiming:
    """Timing output from the chunk builder."""

    def test_build_chunks_reports_phases(self, enabled_timings, capsys):
        ChunkBuilder().build_chunks([user("u1", 0, "go"), assistant("a1", 1)])
        captured = capsys.readouterr()

        assert "Classify messages" in captured.err
        assert "Build chunks (2 chunks)" in captured.err
        assert "AI chunk building: 1 chunks" in captured.err
        assert "ai-a1" in captured.err
        assert captured.out == ""

    def test_json_output_stays_clean(self, enabled_timings, test_data_dir: Path):
        result = CliRunner().invoke(
            main, [str(test_data_dir / "session-with-task.jsonl"), "-f", "json"]
        )

        assert result.exit_code == 0, result.output
        assert [c["chunk_type"] for c in json.loads(result.stdout)] == [
            "user",
            "ai",
            "system",
        ]
        assert "[TIMING]" in result.stderr
