"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from claude_code_chunks.chunk_builder import ChunkBuilder
from claude_code_chunks.subagents import SubagentResolver


@pytest.fixture
def test_data_dir() -> Path:
    """Return path to test data directory."""
    return Path(__file__).parent / "test_data"


@pytest.fixture
def builder() -> ChunkBuilder:
    return ChunkBuilder()


@pytest.fixture
def resolver() -> SubagentResolver:
    return SubagentResolver()


@pytest.fixture
def session_file(tmp_path: Path) -> Path:
    """Path of a session transcript inside a fresh project directory."""
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    return project_dir / "session-1.jsonl"
