"""Turn Claude Code session transcripts into chunks, step timelines and groups."""

from .chunk_builder import ChunkBuilder
from .subagents import SubagentResolver

__all__ = ["ChunkBuilder", "SubagentResolver"]
