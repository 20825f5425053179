"""Models for Claude Code transcript messages and the structures rebuilt from them.

Input models (content blocks, parsed messages, resolved subagent processes) are
Pydantic models since they are built from JSON. Everything the pipeline derives
from them (chunks, semantic steps, groups, waterfall items) is a plain dataclass
recomputed on every parse.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union

from anthropic.types import Usage as AnthropicUsage
from anthropic.types.content_block import ContentBlock
from pydantic import BaseModel, Field


class MessageType(str, Enum):
    """JSONL entry types found in session transcripts.

    Using str as base class keeps plain string comparisons working.
    """

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    SUMMARY = "summary"
    FILE_HISTORY_SNAPSHOT = "file-history-snapshot"
    QUEUE_OPERATION = "queue-operation"


# =============================================================================
# Content Blocks
# =============================================================================


class TextContent(BaseModel):
    type: Literal["text"]
    text: str


class ToolUseContent(BaseModel):
    type: Literal["tool_use"]
    id: str
    name: str
    input: dict[str, Any]


class ToolResultContent(BaseModel):
    type: Literal["tool_result"]
    tool_use_id: str
    content: Union[str, list[dict[str, Any]], None] = None
    is_error: Optional[bool] = None


class ThinkingContent(BaseModel):
    type: Literal["thinking"]
    thinking: str
    signature: Optional[str] = None


class ImageSource(BaseModel):
    type: Literal["base64"]
    media_type: str
    data: str


class ImageContent(BaseModel):
    type: Literal["image"]
    source: ImageSource


ContentItem = Union[
    TextContent,
    ToolUseContent,
    ToolResultContent,
    ThinkingContent,
    ImageContent,
    ContentBlock,  # Official Anthropic content block types
]


class UsageInfo(BaseModel):
    """Token usage information that extends Anthropic's Usage type to handle optional fields."""

    input_tokens: Optional[int] = None
    cache_creation_input_tokens: Optional[int] = None
    cache_read_input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    service_tier: Optional[str] = None

    @classmethod
    def from_anthropic_usage(cls, usage: AnthropicUsage) -> "UsageInfo":
        """Create UsageInfo from Anthropic Usage."""
        return cls(
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cache_creation_input_tokens=usage.cache_creation_input_tokens,
            cache_read_input_tokens=usage.cache_read_input_tokens,
            service_tier=usage.service_tier,
        )

    @property
    def total(self) -> int:
        """Input, output and both cache categories summed."""
        return (
            (self.input_tokens or 0)
            + (self.output_tokens or 0)
            + (self.cache_read_input_tokens or 0)
            + (self.cache_creation_input_tokens or 0)
        )


class TaskInput(BaseModel):
    """Input parameters for the Task (subagent) tool."""

    prompt: str = ""
    subagent_type: Optional[str] = None
    description: Optional[str] = None
    model: Optional[str] = None
    run_in_background: Optional[bool] = None

    model_config = {"extra": "allow"}


# =============================================================================
# Parsed Messages
# =============================================================================


class ToolCall(BaseModel):
    """A tool invocation pulled out of an assistant message."""

    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)
    is_task: bool = False
    task_description: Optional[str] = None
    task_subagent_type: Optional[str] = None


class ToolResult(BaseModel):
    """A tool result pulled out of a user message."""

    tool_use_id: str
    content: Union[str, list[Any]] = ""
    is_error: bool = False


class ParsedMessage(BaseModel):
    """One transcript record, flattened from its JSONL entry."""

    uuid: str
    parent_uuid: Optional[str] = None
    type: MessageType
    timestamp: datetime
    role: Optional[str] = None
    content: Union[str, list[ContentItem]] = ""
    usage: Optional[UsageInfo] = None
    model: Optional[str] = None
    cwd: Optional[str] = None
    git_branch: Optional[str] = None
    agent_id: Optional[str] = None
    is_sidechain: bool = False
    is_meta: bool = False
    user_type: Optional[str] = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_results: list[ToolResult] = Field(default_factory=list)
    source_tool_use_id: Optional[str] = None
    source_tool_assistant_uuid: Optional[str] = None
    tool_use_result: Optional[Any] = None
    is_compact_summary: bool = False


class SessionMetrics(BaseModel):
    """Aggregate timing and token counts over a set of messages."""

    duration_ms: int = 0
    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0
    message_count: int = 0
    cost_usd: Optional[float] = None


class Process(BaseModel):
    """A resolved subagent execution backed by its own transcript file."""

    id: str
    file_path: str = ""
    messages: list[ParsedMessage] = Field(default_factory=list)
    start_time: datetime
    end_time: datetime
    duration_ms: int = 0
    metrics: SessionMetrics = Field(default_factory=SessionMetrics)
    description: Optional[str] = None
    subagent_type: Optional[str] = None
    is_parallel: bool = False
    parent_task_id: Optional[str] = None
    # Set on subagents spawned inside another subagent's transcript
    parent_process_id: Optional[str] = None
    is_ongoing: bool = False


# =============================================================================
# Classification
# =============================================================================

MessageCategory = Literal["user", "system", "hardNoise", "ai", "compact"]


@dataclass
class ClassifiedMessage:
    message: ParsedMessage
    category: MessageCategory


# =============================================================================
# Tool Executions
# =============================================================================


@dataclass
class ToolExecution:
    """A tool call paired with its result; result is None when orphaned."""

    tool_call: ToolCall
    start_time: datetime
    result: Optional[ToolResult] = None
    end_time: Optional[datetime] = None
    duration_ms: Optional[int] = None


@dataclass
class TaskExecution:
    """A subagent-spawning tool call with the process it launched."""

    task_call: ToolCall
    task_call_timestamp: datetime
    subagent: Process
    tool_result: ParsedMessage
    result_timestamp: datetime
    duration_ms: int


# =============================================================================
# Semantic Steps
# =============================================================================

SemanticStepType = Literal[
    "thinking", "tool_call", "tool_result", "subagent", "output", "interruption"
]


@dataclass
class StepContent:
    """Variant-specific payload of a semantic step.

    Only the fields relevant to the step's type are set.
    """

    thinking_text: Optional[str] = None
    output_text: Optional[str] = None
    tool_name: Optional[str] = None
    tool_input: Optional[dict[str, Any]] = None
    tool_use_id: Optional[str] = None
    tool_result_content: Optional[str] = None
    is_error: Optional[bool] = None
    tool_use_result: Optional[Any] = None
    token_count: Optional[int] = None
    subagent_id: Optional[str] = None
    subagent_description: Optional[str] = None
    interruption_text: Optional[str] = None
    source_model: Optional[str] = None


@dataclass
class StepTokens:
    input: int = 0
    output: int = 0
    cached: int = 0


@dataclass
class TokenBreakdown:
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_creation: int = 0


@dataclass
class SemanticStep:
    """Smallest meaningful unit inside an AI chunk."""

    id: str
    type: SemanticStepType
    start_time: datetime
    duration_ms: int
    content: StepContent
    end_time: Optional[datetime] = None
    tokens: Optional[StepTokens] = None
    is_parallel: bool = False
    group_id: Optional[str] = None
    context: Literal["main", "subagent"] = "main"
    agent_id: Optional[str] = None
    source_message_id: Optional[str] = None
    # Timeline values set by the gap filler
    effective_end_time: Optional[datetime] = None
    effective_duration_ms: Optional[int] = None
    is_gap_filled: bool = False
    # Context window values set by calculate_step_context
    context_tokens: Optional[int] = None
    accumulated_context: Optional[int] = None
    token_breakdown: Optional[TokenBreakdown] = None


@dataclass
class SemanticStepGroup:
    """Collapsible cluster of steps produced by the same assistant message."""

    id: str
    label: str
    steps: list[SemanticStep]
    is_grouped: bool
    start_time: datetime
    end_time: datetime
    total_duration: int
    source_message_id: Optional[str] = None


# =============================================================================
# Chunks
# =============================================================================
# Four independent variants tagged by chunk_type. Consumers dispatch with
# isinstance over all four and treat anything else as unknown.


@dataclass
class UserChunk:
    id: str
    start_time: datetime
    end_time: datetime
    duration_ms: int
    metrics: SessionMetrics
    user_message: ParsedMessage
    raw_messages: list[ParsedMessage]
    chunk_type: Literal["user"] = "user"


@dataclass
class SystemChunk:
    id: str
    start_time: datetime
    end_time: datetime
    duration_ms: int
    metrics: SessionMetrics
    message: ParsedMessage
    command_output: str
    raw_messages: list[ParsedMessage]
    chunk_type: Literal["system"] = "system"


@dataclass
class CompactChunk:
    id: str
    start_time: datetime
    end_time: datetime
    duration_ms: int
    metrics: SessionMetrics
    message: ParsedMessage
    raw_messages: list[ParsedMessage]
    chunk_type: Literal["compact"] = "compact"


@dataclass
class AIChunk:
    id: str
    start_time: datetime
    end_time: datetime
    duration_ms: int
    metrics: SessionMetrics
    responses: list[ParsedMessage]
    raw_messages: list[ParsedMessage]
    processes: list[Process] = field(default_factory=list)
    sidechain_messages: list[ParsedMessage] = field(default_factory=list)
    tool_executions: list[ToolExecution] = field(default_factory=list)
    semantic_steps: list[SemanticStep] = field(default_factory=list)
    semantic_step_groups: list[SemanticStepGroup] = field(default_factory=list)
    chunk_type: Literal["ai"] = "ai"


Chunk = Union[UserChunk, SystemChunk, CompactChunk, AIChunk]


# =============================================================================
# Conversation Groups
# =============================================================================


@dataclass
class ConversationGroup:
    """One genuine user message and everything up to the next one."""

    id: str
    user_message: ParsedMessage
    ai_responses: list[ParsedMessage]
    processes: list[Process]
    tool_executions: list[ToolExecution]
    task_executions: list[TaskExecution]
    start_time: datetime
    end_time: datetime
    duration_ms: int
    metrics: SessionMetrics
    type: Literal["user-ai-exchange"] = "user-ai-exchange"


# =============================================================================
# Waterfall
# =============================================================================


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0


@dataclass
class WaterfallItem:
    id: str
    label: str
    start_time: datetime
    end_time: datetime
    duration_ms: int
    token_usage: TokenUsage
    level: int  # 0 = chunk, 1 = tool/subagent of a chunk, deeper = nested subagent
    type: Literal["chunk", "tool", "subagent"]
    is_parallel: bool = False
    parent_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


@dataclass
class WaterfallData:
    items: list[WaterfallItem]
    min_time: datetime
    max_time: datetime
    total_duration_ms: int


# =============================================================================
# Session and Subagent Detail
# =============================================================================


@dataclass
class SessionDetail:
    messages: list[ParsedMessage]
    chunks: list[Chunk]
    processes: list[Process]
    metrics: SessionMetrics


@dataclass
class SubagentDetail:
    """Drill-down view of a single subagent."""

    id: str
    description: str
    chunks: list[Chunk]
    start_time: datetime
    end_time: datetime
    duration: int
    metrics: SessionMetrics
    thinking_tokens: int = 0
    semantic_step_groups: Optional[list[SemanticStepGroup]] = None


# =============================================================================
# Compaction
# =============================================================================


@dataclass
class TokenDelta:
    pre_compaction_tokens: int
    post_compaction_tokens: int
    delta: int


@dataclass
class CompactionBoundary:
    chunk_id: str
    phase_number: int
    token_delta: Optional[TokenDelta] = None
