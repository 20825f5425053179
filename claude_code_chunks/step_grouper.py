"""Group semantic steps that came from the same assistant message."""

from datetime import datetime, timedelta
from typing import Optional

from .models import SemanticStep, SemanticStepGroup

# Only these step types are merged with siblings from the same message
GROUPABLE_STEP_TYPES = ("thinking", "output")


def _group_key(step: SemanticStep) -> Optional[str]:
    if step.type in GROUPABLE_STEP_TYPES:
        return step.source_message_id
    return None


def build_group_label(steps: list[SemanticStep]) -> str:
    if len(steps) == 1:
        step = steps[0]
        if step.type == "thinking":
            return "Thinking"
        if step.type == "tool_call":
            return f"Tool: {step.content.tool_name or 'Unknown'}"
        if step.type == "tool_result":
            return f"Result: {'Error' if step.content.is_error else 'Success'}"
        if step.type == "subagent":
            return step.content.subagent_description or "Subagent"
        if step.type == "output":
            return "Output"
        if step.type == "interruption":
            return "Interruption"

    tool_calls = [step for step in steps if step.type == "tool_call"]
    has_thinking = any(step.type == "thinking" for step in steps)
    has_output = any(step.type == "output" for step in steps)

    if tool_calls:
        return f"Tools ({len(tool_calls)})"
    if has_thinking and has_output:
        return "Assistant Response"
    if has_thinking:
        return "Thinking"
    if has_output:
        return "Output"
    return f"Response ({len(steps)} steps)"


def _step_end(step: SemanticStep) -> datetime:
    if step.end_time is not None:
        return step.end_time
    return step.start_time + timedelta(milliseconds=step.duration_ms)


def build_semantic_step_groups(steps: list[SemanticStep]) -> list[SemanticStepGroup]:
    """Partition steps into display groups.

    Thinking and output steps sharing a source message form one group; every
    other step is a singleton group. Group ids follow creation order, and the
    result is stably sorted by group start time.
    """
    partitions: list[tuple[Optional[str], list[SemanticStep]]] = []
    keyed: dict[str, list[SemanticStep]] = {}

    for step in steps:
        key = _group_key(step)
        if key is None:
            partitions.append((None, [step]))
        elif key in keyed:
            keyed[key].append(step)
        else:
            keyed[key] = [step]
            partitions.append((key, keyed[key]))

    groups: list[SemanticStepGroup] = []
    for number, (key, group_steps) in enumerate(partitions, start=1):
        groups.append(
            SemanticStepGroup(
                id=f"group-{number}",
                label=build_group_label(group_steps),
                steps=group_steps,
                is_grouped=key is not None and len(group_steps) > 1,
                source_message_id=key,
                start_time=group_steps[0].start_time,
                end_time=max(_step_end(step) for step in group_steps),
                total_duration=sum(step.duration_ms for step in group_steps),
            )
        )

    groups.sort(key=lambda group: group.start_time)
    return groups
