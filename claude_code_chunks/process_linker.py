"""Link resolved subagent processes to the AI chunk that spawned them."""

from .models import AIChunk, Process


def link_processes_to_ai_chunk(chunk: AIChunk, subagents: list[Process]) -> None:
    """Attach the subagents belonging to this chunk to chunk.processes.

    Two tiers, tried in order:
    1. A process whose parent_task_id is the id of a Task call made in this
       chunk's responses.
    2. A process with no parent_task_id whose start time falls within the
       chunk, both ends inclusive. A process that has a parent_task_id but
       did not match in tier 1 belongs to another chunk and is never taken
       here.

    Subagents nested inside another subagent (parent_process_id set) were
    never spawned by the main thread and are not linked by either tier.
    """
    subagents = [s for s in subagents if s.parent_process_id is None]
    chunk_task_ids = {
        tool_call.id
        for response in chunk.responses
        for tool_call in response.tool_calls
        if tool_call.is_task
    }

    linked_ids: set[str] = {process.id for process in chunk.processes}

    for subagent in subagents:
        if subagent.id in linked_ids:
            continue
        if subagent.parent_task_id and subagent.parent_task_id in chunk_task_ids:
            chunk.processes.append(subagent)
            linked_ids.add(subagent.id)

    for subagent in subagents:
        if subagent.id in linked_ids or subagent.parent_task_id:
            continue
        if chunk.start_time <= subagent.start_time <= chunk.end_time:
            chunk.processes.append(subagent)
            linked_ids.add(subagent.id)

    chunk.processes.sort(key=lambda process: process.start_time)
