"""Debug timing for the chunk building pipeline.

Set CLAUDE_CODE_CHUNKS_DEBUG_TIMING to "1", "true" or "yes" to print phase
durations and the slowest AI chunks. Timing lines go to stderr, so JSON
written to stdout stays parseable.
"""

import os
import sys
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Union

DEBUG_TIMING = os.getenv("CLAUDE_CODE_CHUNKS_DEBUG_TIMING", "").lower() in (
    "1",
    "true",
    "yes",
)

SLOWEST_COUNT = 5


def _emit(line: str) -> None:
    print(f"[TIMING] {line}", file=sys.stderr, flush=True)


@contextmanager
def log_timing(
    phase: Union[str, Callable[[], str]],
    t_start: Optional[float] = None,
) -> Iterator[None]:
    """Print how long the wrapped phase took.

    Args:
        phase: Phase name, or a callable returning it (evaluated at the end)
        t_start: Start of the whole run, to also print the running total
    """
    if not DEBUG_TIMING:
        yield
        return

    t_phase_start = time.time()
    try:
        yield
    finally:
        t_now = time.time()
        phase_name = phase() if callable(phase) else phase
        line = f"{phase_name:40s} {t_now - t_phase_start:8.3f}s"
        if t_start is not None:
            line += f" (total: {t_now - t_start:8.3f}s)"
        _emit(line)


class ChunkTimings:
    """Build durations of individual chunks, keyed by chunk id.

    Each build_chunks call owns its own instance. Nothing is recorded
    unless DEBUG_TIMING is set.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self.durations: dict[str, float] = {}

    @contextmanager
    def measure(self, chunk_id: str) -> Iterator[None]:
        if not DEBUG_TIMING:
            yield
            return

        t_start = time.perf_counter()
        try:
            yield
        finally:
            self.durations[chunk_id] = time.perf_counter() - t_start

    def slowest(self, count: int = SLOWEST_COUNT) -> list[tuple[str, float]]:
        return sorted(
            self.durations.items(), key=lambda entry: entry[1], reverse=True
        )[:count]

    def report(self) -> None:
        if not self.durations:
            return
        total = sum(self.durations.values())
        _emit(f"{self.label}: {len(self.durations)} chunks in {total:.3f}s")
        for chunk_id, duration in self.slowest():
            _emit(f"  {chunk_id}: {duration * 1000:.1f}ms")
