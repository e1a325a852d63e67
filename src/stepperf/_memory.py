"""Allocation counters sampled at segment boundaries.

Python exposes no cumulative malloc counter, so ``allocs`` is the current
number of allocated blocks. The Timer clamps negative deltas to zero, which
makes the allocation figure "growth during the segment".

When tracemalloc is tracing, ``total_bytes`` is a running counter of traced
heap growth: every read adds how far the traced peak rose above the previous
reading, then resets the peak. Memory allocated and freed between two reads
still counts. Otherwise ``total_bytes`` is the process RSS from psutil.
"""

import sys
import tracemalloc
from typing import NamedTuple

import psutil


class MemStats(NamedTuple):
    """Snapshot of the allocation counters."""

    allocs: int
    total_bytes: int


class _TracedBytes:
    """Monotonic byte counter built on tracemalloc's peak.

    Calls tracemalloc.reset_peak(), so a caller's own peak readings only
    cover the time since the last sample.
    """

    def __init__(self) -> None:
        self.total = 0
        self._last = 0

    def read(self) -> int:
        current, peak = tracemalloc.get_traced_memory()
        self.total += max(0, peak - self._last)
        self._last = current
        tracemalloc.reset_peak()
        return self.total


_traced_bytes = _TracedBytes()


def read_mem_stats() -> MemStats:
    if tracemalloc.is_tracing():
        total_bytes = _traced_bytes.read()
    else:
        total_bytes = psutil.Process().memory_info().rss
    return MemStats(allocs=sys.getallocatedblocks(), total_bytes=total_bytes)
