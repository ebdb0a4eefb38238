"""Statistical aggregation for connection latencies."""

from __future__ import annotations

from typing import Iterable, Sequence

from latencymap.models import Connection, LatencyStats


def compute_stats(values: Sequence[int]) -> LatencyStats:
    """Compute min/max/avg/median from a list of latencies.

    The median is the element at ``n // 2`` of the sorted values (the upper
    middle for even counts), not the mean of the two middle elements.
    """
    if not values:
        return LatencyStats()

    sorted_vals = sorted(values)
    n = len(sorted_vals)

    return LatencyStats(
        min=round(sorted_vals[0]),
        max=round(sorted_vals[-1]),
        avg=round(sum(sorted_vals) / n),
        median=round(sorted_vals[n // 2]),
    )


def reduce_connections(connections: Iterable[Connection]) -> LatencyStats:
    """Summarize the latency of a connection set."""
    return compute_stats([c.latency_ms for c in connections])
