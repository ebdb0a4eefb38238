"""Connection graph synthesis between scored servers.

Each eligible server is linked to its nearest neighbours by estimated
distance-latency.  Edge weights blend real measurements with the
distance model when both endpoints have a measurement, and fall back to
the pure distance estimate otherwise.

Public API:
    severity_for          -- bucket a latency into low/medium/high
    synthesize            -- build a fresh connection set (cold start)
    refresh               -- resample weights of an existing set (steady state)
    filter_by_severity    -- keep only connections in the given buckets
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import replace
from typing import Callable, Iterable, Mapping, Optional, Sequence

from latencymap.config import (
    DISTANCE_OVERHEAD_FACTOR,
    JITTER_VARIANCE,
    MAX_CONNECTIONS,
    NEIGHBORS_PER_SERVER,
    SEVERITY_THRESHOLDS,
)
from latencymap.location import distance_latency
from latencymap.models import OFFLINE, Connection, ScoredServer, unordered_pair

logger = logging.getLogger(__name__)


def severity_for(latency_ms: float, thresholds: Mapping[str, float] = SEVERITY_THRESHOLDS) -> str:
    """Return the severity bucket for *latency_ms*.

    ``<= low`` is low, ``<= medium`` is medium, anything above is high.
    """
    if latency_ms <= thresholds["low"]:
        return "low"
    if latency_ms <= thresholds["medium"]:
        return "medium"
    return "high"


def blended_latency(
    source: ScoredServer,
    target: ScoredServer,
    distance_ms: int,
    overhead_factor: float = DISTANCE_OVERHEAD_FACTOR,
) -> int:
    """Estimate the latency of the edge between *source* and *target*.

    With both measurements present the estimate is their mean plus a
    distance overhead; otherwise it is the distance estimate alone.
    """
    if source.latency_ms > 0 and target.latency_ms > 0:
        avg = (source.latency_ms + target.latency_ms) / 2
        return round(avg + distance_ms * overhead_factor)
    return distance_ms


def synthesize(
    servers: Sequence[ScoredServer],
    max_connections: int = MAX_CONNECTIONS,
    neighbors: int = NEIGHBORS_PER_SERVER,
    thresholds: Mapping[str, float] = SEVERITY_THRESHOLDS,
    clock: Callable[[], float] = time.time,
) -> list[Connection]:
    """Build the nearest-neighbour connection graph for *servers*.

    Offline servers are excluded.  Servers are visited in input order and
    each contributes up to *neighbors* edges to its nearest peers (ties
    keep input order).  An unordered pair is emitted at most once and
    synthesis stops as soon as *max_connections* edges exist.
    """
    active = [s for s in servers if s.state != OFFLINE]
    logger.debug("Creating connections for %d active servers (%d total)", len(active), len(servers))

    connections: list[Connection] = []
    seen: set[tuple[str, str]] = set()
    now = clock()

    for i, source in enumerate(active):
        if len(connections) >= max_connections:
            break
        src = source.location.coordinates

        candidates = []
        for j, target in enumerate(active):
            if j == i or target.server_id == source.server_id:
                continue
            candidates.append((distance_latency(src, target.location.coordinates), j, target))
        candidates.sort(key=lambda c: (c[0], c[1]))

        for distance_ms, _, target in candidates[:neighbors]:
            if len(connections) >= max_connections:
                break
            key = unordered_pair(source.server_id, target.server_id)
            if key in seen:
                continue
            seen.add(key)

            latency_ms = blended_latency(source, target, distance_ms)
            connections.append(
                Connection(
                    id=f"{source.server_id}-{target.server_id}",
                    source_server_id=source.server_id,
                    target_server_id=target.server_id,
                    source_coordinates=src,
                    target_coordinates=target.location.coordinates,
                    latency_ms=latency_ms,
                    severity=severity_for(latency_ms, thresholds),
                    computed_at=now,
                )
            )

    logger.debug("Created %d connections", len(connections))
    return connections


def _jitter(latency_ms: int, variance: float, rng: random.Random) -> int:
    """Resample *latency_ms* uniformly within +/- *variance*.

    The rounded result is clamped back into the band so small values can
    not drift outside it through rounding.
    """
    low = latency_ms * (1 - variance)
    high = latency_ms * (1 + variance)
    value = round(rng.uniform(low, high))
    return min(max(value, math.ceil(low), 0), math.floor(high))


def refresh(
    connections: Iterable[Connection],
    rng: Optional[random.Random] = None,
    variance: float = JITTER_VARIANCE,
    thresholds: Mapping[str, float] = SEVERITY_THRESHOLDS,
    clock: Callable[[], float] = time.time,
) -> list[Connection]:
    """Return a new connection set with jittered weights.

    Ids and endpoints are preserved in order; only ``latency_ms``,
    ``severity`` and ``computed_at`` change.
    """
    if rng is None:
        rng = random.Random()
    now = clock()
    updated = []
    for conn in connections:
        latency_ms = _jitter(conn.latency_ms, variance, rng)
        updated.append(
            replace(
                conn,
                latency_ms=latency_ms,
                severity=severity_for(latency_ms, thresholds),
                computed_at=now,
            )
        )
    return updated


def filter_by_severity(connections: Iterable[Connection], severities: Iterable[str]) -> list[Connection]:
    wanted = set(severities)
    return [c for c in connections if c.severity in wanted]
