"""Concurrent fan-out of probes across many endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Sequence

from latencymap.models import FAILED, Endpoint, Measurement
from latencymap.probe import LatencyProbe

logger = logging.getLogger(__name__)


def dedupe_endpoints(endpoints: Iterable[Endpoint]) -> list[Endpoint]:
    """Keep the first endpoint seen for each region, preserving order."""
    seen: set[str] = set()
    unique = []
    for ep in endpoints:
        if ep.region_id in seen:
            continue
        seen.add(ep.region_id)
        unique.append(ep)
    return unique


async def measure_all(
    probe: LatencyProbe,
    endpoints: Iterable[Endpoint],
    max_retries: int = 0,
) -> list[Measurement]:
    """Probe every distinct region concurrently and wait for all of them.

    Endpoints are deduplicated by region id, so each region is probed once
    per call.  Probes run concurrently via ``asyncio.gather``; a slow or
    failing probe never cancels its siblings.  Failed and timed-out probes
    are returned as ordinary measurements, one per distinct region.

    Parameters
    ----------
    probe:
        The probe (and its cache) to use.
    endpoints:
        Endpoints to measure; duplicates by region id are collapsed.
    max_retries:
        Extra attempts per endpoint on non-successful outcomes.
    """
    unique = dedupe_endpoints(endpoints)

    async def _safe_measure(ep: Endpoint) -> Measurement:
        """Wrapper that turns unexpected errors into a failed measurement."""
        try:
            if max_retries > 0:
                return await probe.measure_with_retry(ep, max_retries)
            return await probe.measure(ep)
        except Exception as exc:
            logger.exception("Fatal error measuring %s", ep.region_id)
            return Measurement(
                region_id=ep.region_id,
                address=ep.address,
                latency_ms=0,
                measured_at=probe.cache.clock(),
                outcome=FAILED,
                error=f"Fatal measurement error: {exc}",
            )

    results = await asyncio.gather(*(_safe_measure(ep) for ep in unique))
    logger.debug(
        "Measured %d regions (%d successful)",
        len(results),
        sum(1 for m in results if m.is_success),
    )
    return list(results)


def average_latency(measurements: Sequence[Measurement]) -> int:
    """Rounded mean latency over successful measurements, 0 if none."""
    ok = [m.latency_ms for m in measurements if m.is_success]
    if not ok:
        return 0
    return round(sum(ok) / len(ok))
