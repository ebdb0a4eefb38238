"""Exchange server construction from region measurements."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Sequence

from latencymap.aggregator import measure_all
from latencymap.config import DEGRADED_THRESHOLD_MS
from latencymap.models import (
    DEGRADED,
    OFFLINE,
    ONLINE,
    PROVIDERS,
    Endpoint,
    ExchangeMapping,
    Measurement,
    NetworkLatencyData,
    ScoredServer,
    ServerSummary,
)
from latencymap.probe import LatencyProbe
from latencymap.registry import endpoints_for_regions, get_endpoint, get_exchange_mapping, get_exchange_mappings

logger = logging.getLogger(__name__)


def operational_state(measurement: Measurement, degraded_threshold_ms: int = DEGRADED_THRESHOLD_MS) -> str:
    """Derive a server state from its region's measurement."""
    if not measurement.is_success:
        return OFFLINE
    if measurement.latency_ms > degraded_threshold_ms:
        return DEGRADED
    return ONLINE


def build_servers(
    mappings: Iterable[ExchangeMapping],
    measurements: Mapping[str, Measurement],
    endpoints: Optional[Mapping[str, Endpoint]] = None,
    degraded_threshold_ms: int = DEGRADED_THRESHOLD_MS,
) -> list[ScoredServer]:
    """Expand exchange mappings into scored servers.

    A region without an endpoint or without a measurement yields no server.
    """
    servers = []
    for mapping in mappings:
        for index, region in enumerate(mapping.regions, 1):
            if endpoints is not None:
                endpoint = endpoints.get(region.region_id)
            else:
                endpoint = get_endpoint(region.region_id)
            measurement = measurements.get(region.region_id)
            if endpoint is None or measurement is None:
                logger.warning(
                    "Skipping %s in %s: region unavailable", mapping.exchange, region.region_id
                )
                continue

            servers.append(
                ScoredServer(
                    server_id=f"{mapping.exchange.lower()}-{region.region_id}-{index}",
                    exchange=mapping.exchange,
                    location=endpoint.location,
                    provider=region.provider,
                    region_id=region.region_id,
                    latency_ms=measurement.latency_ms,
                    state=operational_state(measurement, degraded_threshold_ms),
                )
            )
    return servers


def summarize(servers: Sequence[ScoredServer]) -> ServerSummary:
    """Counts by state, provider and exchange plus the mean active latency."""
    active = [s for s in servers if s.state != OFFLINE]
    states = Counter(s.state for s in servers)
    providers = Counter(s.provider for s in servers)

    return ServerSummary(
        total_servers=len(servers),
        average_latency=round(sum(s.latency_ms for s in active) / len(active)) if active else 0,
        online_count=states[ONLINE],
        degraded_count=states[DEGRADED],
        offline_count=states[OFFLINE],
        by_provider={p: providers[p] for p in PROVIDERS},
        by_exchange=dict(Counter(s.exchange for s in servers)),
    )


async def fetch_exchange_data(
    probe: LatencyProbe,
    mappings: Optional[Sequence[ExchangeMapping]] = None,
    max_retries: int = 0,
    degraded_threshold_ms: int = DEGRADED_THRESHOLD_MS,
) -> NetworkLatencyData:
    """Measure every region used by *mappings* and build the server snapshot."""
    if mappings is None:
        mappings = get_exchange_mappings()

    region_ids = [r.region_id for m in mappings for r in m.regions]
    endpoints = endpoints_for_regions(region_ids)

    measurements = await measure_all(probe, endpoints, max_retries=max_retries)
    by_region = {m.region_id: m for m in measurements}
    for m in measurements:
        logger.debug("%s: %dms (%s)", m.region_id, m.latency_ms, m.outcome)

    servers = build_servers(mappings, by_region, degraded_threshold_ms=degraded_threshold_ms)
    summary = summarize(servers)
    logger.info(
        "Exchange data ready: %d servers, avg %dms", summary.total_servers, summary.average_latency
    )

    return NetworkLatencyData(
        timestamp=datetime.now(timezone.utc).isoformat(),
        servers=servers,
        summary=summary,
    )


async def refresh_exchange(
    probe: LatencyProbe,
    exchange: str,
    max_retries: int = 0,
    degraded_threshold_ms: int = DEGRADED_THRESHOLD_MS,
) -> list[ScoredServer]:
    """Re-measure only the regions of *exchange* and return its servers."""
    mapping = get_exchange_mapping(exchange)
    data = await fetch_exchange_data(
        probe, [mapping], max_retries=max_retries, degraded_threshold_ms=degraded_threshold_ms,
    )
    return data.servers


def servers_by_provider(servers: Iterable[ScoredServer], provider: str) -> list[ScoredServer]:
    return [s for s in servers if s.provider == provider]


def servers_by_exchange(servers: Iterable[ScoredServer], exchange: str) -> list[ScoredServer]:
    return [s for s in servers if s.exchange.lower() == exchange.lower()]
