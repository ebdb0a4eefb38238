"""Refresh cycles and the periodic monitor driver.

A refresh cycle is either a full pass (measure, build servers,
synthesize connections) or a steady-state pass that only injects jitter
into the current connection weights.  A cycle never does both.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Optional, Sequence

import httpx

from latencymap.cache import MeasurementCache
from latencymap.connections import refresh, synthesize
from latencymap.models import Connection, LatencyUpdate, MonitorConfig, NetworkLatencyData, ScoredServer
from latencymap.probe import LatencyProbe
from latencymap.registry import get_exchange_mapping, get_exchange_mappings
from latencymap.servers import fetch_exchange_data
from latencymap.stats import reduce_connections

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[LatencyUpdate], None]


def build_latency_data(
    servers: Sequence[ScoredServer],
    config: MonitorConfig,
    clock: Callable[[], float] = time.time,
) -> LatencyUpdate:
    """Synthesize a fresh connection set and its stats."""
    connections = synthesize(
        servers,
        max_connections=config.max_connections,
        thresholds=config.thresholds,
        clock=clock,
    )
    return LatencyUpdate(
        connections=connections,
        stats=reduce_connections(connections),
        timestamp=clock(),
    )


def build_latency_updates(
    connections: Sequence[Connection],
    config: MonitorConfig,
    rng: Optional[random.Random] = None,
    clock: Callable[[], float] = time.time,
) -> LatencyUpdate:
    """Jitter the weights of *connections* and recompute stats."""
    updated = refresh(
        connections,
        rng=rng,
        variance=config.jitter_variance,
        thresholds=config.thresholds,
        clock=clock,
    )
    return LatencyUpdate(
        connections=updated,
        stats=reduce_connections(updated),
        timestamp=clock(),
    )


def make_probe(
    config: MonitorConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Callable[[], float] = time.time,
) -> LatencyProbe:
    """Build a probe (and its cache) from *config*."""
    return LatencyProbe(
        cache=MeasurementCache(ttl_ms=config.cache_ttl_ms, clock=clock),
        timeout_ms=config.timeout_ms,
        transport=transport,
    )


class LatencyMonitor:
    """Periodic driver for refresh cycles.

    The first cycle, and any cycle following :meth:`request_resync`, runs a
    full pass.  Every other cycle only injects jitter.
    """

    def __init__(
        self,
        config: MonitorConfig,
        probe: Optional[LatencyProbe] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        config.validate()
        self.config = config
        self.probe = probe if probe is not None else make_probe(config, clock=clock)
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock
        self.sleep = sleep
        self.network: Optional[NetworkLatencyData] = None
        self.connections: list[Connection] = []
        self.cycles = 0
        self._resync = True

    def request_resync(self) -> None:
        """Force the next cycle to re-measure and re-synthesize."""
        self.probe.cache.clear()
        self._resync = True

    def _mappings(self):
        if self.config.exchanges:
            return [get_exchange_mapping(name) for name in self.config.exchanges]
        return get_exchange_mappings()

    async def cycle(self) -> LatencyUpdate:
        """Run one refresh cycle and return its snapshot."""
        self.cycles += 1
        if self._resync or not self.connections:
            logger.debug("Cycle %d: full synthesis", self.cycles)
            self.network = await fetch_exchange_data(
                self.probe,
                self._mappings(),
                max_retries=self.config.max_retries,
                degraded_threshold_ms=self.config.degraded_threshold_ms,
            )
            update = build_latency_data(self.network.servers, self.config, clock=self.clock)
            self._resync = False
        else:
            logger.debug(
                "Cycle %d: applying jitter to %d connections", self.cycles, len(self.connections)
            )
            update = build_latency_updates(self.connections, self.config, rng=self.rng, clock=self.clock)

        self.connections = update.connections
        return update

    async def run(
        self,
        cycles: Optional[int] = None,
        on_update: Optional[UpdateCallback] = None,
        resync_every: Optional[int] = None,
    ) -> Optional[LatencyUpdate]:
        """Run cycles every ``refresh_interval_ms`` until *cycles* have run.

        With *cycles* left as None the loop runs until cancelled.
        """
        interval_s = self.config.refresh_interval_ms / 1000.0
        last: Optional[LatencyUpdate] = None
        done = 0
        while cycles is None or done < cycles:
            if resync_every and done and done % resync_every == 0:
                self.request_resync()
            last = await self.cycle()
            done += 1
            if on_update is not None:
                on_update(last)
            if cycles is None or done < cycles:
                await self.sleep(interval_s)
        return last
