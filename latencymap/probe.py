"""Latency probe for a single region endpoint.

A probe is one HTTP GET against the endpoint's address.  The elapsed
wall-clock time between issuing the request and observing *any* outcome
is the reported latency, so failures carry a latency too.

Any HTTP response counts as success: cloud storage endpoints commonly
answer anonymous requests with 403 or a redirect, and that answer is
still proof of a round trip.  Only transport-level errors are failures.

Public API:
    LatencyProbe.measure            -- one cached probe, never raises
    LatencyProbe.measure_with_retry -- probe with exponential backoff
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import httpx

from latencymap.cache import MeasurementCache
from latencymap.config import MAX_RETRIES, PROBE_TIMEOUT_MS, RETRY_BASE_DELAY_S, USER_AGENT
from latencymap.models import FAILED, SUCCESS, TIMED_OUT, Endpoint, Measurement

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class LatencyProbe:
    """Measures round-trip latency to endpoints and caches the results.

    Parameters
    ----------
    cache:
        Measurement cache; one is created with default TTL when omitted.
    timeout_ms:
        Hard per-request budget.  The in-flight request is cancelled when
        it is exceeded.
    transport:
        Optional ``httpx`` transport, e.g. ``httpx.MockTransport`` in tests.
    timer:
        Monotonic high-resolution timer in seconds used for elapsed time.
    sleep:
        Coroutine used for backoff waits.
    """

    def __init__(
        self,
        cache: Optional[MeasurementCache] = None,
        timeout_ms: int = PROBE_TIMEOUT_MS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timer: Callable[[], float] = time.perf_counter,
        sleep: Sleep = asyncio.sleep,
    ):
        self.cache = cache if cache is not None else MeasurementCache()
        self.timeout_ms = timeout_ms
        self.transport = transport
        self.timer = timer
        self.sleep = sleep

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self.timeout_ms / 1000.0)
        headers = {"User-Agent": USER_AGENT, "Cache-Control": "no-store"}
        if self.transport is not None:
            return httpx.AsyncClient(transport=self.transport, timeout=timeout, headers=headers)
        return httpx.AsyncClient(http2=True, timeout=timeout, headers=headers)

    async def measure(self, endpoint: Endpoint) -> Measurement:
        """Measure latency to *endpoint*, serving from cache within the TTL.

        Never raises; failures are reported through ``Measurement.outcome``.
        """
        cached = self.cache.get(endpoint.region_id)
        if cached is not None:
            return cached

        outcome = SUCCESS
        error: Optional[str] = None

        async with self._client() as client:
            t0 = self.timer()
            try:
                response = await asyncio.wait_for(
                    client.get(endpoint.address),
                    timeout=self.timeout_ms / 1000.0,
                )
                logger.debug("Probe %s answered HTTP %d", endpoint.region_id, response.status_code)
            except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
                outcome = TIMED_OUT
                error = f"Timed out after {self.timeout_ms}ms"
                logger.debug("Probe timeout for %s: %r", endpoint.region_id, exc)
            except Exception as exc:
                outcome = FAILED
                error = str(exc) or exc.__class__.__name__
                logger.debug("Probe failed for %s: %s", endpoint.region_id, error)
            elapsed_ms = (self.timer() - t0) * 1000.0

        measurement = Measurement(
            region_id=endpoint.region_id,
            address=endpoint.address,
            latency_ms=max(round(elapsed_ms), 0),
            measured_at=self.cache.clock(),
            outcome=outcome,
            error=error,
        )
        self.cache.put(measurement)
        return measurement

    async def measure_with_retry(
        self,
        endpoint: Endpoint,
        max_retries: int = MAX_RETRIES,
    ) -> Measurement:
        """Measure *endpoint*, retrying non-successful outcomes.

        Waits 1s, 2s, 4s, ... between attempts, for at most *max_retries*
        extra attempts, and returns the last attempt's measurement.  A
        failed attempt is evicted from the cache before the retry so the
        retry performs real I/O.
        """
        measurement = await self.measure(endpoint)
        for attempt in range(max_retries):
            if measurement.is_success:
                break
            backoff_s = RETRY_BASE_DELAY_S * (2 ** attempt)
            logger.info(
                "Probe of %s returned %s, backing off %.1fs before retry %d/%d",
                endpoint.region_id,
                measurement.outcome,
                backoff_s,
                attempt + 1,
                max_retries,
            )
            await self.sleep(backoff_s)
            self.cache.evict(endpoint.region_id)
            measurement = await self.measure(endpoint)
        return measurement
