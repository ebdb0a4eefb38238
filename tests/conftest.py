"""Shared fixtures: fake clocks, counting transports and server factories."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from latencymap.cache import MeasurementCache
from latencymap.models import ONLINE, Endpoint, Location, ScoredServer
from latencymap.probe import LatencyProbe


def run(coro):
    return asyncio.run(coro)


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StepTimer:
    """perf_counter stand-in advancing a fixed step per call.

    Each asyncio task gets its own counter, so concurrent probes each see
    exactly one step between their start and end readings no matter how
    the event loop interleaves them.
    """

    def __init__(self, step_s: float):
        self.step_s = step_s
        self._elapsed: dict[object, float] = {}

    def __call__(self) -> float:
        try:
            task = asyncio.current_task()
        except RuntimeError:
            task = None
        value = self._elapsed.get(task, 0.0)
        self._elapsed[task] = value + self.step_s
        return value


class CountingTransport(httpx.MockTransport):
    """MockTransport recording every request it serves."""

    def __init__(self, handler=None):
        self.requests: list[httpx.Request] = []

        def _default(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="ok")

        inner = handler or _default

        def _counting(request: httpx.Request):
            self.requests.append(request)
            return inner(request)

        super().__init__(_counting)

    @property
    def calls(self) -> int:
        return len(self.requests)


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_endpoint(region_id: str = "us-east-1", lat: float = 37.43, lon: float = -78.66, provider: str = "AWS") -> Endpoint:
    return Endpoint(
        region_id=region_id,
        address=f"https://{region_id}.example.com",
        provider=provider,
        location=Location(city=region_id, country="Testland", latitude=lat, longitude=lon),
    )


def make_server(
    server_id: str,
    lat: float,
    lon: float,
    latency_ms: int = 0,
    state: str = ONLINE,
    exchange: str = "Test",
    provider: str = "AWS",
) -> ScoredServer:
    return ScoredServer(
        server_id=server_id,
        exchange=exchange,
        location=Location(city=server_id, country="Testland", latitude=lat, longitude=lon),
        provider=provider,
        region_id=server_id,
        latency_ms=latency_ms,
        state=state,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> CountingTransport:
    return CountingTransport()


@pytest.fixture
def probe(clock, transport) -> LatencyProbe:
    return LatencyProbe(
        cache=MeasurementCache(ttl_ms=30_000, clock=clock),
        transport=transport,
        timer=StepTimer(0.042),
        sleep=RecordingSleep(),
    )
