"""Data models for latencymap."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from latencymap.config import (
    CACHE_TTL_MS,
    DEGRADED_THRESHOLD_MS,
    JITTER_VARIANCE,
    JITTER_VARIANCE_RANGE,
    MAX_CONNECTIONS,
    MAX_RETRIES,
    PROBE_TIMEOUT_MS,
    REFRESH_INTERVAL_MS,
    REFRESH_INTERVALS_MS,
    SEVERITY_THRESHOLDS,
)

# Cloud providers
PROVIDERS = ("AWS", "GCP", "Azure")

# Measurement outcomes
SUCCESS = "success"
FAILED = "failed"
TIMED_OUT = "timeout"

# Server operational states
ONLINE = "online"
DEGRADED = "degraded"
OFFLINE = "offline"

# Severity buckets, in ascending order
SEVERITIES = ("low", "medium", "high")


@dataclass(frozen=True)
class Location:
    """Geographic placement of a cloud region."""

    city: str
    country: str
    latitude: float
    longitude: float

    @property
    def coordinates(self) -> tuple[float, float]:
        """(longitude, latitude), the order map layers expect."""
        return (self.longitude, self.latitude)


@dataclass(frozen=True)
class Endpoint:
    """A probe-able address representing one cloud region."""

    region_id: str
    address: str
    provider: str  # AWS | GCP | Azure
    location: Location


@dataclass(frozen=True)
class ExchangeRegion:
    region_id: str
    provider: str
    primary: bool = False


@dataclass(frozen=True)
class ExchangeMapping:
    """Regions an exchange is deployed in."""

    exchange: str
    regions: tuple[ExchangeRegion, ...] = ()


@dataclass(frozen=True)
class Measurement:
    """Result of a single probe attempt against an endpoint."""

    region_id: str
    address: str
    latency_ms: int
    measured_at: float  # epoch seconds
    outcome: str = SUCCESS  # success | failed | timeout
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.outcome == SUCCESS


@dataclass
class ScoredServer:
    """An exchange's presence in a region, annotated with latency."""

    server_id: str
    exchange: str
    location: Location
    provider: str
    region_id: str
    latency_ms: int
    state: str = ONLINE  # online | degraded | offline


def unordered_pair(a: str, b: str) -> tuple[str, str]:
    """Canonical unordered key for two server ids."""
    return (a, b) if a <= b else (b, a)


@dataclass(frozen=True)
class Connection:
    """Synthesized edge between two servers."""

    id: str
    source_server_id: str
    target_server_id: str
    source_coordinates: tuple[float, float]  # (lon, lat)
    target_coordinates: tuple[float, float]
    latency_ms: int
    severity: str
    computed_at: float

    @property
    def pair_key(self) -> tuple[str, str]:
        return unordered_pair(self.source_server_id, self.target_server_id)


@dataclass
class LatencyStats:
    """Summary of a connection set. All values are whole milliseconds."""

    min: int = 0
    max: int = 0
    avg: int = 0
    median: int = 0


@dataclass
class ServerSummary:
    total_servers: int = 0
    average_latency: int = 0
    online_count: int = 0
    degraded_count: int = 0
    offline_count: int = 0
    by_provider: dict[str, int] = field(default_factory=lambda: {p: 0 for p in PROVIDERS})
    by_exchange: dict[str, int] = field(default_factory=dict)


@dataclass
class NetworkLatencyData:
    """Snapshot of every exchange server and its measured latency."""

    timestamp: str
    servers: list[ScoredServer] = field(default_factory=list)
    summary: ServerSummary = field(default_factory=ServerSummary)


@dataclass
class LatencyUpdate:
    """Snapshot of the connection graph after one refresh cycle."""

    connections: list[Connection] = field(default_factory=list)
    stats: LatencyStats = field(default_factory=LatencyStats)
    timestamp: float = 0.0


@dataclass
class GeoLocation:
    """User's geolocation info."""

    ip: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    isp: Optional[str] = None
    org: Optional[str] = None
    asn: Optional[int] = None
    error: Optional[str] = None


@dataclass
class MonitorConfig:
    """Configuration for a monitoring run."""

    cache_ttl_ms: int = CACHE_TTL_MS
    timeout_ms: int = PROBE_TIMEOUT_MS
    max_retries: int = MAX_RETRIES
    max_connections: int = MAX_CONNECTIONS
    refresh_interval_ms: int = REFRESH_INTERVAL_MS
    low_threshold_ms: int = SEVERITY_THRESHOLDS["low"]
    medium_threshold_ms: int = SEVERITY_THRESHOLDS["medium"]
    degraded_threshold_ms: int = DEGRADED_THRESHOLD_MS
    jitter_variance: float = JITTER_VARIANCE
    exchanges: list[str] = field(default_factory=list)  # empty = all
    verbose: bool = False
    json_output: bool = False
    csv_output: bool = False
    output_file: Optional[str] = None

    @property
    def thresholds(self) -> dict[str, int]:
        return {"low": self.low_threshold_ms, "medium": self.medium_threshold_ms}

    def validate(self) -> None:
        """Raise ValueError if any knob is out of range."""
        if self.cache_ttl_ms <= 0:
            raise ValueError(f"cache TTL must be positive, got {self.cache_ttl_ms}")
        if self.timeout_ms <= 0:
            raise ValueError(f"probe timeout must be positive, got {self.timeout_ms}")
        if self.max_retries < 0:
            raise ValueError(f"max retries cannot be negative, got {self.max_retries}")
        if self.max_connections < 0:
            raise ValueError(f"max connections cannot be negative, got {self.max_connections}")
        if self.refresh_interval_ms not in REFRESH_INTERVALS_MS:
            raise ValueError(
                f"refresh interval must be one of {list(REFRESH_INTERVALS_MS)}, "
                f"got {self.refresh_interval_ms}"
            )
        if not 0 <= self.low_threshold_ms < self.medium_threshold_ms:
            raise ValueError(
                "severity thresholds must satisfy 0 <= low < medium, got "
                f"low={self.low_threshold_ms} medium={self.medium_threshold_ms}"
            )
        lo, hi = JITTER_VARIANCE_RANGE
        if not lo <= self.jitter_variance <= hi:
            raise ValueError(f"jitter variance must be within [{lo}, {hi}], got {self.jitter_variance}")
