"""Constants and configuration for latencymap."""

# Measurement cache / probe settings
CACHE_TTL_MS = 30_000
PROBE_TIMEOUT_MS = 10_000
MAX_RETRIES = 2
RETRY_BASE_DELAY_S = 1.0  # 1s, 2s, 4s, ...

# Connection synthesis
MAX_CONNECTIONS = 50
NEIGHBORS_PER_SERVER = 3

# Distance model: latency_ms = distance_km * DISTANCE_MS_PER_KM + DISTANCE_BASE_MS
DISTANCE_MS_PER_KM = 0.02
DISTANCE_BASE_MS = 5.0
# Overhead added on top of the averaged real measurements
DISTANCE_OVERHEAD_FACTOR = 0.3

# Severity buckets (milliseconds)
LOW_THRESHOLD_MS = 50     # Low: <= 50ms
MEDIUM_THRESHOLD_MS = 150  # Medium: <= 150ms
# High: > 150ms
SEVERITY_THRESHOLDS = {"low": LOW_THRESHOLD_MS, "medium": MEDIUM_THRESHOLD_MS}

# Servers slower than this are reported as degraded
DEGRADED_THRESHOLD_MS = 500

# Periodic refresh
REFRESH_INTERVAL_MS = 5_000
REFRESH_INTERVALS_MS = (5_000, 10_000, 15_000, 30_000)

# Jitter injected between polling cycles (fraction of the previous value)
JITTER_VARIANCE = 0.15
JITTER_VARIANCE_RANGE = (0.15, 0.20)

# Geolocation API fallback chain
GEO_APIS = [
    "https://ipinfo.io/json",
    "https://ipapi.co/json/",
    "http://ip-api.com/json/?fields=status,message,query,city,regionName,country,lat,lon,isp,org,as",
]

# User agent for HTTP requests
USER_AGENT = "latencymap/0.1.0"

# Display colors per severity
SEVERITY_COLORS = {
    "low": "green",
    "medium": "yellow",
    "high": "red",
}

PROVIDER_COLORS = {
    "AWS": "dark_orange",
    "GCP": "dodger_blue1",
    "Azure": "deep_sky_blue3",
}
