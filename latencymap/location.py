"""Great-circle distance, distance-derived latency and user geolocation."""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

import httpx

from latencymap.config import DISTANCE_BASE_MS, DISTANCE_MS_PER_KM, GEO_APIS, USER_AGENT
from latencymap.models import Endpoint, GeoLocation

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance in km between two lat/lon points using the Haversine formula."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_latency(
    coord1: tuple[float, float],
    coord2: tuple[float, float],
    ms_per_km: float = DISTANCE_MS_PER_KM,
    base_ms: float = DISTANCE_BASE_MS,
) -> int:
    """Estimate latency from the distance between two (lon, lat) points."""
    lon1, lat1 = coord1
    lon2, lat2 = coord2
    return round(haversine_km(lat1, lon1, lat2, lon2) * ms_per_km + base_ms)


def nearest_endpoints(
    lat: float,
    lon: float,
    endpoints: Sequence[Endpoint],
    limit: int = 5,
) -> list[tuple[Endpoint, float, int]]:
    """Rank endpoints by distance from (lat, lon).

    Returns ``(endpoint, distance_km, estimated_latency_ms)`` tuples,
    nearest first.
    """
    ranked = []
    for ep in endpoints:
        km = haversine_km(lat, lon, ep.location.latitude, ep.location.longitude)
        ranked.append((ep, km, round(km * DISTANCE_MS_PER_KM + DISTANCE_BASE_MS)))
    ranked.sort(key=lambda item: item[1])
    return ranked[:limit]


async def get_geolocation(
    timeout: float = 5.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GeoLocation:
    """Determine user's geolocation using a fallback chain of free APIs."""
    for api_url in GEO_APIS:
        try:
            geo = await _query_api(api_url, timeout, transport)
            if geo and geo.ip:
                return geo
        except Exception as exc:
            logger.debug("Geolocation via %s failed: %s", api_url, exc)
            continue

    return GeoLocation(error="All geolocation APIs failed")


async def _query_api(
    url: str,
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport],
) -> Optional[GeoLocation]:
    """Query a single geolocation API."""
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport) as client:
        resp = await client.get(url, headers={"User-Agent": USER_AGENT})
        resp.raise_for_status()
        data = resp.json()

    if "ipinfo.io" in url:
        return _parse_ipinfo(data)
    elif "ipapi.co" in url:
        return _parse_ipapi(data)
    elif "ip-api.com" in url:
        return _parse_ipapi_com(data)
    return None


def _parse_asn(value: str) -> Optional[int]:
    """Pull the number out of an ``AS15169 GOOGLE`` style field."""
    if not value or not value.startswith("AS"):
        return None
    try:
        return int(value.split(" ", 1)[0][2:])
    except ValueError:
        return None


def _parse_ipinfo(data: dict) -> GeoLocation:
    """Parse ipinfo.io response."""
    lat, lon = None, None
    loc = data.get("loc", "")
    if loc and "," in loc:
        parts = loc.split(",")
        try:
            lat, lon = float(parts[0]), float(parts[1])
        except (ValueError, IndexError):
            pass

    org = data.get("org", "")
    return GeoLocation(
        ip=data.get("ip"),
        city=data.get("city"),
        region=data.get("region"),
        country=data.get("country"),
        lat=lat,
        lon=lon,
        isp=org,
        org=org,
        asn=_parse_asn(org),
    )


def _parse_ipapi(data: dict) -> GeoLocation:
    """Parse ipapi.co response."""
    if data.get("error"):
        return GeoLocation(error=str(data.get("reason", "ipapi.co error")))

    return GeoLocation(
        ip=data.get("ip"),
        city=data.get("city"),
        region=data.get("region"),
        country=data.get("country_code"),
        lat=data.get("latitude"),
        lon=data.get("longitude"),
        isp=data.get("org"),
        org=data.get("org"),
        asn=_parse_asn(data.get("asn", "")),
    )


def _parse_ipapi_com(data: dict) -> GeoLocation:
    """Parse ip-api.com response."""
    if data.get("status") == "fail":
        return GeoLocation(error=data.get("message", "ip-api.com error"))

    return GeoLocation(
        ip=data.get("query"),
        city=data.get("city"),
        region=data.get("regionName"),
        country=data.get("country"),
        lat=data.get("lat"),
        lon=data.get("lon"),
        isp=data.get("isp"),
        org=data.get("org"),
        asn=_parse_asn(data.get("as", "")),
    )
