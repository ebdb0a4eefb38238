"""Endpoint registry and exchange-to-region mapping.

Both tables ship as JSON under ``latencymap/data`` and are loaded lazily
on first use.  They are read-only for the lifetime of the process.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from latencymap.models import PROVIDERS, Endpoint, ExchangeMapping, ExchangeRegion, Location

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent / "data"

_ENDPOINTS: dict[str, Endpoint] | None = None
_EXCHANGES: list[ExchangeMapping] | None = None


class RegistryError(ValueError):
    """Static registry data is malformed."""


def _load_endpoints() -> dict[str, Endpoint]:
    with open(_DATA_DIR / "regions.json") as f:
        raw = json.load(f)
    return parse_endpoints(raw)


def _load_exchanges() -> list[ExchangeMapping]:
    with open(_DATA_DIR / "exchanges.json") as f:
        raw = json.load(f)
    return parse_exchanges(raw)


def parse_endpoints(raw: list[dict]) -> dict[str, Endpoint]:
    """Build the region_id -> Endpoint table from raw records."""
    endpoints: dict[str, Endpoint] = {}
    for rec in raw:
        try:
            loc = rec["location"]
            ep = Endpoint(
                region_id=rec["region"],
                address=rec["address"],
                provider=rec["provider"],
                location=Location(
                    city=loc["city"],
                    country=loc["country"],
                    latitude=float(loc["latitude"]),
                    longitude=float(loc["longitude"]),
                ),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise RegistryError(f"Malformed region record {rec!r}: {exc}") from exc
        if ep.region_id in endpoints:
            raise RegistryError(f"Duplicate region id: {ep.region_id!r}")
        endpoints[ep.region_id] = ep
    return endpoints


def parse_exchanges(raw: list[dict]) -> list[ExchangeMapping]:
    """Build the exchange mapping list from raw records."""
    mappings = []
    for rec in raw:
        try:
            regions = tuple(
                ExchangeRegion(
                    region_id=r["region"],
                    provider=r["provider"],
                    primary=bool(r.get("primary", False)),
                )
                for r in rec["regions"]
            )
            mappings.append(ExchangeMapping(exchange=rec["exchange"], regions=regions))
        except (KeyError, TypeError) as exc:
            raise RegistryError(f"Malformed exchange record {rec!r}: {exc}") from exc
    return mappings


def get_endpoint_map() -> dict[str, Endpoint]:
    """Return the mapping of region_id -> Endpoint, loading lazily."""
    global _ENDPOINTS
    if _ENDPOINTS is None:
        _ENDPOINTS = _load_endpoints()
    return _ENDPOINTS


def get_exchange_mappings() -> list[ExchangeMapping]:
    """Return every exchange mapping, loading lazily."""
    global _EXCHANGES
    if _EXCHANGES is None:
        _EXCHANGES = _load_exchanges()
    return _EXCHANGES


def get_endpoint(region_id: str) -> Optional[Endpoint]:
    return get_endpoint_map().get(region_id)


def list_endpoints() -> list[Endpoint]:
    return list(get_endpoint_map().values())


def endpoints_by_provider(provider: str) -> list[Endpoint]:
    return [ep for ep in get_endpoint_map().values() if ep.provider == provider]


def endpoints_for_regions(region_ids: Iterable[str]) -> list[Endpoint]:
    """Resolve region ids to endpoints, skipping regions the registry lacks."""
    seen: set[str] = set()
    endpoints = []
    for region_id in region_ids:
        if region_id in seen:
            continue
        seen.add(region_id)
        ep = get_endpoint(region_id)
        if ep is None:
            logger.warning("Region %s is unavailable: no endpoint registered", region_id)
            continue
        endpoints.append(ep)
    return endpoints


def get_exchange_mapping(exchange: str) -> ExchangeMapping:
    """Look up an exchange by name (case-insensitive)."""
    for mapping in get_exchange_mappings():
        if mapping.exchange.lower() == exchange.lower():
            return mapping
    raise ValueError(f"Unknown exchange: {exchange!r}. Available: {list_exchanges()}")


def get_primary_region(exchange: str) -> Optional[ExchangeRegion]:
    """Return the region hosting the exchange's main trading engine."""
    mapping = get_exchange_mapping(exchange)
    for region in mapping.regions:
        if region.primary:
            return region
    return None


def list_exchanges() -> list[str]:
    return [m.exchange for m in get_exchange_mappings()]


def validate_registry(
    endpoints: dict[str, Endpoint] | None = None,
    mappings: list[ExchangeMapping] | None = None,
) -> None:
    """Check the static tables for consistency.

    Intended to run once at startup.  Raises :class:`RegistryError` on the
    first problem found.
    """
    if endpoints is None:
        endpoints = get_endpoint_map()
    if mappings is None:
        mappings = get_exchange_mappings()

    for ep in endpoints.values():
        if ep.provider not in PROVIDERS:
            raise RegistryError(f"Region {ep.region_id!r} has unknown provider {ep.provider!r}")

    names: set[str] = set()
    for mapping in mappings:
        key = mapping.exchange.lower()
        if key in names:
            raise RegistryError(f"Duplicate exchange: {mapping.exchange!r}")
        names.add(key)
        for region in mapping.regions:
            ep = endpoints.get(region.region_id)
            if ep is None:
                raise RegistryError(
                    f"Exchange {mapping.exchange!r} references unknown region {region.region_id!r}"
                )
            if ep.provider != region.provider:
                raise RegistryError(
                    f"Exchange {mapping.exchange!r} maps {region.region_id!r} to "
                    f"{region.provider}, registry says {ep.provider}"
                )
