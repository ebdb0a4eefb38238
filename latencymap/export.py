"""JSON and CSV export for latency snapshots."""

from __future__ import annotations

import csv
import io
import json
from typing import Optional

from latencymap.models import Connection, LatencyUpdate, NetworkLatencyData, ScoredServer


def export_json(
    network: Optional[NetworkLatencyData] = None,
    update: Optional[LatencyUpdate] = None,
    indent: int = 2,
) -> str:
    """Export the given snapshots as a JSON string."""
    data: dict = {}
    if network is not None:
        data["network"] = _network_to_dict(network)
    if update is not None:
        data["latency"] = _update_to_dict(update)
    return json.dumps(data, indent=indent, default=str)


def export_servers_csv(servers: list[ScoredServer]) -> str:
    """Export servers as CSV (one row per server)."""
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow([
        "server_id",
        "exchange",
        "provider",
        "region",
        "city",
        "country",
        "latitude",
        "longitude",
        "latency_ms",
        "state",
    ])
    for s in servers:
        writer.writerow([
            s.server_id,
            s.exchange,
            s.provider,
            s.region_id,
            s.location.city,
            s.location.country,
            s.location.latitude,
            s.location.longitude,
            s.latency_ms,
            s.state,
        ])

    return output.getvalue()


def export_connections_csv(connections: list[Connection]) -> str:
    """Export connections as CSV (one row per edge)."""
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow([
        "id",
        "source",
        "target",
        "source_lon",
        "source_lat",
        "target_lon",
        "target_lat",
        "latency_ms",
        "severity",
        "computed_at",
    ])
    for c in connections:
        writer.writerow([
            c.id,
            c.source_server_id,
            c.target_server_id,
            *c.source_coordinates,
            *c.target_coordinates,
            c.latency_ms,
            c.severity,
            c.computed_at,
        ])

    return output.getvalue()


def write_to_file(content: str, filepath: str) -> None:
    """Write export content to a file."""
    with open(filepath, "w") as f:
        f.write(content)


def _server_to_dict(s: ScoredServer) -> dict:
    return {
        "id": s.server_id,
        "exchange": s.exchange,
        "provider": s.provider,
        "region": s.region_id,
        "location": {
            "city": s.location.city,
            "country": s.location.country,
            "latitude": s.location.latitude,
            "longitude": s.location.longitude,
        },
        "latency_ms": s.latency_ms,
        "state": s.state,
    }


def _network_to_dict(network: NetworkLatencyData) -> dict:
    summary = network.summary
    return {
        "timestamp": network.timestamp,
        "servers": [_server_to_dict(s) for s in network.servers],
        "summary": {
            "total_servers": summary.total_servers,
            "average_latency": summary.average_latency,
            "online": summary.online_count,
            "degraded": summary.degraded_count,
            "offline": summary.offline_count,
            "by_provider": summary.by_provider,
            "by_exchange": summary.by_exchange,
        },
    }


def _update_to_dict(update: LatencyUpdate) -> dict:
    return {
        "timestamp": update.timestamp,
        "stats": {
            "min": update.stats.min,
            "max": update.stats.max,
            "avg": update.stats.avg,
            "median": update.stats.median,
        },
        "connections": [
            {
                "id": c.id,
                "source": c.source_server_id,
                "target": c.target_server_id,
                "source_coordinates": list(c.source_coordinates),
                "target_coordinates": list(c.target_coordinates),
                "latency_ms": c.latency_ms,
                "severity": c.severity,
                "computed_at": c.computed_at,
            }
            for c in update.connections
        ],
    }
