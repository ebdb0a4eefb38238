# Tests for latencymap/export.py

import csv
import io
import json

from conftest import make_server
from latencymap.export import export_connections_csv, export_json, export_servers_csv, write_to_file
from latencymap.models import MonitorConfig, NetworkLatencyData
from latencymap.pipeline import build_latency_data
from latencymap.servers import summarize


def _snapshots():
    servers = [
        make_server("a", 0.0, 0.0, latency_ms=20),
        make_server("b", 0.0, 1.0, latency_ms=30, provider="GCP"),
        make_server("c", 0.0, 2.0, latency_ms=40, state="offline"),
    ]
    network = NetworkLatencyData(timestamp="2026-01-01T00:00:00+00:00", servers=servers, summary=summarize(servers))
    update = build_latency_data(servers, MonitorConfig(), clock=lambda: 5.0)
    return network, update


def test_export_json_contains_both_snapshots():
    network, update = _snapshots()
    data = json.loads(export_json(network, update))
    assert data["network"]["summary"]["total_servers"] == 3
    assert data["network"]["summary"]["offline"] == 1
    assert data["network"]["summary"]["by_provider"] == {"AWS": 2, "GCP": 1, "Azure": 0}
    assert data["network"]["servers"][1]["location"]["longitude"] == 1.0
    assert data["latency"]["stats"]["min"] == update.stats.min
    assert [c["id"] for c in data["latency"]["connections"]] == ["a-b"]
    assert data["latency"]["connections"][0]["source_coordinates"] == [0.0, 0.0]


def test_export_json_partial():
    network, _ = _snapshots()
    data = json.loads(export_json(network))
    assert "latency" not in data
    assert json.loads(export_json()) == {}


def test_servers_csv():
    network, _ = _snapshots()
    rows = list(csv.reader(io.StringIO(export_servers_csv(network.servers))))
    assert rows[0][0] == "server_id"
    assert len(rows) == 4
    assert rows[3][-1] == "offline"


def test_connections_csv():
    _, update = _snapshots()
    rows = list(csv.DictReader(io.StringIO(export_connections_csv(update.connections))))
    assert len(rows) == 1
    assert rows[0]["id"] == "a-b"
    assert rows[0]["severity"] == update.connections[0].severity
    assert rows[0]["target_lon"] == "1.0"


def test_write_to_file(tmp_path):
    path = tmp_path / "out.json"
    write_to_file('{"ok": true}', str(path))
    assert json.loads(path.read_text()) == {"ok": True}
