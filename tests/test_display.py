# Tests for latencymap/display.py

import io

import pytest
from rich.console import Console

from conftest import make_server
from latencymap import display
from latencymap.models import DEGRADED, OFFLINE, ONLINE, GeoLocation, MonitorConfig, NetworkLatencyData
from latencymap.pipeline import build_latency_data
from latencymap.servers import summarize


@pytest.fixture
def output(monkeypatch):
    buffer = io.StringIO()
    monkeypatch.setattr(display, "console", Console(file=buffer, width=120))
    return buffer


def _update():
    servers = [make_server("a", 0.0, 0.0, 40), make_server("b", 0.0, 10.0, 60)]
    return build_latency_data(servers, MonitorConfig(), clock=lambda: 1000.0)


class TestLiveMonitorView:
    def test_counts_cycles_and_renders_last_update(self, output):
        view = display.LiveMonitorView(interval_ms=10_000)
        view.start()
        view.update(_update())
        view.update(_update())
        view.finish()

        text = output.getvalue()
        assert view.cycles == 2
        assert "Cycle 2" in text
        assert "refresh every 10s" in text
        assert "Stats:" in text

    def test_finish_without_start_is_harmless(self, output):
        view = display.LiveMonitorView(interval_ms=5_000)
        view.finish()
        assert output.getvalue() == ""


class TestRenderGeo:
    def test_shows_asn_next_to_isp(self, output):
        display.render_geo(GeoLocation(ip="198.51.100.1", city="Sao Paulo", isp="Claro", asn=28573, lat=-23.55, lon=-46.63))
        assert "Claro" in output.getvalue()
        assert "AS28573" in output.getvalue()

    def test_asn_not_repeated_when_isp_already_carries_it(self, output):
        display.render_geo(GeoLocation(ip="203.0.113.7", isp="AS3320 Deutsche Telekom AG", asn=3320))
        assert output.getvalue().count("AS3320") == 1

    def test_error_only(self, output):
        display.render_geo(GeoLocation(error="offline"))
        assert "Geolocation: offline" in output.getvalue()


class TestRenderServers:
    def test_every_state_has_a_style(self):
        assert set(display._STATE_STYLES) == {ONLINE, DEGRADED, OFFLINE}

    def test_table_and_summary(self, output):
        servers = [
            make_server("a", 0.0, 0.0, 40),
            make_server("b", 0.0, 10.0, 700, state=DEGRADED),
            make_server("c", 0.0, 20.0, 0, state=OFFLINE),
        ]
        network = NetworkLatencyData(timestamp="2024-01-01T00:00:00+00:00", servers=servers, summary=summarize(servers))
        display.render_servers(network)

        text = output.getvalue()
        assert "online" in text
        assert "degraded" in text
        assert "3 servers" in text
