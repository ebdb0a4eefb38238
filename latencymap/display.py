"""Rich terminal output for latencymap."""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from latencymap.config import PROVIDER_COLORS, SEVERITY_COLORS, SEVERITY_THRESHOLDS
from latencymap.connections import severity_for
from latencymap.models import (
    DEGRADED,
    OFFLINE,
    ONLINE,
    Endpoint,
    GeoLocation,
    LatencyStats,
    LatencyUpdate,
    NetworkLatencyData,
    ScoredServer,
)

console = Console()

_STATE_STYLES = {ONLINE: "green", DEGRADED: "yellow", OFFLINE: "red"}


def _fmt_ms(value: float, thresholds: Mapping[str, float] = SEVERITY_THRESHOLDS) -> Text:
    """Format a millisecond value colored by severity."""
    return Text(f"{value:.0f}ms", style=SEVERITY_COLORS[severity_for(value, thresholds)])


def _provider_text(provider: str) -> Text:
    return Text(provider, style=PROVIDER_COLORS.get(provider, ""))


# ── User location ─────────────────────────────────────────────────────


def render_geo(geo: GeoLocation) -> None:
    """Display user geolocation info."""
    if geo.error:
        console.print(f"[dim]Geolocation: {geo.error}[/dim]")
        return

    parts = []
    if geo.ip:
        parts.append(f"[bold]{geo.ip}[/bold]")
    location_parts = [p for p in [geo.city, geo.region, geo.country] if p]
    if location_parts:
        parts.append(", ".join(location_parts))
    if geo.isp:
        parts.append(f"[dim]{geo.isp}[/dim]")
    if geo.asn is not None and not (geo.isp or "").startswith("AS"):
        parts.append(f"[dim]AS{geo.asn}[/dim]")
    if geo.lat is not None and geo.lon is not None:
        parts.append(f"[dim]({geo.lat:.2f}, {geo.lon:.2f})[/dim]")

    console.print(f"[bold]Your Connection:[/bold] {' | '.join(parts)}")


def render_nearest(ranked: Sequence[tuple[Endpoint, float, int]]) -> None:
    """Print the regions nearest to the user."""
    table = Table(show_header=True, border_style="bright_black", expand=False, header_style="bold")
    table.add_column("#", justify="right", width=3, style="dim")
    table.add_column("Region", style="bold", no_wrap=True)
    table.add_column("Provider")
    table.add_column("Location")
    table.add_column("Distance", justify="right")
    table.add_column("Est. latency", justify="right")

    for rank, (ep, km, latency_ms) in enumerate(ranked, 1):
        table.add_row(
            str(rank),
            ep.region_id,
            _provider_text(ep.provider),
            f"{ep.location.city}, {ep.location.country}",
            f"{km:,.0f} km",
            _fmt_ms(latency_ms),
        )
    console.print(table)


# ── Registry ──────────────────────────────────────────────────────────


def render_regions(endpoints: Sequence[Endpoint]) -> None:
    table = Table(show_header=True, border_style="bright_black", expand=False, header_style="bold")
    table.add_column("Region", style="bold", no_wrap=True)
    table.add_column("Provider")
    table.add_column("Location")
    table.add_column("Coordinates", justify="right", style="dim")
    table.add_column("Endpoint", style="dim", overflow="ellipsis")

    for ep in endpoints:
        loc = ep.location
        table.add_row(
            ep.region_id,
            _provider_text(ep.provider),
            f"{loc.city}, {loc.country}",
            f"{loc.latitude:.2f}, {loc.longitude:.2f}",
            ep.address,
        )
    console.print(table)


# ── Servers ───────────────────────────────────────────────────────────


def _build_servers_table(servers: Sequence[ScoredServer], thresholds: Mapping[str, float]) -> Table:
    table = Table(show_header=True, border_style="bright_black", expand=False, header_style="bold")
    table.add_column("Exchange", style="bold")
    table.add_column("Region")
    table.add_column("Provider")
    table.add_column("Location")
    table.add_column("Latency", justify="right")
    table.add_column("State")

    for s in servers:
        latency = Text("\u2014", style="dim") if s.state == OFFLINE else _fmt_ms(s.latency_ms, thresholds)
        table.add_row(
            s.exchange,
            s.region_id,
            _provider_text(s.provider),
            f"{s.location.city}, {s.location.country}",
            latency,
            Text(s.state, style=_STATE_STYLES.get(s.state, "")),
        )
    return table


def render_summary(network: NetworkLatencyData) -> None:
    summary = network.summary
    providers = " ".join(
        f"[{PROVIDER_COLORS.get(p, '')}]{p}[/]: {n}" for p, n in summary.by_provider.items()
    )
    console.print(
        f"[bold]{summary.total_servers} servers[/bold] | "
        f"avg {summary.average_latency}ms | "
        f"[green]{summary.online_count} online[/green] "
        f"[yellow]{summary.degraded_count} degraded[/yellow] "
        f"[red]{summary.offline_count} offline[/red] | {providers}"
    )


def render_servers(
    network: NetworkLatencyData,
    thresholds: Mapping[str, float] = SEVERITY_THRESHOLDS,
) -> None:
    """Render the server table followed by the summary line."""
    if not network.servers:
        console.print("[dim]No servers measured.[/dim]")
        return
    console.print(_build_servers_table(network.servers, thresholds))
    render_summary(network)


# ── Connections ───────────────────────────────────────────────────────


def _build_connections_table(update: LatencyUpdate) -> Table:
    table = Table(
        show_header=True,
        border_style="bright_black",
        expand=False,
        header_style="bold",
        title="[bold]Connections[/bold] [dim](nearest neighbours)[/dim]",
        title_style="",
    )
    table.add_column("#", justify="right", width=3, style="dim")
    table.add_column("Source", style="bold")
    table.add_column("Target", style="bold")
    table.add_column("Latency", justify="right")
    table.add_column("Severity")
    table.add_column("", min_width=20)

    max_latency = max((c.latency_ms for c in update.connections), default=1) or 1

    for i, c in enumerate(update.connections, 1):
        color = SEVERITY_COLORS.get(c.severity, "")
        bar_width = 20
        filled = min(int((c.latency_ms / max_latency) * bar_width), bar_width)
        bar = Text("\u2588" * filled, style=color) + Text("\u2591" * (bar_width - filled), style="bright_black")
        table.add_row(
            str(i),
            c.source_server_id,
            c.target_server_id,
            Text(f"{c.latency_ms}ms", style=color),
            Text(c.severity, style=color),
            bar,
        )
    return table


def _stats_text(stats: LatencyStats) -> Text:
    return Text.from_markup(
        f"[bold]Stats:[/bold] min {stats.min}ms | avg {stats.avg}ms | "
        f"median {stats.median}ms | max {stats.max}ms"
    )


def render_update(update: LatencyUpdate) -> None:
    """Render a connection snapshot with its stats."""
    if not update.connections:
        console.print("[dim]No connections (no active servers).[/dim]")
        return
    console.print()
    console.print(_build_connections_table(update))
    console.print(_stats_text(update.stats))


class LiveMonitorView:
    """Live-updating connection table for the watch command."""

    def __init__(self, interval_ms: int):
        self.interval_ms = interval_ms
        self.cycles = 0
        self.live: Optional[Live] = None

    def _build(self, update: Optional[LatencyUpdate]) -> Group:
        header = Text.from_markup(
            f"[bold]Cycle {self.cycles}[/bold] [dim](refresh every {self.interval_ms // 1000}s, Ctrl-C to stop)[/dim]"
        )
        if update is None or not update.connections:
            return Group(header, Text("waiting for data...", style="dim"))
        return Group(header, _build_connections_table(update), _stats_text(update.stats))

    def start(self) -> None:
        self.live = Live(self._build(None), console=console, refresh_per_second=4)
        self.live.start()

    def update(self, update: LatencyUpdate) -> None:
        self.cycles += 1
        if self.live:
            self.live.update(self._build(update))

    def finish(self) -> None:
        if self.live:
            self.live.stop()


def render_error(message: str) -> None:
    """Display an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")
