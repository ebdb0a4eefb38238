"""CLI entry point and orchestration for latencymap."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Callable, Optional

import click
from rich.logging import RichHandler

from latencymap import __version__
from latencymap.config import (
    CACHE_TTL_MS,
    LOW_THRESHOLD_MS,
    MAX_CONNECTIONS,
    MAX_RETRIES,
    MEDIUM_THRESHOLD_MS,
    PROBE_TIMEOUT_MS,
    REFRESH_INTERVALS_MS,
)
from latencymap.models import PROVIDERS, SEVERITIES, LatencyUpdate, MonitorConfig, NetworkLatencyData


def _setup_logging(verbose: bool) -> None:
    from latencymap.display import console

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _common_options(func: Callable) -> Callable:
    """Options shared by every command that measures."""
    options = [
        click.option("--ttl", default=CACHE_TTL_MS, help="Measurement cache TTL in ms", show_default=True),
        click.option("-t", "--timeout", default=PROBE_TIMEOUT_MS, help="Probe timeout in ms", show_default=True),
        click.option("-r", "--retries", default=MAX_RETRIES, help="Retries on failed probes", show_default=True),
        click.option("-m", "--max-connections", default=MAX_CONNECTIONS, help="Connection cap", show_default=True),
        click.option("--low-threshold", default=LOW_THRESHOLD_MS, help="Upper bound of low severity (ms)", show_default=True),
        click.option("--medium-threshold", default=MEDIUM_THRESHOLD_MS, help="Upper bound of medium severity (ms)", show_default=True),
        click.option("-e", "--exchange", "exchanges", multiple=True, help="Limit to exchange (repeatable)"),
        click.option("--json", "json_output", is_flag=True, help="Output JSON to stdout"),
        click.option("--csv", "csv_output", is_flag=True, help="Output CSV to stdout"),
        click.option("-o", "--output", default=None, help="Write results to file"),
        click.option("-v", "--verbose", is_flag=True, help="Enable debug logging"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_config(
    ttl: int,
    timeout: int,
    retries: int,
    max_connections: int,
    low_threshold: int,
    medium_threshold: int,
    exchanges: tuple[str, ...],
    json_output: bool,
    csv_output: bool,
    output: Optional[str],
    verbose: bool,
    interval: int = REFRESH_INTERVALS_MS[0] // 1000,
) -> MonitorConfig:
    config = MonitorConfig(
        cache_ttl_ms=ttl,
        timeout_ms=timeout,
        max_retries=retries,
        max_connections=max_connections,
        refresh_interval_ms=interval * 1000,
        low_threshold_ms=low_threshold,
        medium_threshold_ms=medium_threshold,
        exchanges=list(exchanges),
        verbose=verbose,
        json_output=json_output,
        csv_output=csv_output,
        output_file=output,
    )
    try:
        config.validate()
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    return config


def _startup(verbose: bool) -> None:
    """Configure logging and validate the static registry once."""
    from latencymap.display import render_error
    from latencymap.registry import RegistryError, validate_registry

    _setup_logging(verbose)
    try:
        validate_registry()
    except RegistryError as exc:
        render_error(f"Invalid registry data: {exc}")
        sys.exit(1)


def _quiet(config: MonitorConfig) -> bool:
    return config.json_output or config.csv_output


def _run_async(coro):
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        from latencymap.display import console
        console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(130)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """latencymap — latency between crypto exchange server regions.

    Probes cloud region endpoints, scores every exchange server, and
    builds a nearest-neighbour graph of estimated inter-server latency.
    """


@main.command()
@click.option("-p", "--provider", type=click.Choice(PROVIDERS), default=None, help="Only this provider")
def regions(provider: Optional[str]) -> None:
    """List the registered region endpoints."""
    from latencymap.display import render_regions
    from latencymap.registry import endpoints_by_provider, list_endpoints

    _startup(False)
    endpoints = endpoints_by_provider(provider) if provider else list_endpoints()
    render_regions(endpoints)


async def _fetch_servers(config: MonitorConfig) -> NetworkLatencyData:
    from latencymap.pipeline import make_probe
    from latencymap.registry import get_exchange_mapping
    from latencymap.servers import fetch_exchange_data

    mappings = [get_exchange_mapping(name) for name in config.exchanges] or None
    probe = make_probe(config)
    return await fetch_exchange_data(
        probe,
        mappings,
        max_retries=config.max_retries,
        degraded_threshold_ms=config.degraded_threshold_ms,
    )


def _resolve_exchanges(config: MonitorConfig) -> None:
    """Exit with an error if an unknown exchange was requested."""
    from latencymap.display import render_error
    from latencymap.registry import get_exchange_mapping

    for name in config.exchanges:
        try:
            get_exchange_mapping(name)
        except ValueError as exc:
            render_error(str(exc))
            sys.exit(1)


@main.command()
@_common_options
@click.option("-p", "--provider", type=click.Choice(PROVIDERS), default=None, help="Only show this provider")
def servers(provider: Optional[str], **kwargs) -> None:
    """Measure every exchange region and print server latency."""
    config = _build_config(**kwargs)
    _startup(config.verbose)
    _resolve_exchanges(config)

    if not _quiet(config):
        from latencymap.display import console
        console.print("[bold]Measuring exchange regions...[/bold]\n")

    network = _run_async(_fetch_servers(config))
    if provider:
        from latencymap.servers import servers_by_provider, summarize
        network.servers = servers_by_provider(network.servers, provider)
        network.summary = summarize(network.servers)

    _handle_output(config, network=network)


@main.command()
@_common_options
@click.option(
    "-s", "--severity", "severities", multiple=True, type=click.Choice(SEVERITIES),
    help="Only show these severities (repeatable) [default: all]",
)
def connections(severities: tuple[str, ...], **kwargs) -> None:
    """Measure, synthesize the connection graph and print it."""
    from latencymap.connections import filter_by_severity
    from latencymap.pipeline import build_latency_data
    from latencymap.stats import reduce_connections

    config = _build_config(**kwargs)
    _startup(config.verbose)
    _resolve_exchanges(config)

    if not _quiet(config):
        from latencymap.display import console
        console.print("[bold]Measuring exchange regions...[/bold]")

    network = _run_async(_fetch_servers(config))
    update = build_latency_data(network.servers, config)
    if severities:
        filtered = filter_by_severity(update.connections, severities)
        update = LatencyUpdate(
            connections=filtered,
            stats=reduce_connections(filtered),
            timestamp=update.timestamp,
        )

    _handle_output(config, network=network, update=update, show_servers=False)


@main.command()
@_common_options
@click.option(
    "-i", "--interval", default=str(REFRESH_INTERVALS_MS[0] // 1000),
    type=click.Choice([str(ms // 1000) for ms in REFRESH_INTERVALS_MS]),
    help="Refresh interval in seconds", show_default=True,
)
@click.option("-n", "--cycles", default=None, type=int, help="Stop after N cycles [default: run forever]")
@click.option("--resync-every", default=None, type=int, help="Re-measure and rebuild every N cycles")
def watch(interval: str, cycles: Optional[int], resync_every: Optional[int], **kwargs) -> None:
    """Continuously refresh the connection graph."""
    from latencymap.display import LiveMonitorView
    from latencymap.pipeline import LatencyMonitor

    config = _build_config(interval=int(interval), **kwargs)
    if _quiet(config) and cycles is None:
        raise click.UsageError("--json and --csv require --cycles")
    _startup(config.verbose)
    _resolve_exchanges(config)

    monitor = LatencyMonitor(config)

    if _quiet(config):
        last = _run_async(monitor.run(cycles=cycles, resync_every=resync_every))
        _handle_output(config, network=monitor.network, update=last, show_servers=False)
        return

    view = LiveMonitorView(config.refresh_interval_ms)
    view.start()
    try:
        last = _run_async(monitor.run(cycles=cycles, on_update=view.update, resync_every=resync_every))
    finally:
        view.finish()

    if config.output_file and last is not None:
        _write_json(config, monitor.network, last)


@main.command()
@click.option("-l", "--limit", default=5, help="Number of regions to show", show_default=True)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def locate(limit: int, verbose: bool) -> None:
    """Show your approximate location and the nearest regions."""
    from latencymap.display import render_error, render_geo, render_nearest
    from latencymap.location import get_geolocation, nearest_endpoints
    from latencymap.registry import list_endpoints

    _startup(verbose)
    geo = _run_async(get_geolocation())
    render_geo(geo)
    if geo.error or geo.lat is None or geo.lon is None:
        render_error("Could not determine your location")
        sys.exit(1)
    render_nearest(nearest_endpoints(geo.lat, geo.lon, list_endpoints(), limit))


def _write_json(config: MonitorConfig, network: Optional[NetworkLatencyData], update: Optional[LatencyUpdate]) -> None:
    from latencymap.display import console
    from latencymap.export import export_json, write_to_file

    write_to_file(export_json(network, update), config.output_file)
    console.print(f"\n[dim]Results written to {config.output_file}[/dim]")


def _handle_output(
    config: MonitorConfig,
    network: Optional[NetworkLatencyData] = None,
    update: Optional[LatencyUpdate] = None,
    show_servers: bool = True,
) -> None:
    """Handle output rendering and export."""
    from latencymap.display import console, render_servers, render_update
    from latencymap.export import export_connections_csv, export_json, export_servers_csv, write_to_file

    # JSON output
    if config.json_output:
        json_str = export_json(network, update)
        if config.output_file:
            write_to_file(json_str, config.output_file)
        else:
            click.echo(json_str)
        return

    # CSV output
    if config.csv_output:
        if update is not None:
            csv_str = export_connections_csv(update.connections)
        else:
            csv_str = export_servers_csv(network.servers if network else [])
        if config.output_file:
            write_to_file(csv_str, config.output_file)
        else:
            click.echo(csv_str)
        return

    # Rich terminal output
    if network is not None and show_servers:
        render_servers(network, config.thresholds)
    if update is not None:
        render_update(update)

    if config.output_file:
        _write_json(config, network, update)


if __name__ == "__main__":
    main()
