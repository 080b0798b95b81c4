"""
Reconnaissance CLI commands.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import json

import click
from netaddr import IPAddress
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn

from netsweep import __version__
from netsweep.config import get_config
from netsweep.logging_config import configure_logging, get_logger
from netsweep.recon.discovery import HostDiscovery
from netsweep.recon.errors import InvalidSpec
from netsweep.recon.models import Protocol, ScanJob
from netsweep.recon.scanner import PortScanner
from netsweep.recon.targets import parse_port_range


console = Console()
logger = get_logger(__name__)


def _fail(error: Exception) -> None:
    console.print(f"[red]Error:[/red] {error}")
    raise SystemExit(1)


@click.group()
@click.version_option(__version__, prog_name="netsweep")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to this file")
@click.pass_context
def recon(ctx: click.Context, debug: bool, log_file: str | None):
    """Concurrent port scanning and host discovery."""
    try:
        settings = get_config()
        configure_logging(debug=debug, log_file=log_file or settings.log_file, level=settings.log_level)
    except ValueError as e:
        # InvalidSpec from the environment, or an unknown log level
        _fail(e)

    ctx.obj = settings


@recon.command()
@click.argument("target")
@click.option("--ports", "-p", help="Port or range, e.g. 22 or 1-1024")
@click.option("--concurrency", "-c", type=int, help="Concurrent workers")
@click.option("--timeout", "-t", type=float, help="Connect timeout in seconds")
@click.option("--banner-timeout", type=float, help="Banner read timeout in seconds")
@click.option("--no-banner", is_flag=True, help="Skip banner grabbing")
@click.option("--udp", "-u", is_flag=True, help="UDP connect scan (unreliable: silent ports show as open)")
@click.option("--deadline", type=float, help="Abort the whole scan after this many seconds")
@click.option("--show-closed", is_flag=True, help="Also list closed ports")
@click.option("--json", "-j", "output_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def scan(
    settings,
    target: str,
    ports: str | None,
    concurrency: int | None,
    timeout: float | None,
    banner_timeout: float | None,
    no_banner: bool,
    udp: bool,
    deadline: float | None,
    show_closed: bool,
    output_json: bool,
):
    """Scan a port range on a target host.

    \b
    Examples:
        netsweep scan 192.168.1.1
        netsweep scan example.com -p 1-65535 -c 200
        netsweep scan 10.0.0.5 -p 22 --json
    """
    try:
        start_port, end_port = parse_port_range(ports) if ports else (None, None)
        job = ScanJob.from_settings(
            target,
            settings,
            start_port=start_port,
            end_port=end_port,
            concurrency=concurrency,
            timeout=timeout,
            banner_timeout=banner_timeout,
            grab_banner=not no_banner,
            protocol=Protocol.UDP if udp else Protocol.TCP,
            deadline=deadline,
            open_only=not show_closed,
        )
        job.validate()
        logger.debug(f"Scan job: {job}")
    except InvalidSpec as e:
        _fail(e)

    scanner = PortScanner()

    try:
        if output_json:
            results = scanner.scan(job)
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                count = max(0, job.end_port - job.start_port + 1)
                progress.add_task(f"Scanning {count} ports on {target}...", total=None)
                results = scanner.scan(job)
    except InvalidSpec as e:
        _fail(e)

    results = sorted(results, key=lambda r: r.port)
    cancelled = scanner.last_pool is not None and scanner.last_pool.cancelled

    if output_json:
        click.echo(json.dumps({
            "target": target,
            "protocol": job.protocol.value,
            "ports": [job.start_port, job.end_port],
            "cancelled": cancelled,
            "results": [r.to_dict() for r in results],
        }, indent=2))
        return

    open_ports = [r for r in results if r.is_open]
    console.print(f"\n[cyan]Scan Results for {target}[/cyan]")
    console.print(f"Open: [green]{len(open_ports)}[/green]")
    if cancelled:
        console.print("[yellow]Scan stopped at deadline; results are partial[/yellow]")
    console.print()

    if not results:
        console.print("[yellow]No open ports found[/yellow]")
        return

    table = Table(title="Ports", box=None)
    table.add_column("Port", style="cyan", width=12)
    table.add_column("State", width=8)
    table.add_column("Service", style="white", width=15)
    table.add_column("Version", style="dim", width=12)
    table.add_column("Banner", style="dim", width=40, overflow="ellipsis")

    for result in results:
        state_color = "green" if result.is_open else "dim"
        banner = result.banner_text.splitlines()[0][:40] if result.banner else "-"
        table.add_row(
            f"{result.port}/{result.protocol.value}",
            f"[{state_color}]{result.state.value}[/{state_color}]",
            result.service or "-",
            result.version if result.version and result.version != "unknown" else "-",
            banner,
        )

    console.print(table)


@recon.command()
@click.argument("network")
@click.option("--concurrency", "-c", type=int, help="Hosts probed concurrently")
@click.option("--liveness-timeout", type=float, help="Liveness probe timeout in seconds")
@click.option("--port-timeout", type=float, help="Per-port sub-scan timeout in seconds")
@click.option("--no-resolve", is_flag=True, help="Skip reverse DNS lookups")
@click.option("--deadline", type=float, help="Abort the sweep after this many seconds")
@click.option("--json", "-j", "output_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def discover(
    settings,
    network: str,
    concurrency: int | None,
    liveness_timeout: float | None,
    port_timeout: float | None,
    no_resolve: bool,
    deadline: float | None,
    output_json: bool,
):
    """Discover live hosts in a network.

    \b
    Examples:
        netsweep discover 192.168.1.0/24
        netsweep discover 10.0.0.0/24 --liveness-timeout 0.5 -c 200
    """
    try:
        job = ScanJob.from_settings(
            network,
            settings,
            concurrency=concurrency,
            liveness_timeout=liveness_timeout,
            port_timeout=port_timeout,
            resolve_hostnames=not no_resolve,
            deadline=deadline,
        )
        job.validate()
        logger.debug(f"Discovery job: {job}")
        discovery = HostDiscovery.from_job(job)

        if output_json:
            hosts = discovery.discover_network(job.target, deadline=job.deadline)
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task(f"Discovering hosts in {network}...", total=None)
                hosts = discovery.discover_network(job.target, deadline=job.deadline)
    except InvalidSpec as e:
        _fail(e)

    hosts = sorted(hosts, key=lambda h: IPAddress(h.ip))
    cancelled = discovery.last_pool is not None and discovery.last_pool.cancelled

    if output_json:
        click.echo(json.dumps({
            "network": network,
            "cancelled": cancelled,
            "hosts": [h.to_dict() for h in hosts],
        }, indent=2))
        return

    console.print(f"\n[cyan]Live Hosts in {network}[/cyan]")
    console.print(f"Found: [green]{len(hosts)}[/green] hosts\n")
    if cancelled:
        console.print("[yellow]Sweep stopped at deadline; results are partial[/yellow]\n")

    if hosts:
        table = Table(box=None)
        table.add_column("IP Address", style="white", width=18)
        table.add_column("Hostname", style="dim", width=40)
        table.add_column("Open Ports", style="cyan")

        for host in hosts:
            table.add_row(
                host.ip,
                host.hostname or "-",
                ", ".join(f"{port} ({host.services.get(port, '-')})" for port in host.open_ports),
            )

        console.print(table)


if __name__ == "__main__":
    recon()
