"""
Command-line interface for the subnet hub.

Usage:
    python -m subnet_hub build              # Verify nodes, aggregate, write _site/
    python -m subnet_hub verify             # Check every node's back-link (CI gate)
    python -m subnet_hub widget HUB [HUB]   # Merged widget view across hubs
    python -m subnet_hub serve              # Start the HTTP server
    python -m subnet_hub config             # Show current configuration
"""

import asyncio
import sys

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from .aggregator import HubAggregator
from .builder import run_build
from .config import get_settings
from .db import get_database
from .errors import ManifestError, SiteWriteError
from .logging_conf import setup_logging, get_logger
from .manifest import load_manifest
from .normalize import format_timestamp
from .sources.http import create_client

console = Console()
logger = get_logger(__name__)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug: bool):
    """Subnet hub builder CLI."""
    setup_logging(level="DEBUG" if debug else None)


@cli.command()
@click.option("--manifest", "-m", type=click.Path(), help="Manifest file (default: subnet.json)")
@click.option("--output", "-o", type=click.Path(), help="Output directory (default: _site)")
def build(manifest: str, output: str):
    """
    Build the hub site.

    Examples:
      python -m subnet_hub build
      python -m subnet_hub build -m subnet.json -o public
    """
    settings = get_settings()
    console.print(Panel("[bold green]Building hub[/bold green]"))

    try:
        result = asyncio.run(run_build(manifest_path=manifest, output_dir=output))
    except (ManifestError, SiteWriteError) as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()

    table = Table(title=f"Nodes ({len(result.active_nodes)}/{len(result.node_statuses)} active)")
    table.add_column("Node", style="cyan")
    table.add_column("URL")
    table.add_column("Status")
    for status in result.node_statuses:
        state = "[green]ok[/green]" if status.active else f"[red]{status.result.reason}[/red]"
        table.add_row(status.node.name, status.node.url, state)
    console.print(table)

    table = Table(title="Sources")
    table.add_column("Kind", style="yellow")
    table.add_column("Source", style="cyan")
    table.add_column("Entries", style="green")
    table.add_column("Note")
    for source in result.sources:
        note = "" if source.ok else f"[red]{source.reason}[/red]"
        table.add_row(source.kind, source.name, str(source.entries), note)
    console.print(table)

    console.print(
        f"\n[bold green]Wrote {len(result.entries)} entries to "
        f"{output or settings.output_dir}[/bold green]"
    )


@cli.command()
@click.option("--manifest", "-m", type=click.Path(), help="Manifest file (default: subnet.json)")
def verify(manifest: str):
    """
    Verify every node links back to the hub.

    Exits non-zero when any node is missing <link rel="subnet" href="HUB">.
    """
    try:
        hub_manifest = load_manifest(manifest or get_settings().manifest_path)
    except ManifestError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()

    if not hub_manifest.nodes:
        console.print("No nodes to verify.")
        return

    console.print(
        f"Verifying {len(hub_manifest.nodes)} node(s) for {hub_manifest.label}\n"
    )

    async def check():
        aggregator = HubAggregator(hub_manifest)
        async with create_client() as client:
            return await aggregator.verify_nodes(client)

    statuses = asyncio.run(check())

    failures = 0
    for status in statuses:
        label = f"  {status.node.name} ({status.node.url}) ..."
        if status.active:
            console.print(f"{label} [green]ok[/green]")
        else:
            console.print(f"{label} [red]FAIL: {status.result.reason}[/red]")
            failures += 1

    console.print()
    if failures:
        console.print(
            f'[bold red]{failures} node(s) missing <link rel="subnet" '
            f'href="{hub_manifest.hub}">[/bold red]'
        )
        sys.exit(1)

    console.print("[bold green]All nodes verified.[/bold green]")


@cli.command()
@click.argument("hubs", nargs=-1, required=True)
@click.option("--count", "-n", type=int, default=5, help="Entries to show")
def widget(hubs: tuple[str, ...], count: int):
    """
    Show the merged "From around my subnets" view for HUBS.

    Each HUB may also be a comma-separated list.
    """
    from .widget import WidgetFeedClient, parse_hub_list

    hub_list = [h for value in hubs for h in parse_hub_list(value)]
    feed = asyncio.run(WidgetFeedClient(get_database()).fetch_all(hub_list))

    if feed.empty:
        console.print("[yellow]Nothing to show[/yellow]")
        return

    table = Table(title="From Around My Subnets")
    table.add_column("Title", style="cyan")
    table.add_column("Author")
    table.add_column("Subnet", style="yellow")
    table.add_column("Published", style="green")
    for entry in feed.entries[:count]:
        table.add_row(
            entry.title,
            entry.author or "",
            entry.provenance_name or "",
            format_timestamp(entry.published) if entry.published else "",
        )
    console.print(table)
    console.print("Hubs: " + ", ".join(m.title or m.link for m in feed.meta))


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind to")
@click.option("--port", "-p", type=int, help="Port to bind to")
def serve(host: str, port: int):
    """Start the HTTP server."""
    from .server import run_server

    console.print(Panel("[bold blue]Starting Server[/bold blue]"))

    port = port or get_settings().port

    console.print(f"Host: {host}")
    console.print(f"Port: {port}")
    console.print()

    run_server(host=host, port=port)


@cli.command()
def config():
    """Show current configuration."""
    settings = get_settings()

    console.print(Panel("[bold blue]Current Configuration[/bold blue]"))

    console.print("\n[cyan]Build:[/cyan]")
    console.print(f"  manifest_path:    {settings.manifest_path}")
    console.print(f"  output_dir:       {settings.output_dir}")
    console.print(f"  index_post_limit: {settings.index_post_limit}")

    console.print("\n[cyan]HTTP:[/cyan]")
    console.print(f"  user_agent:             {settings.user_agent}")
    console.print(f"  verify_timeout:         {settings.verify_timeout}")
    console.print(f"  manifest_timeout:       {settings.manifest_timeout}")
    console.print(f"  feed_timeout:           {settings.feed_timeout}")
    console.print(f"  max_concurrent_fetches: {settings.max_concurrent_fetches}")

    console.print("\n[cyan]Widget:[/cyan]")
    console.print(f"  widget_cache_ttl_minutes: {settings.widget_cache_ttl_minutes}")

    console.print("\n[cyan]Logging:[/cyan]")
    console.print(f"  log_level: {settings.log_level}")
    console.print(f"  log_json:  {settings.log_json}")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
