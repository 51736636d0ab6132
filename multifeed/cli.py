"""Command-line interface for multifeed."""

import asyncio
import logging
import sys
from datetime import datetime, timezone

import click
from rich.console import Console
from rich.table import Table

from multifeed.config import Config
from multifeed.content import ReadabilityExtractor
from multifeed.models import Source, SyncOutcome
from multifeed.sources import create_registry
from multifeed.store import Store
from multifeed.sync import SyncEngine


console = Console()

# Subscriptions made from the command line belong to this user
LOCAL_USER = "local"


def get_store() -> Store:
    """Get the configured store."""
    config = Config.load()
    return config.create_store()


def format_age(dt: datetime) -> str:
    """Format a datetime as a human-readable age."""
    delta = datetime.now(timezone.utc) - dt
    seconds = delta.total_seconds()

    if seconds < 60:
        return "now"
    elif seconds < 3600:
        mins = int(seconds / 60)
        return f"{mins}m"
    elif seconds < 86400:
        hours = int(seconds / 3600)
        return f"{hours}h"
    elif seconds < 604800:
        days = int(seconds / 86400)
        return f"{days}d"
    else:
        weeks = int(seconds / 604800)
        return f"{weeks}w"


@click.group()
@click.version_option(package_name="multifeed")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
def main(verbose: bool) -> None:
    """multifeed - subscribe to feeds, channels and podcasts from any URL."""
    config = Config.load()
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# =============================================================================
# Sources commands
# =============================================================================


@main.group()
def sources() -> None:
    """Manage content sources."""
    pass


@sources.command("add")
@click.argument("url")
def sources_add(url: str) -> None:
    """Resolve a URL and subscribe to it."""
    console.print(f"[dim]Resolving {url}...[/dim]")
    result = asyncio.run(_add_source(url))

    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        if result.requires_manual_feed:
            console.print("[dim]Add the podcast's RSS feed URL instead.[/dim]")
        sys.exit(1)

    source = result.source
    verb = "Added" if result.created else "Already subscribed to"
    console.print(f"[green]{verb} {source.title} ({source.id})[/green]")
    console.print(f"[bold]Type:[/bold] {source.kind.value}")
    console.print(f"[bold]Feed:[/bold] {source.url}")
    if source.metadata.get("was_redirected"):
        console.print(
            f"[yellow]Handle @{source.metadata.get('original_handle')} now redirects to "
            f"@{source.metadata.get('handle')}[/yellow]"
        )
    if source.metadata.get("has_podcasts"):
        for playlist in source.metadata.get("podcast_playlists", []):
            console.print(f"[dim]Podcast: {playlist['title']} ({playlist['video_count']} episodes)[/dim]")


async def _add_source(url: str):
    config = Config.load()
    async with config.create_fetcher() as fetcher:
        with config.create_store() as store:
            engine = SyncEngine(store, create_registry(fetcher, config), config)
            return await engine.add_source(url, user_id=LOCAL_USER)


@sources.command("list")
def sources_list() -> None:
    """List all sources."""
    with get_store() as store:
        sources_list = store.list_sources()

        if not sources_list:
            console.print("[dim]No sources configured. Use 'multifeed sources add <url>' to add one.[/dim]")
            return

        table = Table(show_header=True)
        table.add_column("ID", style="dim")
        table.add_column("Title")
        table.add_column("Kind")
        table.add_column("Last Fetched")
        table.add_column("Items", justify="right")

        for source in sources_list:
            item_count = store.count_content_items(source_id=source.id)
            last_fetched = format_age(source.last_fetched_at) if source.last_fetched_at else "never"
            table.add_row(source.id, source.title, source.kind.value, last_fetched, str(item_count))

        console.print(table)


@sources.command("detect")
@click.argument("url")
def sources_detect(url: str) -> None:
    """Show what a URL would be subscribed as, without saving it."""
    result = asyncio.run(_detect(url))

    if not result.detected:
        console.print(f"[red]Not a recognized URL: {url}[/red]")
        sys.exit(1)

    console.print(f"[bold]Kind:[/bold] {result.kind.value if result.kind else 'unknown'}")
    console.print(f"[bold]Handler:[/bold] {result.handler.name if result.handler else 'none'}")
    if result.transformed_url:
        console.print(f"[bold]Feed:[/bold] {result.transformed_url}")
    if result.suggested_title:
        console.print(f"[bold]Title:[/bold] {result.suggested_title}")


async def _detect(url: str):
    config = Config.load()
    async with config.create_fetcher() as fetcher:
        registry = create_registry(fetcher, config)
        return await registry.detect_source_type(url)


# =============================================================================
# Sync commands
# =============================================================================


@main.command("sync")
@click.option("--full", is_flag=True, help="Ingest older items too, not only the last 24 hours")
@click.option("--source", "source_id", help="Sync only this source ID")
def sync(full: bool, source_id: str | None) -> None:
    """Sync active sources."""
    with get_store() as store:
        if source_id:
            source = store.get_source(source_id)
            if not source:
                console.print(f"[red]Source not found: {source_id}[/red]")
                sys.exit(1)
            sources_list = [source]
        else:
            sources_list = store.list_sources(active_only=True)

        if not sources_list:
            console.print("[dim]No active sources to sync.[/dim]")
            return

        summary = asyncio.run(_sync(store, sources_list, full))

    color = "green" if summary.failed_syncs == 0 else "yellow"
    console.print(
        f"[{color}]{summary.successful_syncs}/{summary.total_sources} sources synced, "
        f"{summary.total_items_added} added, {summary.total_items_updated} updated[/{color}]"
    )


async def _sync(store: Store, sources_list: list[Source], full: bool):
    config = Config.load()

    def report(source: Source, outcome: SyncOutcome) -> None:
        if outcome.success:
            console.print(f"[dim]{source.title}: +{outcome.items_added} ~{outcome.items_updated}[/dim]")
        else:
            console.print(f"[red]{source.title}: {outcome.error}[/red]")

    async with config.create_fetcher() as fetcher:
        extractor = ReadabilityExtractor(fetcher) if config.extract_full_content else None
        engine = SyncEngine(store, create_registry(fetcher, config), config, extractor=extractor)
        return await engine.sync_sources(sources_list, full_sync=full, on_source_complete=report)


@main.command("status")
def status() -> None:
    """Show when each source was last fetched and its last error."""
    with get_store() as store:
        sources_list = store.list_sources()
        if not sources_list:
            console.print("[dim]No sources configured.[/dim]")
            return

        table = Table(show_header=True)
        table.add_column("ID", style="dim")
        table.add_column("Title")
        table.add_column("Fetches", justify="right")
        table.add_column("Last Fetched")
        table.add_column("Error")

        for source in sources_list:
            last_fetched = format_age(source.last_fetched_at) if source.last_fetched_at else "never"
            error = f"[red]{source.fetch_error}[/red]" if source.fetch_error else "[green]ok[/green]"
            table.add_row(source.id, source.title, str(source.fetch_count), last_fetched, error)

        console.print(table)


if __name__ == "__main__":
    main()
