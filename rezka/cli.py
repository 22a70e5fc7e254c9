"""Rezka CLI - Main command-line interface."""

import asyncio
import logging
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from rezka import __version__
from rezka.config import get_config, save_config
from rezka.errors import RezkaError
from rezka.items import select_translator
from rezka.models import FullId, Item, SearchItem, SeasonEpisode, Stream, StreamDetails, find_season
from rezka.provider import RezkaProvider
from rezka.translators import find_stream

console = Console()


# ===== HELPERS =====

def run_async(coro):
    """Run an async function."""
    return asyncio.run(coro)


def fail(message: str) -> None:
    console.print(f"[red]{message}[/]")
    raise SystemExit(1)


def parse_full_id(url: str) -> FullId:
    try:
        return FullId.from_url(url)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def resolved_state(item: Item, translator_id: int) -> Optional[SeasonEpisode]:
    """Season/episode whose stream is filled in for a translator of a series."""
    for season in item.slot(translator_id).seasons or ():
        for episode in season.episodes:
            if episode.stream is not None:
                return SeasonEpisode(season.number, episode.number)
    return None


def wanted_state(
    item: Item,
    translator_id: int,
    season: Optional[int] = None,
    episode: Optional[int] = None
) -> SeasonEpisode:
    """Season/episode to ask a switch for; missing parts default to the first listed."""
    seasons = item.slot(translator_id).seasons or ()
    if season is None:
        season = seasons[0].number if seasons else 1
    if episode is None:
        found = find_season(seasons, season) or (seasons[0] if seasons else None)
        episode = found.episodes[0].number if found and found.episodes else 1
    return SeasonEpisode(season, episode)


async def resolve_active(
    provider: RezkaProvider,
    item: Item,
    translator_id: Optional[int] = None,
    season: Optional[int] = None,
    episode: Optional[int] = None
) -> tuple[Item, int, Optional[SeasonEpisode], Optional[Stream]]:
    """Translator picked for ``item`` and its stream, fetching a valid leaf when none is filled in."""
    translator_id = select_translator(item.base, translator_id).id
    state = None
    if item.kind == "series":
        state = resolved_state(item, translator_id)
        if state is None:
            want = wanted_state(item, translator_id, season, episode)
            item, result = await provider.switch_translator(item, translator_id, want)
            state = result.state_to
    return item, translator_id, state, find_stream(item, translator_id, state)


# ===== DISPLAY HELPERS =====

def display_search(items: list[SearchItem]):
    table = Table(title="Results", show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", style="cyan")
    table.add_column("Type", style="green", width=10)
    table.add_column("Info", style="dim")
    table.add_column("URL", style="dim")

    for i, item in enumerate(items, 1):
        table.add_row(str(i), item.title or "(No title)", item.kind, item.misc, item.full_id.uri)

    console.print(table)


def display_item(item: Item, translator_id: int, state: Optional[SeasonEpisode]):
    base = item.base
    console.print(Panel(
        f"[bold cyan]{base.title}[/]" + (f"\n[dim]{base.original_title}[/]" if base.original_title else ""),
        subtitle=f"[dim]{base.year or 'N/A'}[/] • [yellow]{base.kind}[/] • id {base.id}"
    ))

    table = Table(title="Translators", show_header=True)
    table.add_column("ID", style="dim", width=8)
    table.add_column("Title", style="cyan")
    table.add_column("Flags", style="magenta")
    table.add_column("", width=3)
    for t in base.translators:
        flags = [name for name, on in (("camrip", t.is_camrip), ("ads", t.is_ads), ("director", t.is_director)) if on]
        table.add_row(str(t.id), t.title, ", ".join(flags), "▶" if t.id == translator_id else "")
    console.print(table)

    if item.kind == "series":
        seasons = item.slot(translator_id).seasons or ()
        for season in seasons:
            marks = []
            for e in season.episodes:
                current = state is not None and (season.number, e.number) == (state.season, state.episode)
                marks.append(f"[green]{e.number}[/]" if current else str(e.number))
            console.print(f"[bold magenta]{season.title}[/]: {' '.join(marks)}")


def display_stream(stream: Stream, details: StreamDetails | None = None):
    sizes = {s.id: s.download_size_str for s in details.sizes} if details else {}
    table = Table(title="Qualities", show_header=True)
    table.add_column("ID", style="dim", width=4)
    table.add_column("Quality", style="green", width=12)
    if details:
        table.add_column("Size", style="yellow", width=10)
    table.add_column("URL", style="cyan")
    for q in stream.qualities:
        row = [str(q.id), q.label]
        if details:
            row.append(sizes.get(q.id, ""))
        row.append(q.stream_url)
        table.add_row(*row)
    console.print(table)

    if stream.subtitles:
        console.print("[dim]Subtitles: " + ", ".join(s.label for s in stream.subtitles) + "[/]")
    if details:
        console.print(f"[dim]Thumbnails: {len(details.thumbnails.splitlines())} lines[/]")


# ===== CLI COMMANDS =====

@click.group(invoke_without_command=True)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.option("--verbose", is_flag=True, help="Log requests, cache hits and retries")
@click.pass_context
def main(ctx, version, verbose):
    """Rezka CLI - Resolve streams from your terminal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    if version:
        console.print(f"Rezka CLI v{__version__}")
        return
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@main.command()
@click.argument("query")
def search(query: str):
    """Search for content."""
    async def do_search():
        async with RezkaProvider() as provider:
            return await provider.search(query)

    console.print(f"[dim]Searching for '{query}'...[/]")
    try:
        results = run_async(do_search())
    except RezkaError as e:
        fail(f"Search failed: {e}")
        return

    if not results:
        console.print("[yellow]No results found[/]")
        return
    display_search(results)


@main.command()
@click.argument("url")
@click.option("--translator", "-t", type=int, default=None, help="Translator ID")
@click.option("--season", "-s", type=int, default=None, help="Season number")
@click.option("--episode", "-e", type=int, default=None, help="Episode number")
@click.option("--details", "with_details", is_flag=True, help="Also fetch sizes and thumbnails")
def item(url: str, translator: Optional[int], season: Optional[int], episode: Optional[int], with_details: bool):
    """Show an item and the stream of its active translator."""
    full_id = parse_full_id(url)

    async def do_fetch():
        async with RezkaProvider() as provider:
            result = await provider.fetch_item(full_id, translator, season, episode)
            result, translator_id, state, stream = await resolve_active(provider, result, translator, season, episode)
            details = None
            if with_details and stream is not None:
                details = await provider.fetch_stream_details(stream)
            return result, translator_id, state, stream, details

    console.print("[dim]Loading item...[/]")
    try:
        result, translator_id, state, stream, details = run_async(do_fetch())
    except RezkaError as e:
        fail(f"Failed to load item: {e}")
        return

    display_item(result, translator_id, state)
    if stream is not None:
        display_stream(stream, details)


@main.command()
@click.argument("url")
@click.argument("translator_id", type=int)
@click.option("--season", "-s", type=int, default=1, help="Season wanted (series)")
@click.option("--episode", "-e", type=int, default=1, help="Episode wanted (series)")
def switch(url: str, translator_id: int, season: int, episode: int):
    """Switch an item to another translator."""
    full_id = parse_full_id(url)

    async def do_switch():
        async with RezkaProvider() as provider:
            current = await provider.fetch_item(full_id)
            state = SeasonEpisode(season, episode) if current.kind == "series" else None
            updated, result = await provider.switch_translator(current, translator_id, state)
            state_to = result.state_to if result.kind == "series" else None
            return updated, state_to, find_stream(updated, translator_id, state_to)

    try:
        updated, state_to, stream = run_async(do_switch())
    except RezkaError as e:
        fail(f"Switch failed: {e}")
        return

    display_item(updated, translator_id, state_to)
    if state_to is not None and (state_to.season, state_to.episode) != (season, episode):
        console.print(f"[yellow]S{season}E{episode} not available, using S{state_to.season}E{state_to.episode}[/]")
    if stream is not None:
        display_stream(stream)


@main.command()
@click.argument("url")
@click.option("--translator", "-t", type=int, default=None, help="Translator ID")
@click.option("--season", "-s", type=int, default=None, help="Season number")
@click.option("--episode", "-e", type=int, default=None, help="Episode number")
def details(url: str, translator: Optional[int], season: Optional[int], episode: Optional[int]):
    """Show download sizes and thumbnails of a stream."""
    full_id = parse_full_id(url)

    async def do_details():
        async with RezkaProvider() as provider:
            result = await provider.fetch_item(full_id, translator, season, episode)
            _, _, state, stream = await resolve_active(provider, result, translator, season, episode)
            if stream is None:
                return state, None, None
            return state, stream, await provider.fetch_stream_details(stream)

    console.print("[dim]Fetching stream details...[/]")
    try:
        state, stream, stream_details = run_async(do_details())
    except RezkaError as e:
        fail(f"Failed to load details: {e}")
        return

    if stream is None:
        fail("No stream available")
        return
    if state is not None:
        console.print(f"[bold magenta]S{state.season}E{state.episode}[/]")
    display_stream(stream, stream_details)


@main.command()
@click.argument("query", required=False)
def browse(query: Optional[str]):
    """Interactively search, pick a translator and an episode."""
    import questionary

    if not query:
        query = questionary.text("Search query:").ask()
        if not query:
            return

    async def session():
        async with RezkaProvider() as provider:
            results = await provider.search(query)
            if not results:
                console.print("[yellow]No results found[/]")
                return
            choices = [
                questionary.Choice(title=f"{r.title} [{r.kind}] {r.misc}", value=r)
                for r in results[:20]
            ]
            choices.append(questionary.Choice(title="[Cancel]", value=None))
            selected = await questionary.select("Select content (↑↓ arrows):", choices=choices).ask_async()
            if not selected:
                return

            current = await provider.fetch_item(selected.full_id)
            current, translator_id, state, _ = await resolve_active(provider, current)
            if len(current.base.translators) > 1:
                translator_id = await questionary.select(
                    "Select translator:",
                    choices=[questionary.Choice(title=t.title, value=t.id) for t in current.base.translators],
                    default=translator_id,
                ).ask_async()
                if translator_id is None:
                    return

            if current.kind == "series":
                current, result = await provider.switch_translator(current, translator_id, state)
                seasons = current.slot(translator_id).seasons or ()
                season = await questionary.select(
                    "Select season:",
                    choices=[questionary.Choice(title=s.title, value=s) for s in seasons],
                ).ask_async()
                if season is None:
                    return
                episode = await questionary.select(
                    "Select episode:",
                    choices=[questionary.Choice(title=e.title or f"Episode {e.number}", value=e) for e in season.episodes],
                ).ask_async()
                if episode is None:
                    return
                state = SeasonEpisode(season.number, episode.number)

            current, result = await provider.switch_translator(current, translator_id, state)
            state = result.state_to if result.kind == "series" else None
            display_item(current, translator_id, state)
            stream = find_stream(current, translator_id, state)
            if stream is not None:
                display_stream(stream, await provider.fetch_stream_details(stream))

    try:
        run_async(session())
    except RezkaError as e:
        fail(f"Error: {e}")


@main.command()
@click.option("--show", is_flag=True, help="Show current configuration")
@click.option("--provider-url", help="Set provider base URL")
@click.option("--proxy", help="Set proxy URL (empty string for direct)")
@click.option("--timeout", type=float, help="Request timeout in seconds")
@click.option("--retries", type=int, help="Extra attempts after a failure")
@click.option("--cache-series-streams/--no-cache-series-streams", default=None, help="Cache episode streams")
@click.option("--retry-upstream-errors/--no-retry-upstream-errors", default=None, help="Retry provider-declared failures")
def config(
    show: bool,
    provider_url: Optional[str],
    proxy: Optional[str],
    timeout: Optional[float],
    retries: Optional[int],
    cache_series_streams: Optional[bool],
    retry_upstream_errors: Optional[bool]
):
    """View or edit configuration."""
    config = get_config()
    changes = (provider_url, proxy, timeout, retries, cache_series_streams, retry_upstream_errors)

    if show or all(c is None for c in changes):
        table = Table(title="Configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Provider URL", config.provider_url)
        table.add_row("Proxy URL", config.proxy_url or "(none)")
        table.add_row("Timeout", f"{config.timeout:g}s")
        table.add_row("Max retries", str(config.max_retries))
        table.add_row("Retry upstream errors", str(config.retry_upstream_errors))
        table.add_row("Cache series streams", str(config.cache_series_streams))

        console.print(table)
        return

    if provider_url:
        config.provider_url = provider_url
    if proxy is not None:
        config.proxy_url = proxy
    if timeout is not None:
        config.timeout = timeout
    if retries is not None:
        config.max_retries = retries
    if cache_series_streams is not None:
        config.cache_series_streams = cache_series_streams
    if retry_upstream_errors is not None:
        config.retry_upstream_errors = retry_upstream_errors

    save_config(config)
    console.print("[green]✓ Configuration saved[/]")


if __name__ == "__main__":
    main()
