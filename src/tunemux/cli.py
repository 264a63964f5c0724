"""
tunemux CLI - entry point

Each invocation builds an AppContext, runs one subcommand against it, and
closes it. Playback subcommands keep the main loop running until Ctrl-C.
"""

import argparse
import sys
from typing import Optional, Sequence

from loguru import logger
from rich.console import Console
from rich.table import Table

from tunemux import actions
from tunemux.context import AppContext
from tunemux.core.config import ensure_directories, load_config
from tunemux.core.output import log, setup_from_config
from tunemux.domain.library.browse import matches_query
from tunemux.domain.library.models import (
    PlaylistEntry,
    ProviderTag,
    Track,
    format_duration,
)
from tunemux.domain.playback.engine import EngineError
from tunemux.domain.playback.mpv import MpvEngine, check_mpv_available
from tunemux.domain.playback.queue import QueueSource
from tunemux.domain.search.orchestrator import SearchPhase
from tunemux.state import AppState

SEARCH_TIMEOUT = 30.0


def render_tracks(
    console: Console,
    tracks: Sequence[Track],
    title: str,
    hidden_ids: frozenset[int] = frozenset(),
    start: int = 1,
) -> None:
    """Print a numbered track table."""
    if not tracks:
        console.print(f"[dim]{title}: no tracks[/dim]")
        return

    table = Table(title=title)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Title")
    table.add_column("Artist", style="magenta")
    table.add_column("Time", justify="right")
    table.add_column("Source", style="green")
    table.add_column("Id", style="dim")

    for position, track in enumerate(tracks, start):
        title_text = track.title
        if track.is_local and track.id in hidden_ids:
            title_text = f"[dim]{track.title} (hidden)[/dim]"
        table.add_row(
            str(position),
            title_text,
            track.artist,
            format_duration(track.duration_ms),
            track.provider.label,
            str(track.id) if track.is_local else "",
        )
    console.print(table)


def wait_for_search(ctx: AppContext, timeout: float = SEARCH_TIMEOUT) -> bool:
    """Drive the loop until the current search publishes."""
    return ctx.loop.run_until(
        lambda: ctx.orchestrator.phase is SearchPhase.PUBLISHED, timeout=timeout
    )


def search_candidates(
    ctx: AppContext, query: str, online: bool
) -> list[tuple[Track, QueueSource]]:
    """Local matches first, then online results, each tagged with its source."""
    actions.load_local_library(ctx)
    actions.set_query(ctx, query)

    candidates = [(t, QueueSource.LOCAL) for t in ctx.snapshot.local_filtered]
    if online and ctx.snapshot.online_enabled:
        if not wait_for_search(ctx):
            log(f"Search for {query!r} timed out", level="warning")
        candidates += [(t, QueueSource.SEARCH) for t in ctx.snapshot.search_results]
    return candidates


def pick_track(
    ctx: AppContext, query: str, number: int, online: bool
) -> tuple[Track, QueueSource]:
    """Pick the Nth (1-based) candidate for a query.

    Raises:
        ValueError: If there is no such candidate
    """
    candidates = search_candidates(ctx, query, online)
    if not 1 <= number <= len(candidates):
        raise ValueError(
            f"No result #{number} for '{query}' ({len(candidates)} found)"
        )
    return candidates[number - 1]


def play_until_interrupted(ctx: AppContext) -> None:
    """Run the loop, printing what plays, until Ctrl-C."""
    console = ctx.console
    last: dict[str, object] = {"track": None, "error": None}

    def on_change(state: AppState) -> None:
        if state.now_playing is not None and state.now_playing != last["track"]:
            last["track"] = state.now_playing
            track = state.now_playing
            console.print(
                f"[green]Now playing:[/green] {track.title} - {track.artist} "
                f"[dim]({track.provider.label})[/dim]"
            )
        if state.error_message and state.error_message != last["error"]:
            last["error"] = state.error_message
            console.print(f"[red]{state.error_message}[/red]")
            ctx.loop.stop()

    unsubscribe = ctx.state.subscribe(on_change)
    ctx.queue.start()
    console.print("[dim]Press Ctrl-C to stop[/dim]")
    try:
        ctx.loop.run_forever()
    except KeyboardInterrupt:
        console.print()
    finally:
        ctx.queue.stop()
        unsubscribe()


# Subcommands


def cmd_search(ctx: AppContext, args: argparse.Namespace) -> int:
    if not ctx.snapshot.online_enabled:
        ctx.console.print(
            "[yellow]Online search is disabled. Enable it with 'tunemux online on'.[/yellow]"
        )
        return 1
    if args.provider:
        actions.set_search_provider(ctx, ProviderTag.parse(args.provider))

    actions.set_query(ctx, args.query)
    if not wait_for_search(ctx, args.timeout):
        ctx.console.print("[red]Search timed out[/red]")
        return 1
    render_tracks(ctx.console, ctx.snapshot.search_results, f"Results for '{args.query}'")
    return 0


def cmd_local(ctx: AppContext, args: argparse.Namespace) -> int:
    actions.load_local_library(ctx)
    snapshot = ctx.snapshot
    if args.all:
        tracks = [t for t in snapshot.local_tracks if matches_query(t, args.query or "")]
    else:
        actions.set_query(ctx, args.query or "")
        tracks = list(ctx.snapshot.local_filtered)
    render_tracks(ctx.console, tracks, "Local library", hidden_ids=snapshot.hidden_ids)
    return 0


def mpv_missing(ctx: AppContext) -> bool:
    """Report a missing mpv binary before anything is queued."""
    if isinstance(ctx.engine, MpvEngine) and not check_mpv_available():
        ctx.console.print(
            "[red]mpv was not found.[/red] Install it and make sure it is on PATH."
        )
        return True
    return False


def cmd_play(ctx: AppContext, args: argparse.Namespace) -> int:
    if mpv_missing(ctx):
        return 1
    if not args.query:
        actions.load_local_library(ctx)
        actions.toggle_play(ctx)
        if ctx.snapshot.now_playing is None:
            ctx.console.print("[yellow]Local library is empty[/yellow]")
            return 1
    else:
        track, source = pick_track(ctx, args.query, args.number, online=True)
        actions.play_track(ctx, track, source)
    play_until_interrupted(ctx)
    return 0


def cmd_online(ctx: AppContext, args: argparse.Namespace) -> int:
    enabled = args.state == "on"
    actions.set_online_enabled(ctx, enabled)
    ctx.console.print(f"Online search {'enabled' if enabled else 'disabled'}")
    return 0


def cmd_fav(ctx: AppContext, args: argparse.Namespace) -> int:
    track, _ = pick_track(ctx, args.query, args.number, online=True)
    favorite = actions.toggle_favorite(ctx, track)
    verb = "Added to" if favorite else "Removed from"
    ctx.console.print(f"{verb} favorites: {track.title} - {track.artist}")
    return 0


def cmd_hide(ctx: AppContext, args: argparse.Namespace) -> int:
    actions.load_local_library(ctx)
    if actions.hide_track(ctx, args.track_id):
        ctx.console.print(f"Hidden track {args.track_id}")
    else:
        ctx.console.print(f"[dim]Track {args.track_id} was already hidden[/dim]")
    return 0


def cmd_unhide(ctx: AppContext, args: argparse.Namespace) -> int:
    actions.load_local_library(ctx)
    if actions.unhide_track(ctx, args.track_id):
        ctx.console.print(f"Restored track {args.track_id}")
    else:
        ctx.console.print(f"[dim]Track {args.track_id} was not hidden[/dim]")
    return 0


def cmd_sources(ctx: AppContext, args: argparse.Namespace) -> int:
    if args.action == "list":
        table = Table(title="Catalog sources")
        table.add_column("Provider", style="green")
        table.add_column("Name")
        table.add_column("URL", style="cyan")
        table.add_column("", justify="center")
        selections = ctx.catalogs.selections
        for endpoint in ctx.catalogs.endpoints:
            marks = []
            if selections.get(endpoint.provider) == endpoint:
                marks.append("selected")
            if ctx.catalogs.is_builtin(endpoint):
                marks.append("built-in")
            table.add_row(
                endpoint.provider.value.lower(),
                endpoint.display_name,
                endpoint.base_url,
                ", ".join(marks),
            )
        ctx.console.print(table)
        return 0

    provider = ProviderTag.parse(args.provider)
    if args.action == "add":
        endpoint = actions.add_source(ctx, args.name, args.url, provider)
        ctx.console.print(f"Added {endpoint.display_name} ({endpoint.base_url})")
    elif args.action == "remove":
        endpoint = actions.find_endpoint(ctx, provider, args.ref)
        actions.remove_source(ctx, endpoint)
        ctx.console.print(f"Removed {endpoint.display_name}")
    elif args.action == "select":
        endpoint = actions.find_endpoint(ctx, provider, args.ref)
        actions.select_source(ctx, endpoint)
        ctx.console.print(f"Selected {endpoint.display_name} for {provider.label}")
    return 0


def _playlist_title(playlist: PlaylistEntry) -> str:
    return f"{playlist.name} [dim]({playlist.id[:8]})[/dim]"


def cmd_playlist(ctx: AppContext, args: argparse.Namespace) -> int:
    if args.action == "list":
        table = Table(title="Playlists")
        table.add_column("Id", style="dim")
        table.add_column("Name")
        table.add_column("Tracks", justify="right")
        for playlist in ctx.library.playlists:
            table.add_row(playlist.id[:8], playlist.name, str(len(playlist.track_keys)))
        ctx.console.print(table)
        return 0

    if args.action == "create":
        playlist = actions.create_playlist(ctx, args.name)
        ctx.console.print(f"Created {_playlist_title(playlist)}")
        return 0

    playlist = actions.find_playlist(ctx, args.playlist)

    if args.action == "delete":
        actions.delete_playlist(ctx, playlist.id)
        ctx.console.print(f"Deleted {playlist.name}")
    elif args.action == "rename":
        renamed = actions.rename_playlist(ctx, playlist.id, args.name)
        ctx.console.print(f"Renamed to {_playlist_title(renamed)}")
    elif args.action == "show":
        actions.load_local_library(ctx)
        render_tracks(
            ctx.console, actions.playlist_tracks(ctx, playlist.id), playlist.name
        )
    elif args.action == "add":
        track, _ = pick_track(ctx, args.query, args.number, online=True)
        if actions.add_to_playlist(ctx, track, playlist.id):
            ctx.console.print(f"Added {track.title} to {playlist.name}")
        else:
            ctx.console.print(f"[dim]{track.title} is already in {playlist.name}[/dim]")
    elif args.action == "remove":
        actions.load_local_library(ctx)
        tracks = actions.playlist_tracks(ctx, playlist.id)
        if not 1 <= args.position <= len(tracks):
            raise ValueError(f"{playlist.name} has no track #{args.position}")
        track = tracks[args.position - 1]
        actions.remove_from_playlist(ctx, track.key, playlist.id)
        ctx.console.print(f"Removed {track.title} from {playlist.name}")
    elif args.action == "play":
        if mpv_missing(ctx):
            return 1
        actions.load_local_library(ctx)
        tracks = actions.playlist_tracks(ctx, playlist.id)
        if not 1 <= args.number <= len(tracks):
            raise ValueError(f"{playlist.name} has no track #{args.number}")
        actions.play_track(
            ctx, tracks[args.number - 1], QueueSource.LIBRARY, playlist_id=playlist.id
        )
        play_until_interrupted(ctx)
    return 0


COMMANDS = {
    "search": cmd_search,
    "local": cmd_local,
    "play": cmd_play,
    "online": cmd_online,
    "fav": cmd_fav,
    "hide": cmd_hide,
    "unhide": cmd_unhide,
    "sources": cmd_sources,
    "playlist": cmd_playlist,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tunemux",
        description="tunemux - local files and online catalogs in one player",
    )
    parser.add_argument("--debug", action="store_true", help="Log to stderr at DEBUG")
    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    search_parser = subparsers.add_parser("search", help="Search online catalogs")
    search_parser.add_argument("query", help="Free-text query")
    search_parser.add_argument("-p", "--provider", help="Search only this catalog")
    search_parser.add_argument(
        "--timeout", type=float, default=SEARCH_TIMEOUT, help="Seconds to wait"
    )

    local_parser = subparsers.add_parser("local", help="List the local library")
    local_parser.add_argument("query", nargs="?", help="Filter by title or artist")
    local_parser.add_argument(
        "-a", "--all", action="store_true", help="Include hidden tracks"
    )

    play_parser = subparsers.add_parser(
        "play", help="Play a search result (or the local library)"
    )
    play_parser.add_argument("query", nargs="?", help="What to play")
    play_parser.add_argument("-n", "--number", type=int, default=1, help="Result #")

    online_parser = subparsers.add_parser("online", help="Toggle online search")
    online_parser.add_argument("state", choices=["on", "off"])

    fav_parser = subparsers.add_parser("fav", help="Toggle a track in favorites")
    fav_parser.add_argument("query")
    fav_parser.add_argument("-n", "--number", type=int, default=1, help="Result #")

    hide_parser = subparsers.add_parser("hide", help="Hide a local track")
    hide_parser.add_argument("track_id", type=int)
    unhide_parser = subparsers.add_parser("unhide", help="Restore a hidden track")
    unhide_parser.add_argument("track_id", type=int)

    sources_parser = subparsers.add_parser("sources", help="Manage catalog endpoints")
    sources_sub = sources_parser.add_subparsers(dest="action", required=True)
    sources_sub.add_parser("list", help="List endpoints")
    add_source = sources_sub.add_parser("add", help="Add a custom endpoint")
    add_source.add_argument("provider")
    add_source.add_argument("name")
    add_source.add_argument("url")
    for action in ("remove", "select"):
        source_parser = sources_sub.add_parser(action, help=f"{action.title()} an endpoint")
        source_parser.add_argument("provider")
        source_parser.add_argument("ref", help="Endpoint URL or name")

    playlist_parser = subparsers.add_parser("playlist", help="Manage playlists")
    playlist_sub = playlist_parser.add_subparsers(dest="action", required=True)
    playlist_sub.add_parser("list", help="List playlists")
    create_parser = playlist_sub.add_parser("create", help="Create a playlist")
    create_parser.add_argument("name")
    for action in ("delete", "show"):
        p = playlist_sub.add_parser(action, help=f"{action.title()} a playlist")
        p.add_argument("playlist", help="Playlist id, id prefix, or name")
    rename_parser = playlist_sub.add_parser("rename", help="Rename a playlist")
    rename_parser.add_argument("playlist")
    rename_parser.add_argument("name")
    add_parser = playlist_sub.add_parser("add", help="Add a track to a playlist")
    add_parser.add_argument("playlist")
    add_parser.add_argument("query")
    add_parser.add_argument("-n", "--number", type=int, default=1, help="Result #")
    remove_parser = playlist_sub.add_parser("remove", help="Remove a track")
    remove_parser.add_argument("playlist")
    remove_parser.add_argument("position", type=int, help="Track # from 'show'")
    play_list_parser = playlist_sub.add_parser("play", help="Play a playlist")
    play_list_parser.add_argument("playlist")
    play_list_parser.add_argument("-n", "--number", type=int, default=1, help="Track #")

    return parser


def run(args: argparse.Namespace, ctx: AppContext) -> int:
    """Run one parsed subcommand, reporting user errors instead of raising."""
    logger.debug(f"Running subcommand: {args.subcommand}")
    try:
        return COMMANDS[args.subcommand](ctx, args)
    except (ValueError, KeyError) as e:
        message = e.args[0] if isinstance(e, KeyError) and e.args else str(e)
        ctx.console.print(f"[red]Error:[/red] {message}")
        return 1
    except EngineError as e:
        ctx.console.print(f"[red]Playback unavailable:[/red] {e}")
        return 1


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for the tunemux command."""
    args = build_parser().parse_args(argv)

    config = load_config()
    if args.debug:
        config.logging.level = "DEBUG"
        config.logging.console_output = True
    ensure_directories()
    setup_from_config(config.logging)

    ctx = AppContext.create(config)
    try:
        code = run(args, ctx)
    finally:
        ctx.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
