"""
dylive - Command Line Interface
Resolve share links, look up users and rooms, browse categories and watch
handles go live.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any, Awaitable, Callable, List, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from . import __version__
from .config.settings_manager import Settings, SettingsManager
from .core.categories import get_categories, get_rooms_by_category
from .core.douyin_api import ensure_manifest, get_room, get_room_by_id, get_user_info
from .core.douyin_client import DouyinClient
from .core.errors import DyliveError
from .core.identity import find_url, get_id_from_url
from .core.live_checker import CommandRunner, LiveChecker, parse_duration
from .core.models import Category, Room, User
from .core.stream_resolver import StreamFormat, normalize_quality

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="dylive",
    help="Douyin live room lookup and watcher",
    add_completion=False,
)
console = Console()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

QualityOption = Annotated[
    Optional[str],
    typer.Option("--quality", "-q", help="Video quality: uhd, hd, ld or sd"),
]
FormatOption = Annotated[
    Optional[str],
    typer.Option("--format", "-f", help="Stream format: flv, hls or m3u8"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output as JSON instead of a table"),
]


def setup_logging(verbose: bool = False) -> None:
    """Log to stderr so that stdout stays clean for URLs and JSON."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dylive version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Config file location (default ~/.dylive.json)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit",
                     callback=version_callback, is_eager=True),
    ] = False,
) -> None:
    """dylive - find Douyin live streams from the command line."""
    manager = SettingsManager(config)
    if verbose:
        manager.update(verbose=True)
    setup_logging(manager.settings.verbose)
    ctx.obj = manager


def _manager(ctx: typer.Context) -> SettingsManager:
    if isinstance(ctx.obj, SettingsManager):
        return ctx.obj
    return SettingsManager()


def _run(settings: Settings, func: Callable[[DouyinClient], Awaitable[Any]]) -> Any:
    """Run func with a client that is closed afterwards."""

    async def runner():
        async with DouyinClient(settings) as client:
            return await func(client)

    return asyncio.run(runner())


def _playback_options(settings: Settings, quality: Optional[str],
                      stream_format: Optional[str]):
    return (
        normalize_quality(quality if quality is not None else settings.quality),
        StreamFormat.parse(stream_format if stream_format is not None else settings.stream_format),
    )


def _dump(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


# ============ resolve ============

@app.command()
def resolve(
    ctx: typer.Context,
    texts: Annotated[
        Optional[List[str]],
        typer.Argument(help="Share messages, short links or share codes; stdin when omitted"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Resolve share texts to user IDs or room IDs.

    Examples:
        dylive resolve "https://v.douyin.com/e9oPjy7/"
        pbpaste | dylive resolve --json
    """
    if not texts:
        texts = [line for line in sys.stdin.read().splitlines() if line.strip()]
    if not texts:
        logger.error("Nothing to resolve")
        raise typer.Exit(code=1)

    async def resolve_all(client: DouyinClient):
        for text in texts:
            url = find_url(text)
            if not url:
                logger.error(f"No URL found in {text!r}")
                continue
            try:
                user_id, room_id = await get_id_from_url(client, url)
            except DyliveError as e:
                logger.error(f"{url}: {e}")
                continue

            if json_output:
                _dump({"url": url, "user_id": str(user_id), "room_id": str(room_id)})
            elif user_id:
                typer.echo(f"user {user_id}")
            elif room_id:
                typer.echo(f"room {room_id}")
            else:
                logger.warning(f"{url} is neither a user nor a room")

    _run(_manager(ctx).settings, resolve_all)


# ============ user ============

@app.command()
def user(
    ctx: typer.Context,
    user_id: Annotated[int, typer.Argument(help="Numeric user ID")],
    device_id: Annotated[
        Optional[int],
        typer.Option("--device-id", help="Device ID for the profile endpoint"),
    ] = None,
    quality: QualityOption = None,
    stream_format: FormatOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show a user profile and, when the user is live, the stream URL.

    Examples:
        dylive user 94792729333
        dylive user 94792729333 -q uhd -f hls --json
    """
    settings = _manager(ctx).settings
    quality, fmt = _playback_options(settings, quality, stream_format)

    async def fetch(client: DouyinClient) -> User:
        profile = await get_user_info(client, user_id, device_id)
        if not (profile.room and profile.room.operating):
            return profile
        try:
            live_room = await ensure_manifest(client, profile.room)
        except DyliveError as e:
            logger.error(f"Room {profile.room.id}: {e}")
            return profile
        live_room = live_room.model_copy(update={"user": None, "stream_url": live_room.url_for(quality, fmt)})
        return profile.model_copy(update={"room": live_room})

    try:
        profile = _run(settings, fetch)
    except DyliveError as e:
        logger.error(f"{user_id}: {e}")
        return

    live = profile.room is not None and profile.room.operating
    if json_output:
        _dump(profile.model_dump(mode="json"))
        return

    table = Table(title=profile.nickname, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", overflow="fold")
    table.add_row("ID", profile.id)
    table.add_row("Douyin ID", profile.douyin_id)
    table.add_row("sec_uid", profile.sec_uid)
    table.add_row("Location", profile.location or profile.city)
    table.add_row("Followers", str(profile.followers_count))
    table.add_row("Videos", str(profile.videos_count))
    table.add_row("Page", profile.page_url)
    if profile.room:
        status = "[green]live[/green]" if live else "offline"
        table.add_row("Room", f"{profile.room.id} ({status})")
    console.print(table)

    if live and profile.room.stream_url:
        typer.echo(profile.room.stream_url)


# ============ room ============

def _room_table(rooms: List[Room]) -> Table:
    table = Table()
    table.add_column("Handle", style="cyan")
    table.add_column("Nickname")
    table.add_column("Viewers", justify="right")
    table.add_column("Title")
    table.add_column("Stream URL", overflow="fold")
    for room in rooms:
        table.add_row(
            room.douyin_id,
            room.user.nickname if room.user else "",
            room.current_users_count,
            room.title,
            room.stream_url if room.operating else "[dim]offline[/dim]",
        )
    return table


@app.command()
def room(
    ctx: typer.Context,
    handles: Annotated[List[str], typer.Argument(help="Douyin IDs (or room IDs with --by-id)")],
    by_id: Annotated[
        bool,
        typer.Option("--by-id", help="Treat arguments as numeric room IDs"),
    ] = False,
    quality: QualityOption = None,
    stream_format: FormatOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show live rooms and their stream URLs.

    Examples:
        dylive room maidanglaodo -q uhd
        dylive room --by-id 6972728684293999374 -f hls --json
    """
    settings = _manager(ctx).settings
    quality, fmt = _playback_options(settings, quality, stream_format)

    async def fetch_all(client: DouyinClient) -> List[Room]:
        found = []
        for handle in handles:
            try:
                if by_id:
                    fetched = await get_room_by_id(client, int(handle))
                else:
                    fetched = await get_room(client, handle)
                if fetched.operating and not fetched.has_manifest:
                    fetched = await ensure_manifest(client, fetched)
            except ValueError:
                logger.error(f"{handle!r} is not a numeric room ID")
                continue
            except DyliveError as e:
                logger.error(f"{handle}: {e}")
                continue
            found.append(fetched.model_copy(update={"stream_url": fetched.url_for(quality, fmt)}))
        return found

    rooms = _run(settings, fetch_all)
    if json_output:
        _dump([r.model_dump(mode="json") for r in rooms])
    elif rooms:
        console.print(_room_table(rooms))


# ============ categories / rooms ============

def _category_tree(categories: List[Category]) -> Tree:
    tree = Tree("Categories")
    for category in categories:
        branch = tree.add(f"[bold]{category.name}[/bold] [dim]{category.id}[/dim]")
        for sub in category.categories:
            branch.add(f"{sub.name} [dim]{sub.id}[/dim]")
    return tree


@app.command()
def categories(ctx: typer.Context, json_output: JsonOption = False) -> None:
    """List live categories and their sub-categories."""
    try:
        tree = _run(_manager(ctx).settings, get_categories)
    except DyliveError as e:
        logger.error(f"Failed to fetch categories: {e}")
        return

    if json_output:
        _dump([c.model_dump(mode="json") for c in tree])
    else:
        console.print(_category_tree(tree))


@app.command()
def rooms(
    ctx: typer.Context,
    category_id: Annotated[
        Optional[str],
        typer.Argument(help="Category ID, e.g. 4_103_1_2_1_1010102; last used when omitted"),
    ] = None,
    quality: QualityOption = None,
    stream_format: FormatOption = None,
    json_output: JsonOption = False,
) -> None:
    """List the top rooms of a category."""
    manager = _manager(ctx)
    settings = manager.settings
    if not category_id:
        category_id = settings.last_category_id
        if not category_id:
            logger.error("No category given and none remembered; run `dylive categories` first")
            raise typer.Exit(code=1)
        logger.info(f"Using remembered category {settings.last_category_name or category_id} ({category_id})")

    quality, fmt = _playback_options(settings, quality, stream_format)
    try:
        listed = _run(settings, lambda client: get_rooms_by_category(client, category_id))
    except DyliveError as e:
        logger.error(f"{category_id}: {e}")
        return

    listed = [r.model_copy(update={"stream_url": r.url_for(quality, fmt)}) for r in listed]
    name = ""
    if listed and listed[0].category:
        category = listed[0].category
        name = category.categories[0].name if category.categories else category.name
    manager.remember_category(category_id, name)

    if json_output:
        _dump([r.model_dump(mode="json") for r in listed])
    else:
        console.print(_room_table(listed))


# ============ watch ============

@app.command()
def watch(
    ctx: typer.Context,
    handles: Annotated[List[str], typer.Argument(help="Douyin IDs to watch")],
    interval: Annotated[
        str,
        typer.Option("--interval", "-i", help="Time between checks, e.g. 30s or 2m"),
    ] = "5s",
    run: Annotated[
        Optional[str],
        typer.Option("--run", "-r", help="Command template run when live; @file reads it from a file"),
    ] = None,
    check: Annotated[
        bool,
        typer.Option("--check", help="Run the command again if it exited while still live"),
    ] = False,
    quality: QualityOption = None,
    stream_format: FormatOption = None,
    json_output: JsonOption = False,
) -> None:
    """Watch handles and report every time one goes live.

    The --run template receives {id}, {douyin_id}, {title}, {page_url},
    {stream_url}, {nickname}, {sec_uid} and {timestamp}.

    Examples:
        dylive watch maidanglaodo -i 1m
        dylive watch maidanglaodo --run "mpv --title={nickname} {stream_url}" --check
    """
    settings = _manager(ctx).settings
    try:
        seconds = parse_duration(interval)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--interval") from e

    try:
        runner = CommandRunner(run) if run else None
    except OSError as e:
        raise typer.BadParameter(f"cannot read command template: {e}", param_hint="--run") from e

    quality, fmt = _playback_options(settings, quality, stream_format)

    def on_live(live_room: Room) -> None:
        if json_output:
            typer.echo(live_room.model_dump_json())
        else:
            nickname = live_room.user.nickname if live_room.user else live_room.douyin_id
            console.print(f"[green]●[/green] {nickname} [dim]{live_room.title}[/dim]")
            typer.echo(live_room.stream_url)

    async def watch_all(client: DouyinClient):
        checker = LiveChecker(client, handles, quality=quality, stream_format=fmt,
                              on_live=on_live, runner=runner, check_command=check)
        await checker.run(seconds)

    try:
        _run(settings, watch_all)
    except KeyboardInterrupt:
        logger.info("Stopped")
    finally:
        if runner:
            runner.stop_all()


# ============ serve ============

@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[str, typer.Option(help="Bind address")] = "0.0.0.0",
    port: Annotated[int, typer.Option(help="Bind port")] = 8000,
) -> None:
    """Serve the JSON API."""
    import uvicorn

    from .web.app import create_app

    settings = _manager(ctx).settings
    uvicorn.run(
        create_app(settings),
        host=host,
        port=port,
        log_level="debug" if settings.verbose else "info",
    )


if __name__ == "__main__":
    app()
