"""Command line entry point.

Commands:
    getme add "The Wire"        track a show looked up on TMDB
    getme run [--title T]       search releases for pending episodes
    getme list                  show tracked shows
    getme remove "The Wire"     stop tracking a show
    getme daemon                run periodically
"""

import argparse
import asyncio
import sys
from typing import NoReturn

import structlog

from getme import __version__
from getme.config import Settings, settings
from getme.logger import configure_logging
from getme.media import TMDBClient, TMDBError, merge_show
from getme.runner import ShowReport, build_engine, run_acquisition
from getme.scheduler import AcquisitionScheduler
from getme.store import Show, get_storage

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="getme",
        description="Find torrents for the missing episodes of tracked TV shows.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="track a show")
    add.add_argument("title", help="show title to look up on TMDB")
    add.add_argument(
        "--pick",
        type=int,
        default=1,
        metavar="N",
        help="use the N-th search match instead of the most voted one",
    )

    run = commands.add_parser("run", help="search releases once")
    run.add_argument("--title", help="only process this show")
    run.add_argument(
        "--no-download",
        dest="download",
        action="store_false",
        help="report found torrents without handing them off",
    )

    commands.add_parser("list", help="list tracked shows")

    remove = commands.add_parser("remove", help="stop tracking a show")
    remove.add_argument("title")

    commands.add_parser("daemon", help="search releases periodically")

    return parser


# =============================================================================
# Commands
# =============================================================================


async def cmd_add(args: argparse.Namespace, config: Settings) -> int:
    if config.tmdb_api_key is None:
        print("TMDB_API_KEY is not set; it is required to add shows.", file=sys.stderr)
        return 2

    try:
        async with TMDBClient(config.tmdb_api_key.get_secret_value()) as client:
            matches = await client.search_tv(args.title)
            if not matches:
                print(f"No show found for '{args.title}'.", file=sys.stderr)
                return 1
            if not 1 <= args.pick <= len(matches):
                print(f"--pick must be between 1 and {len(matches)}.", file=sys.stderr)
                return 2
            show = await client.lookup_show(matches[args.pick - 1])
    except TMDBError as e:
        logger.error("tmdb_lookup_failed", title=args.title, error=str(e))
        print(f"TMDB lookup failed: {e}", file=sys.stderr)
        return 1

    async with get_storage(config.database_path) as storage:
        existing = await storage.get_show(show.title)
        if existing is not None:
            show = merge_show(existing, show)
        await storage.save_show(show)

    print(f"Tracking {format_show(show)}")
    return 0


async def cmd_run(args: argparse.Namespace, config: Settings) -> int:
    engine = build_engine(config)
    async with get_storage(config.database_path) as storage:
        reports = await run_acquisition(
            storage, engine, config, title=args.title, download=args.download
        )

    if args.title is not None and not reports:
        print(f"'{args.title}' is not tracked.", file=sys.stderr)
        return 1

    for report in reports:
        print(format_report(report))
    return 1 if any(r.failed_hand_offs for r in reports) else 0


async def cmd_list(args: argparse.Namespace, config: Settings) -> int:
    async with get_storage(config.database_path) as storage:
        shows = await storage.list_shows()

    if not shows:
        print("No shows tracked.")
    for show in shows:
        print(format_show(show))
    return 0


async def cmd_remove(args: argparse.Namespace, config: Settings) -> int:
    async with get_storage(config.database_path) as storage:
        deleted = await storage.delete_show(args.title)

    if not deleted:
        print(f"'{args.title}' is not tracked.", file=sys.stderr)
        return 1
    print(f"Removed {args.title}")
    return 0


async def cmd_daemon(args: argparse.Namespace, config: Settings) -> int:
    scheduler = AcquisitionScheduler(config)
    scheduler.start()
    try:
        await scheduler.run_now()
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
    return 0


COMMANDS = {
    "add": cmd_add,
    "run": cmd_run,
    "list": cmd_list,
    "remove": cmd_remove,
    "daemon": cmd_daemon,
}


# =============================================================================
# Output
# =============================================================================


def format_show(show: Show) -> str:
    seasons = show.pending_seasons()
    episodes = show.pending_episodes()
    line = (
        f"{show.display_title}: {len(show.seasons)} seasons, "
        f"{len(seasons)} pending seasons, {len(episodes)} pending episodes"
    )
    snippets = show.query_snippets
    for label, snippet in (("season", snippets.for_season), ("episode", snippets.for_episode)):
        if snippet is not None:
            line += (
                f"\n  {label} query: {snippet.title_snippet} / {snippet.format_snippet}"
                f" (seeds {snippet.score})"
            )
    return line


def format_report(report: ShowReport) -> str:
    lines = [f"{report.title}: {len(report.torrents)} found"]
    results = {r.url: r for r in report.hand_offs}
    for torrent in report.torrents:
        line = f"  {torrent.associated_media}: {torrent.original_name} ({torrent.seeds} seeds)"
        result = results.get(torrent.url)
        if result is not None:
            line += f" -> {result.status.value}"
            if result.detail:
                line += f" {result.detail}"
        lines.append(line)
    return "\n".join(lines)


# =============================================================================
# Entry point
# =============================================================================


def run_cli(argv: list[str] | None = None, config: Settings | None = None) -> int:
    """Parse arguments and run a command.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)
    if config is None:
        config = settings

    configure_logging("DEBUG" if args.verbose else None)
    logger.debug("command_started", command=args.command, config=config.get_safe_dict())

    return asyncio.run(COMMANDS[args.command](args, config))


def main() -> NoReturn:
    """Console script entry point."""
    try:
        code = run_cli()
    except KeyboardInterrupt:
        logger.info("interrupted")
        sys.exit(130)
    except Exception as e:
        logger.exception("getme_crashed", error=str(e))
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
