"""Command-line interface for Podcast Search.

WHY: Operators run the import and transcription batch from cron, and
want to try searches from a terminal without the HTTP server. The CLI
wires open_context(), the importer, the batch pipeline and the search
engine behind a few subcommands.

HOW: argparse subcommands. Async work runs via asyncio.run(). Results go
to stdout, one per line; status and errors go to stderr.

RULES:
- Subcommands: import, transcribe, search {meta,transcripts,episode}, serve
- Status output goes to stderr (not stdout)
- Any PodcastSearchError prints "Error: ..." and exits 1
- Ctrl-C exits 130
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from podcast_search import __version__
from podcast_search.api.client import EpisodeClient
from podcast_search.context import AppContext, open_context
from podcast_search.errors import PodcastSearchError, SearchError, StoreError
from podcast_search.importer import import_episodes
from podcast_search.pipeline.batch import transcribe_missing
from podcast_search.search.engine import SearchEngine, describe_error

logger = logging.getLogger(__name__)


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def format_ms(ms: int) -> str:
    """Render milliseconds as H:MM:SS."""
    seconds = ms // 1000
    return "{}:{:02d}:{:02d}".format(seconds // 3600, seconds // 60 % 60, seconds % 60)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _import(ctx: AppContext, show_id: Optional[str] = None) -> None:
    async with EpisodeClient(ctx.settings.api_url) as client:
        episodes = await import_episodes(ctx, client, show_id=show_id)
    _status("Imported {} new episode(s)".format(len(episodes)))
    for episode in episodes:
        print("{}\t{}".format(episode.id, episode.title))


def cmd_import(ctx: AppContext, args: argparse.Namespace) -> None:
    asyncio.run(_import(ctx, show_id=args.show))


def cmd_transcribe(ctx: AppContext, args: argparse.Namespace) -> None:
    transcripts = asyncio.run(transcribe_missing(ctx, import_first=not args.no_import))
    _status("Stored {} new transcript(s)".format(len(transcripts)))
    for transcript in transcripts:
        print(transcript.episode_id)


def cmd_search(ctx: AppContext, args: argparse.Namespace) -> None:
    engine = SearchEngine(ctx.store, ctx.settings)
    if args.kind == "meta":
        results = engine.search_meta(args.text)
    elif args.kind == "transcripts":
        results = engine.search_transcripts(args.text)
    else:
        episode_id = engine.magic_episode_search(args.token)
        result = engine.search_episode(episode_id, args.pattern)
        _status("{} match(es) in {} ({})".format(len(result), result.episode.title, result.episode.id))
        for match in result.matches:
            print("{}-{}\t{}".format(
                format_ms(match.time.from_ms), format_ms(match.time.to_ms), " ".join(match.hint.split()),
            ))
        return

    _status("{} result(s)".format(len(results)))
    for result in results:
        print("{}\t{}".format(result.episode.id, result.episode.title))


def cmd_serve(ctx: AppContext, args: argparse.Namespace) -> None:
    from podcast_search.server.app import run_api

    run_api(ctx, host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="podcast_search",
        description="Import podcast episodes, transcribe them and search the transcripts.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s {}".format(__version__))
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug messages.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    imp = commands.add_parser("import", help="Import new episodes from the podcast host.")
    imp.add_argument(
        "--show",
        metavar="SHOW_ID",
        help="Show to import (default: PODCAST_SHOW_ID).",
    )
    imp.set_defaults(func=cmd_import)

    transcribe = commands.add_parser("transcribe", help="Transcribe every episode without a transcript.")
    transcribe.add_argument(
        "--no-import",
        action="store_true",
        help="Skip importing new episodes before planning.",
    )
    transcribe.set_defaults(func=cmd_transcribe)

    search = commands.add_parser("search", help="Search episodes and transcripts.")
    kinds = search.add_subparsers(dest="kind", required=True)
    meta = kinds.add_parser("meta", help="Substring search over titles and descriptions.")
    meta.add_argument("text")
    transcripts = kinds.add_parser("transcripts", help="Full-text search over transcripts.")
    transcripts.add_argument("text")
    episode = kinds.add_parser("episode", help="Locate a pattern inside one episode.")
    episode.add_argument("token", help="Episode id, episode number or title fragment.")
    episode.add_argument("pattern", help="Regular expression, matched ignoring case and accents.")
    search.set_defaults(func=cmd_search)

    serve = commands.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m podcast_search`` and the console script.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        ctx = open_context()
        args.func(ctx, args)
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except (SearchError, StoreError) as e:
        print("Error: {}".format(describe_error(e)), file=sys.stderr)
        sys.exit(1)
    except PodcastSearchError as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
