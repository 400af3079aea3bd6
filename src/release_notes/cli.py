"""Command line entry point.

Usage:
    release-notes serve [--host HOST] [--port PORT] [--config FILE]
    release-notes show ORG REPO [--tag TAG] [--config FILE]
    release-notes reduce [--input FILE]

`serve` runs the HTTP API, `show` fetches one release and prints its record
as JSON, and `reduce` prints the items for a markdown file (or stdin), which
is handy when checking how a release body will render.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from dotenv import load_dotenv

from release_notes.assembler import assemble
from release_notes.config import Settings, load_settings
from release_notes.errors import UpstreamError
from release_notes.logging_config import setup_logging
from release_notes.markdown import reduce_markdown
from release_notes.schemas import ReleaseRecord, TagSelector
from release_notes.upstream.github import GitHubReleaseFetcher


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="release-notes",
        description="Fetch GitHub release notes as structured text items",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Interface to bind (default from settings)")
    serve.add_argument("--port", type=int, help="Port to listen on (default from settings)")
    serve.add_argument("--config", "-c", help="Path to a YAML settings file")

    show = subparsers.add_parser("show", help="Fetch one release and print it as JSON")
    show.add_argument("org", help="Owning organization or user")
    show.add_argument("repo", help="Repository name")
    show.add_argument("--tag", "-t", help='Release tag (default: "latest")')
    show.add_argument("--config", "-c", help="Path to a YAML settings file")

    reduce = subparsers.add_parser("reduce", help="Reduce a markdown file to items")
    reduce.add_argument(
        "--input", "-i",
        type=str,
        help="Path to a markdown file (reads stdin if omitted)",
    )
    return parser


async def fetch_record(settings: Settings, org: str, repo: str, tag: str | None) -> ReleaseRecord:
    fetcher = GitHubReleaseFetcher(
        token=settings.github_token,
        base_url=settings.github_api_url,
        timeout=settings.request_timeout,
    )
    selector = TagSelector.from_query(tag)
    release = await fetcher.fetch(org, repo, selector)
    return assemble(org, repo, selector, release)


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from release_notes.main import create_app

    settings = load_settings(args.config)
    setup_logging(environment=settings.environment, log_level=settings.log_level)
    uvicorn.run(
        create_app(settings=settings),
        host=args.host or settings.host,
        port=args.port or settings.port,
    )
    return 0


def _show(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    setup_logging(environment=settings.environment, log_level=settings.log_level)
    try:
        record = asyncio.run(fetch_record(settings, args.org, args.repo, args.tag))
    except UpstreamError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(record.model_dump_json(indent=2))
    return 0


def _reduce(args: argparse.Namespace) -> int:
    if args.input:
        with open(args.input) as f:
            body = f.read()
    else:
        body = sys.stdin.read()
    items = reduce_markdown(body)
    print(json.dumps([item.model_dump() for item in items], indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        return _serve(args)
    if args.command == "show":
        return _show(args)
    if args.command == "reduce":
        if not args.input and sys.stdin.isatty():
            parser.print_usage()
            print("Provide --input FILE or pipe markdown via stdin.")
            return 1
        return _reduce(args)

    parser.print_usage()
    return 1


if __name__ == "__main__":
    sys.exit(main())
