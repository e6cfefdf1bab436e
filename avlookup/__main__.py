# avlookup/__main__.py

import argparse
import asyncio
import dataclasses
import json
import sys
from collections.abc import Sequence
from typing import Any

from avlookup.config import (
    DEFAULT_CONFIG_PATH,
    apply_verbosity,
    get_configuration,
    logger,
)
from avlookup.errors import NotFoundError
from avlookup.services.search_logic import LookupOrchestrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="avlookup",
        description="Resolve content identifiers into merged metadata records.",
    )
    parser.add_argument(
        "command", choices=["detail", "search", "list", "top", "actors", "play"]
    )
    parser.add_argument(
        "argument",
        nargs="?",
        default="",
        help="Identifier, query or actor name (unused by 'top' and 'actors').",
    )
    parser.add_argument("--limit", type=int, default=20)
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--per-page", type=int, default=50)
    parser.add_argument("--uncen", action="store_true", help="Uncensored titles only.")
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    return parser


async def run(args: argparse.Namespace) -> Any:
    """Runs one orchestrator operation and returns its JSON-ready result."""
    config = get_configuration(args.config)
    if args.debug:
        config = dataclasses.replace(config, debug=True)
    apply_verbosity(config)

    async with LookupOrchestrator(config) as orchestrator:
        if args.command == "detail":
            return (await orchestrator.fetch_detail(args.argument)).to_dict()
        if args.command == "search":
            items = await orchestrator.search(args.argument, uncensored_only=args.uncen)
            return [item.to_dict() for item in items]
        if args.command == "list":
            items = await orchestrator.list_actor_titles(
                args.argument, uncensored_only=args.uncen
            )
            return [item.to_dict() for item in items]
        if args.command == "top":
            items = await orchestrator.top(args.limit, uncensored_only=args.uncen)
            return [item.to_dict() for item in items]
        if args.command == "actors":
            ranking = await orchestrator.actors(
                args.page, args.per_page, uncensored_only=args.uncen
            )
            return ranking.to_dict()
        return {"url": await orchestrator.get_play_url(args.argument)}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command in ("detail", "search", "list", "play") and not args.argument:
        parser.error(f"'{args.command}' needs an argument")

    try:
        result = asyncio.run(run(args))
    except NotFoundError as exc:
        logger.error(f"Lookup failed: {exc}")
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
