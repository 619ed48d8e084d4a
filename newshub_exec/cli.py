import asyncio
import argparse
import json
import sys
from typing import Optional

from aiohttp import web

from newshub.config import CONFIG
from newshub.feed.cache import AggregationCache
from newshub.feed.notifier import ChangeNotifier
from newshub.news.source.bitable.auth import TokenManager
from newshub.news.source.bitable.client import BitableClient
from newshub.logging_config import configure_access_logger, logger
from newshub_exec.server import create_app


def setup_argparser():
    """Set up command line argument parser."""
    parser = argparse.ArgumentParser(description="newshub news aggregation service")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the JSON and event-stream server")
    serve_parser.add_argument("--host", default=CONFIG.SERVER_HOST, help="Interface to bind")
    serve_parser.add_argument("--port", type=int, default=CONFIG.SERVER_PORT, help="Port to listen on")

    fetch_parser = subparsers.add_parser("fetch", help="Aggregate all sources once and print the result as JSON")
    fetch_parser.add_argument("--category", help="Only print articles of this category")
    fetch_parser.add_argument("--limit", type=int, help="Maximum number of articles to print")

    return parser


def build_services():
    token_manager = TokenManager.from_config(CONFIG)
    client = BitableClient.from_config(CONFIG, token_manager=token_manager)
    cache = AggregationCache.from_config(CONFIG, tabular_fetcher=client.fetch_articles)
    return cache, token_manager


async def fetch_once(category: Optional[str] = None, limit: Optional[int] = None) -> dict:
    cache, _ = build_services()
    entry = await (cache.get_by_category(category) if category else cache.get())

    result = entry.to_dict()
    if limit is not None:
        result["articles"] = result["articles"][:limit]
    return result


def serve(host: str, port: int) -> None:
    cache, token_manager = build_services()
    app = create_app(cache, ChangeNotifier(cache), token_manager=token_manager)

    logger.info(f"Starting newshub on {host}:{port}")
    web.run_app(app, host=host, port=port, print=None, access_log=configure_access_logger())


def main():
    """Main CLI entry point."""
    parser = setup_argparser()
    args = parser.parse_args()

    if args.command == "serve":
        serve(args.host, args.port)

    elif args.command == "fetch":
        result = asyncio.run(fetch_once(args.category, args.limit))
        print(json.dumps(result, indent=2, ensure_ascii=False))

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
