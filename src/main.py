"""CLI entry point for the news selector scraper.

Usage:
    python -m src.main [--config path/to/config.yaml] [-v] scrape --site-id ID [--limit N]
    python -m src.main bulk (--site-id ID ... | --all-active) [--limit N]
    python -m src.main suggest URL
    python -m src.main sync-sites
    python -m src.main serve [--host HOST] [--port PORT]
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

import uvicorn

from src.api import create_app
from src.config import load_config, load_sites
from src.crawler.fetcher import PageFetcher
from src.crawler.site_scraper import DEFAULT_LIMIT, trigger_scrape
from src.errors import ScraperError
from src.llm.client import SelectorSuggester, suggest_selectors_for_url
from src.models import BulkScrapeJob
from src.orchestrator import run_bulk_scrape
from src.storage.connection import connect

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="News Selector Scraper: selector-driven article extraction pipeline",
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to configuration YAML (default: config/config.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    scrape = commands.add_parser("scrape", help="Scrape a single site")
    scrape.add_argument("--site-id", required=True)
    scrape.add_argument("--limit", type=_positive_int, default=None)

    bulk = commands.add_parser("bulk", help="Scrape several sites in one batch")
    target = bulk.add_mutually_exclusive_group(required=True)
    target.add_argument("--site-id", action="append", dest="site_ids")
    target.add_argument("--all-active", action="store_true")
    bulk.add_argument("--limit", type=_positive_int, default=None)

    suggest = commands.add_parser("suggest", help="Suggest selectors for a page")
    suggest.add_argument("url")

    commands.add_parser("sync-sites", help="Load sites.yaml into the site directory")

    serve = commands.add_parser("serve", help="Run the HTTP trigger API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


async def _run_scrape(config: dict[str, Any], args: argparse.Namespace) -> int:
    store = connect(config)
    limit = args.limit or config.get("scrape", {}).get("default_limit", DEFAULT_LIMIT)
    async with PageFetcher.from_config(config) as fetcher:
        result = await trigger_scrape(args.site_id, limit, store, fetcher, config)
    print(json.dumps({
        "newArticlesCount": result.new_articles_count,
        "skippedArticlesCount": result.skipped_articles_count,
        "errors": result.errors,
    }, indent=2, ensure_ascii=False))
    return 0


async def _run_bulk(config: dict[str, Any], args: argparse.Namespace) -> int:
    store = connect(config)
    limit = args.limit or config.get("scrape", {}).get("bulk_limit_per_site", 10)
    if args.all_active:
        site_ids = [site.site_id for site in store.list_sites() if site.active]
    else:
        site_ids = args.site_ids
    jobs = [BulkScrapeJob(site_id=site_id, count=limit) for site_id in site_ids]

    async with PageFetcher.from_config(config) as fetcher:
        batch = await run_bulk_scrape(jobs, store, fetcher, config)
    print(json.dumps(batch.to_dict(), indent=2, ensure_ascii=False))
    return 0 if batch.success else 1


async def _run_suggest(config: dict[str, Any], args: argparse.Namespace) -> int:
    suggester = SelectorSuggester.from_config(config)
    async with PageFetcher.from_config(config) as fetcher:
        selectors = await suggest_selectors_for_url(args.url, fetcher, suggester)
    print(json.dumps(selectors.to_dict(), indent=2, ensure_ascii=False))
    return 0


def _run_sync_sites(config: dict[str, Any]) -> int:
    store = connect(config)
    sites = load_sites(config)
    for site in sites:
        store.upsert_site(site)
    logger.info("Synced %d sites into the site directory", len(sites))
    return 0


def _run_serve(config: dict[str, Any], args: argparse.Namespace) -> int:
    api_config = config.get("api", {})
    uvicorn.run(
        create_app(config),
        host=args.host or api_config.get("host", "0.0.0.0"),
        port=args.port or api_config.get("port", 8080),
    )
    return 0


def main() -> None:
    """Parse arguments and run the selected command."""
    args = build_parser().parse_args()

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    # Suppress noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)

    logger.info("News Selector Scraper starting: %s", args.command)

    try:
        config = load_config(args.config)
        if args.command == "scrape":
            code = asyncio.run(_run_scrape(config, args))
        elif args.command == "bulk":
            code = asyncio.run(_run_bulk(config, args))
        elif args.command == "suggest":
            code = asyncio.run(_run_suggest(config, args))
        elif args.command == "sync-sites":
            code = _run_sync_sites(config)
        else:
            code = _run_serve(config, args)
    except FileNotFoundError as e:
        logger.error("Configuration file not found: %s", e)
        sys.exit(1)
    except ScraperError as e:
        logger.error("%s failed: %s", args.command, e)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error("%s failed: %s", args.command, e, exc_info=True)
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
