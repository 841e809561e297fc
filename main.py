#!/usr/bin/env python3
"""
Stock Scraper - Main Entry Point
================================

Resolve stock tickers to their Investing.com quote pages and scrape them.

Usage:
    python main.py --tickers AAPL,TSLA              # Scrape once, print JSON
    python main.py --tickers AAPL --extract         # Include structured data
    python main.py --mode api                       # Run the API server
    python main.py --mode standalone                # Run the standalone service
    python main.py --mode jobs --limit 5            # Show recent batch job log entries
    python main.py --help                           # Show help
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

import uvicorn
from dotenv import load_dotenv

from stock_scraper.core.config import get_settings
from stock_scraper.core.errors import StockScrapeError
from stock_scraper.core.models import ScrapeRequestOptions, SearchStrategy, TeamContext
from stock_scraper.core.pipeline import build_orchestrator
from stock_scraper.legacy.app import main as run_standalone
from stock_scraper.services.job_log import JobLogWriter, load_job_log
from stock_scraper.utils.logger import get_logger, setup_logging


def _resolve_tickers(raw: Optional[str]) -> List[str]:
    """Split a comma separated ticker list, preserving order and dropping duplicates."""
    seen = set()
    tickers: List[str] = []
    for item in (raw or "").split(","):
        ticker = item.strip().upper()
        if ticker and ticker not in seen:
            tickers.append(ticker)
            seen.add(ticker)
    return tickers


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stock ticker scraper")
    parser.add_argument(
        "--mode",
        choices=["scrape", "api", "standalone", "jobs"],
        default="scrape",
        help="Run a one-off scrape, a server, or print recent job log entries",
    )
    parser.add_argument("--tickers", help="Comma separated ticker symbols, e.g. AAPL,TSLA")
    parser.add_argument(
        "--search-mode",
        choices=[strategy.value for strategy in SearchStrategy],
        help="Override the configured default search mode",
    )
    parser.add_argument("--no-markdown", action="store_true", help="Do not request markdown")
    parser.add_argument("--extract", action="store_true", help="Request structured extraction")
    parser.add_argument("--save-markdown", action="store_true", help="Write markdown files to the output directory")
    parser.add_argument("--timeout", type=int, default=None, help="Per-ticker job timeout in milliseconds")
    parser.add_argument("--port", type=int, default=8000, help="API server port")
    parser.add_argument("--limit", type=int, default=10, help="Job log entries to print in jobs mode")
    return parser.parse_args(argv)


def recent_jobs(limit: int) -> List[dict]:
    """Newest job log entries first."""
    entries = load_job_log(JobLogWriter(get_settings().data_dir).path)
    return list(reversed(entries))[: max(limit, 0)]


async def run_scrape(args: argparse.Namespace) -> dict:
    settings = get_settings()
    options = ScrapeRequestOptions(
        want_markdown=not args.no_markdown,
        want_extract=args.extract,
        persist_markdown=args.save_markdown,
        timeout_ms=args.timeout or settings.default_timeout_ms,
        strategy=SearchStrategy.parse(args.search_mode) if args.search_mode else settings.default_search_mode,
    )
    orchestrator = build_orchestrator(settings)
    outcome = await orchestrator.scrape_batch(_resolve_tickers(args.tickers), options, TeamContext(origin="cli"))
    return outcome.to_response()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    setup_logging()
    log = get_logger(__name__)

    if args.mode == "api":
        uvicorn.run("stock_scraper.api.app:app", host="0.0.0.0", port=args.port)
        return 0

    if args.mode == "standalone":
        run_standalone()
        return 0

    if args.mode == "jobs":
        print(json.dumps(recent_jobs(args.limit), indent=2, default=str))
        return 0

    if not _resolve_tickers(args.tickers):
        log.error("No tickers given. Use --tickers AAPL,TSLA")
        return 2

    try:
        response = asyncio.run(run_scrape(args))
    except StockScrapeError as exc:
        log.error("Stock scrape failed: {}", exc.message)
        return 1

    print(json.dumps(response, indent=2, default=str))
    return 0 if response["summary"]["successful"] else 1


if __name__ == "__main__":
    sys.exit(main())
