"""Wiring of the scrape pipeline from settings."""

from __future__ import annotations

from typing import Optional

from stock_scraper.core.assembler import ResultAssembler
from stock_scraper.core.blocklist import BlockListGuard
from stock_scraper.core.config import Settings
from stock_scraper.core.fetcher import Fetcher
from stock_scraper.core.orchestrator import StockScrapeOrchestrator
from stock_scraper.core.storage import MarkdownStore
from stock_scraper.jobs.engine import FirecrawlJobEngine, ScrapeJobEngine
from stock_scraper.jobs.priority import JobPriorityTracker
from stock_scraper.jobs.submitter import ScrapeJobSubmitter
from stock_scraper.jobs.waiter import JobWaiter
from stock_scraper.search.resolver import SearchResolver, build_search_resolver
from stock_scraper.services.billing import BillingReporter, CreditLedger
from stock_scraper.services.job_log import JobLogger, JobLogWriter


def build_engine_fetcher(settings: Settings) -> Fetcher:
    headers = {}
    if settings.engine_api_key:
        headers["Authorization"] = f"Bearer {settings.engine_api_key}"
    return Fetcher(
        base_url=settings.engine_base_url,
        timeout=settings.engine_request_timeout_seconds,
        max_retries=settings.search_max_retries,
        headers=headers,
    )


def build_orchestrator(
    settings: Settings,
    *,
    engine: Optional[ScrapeJobEngine] = None,
    resolver: Optional[SearchResolver] = None,
    engine_fetcher: Optional[Fetcher] = None,
    billing: Optional[BillingReporter] = None,
    job_logger: Optional[JobLogger] = None,
) -> StockScrapeOrchestrator:
    """Assemble an orchestrator; any collaborator can be supplied explicitly."""

    if engine is None or resolver is None:
        engine_fetcher = engine_fetcher or build_engine_fetcher(settings)
    if engine is None:
        engine = FirecrawlJobEngine(engine_fetcher, poll_interval=settings.engine_poll_interval_seconds)
    if resolver is None:
        resolver = build_search_resolver(settings, engine_fetcher=engine_fetcher)

    priority = JobPriorityTracker()
    return StockScrapeOrchestrator(
        resolver=resolver,
        guard=BlockListGuard(settings.blocked_domains),
        submitter=ScrapeJobSubmitter(engine, priority=priority, base_priority=settings.base_priority),
        waiter=JobWaiter(engine, priority=priority, cleanup_policy=settings.cleanup_policy),
        assembler=ResultAssembler(MarkdownStore(settings.output_dir)),
        billing=billing if billing is not None else CreditLedger(settings.data_dir),
        job_logger=job_logger if job_logger is not None else JobLogWriter(settings.data_dir),
    )


__all__ = ["build_engine_fetcher", "build_orchestrator"]
