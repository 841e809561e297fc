"""
Batch orchestration for stock scrapes
=====================================

Runs the per-ticker pipeline

    resolve → guard → submit → wait → assemble

for every ticker of a batch concurrently, isolates failures per ticker, then
bills and logs the batch once all tickers have settled.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Callable, List, Optional, Sequence
from uuid import uuid4

from stock_scraper.core.assembler import ResultAssembler
from stock_scraper.core.blocklist import BlockListGuard
from stock_scraper.core.errors import InvalidInputError, StockScrapeError
from stock_scraper.core.models import (
    BatchOutcome,
    BatchSummary,
    ScrapeRequestOptions,
    StockScrapeFailure,
    StockScrapeResult,
    StockScrapeSuccess,
    TeamContext,
)
from stock_scraper.jobs.submitter import ScrapeJobSubmitter
from stock_scraper.jobs.waiter import JobWaiter
from stock_scraper.search.resolver import SearchResolver
from stock_scraper.services.billing import BillingReporter, NoopBilling
from stock_scraper.services.job_log import JobLogEntry, JobLogger, NoopJobLogger
from stock_scraper.utils.logger import get_logger

log = get_logger(__name__)


class PipelineStage(str, Enum):
    RESOLVING = "resolving"
    GUARDING = "guarding"
    SUBMITTING = "submitting"
    WAITING = "waiting"
    ASSEMBLING = "assembling"
    DONE = "done"
    FAILED = "failed"


class StockScrapeOrchestrator:
    def __init__(
        self,
        resolver: SearchResolver,
        guard: BlockListGuard,
        submitter: ScrapeJobSubmitter,
        waiter: JobWaiter,
        assembler: ResultAssembler,
        billing: Optional[BillingReporter] = None,
        job_logger: Optional[JobLogger] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.resolver = resolver
        self.guard = guard
        self.submitter = submitter
        self.waiter = waiter
        self.assembler = assembler
        self.billing = billing or NoopBilling()
        self.job_logger = job_logger or NoopJobLogger()
        self._clock = clock

    async def scrape_batch(
        self,
        tickers: Sequence[str],
        options: ScrapeRequestOptions,
        context: TeamContext,
        batch_id: Optional[str] = None,
    ) -> BatchOutcome:
        if not tickers:
            raise InvalidInputError("At least one ticker is required", field="tickers")

        batch_id = batch_id or str(uuid4())
        blog = log.bind(batch_id=batch_id, team_id=context.team_id)
        started = self._clock()
        blog.info(
            "Stock scrape batch received: {} ticker(s) [{}] via {}",
            len(tickers),
            ", ".join(tickers),
            options.strategy.value,
        )

        results = await self._fan_out(tickers, options, context)
        summary = BatchSummary.from_results(results)
        blog.info(
            "Stock scrape batch completed: total={} successful={} failed={}",
            summary.total,
            summary.successful,
            summary.failed,
        )

        outcome = BatchOutcome(job_id=batch_id, results=results, summary=summary)
        if summary.successful > 0:
            await self._bill(outcome, context)
            await self._record(outcome, tickers, context, self._clock() - started)
        return outcome

    async def _fan_out(
        self,
        tickers: Sequence[str],
        options: ScrapeRequestOptions,
        context: TeamContext,
    ) -> List[StockScrapeResult]:
        """Run every pipeline to completion and collect one result per ticker, in input order."""
        settled = await asyncio.gather(
            *(self.scrape_ticker(ticker, options, context) for ticker in tickers),
            return_exceptions=True,
        )

        results: List[StockScrapeResult] = []
        for ticker, outcome in zip(tickers, settled):
            if isinstance(outcome, (StockScrapeSuccess, StockScrapeFailure)):
                results.append(outcome)
                continue
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
            log.opt(exception=outcome).error("[{}] Unexpected error scraping stock", ticker)
            results.append(
                StockScrapeFailure(
                    ticker=ticker,
                    error=str(outcome) or "Unknown error",
                    error_type=type(outcome).__name__,
                )
            )
        return results

    async def scrape_ticker(
        self,
        ticker: str,
        options: ScrapeRequestOptions,
        context: TeamContext,
    ) -> StockScrapeResult:
        stage = PipelineStage.RESOLVING
        log.info("[{}] Starting stock scrape", ticker)
        try:
            resolved = await self.resolver.resolve(ticker, options.strategy)
            log.info("[{}] Found stock URL {} ({})", ticker, resolved.url, resolved.exchange)

            stage = PipelineStage.GUARDING
            self.guard.check(resolved.url, context.flags)

            stage = PipelineStage.SUBMITTING
            handle = await self.submitter.submit(resolved, options, context)

            stage = PipelineStage.WAITING
            document = await self.waiter.wait(handle, options.timeout_ms)
            log.info("[{}] Scrape job {} completed", ticker, handle.job_id)

            stage = PipelineStage.ASSEMBLING
            data = await self.assembler.assemble(resolved, document, options)
        except StockScrapeError as exc:
            exc.ticker = exc.ticker or ticker
            exc.stage = exc.stage or stage.value
            log.error("[{}] Error scraping stock while {}: {}", ticker, stage.value, exc.message)
            return StockScrapeFailure(ticker=ticker, error=exc.message, error_type=type(exc).__name__)

        log.info("[{}] Stock scrape completed successfully", ticker)
        return StockScrapeSuccess(ticker=ticker, data=data)

    async def _bill(self, outcome: BatchOutcome, context: TeamContext) -> None:
        credits = outcome.summary.successful
        if context.is_bypass:
            log.debug("Skipping billing for bypass team")
            return
        try:
            await self.billing.charge(context.team_id, credits, context.api_key_id)
        except Exception as exc:  # noqa: BLE001
            log.error("Error billing team {}: {}", context.team_id, exc)
            return
        log.info("Team {} billed {} credit(s) for stock scrapes", context.team_id, credits)

    async def _record(
        self,
        outcome: BatchOutcome,
        tickers: Sequence[str],
        context: TeamContext,
        elapsed: float,
    ) -> None:
        entry = JobLogEntry(
            job_id=outcome.job_id,
            team_id=context.team_id,
            success=True,
            message=f"Stock scrape: {outcome.summary.successful}/{outcome.summary.total} successful",
            num_docs=outcome.summary.successful,
            docs=[
                {
                    "url": result.data.url,
                    "markdown": result.data.markdown,
                    "extract": result.data.extract,
                }
                for result in outcome.successes
            ],
            time_taken=round(elapsed, 3),
            url=f"stock-scrape:{','.join(tickers)}",
            origin=context.origin,
            credits_billed=outcome.summary.successful,
            zero_data_retention=context.zero_data_retention,
        )
        try:
            await self.job_logger.record(entry)
        except Exception as exc:  # noqa: BLE001
            log.error("Error logging stock scrape job {}: {}", outcome.job_id, exc)


__all__ = ["PipelineStage", "StockScrapeOrchestrator"]
