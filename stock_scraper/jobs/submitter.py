"""Build normalized scrape-job specs and hand them to the engine."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from stock_scraper.core.errors import InvalidInputError
from stock_scraper.core.models import (
    JobHandle,
    OutputFormat,
    ResolvedStock,
    ScrapeJobSpec,
    ScrapeRequestOptions,
    TeamContext,
)
from stock_scraper.jobs.engine import ScrapeJobEngine
from stock_scraper.jobs.priority import JobPriorityTracker
from stock_scraper.utils.logger import get_logger

log = get_logger(__name__)

DEFAULT_STOCK_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "companyName": {"type": "string"},
        "ticker": {"type": "string"},
        "currentPrice": {"type": "number"},
        "currency": {"type": "string"},
        "change": {"type": "number"},
        "changePercent": {"type": "number"},
        "volume": {"type": "number"},
        "marketCap": {"type": "string"},
        "high": {"type": "number"},
        "low": {"type": "number"},
        "open": {"type": "number"},
        "previousClose": {"type": "number"},
        "fiftyTwoWeekHigh": {"type": "number"},
        "fiftyTwoWeekLow": {"type": "number"},
        "peRatio": {"type": "number"},
        "eps": {"type": "number"},
        "beta": {"type": "number"},
    },
}


class ScrapeJobSubmitter:
    def __init__(
        self,
        engine: ScrapeJobEngine,
        priority: Optional[JobPriorityTracker] = None,
        base_priority: int = 10,
        job_id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        self.engine = engine
        self.priority = priority or JobPriorityTracker()
        self.base_priority = base_priority
        self.job_id_factory = job_id_factory

    def build_spec(
        self,
        resolved: ResolvedStock,
        options: ScrapeRequestOptions,
        context: TeamContext,
    ) -> ScrapeJobSpec:
        formats = tuple(options.formats())
        if not formats:
            raise InvalidInputError(
                "At least one format (markdown or extract) must be enabled",
                field="options",
                ticker=resolved.ticker,
            )

        schema = None
        if OutputFormat.EXTRACT in formats:
            schema = options.extraction_schema or DEFAULT_STOCK_SCHEMA

        return ScrapeJobSpec(
            job_id=self.job_id_factory(),
            url=resolved.url,
            formats=formats,
            team_id=context.team_id,
            origin=context.origin,
            priority=self.priority.get_job_priority(context.team_id, base_priority=self.base_priority),
            timeout_ms=options.timeout_ms,
            extraction_schema=schema,
            zero_data_retention=context.zero_data_retention,
            # Billing happens once per batch in the orchestrator.
            bypass_billing=True,
            team_flags=context.flags,
            api_key_id=context.api_key_id,
        )

    async def submit(
        self,
        resolved: ResolvedStock,
        options: ScrapeRequestOptions,
        context: TeamContext,
    ) -> JobHandle:
        spec = self.build_spec(resolved, options, context)
        log.info(
            "[{}] Adding scrape job {} for {} (formats: {}, priority {})",
            resolved.ticker,
            spec.job_id,
            spec.url,
            ", ".join(fmt.value for fmt in spec.formats),
            spec.priority,
        )
        job_id = await self.engine.submit(spec)
        self.priority.job_started(context.team_id, job_id)
        return JobHandle(
            job_id=job_id,
            url=spec.url,
            team_id=context.team_id,
            zero_data_retention=spec.zero_data_retention,
        )


__all__ = ["DEFAULT_STOCK_SCHEMA", "ScrapeJobSubmitter"]
