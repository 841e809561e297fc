import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from stock_scraper.core.assembler import ResultAssembler  # noqa: E402
from stock_scraper.core.blocklist import BlockListGuard  # noqa: E402
from stock_scraper.core.config import JobCleanupPolicy  # noqa: E402
from stock_scraper.core.errors import JobFailedError, NotFoundError  # noqa: E402
from stock_scraper.core.models import Document, ResolvedStock, ScrapeJobSpec, SearchStrategy  # noqa: E402
from stock_scraper.core.orchestrator import StockScrapeOrchestrator  # noqa: E402
from stock_scraper.core.storage import MarkdownStore  # noqa: E402
from stock_scraper.jobs.engine import ScrapeJobEngine  # noqa: E402
from stock_scraper.jobs.priority import JobPriorityTracker  # noqa: E402
from stock_scraper.jobs.submitter import ScrapeJobSubmitter  # noqa: E402
from stock_scraper.jobs.waiter import JobWaiter  # noqa: E402
from stock_scraper.search.resolver import SearchResolver  # noqa: E402
from stock_scraper.services.billing import BillingReporter  # noqa: E402
from stock_scraper.services.job_log import JobLogEntry, JobLogger  # noqa: E402


def quote_url(ticker: str) -> str:
    return f"https://www.investing.com/equities/{ticker.lower()}"


def resolved_stock(ticker: str, url: Optional[str] = None, exchange: str = "NASDAQ") -> ResolvedStock:
    return ResolvedStock(
        url=url or quote_url(ticker),
        ticker=ticker,
        exchange=exchange,
        description=f"{ticker} Inc",
        symbol=ticker,
    )


class FakeFinder:
    """Finder returning canned results; unknown tickers are not found."""

    def __init__(self, stocks: Dict[str, Union[ResolvedStock, Exception]], delays: Optional[Dict[str, float]] = None):
        self.stocks = stocks
        self.delays = delays or {}
        self.calls: List[str] = []

    async def search(self, ticker: str) -> ResolvedStock:
        self.calls.append(ticker)
        await asyncio.sleep(self.delays.get(ticker, 0))
        result = self.stocks.get(ticker)
        if result is None:
            raise NotFoundError(f"No results found for ticker: {ticker}", ticker=ticker)
        if isinstance(result, Exception):
            raise result
        return result


class FakeEngine(ScrapeJobEngine):
    """In-memory engine keyed by URL."""

    def __init__(
        self,
        documents: Optional[Dict[str, Document]] = None,
        failures: Optional[Dict[str, str]] = None,
        delays: Optional[Dict[str, float]] = None,
        remove_error: Optional[Exception] = None,
    ):
        self.documents = documents or {}
        self.failures = failures or {}
        self.delays = delays or {}
        self.remove_error = remove_error
        self.submitted: List[ScrapeJobSpec] = []
        self.removed: List[str] = []
        self.forgotten: List[str] = []
        self._specs: Dict[str, ScrapeJobSpec] = {}

    async def submit(self, spec: ScrapeJobSpec) -> str:
        self.submitted.append(spec)
        self._specs[spec.job_id] = spec
        return spec.job_id

    async def await_completion(self, job_id: str) -> Document:
        spec = self._specs[job_id]
        await asyncio.sleep(self.delays.get(spec.url, 0))
        if spec.url in self.failures:
            raise JobFailedError(self.failures[spec.url], job_id=job_id)
        return self.documents.get(spec.url, Document(markdown=f"# {spec.url}", extract={"price": 1.0}))

    async def remove(self, job_id: str) -> None:
        if self.remove_error is not None:
            raise self.remove_error
        self.removed.append(job_id)

    def forget(self, job_id: str) -> None:
        self.forgotten.append(job_id)


class RecordingBilling(BillingReporter):
    def __init__(self, error: Optional[Exception] = None):
        self.charges = []
        self.error = error

    async def charge(self, team_id, credits, api_key_id=None):
        if self.error is not None:
            raise self.error
        self.charges.append((team_id, credits, api_key_id))


class RecordingJobLogger(JobLogger):
    def __init__(self):
        self.entries: List[JobLogEntry] = []

    async def record(self, entry: JobLogEntry) -> None:
        self.entries.append(entry)


def build_test_orchestrator(
    finder: FakeFinder,
    engine: FakeEngine,
    *,
    output_dir: Optional[Path] = None,
    blocked_domains=("facebook.com",),
    billing: Optional[BillingReporter] = None,
    job_logger: Optional[JobLogger] = None,
    cleanup_policy: JobCleanupPolicy = JobCleanupPolicy.SUCCESS_ONLY,
) -> StockScrapeOrchestrator:
    priority = JobPriorityTracker()
    resolver = SearchResolver(
        {
            SearchStrategy.INVESTINGCOM_API: finder,
            SearchStrategy.FIRECRAWL_SEARCH: finder,
        }
    )
    return StockScrapeOrchestrator(
        resolver=resolver,
        guard=BlockListGuard(blocked_domains),
        submitter=ScrapeJobSubmitter(engine, priority=priority),
        waiter=JobWaiter(engine, priority=priority, cleanup_policy=cleanup_policy),
        assembler=ResultAssembler(MarkdownStore(output_dir) if output_dir else None),
        billing=billing or RecordingBilling(),
        job_logger=job_logger or RecordingJobLogger(),
    )


@pytest.fixture
def stocks():
    return {ticker: resolved_stock(ticker) for ticker in ("AAPL", "TSLA", "MSFT")}


@pytest.fixture
def finder(stocks):
    return FakeFinder(stocks)


@pytest.fixture
def engine():
    return FakeEngine()
