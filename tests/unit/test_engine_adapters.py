import asyncio
import json

import httpx
import pytest

from stock_scraper.core.config import JobCleanupPolicy
from stock_scraper.core.errors import JobFailedError, JobTimeoutError, UpstreamError
from stock_scraper.core.fetcher import Fetcher
from stock_scraper.core.models import (
    OutputFormat,
    ResolvedStock,
    ScrapeJobSpec,
    ScrapeRequestOptions,
    TeamContext,
)
from stock_scraper.jobs.engine import FirecrawlJobEngine, SyncScrapeEngine, build_scrape_payload
from stock_scraper.jobs.submitter import ScrapeJobSubmitter
from stock_scraper.jobs.waiter import JobWaiter

URL = "https://www.investing.com/equities/apple-computer-inc"


def make_spec(**overrides):
    values = dict(
        job_id="job-1",
        url=URL,
        formats=(OutputFormat.MARKDOWN,),
        team_id="team",
        origin="api",
        priority=10,
        timeout_ms=30000,
    )
    values.update(overrides)
    return ScrapeJobSpec(**values)


def engine_fetcher(handler):
    return Fetcher(
        base_url="http://engine",
        transport=httpx.MockTransport(handler),
        max_retries=1,
        backoff_multiplier=0,
    )


def test_payload_includes_schema_only_for_extract():
    schema = {"type": "object"}
    assert build_scrape_payload(make_spec()) == {"formats": ["markdown"], "timeout": 30000}

    payload = build_scrape_payload(
        make_spec(
            formats=(OutputFormat.MARKDOWN, OutputFormat.EXTRACT),
            extraction_schema=schema,
            zero_data_retention=True,
        )
    )
    assert payload == {
        "formats": ["markdown", "extract"],
        "timeout": 30000,
        "extract": {"schema": schema},
        "zeroDataRetention": True,
    }


def test_batch_engine_submits_polls_and_removes():
    requests = []
    statuses = iter(
        [
            {"status": "scraping"},
            {"status": "completed", "data": [{"markdown": "# Apple", "extract": {"price": 190.5}}]},
        ]
    )

    def handler(request):
        requests.append((request.method, request.url.path))
        if request.method == "POST":
            assert json.loads(request.content)["urls"] == [URL]
            return httpx.Response(200, json={"success": True, "id": "remote-7"})
        if request.method == "GET":
            return httpx.Response(200, json=next(statuses))
        return httpx.Response(200, json={"success": True})

    engine = FirecrawlJobEngine(engine_fetcher(handler), poll_interval=0)

    async def run():
        job_id = await engine.submit(make_spec())
        document = await engine.await_completion(job_id)
        await engine.remove(job_id)
        return job_id, document

    job_id, document = asyncio.run(run())

    assert job_id == "job-1"
    assert document.markdown == "# Apple"
    assert document.extract == {"price": 190.5}
    assert requests == [
        ("POST", "/v1/batch/scrape"),
        ("GET", "/v1/batch/scrape/remote-7"),
        ("GET", "/v1/batch/scrape/remote-7"),
        ("DELETE", "/v1/batch/scrape/remote-7"),
    ]


def test_batch_engine_reports_failed_job():
    def handler(request):
        if request.method == "POST":
            return httpx.Response(200, json={"success": True, "id": "remote-8"})
        return httpx.Response(200, json={"status": "failed", "error": "page crashed"})

    engine = FirecrawlJobEngine(engine_fetcher(handler), poll_interval=0)

    async def run():
        job_id = await engine.submit(make_spec())
        return await engine.await_completion(job_id)

    with pytest.raises(JobFailedError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.message == "Scrape job failed: page crashed"


def test_batch_engine_rejected_submission():
    def handler(request):
        return httpx.Response(402, json={"success": False, "error": "Payment required"})

    engine = FirecrawlJobEngine(engine_fetcher(handler), poll_interval=0)
    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(engine.submit(make_spec()))
    assert exc_info.value.status_code == 402


def test_sync_engine_scrapes_on_completion():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "data": {"markdown": "# Tesla", "json": {"price": 250}}})

    engine = SyncScrapeEngine(engine_fetcher(handler))

    async def run():
        job_id = await engine.submit(make_spec(formats=(OutputFormat.MARKDOWN, OutputFormat.EXTRACT)))
        assert bodies == []
        document = await engine.await_completion(job_id)
        await engine.remove(job_id)
        return document

    document = asyncio.run(run())
    assert bodies[0]["url"] == URL
    assert bodies[0]["formats"] == ["markdown", "extract"]
    assert document.markdown == "# Tesla"
    assert document.extract == {"price": 250}


def test_sync_engine_unsuccessful_scrape():
    def handler(request):
        return httpx.Response(200, json={"success": False, "error": "Blocked"})

    engine = SyncScrapeEngine(engine_fetcher(handler))

    async def run():
        job_id = await engine.submit(make_spec())
        return await engine.await_completion(job_id)

    with pytest.raises(JobFailedError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.message == "Firecrawl scraping failed: Blocked"


def _run_failing_jobs(engine, count):
    submitter = ScrapeJobSubmitter(engine)
    waiter = JobWaiter(engine, cleanup_policy=JobCleanupPolicy.SUCCESS_ONLY)
    stock = ResolvedStock(url=URL, ticker="AAPL", exchange="NASDAQ", description="Apple", symbol="AAPL")

    async def run():
        for _ in range(count):
            handle = await submitter.submit(stock, ScrapeRequestOptions(), TeamContext())
            with pytest.raises(JobFailedError):
                await waiter.wait(handle, 1000)

    asyncio.run(run())


def test_failed_batch_jobs_are_not_tracked_after_completion():
    remote_ids = iter(range(100))
    methods = []

    def handler(request):
        methods.append(request.method)
        if request.method == "POST":
            return httpx.Response(200, json={"success": True, "id": f"remote-{next(remote_ids)}"})
        return httpx.Response(200, json={"status": "failed", "error": "page crashed"})

    engine = FirecrawlJobEngine(engine_fetcher(handler), poll_interval=0)
    _run_failing_jobs(engine, 5)

    assert engine._remote_ids == {}
    # Failed jobs stay in the engine under the default policy.
    assert "DELETE" not in methods


def test_failed_sync_jobs_are_not_tracked_after_completion():
    def handler(request):
        return httpx.Response(200, json={"success": False, "error": "Blocked"})

    engine = SyncScrapeEngine(engine_fetcher(handler))
    _run_failing_jobs(engine, 5)

    assert engine._pending == {}


def test_timed_out_batch_job_is_forgotten_locally():
    def handler(request):
        if request.method == "POST":
            return httpx.Response(200, json={"success": True, "id": "remote-slow"})
        return httpx.Response(200, json={"status": "scraping"})

    engine = FirecrawlJobEngine(engine_fetcher(handler), poll_interval=0.01)
    submitter = ScrapeJobSubmitter(engine)
    stock = ResolvedStock(url=URL, ticker="AAPL", exchange="NASDAQ", description="Apple", symbol="AAPL")

    async def run():
        handle = await submitter.submit(stock, ScrapeRequestOptions(), TeamContext())
        await JobWaiter(engine).wait(handle, 50)

    with pytest.raises(JobTimeoutError):
        asyncio.run(run())
    assert engine._remote_ids == {}


def test_submission_is_not_replayed_on_gateway_error():
    posts = []

    def handler(request):
        posts.append(request)
        return httpx.Response(503)

    fetcher = Fetcher(
        base_url="http://engine",
        transport=httpx.MockTransport(handler),
        max_retries=3,
        backoff_multiplier=0,
    )
    engine = FirecrawlJobEngine(fetcher, poll_interval=0)

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(engine.submit(make_spec()))

    assert len(posts) == 1
    assert exc_info.value.status_code == 503


def test_status_polls_are_retried_on_gateway_error():
    responses = iter(
        [
            httpx.Response(200, json={"success": True, "id": "remote-9"}),
            httpx.Response(503),
            httpx.Response(200, json={"status": "completed", "data": [{"markdown": "# ok"}]}),
        ]
    )

    def handler(request):
        return next(responses)

    fetcher = Fetcher(
        base_url="http://engine",
        transport=httpx.MockTransport(handler),
        max_retries=3,
        backoff_multiplier=0,
    )
    engine = FirecrawlJobEngine(fetcher, poll_interval=0)

    async def run():
        job_id = await engine.submit(make_spec())
        return await engine.await_completion(job_id)

    assert asyncio.run(run()).markdown == "# ok"
