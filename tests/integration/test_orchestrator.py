import asyncio

import pytest

from conftest import (
    FakeEngine,
    FakeFinder,
    RecordingBilling,
    RecordingJobLogger,
    build_test_orchestrator,
    quote_url,
    resolved_stock,
)

from stock_scraper.core.blocklist import BLOCKLISTED_URL_MESSAGE
from stock_scraper.core.errors import InvalidInputError, UpstreamError
from stock_scraper.core.models import (
    ScrapeRequestOptions,
    StockScrapeFailure,
    StockScrapeSuccess,
    TeamContext,
    TeamFlags,
)

TEAM = TeamContext(team_id="team-1", api_key_id=5)


def test_results_follow_input_order_not_completion_order(stocks, engine):
    finder = FakeFinder(stocks, delays={"AAPL": 0.05, "TSLA": 0.01, "MSFT": 0.0})
    orchestrator = build_test_orchestrator(finder, engine)

    outcome = asyncio.run(orchestrator.scrape_batch(["AAPL", "TSLA", "MSFT"], ScrapeRequestOptions(), TEAM))

    assert [result.ticker for result in outcome.results] == ["AAPL", "TSLA", "MSFT"]
    assert outcome.summary.to_dict() == {"total": 3, "successful": 3, "failed": 0}


def test_duplicate_tickers_are_scraped_independently(finder, engine):
    orchestrator = build_test_orchestrator(finder, engine)

    outcome = asyncio.run(orchestrator.scrape_batch(["AAPL", "AAPL"], ScrapeRequestOptions(), TEAM))

    assert [result.ticker for result in outcome.results] == ["AAPL", "AAPL"]
    assert len(engine.submitted) == 2
    assert len({spec.job_id for spec in engine.submitted}) == 2


def test_one_failure_does_not_affect_siblings(finder, engine):
    billing = RecordingBilling()
    job_logger = RecordingJobLogger()
    orchestrator = build_test_orchestrator(finder, engine, billing=billing, job_logger=job_logger)

    outcome = asyncio.run(orchestrator.scrape_batch(["AAPL", "ZZZZ", "TSLA"], ScrapeRequestOptions(), TEAM))

    assert isinstance(outcome.results[0], StockScrapeSuccess)
    assert outcome.results[1] == StockScrapeFailure(
        ticker="ZZZZ",
        error="No results found for ticker: ZZZZ",
        error_type="NotFoundError",
    )
    assert isinstance(outcome.results[2], StockScrapeSuccess)
    assert outcome.summary.to_dict() == {"total": 3, "successful": 2, "failed": 1}

    assert billing.charges == [("team-1", 2, 5)]
    assert len(job_logger.entries) == 1
    entry = job_logger.entries[0]
    assert entry.url == "stock-scrape:AAPL,ZZZZ,TSLA"
    assert entry.num_docs == 2
    assert entry.credits_billed == 2
    assert [doc["url"] for doc in entry.docs] == [quote_url("AAPL"), quote_url("TSLA")]


def test_unexpected_exception_becomes_failure(stocks, engine):
    stocks["TSLA"] = RuntimeError("socket closed")
    orchestrator = build_test_orchestrator(FakeFinder(stocks), engine)

    outcome = asyncio.run(orchestrator.scrape_batch(["TSLA", "AAPL"], ScrapeRequestOptions(), TEAM))

    assert outcome.results[0].to_dict() == {"ticker": "TSLA", "success": False, "error": "socket closed"}
    assert outcome.results[1].success


def test_upstream_error_message_is_reported(stocks, engine):
    stocks["MSFT"] = UpstreamError("Failed to search Investing.com: HTTP 500", status_code=500)
    orchestrator = build_test_orchestrator(FakeFinder(stocks), engine)

    outcome = asyncio.run(orchestrator.scrape_batch(["MSFT"], ScrapeRequestOptions(), TEAM))

    assert outcome.results[0].error == "Failed to search Investing.com: HTTP 500"


def test_blocked_url_is_never_submitted(engine):
    finder = FakeFinder({"META": resolved_stock("META", url="https://www.facebook.com/meta")})
    billing = RecordingBilling()
    job_logger = RecordingJobLogger()
    orchestrator = build_test_orchestrator(finder, engine, billing=billing, job_logger=job_logger)

    outcome = asyncio.run(orchestrator.scrape_batch(["META"], ScrapeRequestOptions(), TEAM))

    assert outcome.results[0].error == "Could not scrape URL: " + BLOCKLISTED_URL_MESSAGE
    assert engine.submitted == []
    assert billing.charges == []
    assert job_logger.entries == []


def test_team_exemption_allows_blocked_domain(engine):
    finder = FakeFinder({"META": resolved_stock("META", url="https://www.facebook.com/meta")})
    orchestrator = build_test_orchestrator(finder, engine)
    context = TeamContext(team_id="team-1", flags=TeamFlags(unblocked_domains=frozenset({"facebook.com"})))

    outcome = asyncio.run(orchestrator.scrape_batch(["META"], ScrapeRequestOptions(), context))

    assert outcome.results[0].success
    assert len(engine.submitted) == 1


def test_no_formats_fails_every_ticker_without_engine_calls(finder, engine):
    orchestrator = build_test_orchestrator(finder, engine)
    options = ScrapeRequestOptions(want_markdown=False, want_extract=False)

    outcome = asyncio.run(orchestrator.scrape_batch(["AAPL", "TSLA"], options, TEAM))

    assert outcome.summary.successful == 0
    assert all(result.error_type == "InvalidInputError" for result in outcome.results)
    assert engine.submitted == []


def test_empty_batch_is_rejected(finder, engine):
    orchestrator = build_test_orchestrator(finder, engine)

    with pytest.raises(InvalidInputError):
        asyncio.run(orchestrator.scrape_batch([], ScrapeRequestOptions(), TEAM))


def test_bypass_team_is_not_billed_but_is_logged(finder, engine):
    billing = RecordingBilling()
    job_logger = RecordingJobLogger()
    orchestrator = build_test_orchestrator(finder, engine, billing=billing, job_logger=job_logger)

    asyncio.run(orchestrator.scrape_batch(["AAPL"], ScrapeRequestOptions(), TeamContext()))

    assert billing.charges == []
    assert len(job_logger.entries) == 1


def test_billing_failure_does_not_change_results(finder, engine):
    orchestrator = build_test_orchestrator(finder, engine, billing=RecordingBilling(error=RuntimeError("ledger down")))

    outcome = asyncio.run(orchestrator.scrape_batch(["AAPL"], ScrapeRequestOptions(), TEAM))

    assert outcome.to_response()["summary"] == {"total": 1, "successful": 1, "failed": 0}


def test_job_failure_and_timeout_are_isolated(stocks):
    engine = FakeEngine(
        failures={quote_url("AAPL"): "Scrape job failed: page crashed"},
        delays={quote_url("TSLA"): 1.0},
    )
    orchestrator = build_test_orchestrator(FakeFinder(stocks), engine)
    options = ScrapeRequestOptions(timeout_ms=50)

    outcome = asyncio.run(orchestrator.scrape_batch(["AAPL", "TSLA", "MSFT"], options, TEAM))

    assert outcome.results[0].error == "Scrape job failed: page crashed"
    assert outcome.results[1].error_type == "JobTimeoutError"
    assert outcome.results[2].success
    # Only the successful job is cleaned up under the default policy.
    assert len(engine.removed) == 1


def test_extract_and_saved_markdown_in_response(finder, engine, tmp_path):
    orchestrator = build_test_orchestrator(finder, engine, output_dir=tmp_path)
    options = ScrapeRequestOptions(want_extract=True, persist_markdown=True)

    response = asyncio.run(orchestrator.scrape_batch(["AAPL"], options, TEAM)).to_response()

    data = response["results"][0]["data"]
    assert data["extract"] == {"price": 1.0}
    assert data["markdownFile"].startswith("AAPL_")
    assert (tmp_path / data["markdownFile"]).exists()
