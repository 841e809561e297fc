"""
Standalone stock scraper service
================================

Single-endpoint deployment of the same pipeline. Tickers are resolved through
the Investing.com API and scraped synchronously by a sibling scrape service
(`POST {FIRECRAWL_API_URL}/v1/scrape`). No billing, no job log.

Usage:
    python -m stock_scraper.legacy.app
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stock_scraper.api.schemas import error_details
from stock_scraper.core.config import Settings, get_settings
from stock_scraper.core.models import (
    ScrapeRequestOptions,
    SearchStrategy,
    StockScrapeSuccess,
    TeamContext,
)
from stock_scraper.core.orchestrator import StockScrapeOrchestrator
from stock_scraper.core.pipeline import build_engine_fetcher, build_orchestrator
from stock_scraper.jobs.engine import SyncScrapeEngine
from stock_scraper.search.resolver import build_search_resolver
from stock_scraper.services.billing import NoopBilling
from stock_scraper.services.job_log import NoopJobLogger
from stock_scraper.utils.logger import get_logger, setup_logging

log = get_logger(__name__)

TICKERS_REQUIRED_MESSAGE = "tickers array is required and must contain at least one ticker symbol"

# The sibling scrape service may take a while on heavy quote pages.
LEGACY_JOB_TIMEOUT_MS = 120000

class StandaloneScrapeOptions(BaseModel):
    """Options accepted by `/scrape-stocks`; markdown is saved unless disabled."""

    model_config = ConfigDict(populate_by_name=True)

    markdown: bool = True
    extract: bool = False
    saveMarkdown: bool = True
    extraction_schema: Optional[Dict[str, Any]] = Field(default=None, alias="schema")


_orchestrator: Optional[StockScrapeOrchestrator] = None


def get_legacy_orchestrator() -> StockScrapeOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        settings = get_settings()
        _orchestrator = build_orchestrator(
            settings,
            engine=SyncScrapeEngine(build_engine_fetcher(settings)),
            resolver=build_search_resolver(settings),
            billing=NoopBilling(),
            job_logger=NoopJobLogger(),
        )
    return _orchestrator


def format_legacy_result(result) -> Dict[str, Any]:
    if not isinstance(result, StockScrapeSuccess):
        return {"ticker": result.ticker, "success": False, "error": result.error}

    data: Dict[str, Any] = {
        "ticker": result.ticker,
        "url": result.data.url,
        "exchange": result.data.exchange,
        "symbol": result.data.symbol,
    }
    if result.data.markdown is not None:
        data["markdown"] = result.data.markdown
    if result.data.markdown_file is not None:
        data["markdownFile"] = result.data.markdown_file
    if result.data.extract is not None:
        data["extractedData"] = result.data.extract
    return {"ticker": result.ticker, "success": True, "data": data}


legacy_app = FastAPI(title="Stock Scraper API (standalone)", version="1.0.0")


@legacy_app.on_event("startup")
async def startup_event():
    setup_logging()
    settings = get_settings()
    log.info("Standalone stock scraper using scrape service {}", settings.engine_base_url)
    log.info("Output directory: {}", settings.output_dir)


@legacy_app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "stock-scraper-api",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@legacy_app.post("/scrape-stocks")
async def scrape_stocks(
    body: Optional[Dict[str, Any]] = Body(default=None),
    orchestrator: StockScrapeOrchestrator = Depends(get_legacy_orchestrator),
):
    body = body or {}
    tickers = body.get("tickers")
    if (
        not isinstance(tickers, list)
        or not tickers
        or not all(isinstance(ticker, str) and ticker.strip() for ticker in tickers)
    ):
        return JSONResponse(status_code=400, content={"success": False, "error": TICKERS_REQUIRED_MESSAGE})

    try:
        parsed = StandaloneScrapeOptions.model_validate(body.get("options") or {})
    except ValidationError as exc:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid options", "details": error_details(exc.errors())},
        )

    options = ScrapeRequestOptions(
        want_markdown=parsed.markdown,
        want_extract=parsed.extract,
        persist_markdown=parsed.saveMarkdown,
        extraction_schema=parsed.extraction_schema,
        timeout_ms=LEGACY_JOB_TIMEOUT_MS,
        strategy=SearchStrategy.INVESTINGCOM_API,
    )
    tickers = [ticker.strip() for ticker in tickers]
    log.info("Processing {} ticker(s): {}", len(tickers), ", ".join(tickers))

    try:
        outcome = await orchestrator.scrape_batch(tickers, options, TeamContext(origin="standalone"))
    except Exception as exc:  # noqa: BLE001
        log.exception("Error in /scrape-stocks: {}", exc)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    return {
        "success": True,
        "summary": outcome.summary.to_dict(),
        "results": [format_legacy_result(result) for result in outcome.results],
    }


def main(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    uvicorn.run(legacy_app, host="0.0.0.0", port=settings.legacy_port)


if __name__ == "__main__":
    main()
