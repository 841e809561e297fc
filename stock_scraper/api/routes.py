from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from stock_scraper.api.schemas import ErrorResponse, ScrapeStockRequest, ScrapeStockResponse
from stock_scraper.core.config import Settings, get_settings
from stock_scraper.core.models import (
    BYPASS_TEAM_ID,
    ScrapeRequestOptions,
    SearchStrategy,
    TeamContext,
    TeamFlags,
)
from stock_scraper.core.orchestrator import StockScrapeOrchestrator
from stock_scraper.core.pipeline import build_orchestrator
from stock_scraper.utils.logger import get_logger

log = get_logger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)

_orchestrator: Optional[StockScrapeOrchestrator] = None


def get_orchestrator() -> StockScrapeOrchestrator:
    """Process-wide orchestrator, built on first use."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator(get_settings())
    return _orchestrator


def get_team_context(request: Request, settings: Settings = Depends(get_settings)) -> TeamContext:
    if not settings.auth_enabled:
        team_id = BYPASS_TEAM_ID
        api_key_id = None
    else:
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        record = settings.api_keys.get(token.strip()) if scheme.lower() == "bearer" else None
        if record is None:
            raise HTTPException(status_code=401, detail="Unauthorized: invalid or missing API key")
        team_id = record.team_id
        api_key_id = record.api_key_id

    return TeamContext(
        team_id=team_id,
        api_key_id=api_key_id,
        flags=TeamFlags(force_zdr=team_id in settings.zdr_teams),
    )


def _rate_limit() -> str:
    return get_settings().rate_limit


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "stock-scraper-api",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post(
    "/v1/scrape-stock",
    responses={200: {"model": ScrapeStockResponse}, 400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
@limiter.limit(_rate_limit)
async def scrape_stock(
    request: Request,
    payload: ScrapeStockRequest,
    context: TeamContext = Depends(get_team_context),
    settings: Settings = Depends(get_settings),
    orchestrator: StockScrapeOrchestrator = Depends(get_orchestrator),
):
    strategy = SearchStrategy.parse(payload.searchMode) if payload.searchMode else settings.default_search_mode
    options = ScrapeRequestOptions(
        want_markdown=payload.options.markdown,
        want_extract=payload.options.extract,
        persist_markdown=payload.options.saveMarkdown,
        extraction_schema=payload.options.extraction_schema,
        timeout_ms=payload.timeout,
        strategy=strategy,
    )
    context = TeamContext(
        team_id=context.team_id,
        api_key_id=context.api_key_id,
        origin=payload.origin,
        flags=context.flags,
    )

    try:
        outcome = await orchestrator.scrape_batch(payload.tickers, options, context)
    except Exception as exc:  # noqa: BLE001
        log.exception("Error in scrape_stock controller: {}", exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(exc) or "Internal server error"},
        )

    return outcome.to_response()


__all__ = ["router", "limiter", "get_orchestrator", "get_team_context"]
