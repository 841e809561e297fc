from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from stock_scraper.api.routes import limiter, router
from stock_scraper.api.schemas import error_details
from stock_scraper.core.config import get_settings
from stock_scraper.utils.logger import get_logger, setup_logging

log = get_logger(__name__)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = error_details(exc.errors())
    log.warning("Rejected invalid request to {}: {}", request.url.path, details)
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request body", "details": details},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc.detail)})


app = FastAPI(
    title="Stock Scraper API",
    description="Resolve stock tickers to quote pages and scrape them through the scrape-job engine",
    version="1.0.0",
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)


@app.on_event("startup")
async def startup_event():
    setup_logging()
    # Resolve configuration once; an invalid default search mode fails startup here.
    settings = get_settings()
    log.info(
        "Stock scraper API ready: default search mode {}, engine {}",
        settings.default_search_mode.value,
        settings.engine_base_url,
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
