import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Exchange symbols: letters and digits, optionally with class or market
# separators such as BRK/B, BRK.B, RDS-A or 7203:JP.
TICKER_PATTERN = re.compile(r"^[A-Z0-9^][A-Z0-9.\-/:=^]{0,31}$")


class ScrapeStockOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    markdown: bool = True
    extract: bool = False
    saveMarkdown: bool = False
    extraction_schema: Optional[Dict[str, Any]] = Field(default=None, alias="schema")


class ScrapeStockRequest(BaseModel):
    tickers: List[str] = Field(..., min_length=1)
    searchMode: Optional[Literal["investingcom-api", "firecrawl-search"]] = None
    options: ScrapeStockOptions = Field(default_factory=ScrapeStockOptions)
    timeout: int = Field(default=30000, ge=1000, le=300000)
    origin: str = "api"

    @field_validator("tickers")
    @classmethod
    def normalise_tickers(cls, value: List[str]) -> List[str]:
        cleaned = [ticker.strip().upper() for ticker in value]
        if any(not ticker for ticker in cleaned):
            raise ValueError("tickers must not contain blank symbols")
        invalid = [ticker for ticker in cleaned if not TICKER_PATTERN.match(ticker)]
        if invalid:
            raise ValueError(f"invalid ticker symbol(s): {', '.join(invalid)}")
        return cleaned


class BatchSummaryModel(BaseModel):
    total: int
    successful: int
    failed: int


class StockDataModel(BaseModel):
    url: str
    exchange: str
    symbol: str
    markdown: Optional[str] = None
    markdownFile: Optional[str] = None
    extract: Optional[Dict[str, Any]] = None


class StockScrapeResultModel(BaseModel):
    ticker: str
    success: bool
    data: Optional[StockDataModel] = None
    error: Optional[str] = None


class ScrapeStockResponse(BaseModel):
    success: bool
    summary: BatchSummaryModel
    results: List[StockScrapeResultModel]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: Optional[List[Dict[str, Any]]] = None


def error_details(errors) -> List[Dict[str, Any]]:
    """Reduce pydantic error entries to JSON-safe `{loc, msg}` pairs."""
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": str(error.get("msg", ""))}
        for error in errors
    ]
