"""Domain types shared by the search, job and orchestration layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from stock_scraper.core.errors import ConfigError, InvalidInputError

BYPASS_TEAM_ID = "bypass"


def normalise_ticker(raw: str) -> str:
    if raw is None:
        raise InvalidInputError("Ticker value is required", field="tickers")
    candidate = raw.strip().upper()
    if not candidate:
        raise InvalidInputError("Ticker value must not be blank", field="tickers")
    return candidate


class SearchStrategy(str, Enum):
    """How a ticker is turned into a canonical quote page."""

    INVESTINGCOM_API = "investingcom-api"
    FIRECRAWL_SEARCH = "firecrawl-search"

    @classmethod
    def parse(cls, value: Union[str, "SearchStrategy"]) -> "SearchStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ConfigError(
                f"Unknown search mode '{value}'. Expected one of: {allowed}",
                key="search.default_mode",
                section="search",
            ) from exc


class OutputFormat(str, Enum):
    MARKDOWN = "markdown"
    EXTRACT = "extract"


@dataclass(frozen=True)
class ResolvedStock:
    url: str
    ticker: str
    exchange: str
    description: str
    symbol: str


@dataclass(frozen=True)
class ScrapeRequestOptions:
    """Per-batch options, applied uniformly to every ticker."""

    want_markdown: bool = True
    want_extract: bool = False
    persist_markdown: bool = False
    extraction_schema: Optional[Dict[str, Any]] = None
    timeout_ms: int = 30000
    strategy: SearchStrategy = SearchStrategy.INVESTINGCOM_API

    def formats(self) -> List[OutputFormat]:
        formats: List[OutputFormat] = []
        if self.want_markdown:
            formats.append(OutputFormat.MARKDOWN)
        if self.want_extract:
            formats.append(OutputFormat.EXTRACT)
        return formats


@dataclass(frozen=True)
class TeamFlags:
    force_zdr: bool = False
    unblocked_domains: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class TeamContext:
    """Caller identity and policy shared read-only by all tickers of a batch."""

    team_id: str = BYPASS_TEAM_ID
    api_key_id: Optional[int] = None
    origin: str = "api"
    flags: TeamFlags = field(default_factory=TeamFlags)

    @property
    def zero_data_retention(self) -> bool:
        return self.flags.force_zdr

    @property
    def is_bypass(self) -> bool:
        return self.team_id == BYPASS_TEAM_ID


@dataclass(frozen=True)
class ScrapeJobSpec:
    job_id: str
    url: str
    formats: Tuple[OutputFormat, ...]
    team_id: str
    origin: str
    priority: int
    timeout_ms: int
    extraction_schema: Optional[Dict[str, Any]] = None
    zero_data_retention: bool = False
    bypass_billing: bool = True
    team_flags: Optional[TeamFlags] = None
    api_key_id: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.formats:
            raise InvalidInputError(
                "At least one format (markdown or extract) must be enabled",
                field="options",
            )

    @property
    def wants_extract(self) -> bool:
        return OutputFormat.EXTRACT in self.formats


@dataclass(frozen=True)
class JobHandle:
    job_id: str
    url: str
    team_id: str = BYPASS_TEAM_ID
    zero_data_retention: bool = False


@dataclass(frozen=True)
class Document:
    """Output of a finished scrape job."""

    markdown: Optional[str] = None
    extract: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Document":
        extract = payload.get("extract")
        if extract is None:
            extract = payload.get("json")
        return cls(
            markdown=payload.get("markdown"),
            extract=extract,
            metadata=payload.get("metadata") or {},
        )


@dataclass(frozen=True)
class StockData:
    url: str
    exchange: str
    symbol: str
    markdown: Optional[str] = None
    markdown_file: Optional[str] = None
    extract: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "url": self.url,
            "exchange": self.exchange,
            "symbol": self.symbol,
        }
        if self.markdown is not None:
            payload["markdown"] = self.markdown
        if self.markdown_file is not None:
            payload["markdownFile"] = self.markdown_file
        if self.extract is not None:
            payload["extract"] = self.extract
        return payload


@dataclass(frozen=True)
class StockScrapeSuccess:
    ticker: str
    data: StockData

    success = True

    def to_dict(self) -> Dict[str, Any]:
        return {"ticker": self.ticker, "success": True, "data": self.data.to_dict()}


@dataclass(frozen=True)
class StockScrapeFailure:
    ticker: str
    error: str
    error_type: str = "StockScrapeError"

    success = False

    def to_dict(self) -> Dict[str, Any]:
        return {"ticker": self.ticker, "success": False, "error": self.error}


StockScrapeResult = Union[StockScrapeSuccess, StockScrapeFailure]


@dataclass(frozen=True)
class BatchSummary:
    total: int
    successful: int
    failed: int

    @classmethod
    def from_results(cls, results: List[StockScrapeResult]) -> "BatchSummary":
        successful = sum(1 for result in results if isinstance(result, StockScrapeSuccess))
        return cls(total=len(results), successful=successful, failed=len(results) - successful)

    def to_dict(self) -> Dict[str, int]:
        return {"total": self.total, "successful": self.successful, "failed": self.failed}


@dataclass(frozen=True)
class BatchOutcome:
    job_id: str
    results: List[StockScrapeResult]
    summary: BatchSummary

    @property
    def successes(self) -> List[StockScrapeSuccess]:
        return [result for result in self.results if isinstance(result, StockScrapeSuccess)]

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "summary": self.summary.to_dict(),
            "results": [result.to_dict() for result in self.results],
        }


__all__ = [
    "BYPASS_TEAM_ID",
    "BatchOutcome",
    "BatchSummary",
    "Document",
    "JobHandle",
    "OutputFormat",
    "ResolvedStock",
    "ScrapeJobSpec",
    "ScrapeRequestOptions",
    "SearchStrategy",
    "StockData",
    "StockScrapeFailure",
    "StockScrapeResult",
    "StockScrapeSuccess",
    "TeamContext",
    "TeamFlags",
    "normalise_ticker",
]
