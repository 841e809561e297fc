"""
Stock scraper error hierarchy for clear classification in logs and API responses.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class StockScrapeError(Exception):
    """Base class for all stock scraper errors."""

    def __init__(
        self,
        message: str,
        *,
        ticker: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.ticker = ticker
        self.stage = stage
        self.details = details or {}

    def as_dict(self) -> Dict[str, Any]:
        """Serializable representation for logs/API."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "ticker": self.ticker,
            "stage": self.stage,
            "details": self.details,
        }


class InvalidInputError(StockScrapeError):
    """Raised for malformed requests: empty ticker lists, no output formats."""

    def __init__(self, message: str, *, field: Optional[str] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.field = field
        if field is not None:
            self.details["field"] = field


class NotFoundError(StockScrapeError):
    """Raised when a ticker cannot be resolved to a quote page."""


class TimeoutFailure(StockScrapeError):
    """Raised when an upstream lookup or a scrape job exceeds its bound."""

    def __init__(self, message: str, *, timeout_ms: Optional[int] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.timeout_ms = timeout_ms
        if timeout_ms is not None:
            self.details["timeout_ms"] = timeout_ms


class SearchTimeoutError(TimeoutFailure):
    """Finance search or web search did not answer in time."""


class JobTimeoutError(TimeoutFailure):
    """Scrape job did not reach a terminal state in time."""


class BlockedError(StockScrapeError):
    """Raised when a resolved URL matches the scraping blocklist."""

    def __init__(self, message: str, *, url: Optional[str] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.url = url
        if url is not None:
            self.details["url"] = url


class JobFailedError(StockScrapeError):
    """Raised when the scrape-job engine reports a failed job."""

    def __init__(self, message: str, *, job_id: Optional[str] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.job_id = job_id
        if job_id is not None:
            self.details["job_id"] = job_id


class UpstreamError(StockScrapeError):
    """Raised for unclassified transport failures against external services."""

    def __init__(
        self,
        message: str,
        *,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ) -> None:
        super().__init__(message, **kwargs)
        self.source = source
        self.status_code = status_code
        if source is not None:
            self.details["source"] = source
        if status_code is not None:
            self.details["status_code"] = status_code


class PersistenceError(StockScrapeError):
    """Raised during writes to the output directory or the local ledgers."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(message, **kwargs)
        self.path = path
        self.operation = operation
        if path is not None:
            self.details["path"] = path
        if operation is not None:
            self.details["operation"] = operation


class ConfigError(StockScrapeError):
    """Raised on missing/invalid configuration values."""

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        section: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(message, **kwargs)
        self.key = key
        self.section = section
        if key is not None:
            self.details["key"] = key
        if section is not None:
            self.details["section"] = section
