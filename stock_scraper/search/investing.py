"""
Investing.com search - direct finance API strategy
==================================================

Resolves a ticker with a single call to the Investing.com search API and
builds the canonical quote URL from the first returned quote.
"""

from typing import Any, Dict, Optional

import httpx

from stock_scraper.core.errors import NotFoundError, SearchTimeoutError, UpstreamError
from stock_scraper.core.fetcher import Fetcher
from stock_scraper.core.models import ResolvedStock
from stock_scraper.utils.logger import get_logger

log = get_logger(__name__)

INVESTING_COM_API_URL = "https://api.investing.com/api/search/v2/search"
INVESTING_COM_BASE_URL = "https://www.investing.com"


class InvestingComSearch:
    """
    Client for the Investing.com quote search endpoint
    """

    source = "investing.com"

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        api_url: str = INVESTING_COM_API_URL,
        base_url: str = INVESTING_COM_BASE_URL,
        timeout: float = 10.0,
    ):
        self.fetcher = fetcher or Fetcher(timeout=timeout)
        self.api_url = api_url
        self.base_url = base_url.rstrip("/")

    async def search(self, ticker: str) -> ResolvedStock:
        """
        Look up a ticker and return its canonical quote page

        Raises:
            NotFoundError: no quote matches the ticker, or the API answered 404
            SearchTimeoutError: the lookup exceeded its deadline
            UpstreamError: any other transport or HTTP failure
        """
        log.info("Searching Investing.com for ticker {}", ticker)

        try:
            payload = await self.fetcher.get_json(self.api_url, params={"q": ticker})
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 404:
                log.error("Ticker not found on Investing.com: {}", ticker)
                raise NotFoundError(f"Ticker not found: {ticker}", ticker=ticker) from exc
            log.error("Investing.com returned HTTP {} for {}", status, ticker)
            raise UpstreamError(
                f"Failed to search Investing.com: HTTP {status}",
                ticker=ticker,
                source=self.source,
                status_code=status,
            ) from exc
        except httpx.TimeoutException as exc:
            log.error("Request timeout when searching Investing.com for {}", ticker)
            raise SearchTimeoutError(f"Timeout searching for ticker: {ticker}", ticker=ticker) from exc
        except httpx.RequestError as exc:
            log.error("Transport error searching Investing.com for {}: {}", ticker, exc)
            raise UpstreamError(
                f"Failed to search Investing.com: {exc}",
                ticker=ticker,
                source=self.source,
            ) from exc
        except ValueError as exc:
            raise UpstreamError(
                f"Failed to search Investing.com: invalid JSON response ({exc})",
                ticker=ticker,
                source=self.source,
            ) from exc

        quote = self._first_quote(payload)
        if quote is None:
            log.warning("No results found for ticker {}", ticker)
            raise NotFoundError(f"No results found for ticker: {ticker}", ticker=ticker)

        resolved = ResolvedStock(
            url=f"{self.base_url}{quote.get('url', '')}",
            ticker=ticker.upper(),
            exchange=quote.get("exchange") or "N/A",
            description=quote.get("description") or "",
            symbol=quote.get("symbol") or ticker.upper(),
        )
        log.info(
            "Found {} on Investing.com: {} ({})",
            ticker,
            resolved.url,
            resolved.exchange,
        )
        return resolved

    @staticmethod
    def _first_quote(payload: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(payload, dict):
            return None
        quotes = payload.get("quotes") or []
        for quote in quotes:
            if isinstance(quote, dict) and quote.get("url"):
                return quote
        return None
