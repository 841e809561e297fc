"""Generic web-search strategy for resolving tickers to Investing.com pages."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

import httpx

from stock_scraper.core.errors import NotFoundError, SearchTimeoutError, UpstreamError
from stock_scraper.core.fetcher import Fetcher
from stock_scraper.core.models import ResolvedStock
from stock_scraper.utils.logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class SearchHit:
    url: str
    title: str = ""
    description: str = ""


class WebSearchClient(ABC):
    """Free-text web search returning ranked hits."""

    @abstractmethod
    async def search(self, query: str, limit: int) -> List[SearchHit]:
        raise NotImplementedError


class FirecrawlSearchClient(WebSearchClient):
    """Uses the scrape engine's `/v1/search` endpoint."""

    source = "firecrawl-search"

    def __init__(self, fetcher: Fetcher):
        self.fetcher = fetcher

    async def search(self, query: str, limit: int) -> List[SearchHit]:
        try:
            payload = await self.fetcher.post_json("/v1/search", {"query": query, "limit": limit})
        except httpx.TimeoutException as exc:
            raise SearchTimeoutError(f"Timeout running web search: {query}") from exc
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                f"Web search failed: HTTP {exc.response.status_code}",
                source=self.source,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.RequestError as exc:
            raise UpstreamError(f"Web search failed: {exc}", source=self.source) from exc

        if not isinstance(payload, dict) or payload.get("success") is False:
            error = payload.get("error") if isinstance(payload, dict) else "malformed response"
            raise UpstreamError(f"Web search failed: {error}", source=self.source)

        hits: List[SearchHit] = []
        for item in payload.get("data") or []:
            if not isinstance(item, dict) or not item.get("url"):
                continue
            hits.append(
                SearchHit(
                    url=item["url"],
                    title=item.get("title") or "",
                    description=item.get("description") or "",
                )
            )
        return hits[:limit]


def host_matches(url: str, domain: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    domain = domain.lower()
    return host == domain or host.endswith("." + domain)


class WebSearchStockFinder:
    """Resolve a ticker by searching the web and keeping the first target-domain hit."""

    def __init__(
        self,
        client: WebSearchClient,
        target_domain: str = "investing.com",
        limit: int = 5,
    ):
        self.client = client
        self.target_domain = target_domain
        self.limit = limit

    def build_query(self, ticker: str) -> str:
        return f"{ticker} stock {self.target_domain}"

    async def search(self, ticker: str) -> ResolvedStock:
        query = self.build_query(ticker)
        log.info("Running web search for {}: {!r}", ticker, query)
        hits = await self.client.search(query, self.limit)

        match: Optional[SearchHit] = next(
            (hit for hit in hits if host_matches(hit.url, self.target_domain)),
            None,
        )
        if match is None:
            log.warning("Web search returned no {} results for {}", self.target_domain, ticker)
            raise NotFoundError(f"No Investing.com results found for ticker: {ticker}", ticker=ticker)

        return ResolvedStock(
            url=match.url,
            ticker=ticker.upper(),
            exchange="N/A",
            description=match.description,
            symbol=ticker.upper(),
        )


__all__ = [
    "FirecrawlSearchClient",
    "SearchHit",
    "WebSearchClient",
    "WebSearchStockFinder",
    "host_matches",
]
