"""Strategy dispatch for ticker → quote page resolution."""

from __future__ import annotations

from typing import Dict, Optional, Protocol

from stock_scraper.core.config import Settings
from stock_scraper.core.errors import ConfigError
from stock_scraper.core.fetcher import Fetcher
from stock_scraper.core.models import ResolvedStock, SearchStrategy
from stock_scraper.search.investing import InvestingComSearch
from stock_scraper.search.web_search import FirecrawlSearchClient, WebSearchStockFinder


class StockFinder(Protocol):
    async def search(self, ticker: str) -> ResolvedStock:
        ...


class SearchResolver:
    """Route each lookup to the finder registered for the batch's strategy."""

    def __init__(self, finders: Dict[SearchStrategy, StockFinder]):
        self._finders = dict(finders)

    @property
    def strategies(self):
        return frozenset(self._finders)

    async def resolve(self, ticker: str, strategy: SearchStrategy) -> ResolvedStock:
        finder = self._finders.get(strategy)
        if finder is None:
            raise ConfigError(f"Search mode '{strategy.value}' is not available", key="searchMode")
        return await finder.search(ticker)


def build_search_resolver(
    settings: Settings,
    engine_fetcher: Optional[Fetcher] = None,
    search_fetcher: Optional[Fetcher] = None,
) -> SearchResolver:
    """Wire both strategies from settings."""

    search_fetcher = search_fetcher or Fetcher(
        timeout=settings.search_timeout_seconds,
        max_retries=settings.search_max_retries,
    )
    finders: Dict[SearchStrategy, StockFinder] = {
        SearchStrategy.INVESTINGCOM_API: InvestingComSearch(
            fetcher=search_fetcher,
            api_url=settings.investing_api_url,
            base_url=settings.investing_base_url,
        ),
    }
    if engine_fetcher is not None:
        finders[SearchStrategy.FIRECRAWL_SEARCH] = WebSearchStockFinder(
            FirecrawlSearchClient(engine_fetcher),
            target_domain=settings.target_domain,
            limit=settings.web_search_limit,
        )
    return SearchResolver(finders)


__all__ = ["SearchResolver", "StockFinder", "build_search_resolver"]
