"""Merge search metadata and the scraped document into per-ticker data."""

from __future__ import annotations

from typing import Optional

from stock_scraper.core.errors import PersistenceError
from stock_scraper.core.models import Document, ResolvedStock, ScrapeRequestOptions, StockData
from stock_scraper.core.storage import MarkdownStore
from stock_scraper.utils.logger import get_logger

log = get_logger(__name__)


class ResultAssembler:
    def __init__(self, store: Optional[MarkdownStore] = None):
        self.store = store

    async def assemble(
        self,
        resolved: ResolvedStock,
        document: Document,
        options: ScrapeRequestOptions,
    ) -> StockData:
        markdown = document.markdown if options.want_markdown and document.markdown else None
        extract = document.extract if options.want_extract and document.extract is not None else None

        markdown_file = None
        if markdown is not None and options.persist_markdown:
            markdown_file = await self._persist(resolved.ticker, markdown)

        return StockData(
            url=resolved.url,
            exchange=resolved.exchange,
            symbol=resolved.symbol,
            markdown=markdown,
            markdown_file=markdown_file,
            extract=extract,
        )

    async def _persist(self, ticker: str, markdown: str) -> Optional[str]:
        if self.store is None:
            log.warning("[{}] Markdown persistence requested but no output directory is configured", ticker)
            return None
        try:
            filename = await self.store.write_markdown(ticker, markdown)
        except PersistenceError as exc:
            log.error("[{}] Failed to save markdown: {}", ticker, exc.message)
            return None
        log.info("[{}] Saved markdown to {}", ticker, filename)
        return filename


__all__ = ["ResultAssembler"]
