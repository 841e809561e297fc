"""Core types and errors exposed for external consumers."""

from .errors import StockScrapeError
from .models import BatchOutcome, ScrapeRequestOptions, SearchStrategy, TeamContext

__all__ = [
    "BatchOutcome",
    "ScrapeRequestOptions",
    "SearchStrategy",
    "StockScrapeError",
    "TeamContext",
]
