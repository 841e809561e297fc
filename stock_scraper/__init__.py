"""Stock ticker scraping service."""

__version__ = "1.0.0"
