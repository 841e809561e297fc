"""Denylist check applied to resolved URLs before any billable work."""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urlparse

from stock_scraper.core.errors import BlockedError
from stock_scraper.core.models import TeamFlags

BLOCKLISTED_URL_MESSAGE = (
    "This website is not supported for scraping. "
    "Contact support if you believe it should be enabled for your account."
)


def _host(url: str) -> str:
    parsed = urlparse(url if "://" in url else f"http://{url}")
    host = (parsed.hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def _domain_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


class BlockListGuard:
    """Reject URLs whose host is, or sits under, a blocked domain."""

    def __init__(self, domains: Iterable[str] = ()):
        self.domains = tuple(domain.lower().lstrip(".") for domain in domains if domain)

    def is_blocked(self, url: str, flags: Optional[TeamFlags] = None) -> bool:
        host = _host(url)
        if not host:
            return False
        exempt = {domain.lower() for domain in (flags.unblocked_domains if flags else ())}
        if any(_domain_matches(host, domain) for domain in exempt):
            return False
        return any(_domain_matches(host, domain) for domain in self.domains)

    def check(self, url: str, flags: Optional[TeamFlags] = None) -> None:
        if self.is_blocked(url, flags):
            raise BlockedError("Could not scrape URL: " + BLOCKLISTED_URL_MESSAGE, url=url)


__all__ = ["BLOCKLISTED_URL_MESSAGE", "BlockListGuard"]
