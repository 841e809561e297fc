"""
HTTP Fetcher - shared async JSON client
=======================================

Thin wrapper over httpx used by every outbound integration:
- Async requests via httpx
- Browser-like default headers
- Exponential backoff retries (tenacity); 429/5xx replayed for idempotent methods only
- Timeout management
"""

from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from stock_scraper.utils.logger import get_logger

log = get_logger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

RETRYABLE_STATUS_CODES = {429, 502, 503, 504}

# Only these may be replayed after the server has seen the request.
IDEMPOTENT_METHODS = {"GET", "HEAD", "OPTIONS", "DELETE", "PUT"}


def _retry_predicate(method: str):
    idempotent = method.upper() in IDEMPOTENT_METHODS

    def _is_retryable(exc: BaseException) -> bool:
        if isinstance(exc, httpx.ConnectError):
            return True
        if not idempotent:
            return False
        if isinstance(exc, httpx.RemoteProtocolError):
            return True
        if isinstance(exc, httpx.HTTPStatusError):
            return exc.response.status_code in RETRYABLE_STATUS_CODES
        return False

    return _is_retryable


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    log.warning(
        "Request failed (attempt {}): {}. Retrying in {:.2f}s...",
        retry_state.attempt_number,
        exc,
        retry_state.next_action.sleep if retry_state.next_action else 0.0,
    )


class Fetcher:
    """
    Async HTTP client with retries, shared by search and engine clients
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 15.0,
        max_retries: int = 3,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        backoff_multiplier: float = 0.5,
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_multiplier = backoff_multiplier
        client_kwargs: Dict[str, Any] = {
            "timeout": httpx.Timeout(timeout),
            "follow_redirects": True,
            "headers": {"User-Agent": DEFAULT_USER_AGENT, **(headers or {})},
        }
        if base_url:
            client_kwargs["base_url"] = base_url
        if transport is not None:
            client_kwargs["transport"] = transport
        self.client = httpx.AsyncClient(**client_kwargs)
        log.debug("Fetcher initialized for {} timeout={}s max_retries={}", base_url or "<absolute>", timeout, max_retries)

    async def close(self):
        """Close the underlying HTTP client"""
        await self.client.aclose()

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Issue a request, retrying transient failures.

        Connection failures are retried for every method; 429/5xx answers and
        dropped connections only for idempotent methods, so a POST that the
        server may already have accepted is never sent twice.

        Raises:
            httpx.HTTPStatusError: for non-2xx responses once retries are exhausted
            httpx.TimeoutException: when the request deadline expires
            httpx.RequestError: for other transport failures
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff_multiplier, max=8),
            retry=retry_if_exception(_retry_predicate(method)),
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self.client.request(method, url, **kwargs)
                response.raise_for_status()
        return response

    async def get_json(self, url: str, **kwargs) -> Any:
        response = await self.request("GET", url, **kwargs)
        return response.json()

    async def post_json(self, url: str, payload: Dict[str, Any], **kwargs) -> Any:
        response = await self.request("POST", url, json=payload, **kwargs)
        return response.json()

    async def delete(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
