"""
Scrape-job engine adapters
==========================

The engine that fetches and renders pages is external. Two transports are
supported behind the same interface:

- FirecrawlJobEngine: asynchronous batch-scrape jobs, polled until terminal
- SyncScrapeEngine: single synchronous scrape call per job (legacy service)
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator

import httpx

from stock_scraper.core.errors import JobFailedError, JobTimeoutError, UpstreamError
from stock_scraper.core.fetcher import Fetcher
from stock_scraper.core.models import Document, ScrapeJobSpec
from stock_scraper.utils.logger import get_logger

log = get_logger(__name__)

TERMINAL_SUCCESS = {"completed"}
TERMINAL_FAILURE = {"failed", "cancelled"}


class ScrapeJobEngine(ABC):
    """submit → await_completion → remove"""

    @abstractmethod
    async def submit(self, spec: ScrapeJobSpec) -> str:
        """Enqueue a job and return its id without waiting for it."""

    @abstractmethod
    async def await_completion(self, job_id: str) -> Document:
        """Suspend until the job is terminal; raise JobFailedError on failure."""

    @abstractmethod
    async def remove(self, job_id: str) -> None:
        """Drop the job record from the engine."""

    def forget(self, job_id: str) -> None:
        """Drop local bookkeeping for a job that stays in the engine."""


def build_scrape_payload(spec: ScrapeJobSpec) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "formats": [fmt.value for fmt in spec.formats],
        "timeout": spec.timeout_ms,
    }
    if spec.wants_extract and spec.extraction_schema is not None:
        payload["extract"] = {"schema": spec.extraction_schema}
    if spec.zero_data_retention:
        payload["zeroDataRetention"] = True
    return payload


@contextmanager
def _engine_errors(action: str, job_id: str) -> Iterator[None]:
    try:
        yield
    except httpx.TimeoutException as exc:
        raise JobTimeoutError(f"Scrape engine timed out during {action}", details={"job_id": job_id}) from exc
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        raise UpstreamError(
            f"Scrape engine {action} failed: HTTP {status}",
            source="scrape-engine",
            status_code=status,
            details={"job_id": job_id},
        ) from exc
    except httpx.RequestError as exc:
        raise UpstreamError(
            f"Scrape engine {action} failed: {exc}",
            source="scrape-engine",
            details={"job_id": job_id},
        ) from exc


class FirecrawlJobEngine(ScrapeJobEngine):
    """Batch-scrape API: one single-URL batch job per ticker."""

    def __init__(self, fetcher: Fetcher, poll_interval: float = 1.0):
        self.fetcher = fetcher
        self.poll_interval = poll_interval
        self._remote_ids: Dict[str, str] = {}

    async def submit(self, spec: ScrapeJobSpec) -> str:
        payload = build_scrape_payload(spec)
        payload["urls"] = [spec.url]
        with _engine_errors("submit", spec.job_id):
            response = await self.fetcher.post_json("/v1/batch/scrape", payload)

        if not isinstance(response, dict) or not response.get("success", True) or not response.get("id"):
            error = response.get("error") if isinstance(response, dict) else "malformed response"
            raise UpstreamError(f"Scrape engine rejected job: {error}", source="scrape-engine")

        self._remote_ids[spec.job_id] = str(response["id"])
        log.debug("Submitted job {} as engine job {}", spec.job_id, response["id"])
        return spec.job_id

    async def await_completion(self, job_id: str) -> Document:
        remote_id = self._remote_id(job_id)
        while True:
            with _engine_errors("status", job_id):
                status = await self.fetcher.get_json(f"/v1/batch/scrape/{remote_id}")

            state = str(status.get("status") or "").lower() if isinstance(status, dict) else ""
            if state in TERMINAL_SUCCESS:
                documents = status.get("data") or []
                if not documents:
                    raise JobFailedError("Scrape job completed without a document", job_id=job_id)
                return Document.from_payload(documents[0])
            if state in TERMINAL_FAILURE:
                self.forget(job_id)
                error = status.get("error") or f"job {state}"
                raise JobFailedError(f"Scrape job failed: {error}", job_id=job_id)

            await asyncio.sleep(self.poll_interval)

    async def remove(self, job_id: str) -> None:
        remote_id = self._remote_ids.pop(job_id, None)
        if remote_id is None:
            return
        with _engine_errors("remove", job_id):
            await self.fetcher.delete(f"/v1/batch/scrape/{remote_id}")

    def forget(self, job_id: str) -> None:
        self._remote_ids.pop(job_id, None)

    def _remote_id(self, job_id: str) -> str:
        try:
            return self._remote_ids[job_id]
        except KeyError:
            raise JobFailedError(f"Unknown scrape job: {job_id}", job_id=job_id) from None


class SyncScrapeEngine(ScrapeJobEngine):
    """Legacy transport: the scrape runs inside the completion call."""

    def __init__(self, fetcher: Fetcher):
        self.fetcher = fetcher
        self._pending: Dict[str, ScrapeJobSpec] = {}

    async def submit(self, spec: ScrapeJobSpec) -> str:
        self._pending[spec.job_id] = spec
        return spec.job_id

    async def await_completion(self, job_id: str) -> Document:
        # The scrape runs inside this call; nothing is left to track afterwards.
        spec = self._pending.pop(job_id, None)
        if spec is None:
            raise JobFailedError(f"Unknown scrape job: {job_id}", job_id=job_id)

        payload = build_scrape_payload(spec)
        payload["url"] = spec.url
        with _engine_errors("scrape", job_id):
            response = await self.fetcher.post_json("/v1/scrape", payload)

        if not isinstance(response, dict) or not response.get("success"):
            error = response.get("error") if isinstance(response, dict) else None
            raise JobFailedError(f"Firecrawl scraping failed: {error or 'Unknown error'}", job_id=job_id)
        return Document.from_payload(response.get("data") or {})

    async def remove(self, job_id: str) -> None:
        self._pending.pop(job_id, None)

    def forget(self, job_id: str) -> None:
        self._pending.pop(job_id, None)


__all__ = [
    "FirecrawlJobEngine",
    "ScrapeJobEngine",
    "SyncScrapeEngine",
    "build_scrape_payload",
]
