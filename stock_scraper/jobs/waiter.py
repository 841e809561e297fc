"""Wait for a submitted scrape job to reach a terminal state."""

from __future__ import annotations

import asyncio
from typing import Optional

from stock_scraper.core.config import JobCleanupPolicy
from stock_scraper.core.errors import JobTimeoutError
from stock_scraper.core.models import Document, JobHandle
from stock_scraper.jobs.engine import ScrapeJobEngine
from stock_scraper.jobs.priority import JobPriorityTracker
from stock_scraper.utils.logger import get_logger

log = get_logger(__name__)


class JobWaiter:
    def __init__(
        self,
        engine: ScrapeJobEngine,
        priority: Optional[JobPriorityTracker] = None,
        cleanup_policy: JobCleanupPolicy = JobCleanupPolicy.SUCCESS_ONLY,
    ):
        self.engine = engine
        self.priority = priority
        self.cleanup_policy = cleanup_policy

    async def wait(self, handle: JobHandle, timeout_ms: int) -> Document:
        """
        Block the calling task until the job finishes or `timeout_ms` elapses.

        Raises:
            JobTimeoutError: deadline reached before a terminal state
            JobFailedError: the engine reported failure
        """
        succeeded = False
        try:
            document = await asyncio.wait_for(
                self.engine.await_completion(handle.job_id),
                timeout=timeout_ms / 1000,
            )
            succeeded = True
        except asyncio.TimeoutError as exc:
            raise JobTimeoutError(
                f"Scrape job timed out after {timeout_ms}ms",
                timeout_ms=timeout_ms,
                details={"job_id": handle.job_id},
            ) from exc
        finally:
            if self.priority is not None:
                self.priority.job_finished(handle.team_id, handle.job_id)
            if succeeded or self.cleanup_policy is JobCleanupPolicy.ALWAYS:
                await self._cleanup(handle)
            else:
                # The job stays in the engine; only local tracking is dropped.
                self.engine.forget(handle.job_id)

        return document

    async def _cleanup(self, handle: JobHandle) -> None:
        try:
            await self.engine.remove(handle.job_id)
        except Exception as exc:  # noqa: BLE001
            log.warning("Failed to remove scrape job {}: {}", handle.job_id, exc)
