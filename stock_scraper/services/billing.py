"""Credit billing for successful ticker scrapes."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from stock_scraper.core.storage import append_json_line
from stock_scraper.utils.logger import get_logger

log = get_logger(__name__)


class BillingReporter(ABC):
    @abstractmethod
    async def charge(self, team_id: str, credits: int, api_key_id: Optional[int] = None) -> None:
        """Debit `credits` from the team; raise on failure."""


class CreditLedger(BillingReporter):
    """Append-only JSONL ledger of credit charges."""

    def __init__(self, data_dir: Path | str):
        self.path = Path(data_dir) / "credit_ledger.jsonl"

    async def charge(self, team_id: str, credits: int, api_key_id: Optional[int] = None) -> None:
        if credits <= 0:
            raise ValueError("credits must be positive")
        record = {
            "team_id": team_id,
            "credits": credits,
            "api_key_id": api_key_id,
            "billed_at": datetime.now(timezone.utc).isoformat(),
        }
        await asyncio.to_thread(append_json_line, self.path, record)
        log.debug("Recorded {} credits for team {}", credits, team_id)


class NoopBilling(BillingReporter):
    """Used by deployments without a billing ledger (legacy service)."""

    async def charge(self, team_id: str, credits: int, api_key_id: Optional[int] = None) -> None:
        return None


__all__ = ["BillingReporter", "CreditLedger", "NoopBilling"]
