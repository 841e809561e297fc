"""Persistent batch job log."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from stock_scraper.core.storage import append_json_line


@dataclass
class JobLogEntry:
    job_id: str
    team_id: str
    success: bool
    message: str
    num_docs: int
    time_taken: float
    url: str
    origin: str
    credits_billed: int
    zero_data_retention: bool = False
    mode: str = "stock-scrape"
    docs: List[Dict[str, Any]] = field(default_factory=list)


class JobLogger(ABC):
    @abstractmethod
    async def record(self, entry: JobLogEntry) -> None:
        ...


class JobLogWriter(JobLogger):
    """Append job log entries as JSON lines under the data directory."""

    def __init__(self, data_dir: Path | str):
        self.path = Path(data_dir) / "job_log.jsonl"

    async def record(self, entry: JobLogEntry) -> None:
        payload = asdict(entry)
        if entry.zero_data_retention:
            payload["docs"] = []
        payload["logged_at"] = datetime.now(timezone.utc).isoformat()
        await asyncio.to_thread(append_json_line, self.path, payload)


class NoopJobLogger(JobLogger):
    async def record(self, entry: JobLogEntry) -> None:
        return None


def load_job_log(path: Path) -> List[Dict[str, Any]]:
    """Read back the job log, oldest first. Missing file yields an empty list."""

    if not path.exists():
        return []
    entries: List[Dict[str, Any]] = []
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if line:
                entries.append(json.loads(line))
    return entries


__all__ = ["JobLogEntry", "JobLogWriter", "JobLogger", "NoopJobLogger", "load_job_log"]
