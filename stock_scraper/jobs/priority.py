"""Team-load based job priority (lower value runs first)."""

from __future__ import annotations

import math
from collections import defaultdict
from typing import DefaultDict, Set


class JobPriorityTracker:
    """
    Track in-flight jobs per team and derive a submission priority.

    Teams under `bucket_limit` active jobs get the base priority; beyond that
    the priority value grows with the backlog so busy teams yield to idle ones.
    """

    def __init__(self, bucket_limit: int = 25, load_modifier: float = 0.5):
        self.bucket_limit = bucket_limit
        self.load_modifier = load_modifier
        self._active: DefaultDict[str, Set[str]] = defaultdict(set)

    def active_jobs(self, team_id: str) -> int:
        return len(self._active.get(team_id, ()))

    def get_job_priority(self, team_id: str, base_priority: int = 10) -> int:
        count = self.active_jobs(team_id)
        if count < self.bucket_limit:
            return base_priority
        return base_priority + math.ceil((count - self.bucket_limit + 1) * self.load_modifier)

    def job_started(self, team_id: str, job_id: str) -> None:
        self._active[team_id].add(job_id)

    def job_finished(self, team_id: str, job_id: str) -> None:
        jobs = self._active.get(team_id)
        if jobs is None:
            return
        jobs.discard(job_id)
        if not jobs:
            del self._active[team_id]
