"""
In-memory registry of jobs seen by this worker and their lifecycle
(queued -> printing -> printed/failed, or fetch_failed/abandoned at admission).

Used for logging context and the status endpoints; it is not persisted.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from remote_print.printing.models import PrintJob

logger = logging.getLogger(__name__)

QUEUED = "queued"
PRINTING = "printing"
PRINTED = "printed"
FAILED = "failed"
FETCH_FAILED = "fetch_failed"
ABANDONED = "abandoned"

TERMINAL_STATUSES = (PRINTED, FAILED, FETCH_FAILED, ABANDONED)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobRegistry:
    def __init__(self, max_jobs: int = 200) -> None:
        self.max_jobs = max_jobs
        self._jobs: Dict[int, Dict[str, Any]] = {}
        # Reentrant so pruning can run while a caller already holds the lock
        self._lock = threading.RLock()

    def _prune_if_needed(self) -> None:
        with self._lock:
            while len(self._jobs) > self.max_jobs:
                oldest_id = min(self._jobs.values(), key=lambda j: j["created_at"])["id"]
                self._jobs.pop(oldest_id, None)

    def record(self, job: PrintJob, status: str, **meta: Any) -> None:
        """Create or replace the entry for `job` (ids are reused across batches by some sources)."""
        now = _utc_now_iso()
        entry: Dict[str, Any] = {
            "id": job.job_id,
            "file": job.file,
            "status": status,
            "created_at": now,
            "updated_at": now,
        }
        entry.update(meta)
        with self._lock:
            self._jobs[job.job_id] = entry
            self._prune_if_needed()

    def update(self, job_id: Optional[int], **updates: Any) -> None:
        if job_id is None:
            return
        with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                return
            job.update(updates)
            job["updated_at"] = _utc_now_iso()

    def get(self, job_id: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            job = self._jobs.get(job_id)
            return dict(job) if job else None

    def list(self) -> List[Dict[str, Any]]:
        """Return all entries, newest first."""
        with self._lock:
            items = [dict(v) for v in self._jobs.values()]
        items.sort(key=lambda j: j["created_at"], reverse=True)
        return items

    def counts(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        with self._lock:
            for job in self._jobs.values():
                out[job["status"]] = out.get(job["status"], 0) + 1
        return out


__all__ = [
    "ABANDONED",
    "FAILED",
    "FETCH_FAILED",
    "JobRegistry",
    "PRINTED",
    "PRINTING",
    "QUEUED",
    "TERMINAL_STATUSES",
]
