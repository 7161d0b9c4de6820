"""
Status reporting back to the job source.

Events are delivered at most once: a send that fails (for example because the
connection is being re-established) is logged and dropped, never retried.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from remote_print.printing.models import JOB_COMPLETED, JOB_FAILED, JOB_RECEIVED, StatusEvent

logger = logging.getLogger(__name__)


class StatusReporter:
    def __init__(self, send: Callable[[str], bool]) -> None:
        """`send` delivers one text frame and returns False when it could not."""
        self._send = send

    def emit(self, event: StatusEvent) -> bool:
        try:
            delivered = bool(self._send(event.to_json()))
        except Exception as e:
            logger.warning(f"Dropping {event.type} for {event.job_ids}: {e}")
            return False
        if delivered:
            logger.info("Sent job update %s: %s", event.type, ", ".join(str(i) for i in event.job_ids) or "-")
        else:
            logger.warning("Dropping %s for %s: connection unavailable", event.type, event.job_ids)
        return delivered

    def received(self, job_ids: Iterable[int]) -> bool:
        return self.emit(StatusEvent(type=JOB_RECEIVED, job_ids=list(job_ids)))

    def completed(self, job_id: int) -> bool:
        return self.emit(StatusEvent(type=JOB_COMPLETED, job_ids=[job_id]))

    def failed(self, job_id: int) -> bool:
        return self.emit(StatusEvent(type=JOB_FAILED, job_ids=[job_id]))


__all__ = ["StatusReporter"]
