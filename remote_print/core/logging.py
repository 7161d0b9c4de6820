"""
Logging utilities for the remote print worker.

- JobContextFilter attaches the id of the job being printed (thread-local) to log records
- JsonFormatter for structured logs when REMOTEPRINT_JSON_LOGS=true
- configure_logging() initializes root logging with journald or console
"""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

_context = threading.local()


def current_job_id() -> Optional[int]:
    return getattr(_context, "job_id", None)


@contextmanager
def job_context(job_id: Optional[int]) -> Iterator[None]:
    """
    Tag log records emitted by the current thread with `job_id` for the duration of the block.
    """
    previous = current_job_id()
    _context.job_id = job_id
    try:
        yield
    finally:
        _context.job_id = previous


class JobContextFilter(logging.Filter):
    """
    Attach the current job id to log records ("-" outside of a job).
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        job_id = current_job_id()
        record.job_id = "-" if job_id is None else str(job_id)
        return True


class JsonFormatter(logging.Formatter):
    """
    Minimal JSON formatter that includes timestamp, level, logger, message and job_id.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        from json import dumps

        base = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "job_id": getattr(record, "job_id", "-"),
        }
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return dumps(base, ensure_ascii=False)


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure root logging for the worker.

    Behavior:
    - Sets root logger to `level` (INFO by default)
    - Clears any existing handlers to avoid duplicates on repeated calls
    - Chooses JSON or plain formatter based on REMOTEPRINT_JSON_LOGS
    - Prefer systemd's JournalHandler, fallback to StreamHandler
    - Adds JobContextFilter so formatters can reference %(job_id)s

    Returns the configured root logger.
    """
    root = logging.getLogger()
    root.setLevel(level)

    root.handlers = []

    json_logs = os.environ.get("REMOTEPRINT_JSON_LOGS", "false").lower() in ("1", "true", "yes")
    formatter: logging.Formatter
    if json_logs:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s %(threadName)s job=%(job_id)s %(message)s")

    # Prefer systemd journal when available
    try:
        from systemd.journal import JournalHandler  # type: ignore

        handler: logging.Handler = JournalHandler()
        handler.setFormatter(formatter)
    except Exception:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

    handler.addFilter(JobContextFilter())
    root.addHandler(handler)

    # websocket-client logs every frame at DEBUG; keep it at WARNING unless asked
    logging.getLogger("websocket").setLevel(max(level, logging.WARNING))

    return root


__all__ = ["JobContextFilter", "JsonFormatter", "configure_logging", "current_job_id", "job_context"]
