"""
Error taxonomy for the remote print worker.

Every error raised by this package derives from RemotePrintError so loops can
log and continue without catching unrelated failures.
"""

from __future__ import annotations

from typing import Optional


class RemotePrintError(RuntimeError):
    """Base error for the remote print worker."""


class ConfigError(RemotePrintError):
    """Raised when the worker configuration cannot be loaded or validated."""


class ParseError(RemotePrintError):
    """Raised when an inbound message is not valid JSON or does not match the envelope."""


class FetchError(RemotePrintError):
    """
    Raised when a document artifact cannot be made available locally.

    `transient` distinguishes network/timeout/server-side failures from
    not-found/denied responses. Both are terminal for the job.
    """

    transient = False

    def __init__(self, file_reference: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"{file_reference}: {message}")
        self.file_reference = file_reference
        self.status_code = status_code


class TransientFetchError(FetchError):
    transient = True


class PermanentFetchError(FetchError):
    transient = False


class RenderError(RemotePrintError):
    """Raised when a document cannot be opened or a page cannot be rasterized."""


class PrinterError(RemotePrintError):
    """Raised when the print device cannot be reached or rejects a document."""


class QueueClosedError(RemotePrintError):
    """Raised when pushing onto a job queue that no longer accepts admissions."""


__all__ = [
    "ConfigError",
    "FetchError",
    "ParseError",
    "PermanentFetchError",
    "PrinterError",
    "QueueClosedError",
    "RemotePrintError",
    "RenderError",
    "TransientFetchError",
]
