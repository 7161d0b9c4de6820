"""
Core utilities for the remote print worker.

This package groups helpers used across the worker:
- config: paths, JSON load/save, WorkerConfig validation with env overrides
- logging: job-context aware logging filter/formatter and root logger config
- errors: the error taxonomy shared by all components

Exports are explicit to keep static analyzers (e.g., Pyright) happy.
"""

from .config import (
    ENV_PREFIX,
    WorkerConfig,
    default_config_path,
    default_download_path,
    ensure_dir,
    get_config_path,
    get_download_path,
    load_config,
    load_worker_config,
    save_config,
)
from .errors import (
    ConfigError,
    FetchError,
    ParseError,
    PermanentFetchError,
    PrinterError,
    QueueClosedError,
    RemotePrintError,
    RenderError,
    TransientFetchError,
)
from .logging import (
    JobContextFilter,
    JsonFormatter,
    configure_logging,
    job_context,
)

__all__ = [
    # config
    "ENV_PREFIX",
    "WorkerConfig",
    "default_config_path",
    "default_download_path",
    "ensure_dir",
    "get_config_path",
    "get_download_path",
    "load_config",
    "load_worker_config",
    "save_config",
    # errors
    "ConfigError",
    "FetchError",
    "ParseError",
    "PermanentFetchError",
    "PrinterError",
    "QueueClosedError",
    "RemotePrintError",
    "RenderError",
    "TransientFetchError",
    # logging
    "JobContextFilter",
    "JsonFormatter",
    "configure_logging",
    "job_context",
]
