"""
Config utilities for the remote print worker.

Responsibilities:
- Resolve config/download paths with environment and XDG support
- Provide JSON load/save helpers for the worker's config file
- Validate the merged file + environment values into a WorkerConfig that is
  loaded once at startup and passed to the components that need it
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from remote_print.core.errors import ConfigError

ENV_PREFIX = "REMOTEPRINT_"


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/remoteprint/config.json
    2) ~/.config/remoteprint/config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "remoteprint" / "config.json")
    return str(Path.home() / ".config" / "remoteprint" / "config.json")


def default_download_path() -> str:
    """
    Resolve the default download folder using:
    1) $XDG_DATA_HOME/remoteprint/downloads
    2) ~/.local/share/remoteprint/downloads
    """
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return str(Path(xdg) / "remoteprint" / "downloads")
    return str(Path.home() / ".local" / "share" / "remoteprint" / "downloads")


def get_config_path() -> str:
    """
    Return the config path honoring REMOTEPRINT_CONFIG_PATH override.
    """
    return os.environ.get(ENV_PREFIX + "CONFIG_PATH", default_config_path())


def get_download_path() -> str:
    """
    Return the download folder honoring REMOTEPRINT_DOWNLOAD_PATH override.
    """
    return os.environ.get(ENV_PREFIX + "DOWNLOAD_PATH", default_download_path())


def ensure_dir(path: str) -> str:
    """
    Ensure a directory exists and return the path.
    """
    Path(path).mkdir(parents=True, exist_ok=True)
    return path


class WorkerConfig(BaseModel):
    """Settings for one worker process. Unknown keys in the config file are ignored."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    # Job source
    endpoint_url: str = "ws://localhost:8080"
    endpoint_identity: str = "16"
    connect_timeout_seconds: float = Field(default=10.0, gt=0)
    reconnect_interval_seconds: float = Field(default=4.0, gt=0)

    # Artifact store
    storage_url: str = "http://localhost:54321"
    storage_bucket: str = "print-pdf"
    storage_key: Optional[str] = None
    fetch_timeout_seconds: float = Field(default=300.0, gt=0)
    download_dir: str = Field(default_factory=get_download_path)

    # Printer
    printer_type: str = "windows"
    printer_name: str = ""
    printer_profile: Optional[str] = None
    usb_vendor_id: str = "0x04b8"
    usb_product_id: str = "0x0e28"
    network_ip: str = ""
    network_port: int = 9100
    serial_port: str = ""
    serial_baudrate: int = 19200
    receipt_width: int = Field(default=512, gt=0)
    render_dpi: int = Field(default=600, gt=0)

    # Worker
    queue_capacity: int = Field(default=10, gt=0)
    job_pacing_seconds: float = Field(default=1.0, ge=0)
    jobs_max: int = Field(default=200, gt=0)

    # Status endpoints
    health_host: str = "127.0.0.1"
    health_port: Optional[int] = None

    @field_validator("printer_type")
    @classmethod
    def _normalize_printer_type(cls, v: str) -> str:
        return str(v or "").strip().lower()

    @field_validator("endpoint_url", "storage_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return str(v).rstrip("/")

    @property
    def endpoint(self) -> str:
        """Full connection URL for this worker's identity."""
        return f"{self.endpoint_url}/{self.endpoint_identity}"


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    """
    Collect REMOTEPRINT_<FIELD> overrides for every WorkerConfig field.
    Empty values are skipped so an unset variable never clears a file value.
    """
    env = os.environ if environ is None else environ
    out: dict[str, Any] = {}
    for name in WorkerConfig.model_fields:
        value = env.get(ENV_PREFIX + name.upper())
        if value is not None and value != "":
            out[name] = value
    return out


def load_config(path: Optional[str] = None) -> Optional[dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_config(data: dict[str, Any], path: Optional[str] = None) -> None:
    """
    Save the JSON config, creating parent directories as needed.

    Writes atomically by using a temporary file and os.replace().
    Raises OSError on I/O failures.
    """
    cfg_path = Path(path or get_config_path())
    cfg_dir = cfg_path.parent
    cfg_dir.mkdir(parents=True, exist_ok=True)

    tmp_path = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, cfg_path)


def load_worker_config(path: Optional[str] = None, **overrides: Any) -> WorkerConfig:
    """
    Build the WorkerConfig from the config file, environment and explicit overrides
    (in increasing precedence).

    Raises:
        ConfigError if the file is unreadable or any value fails validation.
    """
    try:
        data = load_config(path) or {}
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config file: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object")

    merged: dict[str, Any] = dict(data)
    merged.update(env_overrides())
    merged.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return WorkerConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid config: {e}") from e


__all__ = [
    "ENV_PREFIX",
    "WorkerConfig",
    "default_config_path",
    "default_download_path",
    "ensure_dir",
    "env_overrides",
    "get_config_path",
    "get_download_path",
    "load_config",
    "load_worker_config",
    "save_config",
]
