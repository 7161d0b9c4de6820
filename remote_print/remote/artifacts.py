"""
Artifact fetcher: makes a job's document available on local storage.

Documents live in a public-read object-storage bucket addressed by file
reference. Local storage is a flat folder with one file per reference,
overwritten on every download.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote

import requests

from remote_print.core.config import WorkerConfig, ensure_dir
from remote_print.core.errors import FetchError, PermanentFetchError, TransientFetchError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def _is_transient_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in (408, 429)


class ArtifactFetcher:
    def __init__(
        self,
        storage_url: str,
        bucket: str,
        download_dir: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 300.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.storage_url = storage_url.rstrip("/")
        self.bucket = bucket
        self.download_dir = Path(ensure_dir(download_dir))
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers: Dict[str, str] = {}
        if api_key:
            self.headers = {"apikey": api_key, "Authorization": f"Bearer {api_key}"}

    @classmethod
    def from_config(cls, config: WorkerConfig) -> "ArtifactFetcher":
        return cls(
            config.storage_url,
            config.storage_bucket,
            config.download_dir,
            api_key=config.storage_key,
            timeout=config.fetch_timeout_seconds,
        )

    def url_for(self, file_reference: str) -> str:
        return f"{self.storage_url}/storage/v1/object/public/{self.bucket}/{quote(file_reference)}"

    def local_path(self, file_reference: str) -> Path:
        """
        Path of the local copy for `file_reference`.

        The name is the percent-encoded reference, so distinct references never
        share a file and path separators cannot leave the download folder.

        Raises:
            PermanentFetchError if the reference has no usable file name.
        """
        name = quote(file_reference or "", safe="")
        if name in ("", ".", ".."):
            raise PermanentFetchError(file_reference, "file reference has no usable file name")
        return self.download_dir / name

    def ensure_local(self, file_reference: str) -> Path:
        """
        Return the local path for `file_reference`, downloading it first when absent.

        Raises:
            FetchError (TransientFetchError or PermanentFetchError) when the download fails.
        """
        path = self.local_path(file_reference)
        if path.is_file():
            logger.debug("Using local copy of %s at %s", file_reference, path)
            return path
        return self.fetch(file_reference)

    def fetch(self, file_reference: str) -> Path:
        """
        Download `file_reference` into the download folder, replacing any previous copy.

        Raises:
            TransientFetchError for timeouts, connection failures and 5xx/408/429 responses.
            PermanentFetchError for any other unsuccessful response.
        """
        path = self.local_path(file_reference)
        url = self.url_for(file_reference)
        logger.info(f"Attempting to download file: {file_reference}")
        tmp_path = path.with_name(path.name + ".part")
        try:
            with self.session.get(url, headers=self.headers, timeout=self.timeout, stream=True) as response:
                if not response.ok:
                    message = f"HTTP request failed with status code: {response.status_code}"
                    logger.error(f"Failed to download file: {file_reference}, status code: {response.status_code}")
                    if _is_transient_status(response.status_code):
                        raise TransientFetchError(file_reference, message, response.status_code)
                    raise PermanentFetchError(file_reference, message, response.status_code)
                with tmp_path.open("wb") as f:
                    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
            os.replace(tmp_path, path)
        except FetchError:
            raise
        except requests.Timeout as e:
            logger.error(f"Download operation timed out for file {file_reference}: {e}")
            raise TransientFetchError(file_reference, f"timed out: {e}") from e
        except requests.RequestException as e:
            logger.error(f"HTTP request error while downloading file {file_reference}: {e}")
            raise TransientFetchError(file_reference, str(e)) from e
        except OSError as e:
            logger.error(f"Cannot write downloaded file {file_reference} to {path}: {e}")
            raise TransientFetchError(file_reference, f"local write failed: {e}") from e
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass

        logger.info(f"File downloaded successfully: {file_reference}")
        return path


__all__ = ["ArtifactFetcher"]
