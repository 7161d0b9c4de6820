# Ensure the repository root is on sys.path so `remote_print` can be imported in tests.

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    # This file lives at: <repo_root>/tests/conftest.py
    # We want to add <repo_root> to sys.path (if not already present).
    here = Path(__file__).resolve()
    repo_root = here.parent.parent
    repo_str = str(repo_root)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_syspath()


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    # Keep config/download lookups away from the real home directory
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    for var in ("REMOTEPRINT_CONFIG_PATH", "REMOTEPRINT_DOWNLOAD_PATH", "REMOTEPRINT_JSON_LOGS"):
        monkeypatch.delenv(var, raising=False)
