# tests/test_config.py

from __future__ import annotations

import os
from pathlib import Path

import pytest

from digiteam.config import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("DIGITEAM_"):
            monkeypatch.delenv(name)


def test_defaults() -> None:
    s = Settings.from_env()
    assert s.app_name == "digiteam"
    assert s.backend == "sqlite"
    assert s.store_db_path == Path(".local/digiteam") / "portal.sqlite3"
    assert s.due_soon_limit == 5
    assert s.firebase_api_key is None


def test_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DIGITEAM_BACKEND", "Firebase")
    monkeypatch.setenv("DIGITEAM_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DIGITEAM_FIREBASE_PROJECT_ID", " demo ")
    monkeypatch.setenv("DIGITEAM_DUE_SOON_LIMIT", "not-a-number")
    monkeypatch.setenv("DIGITEAM_POLL_INTERVAL_SECONDS", "0.5")

    s = Settings.from_env()
    assert s.backend == "firebase"
    assert s.store_db_path == tmp_path / "portal.sqlite3"
    assert s.firebase_project_id == "demo"
    assert s.due_soon_limit == 5
    assert s.poll_interval_seconds == 0.5


def test_unknown_backend_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DIGITEAM_BACKEND", "postgres")
    with pytest.raises(ValueError, match="DIGITEAM_BACKEND"):
        Settings.from_env()
