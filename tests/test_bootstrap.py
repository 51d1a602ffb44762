# tests/test_bootstrap.py

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from digiteam.backends.firebase import FirebaseIdentityProvider, FirestoreDocumentStore
from digiteam.backends.memory import InMemoryDocumentStore
from digiteam.backends.sqlite_store import SqliteDocumentStore
from digiteam.cli.bootstrap import close_state, create_initial_state
from digiteam.config import Settings

from .fakes import RecordingNotifier


def _settings(tmp_path: Path, backend: str) -> Settings:
    return Settings(
        app_name="digiteam-test",
        log_level="DEBUG",
        backend=backend,
        poll_interval_seconds=0.01,
        data_dir=tmp_path,
        store_db_path=tmp_path / "db" / "portal.sqlite3",
        firebase_api_key="k",
        firebase_project_id="demo",
        http_timeout_seconds=1.0,
        due_soon_limit=5,
        upcoming_events_limit=5,
    )


@pytest.mark.asyncio
async def test_backend_selection(tmp_path: Path) -> None:
    memory = create_initial_state(settings=_settings(tmp_path, "memory"), notifier=RecordingNotifier())
    assert isinstance(memory.documents, InMemoryDocumentStore)
    await close_state(memory)

    sqlite = create_initial_state(settings=_settings(tmp_path, "sqlite"))
    assert isinstance(sqlite.documents, SqliteDocumentStore)
    assert (tmp_path / "db" / "portal.sqlite3").exists()
    await close_state(sqlite)

    firebase = create_initial_state(settings=_settings(tmp_path, "firebase"))
    assert isinstance(firebase.identity, FirebaseIdentityProvider)
    assert isinstance(firebase.documents, FirestoreDocumentStore)
    assert len(firebase.closeables) == 2
    await close_state(firebase)
    assert firebase.closeables == []


def test_firebase_requires_keys(tmp_path: Path) -> None:
    settings = replace(_settings(tmp_path, "firebase"), firebase_api_key=None)
    with pytest.raises(RuntimeError, match="API key"):
        create_initial_state(settings=settings)
