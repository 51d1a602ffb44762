# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio

from digiteam.core.state import AppState

from .fakes import (
    PASSWORD,
    USERS,
    FailingDocumentStore,
    RecordingNotifier,
    build_state,
    seed_users,
)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the dashboards.

    A SimpleNamespace rather than the real config keeps tests independent of the
    environment.
    """
    return SimpleNamespace(
        app_name="digiteam-test",
        backend="memory",
        data_dir=tmp_path,
        store_db_path=tmp_path / "portal.sqlite3",
        poll_interval_seconds=0.01,
        http_timeout_seconds=5.0,
        due_soon_limit=5,
        upcoming_events_limit=5,
    )


@pytest.fixture()
def accounts() -> dict[str, tuple[str, str]]:
    return {u["email"]: (uid, PASSWORD) for uid, u in USERS.items()}


@pytest.fixture()
def documents() -> FailingDocumentStore:
    # Behaves exactly like InMemoryDocumentStore until a test sets fail_on.
    return FailingDocumentStore()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture()
async def state(settings, documents, accounts, notifier) -> AppState:
    """One client over a shared in-memory backend with the seeded users."""
    await seed_users(documents)
    return build_state(settings, documents, accounts, notifier)
