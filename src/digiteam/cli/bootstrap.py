# src/digiteam/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the selected backend (memory / sqlite / firebase) into AppState.
"""

from __future__ import annotations

import logging

from ..backends.firebase import FirebaseIdentityProvider, FirestoreDocumentStore
from ..backends.memory import InMemoryDocumentStore, InMemoryIdentityProvider
from ..backends.sqlite_store import SqliteDocumentStore, SqliteIdentityProvider
from ..config import get_settings
from ..core.ports import DocumentStore, IdentityProvider, Notifier
from ..core.state import AppState
from ..session.context import SessionContext

logger = logging.getLogger(__name__)


class LogNotifier:
    """Fallback notifier when no connector supplies one."""

    def notify(self, text: str) -> None:
        logger.warning("notice: %s", text)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_db_path.parent.mkdir(parents=True, exist_ok=True)


def build_backend(settings) -> tuple[IdentityProvider, DocumentStore, list]:
    """Return (identity, documents, closeables) for settings.backend."""
    backend = str(getattr(settings, "backend", "memory")).lower()

    if backend == "memory":
        return InMemoryIdentityProvider(), InMemoryDocumentStore(), []

    if backend == "sqlite":
        _ensure_local_dirs(settings)
        poll = float(getattr(settings, "poll_interval_seconds", 1.0))
        return (
            SqliteIdentityProvider(settings.store_db_path),
            SqliteDocumentStore(settings.store_db_path, poll_interval_seconds=poll),
            [],
        )

    if backend == "firebase":
        timeout = float(getattr(settings, "http_timeout_seconds", 10.0))
        identity = FirebaseIdentityProvider(settings.firebase_api_key or "", timeout_seconds=timeout)
        documents = FirestoreDocumentStore(
            settings.firebase_project_id or "",
            token=lambda: identity.id_token,
            poll_interval_seconds=float(getattr(settings, "poll_interval_seconds", 2.0)),
            timeout_seconds=timeout,
        )
        return identity, documents, [documents, identity]

    raise ValueError(f"Unknown backend: {backend!r}")


def create_initial_state(*, settings=None, notifier: Notifier | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings(). Call from inside the
    running event loop: backends schedule deliveries on it.
    """
    if settings is None:
        settings = get_settings()

    identity, documents, closeables = build_backend(settings)
    logger.info("Backend: %s", getattr(settings, "backend", "memory"))

    return AppState(
        settings=settings,
        identity=identity,
        documents=documents,
        session=SessionContext(identity, documents),
        notifier=notifier or LogNotifier(),
        closeables=closeables,
    )


async def close_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    dashboard = state.dashboard
    if dashboard is not None:
        try:
            dashboard.unmount()
        except Exception:
            logger.exception("Dashboard unmount failed.")
        state.dashboard = None

    state.session.close()

    for obj in state.closeables:
        try:
            await obj.aclose()
        except Exception:
            logger.debug("Close failed for %r.", obj, exc_info=True)
    state.closeables.clear()
