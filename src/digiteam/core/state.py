# src/digiteam/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .ports import DocumentStore, IdentityProvider, Notifier
from .routes import Navigate, Route, no_navigation

if TYPE_CHECKING:
    from ..dashboards.base import Dashboard
    from ..session.context import SessionContext


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    identity: IdentityProvider
    documents: DocumentStore
    session: SessionContext
    notifier: Notifier

    route: Route = Route.ENTRY
    dashboard: Dashboard | None = None
    navigate: Navigate = no_navigation

    # Backend objects that need an explicit close on shutdown (HTTP clients).
    closeables: list[Any] = field(default_factory=list)
