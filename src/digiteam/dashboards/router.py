# src/digiteam/dashboards/router.py

"""
Route switching.

navigate() is synchronous so the session context can call it from inside a
listener; it only records the target and tears down a dashboard that no longer
matches. sync() does the async part (mounting the dashboard for the current route).
"""

from __future__ import annotations

import logging

from ..core.routes import Route
from ..core.state import AppState
from .base import Dashboard
from .faculty import FacultyDashboard
from .member import MemberDashboard

logger = logging.getLogger(__name__)

_DASHBOARDS: dict[Route, type[Dashboard]] = {
    Route.FACULTY_DASHBOARD: FacultyDashboard,
    Route.MEMBER_DASHBOARD: MemberDashboard,
}


class Router:
    def __init__(self, state: AppState) -> None:
        self._state = state
        state.navigate = self.navigate
        state.session.set_navigator(self.navigate)

    @property
    def route(self) -> Route:
        return self._state.route

    def navigate(self, route: Route) -> None:
        state = self._state
        if route == state.route and (state.dashboard is None or state.dashboard.route == route):
            return
        logger.debug("navigate %s -> %s", state.route.value, route.value)
        state.route = route
        current = state.dashboard
        if current is not None and current.route != route:
            current.unmount()
            state.dashboard = None

    async def sync(self) -> Dashboard | None:
        """Mount the dashboard for the current route (if any). Returns the mounted one."""
        state = self._state
        cls = _DASHBOARDS.get(state.route)
        if cls is None:
            return None
        current = state.dashboard
        if current is not None and current.mounted and isinstance(current, cls):
            return current

        if current is not None:
            # a stale or half-mounted instance must not keep its subscriptions
            current.unmount()

        dashboard = cls(state)
        state.dashboard = dashboard
        try:
            ok = await dashboard.mount()
        except BaseException:
            if state.dashboard is dashboard:
                state.dashboard = None
            raise
        if not ok:
            if state.dashboard is dashboard:
                state.dashboard = None
            return None
        return dashboard

    def shutdown(self) -> None:
        dashboard = self._state.dashboard
        if dashboard is not None:
            dashboard.unmount()
            self._state.dashboard = None
