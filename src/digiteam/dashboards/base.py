# src/digiteam/dashboards/base.py

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.errors import PortalError
from ..core.routes import Route
from ..core.state import AppState
from ..session.context import Session
from ..tasks.task_api import TaskMutationAPI
from ..tasks.task_store import LiveCollection, TaskStore
from ..users.directory import UserDirectory

logger = logging.getLogger(__name__)


class Dashboard:
    """
    A mounted view instance.

    Owns its user directory cache and its live subscriptions; nothing survives an
    unmount, and every mount rebuilds from the remote store. unmount() releases
    each subscription exactly once no matter how many times it is called (explicit
    navigation, sign-out notification, shutdown).
    """

    route: Route = Route.ENTRY

    def __init__(self, state: AppState) -> None:
        self._state = state
        self.directory = UserDirectory(state.documents)
        self.tasks = TaskStore(state.documents)
        self.api = TaskMutationAPI(state.documents, lambda: state.session.session)
        self.mounted = False
        self._unmounted = False
        self._teardown: list[Callable[[], None]] = []

    # subclasses add their extra live collections here
    def _live_collections(self) -> list[LiveCollection]:
        return [self.tasks]

    async def _after_subscribe(self) -> None:
        return None

    @property
    def session(self) -> Session | None:
        return self._state.session.session

    def notify(self, text: str) -> None:
        self._state.notifier.notify(text)

    async def mount(self) -> bool:
        if self.mounted:
            return True
        if self._unmounted:
            raise RuntimeError("Dashboard instances are single-use; create a new one")

        session = self.session
        if session is None:
            # No identity: go back to the entry surface.
            logger.info("%s mount without session; redirecting", type(self).__name__)
            self._unmounted = True
            self._state.navigate(Route.ENTRY)
            return False

        self._teardown.append(self._state.session.observe(self._on_session))

        try:
            await self.directory.load(session)
        except Exception:
            logger.exception("User directory load failed")
            self.notify("Could not load the user directory; names may show as Unknown.")

        try:
            for coll in self._live_collections():
                if self._unmounted:
                    break
                await coll.start()
        except BaseException:
            logger.exception("%s subscribe failed; tearing down", type(self).__name__)
            self.unmount()
            raise

        if self._unmounted:
            # Session ended while we were subscribing.
            self._release_collections()
            return False

        await self._after_subscribe()
        self.mounted = True
        logger.info("%s mounted uid=%s", type(self).__name__, session.uid)
        return True

    def unmount(self) -> None:
        if self._unmounted:
            return
        self._unmounted = True
        self.mounted = False
        self._release_collections()
        for remove in self._teardown:
            remove()
        self._teardown.clear()
        logger.info("%s unmounted", type(self).__name__)

    def _release_collections(self) -> None:
        for coll in self._live_collections():
            coll.release()

    def _on_session(self, session: Session | None) -> None:
        if session is None:
            self.unmount()

    async def _guarded(self, action: str, coro) -> bool:
        """Run a mutation; failures become a transient notice instead of an exception."""
        try:
            return bool(await coro)
        except PortalError as e:
            logger.info("%s failed: %s", action, e)
            self.notify(str(e))
            return False
