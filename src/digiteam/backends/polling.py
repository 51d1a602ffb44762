# src/digiteam/backends/polling.py

from __future__ import annotations

"""
Polling subscription.

For backends without server push (SQLite file, Firestore REST) a subscription is a
small loop that:
- fetches the ordered snapshot every interval_seconds (or earlier when woken),
- delivers it to the listener only when it differs from the last delivery,
- keeps the last good snapshot on fetch errors (no retry storm, no clearing).

To stop it, call unsubscribe(); it is safe to call more than once.
"""

import asyncio
import contextlib
import copy
import logging
from collections.abc import Awaitable, Callable

from ..core.ports import Document, SnapshotListener

logger = logging.getLogger(__name__)

SnapshotFetcher = Callable[[], Awaitable[list[Document] | None]]
# Returns the current ordered snapshot, or None when it is known to be unchanged.


class PollingSubscription:
    def __init__(
            self,
            fetch: SnapshotFetcher,
            listener: SnapshotListener,
            *,
            interval_seconds: float = 2.0,
            label: str = "",
    ) -> None:
        self._fetch = fetch
        self._listener = listener
        self._interval = max(0.01, float(interval_seconds))
        self._label = label
        self._wake = asyncio.Event()
        self._active = True
        self._last: list[Document] | None = None
        self._task: asyncio.Task[None] | None = None
        self.failures = 0

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> PollingSubscription:
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"poll:{self._label}"
        )
        return self

    def wake(self) -> None:
        """Poll now instead of waiting for the rest of the interval."""
        self._wake.set()

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._task is not None:
            self._task.cancel()
        logger.debug("Polling subscription stopped label=%s", self._label)

    async def _run(self) -> None:
        while self._active:
            self._wake.clear()
            try:
                docs = await self._fetch()
            except asyncio.CancelledError:
                raise
            except Exception:
                self.failures += 1
                logger.exception("Snapshot poll failed label=%s (keeping last snapshot)", self._label)
                docs = None

            if docs is not None and self._active and docs != self._last:
                self._last = docs
                try:
                    self._listener(copy.deepcopy(docs))
                except Exception:
                    logger.exception("Snapshot listener failed label=%s", self._label)

            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
