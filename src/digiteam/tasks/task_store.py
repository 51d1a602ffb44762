# src/digiteam/tasks/task_store.py

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

from ..core.ports import Document, DocumentStore, OrderBy, Subscription
from ..core.reactive import SnapshotCell
from .task_models import EVENTS_COLLECTION, TASKS_COLLECTION, Event, Task

logger = logging.getLogger(__name__)

R = TypeVar("R")


class LiveCollection(Generic[R]):
    """
    Live-subscribed, ordered view of one remote collection.

    Every delivery from the store is the complete ordered snapshot; it replaces
    the held list wholesale (no incremental patching). Deliveries are applied for
    any change by any client. release() is idempotent and drops any delivery that
    arrives afterwards.
    """

    collection: str = ""
    order: OrderBy = OrderBy("id")

    def __init__(self, documents: DocumentStore) -> None:
        self._documents = documents
        self._cell: SnapshotCell[tuple[R, ...]] = SnapshotCell(())
        self._subscription: Subscription | None = None
        self._released = False

    # subclasses convert raw documents to records
    def _parse(self, doc: Document) -> R:
        raise NotImplementedError

    @property
    def items(self) -> tuple[R, ...]:
        return self._cell.value

    @property
    def deliveries(self) -> int:
        return self._cell.version

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def observe(self, listener: Callable[[tuple[R, ...]], None]) -> Callable[[], None]:
        return self._cell.observe(listener)

    async def start(self) -> None:
        if self._subscription is not None:
            raise RuntimeError(f"{type(self).__name__} is already subscribed")
        if self._released:
            raise RuntimeError(f"{type(self).__name__} was released; build a new one")
        sub = await self._documents.subscribe(self.collection, self.order, self._on_snapshot)
        if self._released:
            # release() ran while the subscription was being set up
            sub.unsubscribe()
            return
        self._subscription = sub
        logger.debug("Subscribed collection=%s order=%s", self.collection, self.order)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        sub, self._subscription = self._subscription, None
        if sub is not None:
            sub.unsubscribe()
            logger.debug("Released subscription collection=%s", self.collection)

    def _on_snapshot(self, docs: list[Document]) -> None:
        if self._released:
            return
        parsed: list[R] = []
        for doc in docs:
            try:
                parsed.append(self._parse(doc))
            except Exception:
                logger.warning(
                    "Skipping malformed document collection=%s id=%r",
                    self.collection,
                    doc.get("id"),
                )
        self._cell.set(tuple(parsed))
        logger.debug("Reconciled collection=%s size=%d", self.collection, len(parsed))


class TaskStore(LiveCollection[Task]):
    """Tasks ordered by creation time, newest first."""

    collection = TASKS_COLLECTION
    order = OrderBy("createdAt", descending=True)

    def _parse(self, doc: Document) -> Task:
        return Task.from_document(doc)

    def get(self, task_id: str) -> Task | None:
        for t in self.items:
            if t.id == task_id:
                return t
        return None


class EventStore(LiveCollection[Event]):
    """Events ordered by event date, soonest first."""

    collection = EVENTS_COLLECTION
    order = OrderBy("eventDate")

    def _parse(self, doc: Document) -> Event:
        return Event.from_document(doc)
