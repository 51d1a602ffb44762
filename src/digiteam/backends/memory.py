# src/digiteam/backends/memory.py

from __future__ import annotations

"""
In-process backend: document store + identity provider.

Used by tests and by the offline demo. Several clients (each with its own
InMemoryIdentityProvider session) can share one InMemoryDocumentStore to model a
shared remote collection. Snapshot delivery is asynchronous: a write schedules the
delivery on the event loop (call_soon), so readers observe the change only after
the loop turns, like with a real remote store.
"""

import asyncio
import copy
import logging
import uuid
from collections.abc import Callable
from typing import Any

from ..core.errors import AuthFailure, InvalidCredentials, RegistrationConflict, StoreError
from ..core.ports import (
    AuthStateListener,
    Document,
    Identity,
    OrderBy,
    SnapshotListener,
)
from .ordering import apply_update, ordered_snapshot

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class ListenerHandle:
    """Subscription handle. unsubscribe() is idempotent; late deliveries are dropped."""

    def __init__(
            self,
            collection: str,
            order: OrderBy,
            listener: SnapshotListener,
            on_release: Callable[[ListenerHandle], None],
    ) -> None:
        self.collection = collection
        self.order = order
        self._listener = listener
        self._on_release = on_release
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, docs: list[Document]) -> None:
        if not self._active:
            return
        self._listener(docs)

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._on_release(self)


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._handles: list[ListenerHandle] = []
        self.writes = 0

    # ---- helpers ----

    def _coll(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    def _snapshot(self, collection: str, order: OrderBy) -> list[Document]:
        return ordered_snapshot(
            ({"id": rid, **copy.deepcopy(fields)} for rid, fields in self._coll(collection).items()),
            order,
        )

    def _publish(self, collection: str) -> None:
        self.writes += 1
        loop = asyncio.get_running_loop()
        for h in list(self._handles):
            if h.collection == collection:
                # Snapshot is taken at write time; delivery happens on the next loop turn.
                loop.call_soon(h.deliver, self._snapshot(collection, h.order))

    def _release(self, handle: ListenerHandle) -> None:
        if handle in self._handles:
            self._handles.remove(handle)

    def active_listeners(self, collection: str | None = None) -> int:
        return sum(1 for h in self._handles if collection is None or h.collection == collection)

    def peek(self, collection: str, record_id: str) -> Document | None:
        """Synchronous read for tests and diagnostics."""
        fields = self._coll(collection).get(record_id)
        return None if fields is None else {"id": record_id, **copy.deepcopy(fields)}

    # ---- DocumentStore ----

    async def create_record(self, collection: str, fields: dict[str, Any]) -> str:
        record_id = uuid.uuid4().hex[:20]
        self._coll(collection)[record_id] = copy.deepcopy(fields)
        self._publish(collection)
        return record_id

    async def set_record(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        self._coll(collection)[record_id] = copy.deepcopy(fields)
        self._publish(collection)

    async def get_record(self, collection: str, record_id: str) -> Document | None:
        return self.peek(collection, record_id)

    async def update_fields(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        current = self._coll(collection).get(record_id)
        if current is None:
            raise StoreError(f"No document to update: {collection}/{record_id}")
        self._coll(collection)[record_id] = apply_update(current, fields)
        self._publish(collection)

    async def delete_record(self, collection: str, record_id: str) -> None:
        self._coll(collection).pop(record_id, None)
        self._publish(collection)

    async def read_all_once(self, collection: str) -> list[Document]:
        return [{"id": rid, **copy.deepcopy(f)} for rid, f in self._coll(collection).items()]

    async def subscribe(
            self,
            collection: str,
            order: OrderBy,
            listener: SnapshotListener,
    ) -> ListenerHandle:
        handle = ListenerHandle(collection, order, listener, self._release)
        self._handles.append(handle)
        # Initial snapshot, delivered like any later one.
        asyncio.get_running_loop().call_soon(handle.deliver, self._snapshot(collection, order))
        return handle


class InMemoryIdentityProvider:
    """
    Email/password identity held in process memory.

    `accounts` may be shared between providers so several simulated clients can
    sign in against the same account set.
    """

    def __init__(self, accounts: dict[str, tuple[str, str]] | None = None) -> None:
        # email -> (uid, password)
        self._accounts = accounts if accounts is not None else {}
        self._current: Identity | None = None
        self._listeners: list[AuthStateListener] = []

    @property
    def current(self) -> Identity | None:
        return self._current

    def _set_current(self, identity: Identity | None) -> None:
        self._current = identity
        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception:
                logger.exception("Auth state listener failed")

    async def register(self, email: str, password: str) -> Identity:
        key = email.strip().lower()
        if not key or "@" not in key:
            raise AuthFailure("Invalid email address.")
        if key in self._accounts:
            raise RegistrationConflict("Email is already in use.")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthFailure(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")
        uid = uuid.uuid4().hex[:28]
        self._accounts[key] = (uid, password)
        identity = Identity(uid=uid, email=key)
        self._set_current(identity)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        key = email.strip().lower()
        entry = self._accounts.get(key)
        if entry is None or entry[1] != password:
            raise InvalidCredentials("Invalid email or password.")
        identity = Identity(uid=entry[0], email=key)
        self._set_current(identity)
        return identity

    async def sign_out(self) -> None:
        if self._current is None:
            return
        self._set_current(None)

    async def change_password(self, new_password: str) -> None:
        ident = self._current
        if ident is None:
            raise AuthFailure("Sign in again before changing the password.")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise AuthFailure(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")
        self._accounts[ident.email] = (ident.uid, new_password)

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove
