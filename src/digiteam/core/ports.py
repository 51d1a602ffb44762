# src/digiteam/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete backends.
This keeps the remote store / identity provider swappable and makes testing easier.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

Document = dict[str, Any]
# A stored record: its fields plus the store-assigned "id".

SnapshotListener = Callable[[list[Document]], None]
# Receives the complete ordered contents of a collection on every change.


@dataclass(frozen=True, slots=True)
class OrderBy:
    field: str
    descending: bool = False


@dataclass(frozen=True, slots=True)
class ArrayUnion:
    """
    Field-update marker: add the values to an array field unless already present.

    Concurrent unions from different clients commute, so neither write is lost.
    """

    values: tuple[Any, ...]

    @classmethod
    def of(cls, *values: Any) -> ArrayUnion:
        return cls(values=tuple(values))


@dataclass(frozen=True, slots=True)
class Identity:
    uid: str
    email: str


class Subscription(Protocol):
    """Handle for a live listener. unsubscribe() must be safe to call more than once."""

    @property
    def active(self) -> bool: ...

    def unsubscribe(self) -> None: ...


class DocumentStore(Protocol):
    async def create_record(self, collection: str, fields: dict[str, Any]) -> str: ...

    async def set_record(self, collection: str, record_id: str, fields: dict[str, Any]) -> None: ...

    async def get_record(self, collection: str, record_id: str) -> Document | None: ...

    async def update_fields(
            self,
            collection: str,
            record_id: str,
            fields: dict[str, Any],
    ) -> None: ...

    async def delete_record(self, collection: str, record_id: str) -> None: ...

    async def read_all_once(self, collection: str) -> list[Document]: ...

    async def subscribe(
            self,
            collection: str,
            order: OrderBy,
            listener: SnapshotListener,
    ) -> Subscription: ...


AuthStateListener = Callable[[Identity | None], None]


class IdentityProvider(Protocol):
    @property
    def current(self) -> Identity | None: ...

    async def register(self, email: str, password: str) -> Identity: ...
    async def sign_in(self, email: str, password: str) -> Identity: ...
    async def sign_out(self) -> None: ...
    async def change_password(self, new_password: str) -> None: ...

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]: ...


class Notifier(Protocol):
    """Transient user-visible notices (failed writes, permission errors)."""

    def notify(self, text: str) -> None: ...
