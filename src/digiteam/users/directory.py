# src/digiteam/users/directory.py

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from ..core.errors import DirectoryLookupMiss
from ..core.ports import DocumentStore
from .user_models import USERS_COLLECTION, Role, UserRecord

if TYPE_CHECKING:
    from ..session.context import Session

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown"


class UserDirectory:
    """
    One-shot cache of the user collection: id -> {name, role, admin}.

    Loaded once per dashboard mount (no live subscription). Until load() finishes
    the map is empty and every lookup falls back to a placeholder label.
    """

    def __init__(self, documents: DocumentStore) -> None:
        self._documents = documents
        self._users: dict[str, UserRecord] = {}
        self.loaded = False

    async def load(self, session: Session | None = None) -> dict[str, UserRecord]:
        """
        Read the whole user collection once. Read failures propagate to the caller.

        If the session's own id is missing from the result (e.g. the directory read
        raced the user's registration), synthesize an entry so self-lookups never fail.
        """
        docs = await self._documents.read_all_once(USERS_COLLECTION)

        users: dict[str, UserRecord] = {}
        for doc in docs:
            try:
                rec = UserRecord.from_document(doc)
            except Exception:
                logger.warning("Skipping malformed user document: %r", doc.get("id"))
                continue
            users[rec.id] = rec

        if session is not None and session.uid and session.uid not in users:
            users[session.uid] = UserRecord(
                id=session.uid,
                name=session.name or session.uid,
                role=session.role or Role.MEMBER,
                is_admin=session.is_admin,
                email=session.email,
            )
            logger.debug("Directory missing session user %s; synthesized entry", session.uid)

        self._users = users
        self.loaded = True
        logger.info("User directory loaded users=%d", len(users))
        return dict(users)

    def lookup(self, uid: str) -> UserRecord | None:
        return self._users.get(uid)

    def display_name(self, uid: str, fallback: str | None = UNKNOWN_USER) -> str:
        """Resolved name, else the fallback label (None means: show the raw id)."""
        rec = self._users.get(uid)
        if rec is not None:
            return rec.name
        return uid if fallback is None else fallback

    def resolve_names(self, ids: Iterable[str], fallback: str | None = UNKNOWN_USER) -> list[str]:
        return [self.display_name(uid, fallback) for uid in ids]

    def find_member(self, token: str) -> UserRecord:
        """Resolve a member by id, email or (case-insensitive) display name."""
        needle = token.strip()
        rec = self._users.get(needle)
        if rec is None:
            low = needle.lower()
            matches = [
                u for u in self._users.values()
                if u.email.lower() == low or u.name.lower() == low
            ]
            rec = matches[0] if len(matches) == 1 else None
        if rec is None or rec.role is not Role.MEMBER:
            raise DirectoryLookupMiss(f"No member matches {token!r}.")
        return rec

    def members(self) -> list[UserRecord]:
        """Candidates for the reassignment dialog."""
        return [u for u in self._users.values() if u.role is Role.MEMBER]

    def __len__(self) -> int:
        return len(self._users)
