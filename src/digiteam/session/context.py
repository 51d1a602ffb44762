# src/digiteam/session/context.py

from __future__ import annotations

"""
Session context.

State machine:
  anonymous -> authenticating -> authenticated(role) -> anonymous (sign-out)

Sign-in resolves role/admin flag from the user record; registration writes that
record first and then behaves like a successful sign-in. Losing the identity for
any reason (explicit sign-out, provider-side sign-out) drops back to anonymous,
notifies observers (dashboards tear down their subscriptions) and redirects to
the entry route.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from ..core.errors import AuthFailure, NoRoleRecord
from ..core.ports import DocumentStore, Identity, IdentityProvider
from ..core.reactive import SnapshotCell
from ..core.routes import Navigate, Route, no_navigation
from ..users.user_models import USERS_COLLECTION, Role, UserRecord, new_user_fields

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True, slots=True)
class Session:
    uid: str
    name: str
    role: Role
    is_admin: bool = False
    email: str = ""


def home_route(role: Role) -> Route:
    return Route.FACULTY_DASHBOARD if role is Role.FACULTY else Route.MEMBER_DASHBOARD


class SessionContext:
    def __init__(
            self,
            identity: IdentityProvider,
            documents: DocumentStore,
            navigate: Navigate | None = None,
    ) -> None:
        self._identity = identity
        self._documents = documents
        self._navigate: Navigate = navigate or no_navigation
        self._cell: SnapshotCell[Session | None] = SnapshotCell(None)
        self.state = SessionState.ANONYMOUS
        self._unsubscribe_auth: Callable[[], None] | None = identity.on_auth_state_changed(
            self._on_auth_state
        )

    # ---- read side ----

    @property
    def session(self) -> Session | None:
        return self._cell.value

    @property
    def uid(self) -> str | None:
        s = self._cell.value
        return s.uid if s is not None else None

    def observe(self, listener: Callable[[Session | None], None]) -> Callable[[], None]:
        return self._cell.observe(listener)

    def set_navigator(self, navigate: Navigate) -> None:
        self._navigate = navigate

    # ---- transitions ----

    async def sign_in(self, email: str, password: str) -> Route:
        self.state = SessionState.AUTHENTICATING
        try:
            ident = await self._identity.sign_in(email.strip(), password)
            record = await self._fetch_user_record(ident)
        except Exception:
            self.state = SessionState.ANONYMOUS
            raise

        if record is None or record.role is None:
            # Identity is valid but unusable for routing; no default role is assumed.
            self.state = SessionState.ANONYMOUS
            logger.warning("Sign-in for uid=%s has no role record", ident.uid)
            raise NoRoleRecord(ident.uid)

        return self._establish(
            Session(
                uid=ident.uid,
                name=record.name,
                role=record.role,
                is_admin=record.is_admin,
                email=ident.email,
            )
        )

    async def register(self, *, name: str, email: str, password: str, role: Role) -> Route:
        self.state = SessionState.AUTHENTICATING
        try:
            ident = await self._identity.register(email.strip(), password)
            await self._documents.set_record(
                USERS_COLLECTION,
                ident.uid,
                new_user_fields(name=name.strip(), email=ident.email, role=role),
            )
        except Exception:
            self.state = SessionState.ANONYMOUS
            raise

        logger.info("Registered uid=%s role=%s", ident.uid, role.value)
        return self._establish(
            Session(uid=ident.uid, name=name.strip() or ident.uid, role=role, email=ident.email)
        )

    async def sign_out(self) -> None:
        try:
            await self._identity.sign_out()
        finally:
            # Providers normally report the sign-out through the auth listener;
            # make sure the transition happens even when they do not.
            self._drop_to_anonymous()

    async def change_password(self, new_password: str) -> None:
        if self.state is not SessionState.AUTHENTICATED:
            raise AuthFailure("Sign in before changing the password.")
        await self._identity.change_password(new_password)
        logger.info("Password changed uid=%s", self.uid)

    def close(self) -> None:
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None

    # ---- internals ----

    async def _fetch_user_record(self, ident: Identity) -> UserRecord | None:
        doc = await self._documents.get_record(USERS_COLLECTION, ident.uid)
        if doc is None:
            return None
        return UserRecord.from_document(doc)

    def _establish(self, session: Session) -> Route:
        self.state = SessionState.AUTHENTICATED
        self._cell.set(session)
        route = home_route(session.role)
        logger.info("Session established uid=%s role=%s admin=%s", session.uid, session.role.value, session.is_admin)
        self._navigate(route)
        return route

    def _on_auth_state(self, identity: Identity | None) -> None:
        if identity is None:
            self._drop_to_anonymous()

    def _drop_to_anonymous(self) -> None:
        if self.state is SessionState.ANONYMOUS and self._cell.value is None:
            return
        prev = self._cell.value
        self.state = SessionState.ANONYMOUS
        self._cell.set(None)
        logger.info("Session ended uid=%s", prev.uid if prev else None)
        self._navigate(Route.ENTRY)
