# src/digiteam/backends/sqlite_store.py

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import hmac
import json
import logging
import secrets
import sqlite3
import time
import uuid
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path
from typing import Any

from ..core.errors import AuthFailure, InvalidCredentials, RegistrationConflict, StoreError
from ..core.ports import AuthStateListener, Document, Identity, OrderBy, SnapshotListener
from .ordering import apply_update, ordered_snapshot
from .polling import PollingSubscription

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_PBKDF2_ROUNDS = 200_000


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def _fields_to_str(fields: dict[str, Any]) -> str:
    return json.dumps(fields, ensure_ascii=False, default=_json_default)


def _str_to_fields(s: str | None) -> dict[str, Any]:
    if not s:
        return {}
    try:
        val = json.loads(s)
        return val if isinstance(val, dict) else {}
    except Exception:
        return {}


class _SqliteBase:
    """
    Shared connection handling.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each call opens its own SQLite connection (calls run in worker threads)
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    fields TEXT NOT NULL DEFAULT '{}',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    PRIMARY KEY (collection, id)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS revisions (
                    collection TEXT PRIMARY KEY,
                    revision INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    uid TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    salt TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(documents)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE documents ADD COLUMN {name} {decl}")
                logger.info("SqliteDocumentStore migration: added column %s", name)

            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection)")
            conn.commit()
        finally:
            conn.close()


class SqliteDocumentStore(_SqliteBase):
    """
    Document store kept in one SQLite file.

    Several portal processes on the same machine can share the file; each
    collection carries a revision counter that subscriptions poll, so a write by
    any process reaches every subscriber within one poll interval. Writes made by
    this process wake its own subscriptions immediately.
    """

    def __init__(self, db_path: str | Path = "portal.sqlite3", *, poll_interval_seconds: float = 1.0) -> None:
        super().__init__(db_path)
        self._poll_interval = float(poll_interval_seconds)
        self._subs: list[tuple[str, PollingSubscription]] = []
        logger.info("SqliteDocumentStore ready db=%s", self._db_path)

    # ---- sync helpers (run in worker threads) ----

    @staticmethod
    def _bump(conn: sqlite3.Connection, collection: str) -> None:
        conn.execute(
            """
            INSERT INTO revisions(collection, revision) VALUES (?, 1)
            ON CONFLICT(collection) DO UPDATE SET revision = revision + 1
            """,
            (collection,),
        )

    def _revision_sync(self, collection: str) -> int:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT revision FROM revisions WHERE collection = ?", (collection,)).fetchone()
            return int(row["revision"]) if row else 0
        finally:
            conn.close()

    def _read_all_sync(self, collection: str) -> list[Document]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT id, fields FROM documents WHERE collection = ? ORDER BY created_at ASC",
                (collection,),
            ).fetchall()
            return [{"id": r["id"], **_str_to_fields(r["fields"])} for r in rows]
        finally:
            conn.close()

    def _get_sync(self, collection: str, record_id: str) -> Document | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT fields FROM documents WHERE collection = ? AND id = ?",
                (collection, record_id),
            ).fetchone()
            return None if row is None else {"id": record_id, **_str_to_fields(row["fields"])}
        finally:
            conn.close()

    def _put_sync(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        now = time.time()
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO documents(collection, id, fields, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(collection, id) DO UPDATE SET fields = excluded.fields,
                                                         updated_at = excluded.updated_at
                """,
                (collection, record_id, _fields_to_str(fields), now, now),
            )
            self._bump(conn, collection)
            conn.commit()
        finally:
            conn.close()

    def _update_sync(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        conn = self._get_conn()
        try:
            # Read-modify-write under a write lock so array unions from other
            # processes are not lost.
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT fields FROM documents WHERE collection = ? AND id = ?",
                (collection, record_id),
            ).fetchone()
            if row is None:
                conn.rollback()
                raise StoreError(f"No document to update: {collection}/{record_id}")
            merged = apply_update(_str_to_fields(row["fields"]), fields)
            conn.execute(
                "UPDATE documents SET fields = ?, updated_at = ? WHERE collection = ? AND id = ?",
                (_fields_to_str(merged), time.time(), collection, record_id),
            )
            self._bump(conn, collection)
            conn.commit()
        finally:
            conn.close()

    def _delete_sync(self, collection: str, record_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM documents WHERE collection = ? AND id = ?", (collection, record_id))
            self._bump(conn, collection)
            conn.commit()
        finally:
            conn.close()

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            raise StoreError(f"SQLite error: {e}") from e

    def _wake(self, collection: str) -> None:
        self._subs = [(c, s) for c, s in self._subs if s.active]
        for c, s in self._subs:
            if c == collection:
                s.wake()

    # ---- DocumentStore ----

    async def create_record(self, collection: str, fields: dict[str, Any]) -> str:
        record_id = uuid.uuid4().hex[:20]
        await self._call(self._put_sync, collection, record_id, fields)
        self._wake(collection)
        return record_id

    async def set_record(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        await self._call(self._put_sync, collection, record_id, fields)
        self._wake(collection)

    async def get_record(self, collection: str, record_id: str) -> Document | None:
        return await self._call(self._get_sync, collection, record_id)

    async def update_fields(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        await self._call(self._update_sync, collection, record_id, fields)
        self._wake(collection)

    async def delete_record(self, collection: str, record_id: str) -> None:
        await self._call(self._delete_sync, collection, record_id)
        self._wake(collection)

    async def read_all_once(self, collection: str) -> list[Document]:
        return await self._call(self._read_all_sync, collection)

    async def subscribe(
            self,
            collection: str,
            order: OrderBy,
            listener: SnapshotListener,
    ) -> PollingSubscription:
        seen: list[int] = [-1]

        async def fetch() -> list[Document] | None:
            rev = await self._call(self._revision_sync, collection)
            if rev == seen[0]:
                return None
            docs = await self._call(self._read_all_sync, collection)
            seen[0] = rev
            return ordered_snapshot(docs, order)

        sub = PollingSubscription(
            fetch,
            listener,
            interval_seconds=self._poll_interval,
            label=f"sqlite:{collection}",
        ).start()
        self._subs.append((collection, sub))
        return sub


def _hash_password(password: str, salt: str) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), _PBKDF2_ROUNDS).hex()


class SqliteIdentityProvider(_SqliteBase):
    """Email/password accounts stored next to the documents (salted PBKDF2)."""

    def __init__(self, db_path: str | Path = "portal.sqlite3") -> None:
        super().__init__(db_path)
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

    def _register_sync(self, email: str, password: str) -> Identity:
        uid = uuid.uuid4().hex[:28]
        salt = secrets.token_hex(16)
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO accounts(uid, email, password_hash, salt, created_at) VALUES (?, ?, ?, ?, ?)",
                (uid, email, _hash_password(password, salt), salt, time.time()),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise RegistrationConflict("Email is already in use.") from e
        finally:
            conn.close()
        return Identity(uid=uid, email=email)

    def _verify_sync(self, email: str, password: str) -> Identity:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT uid, password_hash, salt FROM accounts WHERE email = ?", (email,)
            ).fetchone()
        finally:
            conn.close()
        if row is None or not hmac.compare_digest(row["password_hash"], _hash_password(password, row["salt"])):
            raise InvalidCredentials("Invalid email or password.")
        return Identity(uid=str(row["uid"]), email=email)

    def _set_password_sync(self, uid: str, password: str) -> None:
        salt = secrets.token_hex(16)
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE accounts SET password_hash = ?, salt = ? WHERE uid = ?",
                (_hash_password(password, salt), salt, uid),
            )
            conn.commit()
        finally:
            conn.close()

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            raise AuthFailure(f"Account storage error: {e}") from e

    async def register(self, email: str, password: str) -> Identity:
        key = email.strip().lower()
        if not key or "@" not in key:
            raise AuthFailure("Invalid email address.")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthFailure(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")
        identity = await self._call(self._register_sync, key, password)
        self._set_current(identity)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        identity = await self._call(self._verify_sync, email.strip().lower(), password)
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
        await self._call(self._set_password_sync, ident.uid, new_password)

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove
