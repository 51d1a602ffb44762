# src/digiteam/backends/firebase.py

from __future__ import annotations

"""
Firebase backend over plain REST (httpx).

- FirebaseIdentityProvider: Identity Toolkit email/password endpoints.
- FirestoreDocumentStore: Firestore v1 REST documents API. Live subscriptions poll
  `runQuery`, since the REST surface has no simple push channel.

Requests carry the signed-in user's ID token so the project's security rules apply.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any

import httpx

from ..core.errors import AuthFailure, InvalidCredentials, RegistrationConflict, StoreError
from ..core.ports import ArrayUnion, AuthStateListener, Document, Identity, OrderBy, SnapshotListener
from .polling import PollingSubscription

logger = logging.getLogger(__name__)

IDENTITY_BASE_URL = "https://identitytoolkit.googleapis.com/v1"
FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"

_PAGE_SIZE = 300

# Identity Toolkit error codes -> exception type
_AUTH_ERRORS: dict[str, type[AuthFailure]] = {
    "EMAIL_EXISTS": RegistrationConflict,
    "EMAIL_NOT_FOUND": InvalidCredentials,
    "INVALID_PASSWORD": InvalidCredentials,
    "INVALID_LOGIN_CREDENTIALS": InvalidCredentials,
    "USER_DISABLED": InvalidCredentials,
}


# ---- value codec ----

def encode_value(value: Any) -> dict[str, Any]:
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return {"timestampValue": ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")}
    if isinstance(value, date):
        return {"stringValue": value.isoformat()}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise TypeError(f"Unsupported Firestore value: {type(value).__name__}")


def encode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: encode_value(v) for k, v in fields.items()}


def decode_value(raw: dict[str, Any]) -> Any:
    if "nullValue" in raw:
        return None
    if "booleanValue" in raw:
        return bool(raw["booleanValue"])
    if "integerValue" in raw:
        return int(raw["integerValue"])
    if "doubleValue" in raw:
        return float(raw["doubleValue"])
    if "timestampValue" in raw:
        return datetime.fromisoformat(str(raw["timestampValue"]).replace("Z", "+00:00"))
    if "stringValue" in raw:
        return str(raw["stringValue"])
    if "arrayValue" in raw:
        return [decode_value(v) for v in (raw["arrayValue"] or {}).get("values", [])]
    if "mapValue" in raw:
        return decode_fields((raw["mapValue"] or {}).get("fields", {}))
    if "referenceValue" in raw:
        return str(raw["referenceValue"])
    return None


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: decode_value(v) for k, v in (fields or {}).items()}


def decode_document(doc: dict[str, Any]) -> Document:
    name = str(doc.get("name", ""))
    return {"id": name.rsplit("/", 1)[-1], **decode_fields(doc.get("fields", {}))}


def _error_code(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except Exception:
        return ""
    err = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(err, dict):
        return str(err.get("message") or err.get("status") or "")
    return ""


class FirebaseIdentityProvider:
    def __init__(
            self,
            api_key: str,
            *,
            client: httpx.AsyncClient | None = None,
            base_url: str = IDENTITY_BASE_URL,
            timeout_seconds: float = 10.0,
    ) -> None:
        if not api_key or not api_key.strip():
            raise RuntimeError("Firebase API key is not set. Set DIGITEAM_FIREBASE_API_KEY in your .env.")
        self._api_key = api_key.strip()
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._current: Identity | None = None
        self._id_token: str | None = None
        self._listeners: list[AuthStateListener] = []

    @property
    def current(self) -> Identity | None:
        return self._current

    @property
    def id_token(self) -> str | None:
        return self._id_token

    def _set_current(self, identity: Identity | None, token: str | None) -> None:
        self._current = identity
        self._id_token = token
        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception:
                logger.exception("Auth state listener failed")

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = await self._client.post(
                f"{self._base_url}/accounts:{endpoint}",
                params={"key": self._api_key},
                json=payload,
            )
        except httpx.HTTPError as e:
            raise AuthFailure(f"Identity service unreachable: {e}") from e

        if resp.status_code >= 400:
            code = _error_code(resp)
            # Codes may carry a suffix, e.g. "WEAK_PASSWORD : Password should be ..."
            head = code.split(":", 1)[0].strip()
            exc_type = _AUTH_ERRORS.get(head, AuthFailure)
            logger.info("Identity %s rejected: %s", endpoint, code or resp.status_code)
            raise exc_type(code or f"Identity request failed ({resp.status_code}).")
        data = resp.json()
        return data if isinstance(data, dict) else {}

    async def register(self, email: str, password: str) -> Identity:
        data = await self._post(
            "signUp",
            {"email": email.strip(), "password": password, "returnSecureToken": True},
        )
        identity = Identity(uid=str(data["localId"]), email=str(data.get("email") or email.strip()))
        self._set_current(identity, data.get("idToken"))
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        data = await self._post(
            "signInWithPassword",
            {"email": email.strip(), "password": password, "returnSecureToken": True},
        )
        identity = Identity(uid=str(data["localId"]), email=str(data.get("email") or email.strip()))
        self._set_current(identity, data.get("idToken"))
        return identity

    async def sign_out(self) -> None:
        # Tokens are client-held; dropping them is the sign-out.
        if self._current is None:
            return
        self._set_current(None, None)

    async def change_password(self, new_password: str) -> None:
        if self._current is None or not self._id_token:
            raise AuthFailure("Sign in again before changing the password.")
        data = await self._post(
            "update",
            {"idToken": self._id_token, "password": new_password, "returnSecureToken": True},
        )
        # The service rotates the token on password change.
        self._id_token = data.get("idToken") or self._id_token

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def aclose(self) -> None:
        await self._client.aclose()


class FirestoreDocumentStore:
    def __init__(
            self,
            project_id: str,
            *,
            token: Callable[[], str | None] = lambda: None,
            client: httpx.AsyncClient | None = None,
            base_url: str = FIRESTORE_BASE_URL,
            database: str = "(default)",
            poll_interval_seconds: float = 2.0,
            timeout_seconds: float = 10.0,
    ) -> None:
        if not project_id or not project_id.strip():
            raise RuntimeError("Firebase project id is not set. Set DIGITEAM_FIREBASE_PROJECT_ID in your .env.")
        self._root = f"projects/{project_id.strip()}/databases/{database}/documents"
        self._base = f"{base_url.rstrip('/')}/{self._root}"
        self._token = token
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._poll_interval = float(poll_interval_seconds)

    def _headers(self) -> dict[str, str]:
        tok = self._token()
        return {"Authorization": f"Bearer {tok}"} if tok else {}

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"Firestore unreachable: {e}") from e
        if resp.status_code >= 400 and resp.status_code != 404:
            code = _error_code(resp) or str(resp.status_code)
            raise StoreError(f"Firestore {method} failed: {code}")
        return resp

    def _doc_name(self, collection: str, record_id: str) -> str:
        return f"{self._root}/{collection}/{record_id}"

    async def create_record(self, collection: str, fields: dict[str, Any]) -> str:
        resp = await self._request("POST", f"{self._base}/{collection}", json={"fields": encode_fields(fields)})
        if resp.status_code == 404:
            raise StoreError(f"Collection not reachable: {collection}")
        return decode_document(resp.json())["id"]

    async def set_record(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        # PATCH without an update mask replaces the whole document (or creates it).
        await self._request(
            "PATCH",
            f"{self._base}/{collection}/{record_id}",
            json={"fields": encode_fields(fields)},
        )

    async def get_record(self, collection: str, record_id: str) -> Document | None:
        resp = await self._request("GET", f"{self._base}/{collection}/{record_id}")
        if resp.status_code == 404:
            return None
        return decode_document(resp.json())

    async def update_fields(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        plain = {k: v for k, v in fields.items() if not isinstance(v, ArrayUnion)}
        unions = {k: v for k, v in fields.items() if isinstance(v, ArrayUnion)}
        write: dict[str, Any] = {
            "update": {"name": self._doc_name(collection, record_id), "fields": encode_fields(plain)},
            "updateMask": {"fieldPaths": sorted(plain)},
            "currentDocument": {"exists": True},
        }
        if unions:
            write["updateTransforms"] = [
                {
                    "fieldPath": k,
                    "appendMissingElements": {"values": [encode_value(v) for v in u.values]},
                }
                for k, u in unions.items()
            ]
        resp = await self._request("POST", f"{self._base}:commit", json={"writes": [write]})
        if resp.status_code == 404:
            raise StoreError(f"No document to update: {collection}/{record_id}")

    async def delete_record(self, collection: str, record_id: str) -> None:
        await self._request("DELETE", f"{self._base}/{collection}/{record_id}")

    async def read_all_once(self, collection: str) -> list[Document]:
        out: list[Document] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"pageSize": _PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token
            resp = await self._request("GET", f"{self._base}/{collection}", params=params)
            if resp.status_code == 404:
                return out
            data = resp.json() or {}
            out.extend(decode_document(d) for d in data.get("documents", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return out

    async def run_query(self, collection: str, order: OrderBy) -> list[Document]:
        body = {
            "structuredQuery": {
                "from": [{"collectionId": collection}],
                "orderBy": [
                    {
                        "field": {"fieldPath": order.field},
                        "direction": "DESCENDING" if order.descending else "ASCENDING",
                    }
                ],
            }
        }
        resp = await self._request("POST", f"{self._base}:runQuery", json=body)
        if resp.status_code == 404:
            return []
        rows = resp.json() or []
        return [decode_document(r["document"]) for r in rows if isinstance(r, dict) and r.get("document")]

    async def subscribe(
            self,
            collection: str,
            order: OrderBy,
            listener: SnapshotListener,
    ) -> PollingSubscription:
        async def fetch() -> list[Document] | None:
            return await self.run_query(collection, order)

        return PollingSubscription(
            fetch,
            listener,
            interval_seconds=self._poll_interval,
            label=f"firestore:{collection}",
        ).start()

    async def aclose(self) -> None:
        await self._client.aclose()
