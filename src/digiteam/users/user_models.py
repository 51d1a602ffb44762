# src/digiteam/users/user_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.ports import Document

USERS_COLLECTION = "users"


class Role(StrEnum):
    FACULTY = "faculty"
    MEMBER = "member"

    @classmethod
    def from_db(cls, raw: str | None) -> Role | None:
        if not raw:
            return None
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return None


def _admin_flag(raw: Any) -> bool:
    # Stored either as a boolean or as the string "admin".
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.strip().lower() == "admin"
    return False


@dataclass(frozen=True, slots=True)
class UserRecord:
    id: str
    name: str
    role: Role | None
    is_admin: bool = False
    email: str = ""

    @classmethod
    def from_document(cls, doc: Document) -> UserRecord:
        uid = str(doc["id"])
        role = Role.from_db(doc.get("role"))
        return cls(
            id=uid,
            name=str(doc.get("name") or uid),
            role=role,
            # Only meaningful for members.
            is_admin=role is Role.MEMBER and _admin_flag(doc.get("admin")),
            email=str(doc.get("email") or ""),
        )


def new_user_fields(*, name: str, email: str, role: Role) -> dict[str, Any]:
    return {"name": name, "email": email, "role": role.value}
