# src/digiteam/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Any

from ..core.ports import Document

TASKS_COLLECTION = "tasks"
EVENTS_COLLECTION = "events"

REQUIREMENT_OPTIONS: tuple[str, ...] = (
    "Poster Creation / Advertising",
    "Photography / Videography",
    "Others",
)


class TaskStatus(StrEnum):
    """Workflow status. Tasks only ever move to a neighbouring state."""

    TODO = "todo"
    IN_DEV = "in-dev"
    IN_TEST = "in-test"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_SEQUENCE: tuple[TaskStatus, ...] = (
    TaskStatus.TODO,
    TaskStatus.IN_DEV,
    TaskStatus.IN_TEST,
    TaskStatus.COMPLETED,
)

STATUS_LABELS: dict[TaskStatus, str] = {
    TaskStatus.TODO: "To Do",
    TaskStatus.IN_DEV: "In Development",
    TaskStatus.IN_TEST: "In Test",
    TaskStatus.COMPLETED: "Completed",
}


def neighbor_status(status: TaskStatus, direction: int) -> TaskStatus | None:
    """Status one step left (-1) or right (+1) in the workflow, or None past either end."""
    if direction not in (-1, 1):
        raise ValueError(f"direction must be -1 or +1, got {direction!r}")
    idx = STATUS_SEQUENCE.index(status) + direction
    if idx < 0 or idx >= len(STATUS_SEQUENCE):
        return None
    return STATUS_SEQUENCE[idx]


def parse_date(raw: Any) -> date | None:
    """Accept date, datetime or ISO string values as stored by any backend."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def parse_timestamp(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day, tzinfo=timezone.utc)
    if isinstance(raw, str):
        try:
            ts = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
        return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)
    return None


def timestamp_now() -> str:
    # Fixed-width UTC ISO strings sort lexicographically in creation order.
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _unique_ids(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    out: list[str] = []
    for v in raw:
        s = str(v)
        if s and s not in out:
            out.append(s)
    return tuple(out)


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    description: str
    event_name: str
    event_date: date | None
    due_date: date | None
    requirements: tuple[str, ...]
    status: TaskStatus
    assigned_to: tuple[str, ...]
    faculty_name: str
    faculty_contact: str
    created_at: datetime | None

    def is_assigned_to(self, uid: str | None) -> bool:
        return bool(uid) and uid in self.assigned_to

    @classmethod
    def from_document(cls, doc: Document) -> Task:
        return cls(
            id=str(doc["id"]),
            title=str(doc.get("title") or ""),
            description=str(doc.get("description") or ""),
            event_name=str(doc.get("eventName") or ""),
            event_date=parse_date(doc.get("eventDate")),
            due_date=parse_date(doc.get("dueDate")),
            requirements=tuple(str(r) for r in (doc.get("requirements") or ())),
            status=TaskStatus.from_db(doc.get("status")),
            assigned_to=_unique_ids(doc.get("assignedTo")),
            faculty_name=str(doc.get("facultyName") or ""),
            faculty_contact=str(doc.get("facultyContact") or ""),
            created_at=parse_timestamp(doc.get("createdAt")),
        )


@dataclass(frozen=True, slots=True)
class Event:
    id: str
    title: str
    event_date: date | None

    @classmethod
    def from_document(cls, doc: Document) -> Event:
        return cls(
            id=str(doc["id"]),
            title=str(doc.get("title") or ""),
            event_date=parse_date(doc.get("eventDate")),
        )


def new_task_fields(
        *,
        title: str,
        description: str,
        event_name: str,
        event_date: date,
        due_date: date,
        requirements: list[str],
        faculty_name: str,
        faculty_contact: str,
        created_at: str | None = None,
) -> dict[str, Any]:
    """Field layout of a freshly created task: status=todo, nobody assigned."""
    return {
        "title": title,
        "description": description,
        "eventName": event_name,
        "eventDate": event_date.isoformat(),
        "dueDate": due_date.isoformat(),
        "requirements": list(requirements),
        "assignedTo": [],
        "status": TaskStatus.TODO.value,
        "createdAt": created_at or timestamp_now(),
        "facultyName": faculty_name,
        "facultyContact": faculty_contact,
    }
