# src/digiteam/tasks/task_api.py

from __future__ import annotations

"""
Task mutation API.

Every operation is a single targeted partial update of one task record, never a
full overwrite, so concurrent edits to other fields survive. Nothing is patched
locally: the visible effect arrives with the next snapshot from the store.

Failures of the remote call are logged and re-raised as MutationRejected; the
caller decides how to show them. Permission checks happen before any remote call.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import date
from enum import StrEnum

from ..core.errors import MutationRejected, PermissionDenied
from ..core.ports import ArrayUnion, DocumentStore
from ..session.context import Session
from ..users.user_models import Role
from .task_models import (
    REQUIREMENT_OPTIONS,
    TASKS_COLLECTION,
    Task,
    neighbor_status,
    new_task_fields,
)

logger = logging.getLogger(__name__)

SessionProvider = Callable[[], Session | None]


class Operation(StrEnum):
    CREATE = "create"
    MOVE = "move"
    CLAIM = "claim"
    REASSIGN = "reassign"
    DELETE = "delete"


def authorize(session: Session | None, operation: Operation) -> bool:
    """
    Single permission guard for all task mutations.

    - faculty: create only (no edits afterwards)
    - member: move / claim / reassign
    - admin-flagged member: additionally delete
    """
    if session is None or not session.uid:
        return False
    if operation is Operation.CREATE:
        return session.role is Role.FACULTY
    if session.role is not Role.MEMBER:
        return False
    if operation is Operation.DELETE:
        return session.is_admin
    return True


class TaskMutationAPI:
    def __init__(self, documents: DocumentStore, session: SessionProvider) -> None:
        self._documents = documents
        self._session = session

    def _require(self, operation: Operation) -> Session:
        session = self._session()
        if not authorize(session, operation):
            logger.info(
                "Denied %s for uid=%s",
                operation.value,
                session.uid if session is not None else None,
            )
            raise PermissionDenied(operation.value)
        assert session is not None
        return session

    async def _write(self, operation: Operation, task_id: str, fields: dict) -> None:
        try:
            await self._documents.update_fields(TASKS_COLLECTION, task_id, fields)
        except Exception as e:
            logger.exception("Failed to %s task %s", operation.value, task_id)
            raise MutationRejected(operation.value, task_id, str(e)) from e

    async def move_status(self, task: Task, direction: int) -> bool:
        """
        Move one step along the workflow. Returns False (and writes nothing) when the
        move would leave the sequence.
        """
        self._require(Operation.MOVE)
        target = neighbor_status(task.status, direction)
        if target is None:
            return False
        await self._write(Operation.MOVE, task.id, {"status": target.value})
        logger.info("Task %s: %s -> %s", task.id, task.status.value, target.value)
        return True

    async def claim_self(self, task: Task) -> bool:
        """Add the session user to the assignees (set union, idempotent)."""
        session = self._session()
        if session is None or not session.uid:
            return False
        self._require(Operation.CLAIM)
        await self._write(Operation.CLAIM, task.id, {"assignedTo": ArrayUnion.of(session.uid)})
        logger.info("Task %s claimed by %s", task.id, session.uid)
        return True

    async def update_assignees(self, task: Task, new_assignees: Iterable[str]) -> bool:
        """Replace the whole assignee set (last writer wins)."""
        self._require(Operation.REASSIGN)
        ids: list[str] = []
        for uid in new_assignees:
            if uid and uid not in ids:
                ids.append(uid)
        await self._write(Operation.REASSIGN, task.id, {"assignedTo": ids})
        logger.info("Task %s assignees -> %s", task.id, ids)
        return True

    async def delete_task(self, task: Task) -> bool:
        """Hard delete. Admin-flagged members only; there is no undo."""
        session = self._require(Operation.DELETE)
        try:
            await self._documents.delete_record(TASKS_COLLECTION, task.id)
        except Exception as e:
            logger.exception("Failed to delete task %s", task.id)
            raise MutationRejected(Operation.DELETE.value, task.id, str(e)) from e
        # Audit line: the store keeps no tombstone.
        logger.warning("Task %s (%r) deleted by %s", task.id, task.title, session.uid)
        return True

    async def create_task(
            self,
            *,
            title: str,
            description: str,
            event_name: str,
            event_date: date | None,
            due_date: date | None,
            requirements: Iterable[str],
            faculty_name: str,
            faculty_contact: str,
    ) -> str:
        """Faculty-only. Raises ValueError when a required field is missing."""
        self._require(Operation.CREATE)

        missing = [
            name
            for name, value in (
                ("title", title),
                ("event name", event_name),
                ("event date", event_date),
                ("deadline", due_date),
                ("faculty name", faculty_name),
                ("faculty contact", faculty_contact),
            )
            if not value or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise ValueError(f"Please fill all required fields: {', '.join(missing)}.")

        reqs: list[str] = []
        for r in requirements:
            if r not in reqs:
                reqs.append(r)
        unknown = [r for r in reqs if r not in REQUIREMENT_OPTIONS]
        if unknown:
            raise ValueError(f"Unknown requirement(s): {', '.join(unknown)}.")

        assert event_date is not None and due_date is not None
        fields = new_task_fields(
            title=title.strip(),
            description=description.strip(),
            event_name=event_name.strip(),
            event_date=event_date,
            due_date=due_date,
            requirements=reqs,
            faculty_name=faculty_name.strip(),
            faculty_contact=faculty_contact.strip(),
        )
        try:
            task_id = await self._documents.create_record(TASKS_COLLECTION, fields)
        except Exception as e:
            logger.exception("Failed to create task %r", title)
            raise MutationRejected(Operation.CREATE.value, "(new)", str(e)) from e
        logger.info("Task %s created title=%r", task_id, fields["title"])
        return task_id
