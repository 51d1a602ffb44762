# tests/test_task_api.py

from __future__ import annotations

from datetime import date

import pytest

from digiteam.core.errors import MutationRejected, PermissionDenied
from digiteam.session.context import Session
from digiteam.tasks.task_api import Operation, TaskMutationAPI, authorize
from digiteam.tasks.task_models import TASKS_COLLECTION, Task, TaskStatus
from digiteam.users.user_models import Role

from .fakes import add_task

MEMBER = Session(uid="u1", name="Asha", role=Role.MEMBER)
ADMIN = Session(uid="u2", name="Ben", role=Role.MEMBER, is_admin=True)
FACULTY = Session(uid="fac1", name="Dr. Rao", role=Role.FACULTY)


def _api(documents, session):
    return TaskMutationAPI(documents, lambda: session)


def _task(documents, task_id: str) -> Task:
    doc = documents.peek(TASKS_COLLECTION, task_id)
    assert doc is not None
    return Task.from_document(doc)


@pytest.mark.parametrize(
    ("session", "operation", "allowed"),
    [
        (None, Operation.MOVE, False),
        (None, Operation.CREATE, False),
        (FACULTY, Operation.CREATE, True),
        (FACULTY, Operation.MOVE, False),
        (FACULTY, Operation.DELETE, False),
        (MEMBER, Operation.CREATE, False),
        (MEMBER, Operation.MOVE, True),
        (MEMBER, Operation.CLAIM, True),
        (MEMBER, Operation.REASSIGN, True),
        (MEMBER, Operation.DELETE, False),
        (ADMIN, Operation.DELETE, True),
    ],
)
def test_authorize_table(session, operation, allowed) -> None:
    assert authorize(session, operation) is allowed


@pytest.mark.asyncio
async def test_move_is_noop_at_both_ends(documents) -> None:
    api = _api(documents, MEMBER)
    first = await add_task(documents)
    last = await add_task(documents, status=TaskStatus.COMPLETED.value)
    writes = documents.writes

    assert await api.move_status(_task(documents, first), -1) is False
    assert await api.move_status(_task(documents, last), +1) is False
    assert documents.writes == writes


@pytest.mark.asyncio
async def test_move_writes_only_status(documents) -> None:
    api = _api(documents, MEMBER)
    task_id = await add_task(documents, assignedTo=["u9"])
    before = documents.peek(TASKS_COLLECTION, task_id)

    assert await api.move_status(_task(documents, task_id), +1) is True

    after = documents.peek(TASKS_COLLECTION, task_id)
    assert after["status"] == "in-dev"
    assert {k: v for k, v in after.items() if k != "status"} == {
        k: v for k, v in before.items() if k != "status"
    }


@pytest.mark.asyncio
async def test_move_rejects_bad_direction(documents) -> None:
    api = _api(documents, MEMBER)
    task_id = await add_task(documents)
    with pytest.raises(ValueError):
        await api.move_status(_task(documents, task_id), 2)


@pytest.mark.asyncio
async def test_claim_is_idempotent(documents) -> None:
    api = _api(documents, MEMBER)
    task_id = await add_task(documents, assignedTo=["u2"])

    assert await api.claim_self(_task(documents, task_id)) is True
    assert await api.claim_self(_task(documents, task_id)) is True

    assert documents.peek(TASKS_COLLECTION, task_id)["assignedTo"] == ["u2", "u1"]


@pytest.mark.asyncio
async def test_claim_without_session_does_nothing(documents) -> None:
    api = _api(documents, None)
    task_id = await add_task(documents)
    writes = documents.writes

    assert await api.claim_self(_task(documents, task_id)) is False
    assert documents.writes == writes


@pytest.mark.asyncio
async def test_update_assignees_overwrites_whole_set(documents) -> None:
    api = _api(documents, MEMBER)
    task_id = await add_task(documents, assignedTo=["u1", "u2"])

    await api.update_assignees(_task(documents, task_id), ["u2", "u2"])

    assert documents.peek(TASKS_COLLECTION, task_id)["assignedTo"] == ["u2"]

    await api.update_assignees(_task(documents, task_id), [])
    assert documents.peek(TASKS_COLLECTION, task_id)["assignedTo"] == []


@pytest.mark.asyncio
async def test_non_admin_delete_is_denied_before_any_write(documents) -> None:
    api = _api(documents, MEMBER)
    task_id = await add_task(documents)
    writes = documents.writes

    with pytest.raises(PermissionDenied):
        await api.delete_task(_task(documents, task_id))

    assert documents.peek(TASKS_COLLECTION, task_id) is not None
    assert documents.writes == writes


@pytest.mark.asyncio
async def test_admin_delete_removes_record(documents) -> None:
    api = _api(documents, ADMIN)
    task_id = await add_task(documents)

    assert await api.delete_task(_task(documents, task_id)) is True
    assert documents.peek(TASKS_COLLECTION, task_id) is None


@pytest.mark.asyncio
async def test_faculty_cannot_edit_after_creation(documents) -> None:
    api = _api(documents, FACULTY)
    task_id = await add_task(documents)

    with pytest.raises(PermissionDenied):
        await api.move_status(_task(documents, task_id), +1)
    with pytest.raises(PermissionDenied):
        await api.update_assignees(_task(documents, task_id), ["u1"])


@pytest.mark.asyncio
async def test_failed_write_becomes_mutation_rejected(documents) -> None:
    api = _api(documents, MEMBER)
    task_id = await add_task(documents)
    documents.fail_on.add("update_fields")

    with pytest.raises(MutationRejected) as exc:
        await api.move_status(_task(documents, task_id), +1)

    assert exc.value.task_id == task_id
    assert "Failed to move task" in str(exc.value)
    assert documents.peek(TASKS_COLLECTION, task_id)["status"] == "todo"


@pytest.mark.asyncio
async def test_create_task_by_faculty(documents) -> None:
    api = _api(documents, FACULTY)

    task_id = await api.create_task(
        title="  Fest poster ",
        description="A3, colour",
        event_name="Tech Fest",
        event_date=date(2030, 3, 1),
        due_date=date(2030, 2, 20),
        requirements=["Others", "Others", "Photography / Videography"],
        faculty_name="Dr. Rao",
        faculty_contact="rao@college.edu",
    )

    doc = documents.peek(TASKS_COLLECTION, task_id)
    assert doc["title"] == "Fest poster"
    assert doc["status"] == "todo"
    assert doc["assignedTo"] == []
    assert doc["requirements"] == ["Others", "Photography / Videography"]
    assert doc["dueDate"] == "2030-02-20"
    assert doc["createdAt"].endswith("Z")


@pytest.mark.asyncio
async def test_create_task_validation(documents) -> None:
    api = _api(documents, FACULTY)
    kwargs = dict(
        title="",
        description="",
        event_name="Tech Fest",
        event_date=date(2030, 3, 1),
        due_date=None,
        requirements=[],
        faculty_name="Dr. Rao",
        faculty_contact="rao@college.edu",
    )

    with pytest.raises(ValueError, match="title, deadline"):
        await api.create_task(**kwargs)

    kwargs.update(title="Poster", due_date=date(2030, 2, 20), requirements=["Catering"])
    with pytest.raises(ValueError, match="Catering"):
        await api.create_task(**kwargs)

    assert await documents.read_all_once(TASKS_COLLECTION) == []


@pytest.mark.asyncio
async def test_member_cannot_create(documents) -> None:
    api = _api(documents, MEMBER)
    with pytest.raises(PermissionDenied):
        await api.create_task(
            title="x",
            description="",
            event_name="e",
            event_date=date(2030, 1, 1),
            due_date=date(2030, 1, 1),
            requirements=[],
            faculty_name="f",
            faculty_contact="c",
        )
