# tests/test_dashboards.py

from __future__ import annotations

from datetime import date

import pytest

from digiteam.core.errors import StoreError
from digiteam.core.routes import Route
from digiteam.dashboards.faculty import FacultyDashboard
from digiteam.dashboards.member import MemberDashboard
from digiteam.dashboards.router import Router
from digiteam.tasks.board import UNASSIGNED
from digiteam.tasks.task_models import EVENTS_COLLECTION, TASKS_COLLECTION, TaskStatus

from .fakes import PASSWORD, add_task, build_state, settle


async def _open(state, email: str):
    router = Router(state)
    await state.session.sign_in(email, PASSWORD)
    dashboard = await router.sync()
    await settle()
    return router, dashboard


@pytest.mark.asyncio
async def test_router_mounts_dashboard_for_role(state) -> None:
    router, dashboard = await _open(state, "asha@college.edu")

    assert isinstance(dashboard, MemberDashboard)
    assert dashboard.mounted
    assert state.route is Route.MEMBER_DASHBOARD
    assert state.dashboard is dashboard
    # A second sync keeps the mounted instance.
    assert await router.sync() is dashboard


@pytest.mark.asyncio
async def test_mount_without_session_redirects_to_entry(state) -> None:
    visited: list[Route] = []
    state.navigate = visited.append
    dashboard = MemberDashboard(state)

    assert await dashboard.mount() is False
    assert visited == [Route.ENTRY]
    assert state.documents.active_listeners() == 0


@pytest.mark.asyncio
async def test_sign_out_tears_down_subscriptions(state, documents) -> None:
    _, dashboard = await _open(state, "asha@college.edu")
    assert documents.active_listeners(TASKS_COLLECTION) == 1
    assert documents.active_listeners(EVENTS_COLLECTION) == 1

    await state.session.sign_out()

    assert not dashboard.mounted
    assert state.dashboard is None
    assert state.route is Route.ENTRY
    assert documents.active_listeners() == 0

    # unmount stays a no-op afterwards
    dashboard.unmount()
    assert documents.active_listeners() == 0


@pytest.mark.asyncio
async def test_failed_subscribe_tears_down_and_next_sync_starts_clean(state, documents) -> None:
    router = Router(state)
    session_observers = state.session._cell.listener_count()
    await state.session.sign_in("asha@college.edu", PASSWORD)
    documents.fail_subscribe = {EVENTS_COLLECTION}

    with pytest.raises(StoreError):
        await router.sync()
    await settle()

    # The tasks subscription opened before the failure is released too.
    assert documents.active_listeners() == 0
    assert state.dashboard is None
    assert state.session._cell.listener_count() == session_observers

    documents.fail_subscribe = set()
    dashboard = await router.sync()
    await settle()

    assert isinstance(dashboard, MemberDashboard)
    assert dashboard.mounted
    assert state.dashboard is dashboard
    assert documents.active_listeners(TASKS_COLLECTION) == 1
    assert documents.active_listeners(EVENTS_COLLECTION) == 1


@pytest.mark.asyncio
async def test_create_claim_move_delete_across_clients(settings, documents, accounts, state) -> None:
    _, member = await _open(state, "asha@college.edu")

    faculty_state = build_state(settings, documents, accounts)
    _, faculty = await _open(faculty_state, "rao@college.edu")
    assert isinstance(faculty, FacultyDashboard)

    form = faculty.form
    form.title = "Fest poster"
    form.event_name = "Tech Fest"
    form.event_date = date(2030, 3, 1)
    form.due_date = date(2030, 2, 20)
    form.faculty_name = "Dr. Rao"
    form.faculty_contact = "rao@college.edu"
    form.toggle_requirement("Poster Creation / Advertising")
    task_id = await faculty.submit()
    await settle()

    assert task_id is not None
    assert form.title == ""  # reset after a successful submit
    assert [t.id for t in member.view.column(TaskStatus.TODO)] == [task_id]
    assert [t.id for t in member.view.available] == [task_id]
    assert faculty.rows[0].assigned_label == UNASSIGNED

    assert await member.claim(task_id)
    await settle()
    assert task_id in member.view.my_task_ids
    assert member.view.available == ()
    assert faculty.rows[0].assigned_label == "Asha"

    assert await member.move(task_id, +1)
    await settle()
    assert [t.id for t in member.view.column(TaskStatus.IN_DEV)] == [task_id]

    # Asha is not an admin: refused with a notice, record untouched.
    assert await member.delete(task_id) is False
    assert "not allowed to delete" in state.notifier.notices[-1]
    assert documents.peek(TASKS_COLLECTION, task_id) is not None

    admin_state = build_state(settings, documents, accounts)
    _, admin = await _open(admin_state, "ben@college.edu")
    member.open_task(task_id)
    assert await admin.delete(task_id)
    await settle()

    assert member.view.total == 0
    assert member.selected_task_id is None  # detail view closed when the task vanished
    assert faculty.rows == ()


@pytest.mark.asyncio
async def test_failed_write_shows_notice_and_keeps_board(state, documents) -> None:
    task_id = await add_task(documents)
    _, member = await _open(state, "asha@college.edu")
    documents.fail_on.add("update_fields")

    assert await member.move(task_id, +1) is False
    await settle()

    assert state.notifier.notices
    assert state.notifier.notices[-1].startswith(f"Failed to move task {task_id}")
    assert member.view.column(TaskStatus.TODO)[0].id == task_id


@pytest.mark.asyncio
async def test_directory_failure_mounts_with_unknown_names(state, documents) -> None:
    await add_task(documents, status="completed", assignedTo=["u2"])
    documents.fail_on.add("read_all_once")

    _, member = await _open(state, "asha@college.edu")

    assert member.mounted
    assert "user directory" in state.notifier.notices[0]
    assert member.view.completed[0].assignee_names == ("Unknown",)


@pytest.mark.asyncio
async def test_reassignment_dialog_overwrites_assignees(state, documents) -> None:
    task_id = await add_task(documents, assignedTo=["u1"])
    _, member = await _open(state, "asha@college.edu")

    editor = member.open_task(task_id)
    assert editor.is_checked("u1")
    assert {u.id for u in member.assignee_candidates()} == {"u1", "u2"}

    editor.toggle("u1", False)
    editor.toggle("u2", True)
    assert await member.save_assignees()
    await settle()

    assert documents.peek(TASKS_COLLECTION, task_id)["assignedTo"] == ["u2"]
    assert member.selected_task.assigned_to == ("u2",)


@pytest.mark.asyncio
async def test_due_soon_and_events_panels(state, documents) -> None:
    await add_task(documents, title="later", dueDate="2030-06-01")
    await add_task(documents, title="sooner", dueDate="2030-01-10", assignedTo=["u1"])
    await documents.create_record(EVENTS_COLLECTION, {"title": "Expo", "eventDate": "2030-02-02"})

    _, member = await _open(state, "asha@college.edu")

    assert [t.title for t in member.view.due_soon] == ["sooner", "later"]
    assert [t.title for t in member.view.my_due_soon] == ["sooner"]
    assert [e.title for e in member.view.upcoming_events] == ["Expo"]


@pytest.mark.asyncio
async def test_faculty_submit_with_missing_fields_keeps_form(state, documents) -> None:
    _, faculty = await _open(state, "rao@college.edu")
    faculty.form.title = "Half filled"

    assert await faculty.submit() is None
    assert faculty.form.title == "Half filled"
    assert state.notifier.notices[-1].startswith("Please fill all required fields")
    assert await documents.read_all_once(TASKS_COLLECTION) == []
