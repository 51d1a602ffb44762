# tests/test_commands.py

from __future__ import annotations

import pytest

from digiteam.cli.commands import CommandRegistry, registry, resolve_task
from digiteam.dashboards.router import Router
from digiteam.tasks.task_models import TASKS_COLLECTION

from .fakes import PASSWORD, add_task, settle


async def _signed_in(state, email: str):
    router = Router(state)
    await state.session.sign_in(email, PASSWORD)
    dashboard = await router.sync()
    await settle()
    return dashboard


@pytest.mark.asyncio
async def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    async def h2(state, args):
        called["h2"] += 1
        return f"h2 {args}"

    async def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])
    notes: list[str] = []

    assert await reg.handle(state, '/a x "y z"') == "h2 ['x', 'y z']"
    assert await reg.handle(state, "/BEE", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")
    assert "Could not parse" in (await reg.handle(state, '/a "open') or "")


@pytest.mark.asyncio
async def test_resolve_task_by_index_id_and_prefix(state, documents) -> None:
    first = await add_task(documents, createdAt="2030-01-01T00:00:00.000000Z")
    dashboard = await _signed_in(state, "asha@college.edu")
    tasks = dashboard.tasks.items

    assert resolve_task(tasks, "1").id == first
    assert resolve_task(tasks, first).id == first
    assert resolve_task(tasks, first[:6]).id == first
    assert resolve_task(tasks, "zz") is None
    assert resolve_task(tasks, "") is None


@pytest.mark.asyncio
async def test_member_board_claim_and_move(state, documents) -> None:
    task_id = await add_task(documents, title="Fest poster")
    await _signed_in(state, "asha@college.edu")

    board = await registry.handle(state, "/board")
    assert "== To Do (1) ==" in board
    assert "Fest poster" in board

    assert "You are on" in await registry.handle(state, "/claim 1")
    await settle()
    assert "Moved" in await registry.handle(state, "/move 1 next")
    await settle()

    doc = documents.peek(TASKS_COLLECTION, task_id)
    assert doc["assignedTo"] == ["u1"]
    assert doc["status"] == "in-dev"


@pytest.mark.asyncio
async def test_assign_by_name_and_clear(state, documents) -> None:
    task_id = await add_task(documents)
    await _signed_in(state, "asha@college.edu")

    reply = await registry.handle(state, "/assign 1 Ben asha@college.edu")
    assert reply.endswith("Ben, Asha.")
    assert documents.peek(TASKS_COLLECTION, task_id)["assignedTo"] == ["u2", "u1"]
    await settle()

    assert "No member matches" in await registry.handle(state, "/assign 1 'Dr. Rao'")
    assert "none" in await registry.handle(state, "/assign 1 none")
    assert documents.peek(TASKS_COLLECTION, task_id)["assignedTo"] == []


@pytest.mark.asyncio
async def test_faculty_create_command(state, documents) -> None:
    await _signed_in(state, "rao@college.edu")

    reply = await registry.handle(
        state,
        '/create title="Fest poster" event="Tech Fest" event_date=2030-03-01 '
        'due=2030-02-20 faculty="Dr. Rao" contact=rao@college.edu req=1,3',
    )

    assert reply.startswith("Task created")
    docs = await documents.read_all_once(TASKS_COLLECTION)
    assert len(docs) == 1
    assert docs[0]["requirements"] == ["Poster Creation / Advertising", "Others"]
    assert "Only members" in await registry.handle(state, "/claim 1")


@pytest.mark.asyncio
async def test_create_reports_bad_input(state) -> None:
    await _signed_in(state, "rao@college.edu")

    assert "Invalid due" in await registry.handle(state, "/create due=tomorrow")
    assert "Unknown field" in await registry.handle(state, "/create colour=red")
    assert await registry.handle(state, "/create title=x") == "Task was not created."
    assert state.notifier.notices[-1].startswith("Please fill all required fields")


@pytest.mark.asyncio
async def test_logout_and_status(state) -> None:
    await _signed_in(state, "ben@college.edu")
    assert "Ben (member, admin)" in await registry.handle(state, "/status")

    assert await registry.handle(state, "/logout") == "Signed out."
    assert state.dashboard is None
    assert "not signed in" in await registry.handle(state, "/status")
    assert await registry.handle(state, "/board") == "No dashboard is open. Sign in first."
