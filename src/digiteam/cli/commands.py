# src/digiteam/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Awaitable, Callable
from datetime import date
from typing import cast

from ..core.errors import DirectoryLookupMiss, PortalError
from ..core.state import AppState
from ..dashboards.faculty import FacultyDashboard
from ..dashboards.member import MemberDashboard
from ..tasks.board import BoardView
from ..tasks.task_models import REQUIREMENT_OPTIONS, STATUS_SEQUENCE, Task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /board, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like '/command args' (shell-style quoting allowed).
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Could not parse command: {e}."
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return await h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return await h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----

def _member_dashboard(state: AppState) -> MemberDashboard | None:
    d = state.dashboard
    return d if isinstance(d, MemberDashboard) and d.mounted else None


def _faculty_dashboard(state: AppState) -> FacultyDashboard | None:
    d = state.dashboard
    return d if isinstance(d, FacultyDashboard) and d.mounted else None


def _listed_tasks(state: AppState) -> tuple[Task, ...]:
    d = state.dashboard
    if d is None or not d.mounted:
        return ()
    return d.tasks.items


def resolve_task(tasks: tuple[Task, ...], ref: str) -> Task | None:
    """Find a task by 1-based list index, exact id or unique id prefix."""
    ref = ref.strip()
    if not ref:
        return None
    if ref.isdigit():
        i = int(ref)
        if 1 <= i <= len(tasks):
            return tasks[i - 1]
    for t in tasks:
        if t.id == ref:
            return t
    matches = [t for t in tasks if t.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    return None


def _fmt_date(d: date | None) -> str:
    return d.isoformat() if d else "-"


def _task_line(i: int, t: Task, *, mine: bool = False) -> str:
    flag = "*" if mine else " "
    return f"{flag}{i:>3}. [{t.id[:8]}] {t.title}  (due {_fmt_date(t.due_date)}, event {t.event_name or '-'})"


def render_board(view: BoardView, tasks: tuple[Task, ...]) -> str:
    index = {t.id: i for i, t in enumerate(tasks, start=1)}
    lines: list[str] = []
    for status in STATUS_SEQUENCE:
        col = view.column(status)
        lines.append(f"== {status.label} ({len(col)}) ==")
        for t in col:
            lines.append(_task_line(index.get(t.id, 0), t, mine=t.id in view.my_task_ids))
    lines.append(f"== Available ({len(view.available)}) ==")
    for t in view.available:
        lines.append(_task_line(index.get(t.id, 0), t))
    lines.append("== Due soon ==")
    for t in view.due_soon:
        lines.append(f"  {_fmt_date(t.due_date)}  {t.title}")
    if not view.due_soon:
        lines.append("  (nothing due)")
    lines.append("== Completed ==")
    for entry in view.completed:
        lines.append(f"  {entry.task.title} - {', '.join(entry.assignee_names) or '-'}")
    if not view.completed:
        lines.append("  (none yet)")
    return "\n".join(lines)


def _parse_direction(raw: str) -> int | None:
    raw = raw.strip().lower()
    if raw in ("next", "+", "+1", "1", "forward", "right"):
        return 1
    if raw in ("prev", "back", "-", "-1", "left"):
        return -1
    return None


def _parse_requirements(raw: str) -> list[str]:
    out: list[str] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if part.isdigit() and 1 <= int(part) <= len(REQUIREMENT_OPTIONS):
            out.append(REQUIREMENT_OPTIONS[int(part) - 1])
        else:
            out.append(part)
    return out


# ---- commands ----

async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    s = state.session.session
    who = f"{s.name} ({s.role.value}{', admin' if s.is_admin else ''})" if s else "not signed in"
    dashboard = type(state.dashboard).__name__ if state.dashboard is not None else "none"
    return (
        "Status:\n"
        f"  Backend: {getattr(state.settings, 'backend', 'memory')}\n"
        f"  User: {who}\n"
        f"  Route: {state.route.value}\n"
        f"  Dashboard: {dashboard}"
    )


async def cmd_board(state: AppState, args: list[str]) -> str:
    member = _member_dashboard(state)
    if member is not None:
        return render_board(member.view, member.tasks.items)

    faculty = _faculty_dashboard(state)
    if faculty is not None:
        rows = faculty.rows
        if not rows:
            return "No tasks yet. Use /create to add one."
        lines = ["Tasks:"]
        for i, row in enumerate(rows, start=1):
            t = row.task
            lines.append(
                f"{i:>4}. [{t.id[:8]}] {t.title} | {t.status.label} | due {_fmt_date(t.due_date)} | {row.assigned_label}"
            )
        return "\n".join(lines)

    return "No dashboard is open. Sign in first."


async def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <task>"
    task = resolve_task(_listed_tasks(state), args[0])
    if task is None:
        return f"No task matches {args[0]!r}."

    names: list[str] = []
    d = state.dashboard
    if d is not None:
        names = d.directory.resolve_names(task.assigned_to)
    member = _member_dashboard(state)
    if member is not None:
        member.open_task(task.id)

    return "\n".join(
        [
            f"{task.title} [{task.id}]",
            f"  Status: {task.status.label}",
            f"  Event: {task.event_name or '-'} on {_fmt_date(task.event_date)}",
            f"  Deadline: {_fmt_date(task.due_date)}",
            f"  Requirements: {', '.join(task.requirements) or '-'}",
            f"  Faculty: {task.faculty_name or '-'} ({task.faculty_contact or '-'})",
            f"  Assigned: {', '.join(names) or '-'}",
            f"  Description: {task.description or '-'}",
        ]
    )


async def cmd_move(state: AppState, args: list[str]) -> str:
    member = _member_dashboard(state)
    if member is None:
        return "Only members can move tasks."
    if len(args) < 2 or (direction := _parse_direction(args[1])) is None:
        return "Usage: /move <task> next|prev"
    task = resolve_task(member.tasks.items, args[0])
    if task is None:
        return f"No task matches {args[0]!r}."
    if await member.move(task.id, direction):
        return f"Moved {task.title!r}."
    return f"{task.title!r} was not moved."


async def cmd_claim(state: AppState, args: list[str]) -> str:
    member = _member_dashboard(state)
    if member is None:
        return "Only members can claim tasks."
    if not args:
        return "Usage: /claim <task>"
    task = resolve_task(member.tasks.items, args[0])
    if task is None:
        return f"No task matches {args[0]!r}."
    if await member.claim(task.id):
        return f"You are on {task.title!r}."
    return f"Could not claim {task.title!r}."


async def cmd_assign(state: AppState, args: list[str]) -> str:
    """
    /assign <task>                -> show current assignees and candidates
    /assign <task> none           -> clear assignees
    /assign <task> <member> ...   -> replace assignees (id, email or name)
    """
    member = _member_dashboard(state)
    if member is None:
        return "Only members can reassign tasks."
    if not args:
        return "Usage: /assign <task> [member ...|none]"
    task = resolve_task(member.tasks.items, args[0])
    if task is None:
        return f"No task matches {args[0]!r}."

    editor = member.open_task(task.id)
    if editor is None:
        return f"No task matches {args[0]!r}."

    if len(args) == 1:
        lines = [f"Assignees of {task.title!r}:"]
        for user in member.assignee_candidates():
            mark = "x" if editor.is_checked(user.id) else " "
            lines.append(f"  [{mark}] {user.name} ({user.email or user.id})")
        return "\n".join(lines)

    wanted: list[str] = []
    if not (len(args) == 2 and args[1].lower() == "none"):
        for token in args[1:]:
            try:
                wanted.append(member.directory.find_member(token).id)
            except DirectoryLookupMiss as e:
                return str(e)

    for uid in list(editor.working):
        editor.toggle(uid, False)
    for uid in wanted:
        editor.toggle(uid, True)

    if await member.save_assignees():
        names = member.directory.resolve_names(editor.working)
        member.close_task()
        return f"Assignees of {task.title!r}: {', '.join(names) or 'none'}."
    return f"Could not update assignees of {task.title!r}."


async def cmd_delete(state: AppState, args: list[str]) -> str:
    member = _member_dashboard(state)
    if member is None:
        return "Only members can delete tasks."
    if not args:
        return "Usage: /delete <task>"
    task = resolve_task(member.tasks.items, args[0])
    if task is None:
        return f"No task matches {args[0]!r}."
    if await member.delete(task.id):
        return f"Deleted {task.title!r}."
    return f"{task.title!r} was not deleted."


async def cmd_create(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /create title=... event=... event_date=YYYY-MM-DD due=YYYY-MM-DD faculty=... contact=...
            [description=...] [req=1,2]
    """
    faculty = _faculty_dashboard(state)
    if faculty is None:
        return "Only faculty can create tasks."
    if not args:
        options = ", ".join(f"{i}={o}" for i, o in enumerate(REQUIREMENT_OPTIONS, start=1))
        return (
            "Usage: /create title=... event=... event_date=YYYY-MM-DD due=YYYY-MM-DD "
            "faculty=... contact=... [description=...] [req=1,2]\n"
            f"  Requirements: {options}"
        )

    form = faculty.form
    form.reset()
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep:
            return f"Expected key=value, got {arg!r}."
        key = key.strip().lower()
        try:
            if key == "title":
                form.title = value
            elif key in ("event", "event_name"):
                form.event_name = value
            elif key == "event_date":
                form.event_date = date.fromisoformat(value)
            elif key in ("due", "due_date", "deadline"):
                form.due_date = date.fromisoformat(value)
            elif key in ("faculty", "faculty_name"):
                form.faculty_name = value
            elif key in ("contact", "faculty_contact"):
                form.faculty_contact = value
            elif key in ("description", "desc"):
                form.description = value
            elif key in ("req", "requirements"):
                for r in _parse_requirements(value):
                    if r not in form.requirements:
                        form.toggle_requirement(r)
            else:
                return f"Unknown field: {key}."
        except ValueError as e:
            return f"Invalid {key}: {e}"

    if emit:
        emit("Creating task...")
    task_id = await faculty.submit()
    if task_id is None:
        return "Task was not created."
    return f"Task created [{task_id}]."


async def cmd_events(state: AppState, args: list[str]) -> str:
    member = _member_dashboard(state)
    if member is None:
        return "Events are shown on the member dashboard."
    events = member.view.upcoming_events
    if not events:
        return "No upcoming events."
    lines = ["Upcoming events:"]
    for e in events:
        lines.append(f"  {_fmt_date(e.event_date)}  {e.title}")
    return "\n".join(lines)


async def cmd_passwd(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /passwd <new password>"
    try:
        await state.session.change_password(args[0])
    except PortalError as e:
        return str(e)
    return "Password changed."


async def cmd_logout(state: AppState, args: list[str]) -> str:
    if state.session.session is None:
        return "Not signed in."
    await state.session.sign_out()
    return "Signed out."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend, user and route.")
registry.register("board", cmd_board, help_text="Show the board (member) or the task list (faculty).", aliases=["b"])
registry.register("show", cmd_show, help_text="Show task details: /show <task>.")
registry.register("move", cmd_move, help_text="Move a task: /move <task> next|prev.")
registry.register("claim", cmd_claim, help_text="Add yourself to a task: /claim <task>.")
registry.register("assign", cmd_assign, help_text="Set assignees: /assign <task> [member ...|none].")
registry.register("delete", cmd_delete, help_text="Delete a task (admins only): /delete <task>.")
registry.register("create", cmd_create, help_text="Create a task (faculty): /create key=value ...")
registry.register("events", cmd_events, help_text="Show upcoming events.")
registry.register("passwd", cmd_passwd, help_text="Change password: /passwd <new>.")
registry.register("logout", cmd_logout, help_text="Sign out.")
