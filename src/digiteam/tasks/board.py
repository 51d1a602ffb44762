# src/digiteam/tasks/board.py

from __future__ import annotations

"""
Board projection.

Pure derivation from (task snapshot, current user id, user directory). Nothing here
holds state of its own except LiveBoard, which only caches the latest projection
and recomputes it whenever the task store, the event store or the session changes.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from ..core.reactive import SnapshotCell
from ..users.directory import UNKNOWN_USER, UserDirectory
from .task_models import STATUS_SEQUENCE, Event, Task, TaskStatus

logger = logging.getLogger(__name__)

DUE_SOON_LIMIT = 5
UPCOMING_EVENTS_LIMIT = 5
UNASSIGNED = "Unassigned"


@dataclass(frozen=True, slots=True)
class CompletedEntry:
    task: Task
    assignee_names: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class FacultyRow:
    task: Task
    assigned_label: str


@dataclass(frozen=True, slots=True)
class BoardView:
    columns: dict[TaskStatus, tuple[Task, ...]]
    available: tuple[Task, ...]
    due_soon: tuple[Task, ...]
    my_due_soon: tuple[Task, ...]
    completed: tuple[CompletedEntry, ...]
    my_task_ids: frozenset[str]
    upcoming_events: tuple[Event, ...] = ()
    total: int = 0

    def column(self, status: TaskStatus) -> tuple[Task, ...]:
        return self.columns.get(status, ())


def empty_board() -> BoardView:
    return BoardView(
        columns={s: () for s in STATUS_SEQUENCE},
        available=(),
        due_soon=(),
        my_due_soon=(),
        completed=(),
        my_task_ids=frozenset(),
    )


def status_columns(tasks: Sequence[Task]) -> dict[TaskStatus, tuple[Task, ...]]:
    # Keeps store order (newest first) inside each column.
    return {s: tuple(t for t in tasks if t.status is s) for s in STATUS_SEQUENCE}


def available_tasks(tasks: Sequence[Task], uid: str | None) -> tuple[Task, ...]:
    return tuple(t for t in tasks if not t.is_assigned_to(uid))


def due_soon(
        tasks: Iterable[Task],
        limit: int = DUE_SOON_LIMIT,
        *,
        assigned_to: str | None = None,
) -> tuple[Task, ...]:
    """
    Tasks with a due date, earliest first, capped at `limit`.

    Tasks without a due date are left out entirely. sorted() is stable, so equal
    dates keep store order.
    """
    dated = [t for t in tasks if t.due_date is not None]
    if assigned_to is not None:
        dated = [t for t in dated if t.is_assigned_to(assigned_to)]
    dated.sort(key=lambda t: t.due_date)  # type: ignore[arg-type,return-value]
    return tuple(dated[: max(0, limit)])


def upcoming_events(events: Iterable[Event], limit: int = UPCOMING_EVENTS_LIMIT) -> tuple[Event, ...]:
    dated = sorted((e for e in events if e.event_date is not None), key=lambda e: e.event_date)  # type: ignore[arg-type,return-value]
    return tuple(dated[: max(0, limit)])


def assignee_names(task: Task, directory: UserDirectory | None) -> tuple[str, ...]:
    if directory is None:
        return tuple(UNKNOWN_USER for _ in task.assigned_to)
    return tuple(directory.resolve_names(task.assigned_to))


def completed_history(tasks: Sequence[Task], directory: UserDirectory | None) -> tuple[CompletedEntry, ...]:
    return tuple(
        CompletedEntry(task=t, assignee_names=assignee_names(t, directory))
        for t in tasks
        if t.status is TaskStatus.COMPLETED
    )


def faculty_listing(tasks: Sequence[Task], directory: UserDirectory | None) -> tuple[FacultyRow, ...]:
    """All tasks as faculty see them; unresolved assignees show their raw id."""
    rows: list[FacultyRow] = []
    for t in tasks:
        if not t.assigned_to:
            label = UNASSIGNED
        elif directory is None:
            label = ", ".join(t.assigned_to)
        else:
            label = ", ".join(directory.resolve_names(t.assigned_to, fallback=None))
        rows.append(FacultyRow(task=t, assigned_label=label))
    return tuple(rows)


def project_board(
        tasks: Sequence[Task],
        *,
        uid: str | None,
        directory: UserDirectory | None = None,
        events: Sequence[Event] = (),
        due_soon_limit: int = DUE_SOON_LIMIT,
        events_limit: int = UPCOMING_EVENTS_LIMIT,
) -> BoardView:
    return BoardView(
        columns=status_columns(tasks),
        available=available_tasks(tasks, uid),
        due_soon=due_soon(tasks, due_soon_limit),
        my_due_soon=due_soon(tasks, due_soon_limit, assigned_to=uid) if uid else (),
        completed=completed_history(tasks, directory),
        my_task_ids=frozenset(t.id for t in tasks if t.is_assigned_to(uid)),
        upcoming_events=upcoming_events(events, events_limit),
        total=len(tasks),
    )


@dataclass(slots=True)
class LiveBoard:
    """
    Latest BoardView, recomputed on every change notification from its sources.

    Sources are passed as zero-arg getters so the board never keeps its own copy
    of tasks, events or the session.
    """

    tasks: Callable[[], Sequence[Task]]
    uid: Callable[[], str | None]
    directory: UserDirectory | None = None
    events: Callable[[], Sequence[Event]] = lambda: ()
    due_soon_limit: int = DUE_SOON_LIMIT
    events_limit: int = UPCOMING_EVENTS_LIMIT
    _cell: SnapshotCell[BoardView] = field(init=False, default_factory=lambda: SnapshotCell(empty_board()))

    @property
    def view(self) -> BoardView:
        return self._cell.value

    def observe(self, listener: Callable[[BoardView], None]) -> Callable[[], None]:
        return self._cell.observe(listener)

    def recompute(self, *_: object) -> BoardView:
        view = project_board(
            self.tasks(),
            uid=self.uid(),
            directory=self.directory,
            events=self.events(),
            due_soon_limit=self.due_soon_limit,
            events_limit=self.events_limit,
        )
        self._cell.set(view)
        return view
