# src/digiteam/dashboards/member.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..core.routes import Route
from ..core.state import AppState
from ..tasks.board import BoardView, LiveBoard
from ..tasks.task_models import Task
from ..tasks.task_store import EventStore, LiveCollection
from ..users.user_models import UserRecord
from .base import Dashboard

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AssigneeEditor:
    """
    Working set of the reassignment dialog.

    Seeded from the task's assignees when the dialog opens; edits stay local until
    MemberDashboard.save_assignees() writes the whole set.
    """

    task_id: str
    working: list[str] = field(default_factory=list)

    def toggle(self, uid: str, checked: bool) -> None:
        if checked and uid not in self.working:
            self.working.append(uid)
        elif not checked and uid in self.working:
            self.working.remove(uid)

    def is_checked(self, uid: str) -> bool:
        return uid in self.working


class MemberDashboard(Dashboard):
    route = Route.MEMBER_DASHBOARD

    def __init__(self, state: AppState) -> None:
        super().__init__(state)
        self.events = EventStore(state.documents)
        settings = state.settings
        self.board = LiveBoard(
            tasks=lambda: self.tasks.items,
            uid=lambda: state.session.uid,
            directory=self.directory,
            events=lambda: self.events.items,
            due_soon_limit=int(getattr(settings, "due_soon_limit", 5)),
            events_limit=int(getattr(settings, "upcoming_events_limit", 5)),
        )
        self.selected_task_id: str | None = None
        self.editor: AssigneeEditor | None = None

    def _live_collections(self) -> list[LiveCollection]:
        return [self.tasks, self.events]

    async def _after_subscribe(self) -> None:
        # Projection follows every store delivery and every session change.
        self._teardown.append(self.tasks.observe(self.board.recompute))
        self._teardown.append(self.events.observe(self.board.recompute))
        self._teardown.append(self._state.session.observe(self.board.recompute))
        self._teardown.append(self.tasks.observe(self._on_tasks))
        self.board.recompute()

    @property
    def view(self) -> BoardView:
        return self.board.view

    # ---- task detail / reassignment dialog ----

    @property
    def selected_task(self) -> Task | None:
        if self.selected_task_id is None:
            return None
        return self.tasks.get(self.selected_task_id)

    def open_task(self, task_id: str) -> AssigneeEditor | None:
        task = self.tasks.get(task_id)
        if task is None:
            return None
        self.selected_task_id = task.id
        self.editor = AssigneeEditor(task_id=task.id, working=list(task.assigned_to))
        return self.editor

    def close_task(self) -> None:
        self.selected_task_id = None
        self.editor = None

    def assignee_candidates(self) -> list[UserRecord]:
        return self.directory.members()

    def _on_tasks(self, tasks: tuple[Task, ...]) -> None:
        # A task deleted by someone else closes its open detail view.
        if self.selected_task_id is not None and all(t.id != self.selected_task_id for t in tasks):
            logger.debug("Selected task %s disappeared; closing detail view", self.selected_task_id)
            self.close_task()

    # ---- actions ----

    def _task(self, task_id: str) -> Task | None:
        task = self.tasks.get(task_id)
        if task is None:
            self.notify(f"Task {task_id} is not on the board.")
        return task

    async def move(self, task_id: str, direction: int) -> bool:
        task = self._task(task_id)
        if task is None:
            return False
        return await self._guarded("move", self.api.move_status(task, direction))

    async def claim(self, task_id: str) -> bool:
        task = self._task(task_id)
        if task is None:
            return False
        return await self._guarded("claim", self.api.claim_self(task))

    async def save_assignees(self) -> bool:
        editor = self.editor
        if editor is None:
            return False
        task = self._task(editor.task_id)
        if task is None:
            return False
        return await self._guarded("reassign", self.api.update_assignees(task, list(editor.working)))

    async def delete(self, task_id: str) -> bool:
        task = self._task(task_id)
        if task is None:
            return False
        ok = await self._guarded("delete", self.api.delete_task(task))
        if ok and self.selected_task_id == task.id:
            self.close_task()
        return ok
