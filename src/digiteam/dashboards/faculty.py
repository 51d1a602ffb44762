# src/digiteam/dashboards/faculty.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from ..core.errors import PortalError
from ..core.routes import Route
from ..core.state import AppState
from ..tasks.board import FacultyRow, faculty_listing
from ..tasks.task_models import REQUIREMENT_OPTIONS
from .base import Dashboard

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskForm:
    """Create-task form state. Requirements toggle like tiles."""

    title: str = ""
    description: str = ""
    event_name: str = ""
    event_date: date | None = None
    due_date: date | None = None
    requirements: list[str] = field(default_factory=list)
    faculty_name: str = ""
    faculty_contact: str = ""

    def toggle_requirement(self, value: str) -> None:
        if value not in REQUIREMENT_OPTIONS:
            raise ValueError(f"Unknown requirement: {value!r}")
        if value in self.requirements:
            self.requirements.remove(value)
        else:
            self.requirements.append(value)

    def reset(self) -> None:
        self.title = ""
        self.description = ""
        self.event_name = ""
        self.event_date = None
        self.due_date = None
        self.requirements = []
        self.faculty_name = ""
        self.faculty_contact = ""


class FacultyDashboard(Dashboard):
    route = Route.FACULTY_DASHBOARD

    def __init__(self, state: AppState) -> None:
        super().__init__(state)
        self.form = TaskForm()

    @property
    def rows(self) -> tuple[FacultyRow, ...]:
        return faculty_listing(self.tasks.items, self.directory)

    async def submit(self) -> str | None:
        """Create a task from the form. Returns the new id, or None (notice already shown)."""
        f = self.form
        try:
            task_id = await self.api.create_task(
                title=f.title,
                description=f.description,
                event_name=f.event_name,
                event_date=f.event_date,
                due_date=f.due_date,
                requirements=list(f.requirements),
                faculty_name=f.faculty_name,
                faculty_contact=f.faculty_contact,
            )
        except ValueError as e:
            self.notify(str(e))
            return None
        except PortalError as e:
            # keep the form so the user can retry
            logger.info("create failed: %s", e)
            self.notify(str(e))
            return None
        f.reset()
        return task_id
