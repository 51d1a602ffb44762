# src/digiteam/core/routes.py

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum


class Route(StrEnum):
    ENTRY = "/"
    FACULTY_DASHBOARD = "/faculty-dashboard"
    MEMBER_DASHBOARD = "/member-dashboard"


Navigate = Callable[[Route], None]


def no_navigation(route: Route) -> None:
    return None
