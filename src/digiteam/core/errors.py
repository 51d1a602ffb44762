# src/digiteam/core/errors.py

"""
Error taxonomy shared by the core, the backends and the connectors.

Backends translate their own failures (sqlite3 errors, HTTP errors) into StoreError
or AuthFailure so that nothing above the port layer depends on a concrete backend.
"""

from __future__ import annotations


class PortalError(Exception):
    """Base class for every error the portal surfaces to the user."""


class AuthFailure(PortalError):
    """Bad credentials, registration conflict or a rejected account operation."""


class InvalidCredentials(AuthFailure):
    pass


class RegistrationConflict(AuthFailure):
    pass


class NoRoleRecord(PortalError):
    """The authenticated identity has no entry in the user directory."""

    def __init__(self, uid: str) -> None:
        super().__init__(f"No role info found for user {uid}.")
        self.uid = uid


class DirectoryLookupMiss(PortalError):
    """An assignee id could not be resolved. Views recover with a fallback label."""


class StoreError(PortalError):
    """A document store call failed (network, storage, remote rejection)."""


class MutationRejected(PortalError):
    """A task mutation did not reach the remote store."""

    def __init__(self, operation: str, task_id: str, reason: str = "") -> None:
        msg = f"Failed to {operation} task {task_id}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
        self.operation = operation
        self.task_id = task_id


class PermissionDenied(PortalError):
    """The session is not allowed to perform the operation. Raised before any remote call."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"You are not allowed to {operation} tasks.")
        self.operation = operation
