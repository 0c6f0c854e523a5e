"""
Domain errors raised by the assignment and membership engine.

Every error carries a stable ``kind`` (used in API responses and bulk
reports) and the HTTP status the API layer maps it to.
"""
from typing import Optional


class DirectoryError(Exception):
    """Base class for assignment and membership rule violations."""
    kind: str = "directory_error"
    status_code: int = 400

    def __init__(self, message: str, *, subject_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.subject_id = subject_id

    def to_dict(self) -> dict:
        body = {"error": self.kind, "message": self.message}
        if self.subject_id is not None:
            body["subject_id"] = self.subject_id
        return body

    def __repr__(self) -> str:
        return f"<{type(self).__name__}({self.message!r})>"


class NotFoundError(DirectoryError):
    kind = "not_found"
    status_code = 404


class CycleError(DirectoryError):
    """A department would become its own ancestor."""
    kind = "cycle"
    status_code = 409


class ScopeMismatchError(DirectoryError):
    """A position or team is scoped to a different department than the user."""
    kind = "scope_mismatch"
    status_code = 422


class InactiveUserError(DirectoryError):
    kind = "inactive_user"
    status_code = 422


class CapacityExceededError(DirectoryError):
    kind = "capacity_exceeded"
    status_code = 409


class LeadRemovalError(DirectoryError):
    """The current team lead cannot leave the team until leadership is cleared."""
    kind = "lead_removal"
    status_code = 409


class DuplicateMembershipError(DirectoryError):
    kind = "duplicate_membership"
    status_code = 409


class NotAMemberError(DirectoryError):
    kind = "not_a_member"
    status_code = 404
