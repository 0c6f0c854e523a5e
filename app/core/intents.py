"""
Write intents produced by the assignment and membership engine.

The engine never touches the database. It returns one of these value
objects and the store applies it (see ``app.core.store.DirectoryStore``).
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union


@dataclass(frozen=True)
class SetUserAssignment:
    """Bind a user to a department and (optionally) a position."""
    user_id: str
    department_id: str
    position_id: Optional[str] = None
    reason: Optional[str] = None
    effective_date: Optional[date] = None


@dataclass(frozen=True)
class Unassign:
    """Clear a user's department and position together."""
    user_id: str
    reason: Optional[str] = None
    end_date: Optional[date] = None


@dataclass(frozen=True)
class SetDepartmentParent:
    department_id: str
    parent_id: Optional[str]


@dataclass(frozen=True)
class AddTeamMember:
    team_id: str
    user_id: str
    role_in_team: str
    joined_at: datetime


@dataclass(frozen=True)
class UpdateTeamMemberRole:
    team_id: str
    user_id: str
    role_in_team: str


@dataclass(frozen=True)
class RemoveTeamMember:
    team_id: str
    user_id: str


@dataclass(frozen=True)
class SetTeamLead:
    team_id: str
    user_id: Optional[str]


WriteIntent = Union[
    SetUserAssignment,
    Unassign,
    SetDepartmentParent,
    AddTeamMember,
    UpdateTeamMemberRole,
    RemoveTeamMember,
    SetTeamLead,
]
