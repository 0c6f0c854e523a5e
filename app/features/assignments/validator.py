"""
Assignment and membership rule checks.

Every check is a pure function over snapshots. It returns the first rule
the proposed change violates as a DirectoryError instance, or None when
the change is allowed. Callers decide whether to raise the error (single
operations) or record it (bulk operations).
"""
from typing import Iterable, Mapping, Optional, Sequence

from app.core.exceptions import (
    CapacityExceededError,
    CycleError,
    DirectoryError,
    DuplicateMembershipError,
    InactiveUserError,
    LeadRemovalError,
    NotAMemberError,
    NotFoundError,
    ScopeMismatchError,
)
from app.features.departments.schemas import DepartmentSnapshot
from app.features.positions.schemas import PositionSnapshot
from app.features.teams.schemas import TeamMemberSnapshot, TeamSnapshot
from app.features.users.schemas import UserSnapshot


# ============================================================================
# Department tree
# ============================================================================

def check_department_parent(
    department_id: str,
    parent_id: Optional[str],
    parents: Mapping[str, Optional[str]],
) -> Optional[DirectoryError]:
    """
    Check that setting ``department_id``'s parent to ``parent_id`` keeps the tree acyclic.

    ``parents`` maps every live department id to its current parent id.
    """
    if parent_id is None:
        return None
    if parent_id == department_id:
        return CycleError("A department cannot be its own parent", subject_id=department_id)
    if parent_id not in parents:
        return NotFoundError(f"Parent department {parent_id} not found", subject_id=parent_id)

    seen = set()
    ancestor: Optional[str] = parent_id
    while ancestor is not None and ancestor not in seen:
        if ancestor == department_id:
            return CycleError(
                f"Department {parent_id} is a descendant of {department_id}",
                subject_id=department_id,
            )
        seen.add(ancestor)
        ancestor = parents.get(ancestor)
    return None


def check_restore_department(
    department: DepartmentSnapshot,
    parents: Mapping[str, Optional[str]],
) -> Optional[DirectoryError]:
    """A trashed department may only come back under a live parent without forming a cycle."""
    return check_department_parent(department.id, department.parent_id, parents)


# ============================================================================
# User assignment
# ============================================================================

def check_position_in_department(
    position: PositionSnapshot,
    department_id: Optional[str],
) -> Optional[DirectoryError]:
    # Unscoped positions fit any department
    if position.department_id is None:
        return None
    if position.department_id != department_id:
        return ScopeMismatchError(
            f"Position {position.code or position.id} belongs to department "
            f"{position.department_id}, not {department_id}",
            subject_id=position.id,
        )
    return None


def check_user_assignment(
    user: UserSnapshot,
    department: DepartmentSnapshot,
    position: Optional[PositionSnapshot] = None,
    current_position: Optional[PositionSnapshot] = None,
) -> Optional[DirectoryError]:
    """
    Check assigning ``user`` to ``department`` and optionally ``position``.

    With no new position the user keeps ``current_position``, which must
    then fit the new department as well.
    """
    if not user.is_active:
        return InactiveUserError(f"User {user.name or user.id} is inactive", subject_id=user.id)
    if position is not None:
        return check_position_in_department(position, department.id)
    if current_position is not None:
        return check_position_in_department(current_position, department.id)
    return None


def check_position_holders(
    department_id: Optional[str],
    holders: Iterable[UserSnapshot],
) -> Optional[DirectoryError]:
    """Re-scoping a position must not strand the users currently holding it."""
    if department_id is None:
        return None
    for holder in holders:
        if holder.department_id != department_id:
            return ScopeMismatchError(
                f"User {holder.name or holder.id} holds this position outside department {department_id}",
                subject_id=holder.id,
            )
    return None


def check_restore_position(
    position: PositionSnapshot,
    department_ids: Iterable[str],
    holders: Iterable[UserSnapshot] = (),
) -> Optional[DirectoryError]:
    """
    A trashed position may come back only into a live department, and only
    if every user still holding it sits in that department.
    """
    if position.department_id is not None and position.department_id not in set(department_ids):
        return NotFoundError(
            f"Department {position.department_id} of position {position.code or position.id} not found",
            subject_id=position.department_id,
        )
    return check_position_holders(position.department_id, holders)


# ============================================================================
# Team membership
# ============================================================================

def find_member(members: Iterable[TeamMemberSnapshot], user_id: str) -> Optional[TeamMemberSnapshot]:
    for member in members:
        if member.user_id == user_id:
            return member
    return None


def check_team_scope(team: TeamSnapshot, user: UserSnapshot) -> Optional[DirectoryError]:
    if team.is_department_scoped and user.department_id != team.department_id:
        return ScopeMismatchError(
            f"User {user.name or user.id} is not in department {team.department_id} of team {team.name or team.id}",
            subject_id=user.id,
        )
    return None


def check_team_capacity(team: TeamSnapshot, member_count: int) -> Optional[DirectoryError]:
    """``member_count`` is the size the team would have after the change."""
    if team.max_members is not None and member_count > team.max_members:
        return CapacityExceededError(
            f"Team {team.name or team.id} is limited to {team.max_members} members",
            subject_id=team.id,
        )
    return None


def check_member_eligibility(
    team: TeamSnapshot,
    user: UserSnapshot,
    members: Sequence[TeamMemberSnapshot],
) -> Optional[DirectoryError]:
    """Duplicate, then inactive, then department scope."""
    if find_member(members, user.id) is not None:
        return DuplicateMembershipError(
            f"User {user.name or user.id} is already a member of team {team.name or team.id}",
            subject_id=user.id,
        )
    if not user.is_active:
        return InactiveUserError(f"User {user.name or user.id} is inactive", subject_id=user.id)
    return check_team_scope(team, user)


def check_add_member(
    team: TeamSnapshot,
    user: UserSnapshot,
    members: Sequence[TeamMemberSnapshot],
) -> Optional[DirectoryError]:
    return check_member_eligibility(team, user, members) or check_team_capacity(team, len(members) + 1)


def check_remove_member(
    team: TeamSnapshot,
    user_id: str,
    members: Sequence[TeamMemberSnapshot],
) -> Optional[DirectoryError]:
    if find_member(members, user_id) is None:
        return NotAMemberError(f"User {user_id} is not a member of team {team.name or team.id}", subject_id=user_id)
    if team.team_lead_id == user_id:
        return LeadRemovalError(
            f"User {user_id} leads team {team.name or team.id}; reassign or clear the lead first",
            subject_id=user_id,
        )
    return None


def check_team_lead(
    team: TeamSnapshot,
    user: Optional[UserSnapshot],
    members: Sequence[TeamMemberSnapshot],
) -> Optional[DirectoryError]:
    # Clearing the lead is always allowed
    if user is None:
        return None
    if find_member(members, user.id) is None:
        return NotAMemberError(
            f"Team lead must be a member of team {team.name or team.id}",
            subject_id=user.id,
        )
    if not user.is_active:
        return InactiveUserError(f"User {user.name or user.id} is inactive", subject_id=user.id)
    return None


def check_team_update(
    team: TeamSnapshot,
    member_users: Sequence[UserSnapshot],
    capacity_changed: bool = True,
    scope_changed: bool = True,
) -> Optional[DirectoryError]:
    """
    Check a team's new capacity and scope against its current members.

    ``team`` carries the proposed values; ``member_users`` are the users
    currently holding a membership. Members may sit outside the team's
    department after a transfer; scope is re-checked only when
    ``scope_changed``.
    """
    if capacity_changed:
        error = check_team_capacity(team, len(member_users))
        if error is not None:
            return error
    if not scope_changed:
        return None
    for user in member_users:
        error = check_team_scope(team, user)
        if error is not None:
            return error
    return None


def check_restore_team(
    team: TeamSnapshot,
    department_ids: Iterable[str],
    member_users: Sequence[UserSnapshot],
) -> Optional[DirectoryError]:
    if team.department_id is not None and team.department_id not in set(department_ids):
        return NotFoundError(
            f"Department {team.department_id} of team {team.name or team.id} not found",
            subject_id=team.department_id,
        )
    error = check_team_update(team, member_users, scope_changed=False)
    if error is not None:
        return error
    if team.team_lead_id is not None and all(u.id != team.team_lead_id for u in member_users):
        return NotAMemberError(
            f"Team lead {team.team_lead_id} is no longer a member of team {team.name or team.id}",
            subject_id=team.team_lead_id,
        )
    return None


def check_lead_deactivation(
    user: UserSnapshot,
    led_teams: Sequence[TeamSnapshot],
) -> Optional[DirectoryError]:
    """A user leading a live team cannot be deactivated or deleted until the lead is reassigned or cleared."""
    if led_teams:
        names = ", ".join(team.name or team.id for team in led_teams)
        return LeadRemovalError(
            f"User {user.name or user.id} leads team(s) {names}; reassign or clear the lead first",
            subject_id=user.id,
        )
    return None
