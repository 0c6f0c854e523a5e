"""
Team membership lifecycle and candidate eligibility.

A (team, user) pair moves NONE -> MEMBER on add, may change its
role_in_team while a member, and returns to NONE on removal. The team
lead cannot be removed while leading.
"""
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from app.core import config
from app.core.intents import AddTeamMember, RemoveTeamMember, SetTeamLead, UpdateTeamMemberRole
from app.core.exceptions import NotAMemberError
from app.features.assignments.validator import (
    check_add_member,
    check_member_eligibility,
    check_remove_member,
    check_team_lead,
    find_member,
)
from app.features.teams.schemas import CandidateStatus, TeamMemberSnapshot, TeamSnapshot
from app.features.users.schemas import UserSnapshot


def active_members_count(members: Sequence[TeamMemberSnapshot]) -> int:
    return len(members)


def is_full(team: TeamSnapshot, members: Sequence[TeamMemberSnapshot]) -> bool:
    return team.max_members is not None and active_members_count(members) >= team.max_members


def eligible_candidates(
    team: TeamSnapshot,
    users: Sequence[UserSnapshot],
    members: Sequence[TeamMemberSnapshot],
) -> List[UserSnapshot]:
    """
    Users that could be added to ``team`` right now, ignoring capacity.

    Department-scoped teams only draw from their department; cross-functional
    and departmentless teams draw from every active user. Current members
    are excluded.
    """
    return [user for user in users if check_member_eligibility(team, user, members) is None]


def candidate_statuses(
    team: TeamSnapshot,
    users: Sequence[UserSnapshot],
    members: Sequence[TeamMemberSnapshot],
) -> List[CandidateStatus]:
    """Every user with the reason they can or cannot be added."""
    statuses = []
    for user in users:
        error = check_add_member(team, user, members)
        if error is None:
            statuses.append(CandidateStatus(user_id=user.id, name=user.name, eligible=True))
            continue
        statuses.append(
            CandidateStatus(
                user_id=user.id,
                name=user.name,
                eligible=False,
                reason=error.kind,
                message=error.message,
            )
        )
    return statuses


def plan_add_member(
    team: TeamSnapshot,
    user: UserSnapshot,
    members: Sequence[TeamMemberSnapshot],
    role_in_team: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AddTeamMember:
    error = check_add_member(team, user, members)
    if error is not None:
        raise error
    return AddTeamMember(
        team_id=team.id,
        user_id=user.id,
        role_in_team=role_in_team or config.DEFAULT_TEAM_ROLE,
        joined_at=now or datetime.now(timezone.utc),
    )


def plan_update_member_role(
    team: TeamSnapshot,
    user_id: str,
    members: Sequence[TeamMemberSnapshot],
    role_in_team: str,
) -> UpdateTeamMemberRole:
    if find_member(members, user_id) is None:
        raise NotAMemberError(f"User {user_id} is not a member of team {team.name or team.id}", subject_id=user_id)
    return UpdateTeamMemberRole(team_id=team.id, user_id=user_id, role_in_team=role_in_team)


def plan_remove_member(
    team: TeamSnapshot,
    user_id: str,
    members: Sequence[TeamMemberSnapshot],
) -> RemoveTeamMember:
    error = check_remove_member(team, user_id, members)
    if error is not None:
        raise error
    return RemoveTeamMember(team_id=team.id, user_id=user_id)


def plan_set_team_lead(
    team: TeamSnapshot,
    user: Optional[UserSnapshot],
    members: Sequence[TeamMemberSnapshot],
) -> SetTeamLead:
    """Make ``user`` the team lead, or clear the lead when ``user`` is None."""
    error = check_team_lead(team, user, members)
    if error is not None:
        raise error
    return SetTeamLead(team_id=team.id, user_id=user.id if user is not None else None)
