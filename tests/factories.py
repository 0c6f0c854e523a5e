"""
Snapshot builders for engine tests and request helpers for API tests.
"""
import itertools
from typing import Optional

from app.features.departments.schemas import DepartmentSnapshot
from app.features.permissions.schemas import RoleSnapshot
from app.features.positions.schemas import PositionSnapshot
from app.features.teams.models import TeamType
from app.features.teams.schemas import TeamMemberSnapshot, TeamSnapshot
from app.features.users.schemas import UserSnapshot


_seq = itertools.count(1)


def user(user_id: str, department_id: Optional[str] = None, position_id: Optional[str] = None, is_active: bool = True) -> UserSnapshot:
    return UserSnapshot(id=user_id, name=user_id.title(), is_active=is_active, department_id=department_id, position_id=position_id)


def department(department_id: str, parent_id: Optional[str] = None) -> DepartmentSnapshot:
    return DepartmentSnapshot(id=department_id, name=department_id.title(), code=department_id.upper(), parent_id=parent_id)


def position(position_id: str, department_id: Optional[str] = None) -> PositionSnapshot:
    return PositionSnapshot(id=position_id, name=position_id.title(), code=position_id.upper(), department_id=department_id)


def team(
    team_id: str = "t1",
    department_id: Optional[str] = None,
    team_type: TeamType = TeamType.PERMANENT,
    max_members: Optional[int] = None,
    team_lead_id: Optional[str] = None,
) -> TeamSnapshot:
    return TeamSnapshot(
        id=team_id,
        name=team_id.title(),
        team_type=team_type,
        department_id=department_id,
        max_members=max_members,
        team_lead_id=team_lead_id,
    )


def member(team_id: str, user_id: str, role_in_team: str = "Member") -> TeamMemberSnapshot:
    return TeamMemberSnapshot(team_id=team_id, user_id=user_id, role_in_team=role_in_team)


def role(name: str, *permissions: str) -> RoleSnapshot:
    return RoleSnapshot(id=name, name=name, permissions=list(permissions))


# ============================================================================
# API helpers
# ============================================================================

def create_user(client, name: str = "user", is_active: bool = True) -> dict:
    n = next(_seq)
    response = client.post("/users/", json={"name": f"{name} {n}", "email": f"{name}{n}@example.com", "is_active": is_active})
    assert response.status_code == 201, response.text
    return response.json()


def create_department(client, code: str, parent_id: Optional[str] = None) -> dict:
    response = client.post("/departments/", json={"name": code.title(), "code": code, "parent_id": parent_id})
    assert response.status_code == 201, response.text
    return response.json()


def create_position(client, code: str, department_id: Optional[str] = None, **extra) -> dict:
    response = client.post("/positions/", json={"name": code.title(), "code": code, "department_id": department_id, **extra})
    assert response.status_code == 201, response.text
    return response.json()


def create_team(client, code: str, **extra) -> dict:
    response = client.post("/teams/", json={"name": code.title(), "code": code, **extra})
    assert response.status_code == 201, response.text
    return response.json()


def assign(client, user_id: str, department_id: str, position_id: Optional[str] = None):
    return client.post(
        "/assignments/assign",
        json={"user_id": user_id, "department_id": department_id, "position_id": position_id},
    )
