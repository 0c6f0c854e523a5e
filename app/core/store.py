"""
Snapshot reads and intent writes against the SQL database.

The engine modules (validator, planner, bulk, membership) work on
snapshots and return write intents. DirectoryStore is the bridge: it
loads snapshots of live (not soft-deleted) rows and applies intents to
ORM rows, keeping assignment history in step.
"""
from datetime import date
from typing import Dict, Iterable, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.intents import (
    AddTeamMember,
    RemoveTeamMember,
    SetDepartmentParent,
    SetTeamLead,
    SetUserAssignment,
    Unassign,
    UpdateTeamMemberRole,
    WriteIntent,
)
from app.features.assignments.models import AssignmentHistory
from app.features.departments.models import Department
from app.features.departments.schemas import DepartmentSnapshot
from app.features.permissions.models import Role, user_roles
from app.features.permissions.schemas import RoleSnapshot
from app.features.positions.models import Position
from app.features.positions.schemas import PositionSnapshot
from app.features.teams.models import Team, TeamMember
from app.features.teams.schemas import TeamMemberSnapshot, TeamSnapshot
from app.features.users.models import User
from app.features.users.schemas import UserSnapshot
from app.utils import get_logger


log = get_logger(__name__)


class DirectoryReader(Protocol):
    """Read port: snapshots of live directory rows."""

    async def get_user(self, user_id: str) -> Optional[UserSnapshot]:
        ...

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserSnapshot]:
        ...

    async def get_department(self, department_id: str) -> Optional[DepartmentSnapshot]:
        ...

    async def department_parents(self) -> Dict[str, Optional[str]]:
        ...

    async def list_users(self, department_id: Optional[str] = None) -> List[UserSnapshot]:
        ...

    async def get_position(self, position_id: str, include_deleted: bool = False) -> Optional[PositionSnapshot]:
        ...

    async def get_positions(self, position_ids: Iterable[str], include_deleted: bool = False) -> Dict[str, PositionSnapshot]:
        ...

    async def users_holding_position(self, position_id: str) -> List[UserSnapshot]:
        ...

    async def get_team(self, team_id: str) -> Optional[TeamSnapshot]:
        ...

    async def get_team_members(self, team_id: str) -> List[TeamMemberSnapshot]:
        ...

    async def get_member_users(self, team_id: str) -> List[UserSnapshot]:
        ...

    async def teams_led_by(self, user_id: str) -> List[TeamSnapshot]:
        ...

    async def get_user_roles(self, user_id: str) -> List[RoleSnapshot]:
        ...


class DirectoryWriter(Protocol):
    """Write port: apply one engine intent."""

    async def apply(self, intent: WriteIntent) -> None:
        ...

    async def apply_all(self, intents: Iterable[WriteIntent]) -> None:
        ...


class DirectoryStore:
    """SQLAlchemy implementation of both ports over one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ========================================================================
    # Reads
    # ========================================================================

    async def get_user(self, user_id: str) -> Optional[UserSnapshot]:
        row = await self._live(User, user_id)
        return UserSnapshot.model_validate(row) if row else None

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserSnapshot]:
        ids = list(user_ids)
        if not ids:
            return {}
        stmt = select(User).where(User.id.in_(ids), User.deleted_at.is_(None))
        result = await self.db.execute(stmt)
        return {row.id: UserSnapshot.model_validate(row) for row in result.scalars().all()}

    async def list_users(self, department_id: Optional[str] = None) -> List[UserSnapshot]:
        stmt = select(User).where(User.deleted_at.is_(None)).order_by(User.name, User.id)
        if department_id is not None:
            stmt = stmt.where(User.department_id == department_id)
        result = await self.db.execute(stmt)
        return [UserSnapshot.model_validate(row) for row in result.scalars().all()]

    async def get_department(self, department_id: str) -> Optional[DepartmentSnapshot]:
        row = await self._live(Department, department_id)
        return DepartmentSnapshot.model_validate(row) if row else None

    async def department_parents(self) -> Dict[str, Optional[str]]:
        """Map of every live department id to its parent id."""
        stmt = select(Department.id, Department.parent_id).where(Department.deleted_at.is_(None))
        result = await self.db.execute(stmt)
        return {row.id: row.parent_id for row in result.all()}

    async def get_position(self, position_id: str, include_deleted: bool = False) -> Optional[PositionSnapshot]:
        """A trashed position still binds its holders, so scope checks on them pass include_deleted."""
        row = await self._live(Position, position_id, include_deleted)
        return PositionSnapshot.model_validate(row) if row else None

    async def get_positions(self, position_ids: Iterable[str], include_deleted: bool = False) -> Dict[str, PositionSnapshot]:
        ids = [i for i in set(position_ids) if i]
        if not ids:
            return {}
        stmt = select(Position).where(Position.id.in_(ids))
        if not include_deleted:
            stmt = stmt.where(Position.deleted_at.is_(None))
        result = await self.db.execute(stmt)
        return {row.id: PositionSnapshot.model_validate(row) for row in result.scalars().all()}

    async def users_holding_position(self, position_id: str) -> List[UserSnapshot]:
        stmt = select(User).where(User.position_id == position_id, User.deleted_at.is_(None))
        result = await self.db.execute(stmt)
        return [UserSnapshot.model_validate(row) for row in result.scalars().all()]

    async def get_team(self, team_id: str) -> Optional[TeamSnapshot]:
        row = await self._live(Team, team_id)
        return TeamSnapshot.model_validate(row) if row else None

    async def get_team_members(self, team_id: str) -> List[TeamMemberSnapshot]:
        stmt = (
            select(TeamMember)
            .where(TeamMember.team_id == team_id)
            .order_by(TeamMember.joined_at, TeamMember.id)
        )
        result = await self.db.execute(stmt)
        return [TeamMemberSnapshot.model_validate(row) for row in result.scalars().all()]

    async def get_member_users(self, team_id: str) -> List[UserSnapshot]:
        """Users holding a membership in ``team_id``. Every membership counts, trashed users included."""
        stmt = (
            select(User)
            .join(TeamMember, TeamMember.user_id == User.id)
            .where(TeamMember.team_id == team_id)
            .order_by(User.name, User.id)
        )
        result = await self.db.execute(stmt)
        return [UserSnapshot.model_validate(row) for row in result.scalars().all()]

    async def get_user_roles(self, user_id: str) -> List[RoleSnapshot]:
        stmt = (
            select(Role)
            .join(user_roles, user_roles.c.role_id == Role.id)
            .where(user_roles.c.user_id == user_id)
            .order_by(Role.name)
        )
        result = await self.db.execute(stmt)
        return [RoleSnapshot.model_validate(role) for role in result.scalars().all()]

    async def teams_led_by(self, user_id: str) -> List[TeamSnapshot]:
        stmt = select(Team).where(Team.team_lead_id == user_id, Team.deleted_at.is_(None)).order_by(Team.name)
        result = await self.db.execute(stmt)
        return [TeamSnapshot.model_validate(row) for row in result.scalars().all()]

    async def _live(self, model, row_id: str, include_deleted: bool = False):
        stmt = select(model).where(model.id == row_id)
        if not include_deleted:
            stmt = stmt.where(model.deleted_at.is_(None))
        result = await self.db.execute(stmt)
        return result.scalars().first()

    # ========================================================================
    # Writes
    # ========================================================================

    async def apply(self, intent: WriteIntent) -> None:
        """Apply one intent to the session. The caller commits."""
        if isinstance(intent, SetUserAssignment):
            await self._set_assignment(intent)
        elif isinstance(intent, Unassign):
            await self._unassign(intent)
        elif isinstance(intent, SetDepartmentParent):
            department = await self._require(Department, intent.department_id)
            department.parent_id = intent.parent_id
        elif isinstance(intent, AddTeamMember):
            self.db.add(
                TeamMember(
                    team_id=intent.team_id,
                    user_id=intent.user_id,
                    role_in_team=intent.role_in_team,
                    joined_at=intent.joined_at,
                )
            )
        elif isinstance(intent, UpdateTeamMemberRole):
            member = await self._require_member(intent.team_id, intent.user_id)
            member.role_in_team = intent.role_in_team
        elif isinstance(intent, RemoveTeamMember):
            member = await self._require_member(intent.team_id, intent.user_id)
            await self.db.delete(member)
        elif isinstance(intent, SetTeamLead):
            team = await self._require(Team, intent.team_id)
            team.team_lead_id = intent.user_id
        else:
            raise TypeError(f"Unsupported intent: {intent!r}")

        await self.db.flush()
        log.info(f"Applied {type(intent).__name__}: {intent}")

    async def apply_all(self, intents: Iterable[WriteIntent]) -> None:
        for intent in intents:
            await self.apply(intent)

    async def _set_assignment(self, intent: SetUserAssignment) -> None:
        user = await self._require(User, intent.user_id)
        effective = intent.effective_date or date.today()
        await self._close_history(user.id, effective)
        user.department_id = intent.department_id
        user.position_id = intent.position_id
        self.db.add(
            AssignmentHistory(
                user_id=user.id,
                department_id=intent.department_id,
                position_id=intent.position_id,
                effective_date=effective,
                reason=intent.reason,
            )
        )

    async def _unassign(self, intent: Unassign) -> None:
        user = await self._require(User, intent.user_id)
        await self._close_history(user.id, intent.end_date or date.today(), intent.reason)
        user.department_id = None
        user.position_id = None

    async def _close_history(self, user_id: str, end_date: date, reason: Optional[str] = None) -> None:
        stmt = select(AssignmentHistory).where(
            AssignmentHistory.user_id == user_id,
            AssignmentHistory.end_date.is_(None),
        )
        result = await self.db.execute(stmt)
        for row in result.scalars().all():
            row.end_date = end_date
            if reason and not row.notes:
                row.notes = f"Ended: {reason}"

    async def _require(self, model, row_id: str):
        row = await self._live(model, row_id)
        if row is None:
            raise NotFoundError(f"{model.__name__} {row_id} not found", subject_id=row_id)
        return row

    async def _require_member(self, team_id: str, user_id: str) -> TeamMember:
        stmt = select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        result = await self.db.execute(stmt)
        member = result.scalars().first()
        if member is None:
            raise NotFoundError(f"User {user_id} is not a member of team {team_id}", subject_id=user_id)
        return member
