"""
Team and team membership API routes.

Every mutation of a team or its members holds that team's lock, reads
fresh snapshots, and goes through the membership engine before writing.
"""
from datetime import datetime, timezone
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.exceptions import NotFoundError
from app.core.locks import aggregate_locks
from app.core.store import DirectoryReader, DirectoryStore
from app.features.assignments.validator import check_restore_team, check_team_update
from app.features.audit.dependencies import create_audit_log, get_actor_id, request_context
from app.features.teams.membership import (
    active_members_count,
    candidate_statuses,
    eligible_candidates,
    is_full,
    plan_add_member,
    plan_remove_member,
    plan_set_team_lead,
    plan_update_member_role,
)
from app.features.teams.models import Team, TeamStatus, TeamType
from app.features.teams.schemas import (
    CandidateStatus,
    TeamCreate,
    TeamLeadUpdate,
    TeamMemberAdd,
    TeamMemberResponse,
    TeamMemberUpdate,
    TeamResponse,
    TeamSnapshot,
    TeamUpdate,
    TeamWithMembers,
)
from app.features.users.schemas import UserPublic
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def get_team_or_404(db: AsyncSession, team_id: str, include_deleted: bool = False) -> Team:
    stmt = select(Team).where(Team.id == team_id)
    if not include_deleted:
        stmt = stmt.where(Team.deleted_at.is_(None))
    result = await db.execute(stmt)
    team = result.scalars().first()
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


async def build_team_response(db: AsyncSession, team: Team) -> TeamWithMembers:
    members = await DirectoryStore(db).get_team_members(team.id)
    snapshot = TeamSnapshot.model_validate(team)
    return TeamWithMembers.model_validate(team).model_copy(
        update={
            "active_members_count": active_members_count(members),
            "is_full": is_full(snapshot, members),
            "members": [TeamMemberResponse.model_validate(m) for m in members],
        }
    )


async def require_user(store: DirectoryReader, user_id: str):
    user = await store.get_user(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", subject_id=user_id)
    return user


@router.post("/", response_model=TeamWithMembers, status_code=status.HTTP_201_CREATED)
async def create_team(
    team: TeamCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Create a team. Members and lead are added afterwards."""
    if team.department_id is not None and await DirectoryStore(db).get_department(team.department_id) is None:
        raise NotFoundError(f"Department {team.department_id} not found", subject_id=team.department_id)

    try:
        db_team = Team(**team.model_dump())
        db.add(db_team)
        await db.commit()
        await db.refresh(db_team)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Team with this code already exists"
        )

    await create_audit_log(
        db, actor_id, "create", "team", db_team.id,
        details=team.model_dump(), **request_context(request)
    )
    return await build_team_response(db, db_team)


@router.get("/", response_model=List[TeamResponse])
async def list_teams(
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 100,
    department_id: Optional[str] = None,
    team_type: Optional[TeamType] = None,
    team_status: Optional[TeamStatus] = None,
    search: Optional[str] = None,
    trashed: bool = False,
):
    stmt = select(Team)
    if trashed:
        stmt = stmt.where(Team.deleted_at.is_not(None))
    else:
        stmt = stmt.where(Team.deleted_at.is_(None))
    if department_id:
        stmt = stmt.where(Team.department_id == department_id)
    if team_type:
        stmt = stmt.where(Team.team_type == team_type)
    if team_status:
        stmt = stmt.where(Team.status == team_status)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(Team.name.ilike(pattern), Team.code.ilike(pattern)))

    stmt = stmt.order_by(Team.name).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return [await build_team_response(db, team) for team in result.scalars().all()]


@router.get("/{team_id}", response_model=TeamWithMembers)
async def get_team(team_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    return await build_team_response(db, await get_team_or_404(db, team_id))


@router.patch("/{team_id}", response_model=TeamWithMembers)
async def update_team(
    team_id: str,
    team_update: TeamUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """
    Update a team.

    Lowering max_members below the member count, or re-scoping the team so
    that current members fall outside it, is rejected.
    """
    update_data = team_update.model_dump(exclude_unset=True)

    async with aggregate_locks.hold("team", team_id):
        db_team = await get_team_or_404(db, team_id)
        store = DirectoryStore(db)

        if update_data.get("department_id") and await store.get_department(update_data["department_id"]) is None:
            raise NotFoundError(f"Department {update_data['department_id']} not found", subject_id=update_data["department_id"])

        current = TeamSnapshot.model_validate(db_team)
        proposed = current.model_copy(
            update={k: v for k, v in update_data.items() if k in TeamSnapshot.model_fields}
        )
        capacity_changed = proposed.max_members != current.max_members
        scope_changed = proposed.is_department_scoped and (
            not current.is_department_scoped or proposed.department_id != current.department_id
        )
        if capacity_changed or scope_changed:
            error = check_team_update(
                proposed,
                await store.get_member_users(team_id),
                capacity_changed=capacity_changed,
                scope_changed=scope_changed,
            )
            if error is not None:
                raise error

        for key, value in update_data.items():
            setattr(db_team, key, value)

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Team with this code already exists"
            )
        await db.refresh(db_team)

    await create_audit_log(
        db, actor_id, "update", "team", team_id, details=update_data, **request_context(request)
    )
    return await build_team_response(db, db_team)


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team(
    team_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Soft delete a team. Memberships are kept for a later restore."""
    async with aggregate_locks.hold("team", team_id):
        db_team = await get_team_or_404(db, team_id)
        db_team.deleted_at = datetime.now(timezone.utc)
        await db.commit()

    await create_audit_log(
        db, actor_id, "delete", "team", team_id, details={"code": db_team.code}, **request_context(request)
    )
    return None


@router.post("/{team_id}/restore", response_model=TeamWithMembers)
async def restore_team(
    team_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Restore a soft-deleted team after re-checking department, capacity, scope and lead."""
    async with aggregate_locks.hold("team", team_id):
        db_team = await get_team_or_404(db, team_id, include_deleted=True)
        if db_team.deleted_at is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Team is not deleted")

        store = DirectoryStore(db)
        department_ids = (await store.department_parents()).keys()
        error = check_restore_team(
            TeamSnapshot.model_validate(db_team), department_ids, await store.get_member_users(team_id)
        )
        if error is not None:
            raise error

        db_team.deleted_at = None
        await db.commit()
        await db.refresh(db_team)

    await create_audit_log(db, actor_id, "restore", "team", team_id, **request_context(request))
    return await build_team_response(db, db_team)


# ============================================================================
# Membership Routes
# ============================================================================

@router.get("/{team_id}/members", response_model=List[TeamMemberResponse])
async def list_team_members(team_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    await get_team_or_404(db, team_id)
    return await DirectoryStore(db).get_team_members(team_id)


@router.post("/{team_id}/members", response_model=TeamWithMembers, status_code=status.HTTP_201_CREATED)
async def add_team_member(
    team_id: str,
    member: TeamMemberAdd,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Add a user to a team, enforcing duplicate, activity, scope and capacity rules."""
    async with aggregate_locks.hold("team", team_id):
        db_team = await get_team_or_404(db, team_id)
        store = DirectoryStore(db)
        user = await require_user(store, member.user_id)

        intent = plan_add_member(
            TeamSnapshot.model_validate(db_team),
            user,
            await store.get_team_members(team_id),
            role_in_team=member.role_in_team,
        )
        await store.apply(intent)
        await db.commit()

    await create_audit_log(
        db, actor_id, "add_member", "team", team_id,
        details={"user_id": intent.user_id, "role_in_team": intent.role_in_team}, **request_context(request)
    )
    return await build_team_response(db, db_team)


@router.patch("/{team_id}/members/{user_id}", response_model=TeamMemberResponse)
async def update_team_member(
    team_id: str,
    user_id: str,
    member_update: TeamMemberUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Change a member's role_in_team."""
    async with aggregate_locks.hold("team", team_id):
        db_team = await get_team_or_404(db, team_id)
        store = DirectoryStore(db)
        intent = plan_update_member_role(
            TeamSnapshot.model_validate(db_team),
            user_id,
            await store.get_team_members(team_id),
            member_update.role_in_team,
        )
        await store.apply(intent)
        await db.commit()
        members = await store.get_team_members(team_id)

    await create_audit_log(
        db, actor_id, "update_member", "team", team_id,
        details={"user_id": user_id, "role_in_team": intent.role_in_team}, **request_context(request)
    )
    return next(m for m in members if m.user_id == user_id)


@router.delete("/{team_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_team_member(
    team_id: str,
    user_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Remove a member. The current lead must be replaced or cleared first."""
    async with aggregate_locks.hold("team", team_id):
        db_team = await get_team_or_404(db, team_id)
        store = DirectoryStore(db)
        intent = plan_remove_member(
            TeamSnapshot.model_validate(db_team), user_id, await store.get_team_members(team_id)
        )
        await store.apply(intent)
        await db.commit()

    await create_audit_log(
        db, actor_id, "remove_member", "team", team_id, details={"user_id": user_id}, **request_context(request)
    )
    return None


@router.put("/{team_id}/lead", response_model=TeamWithMembers)
async def set_team_lead(
    team_id: str,
    lead: TeamLeadUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Make a member the team lead, or clear the lead with ``user_id: null``."""
    async with aggregate_locks.hold("team", team_id):
        db_team = await get_team_or_404(db, team_id)
        store = DirectoryStore(db)
        user = await require_user(store, lead.user_id) if lead.user_id else None
        intent = plan_set_team_lead(TeamSnapshot.model_validate(db_team), user, await store.get_team_members(team_id))
        await store.apply(intent)
        await db.commit()
        await db.refresh(db_team)

    await create_audit_log(
        db, actor_id, "set_lead", "team", team_id, details={"user_id": intent.user_id}, **request_context(request)
    )
    return await build_team_response(db, db_team)


@router.get("/{team_id}/eligible-users", response_model=List[UserPublic])
async def list_eligible_users(team_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """Users who could join the team right now, ignoring capacity."""
    db_team = await get_team_or_404(db, team_id)
    store = DirectoryStore(db)
    team = TeamSnapshot.model_validate(db_team)
    pool = await store.list_users(department_id=team.department_id if team.is_department_scoped else None)
    return eligible_candidates(team, pool, await store.get_team_members(team_id))


@router.get("/{team_id}/candidates", response_model=List[CandidateStatus])
async def list_candidates(team_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """Every user with whether they can be added to the team and why not."""
    db_team = await get_team_or_404(db, team_id)
    store = DirectoryStore(db)
    return candidate_statuses(
        TeamSnapshot.model_validate(db_team), await store.list_users(), await store.get_team_members(team_id)
    )
