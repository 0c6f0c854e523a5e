"""
User assignment API routes.

Single-user operations (assign, transfer, promote, unassign) and bulk
assignment. Assignments into a department hold that department's lock;
single-user operations also hold the user's lock.
"""
from contextlib import AsyncExitStack
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.exceptions import NotFoundError
from app.core.intents import WriteIntent
from app.core.locks import aggregate_locks
from app.core.rate_limit import limiter
from app.core.store import DirectoryReader, DirectoryStore, DirectoryWriter
from app.features.assignments.bulk import bulk_assign
from app.features.assignments.models import AssignmentHistory
from app.features.assignments.planner import plan_assign, plan_promote, plan_transfer, plan_unassign
from app.features.assignments.schemas import (
    AssignmentHistoryResponse,
    AssignRequest,
    BulkAssignRequest,
    BulkAssignResponse,
    BulkSummary,
    CurrentAssignmentResponse,
    PromoteRequest,
    TransferRequest,
    UnassignRequest,
)
from app.features.audit.dependencies import create_audit_log, get_actor_id, request_context
from app.features.users.models import User
from app.features.users.schemas import UserResponse
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def require_user(store: DirectoryReader, user_id: str):
    user = await store.get_user(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found", subject_id=user_id)
    return user


async def require_department(store: DirectoryReader, department_id: str):
    department = await store.get_department(department_id)
    if department is None:
        raise NotFoundError(f"Department {department_id} not found", subject_id=department_id)
    return department


async def require_position(store: DirectoryReader, position_id: Optional[str]):
    if position_id is None:
        return None
    position = await store.get_position(position_id)
    if position is None:
        raise NotFoundError(f"Position {position_id} not found", subject_id=position_id)
    return position


async def apply_and_reload(db: AsyncSession, store: DirectoryWriter, intent: WriteIntent) -> User:
    await store.apply(intent)
    await db.commit()
    user = (await db.execute(select(User).where(User.id == intent.user_id))).scalars().first()
    await db.refresh(user)
    return user


@router.post("/assign", response_model=UserResponse)
async def assign_user(
    assignment: AssignRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Assign a user to a department and optionally a position."""
    async with AsyncExitStack() as locks:
        await locks.enter_async_context(aggregate_locks.hold("user", assignment.user_id))
        await locks.enter_async_context(aggregate_locks.hold("department", assignment.department_id))

        store = DirectoryStore(db)
        user = await require_user(store, assignment.user_id)
        department = await require_department(store, assignment.department_id)
        position = await require_position(store, assignment.position_id)
        current_position = await store.get_position(user.position_id, include_deleted=True) if user.position_id else None

        intent = plan_assign(
            user, department, position, current_position,
            reason=assignment.reason, effective_date=assignment.effective_date,
        )
        db_user = await apply_and_reload(db, store, intent)

    await create_audit_log(
        db, actor_id, "assign", "user", db_user.id,
        details=assignment.model_dump(), **request_context(request)
    )
    return db_user


@router.post("/bulk-assign", response_model=BulkAssignResponse)
@limiter.limit(config.BULK_ASSIGN_RATE_LIMIT)
async def bulk_assign_users(
    request: Request,
    assignment: BulkAssignRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """
    Assign many users to one department.

    Users that fail validation are reported in ``errors`` and do not stop
    the others. A missing department or position rejects the whole batch.
    """
    async with aggregate_locks.hold("department", assignment.department_id):
        store = DirectoryStore(db)
        department = await require_department(store, assignment.department_id)
        position = await require_position(store, assignment.position_id)
        users = await store.get_users(assignment.user_ids)
        current_positions = await store.get_positions((u.position_id for u in users.values()), include_deleted=True)

        try:
            report = bulk_assign(
                assignment.user_ids,
                department,
                users,
                position=position,
                current_positions=current_positions,
                reason=assignment.reason,
                effective_date=assignment.effective_date,
                max_items=config.BULK_ASSIGN_MAX_ITEMS,
            )
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        await store.apply_all(report.intents)
        await db.commit()

    await create_audit_log(
        db, actor_id, "bulk_assign", "department", department.id,
        details={
            "applied": report.applied,
            "errors": report.errors,
            "position_id": assignment.position_id,
            "reason": assignment.reason,
        },
        **request_context(request)
    )
    return BulkAssignResponse(
        status=report.outcome.value,
        summary=BulkSummary(success=report.success_count, failed=report.failed_count),
        applied=report.applied,
        errors=report.errors,
    )


@router.post("/users/{user_id}/unassign", response_model=UserResponse)
async def unassign_user(
    user_id: str,
    unassignment: UnassignRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Clear a user's department and position in one step."""
    async with aggregate_locks.hold("user", user_id):
        store = DirectoryStore(db)
        user = await require_user(store, user_id)
        intent = plan_unassign(user, reason=unassignment.reason, end_date=unassignment.end_date)
        db_user = await apply_and_reload(db, store, intent)

    await create_audit_log(
        db, actor_id, "unassign", "user", user_id,
        details={"department_id": user.department_id, "position_id": user.position_id, "reason": unassignment.reason},
        **request_context(request)
    )
    return db_user


@router.post("/users/{user_id}/transfer", response_model=UserResponse)
async def transfer_user(
    user_id: str,
    transfer: TransferRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Move an assigned user to another department."""
    async with AsyncExitStack() as locks:
        await locks.enter_async_context(aggregate_locks.hold("user", user_id))
        await locks.enter_async_context(aggregate_locks.hold("department", transfer.new_department_id))

        store = DirectoryStore(db)
        user = await require_user(store, user_id)
        department = await require_department(store, transfer.new_department_id)
        position = await require_position(store, transfer.new_position_id)
        current_position = await store.get_position(user.position_id, include_deleted=True) if user.position_id else None

        intent = plan_transfer(
            user, department, position, current_position,
            reason=transfer.reason, effective_date=transfer.effective_date,
        )
        db_user = await apply_and_reload(db, store, intent)

    await create_audit_log(
        db, actor_id, "transfer", "user", user_id,
        details={"from_department_id": user.department_id, **transfer.model_dump()},
        **request_context(request)
    )
    return db_user


@router.post("/users/{user_id}/promote", response_model=UserResponse)
async def promote_user(
    user_id: str,
    promotion: PromoteRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Give a user a new position inside their current department."""
    async with aggregate_locks.hold("user", user_id):
        store = DirectoryStore(db)
        user = await require_user(store, user_id)
        position = await require_position(store, promotion.new_position_id)
        intent = plan_promote(user, position, reason=promotion.reason, effective_date=promotion.effective_date)
        db_user = await apply_and_reload(db, store, intent)

    await create_audit_log(
        db, actor_id, "promote", "user", user_id,
        details={"from_position_id": user.position_id, **promotion.model_dump()},
        **request_context(request)
    )
    return db_user


@router.get("/users/{user_id}/history", response_model=List[AssignmentHistoryResponse])
async def assignment_history(user_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """Assignment periods of a user, newest first."""
    await require_user(DirectoryStore(db), user_id)
    result = await db.execute(
        select(AssignmentHistory)
        .where(AssignmentHistory.user_id == user_id)
        .order_by(AssignmentHistory.effective_date.desc(), AssignmentHistory.created_at.desc(), AssignmentHistory.id.desc())
    )
    return result.scalars().all()


@router.get("/users/{user_id}/current", response_model=CurrentAssignmentResponse)
async def current_assignment(user_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """The user's current department and position with the date it took effect."""
    user = await require_user(DirectoryStore(db), user_id)
    result = await db.execute(
        select(AssignmentHistory)
        .where(AssignmentHistory.user_id == user_id, AssignmentHistory.end_date.is_(None))
        .order_by(AssignmentHistory.effective_date.desc(), AssignmentHistory.id.desc())
    )
    open_row = result.scalars().first()
    return CurrentAssignmentResponse(
        user_id=user.id,
        department_id=user.department_id,
        position_id=user.position_id,
        since=open_row.effective_date if open_row else None,
        reason=open_row.reason if open_row else None,
    )
