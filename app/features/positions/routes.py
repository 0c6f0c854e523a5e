"""
Position API routes.
"""
from datetime import datetime, timezone
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.exceptions import NotFoundError
from app.core.store import DirectoryStore
from app.features.assignments.validator import check_position_holders, check_restore_position
from app.features.audit.dependencies import create_audit_log, get_actor_id, request_context
from app.features.positions.models import Position
from app.features.positions.schemas import PositionCreate, PositionResponse, PositionSnapshot, PositionUpdate
from app.features.users.models import User
from app.features.users.schemas import UserPublic
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def get_position_or_404(db: AsyncSession, position_id: str, include_deleted: bool = False) -> Position:
    stmt = select(Position).where(Position.id == position_id)
    if not include_deleted:
        stmt = stmt.where(Position.deleted_at.is_(None))
    result = await db.execute(stmt)
    position = result.scalars().first()
    if not position:
        raise HTTPException(status_code=404, detail="Position not found")
    return position


async def ensure_department_exists(db: AsyncSession, department_id: Optional[str]) -> None:
    if department_id is not None and await DirectoryStore(db).get_department(department_id) is None:
        raise NotFoundError(f"Department {department_id} not found", subject_id=department_id)


@router.post("/", response_model=PositionResponse, status_code=status.HTTP_201_CREATED)
async def create_position(
    position: PositionCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Create a position, scoped to a department or unscoped."""
    await ensure_department_exists(db, position.department_id)
    try:
        db_position = Position(**position.model_dump())
        db.add(db_position)
        await db.commit()
        await db.refresh(db_position)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Position with this code already exists"
        )

    await create_audit_log(
        db, actor_id, "create", "position", db_position.id,
        details=position.model_dump(), **request_context(request)
    )
    return db_position


@router.get("/", response_model=List[PositionResponse])
async def list_positions(
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 100,
    department_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    trashed: bool = False,
):
    stmt = select(Position)
    if trashed:
        stmt = stmt.where(Position.deleted_at.is_not(None))
    else:
        stmt = stmt.where(Position.deleted_at.is_(None))
    if department_id:
        stmt = stmt.where(Position.department_id == department_id)
    if is_active is not None:
        stmt = stmt.where(Position.is_active == is_active)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(Position.name.ilike(pattern), Position.code.ilike(pattern)))

    stmt = stmt.order_by(Position.level.is_(None), Position.level, Position.name).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/{position_id}", response_model=PositionResponse)
async def get_position(position_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    return await get_position_or_404(db, position_id)


@router.get("/{position_id}/users", response_model=List[UserPublic])
async def list_position_users(position_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """Users currently holding a position."""
    await get_position_or_404(db, position_id)
    result = await db.execute(
        select(User).where(User.position_id == position_id, User.deleted_at.is_(None)).order_by(User.name)
    )
    return result.scalars().all()


@router.patch("/{position_id}", response_model=PositionResponse)
async def update_position(
    position_id: str,
    position_update: PositionUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """
    Update a position.

    Moving the position to another department is rejected while any holder
    sits outside that department.
    """
    db_position = await get_position_or_404(db, position_id)
    update_data = position_update.model_dump(exclude_unset=True)

    salary_min = update_data.get("salary_min", db_position.salary_min)
    salary_max = update_data.get("salary_max", db_position.salary_max)
    if salary_min is not None and salary_max is not None and salary_max < salary_min:
        raise HTTPException(status_code=400, detail={"salary_max": "salary_max must be greater than or equal to salary_min"})

    if "department_id" in update_data and update_data["department_id"] != db_position.department_id:
        store = DirectoryStore(db)
        await ensure_department_exists(db, update_data["department_id"])
        error = check_position_holders(update_data["department_id"], await store.users_holding_position(position_id))
        if error is not None:
            raise error

    for key, value in update_data.items():
        setattr(db_position, key, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Position with this code already exists"
        )
    await db.refresh(db_position)

    await create_audit_log(
        db, actor_id, "update", "position", position_id,
        details=update_data, **request_context(request)
    )
    return db_position


@router.delete("/{position_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_position(
    position_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Soft delete a position."""
    db_position = await get_position_or_404(db, position_id)
    db_position.deleted_at = datetime.now(timezone.utc)
    await db.commit()

    await create_audit_log(
        db, actor_id, "delete", "position", position_id,
        details={"code": db_position.code}, **request_context(request)
    )
    return None


@router.post("/{position_id}/restore", response_model=PositionResponse)
async def restore_position(
    position_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Restore a soft-deleted position if its department still exists and every holder sits in it."""
    db_position = await get_position_or_404(db, position_id, include_deleted=True)
    if db_position.deleted_at is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Position is not deleted")

    store = DirectoryStore(db)
    department_ids = (await store.department_parents()).keys()
    error = check_restore_position(
        PositionSnapshot.model_validate(db_position), department_ids, await store.users_holding_position(position_id)
    )
    if error is not None:
        raise error

    db_position.deleted_at = None
    await db.commit()
    await db.refresh(db_position)

    await create_audit_log(db, actor_id, "restore", "position", position_id, **request_context(request))
    return db_position
