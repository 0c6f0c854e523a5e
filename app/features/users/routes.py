"""
User feature routes.

Department and position are not edited here; they change only through
the /assignments endpoints so history and scope rules stay in force.
"""
from datetime import datetime, timezone
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select, delete, insert, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.store import DirectoryStore
from app.features.assignments.validator import check_lead_deactivation
from app.features.audit.dependencies import create_audit_log, get_actor_id, request_context
from app.features.permissions.models import Role, user_roles
from app.features.permissions.schemas import AssignRoleToUser, RoleResponse
from app.features.users.models import User
from app.features.users.schemas import UserCreate, UserResponse, UserSnapshot, UserUpdate


router = APIRouter(tags=["users"])


async def get_user_or_404(db: AsyncSession, user_id: str, include_deleted: bool = False) -> User:
    stmt = select(User).where(User.id == user_id)
    if not include_deleted:
        stmt = stmt.where(User.deleted_at.is_(None))
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


async def ensure_not_leading(db: AsyncSession, user: User) -> None:
    error = check_lead_deactivation(UserSnapshot.model_validate(user), await DirectoryStore(db).teams_led_by(user.id))
    if error is not None:
        raise error


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user: UserCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Create a user. New users start unassigned."""
    try:
        db_user = User(**user.model_dump())
        db.add(db_user)
        await db.commit()
        await db.refresh(db_user)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email or employee number already exists"
        )

    await create_audit_log(
        db, actor_id, "create", "user", db_user.id,
        details={"email": db_user.email}, **request_context(request)
    )
    return db_user


@router.get("/", response_model=list[UserResponse])
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50,
    department_id: Optional[str] = None,
    position_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    trashed: bool = False,
):
    """List users, optionally filtered by assignment or status."""
    stmt = select(User)
    if trashed:
        stmt = stmt.where(User.deleted_at.is_not(None))
    else:
        stmt = stmt.where(User.deleted_at.is_(None))
    if department_id:
        stmt = stmt.where(User.department_id == department_id)
    if position_id:
        stmt = stmt.where(User.position_id == position_id)
    if is_active is not None:
        stmt = stmt.where(User.is_active == is_active)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    result = await db.execute(stmt.order_by(User.name).offset(skip).limit(limit))
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    return await get_user_or_404(db, user_id)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    update_data: UserUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Update profile fields and active status."""
    user = await get_user_or_404(db, user_id)
    changes = update_data.model_dump(exclude_unset=True)
    if changes.get("is_active") is False and user.is_active:
        await ensure_not_leading(db, user)
    for key, value in changes.items():
        setattr(user, key, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email or employee number already exists"
        )
    await db.refresh(user)

    await create_audit_log(db, actor_id, "update", "user", user_id, details=changes, **request_context(request))
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Soft delete a user."""
    user = await get_user_or_404(db, user_id)
    await ensure_not_leading(db, user)
    user.deleted_at = datetime.now(timezone.utc)
    await db.commit()

    await create_audit_log(db, actor_id, "delete", "user", user_id, **request_context(request))
    return None


@router.post("/{user_id}/restore", response_model=UserResponse)
async def restore_user(
    user_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    user = await get_user_or_404(db, user_id, include_deleted=True)
    if user.deleted_at is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User is not deleted")

    user.deleted_at = None
    await db.commit()
    await db.refresh(user)

    await create_audit_log(db, actor_id, "restore", "user", user_id, **request_context(request))
    return user


# ============================================================================
# Role Assignment
# ============================================================================

@router.get("/{user_id}/roles", response_model=list[RoleResponse])
async def list_user_roles(user_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    await get_user_or_404(db, user_id)
    result = await db.execute(
        select(Role)
        .join(user_roles, user_roles.c.role_id == Role.id)
        .where(user_roles.c.user_id == user_id)
        .order_by(Role.name)
    )
    return result.scalars().all()


@router.post("/{user_id}/roles", response_model=list[RoleResponse])
async def assign_roles_to_user(
    user_id: str,
    assignment: AssignRoleToUser,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Assign roles to a user. Roles the user already has are skipped."""
    await get_user_or_404(db, user_id)

    result = await db.execute(select(Role.id).where(Role.id.in_(assignment.role_ids)))
    found = set(result.scalars().all())
    missing = [role_id for role_id in assignment.role_ids if role_id not in found]
    if missing:
        raise HTTPException(status_code=404, detail=f"Roles not found: {', '.join(missing)}")

    existing = {role.id for role in await DirectoryStore(db).get_user_roles(user_id)}
    new_ids = [role_id for role_id in dict.fromkeys(assignment.role_ids) if role_id not in existing]
    if new_ids:
        await db.execute(
            insert(user_roles),
            [{"user_id": user_id, "role_id": role_id, "assigned_at": datetime.now()} for role_id in new_ids]
        )
        await db.commit()

    await create_audit_log(
        db, actor_id, "assign_roles", "user", user_id, details={"role_ids": new_ids}, **request_context(request)
    )
    return await list_user_roles(user_id, db)


@router.delete("/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_role_from_user(
    user_id: str,
    role_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    await get_user_or_404(db, user_id)
    result = await db.execute(
        delete(user_roles).where(user_roles.c.user_id == user_id, user_roles.c.role_id == role_id)
    )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Role not assigned to user")
    await db.commit()

    await create_audit_log(
        db, actor_id, "remove_role", "user", user_id, details={"role_id": role_id}, **request_context(request)
    )
    return None
