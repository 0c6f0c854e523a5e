"""
Department API routes.

Departments form a tree. Re-parenting and restore go through the cycle
check while holding the department-tree lock.
"""
from datetime import datetime, timezone
from typing import Annotated, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.exceptions import NotFoundError
from app.core.intents import SetDepartmentParent
from app.core.locks import DEPARTMENT_TREE, aggregate_locks
from app.core.store import DirectoryStore
from app.features.assignments.validator import check_department_parent, check_restore_department
from app.features.audit.dependencies import create_audit_log, get_actor_id, request_context
from app.features.departments.models import Department
from app.features.departments.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentSnapshot,
    DepartmentTreeNode,
    DepartmentUpdate,
)
from app.features.users.models import User
from app.features.users.schemas import UserPublic
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def get_department_or_404(db: AsyncSession, department_id: str, include_deleted: bool = False) -> Department:
    stmt = select(Department).where(Department.id == department_id)
    if not include_deleted:
        stmt = stmt.where(Department.deleted_at.is_(None))
    result = await db.execute(stmt)
    department = result.scalars().first()
    if not department:
        raise HTTPException(status_code=404, detail="Department not found")
    return department


async def ensure_manager_exists(db: AsyncSession, manager_id: Optional[str]) -> None:
    if manager_id is None:
        return
    if await DirectoryStore(db).get_user(manager_id) is None:
        raise NotFoundError(f"Manager {manager_id} not found", subject_id=manager_id)


@router.post("/", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
async def create_department(
    department: DepartmentCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Create a department, optionally under a parent."""
    async with aggregate_locks.hold(*DEPARTMENT_TREE):
        if department.parent_id is not None:
            parents = await DirectoryStore(db).department_parents()
            if department.parent_id not in parents:
                raise NotFoundError(f"Parent department {department.parent_id} not found", subject_id=department.parent_id)
        await ensure_manager_exists(db, department.manager_id)

        try:
            db_department = Department(**department.model_dump())
            db.add(db_department)
            await db.commit()
            await db.refresh(db_department)
        except IntegrityError:
            await db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Department with this code already exists"
            )

    await create_audit_log(
        db, actor_id, "create", "department", db_department.id,
        details=department.model_dump(), **request_context(request)
    )
    log.info(f"Created department {db_department.code} ({db_department.id})")
    return db_department


@router.get("/", response_model=List[DepartmentResponse])
async def list_departments(
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 100,
    parent_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    trashed: bool = False,
):
    """List departments. ``trashed=true`` lists soft-deleted ones instead."""
    stmt = select(Department)
    if trashed:
        stmt = stmt.where(Department.deleted_at.is_not(None))
    else:
        stmt = stmt.where(Department.deleted_at.is_(None))
    if parent_id:
        stmt = stmt.where(Department.parent_id == parent_id)
    if is_active is not None:
        stmt = stmt.where(Department.is_active == is_active)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(Department.name.ilike(pattern), Department.code.ilike(pattern)))

    stmt = stmt.order_by(Department.name).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/tree", response_model=List[DepartmentTreeNode])
async def department_tree(db: Annotated[AsyncSession, Depends(get_db)]):
    """All live departments as a nested tree, roots first."""
    result = await db.execute(
        select(Department).where(Department.deleted_at.is_(None)).order_by(Department.name)
    )
    departments = result.scalars().all()

    nodes: Dict[str, DepartmentTreeNode] = {
        d.id: DepartmentTreeNode(id=d.id, name=d.name, code=d.code) for d in departments
    }
    roots = []
    for d in departments:
        # Children of a trashed parent surface as roots
        if d.parent_id and d.parent_id in nodes:
            nodes[d.parent_id].children.append(nodes[d.id])
        else:
            roots.append(nodes[d.id])
    return roots


@router.get("/{department_id}", response_model=DepartmentResponse)
async def get_department(department_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    return await get_department_or_404(db, department_id)


@router.get("/{department_id}/users", response_model=List[UserPublic])
async def list_department_users(department_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """Users currently assigned to a department."""
    await get_department_or_404(db, department_id)
    result = await db.execute(
        select(User)
        .where(User.department_id == department_id, User.deleted_at.is_(None))
        .order_by(User.name)
    )
    return result.scalars().all()


@router.patch("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: str,
    department_update: DepartmentUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Update a department. A parent change is rejected if it would form a cycle."""
    update_data = department_update.model_dump(exclude_unset=True)

    async with aggregate_locks.hold(*DEPARTMENT_TREE):
        db_department = await get_department_or_404(db, department_id)
        store = DirectoryStore(db)

        if "parent_id" in update_data and update_data["parent_id"] != db_department.parent_id:
            parent_id = update_data.pop("parent_id")
            error = check_department_parent(department_id, parent_id, await store.department_parents())
            if error is not None:
                raise error
            await store.apply(SetDepartmentParent(department_id=department_id, parent_id=parent_id))
        else:
            update_data.pop("parent_id", None)

        if "manager_id" in update_data:
            await ensure_manager_exists(db, update_data["manager_id"])

        for key, value in update_data.items():
            setattr(db_department, key, value)

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Department with this code already exists"
            )
        await db.refresh(db_department)

    await create_audit_log(
        db, actor_id, "update", "department", department_id,
        details=department_update.model_dump(exclude_unset=True), **request_context(request)
    )
    return db_department


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_department(
    department_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Soft delete a department."""
    async with aggregate_locks.hold(*DEPARTMENT_TREE):
        db_department = await get_department_or_404(db, department_id)
        db_department.deleted_at = datetime.now(timezone.utc)
        await db.commit()

    await create_audit_log(
        db, actor_id, "delete", "department", department_id,
        details={"code": db_department.code}, **request_context(request)
    )
    return None


@router.post("/{department_id}/restore", response_model=DepartmentResponse)
async def restore_department(
    department_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Restore a soft-deleted department after re-checking its parent link."""
    async with aggregate_locks.hold(*DEPARTMENT_TREE):
        db_department = await get_department_or_404(db, department_id, include_deleted=True)
        if db_department.deleted_at is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Department is not deleted")

        parents = await DirectoryStore(db).department_parents()
        error = check_restore_department(DepartmentSnapshot.model_validate(db_department), parents)
        if error is not None:
            raise error

        db_department.deleted_at = None
        await db.commit()
        await db.refresh(db_department)

    await create_audit_log(
        db, actor_id, "restore", "department", department_id, **request_context(request)
    )
    return db_department
