"""
Permission management API routes.

Provides endpoints for managing permissions, roles, role grants, and the
effective permission matrix of a user.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy import select, delete, and_, insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.database.engine import get_db
from app.core.exceptions import NotFoundError
from app.core.store import DirectoryReader, DirectoryStore
from app.features.audit.dependencies import create_audit_log, get_actor_id, request_context
from app.features.permissions.aggregator import effective_permissions, granted_actions
from app.features.permissions.models import Permission, Role, role_permissions, user_roles
from app.features.permissions.schemas import (
    AssignPermissionToRole,
    PermissionCreate,
    PermissionResponse,
    PermissionUpdate,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    RoleWithPermissions,
    UserEffectivePermissionsResponse,
    UserModuleActionsResponse,
)
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Permission Routes
# ============================================================================

@router.post("/permissions", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    permission: PermissionCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Create a new permission identifier."""
    try:
        db_permission = Permission(**permission.model_dump())
        db.add(db_permission)
        await db.commit()
        await db.refresh(db_permission)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Permission with this name already exists"
        )

    await create_audit_log(
        db, actor_id, "create", "permission", db_permission.id,
        details=permission.model_dump(), **request_context(request)
    )
    return db_permission


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 100,
    prefix: Optional[str] = None,
):
    """List permissions, optionally those whose name starts with ``prefix``."""
    stmt = select(Permission)
    if prefix:
        stmt = stmt.where(Permission.name.startswith(prefix))

    stmt = stmt.order_by(Permission.name).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/permissions/{permission_id}", response_model=PermissionResponse)
async def get_permission(permission_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """Get a specific permission by ID."""
    result = await db.execute(select(Permission).where(Permission.id == permission_id))
    permission = result.scalars().first()

    if not permission:
        raise HTTPException(status_code=404, detail="Permission not found")

    return permission


@router.put("/permissions/{permission_id}", response_model=PermissionResponse)
async def update_permission(
    permission_id: str,
    permission_update: PermissionUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Update a permission's description."""
    result = await db.execute(select(Permission).where(Permission.id == permission_id))
    db_permission = result.scalars().first()

    if not db_permission:
        raise HTTPException(status_code=404, detail="Permission not found")

    update_data = permission_update.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(db_permission, key, value)

    await db.commit()
    await db.refresh(db_permission)

    await create_audit_log(
        db, actor_id, "update", "permission", permission_id, details=update_data, **request_context(request)
    )
    return db_permission


@router.delete("/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(
    permission_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Delete a permission. Roles lose the grant immediately."""
    result = await db.execute(select(Permission).where(Permission.id == permission_id))
    db_permission = result.scalars().first()

    if not db_permission:
        raise HTTPException(status_code=404, detail="Permission not found")

    permission_name = db_permission.name
    await db.delete(db_permission)
    await db.commit()

    await create_audit_log(
        db, actor_id, "delete", "permission", permission_id,
        details={"name": permission_name}, **request_context(request)
    )
    return None


# ============================================================================
# Role Routes
# ============================================================================

@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Create a new role."""
    try:
        db_role = Role(**role.model_dump())
        db.add(db_role)
        await db.commit()
        await db.refresh(db_role)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )

    await create_audit_log(
        db, actor_id, "create", "role", db_role.id, details=role.model_dump(), **request_context(request)
    )
    return db_role


@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 100,
):
    result = await db.execute(select(Role).order_by(Role.name).offset(skip).limit(limit))
    return result.scalars().all()


@router.get("/roles/{role_id}", response_model=RoleWithPermissions)
async def get_role(role_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """Get a specific role with its permissions."""
    result = await db.execute(select(Role).where(Role.id == role_id))
    role = result.scalars().first()

    if not role:
        raise HTTPException(status_code=404, detail="Role not found")

    return role


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_update: RoleUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Update a role."""
    result = await db.execute(select(Role).where(Role.id == role_id))
    db_role = result.scalars().first()

    if not db_role:
        raise HTTPException(status_code=404, detail="Role not found")

    update_data = role_update.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(db_role, key, value)

    await db.commit()
    await db.refresh(db_role)

    await create_audit_log(
        db, actor_id, "update", "role", role_id, details=update_data, **request_context(request)
    )
    return db_role


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Delete a role."""
    result = await db.execute(select(Role).where(Role.id == role_id))
    db_role = result.scalars().first()

    if not db_role:
        raise HTTPException(status_code=404, detail="Role not found")

    role_name = db_role.name
    await db.execute(delete(user_roles).where(user_roles.c.role_id == role_id))
    await db.delete(db_role)
    await db.commit()

    await create_audit_log(
        db, actor_id, "delete", "role", role_id, details={"name": role_name}, **request_context(request)
    )
    return None


@router.post("/roles/{role_id}/permissions", status_code=status.HTTP_200_OK)
async def assign_permissions_to_role(
    role_id: str,
    assignment: AssignPermissionToRole,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Grant permissions to a role. Already granted ones are skipped."""
    role_result = await db.execute(select(Role).where(Role.id == role_id))
    role = role_result.scalars().first()

    if not role:
        raise HTTPException(status_code=404, detail="Role not found")

    perm_result = await db.execute(select(Permission).where(Permission.id.in_(assignment.permission_ids)))
    permissions = {p.id: p for p in perm_result.scalars().all()}
    missing = [pid for pid in assignment.permission_ids if pid not in permissions]
    if missing:
        raise HTTPException(status_code=404, detail=f"Permissions not found: {', '.join(missing)}")

    # Check which are already assigned
    check_result = await db.execute(
        select(role_permissions.c.permission_id).where(role_permissions.c.role_id == role_id)
    )
    already = set(check_result.scalars().all())
    new_ids = [pid for pid in dict.fromkeys(assignment.permission_ids) if pid not in already]

    if new_ids:
        await db.execute(
            insert(role_permissions),
            [{"role_id": role_id, "permission_id": pid} for pid in new_ids]
        )
        await db.commit()

    names = [permissions[pid].name for pid in new_ids]
    await create_audit_log(
        db, actor_id, "assign_permission", "role", role_id,
        details={"permission_ids": new_ids, "permission_names": names}, **request_context(request)
    )

    return {"message": f"Assigned {len(new_ids)} permission(s) to role '{role.name}'", "assigned": names}


@router.delete("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_permission_from_role(
    role_id: str,
    permission_id: str,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Annotated[Optional[str], Depends(get_actor_id)],
):
    """Remove a permission from a role."""
    stmt = delete(role_permissions).where(
        and_(
            role_permissions.c.role_id == role_id,
            role_permissions.c.permission_id == permission_id
        )
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Permission assignment not found")
    await db.commit()

    await create_audit_log(
        db, actor_id, "remove_permission", "role", role_id,
        details={"permission_id": permission_id}, **request_context(request)
    )
    return None


# ============================================================================
# Effective Permissions
# ============================================================================

async def load_user_roles(store: DirectoryReader, user_id: str):
    if await store.get_user(user_id) is None:
        raise NotFoundError(f"User {user_id} not found", subject_id=user_id)
    return await store.get_user_roles(user_id)


@router.get("/users/{user_id}/effective", response_model=UserEffectivePermissionsResponse)
async def get_user_effective_permissions(user_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """
    Effective permissions of a user: the union over all assigned roles,
    grouped by module and document as a read/write/create/delete/submit/
    report/export matrix.
    """
    roles = await load_user_roles(DirectoryStore(db), user_id)
    modules = effective_permissions(roles)
    log.debug(f"User {user_id} has {len(modules)} module(s) across {len(roles)} role(s)")
    return UserEffectivePermissionsResponse(
        user_id=user_id,
        roles=[role.name for role in roles],
        modules=modules,
    )


@router.get("/users/{user_id}/effective/{module_name}", response_model=UserModuleActionsResponse)
async def get_user_module_actions(user_id: str, module_name: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """Actions a user may take on one module, e.g. before showing an edit button."""
    roles = await load_user_roles(DirectoryStore(db), user_id)
    actions = granted_actions(effective_permissions(roles), module_name)
    return UserModuleActionsResponse(user_id=user_id, module_name=module_name, actions=sorted(actions))
