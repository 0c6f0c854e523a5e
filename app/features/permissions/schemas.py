"""
Pydantic schemas for permission management.

Request and response models for permissions and roles, the role snapshot
consumed by the effective-permission aggregator, and the action matrix
it produces.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionBase(BaseModel):
    """Base permission schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Permission identifier, e.g. 'edit_hrm_departments'")
    description: Optional[str] = Field(None, max_length=1000, description="Permission description")


class PermissionCreate(PermissionBase):
    """Schema for creating a new permission."""

    @field_validator('name')
    @classmethod
    def name_lowercase_underscore(cls, v: str) -> str:
        """Validate permission identifier format."""
        if not v.replace('_', '').isalnum():
            raise ValueError('Permission name must contain only alphanumeric characters and underscores')
        return v.lower()


class PermissionUpdate(BaseModel):
    """Schema for updating a permission."""
    description: Optional[str] = Field(None, max_length=1000)


class PermissionResponse(PermissionBase):
    """Schema for permission response."""
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=50, description="Unique role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")


class RoleCreate(RoleBase):
    """Schema for creating a new role."""

    @field_validator('name')
    @classmethod
    def name_alphanumeric_underscore(cls, v: str) -> str:
        """Validate role name format."""
        if not v.replace('_', '').replace('-', '').isalnum():
            raise ValueError('Role name must contain only alphanumeric characters, underscores, and hyphens')
        return v


class RoleUpdate(BaseModel):
    """Schema for updating a role."""
    description: Optional[str] = Field(None, max_length=1000)


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithPermissions(RoleResponse):
    """Schema for role with permissions."""
    permissions: List[PermissionResponse] = []

    model_config = ConfigDict(from_attributes=True)


class RoleSnapshot(BaseModel):
    """Read-only view of a role and the identifiers it grants."""
    id: str
    name: str
    permissions: List[str] = []

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator('permissions', mode='before')
    @classmethod
    def permission_names(cls, v):
        """Accept ORM Permission rows as well as plain identifiers."""
        return [getattr(p, "name", p) for p in v or []]


# ============================================================================
# Assignment Schemas
# ============================================================================

class AssignPermissionToRole(BaseModel):
    """Schema for assigning permissions to a role."""
    permission_ids: List[str] = Field(..., min_length=1, description="Permission IDs to grant")


class AssignRoleToUser(BaseModel):
    """Schema for assigning roles to a user."""
    role_ids: List[str] = Field(..., min_length=1, description="Role IDs to assign")


# ============================================================================
# Effective Permission Schemas
# ============================================================================

class ActionMatrix(BaseModel):
    """Which canonical actions are granted on one document."""
    read: bool = False
    write: bool = False
    create: bool = False
    delete: bool = False
    submit: bool = False
    report: bool = False
    export: bool = False

    model_config = ConfigDict(frozen=True)


class DocumentPermissions(BaseModel):
    document_name: str
    display_name: str
    permissions: ActionMatrix

    model_config = ConfigDict(frozen=True)


class ModulePermissions(BaseModel):
    module_name: str
    display_name: str
    documents: List[DocumentPermissions]

    model_config = ConfigDict(frozen=True)


class UserEffectivePermissionsResponse(BaseModel):
    """Effective permissions of a user across all assigned roles."""
    user_id: str
    roles: List[str]
    modules: List[ModulePermissions]


class UserModuleActionsResponse(BaseModel):
    """Canonical actions a user holds on one module."""
    user_id: str
    module_name: str
    actions: List[str]
