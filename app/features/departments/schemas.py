"""
Pydantic schemas for departments.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


CODE_PATTERN = r"^[A-Z0-9_-]+$"


class DepartmentBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50, pattern=CODE_PATTERN, description="Uppercase code, e.g. 'HR-OPS'")
    description: Optional[str] = Field(None, max_length=1000)
    parent_id: Optional[str] = None
    manager_id: Optional[str] = None
    is_active: bool = True


class DepartmentCreate(DepartmentBase):
    pass


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=50, pattern=CODE_PATTERN)
    description: Optional[str] = Field(None, max_length=1000)
    parent_id: Optional[str] = None
    manager_id: Optional[str] = None
    is_active: Optional[bool] = None


class DepartmentResponse(DepartmentBase):
    id: str
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DepartmentTreeNode(BaseModel):
    id: str
    name: str
    code: str
    children: List["DepartmentTreeNode"] = []


class DepartmentSnapshot(BaseModel):
    """Read-only view of a department as seen by the assignment engine."""
    id: str
    name: str = ""
    code: str = ""
    parent_id: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True, frozen=True)


DepartmentTreeNode.model_rebuild()
