"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    employee_number: str | None = Field(None, max_length=50)


class UserCreate(UserBase):
    """Schema for creating a new user. Assignment goes through /assignments."""
    is_active: bool = True


class UserUpdate(BaseModel):
    """Schema for updating user information."""
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    employee_number: str | None = Field(None, max_length=50)
    is_active: bool | None = None


class UserResponse(UserBase):
    """Schema for user responses."""
    id: str
    is_active: bool
    department_id: str | None = None
    position_id: str | None = None
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserPublic(BaseModel):
    """Public user information (limited fields)."""
    id: str
    name: str
    department_id: str | None = None
    position_id: str | None = None

    model_config = {"from_attributes": True}


class UserSnapshot(BaseModel):
    """Read-only view of a user as seen by the assignment engine."""
    id: str
    name: str = ""
    is_active: bool = True
    department_id: str | None = None
    position_id: str | None = None

    model_config = ConfigDict(from_attributes=True, frozen=True)
