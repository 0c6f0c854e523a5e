"""
Pydantic schemas for positions.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


CODE_PATTERN = r"^[A-Z0-9_-]+$"


class PositionBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50, pattern=CODE_PATTERN)
    description: Optional[str] = Field(None, max_length=1000)
    department_id: Optional[str] = Field(None, description="Null for a position any department may use")
    level: Optional[int] = Field(None, ge=0)
    salary_min: Optional[Decimal] = Field(None, ge=0)
    salary_max: Optional[Decimal] = Field(None, ge=0)
    salary_currency: str = Field("IDR", min_length=3, max_length=3)
    required_skills: Optional[List[str]] = None
    is_active: bool = True

    @model_validator(mode="after")
    def salary_range(self):
        if self.salary_min is not None and self.salary_max is not None and self.salary_max < self.salary_min:
            raise ValueError("salary_max must be greater than or equal to salary_min")
        return self


class PositionCreate(PositionBase):
    pass


class PositionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=50, pattern=CODE_PATTERN)
    description: Optional[str] = Field(None, max_length=1000)
    department_id: Optional[str] = None
    level: Optional[int] = Field(None, ge=0)
    salary_min: Optional[Decimal] = Field(None, ge=0)
    salary_max: Optional[Decimal] = Field(None, ge=0)
    salary_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    required_skills: Optional[List[str]] = None
    is_active: Optional[bool] = None


class PositionResponse(PositionBase):
    id: str
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PositionSnapshot(BaseModel):
    """Read-only view of a position as seen by the assignment engine."""
    id: str
    name: str = ""
    code: str = ""
    department_id: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True, frozen=True)
