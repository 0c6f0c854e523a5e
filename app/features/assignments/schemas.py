"""
Pydantic schemas for user assignment operations.
"""
from datetime import date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.features.assignments.models import TRANSFER_REASONS


class ReasonedRequest(BaseModel):
    """Base for requests that record a history reason."""
    reason: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def known_reason(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in TRANSFER_REASONS:
            raise ValueError(f"reason must be one of: {', '.join(TRANSFER_REASONS)}")
        return v


class AssignRequest(ReasonedRequest):
    user_id: str
    department_id: str
    position_id: Optional[str] = None
    effective_date: Optional[date] = None
    reason: Optional[str] = "new_hire"


class BulkAssignRequest(ReasonedRequest):
    user_ids: List[str] = Field(..., min_length=1, description="Users to assign; duplicates are processed once")
    department_id: str
    position_id: Optional[str] = None
    effective_date: Optional[date] = None
    reason: Optional[str] = "transfer"


class UnassignRequest(BaseModel):
    end_date: Optional[date] = None
    reason: Optional[str] = None


class TransferRequest(ReasonedRequest):
    new_department_id: str
    new_position_id: Optional[str] = None
    effective_date: Optional[date] = None
    reason: Optional[str] = "transfer"


class PromoteRequest(ReasonedRequest):
    new_position_id: str
    effective_date: Optional[date] = None
    reason: Optional[str] = "promotion"


class BulkSummary(BaseModel):
    success: int
    failed: int


class BulkAssignResponse(BaseModel):
    """Per-item outcome of a bulk assignment."""
    status: str
    summary: BulkSummary
    applied: List[str]
    errors: Dict[str, str]


class AssignmentHistoryResponse(BaseModel):
    id: str
    user_id: str
    department_id: Optional[str]
    position_id: Optional[str]
    effective_date: date
    end_date: Optional[date]
    reason: Optional[str]
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CurrentAssignmentResponse(BaseModel):
    user_id: str
    department_id: Optional[str]
    position_id: Optional[str]
    since: Optional[date] = None
    reason: Optional[str] = None
