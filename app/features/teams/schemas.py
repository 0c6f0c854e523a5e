"""
Pydantic schemas for teams and team membership.
"""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.features.teams.models import TeamType, TeamStatus


CODE_PATTERN = r"^[A-Z0-9_-]+$"


class TeamBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50, pattern=CODE_PATTERN)
    description: Optional[str] = Field(None, max_length=1000)
    team_type: TeamType = TeamType.PERMANENT
    status: TeamStatus = TeamStatus.ACTIVE
    department_id: Optional[str] = None
    max_members: Optional[int] = Field(None, ge=1, description="Null means unlimited")
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def date_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TeamCreate(TeamBase):
    pass


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=50, pattern=CODE_PATTERN)
    description: Optional[str] = Field(None, max_length=1000)
    team_type: Optional[TeamType] = None
    status: Optional[TeamStatus] = None
    department_id: Optional[str] = None
    max_members: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class TeamMemberResponse(BaseModel):
    user_id: str
    role_in_team: str
    joined_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TeamResponse(TeamBase):
    id: str
    team_lead_id: Optional[str] = None
    active_members_count: int = 0
    is_full: bool = False
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TeamWithMembers(TeamResponse):
    members: List[TeamMemberResponse] = []


class TeamMemberAdd(BaseModel):
    user_id: str
    role_in_team: Optional[str] = Field(None, min_length=1, max_length=100)


class TeamMemberUpdate(BaseModel):
    role_in_team: str = Field(..., min_length=1, max_length=100)


class TeamLeadUpdate(BaseModel):
    user_id: Optional[str] = Field(None, description="Null clears the team lead")


class CandidateStatus(BaseModel):
    """Whether a user may be added to a team, and why not."""
    user_id: str
    name: str
    eligible: bool
    reason: Optional[str] = None
    message: Optional[str] = None


# ============================================================================
# Engine snapshots
# ============================================================================

class TeamSnapshot(BaseModel):
    """Read-only view of a team as seen by the membership engine."""
    id: str
    name: str = ""
    team_type: TeamType = TeamType.PERMANENT
    status: TeamStatus = TeamStatus.ACTIVE
    department_id: Optional[str] = None
    team_lead_id: Optional[str] = None
    max_members: Optional[int] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def is_department_scoped(self) -> bool:
        return self.department_id is not None and self.team_type != TeamType.CROSS_FUNCTIONAL


class TeamMemberSnapshot(BaseModel):
    team_id: str
    user_id: str
    role_in_team: str = "Member"
    joined_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)
