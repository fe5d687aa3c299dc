"""Team schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

TEAM_NAME_PATTERN = r"^[a-zA-Z0-9\s\-_]+$"
TEAM_NAME_MAX_LENGTH = 50
TEAM_DESCRIPTION_MAX_LENGTH = 255


class TeamResponse(BaseModel):
    """A team the caller belongs to."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Team ID")
    name: str = Field(..., description="Team name")
    description: str | None = Field(None, description="Team description")
    is_default: bool = Field(False, description="Whether this is the default team")
    created_at: datetime | None = Field(None, description="When the team was created")


class TeamListResponse(BaseModel):
    """Response for listing the caller's teams."""

    success: bool = True
    teams: list[TeamResponse]


# ============================================================================
# Team administration
# ============================================================================


class TeamCreateRequest(BaseModel):
    """Request to create a team."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=TEAM_NAME_MAX_LENGTH,
        pattern=TEAM_NAME_PATTERN,
        description="Letters, numbers, spaces, hyphens and underscores",
    )
    description: Optional[str] = Field(None, max_length=TEAM_DESCRIPTION_MAX_LENGTH)


class TeamUpdateRequest(BaseModel):
    """Request to rename a team or change its description."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(
        None, min_length=1, max_length=TEAM_NAME_MAX_LENGTH, pattern=TEAM_NAME_PATTERN
    )
    description: Optional[str] = Field(None, max_length=TEAM_DESCRIPTION_MAX_LENGTH)

    @model_validator(mode="after")
    def require_a_change(self) -> "TeamUpdateRequest":
        if self.name is None and self.description is None:
            raise ValueError("At least one of 'name' or 'description' must be provided.")
        return self


class TeamAssignmentRequest(BaseModel):
    """Request to add a user (token subject) to a team."""

    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1, max_length=255, description="Identity provider subject")


class AdminTeamResponse(TeamResponse):
    """A team with its membership size, as seen by administrators."""

    member_count: int = Field(0, description="Number of assigned users")
    created_by: str | None = None
    updated_at: datetime | None = None


class TeamPermissions(BaseModel):
    """What the caller may do with teams."""

    can_view_all_teams: bool
    can_assign_users: bool
    can_create_team: bool
    can_delete_team: bool


class AdminTeamListResponse(BaseModel):
    success: bool = True
    teams: list[AdminTeamResponse]
    permissions: TeamPermissions


class TeamMutationResponse(BaseModel):
    success: bool = True
    message: str
    team: AdminTeamResponse


class TeamMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    team_id: UUID
    assigned_by: str
    assigned_at: datetime | None = None


class TeamMemberListResponse(BaseModel):
    success: bool = True
    team_id: UUID
    members: list[TeamMemberResponse]


class TeamMemberMutationResponse(BaseModel):
    success: bool = True
    message: str
    member: Optional[TeamMemberResponse] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
