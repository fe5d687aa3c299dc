"""Team administration router.

Maintainers and owners may view teams and manage memberships; only owners
create, rename or delete teams.
"""

from uuid import UUID

from fastapi import APIRouter

from scaledtest.dependencies import MaintainerUser, OwnerUser, TeamServiceDep
from scaledtest.models.team import Team
from scaledtest.schemas.teams import (
    AdminTeamListResponse,
    AdminTeamResponse,
    MessageResponse,
    TeamAssignmentRequest,
    TeamCreateRequest,
    TeamMemberListResponse,
    TeamMemberMutationResponse,
    TeamMemberResponse,
    TeamMutationResponse,
    TeamUpdateRequest,
)
from scaledtest.services.team_service import team_permissions

router = APIRouter()


def _admin_team(team: Team, member_count: int) -> AdminTeamResponse:
    return AdminTeamResponse(
        id=team.id,
        name=team.name,
        description=team.description,
        is_default=team.is_default,
        created_at=team.created_at,
        created_by=team.created_by,
        updated_at=team.updated_at,
        member_count=member_count,
    )


@router.get("/admin/teams", response_model=AdminTeamListResponse)
async def list_all_teams(
    current_user: MaintainerUser,
    team_service: TeamServiceDep,
) -> AdminTeamListResponse:
    """List every team with its member count and the caller's team permissions."""
    teams = await team_service.list_all_teams()
    return AdminTeamListResponse(
        teams=[_admin_team(team, count) for team, count in teams],
        permissions=team_permissions(current_user.roles),
    )


@router.post("/admin/teams", response_model=TeamMutationResponse, status_code=201)
async def create_team(
    request: TeamCreateRequest,
    current_user: OwnerUser,
    team_service: TeamServiceDep,
) -> TeamMutationResponse:
    """Create a team. Names are unique, ignoring case."""
    team = await team_service.create_team(
        request.name, request.description, created_by=current_user.subject
    )
    return TeamMutationResponse(
        message=f'Team "{team.name}" created successfully',
        team=_admin_team(team, 0),
    )


@router.put("/admin/teams/{team_id}", response_model=TeamMutationResponse)
async def update_team(
    team_id: UUID,
    request: TeamUpdateRequest,
    current_user: OwnerUser,
    team_service: TeamServiceDep,
) -> TeamMutationResponse:
    """Rename a team or change its description."""
    team, member_count = await team_service.update_team(
        team_id,
        updated_by=current_user.subject,
        name=request.name,
        description=request.description,
    )
    return TeamMutationResponse(
        message=f'Team "{team.name}" updated successfully',
        team=_admin_team(team, member_count),
    )


@router.delete("/admin/teams/{team_id}", response_model=MessageResponse)
async def delete_team(
    team_id: UUID,
    current_user: OwnerUser,
    team_service: TeamServiceDep,
) -> MessageResponse:
    """Delete a team and its memberships. The default team cannot be deleted.

    Reports keep the team ids they were tagged with at upload time.
    """
    team = await team_service.delete_team(team_id, deleted_by=current_user.subject)
    return MessageResponse(message=f'Team "{team.name}" deleted successfully')


@router.get("/admin/teams/{team_id}/members", response_model=TeamMemberListResponse)
async def list_team_members(
    team_id: UUID,
    current_user: MaintainerUser,
    team_service: TeamServiceDep,
) -> TeamMemberListResponse:
    """List the users assigned to a team."""
    members = await team_service.list_members(team_id)
    return TeamMemberListResponse(
        team_id=team_id,
        members=[TeamMemberResponse.model_validate(m) for m in members],
    )


@router.post(
    "/admin/teams/{team_id}/members",
    response_model=TeamMemberMutationResponse,
    status_code=201,
)
async def assign_team_member(
    team_id: UUID,
    request: TeamAssignmentRequest,
    current_user: MaintainerUser,
    team_service: TeamServiceDep,
) -> TeamMemberMutationResponse:
    """Assign a user to a team. The user sees the team's reports on their next request."""
    membership = await team_service.assign_user(
        team_id, request.user_id, assigned_by=current_user.subject
    )
    return TeamMemberMutationResponse(
        message="User assigned to team successfully",
        member=TeamMemberResponse.model_validate(membership),
    )


@router.delete(
    "/admin/teams/{team_id}/members/{user_id}",
    response_model=TeamMemberMutationResponse,
)
async def remove_team_member(
    team_id: UUID,
    user_id: str,
    current_user: MaintainerUser,
    team_service: TeamServiceDep,
) -> TeamMemberMutationResponse:
    """Remove a user from a team."""
    await team_service.remove_user(team_id, user_id, removed_by=current_user.subject)
    return TeamMemberMutationResponse(message="User removed from team successfully")
