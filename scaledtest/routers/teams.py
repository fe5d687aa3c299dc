"""Teams router."""

from fastapi import APIRouter

from scaledtest.dependencies import CurrentUser, TeamServiceDep
from scaledtest.schemas.teams import TeamListResponse, TeamResponse

router = APIRouter()


@router.get("/teams", response_model=TeamListResponse)
async def list_my_teams(current_user: CurrentUser, team_service: TeamServiceDep) -> TeamListResponse:
    """List the teams the caller belongs to."""
    teams = await team_service.list_teams(current_user.subject)
    return TeamListResponse(teams=[TeamResponse.model_validate(t) for t in teams])
