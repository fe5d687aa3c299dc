"""FastAPI dependency injection providers."""

from typing import Annotated, Callable, Iterable

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from scaledtest.database import get_db
from scaledtest.exceptions import MissingTokenError
from scaledtest.factories.service_factories import (
    get_analytics_service,
    get_index_service,
    get_report_service,
    get_team_service,
)
from scaledtest.repositories.team_repository import TeamRepository
from scaledtest.roles import OWNER_ROLES, READ_ROLES, WRITE_ROLES, check_roles
from scaledtest.services.analytics.service import AnalyticsService
from scaledtest.services.auth_service import TokenClaims, get_auth_service
from scaledtest.services.index_service import IndexService
from scaledtest.services.report_service import ReportService
from scaledtest.services.team_service import TeamService
from scaledtest.utils.logger import get_logger

log = get_logger(__name__)


# Type aliases for cleaner router signatures
DbSession = Annotated[AsyncSession, Depends(get_db)]

# Service dependencies (singletons)
IndexServiceDep = Annotated[IndexService, Depends(get_index_service)]
AnalyticsServiceDep = Annotated[AnalyticsService, Depends(get_analytics_service)]
ReportServiceDep = Annotated[ReportService, Depends(get_report_service)]


# Request-scoped dependencies
def get_team_repository(db: DbSession) -> TeamRepository:
    """Get TeamRepository with database session."""
    return TeamRepository(db)


def get_team_service_dep(db: DbSession) -> TeamService:
    """Get TeamService with database session."""
    return get_team_service(db)


TeamRepoDep = Annotated[TeamRepository, Depends(get_team_repository)]
TeamServiceDep = Annotated[TeamService, Depends(get_team_service_dep)]


# ============================================================================
# Authentication Dependencies
# ============================================================================


async def get_current_user(
    authorization: Annotated[str | None, Header(alias="Authorization")] = None,
) -> TokenClaims:
    """Verify the bearer token, raise 401 if absent or invalid."""
    if not authorization:
        raise MissingTokenError()

    return await get_auth_service().verify_token(authorization)


CurrentUser = Annotated[TokenClaims, Depends(get_current_user)]


def require_roles(required: Iterable[str]) -> Callable:
    """Build a dependency that admits callers holding any of ``required``."""
    required = frozenset(required)

    async def _require_roles(user: CurrentUser) -> TokenClaims:
        check_roles(user, required)
        return user

    return _require_roles


ReaderUser = Annotated[TokenClaims, Depends(require_roles(READ_ROLES))]
MaintainerUser = Annotated[TokenClaims, Depends(require_roles(WRITE_ROLES))]
OwnerUser = Annotated[TokenClaims, Depends(require_roles(OWNER_ROLES))]


async def get_team_ids(user: CurrentUser, team_service: TeamServiceDep) -> list[str]:
    """Resolve the caller's teams for this request."""
    return await team_service.resolve_team_ids(user.subject)


TeamIds = Annotated[list[str], Depends(get_team_ids)]
