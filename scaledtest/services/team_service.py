"""Team resolution for request-scoped access control, and team administration."""

from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from scaledtest.exceptions import (
    DependencyUnavailableError,
    OperationNotAllowedError,
    ResourceConflictError,
    ResourceNotFoundError,
)
from scaledtest.models.team import Team, UserTeam
from scaledtest.repositories.team_repository import TeamRepository
from scaledtest.roles import OWNER_ROLES, WRITE_ROLES, Roles
from scaledtest.schemas.teams import TeamPermissions
from scaledtest.utils.logger import get_logger

log = get_logger(__name__)

DUPLICATE_TEAM_MESSAGE = "A team with this name already exists"


@contextmanager
def _membership_store(operation: str, **context) -> Iterator[None]:
    """Translate store failures into DependencyUnavailableError."""
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        log.error(f"{operation} failed", error=str(e), **context)
        raise DependencyUnavailableError() from e


def team_permissions(roles: Roles) -> TeamPermissions:
    """Team management capabilities granted by ``roles``."""
    maintainer = roles.has_any(WRITE_ROLES)
    owner = roles.has_any(OWNER_ROLES)
    return TeamPermissions(
        can_view_all_teams=maintainer,
        can_assign_users=maintainer,
        can_create_team=owner,
        can_delete_team=owner,
    )


class TeamService:
    """Maps an authenticated subject to the teams it may see data for.

    Membership is looked up on every call and never cached, since assignments
    can change between requests. Store failures fail the request.
    """

    def __init__(self, team_repository: TeamRepository):
        self.team_repository = team_repository

    async def resolve_team_ids(self, subject: str) -> list[str]:
        """
        Resolve the caller's current team ids.

        Raises:
            DependencyUnavailableError: If the membership store cannot be queried
        """
        with _membership_store("team resolution", subject=subject):
            team_ids = await self.team_repository.get_team_ids_for_user(subject)

        log.debug("teams resolved", subject=subject, team_count=len(team_ids))
        return team_ids

    async def list_teams(self, subject: str) -> list[Team]:
        """List the caller's teams with their details."""
        with _membership_store("team listing", subject=subject):
            return await self.team_repository.get_teams_for_user(subject)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def list_all_teams(self) -> list[tuple[Team, int]]:
        """Every team with its member count, ordered by name."""
        with _membership_store("team administration listing"):
            return await self.team_repository.list_with_member_counts()

    async def _get_team(self, team_id: UUID) -> Team:
        team = await self.team_repository.get_by_id(team_id)
        if team is None:
            raise ResourceNotFoundError("Team", str(team_id))
        return team

    async def create_team(
        self, name: str, description: Optional[str], created_by: str
    ) -> Team:
        """
        Create a team.

        Raises:
            ResourceConflictError: If a team with that name exists, ignoring case
        """
        with _membership_store("team creation", name=name):
            if await self.team_repository.get_by_name(name) is not None:
                raise ResourceConflictError(DUPLICATE_TEAM_MESSAGE, details={"name": name})
            try:
                team = await self.team_repository.create(name, description, created_by)
            except IntegrityError as e:
                # Lost a race against a concurrent create with the same name
                raise ResourceConflictError(DUPLICATE_TEAM_MESSAGE, details={"name": name}) from e

        log.info("team admin action", action="create_team", team_id=str(team.id), actor=created_by)
        return team

    async def update_team(
        self,
        team_id: UUID,
        updated_by: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> tuple[Team, int]:
        """
        Rename a team or change its description.

        Raises:
            ResourceNotFoundError: If the team does not exist
            ResourceConflictError: If another team already has ``name``
        """
        with _membership_store("team update", team_id=str(team_id)):
            team = await self._get_team(team_id)
            if name is not None:
                existing = await self.team_repository.get_by_name(name)
                if existing is not None and existing.id != team.id:
                    raise ResourceConflictError(DUPLICATE_TEAM_MESSAGE, details={"name": name})
            try:
                team = await self.team_repository.update(team, name=name, description=description)
            except IntegrityError as e:
                raise ResourceConflictError(DUPLICATE_TEAM_MESSAGE, details={"name": name}) from e
            member_count = await self.team_repository.count_members(team.id)

        log.info("team admin action", action="update_team", team_id=str(team_id), actor=updated_by)
        return team, member_count

    async def delete_team(self, team_id: UUID, deleted_by: str) -> Team:
        """
        Delete a team and its memberships.

        Raises:
            ResourceNotFoundError: If the team does not exist
            OperationNotAllowedError: If it is the default team
        """
        with _membership_store("team deletion", team_id=str(team_id)):
            team = await self._get_team(team_id)
            if team.is_default:
                raise OperationNotAllowedError("Cannot delete the default team")
            await self.team_repository.delete(team)

        log.info("team admin action", action="delete_team", team_id=str(team_id), actor=deleted_by)
        return team

    async def list_members(self, team_id: UUID) -> list[UserTeam]:
        """Memberships of one team, oldest first."""
        with _membership_store("team member listing", team_id=str(team_id)):
            await self._get_team(team_id)
            return await self.team_repository.get_members(team_id)

    async def assign_user(self, team_id: UUID, user_id: str, assigned_by: str) -> UserTeam:
        """
        Add a user to a team. Takes effect on the user's next request.

        Raises:
            ResourceNotFoundError: If the team does not exist
            ResourceConflictError: If the user is already a member
        """
        with _membership_store("team assignment", team_id=str(team_id), user_id=user_id):
            await self._get_team(team_id)
            if await self.team_repository.get_membership(user_id, team_id) is not None:
                raise ResourceConflictError("User is already assigned to this team")
            try:
                return await self.team_repository.add_member(user_id, team_id, assigned_by)
            except IntegrityError as e:
                raise ResourceConflictError("User is already assigned to this team") from e

    async def remove_user(self, team_id: UUID, user_id: str, removed_by: str) -> None:
        """
        Remove a user from a team.

        Raises:
            ResourceNotFoundError: If the team does not exist or the user is not a member
            OperationNotAllowedError: If it is the default team
        """
        with _membership_store("team unassignment", team_id=str(team_id), user_id=user_id):
            team = await self._get_team(team_id)
            if team.is_default:
                raise OperationNotAllowedError("Cannot remove user from the default team")
            membership = await self.team_repository.get_membership(user_id, team_id)
            if membership is None:
                raise ResourceNotFoundError("Team member", user_id)
            await self.team_repository.remove_member(membership)

        log.info(
            "team admin action", action="remove_user", team_id=str(team_id), user_id=user_id, actor=removed_by
        )
