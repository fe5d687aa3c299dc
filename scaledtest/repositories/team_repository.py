"""Repository for Team and membership operations."""

from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from scaledtest.models.team import Team, UserTeam
from scaledtest.utils.logger import get_logger

log = get_logger(__name__)


class TeamRepository:
    """Access to teams and user_teams.

    Writes flush but never commit; the request-scoped session commits.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_teams_for_user(self, user_id: str) -> list[Team]:
        """Get all teams the user belongs to, ordered by name."""
        log.debug("query teams for user", user_id=user_id)
        result = await self.session.execute(
            select(Team)
            .join(UserTeam, UserTeam.team_id == Team.id)
            .where(UserTeam.user_id == user_id)
            .order_by(Team.name)
        )
        teams = list(result.scalars().all())
        log.debug("query result", count=len(teams))
        return teams

    async def get_team_ids_for_user(self, user_id: str) -> list[str]:
        """Get ids of all teams the user belongs to."""
        result = await self.session.execute(
            select(UserTeam.team_id).where(UserTeam.user_id == user_id)
        )
        return [str(team_id) for team_id in result.scalars().all()]

    async def list_with_member_counts(self) -> list[tuple[Team, int]]:
        """All teams ordered by name, each with its number of members."""
        result = await self.session.execute(
            select(Team, func.count(UserTeam.id))
            .outerjoin(UserTeam, UserTeam.team_id == Team.id)
            .group_by(Team.id)
            .order_by(Team.name)
        )
        return [(team, int(count)) for team, count in result.all()]

    async def get_by_id(self, team_id: UUID) -> Optional[Team]:
        result = await self.session.execute(select(Team).where(Team.id == team_id))
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Optional[Team]:
        """Case-insensitive lookup by team name."""
        result = await self.session.execute(
            select(Team).where(func.lower(Team.name) == name.lower())
        )
        return result.scalar_one_or_none()

    async def count_members(self, team_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(UserTeam.id)).where(UserTeam.team_id == team_id)
        )
        return int(result.scalar_one())

    async def create(self, name: str, description: Optional[str], created_by: str) -> Team:
        """
        Create a team.

        Raises:
            IntegrityError: If the name is taken
        """
        team = Team(name=name, description=description, created_by=created_by, is_default=False)
        self.session.add(team)
        await self.session.flush()
        await self.session.refresh(team)
        log.info("team created", team_id=str(team.id), name=name, created_by=created_by)
        return team

    async def update(
        self, team: Team, name: Optional[str] = None, description: Optional[str] = None
    ) -> Team:
        """Apply the given fields to ``team``. ``None`` leaves a field unchanged."""
        if name is not None:
            team.name = name
        if description is not None:
            team.description = description
        await self.session.flush()
        await self.session.refresh(team)
        log.info("team updated", team_id=str(team.id))
        return team

    async def delete(self, team: Team) -> None:
        """Delete a team; memberships cascade."""
        await self.session.delete(team)
        await self.session.flush()
        log.info("team deleted", team_id=str(team.id))

    async def get_members(self, team_id: UUID) -> list[UserTeam]:
        result = await self.session.execute(
            select(UserTeam).where(UserTeam.team_id == team_id).order_by(UserTeam.assigned_at)
        )
        return list(result.scalars().all())

    async def get_membership(self, user_id: str, team_id: UUID) -> Optional[UserTeam]:
        result = await self.session.execute(
            select(UserTeam).where(UserTeam.user_id == user_id, UserTeam.team_id == team_id)
        )
        return result.scalar_one_or_none()

    async def add_member(self, user_id: str, team_id: UUID, assigned_by: str) -> UserTeam:
        """
        Assign a user to a team.

        Raises:
            IntegrityError: If the user is already a member
        """
        membership = UserTeam(user_id=user_id, team_id=team_id, assigned_by=assigned_by)
        self.session.add(membership)
        await self.session.flush()
        await self.session.refresh(membership)
        log.info("user assigned to team", user_id=user_id, team_id=str(team_id), assigned_by=assigned_by)
        return membership

    async def remove_member(self, membership: UserTeam) -> None:
        await self.session.delete(membership)
        await self.session.flush()
        log.info("user removed from team", user_id=membership.user_id, team_id=str(membership.team_id))

    async def ping(self) -> bool:
        """Check database connectivity."""
        await self.session.execute(select(1))
        return True
