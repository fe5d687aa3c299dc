"""Database models."""

from scaledtest.models.team import Team, UserTeam

__all__ = [
    "Team",
    "UserTeam",
]
