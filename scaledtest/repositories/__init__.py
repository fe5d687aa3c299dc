"""Repository layer for data access."""

from scaledtest.repositories.report_repository import ReportRepository
from scaledtest.repositories.team_repository import TeamRepository

__all__ = [
    "ReportRepository",
    "TeamRepository",
]
