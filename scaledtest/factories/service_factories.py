"""Factory functions for business logic services."""

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession

from scaledtest.config import get_settings
from scaledtest.factories.client_factories import get_opensearch_client
from scaledtest.repositories.report_repository import ReportRepository
from scaledtest.repositories.team_repository import TeamRepository
from scaledtest.services.analytics.service import AnalyticsService
from scaledtest.services.index_service import IndexService
from scaledtest.services.report_service import ReportService
from scaledtest.services.team_service import TeamService


@lru_cache(maxsize=1)
def get_index_service() -> IndexService:
    """
    Create singleton index service.

    One instance per process so concurrent index creation is serialized.

    Returns:
        IndexService instance
    """
    settings = get_settings()
    return IndexService(get_opensearch_client(), settings.opensearch_index)


@lru_cache(maxsize=1)
def get_analytics_service() -> AnalyticsService:
    """
    Create singleton analytics service.

    Returns:
        AnalyticsService instance
    """
    settings = get_settings()
    return AnalyticsService(
        client=get_opensearch_client(),
        index_service=get_index_service(),
        index=settings.opensearch_index,
        query_timeout_seconds=settings.opensearch_timeout_seconds,
        degraded_read_mode=settings.degraded_read_mode,
    )


@lru_cache(maxsize=1)
def get_report_service() -> ReportService:
    """
    Create singleton report service.

    Returns:
        ReportService instance
    """
    settings = get_settings()
    return ReportService(
        report_repository=ReportRepository(get_opensearch_client(), settings.opensearch_index),
        index_service=get_index_service(),
        query_timeout_seconds=settings.opensearch_timeout_seconds,
        degraded_read_mode=settings.degraded_read_mode,
    )


def get_team_service(db_session: AsyncSession) -> TeamService:
    """
    Create TeamService with dependencies.

    Note: Not cached because depends on request-scoped db session.

    Args:
        db_session: Database session

    Returns:
        TeamService instance
    """
    return TeamService(TeamRepository(db_session))
