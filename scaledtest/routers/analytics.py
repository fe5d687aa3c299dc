"""Analytics router."""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Query

from scaledtest.config import get_settings
from scaledtest.dependencies import AnalyticsServiceDep, ReaderUser, TeamIds
from scaledtest.exceptions import ResourceNotFoundError
from scaledtest.schemas.analytics import AnalyticsMeta, AnalyticsResponse, AnalyticsView
from scaledtest.services.analytics.query_builder import DEFAULT_TREND_DAYS
from scaledtest.services.analytics.service import parse_days

router = APIRouter()


@router.get("/analytics/{view}", response_model=AnalyticsResponse[Any])
async def get_analytics(
    view: str,
    current_user: ReaderUser,
    team_ids: TeamIds,
    analytics_service: AnalyticsServiceDep,
    days: Optional[str] = Query(None, description="Trend window in days (1-365), trends only"),
) -> AnalyticsResponse[Any]:
    """
    Compute one analytics view over the caller's team-scoped reports.

    Views: suite-overview, trends, duration, errors, flaky-tests,
    flaky-test-runs, health.
    """
    try:
        analytics_view = AnalyticsView(view)
    except ValueError:
        raise ResourceNotFoundError("Analytics view", view) from None

    window = parse_days(days) if analytics_view == AnalyticsView.TRENDS else DEFAULT_TREND_DAYS

    result = await analytics_service.get_view(
        analytics_view,
        subject=current_user.subject,
        team_ids=team_ids,
        days=window,
    )

    return AnalyticsResponse[Any](
        data=result.data,
        meta=AnalyticsMeta(
            index=get_settings().opensearch_index,
            timestamp=datetime.now(timezone.utc),
            backend_health=result.backend_health,
            degraded=result.degraded,
            days_requested=result.days_requested,
        ),
    )
