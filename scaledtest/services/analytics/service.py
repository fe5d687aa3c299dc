"""Analytics service: runs one view's query against the reports index."""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Sequence

from scaledtest.clients.opensearch_client import OpenSearchClient
from scaledtest.exceptions import BackendUnavailableError, InvalidParameterError
from scaledtest.schemas.analytics import AnalyticsResult, AnalyticsView, HealthViewData
from scaledtest.services.analytics import query_builder, result_shaper
from scaledtest.services.index_service import IndexService
from scaledtest.utils.logger import get_logger

log = get_logger(__name__)

INVALID_DAYS_MESSAGE = "Invalid days parameter. Must be between 1 and 365."


def parse_days(raw: Optional[str]) -> int:
    """
    Parse the trend window from a query-string value.

    Raises:
        InvalidParameterError: If not an integer in [1, 365]
    """
    if raw is None:
        return query_builder.DEFAULT_TREND_DAYS
    try:
        days = int(raw.strip())
    except ValueError:
        raise InvalidParameterError(INVALID_DAYS_MESSAGE, parameter="days") from None
    if not query_builder.MIN_TREND_DAYS <= days <= query_builder.MAX_TREND_DAYS:
        raise InvalidParameterError(INVALID_DAYS_MESSAGE, parameter="days")
    return days


class AnalyticsService:
    """
    Serves team-scoped analytics views.

    Each request checks backend health, makes sure the index exists, then runs
    the view's query and reshapes the aggregation buckets.

    With ``degraded_read_mode`` enabled, an unreachable backend yields an empty
    result flagged ``degraded`` instead of an error. The flag exists for test
    environments and is off by default.
    """

    def __init__(
        self,
        client: OpenSearchClient,
        index_service: IndexService,
        index: str,
        query_timeout_seconds: float = 30.0,
        degraded_read_mode: bool = False,
    ):
        self.client = client
        self.index_service = index_service
        self.index = index
        self.query_timeout = f"{int(query_timeout_seconds)}s"
        self.degraded_read_mode = degraded_read_mode

        self._handlers: dict[AnalyticsView, Callable[[dict[str, Any], int], Awaitable[list]]] = {
            AnalyticsView.SUITE_OVERVIEW: self._suite_overview,
            AnalyticsView.TRENDS: self._trends,
            AnalyticsView.DURATION: self._duration,
            AnalyticsView.ERRORS: self._errors,
            AnalyticsView.FLAKY_TESTS: self._flaky_tests,
            AnalyticsView.FLAKY_TEST_RUNS: self._flaky_test_runs,
        }

    async def get_view(
        self,
        view: AnalyticsView,
        subject: str,
        team_ids: Sequence[str],
        days: int = query_builder.DEFAULT_TREND_DAYS,
    ) -> AnalyticsResult:
        """
        Compute one analytics view for the caller.

        Args:
            view: Which view to compute
            subject: Caller's subject id
            team_ids: Caller's team ids (may be empty)
            days: Trend window, already validated

        Raises:
            BackendUnavailableError: If OpenSearch cannot be reached (unless degraded mode)
            QueryExecutionError: If OpenSearch rejects the query or times out
        """
        days_requested = days if view == AnalyticsView.TRENDS else None
        health = await self.index_service.health_status()

        if view == AnalyticsView.HEALTH:
            data = HealthViewData(
                **health.model_dump(),
                index=self.index,
                timestamp=datetime.now(timezone.utc),
            )
            return AnalyticsResult(view=view, data=data, backend_health=health)

        try:
            if not health.connected:
                raise BackendUnavailableError(
                    "OpenSearch is not accessible - Cannot connect to OpenSearch cluster"
                )
            if not health.index_exists:
                await self.index_service.ensure_index_exists()

            scope = query_builder.team_scope(team_ids, subject)
            data = await self._handlers[view](scope, days)
        except BackendUnavailableError as e:
            if not self.degraded_read_mode:
                raise
            log.warning(
                "backend unavailable, serving degraded result",
                view=view.value,
                error=e.message,
            )
            return AnalyticsResult(
                view=view,
                data=[],
                backend_health=health,
                degraded=True,
                days_requested=days_requested,
            )

        log.info("analytics view computed", view=view.value, records=len(data), team_count=len(team_ids))
        return AnalyticsResult(
            view=view,
            data=data,
            backend_health=health,
            days_requested=days_requested,
        )

    async def _search(self, body: dict[str, Any]) -> dict[str, Any]:
        return await self.client.search(self.index, body)

    async def _suite_overview(self, scope: dict[str, Any], days: int) -> list:
        body = query_builder.build_suite_overview_query(scope, timeout=self.query_timeout)
        return result_shaper.shape_suite_overview(await self._search(body))

    async def _trends(self, scope: dict[str, Any], days: int) -> list:
        body = query_builder.build_trends_query(scope, days, timeout=self.query_timeout)
        return result_shaper.shape_trends(await self._search(body))

    async def _duration(self, scope: dict[str, Any], days: int) -> list:
        body = query_builder.build_duration_query(scope, timeout=self.query_timeout)
        return result_shaper.shape_duration(await self._search(body))

    async def _errors(self, scope: dict[str, Any], days: int) -> list:
        body = query_builder.build_error_query(scope, timeout=self.query_timeout)
        return result_shaper.shape_errors(await self._search(body))

    async def _flaky_tests(self, scope: dict[str, Any], days: int) -> list:
        body = query_builder.build_flaky_query(scope, timeout=self.query_timeout)
        return result_shaper.shape_flaky_tests(await self._search(body))

    async def _flaky_test_runs(self, scope: dict[str, Any], days: int) -> list:
        flaky_tests = await self._flaky_tests(scope, days)
        if not flaky_tests:
            return []

        body = query_builder.build_flaky_runs_query(
            scope, [t.test_name for t in flaky_tests], timeout=self.query_timeout
        )
        return result_shaper.shape_flaky_test_runs(flaky_tests, await self._search(body))