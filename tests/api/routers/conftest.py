"""Shared pytest fixtures for router tests."""

from contextlib import ExitStack
from typing import AsyncGenerator
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from scaledtest.roles import Roles
from scaledtest.schemas.analytics import AnalyticsResult, AnalyticsView, BackendHealth
from scaledtest.schemas.reports import ReportIngestResponse, ReportListResponse, ReportSummary, Pagination
from scaledtest.services.auth_service import TokenClaims


# Keep the lifespan away from PostgreSQL and OpenSearch
@pytest.fixture(autouse=True)
def mock_lifespan_connections():
    """Mock database initialization and client shutdown for all router tests."""
    with ExitStack() as stack:
        stack.enter_context(patch("scaledtest.main.init_db", new_callable=AsyncMock))
        mock_engine = stack.enter_context(patch("scaledtest.main.engine"))
        mock_engine.dispose = AsyncMock()
        mock_client_factory = stack.enter_context(patch("scaledtest.main.get_opensearch_client"))
        mock_client_factory.return_value.aclose = AsyncMock()
        yield


@pytest.fixture
def mock_db_session():
    """Create a mock AsyncSession for router tests."""
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock(return_value=Mock())
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def healthy_backend():
    return BackendHealth(connected=True, index_exists=True, document_count=12, cluster_status="green")


@pytest.fixture
def mock_analytics_service(healthy_backend):
    """Create a mock AnalyticsService returning an empty view."""
    service = AsyncMock()

    async def _get_view(view, subject, team_ids, days=30):
        return AnalyticsResult(
            view=view,
            data=[],
            backend_health=healthy_backend,
            days_requested=days if view == AnalyticsView.TRENDS else None,
        )

    service.get_view = AsyncMock(side_effect=_get_view)
    return service


@pytest.fixture
def mock_report_service():
    """Create a mock ReportService."""
    service = AsyncMock()
    service.ingest = AsyncMock(
        return_value=ReportIngestResponse(
            id="9b2f7d0e-3f5c-4a53-9a57-0d2b6f3f9c11",
            summary=ReportSummary(tests=3, passed=2, failed=1, skipped=0, pending=0, other=0),
        )
    )
    service.list_reports = AsyncMock(
        return_value=ReportListResponse(
            reports=[], total=0, pagination=Pagination(page=1, size=20, total=0)
        )
    )
    return service


@pytest.fixture
def mock_team_service():
    """Create a mock TeamService."""
    service = AsyncMock()
    service.list_teams = AsyncMock(return_value=[])
    service.resolve_team_ids = AsyncMock(return_value=["team-a"])
    return service


@pytest.fixture
def mock_team_repo():
    """Create a mock TeamRepository."""
    repo = AsyncMock()
    repo.ping = AsyncMock(return_value=True)
    return repo


@pytest.fixture
def team_ids():
    return ["team-a"]


def make_user(*roles: str, subject: str = "user-123") -> TokenClaims:
    return TokenClaims(
        subject=subject,
        roles=Roles(names=frozenset(roles)),
        email=f"{subject}@example.com",
        username=subject,
    )


def _create_test_client(
    mock_db_session,
    mock_analytics_service,
    mock_report_service,
    mock_index_service,
    mock_team_service,
    mock_team_repo,
    team_ids,
    *,
    user=None,
):
    """Build a TestClient with all infra dependencies overridden.

    When ``user`` is provided, token verification and team resolution are
    bypassed. When omitted, authentication runs normally so tests can assert
    401 behaviour.
    """
    from scaledtest.database import get_db
    from scaledtest.dependencies import (
        get_current_user,
        get_team_ids,
        get_team_repository,
        get_team_service_dep,
    )
    from scaledtest.factories.service_factories import (
        get_analytics_service,
        get_index_service,
        get_report_service,
    )
    from scaledtest.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield mock_db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_analytics_service] = lambda: mock_analytics_service
    app.dependency_overrides[get_report_service] = lambda: mock_report_service
    app.dependency_overrides[get_index_service] = lambda: mock_index_service
    app.dependency_overrides[get_team_service_dep] = lambda: mock_team_service
    app.dependency_overrides[get_team_repository] = lambda: mock_team_repo

    if user is not None:
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_team_ids] = lambda: team_ids

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def client_factory(
    mock_db_session,
    mock_analytics_service,
    mock_report_service,
    mock_index_service,
    mock_team_service,
    mock_team_repo,
    team_ids,
):
    """Context-managed TestClient for an arbitrary caller."""
    generators = []

    def _make(user=None, report_service=None):
        gen = _create_test_client(
            mock_db_session,
            mock_analytics_service,
            report_service or mock_report_service,
            mock_index_service,
            mock_team_service,
            mock_team_repo,
            team_ids,
            user=user,
        )
        generators.append(gen)
        return next(gen)

    yield _make

    for gen in generators:
        next(gen, None)


@pytest.fixture
def client(client_factory):
    """TestClient authenticated as a maintainer."""
    return client_factory(make_user("maintainer"))


@pytest.fixture
def readonly_client(client_factory):
    """TestClient authenticated as a readonly user."""
    return client_factory(make_user("readonly"))


@pytest.fixture
def unauthenticated_client(client_factory):
    """TestClient WITHOUT auth override to test 401 responses."""
    return client_factory()


@pytest.fixture
def user_factory():
    """Factory for verified callers with the given roles."""
    return make_user
