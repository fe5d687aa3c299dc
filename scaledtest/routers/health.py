"""Health check router."""

from datetime import datetime, timezone

from fastapi import APIRouter

from scaledtest.config import get_settings
from scaledtest.dependencies import IndexServiceDep, TeamRepoDep
from scaledtest.schemas.health import HealthResponse, ServiceStatus
from scaledtest.utils.logger import get_logger

router = APIRouter()
log = get_logger(__name__)

API_VERSION = "0.1.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(index_service: IndexServiceDep, team_repo: TeamRepoDep) -> HealthResponse:
    """
    Liveness of the service's collaborators.

    Checks:
    - OpenSearch connectivity, reports index and document count
    - PostgreSQL connectivity (team membership store)

    Returns:
        HealthResponse with status and service details
    """
    services = {}
    overall_status = "ok"

    backend = await index_service.health_status()
    if backend.connected:
        services["opensearch"] = ServiceStatus(
            status="healthy",
            message="Connected",
            details={
                "index": get_settings().opensearch_index,
                "index_exists": backend.index_exists,
                "document_count": backend.document_count,
                "cluster_status": backend.cluster_status,
            },
        )
    else:
        services["opensearch"] = ServiceStatus(status="unhealthy", message="Service unavailable")
        overall_status = "degraded"

    try:
        await team_repo.ping()
        services["database"] = ServiceStatus(status="healthy", message="Connected")
    except Exception as e:
        log.error("health check failed", service="database", error=str(e))
        services["database"] = ServiceStatus(status="unhealthy", message="Service unavailable")
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=API_VERSION,
        services=services,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )
