"""Service liveness schemas for ``GET /health``."""

from typing import Any, Literal

from pydantic import BaseModel, Field

ServiceName = Literal["opensearch", "database"]


class ServiceStatus(BaseModel):
    """Reachability of one collaborator (search backend or membership store)."""

    status: Literal["healthy", "unhealthy"]
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Overall status is ``degraded`` when any collaborator is unreachable."""

    status: Literal["ok", "degraded"]
    version: str
    services: dict[ServiceName, ServiceStatus]
    timestamp: str
