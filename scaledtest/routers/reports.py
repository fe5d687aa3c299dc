"""CTRF reports router."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Query

from scaledtest.dependencies import MaintainerUser, ReaderUser, ReportServiceDep, TeamIds
from scaledtest.schemas.reports import ReportIngestResponse, ReportListResponse, TestStatus

router = APIRouter()


@router.post(
    "/reports",
    response_model=ReportIngestResponse,
    status_code=201,
)
async def create_report(
    current_user: MaintainerUser,
    team_ids: TeamIds,
    report_service: ReportServiceDep,
    payload: Any = Body(...),
    refresh: bool = Query(False, description="Wait until the report is searchable"),
) -> ReportIngestResponse:
    """
    Store a CTRF report.

    Requires the maintainer or owner role. The report is tagged with the
    uploader and the uploader's current teams.
    """
    return await report_service.ingest(
        payload,
        subject=current_user.subject,
        team_ids=team_ids,
        refresh=refresh,
    )


@router.get("/reports", response_model=ReportListResponse)
async def list_reports(
    current_user: ReaderUser,
    team_ids: TeamIds,
    report_service: ReportServiceDep,
    page: int = Query(1, ge=1, description="1-based page; page * size may not exceed 10000"),
    size: int = Query(20, ge=1, description="Page size; values above 100 are clamped"),
    status: Optional[TestStatus] = Query(None, description="Reports containing a test with this status"),
    tool: Optional[str] = Query(None, description="Exact tool name"),
    environment: Optional[str] = Query(None, description="Exact test environment"),
) -> ReportListResponse:
    """List reports visible to the caller, newest first."""
    return await report_service.list_reports(
        subject=current_user.subject,
        team_ids=team_ids,
        page=page,
        size=size,
        status=status,
        tool=tool,
        environment=environment,
    )
