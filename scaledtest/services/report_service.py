"""Service for ingesting and listing CTRF reports."""

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from scaledtest.exceptions import (
    BackendUnavailableError,
    InvalidParameterError,
    ReportValidationError,
)
from scaledtest.repositories.report_repository import ReportRepository
from scaledtest.schemas.reports import (
    CtrfReport,
    Pagination,
    ReportIngestResponse,
    ReportListResponse,
    ReportSummary,
)
from scaledtest.services.analytics import query_builder
from scaledtest.services.index_service import IndexService
from scaledtest.utils.logger import get_logger

log = get_logger(__name__)

MAX_PAGE_SIZE = 100
# OpenSearch index.max_result_window default; from + size may not exceed it.
MAX_RESULT_WINDOW = 10_000


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def validate_report(payload: Any) -> CtrfReport:
    """
    Validate a submitted payload against the CTRF schema.

    Raises:
        ReportValidationError: With every field-level violation, not just the first
    """
    try:
        return CtrfReport.model_validate(payload)
    except ValidationError as e:
        violations = [
            {
                "field": ".".join(str(part) for part in error["loc"]) or "body",
                "message": error["msg"],
                "type": error["type"],
            }
            for error in e.errors()
        ]
        raise ReportValidationError(violations) from None


class ReportService:
    """Report ingestion and retrieval orchestration."""

    def __init__(
        self,
        report_repository: ReportRepository,
        index_service: IndexService,
        query_timeout_seconds: float = 30.0,
        degraded_read_mode: bool = False,
    ):
        self.report_repository = report_repository
        self.index_service = index_service
        self.query_timeout = f"{int(query_timeout_seconds)}s"
        self.degraded_read_mode = degraded_read_mode

    async def ingest(
        self,
        payload: Any,
        subject: str,
        team_ids: Sequence[str],
        refresh: bool = False,
    ) -> ReportIngestResponse:
        """
        Validate and store one report.

        The submitted JSON is stored as-is. Only ``reportId`` and ``timestamp``
        are filled in when absent, and ``storedAt``/``metadata`` are attached.

        Args:
            payload: Raw report JSON
            subject: Uploader's subject id
            team_ids: Uploader's teams at upload time
            refresh: Wait until the report is visible to searches

        Raises:
            ReportValidationError: If the payload is not a valid CTRF report
            ReportAlreadyExistsError: If the submitted ``reportId`` is already stored
            BackendUnavailableError: If OpenSearch cannot be reached
        """
        report = validate_report(payload)

        now = _utc_now_iso()
        document = copy.deepcopy(payload)
        if report.report_id is None:
            document["reportId"] = str(uuid.uuid4())
        if report.timestamp is None:
            document["timestamp"] = now
        document["storedAt"] = now
        document["metadata"] = {
            "uploadedBy": subject,
            "userTeams": list(team_ids),
            "uploadedAt": now,
        }

        await self.index_service.ensure_index_exists()
        report_id = await self.report_repository.save(document, refresh=refresh)

        summary = report.results.summary
        log.info(
            "report ingested",
            report_id=report_id,
            tool=report.results.tool.name,
            tests=summary.tests,
            failed=summary.failed,
            uploaded_by=subject,
            team_count=len(team_ids),
        )
        return ReportIngestResponse(
            id=report_id,
            summary=ReportSummary(
                tests=summary.tests,
                passed=summary.passed,
                failed=summary.failed,
                skipped=summary.skipped,
                pending=summary.pending,
                other=summary.other,
            ),
        )

    async def list_reports(
        self,
        subject: str,
        team_ids: Sequence[str],
        page: int = 1,
        size: int = 20,
        status: Optional[str] = None,
        tool: Optional[str] = None,
        environment: Optional[str] = None,
    ) -> ReportListResponse:
        """
        List the caller's visible reports, newest first. ``size`` is capped at 100.

        Raises:
            InvalidParameterError: If the page lies past the backend's result window
        """
        size = min(size, MAX_PAGE_SIZE)
        if page * size > MAX_RESULT_WINDOW:
            raise InvalidParameterError(
                f"Invalid page parameter. page * size must not exceed {MAX_RESULT_WINDOW}.",
                parameter="page",
            )
        body = query_builder.build_report_list_query(
            query_builder.team_scope(team_ids, subject),
            page=page,
            size=size,
            status=status,
            tool=tool,
            environment=environment,
            timeout=self.query_timeout,
        )

        try:
            await self.index_service.ensure_index_exists()
            reports, total = await self.report_repository.search(body)
        except BackendUnavailableError as e:
            if not self.degraded_read_mode:
                raise
            log.warning("backend unavailable, serving empty report list", error=e.message)
            return ReportListResponse(
                reports=[],
                total=0,
                pagination=Pagination(page=page, size=size, total=0),
                degraded=True,
            )

        return ReportListResponse(
            reports=reports,
            total=total,
            pagination=Pagination(page=page, size=size, total=total),
        )
