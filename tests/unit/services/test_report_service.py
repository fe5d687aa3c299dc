"""Tests for ReportService."""

import copy
import uuid
from unittest.mock import AsyncMock

import pytest

from scaledtest.exceptions import (
    BackendUnavailableError,
    InvalidParameterError,
    ReportAlreadyExistsError,
    ReportValidationError,
)
from scaledtest.services.report_service import (
    MAX_PAGE_SIZE,
    MAX_RESULT_WINDOW,
    ReportService,
    validate_report,
)


@pytest.fixture
def mock_report_repository():
    repo = AsyncMock()
    repo.save = AsyncMock(side_effect=lambda document, refresh=False: document["reportId"])
    repo.search = AsyncMock(return_value=([], 0))
    return repo


@pytest.fixture
def report_service(mock_report_repository, mock_index_service):
    return ReportService(
        report_repository=mock_report_repository,
        index_service=mock_index_service,
    )


def _stored_document(mock_report_repository):
    return mock_report_repository.save.call_args[0][0]


class TestValidateReport:
    """Tests for CTRF payload validation."""

    def test_valid_report(self, sample_report):
        report = validate_report(sample_report())

        assert report.results.tool.name == "jest"
        assert len(report.results.tests) == 3

    def test_all_violations_reported(self, sample_report):
        """Verify every field-level violation is returned, not just the first."""
        payload = sample_report(reportFormat="JUNIT")
        payload["results"]["summary"]["passed"] = "2"
        payload["results"]["tests"][0]["status"] = "broken"

        with pytest.raises(ReportValidationError) as exc_info:
            validate_report(payload)

        fields = {v["field"] for v in exc_info.value.violations}
        assert {"reportFormat", "results.summary.passed", "results.tests.0.status"} <= fields
        assert exc_info.value.status_code == 400
        assert exc_info.value.details == exc_info.value.violations

    def test_missing_results(self):
        with pytest.raises(ReportValidationError) as exc_info:
            validate_report({"reportFormat": "CTRF", "specVersion": "1.0.0"})

        assert exc_info.value.violations[0]["field"] == "results"
        assert exc_info.value.violations[0]["type"] == "missing"

    @pytest.mark.parametrize("payload", [None, [], "report"])
    def test_non_object_payload(self, payload):
        with pytest.raises(ReportValidationError) as exc_info:
            validate_report(payload)

        assert exc_info.value.violations[0]["field"] == "body"
        assert exc_info.value.violations[0]["type"] == "model_type"

    @pytest.mark.parametrize("timestamp", [1700000000, "2024-01-01 10:00", "2024-01-01", "yesterday"])
    def test_timestamp_must_be_iso_datetime(self, sample_report, timestamp):
        with pytest.raises(ReportValidationError) as exc_info:
            validate_report(sample_report(timestamp=timestamp))

        assert exc_info.value.violations[0]["field"] == "timestamp"


class TestIngest:
    """Tests for ReportService.ingest."""

    @pytest.mark.asyncio
    async def test_assigns_id_and_timestamp(self, report_service, mock_report_repository, sample_report):
        response = await report_service.ingest(sample_report(), "user-123", ["team-a"])

        document = _stored_document(mock_report_repository)
        assert uuid.UUID(document["reportId"])
        assert document["timestamp"].endswith("Z")
        assert response.id == document["reportId"]
        assert response.success is True
        assert response.summary.tests == 3
        assert response.summary.failed == 1

    @pytest.mark.asyncio
    async def test_keeps_provided_id_and_timestamp(self, report_service, mock_report_repository, sample_report):
        report_id = str(uuid.uuid4())
        payload = sample_report(reportId=report_id, timestamp="2026-01-01T12:00:00Z")

        response = await report_service.ingest(payload, "user-123", [])

        document = _stored_document(mock_report_repository)
        assert response.id == report_id
        assert document["timestamp"] == "2026-01-01T12:00:00Z"

    @pytest.mark.asyncio
    async def test_attaches_upload_metadata(self, report_service, mock_report_repository, sample_report):
        await report_service.ingest(sample_report(), "user-123", ["team-a", "team-b"])

        document = _stored_document(mock_report_repository)
        assert document["metadata"]["uploadedBy"] == "user-123"
        assert document["metadata"]["userTeams"] == ["team-a", "team-b"]
        assert document["metadata"]["uploadedAt"] == document["storedAt"]

    @pytest.mark.asyncio
    async def test_stores_submitted_fields_untouched(self, report_service, mock_report_repository, sample_report):
        payload = sample_report()
        original = copy.deepcopy(payload)

        await report_service.ingest(payload, "user-123", [])

        document = _stored_document(mock_report_repository)
        assert payload == original
        assert document["results"] == original["results"]
        assert document["extra"] == original["extra"]

    @pytest.mark.asyncio
    async def test_ensures_index_before_save(self, report_service, mock_index_service, sample_report):
        await report_service.ingest(sample_report(), "user-123", [])

        mock_index_service.ensure_index_exists.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_refresh_passed_to_repository(self, report_service, mock_report_repository, sample_report):
        await report_service.ingest(sample_report(), "user-123", [], refresh=True)

        assert mock_report_repository.save.call_args.kwargs["refresh"] is True

    @pytest.mark.asyncio
    async def test_invalid_payload_not_stored(self, report_service, mock_report_repository):
        with pytest.raises(ReportValidationError):
            await report_service.ingest({"reportFormat": "CTRF"}, "user-123", [])

        mock_report_repository.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_backend_errors_propagate(self, report_service, mock_report_repository, sample_report):
        mock_report_repository.save = AsyncMock(side_effect=BackendUnavailableError())

        with pytest.raises(BackendUnavailableError):
            await report_service.ingest(sample_report(), "user-123", [])

    @pytest.mark.asyncio
    async def test_existing_report_id_conflicts(self, report_service, mock_report_repository, sample_report):
        report_id = str(uuid.uuid4())
        mock_report_repository.save = AsyncMock(side_effect=ReportAlreadyExistsError(report_id))

        with pytest.raises(ReportAlreadyExistsError) as exc_info:
            await report_service.ingest(sample_report(reportId=report_id), "user-456", ["team-z"])

        assert exc_info.value.status_code == 409


class TestListReports:
    """Tests for ReportService.list_reports."""

    @pytest.mark.asyncio
    async def test_page_size_capped(self, report_service, mock_report_repository):
        response = await report_service.list_reports("user-123", [], size=200)

        body = mock_report_repository.search.call_args[0][0]
        assert body["size"] == MAX_PAGE_SIZE
        assert response.pagination.size == 100

    @pytest.mark.asyncio
    async def test_returns_reports_and_total(self, report_service, mock_report_repository):
        mock_report_repository.search = AsyncMock(return_value=([{"reportId": "r1"}], 41))

        response = await report_service.list_reports("user-123", ["team-a"], page=3, size=20)

        assert response.reports == [{"reportId": "r1"}]
        assert response.total == 41
        assert response.pagination.page == 3
        body = mock_report_repository.search.call_args[0][0]
        assert body["from"] == 40

    @pytest.mark.asyncio
    async def test_last_page_inside_result_window(self, report_service, mock_report_repository):
        await report_service.list_reports("user-123", [], page=100, size=100)

        body = mock_report_repository.search.call_args[0][0]
        assert body["from"] + body["size"] == MAX_RESULT_WINDOW

    @pytest.mark.asyncio
    async def test_page_past_result_window_rejected(self, report_service, mock_report_repository):
        with pytest.raises(InvalidParameterError) as exc_info:
            await report_service.list_reports("user-123", [], page=101, size=100)

        assert exc_info.value.status_code == 400
        assert exc_info.value.details == {"parameter": "page"}
        mock_report_repository.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_result_window_uses_clamped_size(self, report_service, mock_report_repository):
        await report_service.list_reports("user-123", [], page=100, size=500)

        mock_report_repository.search.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unavailable_backend_raises(self, report_service, mock_report_repository):
        mock_report_repository.search = AsyncMock(side_effect=BackendUnavailableError())

        with pytest.raises(BackendUnavailableError):
            await report_service.list_reports("user-123", [])

    @pytest.mark.asyncio
    async def test_degraded_mode_returns_flagged_empty_page(self, mock_report_repository, mock_index_service):
        mock_index_service.ensure_index_exists = AsyncMock(side_effect=BackendUnavailableError())
        service = ReportService(mock_report_repository, mock_index_service, degraded_read_mode=True)

        response = await service.list_reports("user-123", [])

        assert response.reports == []
        assert response.total == 0
        assert response.degraded is True
