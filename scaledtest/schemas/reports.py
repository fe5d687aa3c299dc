"""Schemas for CTRF report ingestion and retrieval.

The CTRF models validate incoming payloads only. Stored documents keep the
submitted JSON untouched, so fields are parsed but never re-serialized.
"""

from typing import Annotated, Any, Literal, Optional
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, field_validator
from pydantic.alias_generators import to_camel

TestStatus = Literal["passed", "failed", "skipped", "pending", "other"]
NonNegativeInt = Annotated[StrictInt, Field(ge=0)]
OptionalStr = Optional[StrictStr]
ExtraDict = Optional[dict[str, Any]]

SPEC_VERSION_PATTERN = r"^[0-9]+\.[0-9]+\.[0-9]+$"
INVALID_TIMESTAMP_MESSAGE = "timestamp must be an ISO-8601 date-time, e.g. 2024-01-01T10:00:00Z"


class CtrfModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class CtrfTool(CtrfModel):
    name: StrictStr
    version: OptionalStr = None
    url: OptionalStr = None
    extra: ExtraDict = None


class CtrfSummary(CtrfModel):
    tests: NonNegativeInt
    passed: NonNegativeInt
    failed: NonNegativeInt
    skipped: NonNegativeInt
    pending: NonNegativeInt
    other: NonNegativeInt
    suites: Optional[NonNegativeInt] = None
    start: StrictInt
    stop: StrictInt
    extra: ExtraDict = None


class CtrfAttachment(CtrfModel):
    name: StrictStr
    content_type: StrictStr
    path: StrictStr
    extra: ExtraDict = None


class CtrfStep(CtrfModel):
    name: StrictStr
    status: TestStatus
    extra: ExtraDict = None


class CtrfTest(CtrfModel):
    name: StrictStr
    status: TestStatus
    duration: NonNegativeInt
    start: Optional[StrictInt] = None
    stop: Optional[StrictInt] = None
    suite: OptionalStr = None
    message: OptionalStr = None
    trace: OptionalStr = None
    ai: OptionalStr = None
    line: Optional[StrictInt] = None
    raw_status: OptionalStr = None
    tags: Optional[list[StrictStr]] = None
    type: OptionalStr = None
    file_path: OptionalStr = None
    retries: Optional[NonNegativeInt] = None
    flaky: Optional[StrictBool] = None
    stdout: Optional[list[StrictStr]] = None
    stderr: Optional[list[StrictStr]] = None
    thread_id: OptionalStr = None
    browser: OptionalStr = None
    device: OptionalStr = None
    screenshot: OptionalStr = None
    attachments: Optional[list[CtrfAttachment]] = None
    parameters: ExtraDict = None
    steps: Optional[list[CtrfStep]] = None
    extra: ExtraDict = None


class CtrfEnvironment(CtrfModel):
    report_name: OptionalStr = None
    app_name: OptionalStr = None
    app_version: OptionalStr = None
    build_name: OptionalStr = None
    build_number: OptionalStr = None
    build_url: OptionalStr = None
    repository_name: OptionalStr = None
    repository_url: OptionalStr = None
    commit: OptionalStr = None
    branch_name: OptionalStr = None
    os_platform: OptionalStr = None
    os_release: OptionalStr = None
    os_version: OptionalStr = None
    test_environment: OptionalStr = None
    extra: ExtraDict = None


class CtrfResults(CtrfModel):
    tool: CtrfTool
    summary: CtrfSummary
    tests: list[CtrfTest]
    environment: Optional[CtrfEnvironment] = None
    extra: ExtraDict = None


class CtrfReport(CtrfModel):
    """A Common Test Report Format document as submitted by a reporter."""

    report_format: Literal["CTRF"]
    spec_version: Annotated[StrictStr, Field(pattern=SPEC_VERSION_PATTERN)]
    report_id: Optional[UUID] = None
    timestamp: OptionalStr = None
    generated_by: OptionalStr = None
    results: CtrfResults
    extra: ExtraDict = None

    @field_validator("timestamp")
    @classmethod
    def require_iso_datetime(cls, value: Optional[str]) -> Optional[str]:
        # Stored verbatim, so it must parse under the index's date mapping.
        if value is None:
            return value
        try:
            if "T" not in value:
                raise ValueError(value)
            datetime.fromisoformat(value[:-1] + "+00:00" if value.endswith("Z") else value)
        except ValueError:
            raise ValueError(INVALID_TIMESTAMP_MESSAGE) from None
        return value


# ============================================================================
# API responses
# ============================================================================


class ReportSummary(BaseModel):
    tests: int
    passed: int
    failed: int
    skipped: int
    pending: int
    other: int


class ReportIngestResponse(BaseModel):
    """Response after storing a report."""

    success: bool = True
    id: str = Field(..., description="Report ID")
    message: str = "CTRF report stored successfully"
    summary: ReportSummary


class Pagination(BaseModel):
    page: int
    size: int
    total: int


class ReportListResponse(BaseModel):
    """Response for listing reports."""

    success: bool = True
    reports: list[dict[str, Any]]
    total: int = Field(..., description="Total number of matching reports")
    pagination: Pagination
    degraded: bool = False
