"""Analytics view schemas.

Result records are serialized with camelCase keys (``passRatePct``,
``flakyScorePct``...), the shape dashboard clients consume.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AnalyticsView(StrEnum):
    SUITE_OVERVIEW = "suite-overview"
    TRENDS = "trends"
    DURATION = "duration"
    ERRORS = "errors"
    FLAKY_TESTS = "flaky-tests"
    FLAKY_TEST_RUNS = "flaky-test-runs"
    HEALTH = "health"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuiteOverview(CamelModel):
    name: str
    total: int
    passed: int
    failed: int
    skipped: int
    pass_rate_pct: float
    avg_duration_ms: float


class TrendPoint(CamelModel):
    bucket_label: str
    total: int
    passed: int
    failed: int
    skipped: int
    pass_rate_pct: float


class DurationBucket(CamelModel):
    range_label: str
    count: int
    avg_ms: float
    max_ms: float
    min_ms: float


class ErrorGroup(CamelModel):
    message: str
    count: int
    affected_test_names: list[str]


class FlakyTest(CamelModel):
    test_name: str
    total_runs: int
    passed: int
    failed: int
    skipped: int
    flaky_score_pct: float
    is_flaky: bool
    is_marked_flaky: bool
    avg_duration_ms: float = 0


class FlakyTestRun(CamelModel):
    test_name: str
    suite: str
    status: str
    duration_ms: int
    message: Optional[str] = None
    trace: Optional[str] = None
    timestamp: Optional[str] = None
    report_id: Optional[str] = None


class FlakyTestWithRuns(FlakyTest):
    test_runs: list[FlakyTestRun] = Field(default_factory=list)


class BackendHealth(CamelModel):
    """Connection and index state of the search backend."""

    connected: bool
    index_exists: bool
    document_count: int
    cluster_status: str


class HealthViewData(BackendHealth):
    index: str
    timestamp: datetime


class AnalyticsMeta(CamelModel):
    source: str = "opensearch"
    index: str
    timestamp: datetime
    backend_health: BackendHealth
    degraded: bool = False
    days_requested: Optional[int] = None


T = TypeVar("T")


class AnalyticsResponse(CamelModel, Generic[T]):
    success: bool = True
    data: T
    meta: AnalyticsMeta


class AnalyticsResult(BaseModel):
    """Service-level result for one view, before HTTP wrapping."""

    view: AnalyticsView
    data: Any
    backend_health: BackendHealth
    degraded: bool = False
    days_requested: Optional[int] = None
